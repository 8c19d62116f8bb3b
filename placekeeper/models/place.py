"""Place model."""

from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    Index,
    Integer,
    String,
    Text,
)

from placekeeper.db.base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PlaceSource(str, enum.Enum):
    GOOGLE_PLACES = "Google Places"
    OPENSTREETMAP = "OpenStreetMap"
    COMMUNITY = "Community"


COORDINATES_INDEX = "ix_places_coordinates"


class Place(Base):
    """Canonical point of interest."""

    __tablename__ = "places"
    __table_args__ = (
        CheckConstraint("longitude >= -180 AND longitude <= 180", name="ck_places_longitude"),
        CheckConstraint("latitude >= -90 AND latitude <= 90", name="ck_places_latitude"),
        CheckConstraint("rating >= 0 AND rating <= 5", name="ck_places_rating"),
        Index(COORDINATES_INDEX, "longitude", "latitude"),
        # identity triple; uniqueness is conventional, the cleanup job repairs it
        Index("ix_places_identity", "name", "category", "longitude", "latitude"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    category = Column(String(100), nullable=False)
    description = Column(Text)
    longitude = Column(Float, nullable=False)
    latitude = Column(Float, nullable=False)
    address = Column(Text)

    department = Column(String(100))
    city = Column(String(100), index=True)
    sector = Column(String(100))

    rating = Column(Float, nullable=False, default=0.0)
    verified = Column(Boolean, nullable=False, default=False)
    source = Column(
        Enum(
            PlaceSource,
            name="place_source",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
            validate_strings=True,
        ),
        nullable=False,
    )
    concurrence = Column(Integer, nullable=False, default=0)
    admin_created = Column(Boolean, nullable=False, default=False)

    # enrichment
    total_ratings = Column(Integer)
    phone = Column(String(50))
    website = Column(Text)
    opening_hours = Column(JSON, nullable=False, default=list)
    price_level = Column(Integer)
    provider_place_id = Column(String(255), index=True)
    photo_descriptors = Column(JSON, nullable=False, default=list)
    last_enriched_at = Column(DateTime(timezone=True))
    geocode_attempted_at = Column(DateTime(timezone=True))

    official_images = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def coordinates(self) -> list[float]:
        """[longitude, latitude]"""
        return [self.longitude, self.latitude]

    @property
    def identity(self) -> tuple[str, str, float, float]:
        return (self.name, self.category, self.longitude, self.latitude)

    def __repr__(self) -> str:
        return f"<Place id={self.id} name={self.name!r} category={self.category!r}>"
