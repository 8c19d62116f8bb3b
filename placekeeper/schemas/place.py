"""Pydantic schemas for places."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from placekeeper.models.place import PlaceSource


class PlaceDraft(BaseModel):
    """Candidate emitted by discovery, not yet persisted."""

    name: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    coordinates: tuple[float, float] = Field(..., description="[longitude, latitude]")
    address: Optional[str] = None
    description: Optional[str] = None
    rating: float = Field(0.0, ge=0, le=5)
    source: PlaceSource = PlaceSource.GOOGLE_PLACES
    photo_reference: Optional[str] = None
    provider_place_id: Optional[str] = None

    @field_validator("coordinates")
    @classmethod
    def _check_range(cls, value: tuple[float, float]) -> tuple[float, float]:
        lon, lat = value
        if not -180 <= lon <= 180:
            raise ValueError(f"longitude out of range: {lon}")
        if not -90 <= lat <= 90:
            raise ValueError(f"latitude out of range: {lat}")
        return value

    @property
    def longitude(self) -> float:
        return self.coordinates[0]

    @property
    def latitude(self) -> float:
        return self.coordinates[1]

    @property
    def identity(self) -> tuple[str, str, float, float]:
        return (self.name, self.category, self.longitude, self.latitude)


class PlaceOut(BaseModel):
    id: int
    name: str
    category: str
    coordinates: list[float]
    address: Optional[str] = None
    department: Optional[str] = None
    city: Optional[str] = None
    sector: Optional[str] = None
    rating: float
    source: PlaceSource
    verified: bool
    official_images: list[str] = Field(default_factory=list)
    last_enriched_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
