"""Canonical store access."""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from placekeeper.core.errors import PersistenceFailure
from placekeeper.models.place import COORDINATES_INDEX, Place, PlaceSource
from placekeeper.schemas.jobs import CleanupStatistics
from placekeeper.schemas.place import PlaceDraft

logger = logging.getLogger(__name__)

STREAM_CHUNK = 500


def find_by_identity(db: Session, name: str, category: str, longitude: float, latitude: float) -> Place | None:
    """Return a live Place with this exact identity triple, if any."""
    stmt = (
        select(Place)
        .where(
            Place.name == name,
            Place.category == category,
            Place.longitude == longitude,
            Place.latitude == latitude,
        )
        .limit(1)
    )
    return db.execute(stmt).scalars().first()


def insert_place(db: Session, draft: PlaceDraft, official_images: list[str] | None = None) -> Place:
    """Persist a new unverified Place built from a discovery draft."""
    try:
        place = Place(
            name=draft.name,
            category=draft.category,
            description=draft.description,
            longitude=draft.longitude,
            latitude=draft.latitude,
            address=draft.address,
            rating=draft.rating,
            source=draft.source,
            verified=False,
            admin_created=False,
            concurrence=0,
            official_images=list(official_images or []),
        )
        db.add(place)
        db.commit()
        db.refresh(place)
        return place
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceFailure(f"insert failed for {draft.name!r}: {exc}") from exc


def update_place(db: Session, place_id: int, values: dict[str, Any]) -> None:
    """Apply a partial update to one Place; ``updated_at`` is refreshed."""
    try:
        place = db.get(Place, place_id)
        if place is None:
            raise PersistenceFailure(f"place {place_id} no longer exists")
        for field, value in values.items():
            setattr(place, field, value)
        place.updated_at = datetime.now(timezone.utc)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceFailure(f"update failed for place {place_id}: {exc}") from exc


def delete_places(db: Session, place_ids: Iterable[int]) -> int:
    """Delete by id in chunks; returns number of rows removed."""
    ids = list(place_ids)
    removed = 0
    try:
        for start in range(0, len(ids), STREAM_CHUNK):
            chunk = ids[start:start + STREAM_CHUNK]
            result = db.execute(delete(Place).where(Place.id.in_(chunk)))
            removed += result.rowcount or 0
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceFailure(f"delete failed: {exc}") from exc
    return removed


def missing_city_filter():
    return or_(Place.city.is_(None), Place.city == "")


def places_missing_city(db: Session, limit: int | None = None) -> list[int]:
    stmt = select(Place.id).where(missing_city_filter()).order_by(Place.id)
    if limit:
        stmt = stmt.limit(limit)
    return list(db.execute(stmt).scalars())


def geocode_queue(db: Session, limit: int) -> list[int]:
    """Places still missing a city, never geocoded first, then least recently tried."""
    stmt = (
        select(Place.id)
        .where(missing_city_filter())
        .order_by(Place.geocode_attempted_at.is_not(None), Place.geocode_attempted_at, Place.id)
        .limit(limit)
    )
    return list(db.execute(stmt).scalars())


def count_missing_city(db: Session) -> int:
    return db.execute(select(func.count(Place.id)).where(missing_city_filter())).scalar_one()


def enrichment_candidates(db: Session, limit: int) -> list[int]:
    """Verified places lacking provider metadata, most important first."""
    stmt = (
        select(Place.id)
        .where(
            Place.verified.is_(True),
            or_(Place.provider_place_id.is_(None), Place.last_enriched_at.is_(None)),
        )
        .order_by(Place.concurrence.desc(), Place.rating.desc(), Place.id)
        .limit(limit)
    )
    return list(db.execute(stmt).scalars())


def stream_identities(db: Session) -> Iterator[tuple[int, tuple[str, str, float, float]]]:
    """Yield (id, identity) oldest first; ties broken by id."""
    stmt = (
        select(Place.id, Place.name, Place.category, Place.longitude, Place.latitude)
        .order_by(Place.created_at.asc(), Place.id.asc())
        .execution_options(yield_per=STREAM_CHUNK)
    )
    for row in db.execute(stmt):
        yield row.id, (row.name, row.category, row.longitude, row.latitude)


def iter_image_references(db: Session) -> Iterator[tuple[int, list[str]]]:
    stmt = (
        select(Place.id, Place.official_images)
        .order_by(Place.id)
        .execution_options(yield_per=STREAM_CHUNK)
    )
    for row in db.execute(stmt):
        yield row.id, list(row.official_images or [])


def city_breakdown(db: Session, limit: int = 20) -> dict[str, int]:
    stmt = (
        select(Place.city, func.count(Place.id).label("count"))
        .where(Place.city.is_not(None), Place.city != "")
        .group_by(Place.city)
        .order_by(func.count(Place.id).desc(), Place.city)
        .limit(limit)
    )
    return {city: count for city, count in db.execute(stmt)}


def rebuild_coordinates_index(db: Session) -> None:
    """Drop and recreate the geospatial lookup index."""
    index = next(ix for ix in Place.__table__.indexes if ix.name == COORDINATES_INDEX)
    bind = db.get_bind()
    index.drop(bind, checkfirst=True)
    index.create(bind, checkfirst=True)


def collect_statistics(db: Session) -> CleanupStatistics:
    total = db.execute(select(func.count(Place.id))).scalar_one()

    # JSON emptiness is not portable across dialects, count while streaming
    with_images = 0
    stmt = select(Place.official_images).execution_options(yield_per=STREAM_CHUNK)
    for images in db.execute(stmt).scalars():
        if images:
            with_images += 1

    by_category = db.execute(
        select(Place.category, func.count(Place.id))
        .group_by(Place.category)
        .order_by(func.count(Place.id).desc(), Place.category)
    ).all()
    by_source: Counter[str] = Counter()
    for source, count in db.execute(select(Place.source, func.count(Place.id)).group_by(Place.source)):
        key = source.value if isinstance(source, PlaceSource) else str(source)
        by_source[key] += count

    percentage = (with_images / total * 100) if total else 0.0
    return CleanupStatistics(
        total_places=total,
        places_with_images=with_images,
        percentage_with_images=f"{percentage:.2f}%",
        places_by_category=[{"category": c, "count": n} for c, n in by_category],
        places_by_source=[{"source": s, "count": n} for s, n in by_source.most_common()],
    )
