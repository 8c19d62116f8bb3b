"""Fill in city / department / sector for places that lack a city."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy.orm import Session
from tenacity import wait_fixed

from placekeeper.core.errors import PersistenceFailure, ProviderError, ProviderQuotaExceeded
from placekeeper.core.retry import call_with_retry
from placekeeper.models.place import Place
from placekeeper.schemas.jobs import GeographySummary
from placekeeper.services import store
from placekeeper.services.geocoding_client import GeocodingClient
from placekeeper.services.geography_dictionary import classify_address

logger = logging.getLogger(__name__)


class GeographyResolver:
    """Dictionary match on the address first, reverse geocoding second.

    The dictionary pass covers every place missing a city. The geocoder sees at
    most ``batch_size`` of the rest per run, least recently tried first, so
    places it cannot resolve do not starve the others.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        geocoder: GeocodingClient | None,
        *,
        batch_size: int = 100,
        rate_limit_delay: float = 5.0,
        max_attempts: int = 5,
        network_retry_delay: float = 2.0,
        sleep: Callable[[float], object] = time.sleep,
        should_stop: Callable[[], bool] = lambda: False,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.session_factory = session_factory
        self.geocoder = geocoder
        self.batch_size = batch_size
        self.rate_limit_delay = rate_limit_delay
        self.max_attempts = max_attempts
        self.network_retry_delay = network_retry_delay
        self.sleep = sleep
        self.should_stop = should_stop
        self.clock = clock

    def _apply(self, db: Session, place: Place, city: str, department: str | None, sector: str | None) -> bool:
        values = {"city": city}
        if department:
            values["department"] = department
        if sector:
            values["sector"] = sector
        try:
            store.update_place(db, place.id, values)
        except PersistenceFailure as exc:
            logger.error("%s", exc)
            return False
        return True

    def resolve_by_dictionary(self, db: Session, summary: GeographySummary) -> list[int]:
        """Returns ids the dictionary could not resolve."""
        unresolved: list[int] = []
        for place_id in store.places_missing_city(db):
            if self.should_stop():
                break
            place = db.get(Place, place_id)
            if place is None:
                continue
            summary.targeted += 1
            location = classify_address(place.address)
            if location is None:
                unresolved.append(place_id)
                continue
            if self._apply(db, place, location.city, location.department, location.sector):
                summary.updated_by_dictionary += 1
                logger.info("%s -> %s, %s (address)", place.name, location.city, location.department)
            else:
                summary.failed += 1
        return unresolved

    def resolve_by_geocoder(self, db: Session, place_ids: list[int], summary: GeographySummary) -> None:
        for place_id in place_ids[: self.batch_size]:
            if self.should_stop():
                break
            place = db.get(Place, place_id)
            if place is None:
                continue
            try:
                store.update_place(db, place_id, {"geocode_attempted_at": self.clock()})
            except PersistenceFailure as exc:
                logger.error("%s", exc)
            try:
                location = call_with_retry(
                    lambda: self.geocoder.reverse(place.latitude, place.longitude),
                    max_attempts=self.max_attempts,
                    wait=wait_fixed(self.rate_limit_delay),
                    sleep=self.sleep,
                    network_wait=wait_fixed(self.network_retry_delay),
                    label=f"reverse geocode {place.name!r}",
                )
            except ProviderQuotaExceeded:
                summary.failed += 1
                logger.error("geocoder still rate limiting, stopping fallback")
                break
            except ProviderError as exc:
                summary.failed += 1
                logger.warning("reverse geocode failed for %s: %s", place.name, exc)
                continue

            if location is None or not location.city:
                summary.failed += 1
                logger.info("no city for %s at (%s, %s)", place.name, place.latitude, place.longitude)
                continue
            if self._apply(db, place, location.city, location.department, location.sector):
                summary.updated_by_geocoder += 1
                logger.info("%s -> %s, %s (geocoder)", place.name, location.city, location.department)
            else:
                summary.failed += 1

    def run(self) -> GeographySummary:
        summary = GeographySummary()
        db = self.session_factory()
        try:
            unresolved = self.resolve_by_dictionary(db, summary)
            logger.info(
                "dictionary resolved %d of %d, %d left for the geocoder",
                summary.updated_by_dictionary, summary.targeted, len(unresolved),
            )
            if unresolved and self.geocoder is not None and not self.should_stop():
                self.resolve_by_geocoder(db, store.geocode_queue(db, self.batch_size), summary)
            summary.pending = store.count_missing_city(db)
            summary.by_city = store.city_breakdown(db)
        finally:
            db.close()
        return summary
