"""Provider metadata enrichment for verified places, bounded by a daily call budget."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable

from sqlalchemy.orm import Session
from tenacity import wait_fixed

from placekeeper.core.errors import (
    BudgetExhausted,
    PersistenceFailure,
    ProviderError,
    ProviderQuotaExceeded,
)
from placekeeper.core.retry import call_with_retry
from placekeeper.models.place import Place
from placekeeper.schemas.jobs import EnrichmentSummary
from placekeeper.services import store
from placekeeper.services.places_client import PlacesClient

logger = logging.getLogger(__name__)

CALLS_PER_PLACE = 2  # identity search + details
MAX_PHOTO_DESCRIPTORS = 5


def enrichment_values(details: dict[str, Any], provider_place_id: str, current_rating: float, now: datetime) -> dict[str, Any]:
    """Translate a details payload into Place column values."""
    rating = details.get("rating")
    if rating is None:
        rating = current_rating
    photos = details.get("photos") or []
    return {
        "rating": min(max(float(rating or 0), 0.0), 5.0),
        "total_ratings": int(details.get("user_ratings_total") or 0),
        "phone": details.get("formatted_phone_number") or None,
        "website": details.get("website") or None,
        "opening_hours": list((details.get("opening_hours") or {}).get("weekday_text") or []),
        "price_level": details.get("price_level"),
        "provider_place_id": provider_place_id,
        "photo_descriptors": [
            {
                "reference": photo.get("photo_reference"),
                "width": photo.get("width"),
                "height": photo.get("height"),
            }
            for photo in photos[:MAX_PHOTO_DESCRIPTORS]
        ],
        "last_enriched_at": now,
    }


class EnrichmentWorker:
    """Resumable: anything not enriched this run stays a candidate for the next one."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        places: PlacesClient,
        *,
        budget: int = 900,
        search_radius: int = 100,
        max_quota_retries: int = 5,
        quota_retry_delay: float = 60.0,
        network_retry_delay: float = 2.0,
        sleep: Callable[[float], object] = time.sleep,
        should_stop: Callable[[], bool] = lambda: False,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.session_factory = session_factory
        self.places = places
        self.budget = budget
        self.search_radius = search_radius
        self.max_quota_retries = max_quota_retries
        self.quota_retry_delay = quota_retry_delay
        self.network_retry_delay = network_retry_delay
        self.sleep = sleep
        self.should_stop = should_stop
        self.clock = clock
        self.calls_used = 0

    def _charge(self, _attempt: int) -> None:
        if self.calls_used >= self.budget:
            raise BudgetExhausted(f"{self.calls_used}/{self.budget} calls used")
        self.calls_used += 1

    def _call(self, fn, label: str):
        return call_with_retry(
            fn,
            max_attempts=self.max_quota_retries + 1,
            wait=wait_fixed(self.quota_retry_delay),
            sleep=self.sleep,
            network_wait=wait_fixed(self.network_retry_delay),
            before_attempt=self._charge,
            label=label,
        )

    def enrich_place(self, place: Place) -> dict[str, Any] | None:
        """Resolve the provider id and fetch details; None when the provider has no match."""
        page = self._call(
            lambda: self.places.nearby_search(
                place.latitude, place.longitude, self.search_radius, keyword=place.name
            ),
            label=f"identity search {place.name!r}",
        )
        if not page.results or not page.results[0].get("place_id"):
            return None
        provider_place_id = page.results[0]["place_id"]
        details = self._call(
            lambda: self.places.details(provider_place_id),
            label=f"details {provider_place_id}",
        )
        return enrichment_values(details, provider_place_id, place.rating, self.clock())

    def run(self) -> EnrichmentSummary:
        self.calls_used = 0
        summary = EnrichmentSummary(budget=self.budget)
        db = self.session_factory()
        try:
            candidate_ids = store.enrichment_candidates(db, limit=max(self.budget // CALLS_PER_PLACE, 0))
            summary.candidates = len(candidate_ids)
            logger.info("places to enrich: %d (budget %d calls)", len(candidate_ids), self.budget)

            for place_id in candidate_ids:
                if self.should_stop():
                    summary.stopped_reason = "cancelled"
                    break
                if self.budget - self.calls_used < CALLS_PER_PLACE:
                    summary.stopped_reason = "budget"
                    logger.info("daily call budget reached, remaining places wait for the next run")
                    break

                place = db.get(Place, place_id)
                if place is None:
                    continue

                try:
                    values = self.enrich_place(place)
                except BudgetExhausted:
                    summary.stopped_reason = "budget"
                    logger.info("daily call budget reached mid-place, %s left for the next run", place.name)
                    break
                except ProviderQuotaExceeded:
                    summary.stopped_reason = "rate_limited"
                    logger.error("provider still rate limiting after %d retries, stopping run", self.max_quota_retries)
                    break
                except ProviderError as exc:
                    summary.skipped += 1
                    logger.warning("skip %s: %s", place.name, exc)
                    continue

                if values is None:
                    summary.skipped += 1
                    logger.info("not found at provider: %s", place.name)
                    continue

                try:
                    store.update_place(db, place.id, values)
                except PersistenceFailure as exc:
                    summary.skipped += 1
                    logger.error("%s", exc)
                    continue
                summary.enriched += 1
                logger.info(
                    "enriched %s: rating %.1f/5 (%d ratings)",
                    place.name, values["rating"], values["total_ratings"],
                )
        finally:
            db.close()
            summary.api_calls = self.calls_used
        return summary
