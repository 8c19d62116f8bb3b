"""Grid scan of (city centroid, radius) x category against a nearby-search provider."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Iterator, Protocol, Sequence

from pydantic import ValidationError
from tenacity import wait_fixed

from placekeeper.core.errors import ProviderError, ProviderQuotaExceeded
from placekeeper.core.retry import call_with_retry
from placekeeper.models.place import PlaceSource
from placekeeper.schemas.jobs import DiscoverySummary
from placekeeper.schemas.place import PlaceDraft
from placekeeper.services.places_client import PlacesClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchCell:
    name: str
    lat: float
    lng: float
    radius: int


DEFAULT_CELLS: tuple[SearchCell, ...] = (
    SearchCell("Bogotá", 4.7110, -74.0055, 15000),
    SearchCell("Medellín", 6.2442, -75.5812, 15000),
    SearchCell("Cali", 3.4372, -76.5069, 12000),
    SearchCell("Barranquilla", 10.9639, -74.7964, 12000),
    SearchCell("Cartagena", 10.3932, -75.4830, 10000),
    SearchCell("Bucaramanga", 7.1254, -73.1198, 10000),
    SearchCell("Santa Marta", 11.2404, -74.2247, 8000),
    SearchCell("Cúcuta", 7.8854, -72.5078, 10000),
    SearchCell("Pereira", 4.8133, -75.6961, 8000),
    SearchCell("Manizales", 5.0692, -75.5159, 8000),
)

DEFAULT_CATEGORIES: tuple[str, ...] = (
    "restaurant", "cafe", "bar", "hotel", "park",
    "museum", "shopping_mall", "supermarket", "pharmacy", "hospital",
    "gym", "cinema", "library", "bank", "atm",
    "gas_station", "parking", "taxi_stand", "bus_station", "train_station",
)


def select_cells(names: Sequence[str] | None) -> list[SearchCell]:
    if not names:
        return list(DEFAULT_CELLS)
    wanted = {n.strip().lower() for n in names}
    cells = [c for c in DEFAULT_CELLS if c.name.lower() in wanted]
    unknown = wanted - {c.name.lower() for c in cells}
    if unknown:
        raise ValueError(f"unknown cities: {', '.join(sorted(unknown))}")
    return cells


def select_categories(names: Sequence[str] | None) -> list[str]:
    return list(names) if names else list(DEFAULT_CATEGORIES)


@dataclass
class DiscoveryPage:
    drafts: list[PlaceDraft] = field(default_factory=list)
    next_page_token: str | None = None


class DiscoveryProvider(Protocol):
    name: str
    max_pages: int

    def fetch_page(self, cell: SearchCell, category: str, page_token: str | None) -> DiscoveryPage: ...


def draft_from_google(result: dict[str, Any], category: str) -> PlaceDraft | None:
    """Map one nearby-search result onto a draft; None when unusable."""
    try:
        location = result["geometry"]["location"]
        photos = result.get("photos") or []
        return PlaceDraft(
            name=(result.get("name") or "").strip(),
            category=category,
            coordinates=(float(location["lng"]), float(location["lat"])),
            address=result.get("vicinity"),
            rating=min(max(float(result.get("rating") or 0), 0.0), 5.0),
            source=PlaceSource.GOOGLE_PLACES,
            photo_reference=photos[0].get("photo_reference") if photos else None,
            provider_place_id=result.get("place_id"),
        )
    except (KeyError, TypeError, ValueError, ValidationError) as exc:
        logger.warning("dropping malformed result %r: %s", result.get("name"), exc)
        return None


class GoogleNearbyProvider:
    name = "google"

    def __init__(self, client: PlacesClient, max_pages: int = 3) -> None:
        self.client = client
        self.max_pages = max_pages

    def fetch_page(self, cell: SearchCell, category: str, page_token: str | None) -> DiscoveryPage:
        page = self.client.nearby_search(
            cell.lat, cell.lng, cell.radius, place_type=category, page_token=page_token
        )
        drafts = [d for d in (draft_from_google(r, category) for r in page.results) if d is not None]
        return DiscoveryPage(drafts=drafts, next_page_token=page.next_page_token)


class DiscoveryScanner:
    """Yields drafts; never writes to the store."""

    def __init__(
        self,
        provider: DiscoveryProvider,
        *,
        sleep: Callable[[float], object] = time.sleep,
        should_stop: Callable[[], bool] = lambda: False,
        quota_retry_delay: float = 60.0,
        quota_max_attempts: int = 3,
        network_retry_delay: float = 2.0,
        page_token_delay: float = 2.0,
    ) -> None:
        self.provider = provider
        self.sleep = sleep
        self.should_stop = should_stop
        self.quota_retry_delay = quota_retry_delay
        self.quota_max_attempts = quota_max_attempts
        self.network_retry_delay = network_retry_delay
        self.page_token_delay = page_token_delay

    def _count_request(self, summary: DiscoverySummary) -> Callable[[int], None]:
        def _charge(_attempt: int) -> None:
            summary.requests += 1

        return _charge

    def scan(
        self,
        cells: Iterable[SearchCell],
        categories: Sequence[str],
        summary: DiscoverySummary | None = None,
    ) -> Iterator[PlaceDraft]:
        summary = summary if summary is not None else DiscoverySummary()
        for cell in cells:
            for category in categories:
                if self.should_stop():
                    logger.info("stop requested, discovery halted before %s/%s", cell.name, category)
                    return
                yield from self._scan_pair(cell, category, summary)

    def _scan_pair(self, cell: SearchCell, category: str, summary: DiscoverySummary) -> Iterator[PlaceDraft]:
        label = f"{self.provider.name} {cell.name}/{category}"
        token: str | None = None
        pages = 0
        found = 0
        while True:
            pages += 1
            try:
                page = call_with_retry(
                    lambda: self.provider.fetch_page(cell, category, token),
                    max_attempts=self.quota_max_attempts,
                    wait=wait_fixed(self.quota_retry_delay),
                    sleep=self.sleep,
                    network_wait=wait_fixed(self.network_retry_delay),
                    before_attempt=self._count_request(summary),
                    label=label,
                )
            except ProviderQuotaExceeded:
                summary.request_errors += 1
                logger.error("%s: quota still exceeded after %d attempts, skipping", label, self.quota_max_attempts)
                break
            except ProviderError as exc:
                summary.request_errors += 1
                logger.error("%s: %s, skipping", label, exc)
                break

            found += len(page.drafts)
            for draft in page.drafts:
                summary.found += 1
                yield draft

            if not page.next_page_token or pages >= self.provider.max_pages or self.should_stop():
                break
            # next_page_token only becomes valid after a short delay
            self.sleep(self.page_token_delay)
            token = page.next_page_token

        if found:
            logger.info("%s: %d found", label, found)
        else:
            logger.debug("%s: no results", label)
