"""Google Places web service client (nearby search, details, photo)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from placekeeper.core.errors import (
    NetworkFailure,
    ProviderInvalidRequest,
    ProviderQuotaExceeded,
)
from placekeeper.core.retry import RateLimiter

logger = logging.getLogger(__name__)

DETAIL_FIELDS = (
    "name,rating,user_ratings_total,formatted_phone_number,website,"
    "opening_hours,photos,price_level,formatted_address"
)


@dataclass
class NearbyPage:
    results: list[dict[str, Any]] = field(default_factory=list)
    next_page_token: str | None = None


def raise_for_transport(response: httpx.Response) -> None:
    """Map HTTP-level failures onto the pipeline error taxonomy."""
    if response.status_code == 429:
        raise ProviderQuotaExceeded("HTTP 429", status="429")
    if response.status_code >= 500:
        raise NetworkFailure(f"HTTP {response.status_code}", status=str(response.status_code))
    if response.status_code >= 400:
        raise ProviderInvalidRequest(f"HTTP {response.status_code}", status=str(response.status_code))


class PlacesClient:
    """Thin blocking wrapper; each method issues exactly one HTTP request."""

    def __init__(
        self,
        api_key: str | None,
        http: httpx.Client,
        base_url: str = "https://maps.googleapis.com/maps/api/place",
        limiter: RateLimiter | None = None,
    ) -> None:
        self.api_key = api_key
        self.http = http
        self.base_url = base_url.rstrip("/")
        self.limiter = limiter

    def _get(self, path: str, params: dict[str, Any]) -> httpx.Response:
        if self.limiter is not None:
            self.limiter.wait()
        try:
            response = self.http.get(f"{self.base_url}/{path}", params={**params, "key": self.api_key})
        except httpx.TransportError as exc:
            raise NetworkFailure(str(exc)) from exc
        raise_for_transport(response)
        return response

    def _json(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        response = self._get(path, params)
        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderInvalidRequest(f"non-JSON response from {path}") from exc
        status = data.get("status", "OK")
        if status == "OVER_QUERY_LIMIT":
            raise ProviderQuotaExceeded(data.get("error_message") or status, status=status)
        if status not in ("OK", "ZERO_RESULTS"):
            raise ProviderInvalidRequest(data.get("error_message") or status, status=status)
        return data

    def nearby_search(
        self,
        lat: float,
        lng: float,
        radius: int,
        *,
        place_type: str | None = None,
        keyword: str | None = None,
        page_token: str | None = None,
    ) -> NearbyPage:
        """One page of nearby-search results. ZERO_RESULTS yields an empty page."""
        if page_token:
            params: dict[str, Any] = {"pagetoken": page_token}
        else:
            params = {"location": f"{lat},{lng}", "radius": radius}
            if place_type:
                params["type"] = place_type
            if keyword:
                params["keyword"] = keyword
        data = self._json("nearbysearch/json", params)
        if data.get("status") == "ZERO_RESULTS":
            return NearbyPage()
        return NearbyPage(
            results=list(data.get("results") or []),
            next_page_token=data.get("next_page_token"),
        )

    def details(self, place_id: str, fields: str = DETAIL_FIELDS) -> dict[str, Any]:
        data = self._json("details/json", {"place_id": place_id, "fields": fields})
        return data.get("result") or {}

    def photo(self, photo_reference: str, max_width: int = 800) -> tuple[bytes, str]:
        """Raw image bytes and content type."""
        response = self._get("photo", {"photoreference": photo_reference, "maxwidth": max_width})
        content_type = response.headers.get("content-type", "image/jpeg").split(";")[0]
        return response.content, content_type
