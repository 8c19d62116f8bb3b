"""Nominatim-compatible reverse geocoding."""

from __future__ import annotations

import logging
from typing import Any, NamedTuple

import httpx

from placekeeper.core.errors import NetworkFailure, ProviderInvalidRequest
from placekeeper.core.retry import RateLimiter
from placekeeper.services.geography_dictionary import normalize_department
from placekeeper.services.places_client import raise_for_transport

logger = logging.getLogger(__name__)

CITY_KEYS = ("city", "town", "village", "municipality")
SECTOR_KEYS = ("suburb", "neighbourhood")


class ReverseLocation(NamedTuple):
    city: str | None
    department: str | None
    sector: str | None


def location_from_address(address: dict[str, Any]) -> ReverseLocation:
    city = next((address[k] for k in CITY_KEYS if address.get(k)), None)
    sector = next((address[k] for k in SECTOR_KEYS if address.get(k)), None)
    return ReverseLocation(
        city=city,
        department=normalize_department(address.get("state")),
        sector=sector,
    )


class GeocodingClient:
    def __init__(
        self,
        http: httpx.Client,
        base_url: str = "https://nominatim.openstreetmap.org/reverse",
        *,
        user_agent: str = "Placekeeper/1.0",
        locale: str = "es",
        limiter: RateLimiter | None = None,
    ) -> None:
        self.http = http
        self.base_url = base_url
        self.user_agent = user_agent
        self.locale = locale
        self.limiter = limiter

    def reverse(self, lat: float, lon: float) -> ReverseLocation | None:
        """One reverse lookup; None when the service has no address for the point."""
        if self.limiter is not None:
            self.limiter.wait()
        params = {
            "lat": lat,
            "lon": lon,
            "format": "json",
            "addressdetails": 1,
            "accept-language": self.locale,
        }
        try:
            response = self.http.get(self.base_url, params=params, headers={"User-Agent": self.user_agent})
        except httpx.TransportError as exc:
            raise NetworkFailure(str(exc)) from exc
        raise_for_transport(response)
        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderInvalidRequest("non-JSON geocoder response") from exc
        if not isinstance(data, dict) or data.get("error") or not data.get("address"):
            return None
        return location_from_address(data["address"])
