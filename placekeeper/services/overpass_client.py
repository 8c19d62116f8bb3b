"""OpenStreetMap Overpass discovery provider."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from placekeeper.core.errors import NetworkFailure, ProviderInvalidRequest
from placekeeper.core.retry import RateLimiter
from placekeeper.models.place import PlaceSource
from placekeeper.schemas.place import PlaceDraft
from placekeeper.services.discovery import DiscoveryPage, SearchCell
from placekeeper.services.places_client import raise_for_transport

logger = logging.getLogger(__name__)

OSM_TAGS: dict[str, str] = {
    "restaurant": "amenity=restaurant",
    "cafe": "amenity=cafe",
    "bar": "amenity=bar",
    "hotel": "tourism=hotel",
    "park": "leisure=park",
    "museum": "tourism=museum",
    "shopping_mall": "shop=mall",
    "supermarket": "shop=supermarket",
    "pharmacy": "amenity=pharmacy",
    "hospital": "amenity=hospital",
    "gym": "leisure=fitness_centre",
    "cinema": "amenity=cinema",
    "library": "amenity=library",
    "bank": "amenity=bank",
    "atm": "amenity=atm",
    "gas_station": "amenity=fuel",
    "parking": "amenity=parking",
    "taxi_stand": "amenity=taxi",
    "bus_station": "amenity=bus_station",
    "train_station": "railway=station",
}


def build_query(cell: SearchCell, tag: str, timeout: int = 25) -> str:
    key, _, value = tag.partition("=")
    selector = f'["{key}"="{value}"]' if value and value != "*" else f'["{key}"]'
    around = f"(around:{cell.radius},{cell.lat},{cell.lng})"
    return (
        f"[out:json][timeout:{timeout}];\n"
        "(\n"
        f"  node{selector}{around};\n"
        f"  way{selector}{around};\n"
        f"  relation{selector}{around};\n"
        ");\n"
        "out center;"
    )


def draft_from_element(element: dict[str, Any], category: str) -> PlaceDraft | None:
    tags = element.get("tags") or {}
    name = tags.get("name") or tags.get("name:es")
    if not name:
        return None
    center = element.get("center") or {}
    lat = element.get("lat", center.get("lat"))
    lon = element.get("lon", center.get("lon"))
    if lat is None or lon is None:
        return None
    try:
        return PlaceDraft(
            name=name.strip(),
            category=category,
            coordinates=(float(lon), float(lat)),
            address=tags.get("addr:full") or tags.get("addr:street") or None,
            description=tags.get("description") or tags.get("description:es") or None,
            source=PlaceSource.OPENSTREETMAP,
        )
    except (TypeError, ValueError, ValidationError) as exc:
        logger.warning("dropping OSM element %s: %s", element.get("id"), exc)
        return None


class OverpassProvider:
    """Single-page provider; Overpass returns everything in one response."""

    name = "osm"
    max_pages = 1

    def __init__(
        self,
        http: httpx.Client,
        url: str = "https://overpass-api.de/api/interpreter",
        limiter: RateLimiter | None = None,
    ) -> None:
        self.http = http
        self.url = url
        self.limiter = limiter

    def fetch_page(self, cell: SearchCell, category: str, page_token: str | None) -> DiscoveryPage:
        tag = OSM_TAGS.get(category)
        if tag is None:
            raise ProviderInvalidRequest(f"no OSM tag mapping for category {category!r}")
        if self.limiter is not None:
            self.limiter.wait()
        try:
            response = self.http.post(self.url, data={"data": build_query(cell, tag)})
        except httpx.TransportError as exc:
            raise NetworkFailure(str(exc)) from exc
        raise_for_transport(response)
        try:
            elements = response.json().get("elements") or []
        except ValueError as exc:
            raise ProviderInvalidRequest("non-JSON Overpass response") from exc
        drafts = [d for d in (draft_from_element(e, category) for e in elements) if d is not None]
        return DiscoveryPage(drafts=drafts)
