import httpx
import pytest

from placekeeper.models.place import Place, PlaceSource
from placekeeper.schemas.jobs import DiscoverySummary
from placekeeper.services.discovery import (
    DEFAULT_CATEGORIES,
    DEFAULT_CELLS,
    DiscoveryScanner,
    GoogleNearbyProvider,
    SearchCell,
    select_cells,
)
from placekeeper.services.jobs import run_discovery
from placekeeper.services.overpass_client import OverpassProvider, build_query
from placekeeper.services.places_client import PlacesClient
from tests.helpers import json_response, mock_http

CELL = SearchCell("Barranquilla", 10.9639, -74.7964, 12000)


def result(name, lat=10.98, lng=-74.80, place_id=None, photo="photo-ref"):
    return {
        "name": name,
        "place_id": place_id or f"id-{name}",
        "geometry": {"location": {"lat": lat, "lng": lng}},
        "vicinity": f"{name} street, Barranquilla",
        "rating": 4.4,
        "photos": [{"photo_reference": photo}] if photo else [],
    }


def scanner_for(handler, sleeper, max_pages=3, **kwargs):
    client = PlacesClient("key", mock_http(handler))
    options = {"quota_retry_delay": 60, "quota_max_attempts": 3, "page_token_delay": 2}
    options.update(kwargs)
    return DiscoveryScanner(GoogleNearbyProvider(client, max_pages=max_pages), sleep=sleeper, **options)


def test_default_grid():
    assert len(DEFAULT_CELLS) == 10
    assert len(DEFAULT_CATEGORIES) == 20
    assert [c.name for c in select_cells(["cali", "Medellín"])] == ["Medellín", "Cali"]
    with pytest.raises(ValueError):
        select_cells(["Atlantis"])


def test_zero_results_emits_nothing_and_moves_on(sleeper):
    def handler(request):
        if request.url.params["type"] == "museum":
            return json_response({"status": "ZERO_RESULTS", "results": []})
        return json_response({"status": "OK", "results": [result("Cafe X")]})

    summary = DiscoverySummary()
    drafts = list(scanner_for(handler, sleeper).scan([CELL], ["museum", "cafe"], summary))

    assert [d.name for d in drafts] == ["Cafe X"]
    assert summary.request_errors == 0
    assert summary.requests == 2


def test_result_mapping(sleeper):
    handler = lambda request: json_response({"status": "OK", "results": [result("Cafe X", place_id="g-1")]})
    (draft,) = scanner_for(handler, sleeper).scan([CELL], ["cafe"])

    assert draft.category == "cafe"
    assert draft.coordinates == (-74.80, 10.98)
    assert draft.source is PlaceSource.GOOGLE_PLACES
    assert draft.photo_reference == "photo-ref"
    assert draft.provider_place_id == "g-1"
    assert draft.address == "Cafe X street, Barranquilla"


def test_request_carries_location_radius_and_key(sleeper):
    seen = []

    def handler(request):
        seen.append(dict(request.url.params))
        return json_response({"status": "ZERO_RESULTS"})

    list(scanner_for(handler, sleeper).scan([CELL], ["bar"]))
    assert seen == [{"location": "10.9639,-74.7964", "radius": "12000", "type": "bar", "key": "key"}]


def test_over_query_limit_is_retried_after_delay(sleeper):
    replies = iter([
        json_response({"status": "OVER_QUERY_LIMIT"}),
        json_response({"status": "OK", "results": [result("Cafe X")]}),
    ])
    summary = DiscoverySummary()
    drafts = list(scanner_for(lambda request: next(replies), sleeper).scan([CELL], ["cafe"], summary))

    assert len(drafts) == 1
    assert sleeper.calls == [60]
    assert summary.requests == 2


def test_persistent_quota_skips_pair_after_max_attempts(sleeper):
    def handler(request):
        if request.url.params["type"] == "cafe":
            return httpx.Response(429)
        return json_response({"status": "OK", "results": [result("Bar Y")]})

    summary = DiscoverySummary()
    drafts = list(scanner_for(handler, sleeper).scan([CELL], ["cafe", "bar"], summary))

    assert [d.name for d in drafts] == ["Bar Y"]
    assert summary.request_errors == 1
    assert summary.requests == 4
    assert sleeper.calls == [60, 60]


def test_invalid_request_is_skipped(sleeper):
    def handler(request):
        if request.url.params["type"] == "cafe":
            return json_response({"status": "INVALID_REQUEST"})
        return json_response({"status": "OK", "results": [result("Bar Y")]})

    summary = DiscoverySummary()
    drafts = list(scanner_for(handler, sleeper).scan([CELL], ["cafe", "bar"], summary))

    assert [d.name for d in drafts] == ["Bar Y"]
    assert summary.request_errors == 1
    assert sleeper.calls == []


def test_pagination_follows_tokens_up_to_max_pages(sleeper):
    def handler(request):
        token = request.url.params.get("pagetoken")
        page = {None: 1, "t2": 2, "t3": 3}[token]
        return json_response({
            "status": "OK",
            "results": [result(f"Place {page}")],
            "next_page_token": f"t{page + 1}",
        })

    drafts = list(scanner_for(handler, sleeper, max_pages=2).scan([CELL], ["cafe"]))

    assert [d.name for d in drafts] == ["Place 1", "Place 2"]
    assert sleeper.calls == [2]


def test_out_of_range_result_is_dropped(sleeper):
    handler = lambda request: json_response(
        {"status": "OK", "results": [result("Bad", lat=120.0), result("Good")]}
    )
    assert [d.name for d in scanner_for(handler, sleeper).scan([CELL], ["cafe"])] == ["Good"]


def test_stop_request_halts_between_pairs(sleeper):
    calls = []

    def handler(request):
        calls.append(request.url.params["type"])
        return json_response({"status": "ZERO_RESULTS"})

    stop = iter([False, True])
    scanner = scanner_for(handler, sleeper, should_stop=lambda: next(stop, True))
    list(scanner.scan([CELL], ["cafe", "bar", "park"]))
    assert calls == ["cafe"]


def test_overpass_provider_keeps_named_elements(sleeper):
    bodies = []

    def handler(request):
        bodies.append(request.content.decode())
        return json_response({"elements": [
            {"type": "node", "id": 1, "lat": 10.99, "lon": -74.81, "tags": {"name": "Parque Venezuela"}},
            {"type": "way", "id": 2, "center": {"lat": 10.98, "lon": -74.79}, "tags": {"name": "Parque Sagrado"}},
            {"type": "node", "id": 3, "lat": 10.97, "lon": -74.80, "tags": {"leisure": "park"}},
        ]})

    provider = OverpassProvider(mock_http(handler), "https://overpass.test/api/interpreter")
    drafts = list(DiscoveryScanner(provider, sleep=sleeper).scan([CELL], ["park"]))

    assert [d.name for d in drafts] == ["Parque Venezuela", "Parque Sagrado"]
    assert all(d.source is PlaceSource.OPENSTREETMAP for d in drafts)
    assert drafts[1].coordinates == (-74.79, 10.98)
    assert "leisure" in bodies[0]


def test_build_query_uses_cell_radius():
    query = build_query(CELL, "amenity=cafe")
    assert 'node["amenity"="cafe"](around:12000,10.9639,-74.7964);' in query
    assert query.endswith("out center;")


def test_run_discovery_persists_and_breaks_down_by_city(build_test_context, db, settings):
    settings.discovery_max_pages = 1

    def handler(request):
        if request.url.path.endswith("/photo"):
            return httpx.Response(404)
        return json_response({"status": "OK", "results": [result(f"{request.url.params['type']} one")]})

    ctx = build_test_context(handler)
    summary = run_discovery(ctx, cities=["Barranquilla", "Cali"], categories=["cafe", "bar"])

    # cells run in grid order, Cali before Barranquilla; the fake returns the
    # same coordinates everywhere so the second city only sees duplicates
    assert summary.added == 2
    assert summary.by_cell["Cali"] == {"found": 2, "added": 2, "skipped": 0}
    assert summary.by_cell["Barranquilla"] == {"found": 2, "added": 0, "skipped": 2}
    assert db.query(Place).count() == 2
