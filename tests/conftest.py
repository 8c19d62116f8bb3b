from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from typing import Callable

import httpx
import pytest

from placekeeper.core.config import Settings
from placekeeper.core.context import JobContext
from placekeeper.db.init_db import init_db
from placekeeper.db.session import make_engine, make_session_factory
from placekeeper.models.place import Place, PlaceSource
from placekeeper.services.asset_pipeline import AssetPipeline
from placekeeper.services.geocoding_client import GeocodingClient
from placekeeper.services.places_client import PlacesClient
from tests.helpers import SleepRecorder, json_response, mock_http
from utils.storage_manager import LocalAssetStorage


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url="sqlite://",
        google_places_api_key="test-key",
        asset_root=str(tmp_path / "assets"),
        reports_dir=str(tmp_path / "reports"),
        discovery_request_delay=0,
        enrichment_request_delay=0,
        geocode_request_delay=0,
        quota_retry_delay=0,
        network_retry_delay=0,
        discovery_page_token_delay=0,
        geocode_rate_limit_delay=0,
    )


@pytest.fixture
def engine():
    engine = make_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_place(session_factory):
    """Insert a Place directly; ``age`` shifts created_at into the past."""

    def _make(
        name: str = "Cafe X",
        category: str = "cafe",
        coordinates: tuple[float, float] = (-74.5, 10.9),
        age: timedelta = timedelta(0),
        **fields,
    ) -> int:
        session = session_factory()
        try:
            place = Place(
                name=name,
                category=category,
                longitude=coordinates[0],
                latitude=coordinates[1],
                source=fields.pop("source", PlaceSource.GOOGLE_PLACES),
                created_at=datetime.now(timezone.utc) - age,
                **fields,
            )
            session.add(place)
            session.commit()
            return place.id
        finally:
            session.close()

    return _make


@pytest.fixture
def build_test_context(settings, engine, session_factory, tmp_path):
    """JobContext over the in-memory store with a caller-supplied HTTP handler."""
    contexts: list[JobContext] = []

    def _build(handler: Callable[[httpx.Request], httpx.Response] | None = None) -> JobContext:
        http = mock_http(handler or (lambda request: json_response({"status": "ZERO_RESULTS", "results": []})))
        places = PlacesClient(settings.google_places_api_key, http, base_url=settings.google_places_base_url)
        storage = LocalAssetStorage(settings.asset_root)
        ctx = JobContext(
            settings=settings,
            engine=engine,
            session_factory=session_factory,
            http=http,
            places=places,
            geocoder=GeocodingClient(http, settings.geocode_base_url),
            storage=storage,
            assets=AssetPipeline(places, storage),
            stop_event=threading.Event(),
        )
        contexts.append(ctx)
        return ctx

    yield _build
    for ctx in contexts:
        ctx.stop_event.set()
        ctx.http.close()
