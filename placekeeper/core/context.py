"""Explicit per-process dependencies handed to every job."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable

import httpx
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from placekeeper.core.config import Settings
from placekeeper.core.retry import RateLimiter
from placekeeper.db.init_db import init_db
from placekeeper.db.session import check_connection, make_engine, make_session_factory
from placekeeper.services.asset_pipeline import AssetPipeline, AssetStorage
from placekeeper.services.geocoding_client import GeocodingClient
from placekeeper.services.places_client import PlacesClient
from utils.s3_storage import S3AssetStorage
from utils.storage_manager import LocalAssetStorage

logger = logging.getLogger(__name__)


@dataclass
class JobContext:
    settings: Settings
    engine: Engine
    session_factory: Callable[[], Session]
    http: httpx.Client
    places: PlacesClient
    geocoder: GeocodingClient
    storage: AssetStorage
    assets: AssetPipeline
    stop_event: threading.Event = field(default_factory=threading.Event)

    def sleep(self, seconds: float) -> None:
        """Interruptible sleep; returns early once a stop is requested."""
        if seconds > 0:
            self.stop_event.wait(seconds)

    def should_stop(self) -> bool:
        return self.stop_event.is_set()

    def close(self) -> None:
        self.http.close()
        self.engine.dispose()


def build_storage(settings: Settings) -> AssetStorage:
    if settings.asset_storage == "s3":
        if not settings.s3_bucket_name:
            raise ValueError("ASSET_STORAGE=s3 requires S3_BUCKET_NAME")
        return S3AssetStorage(
            bucket_name=settings.s3_bucket_name,
            prefix=settings.s3_prefix,
            region=settings.aws_region,
        )
    return LocalAssetStorage(settings.asset_root)


def build_http(settings: Settings, transport: httpx.BaseTransport | None = None) -> httpx.Client:
    """Shared blocking client. Photo URLs redirect to the image host, so redirects are followed."""
    return httpx.Client(timeout=settings.http_timeout, follow_redirects=True, transport=transport)


def build_context(
    settings: Settings,
    *,
    http: httpx.Client | None = None,
    storage: AssetStorage | None = None,
) -> JobContext:
    """Connect to the store, create tables and wire clients.

    Raises StoreUnavailable when the database cannot be reached.
    """
    engine = make_engine(str(settings.database_url))
    check_connection(engine)
    init_db(engine)

    stop_event = threading.Event()

    def interruptible(seconds: float) -> None:
        if seconds > 0:
            stop_event.wait(seconds)

    http = http or build_http(settings)
    places = PlacesClient(
        settings.google_places_api_key,
        http,
        base_url=settings.google_places_base_url,
        limiter=RateLimiter(settings.discovery_request_delay, sleep=interruptible),
    )
    geocoder = GeocodingClient(
        http,
        settings.geocode_base_url,
        user_agent=settings.geocode_user_agent,
        locale=settings.geocode_locale,
        limiter=RateLimiter(settings.geocode_request_delay, sleep=interruptible),
    )
    storage = storage or build_storage(settings)
    assets = AssetPipeline(
        places,
        storage,
        url_prefix=settings.asset_url_prefix,
        watermark_text=settings.watermark_text,
        max_width=settings.asset_max_width,
    )
    if not settings.google_places_api_key:
        logger.warning("GOOGLE_PLACES_API_KEY is not set; Google requests will be rejected")

    return JobContext(
        settings=settings,
        engine=engine,
        session_factory=make_session_factory(engine),
        http=http,
        places=places,
        geocoder=geocoder,
        storage=storage,
        assets=assets,
        stop_event=stop_event,
    )
