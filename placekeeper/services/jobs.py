"""Job registry: each job takes a JobContext and returns a summary model."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Sequence

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from placekeeper.core.context import JobContext
from placekeeper.core.retry import RateLimiter
from placekeeper.models.job_run import JobRun
from placekeeper.schemas.jobs import DiscoverySummary
from placekeeper.services.discovery import (
    DiscoveryProvider,
    DiscoveryScanner,
    GoogleNearbyProvider,
    select_categories,
    select_cells,
)
from placekeeper.services.enrichment import EnrichmentWorker
from placekeeper.services.geography import GeographyResolver
from placekeeper.services.ingest import IngestGate
from placekeeper.services.maintenance import MaintenanceSweeper
from placekeeper.services.overpass_client import OverpassProvider
from placekeeper.services.places_client import PlacesClient

logger = logging.getLogger(__name__)

PROVIDERS = ("google", "osm")


def build_provider(ctx: JobContext, name: str) -> DiscoveryProvider:
    settings = ctx.settings
    if name == "google":
        return GoogleNearbyProvider(ctx.places, max_pages=settings.discovery_max_pages)
    if name == "osm":
        return OverpassProvider(
            ctx.http,
            settings.overpass_url,
            limiter=RateLimiter(settings.discovery_request_delay, sleep=ctx.sleep),
        )
    raise ValueError(f"unknown discovery provider {name!r} (choose from {', '.join(PROVIDERS)})")


def run_discovery(
    ctx: JobContext,
    cities: Sequence[str] | None = None,
    categories: Sequence[str] | None = None,
    provider: str | None = None,
) -> DiscoverySummary:
    settings = ctx.settings
    cells = select_cells(cities or settings.discovery_cities)
    wanted = select_categories(categories or settings.discovery_categories)
    scanner = DiscoveryScanner(
        build_provider(ctx, provider or settings.discovery_provider),
        sleep=ctx.sleep,
        should_stop=ctx.should_stop,
        quota_retry_delay=settings.quota_retry_delay,
        quota_max_attempts=settings.quota_max_attempts,
        network_retry_delay=settings.network_retry_delay,
        page_token_delay=settings.discovery_page_token_delay,
    )
    gate = IngestGate(ctx.session_factory, ctx.assets)

    total = DiscoverySummary()
    for cell in cells:
        if ctx.should_stop():
            break
        logger.info("scanning %s (%d categories)", cell.name, len(wanted))
        part = DiscoverySummary()
        gate.ingest_many(scanner.scan([cell], wanted, part), part)
        for counter in ("found", "added", "skipped", "failed", "requests", "request_errors"):
            setattr(total, counter, getattr(total, counter) + getattr(part, counter))
        total.by_cell[cell.name] = {"found": part.found, "added": part.added, "skipped": part.skipped}
        logger.info("%s: %d found, %d added, %d skipped", cell.name, part.found, part.added, part.skipped)
    return total


def run_enrichment(ctx: JobContext) -> BaseModel:
    settings = ctx.settings
    places = PlacesClient(
        settings.google_places_api_key,
        ctx.http,
        base_url=settings.google_places_base_url,
        limiter=RateLimiter(settings.enrichment_request_delay, sleep=ctx.sleep),
    )
    worker = EnrichmentWorker(
        ctx.session_factory,
        places,
        budget=settings.enrichment_daily_budget,
        search_radius=settings.enrichment_search_radius,
        max_quota_retries=settings.enrichment_max_quota_retries,
        quota_retry_delay=settings.quota_retry_delay,
        network_retry_delay=settings.network_retry_delay,
        sleep=ctx.sleep,
        should_stop=ctx.should_stop,
    )
    return worker.run()


def run_geography(ctx: JobContext) -> BaseModel:
    settings = ctx.settings
    resolver = GeographyResolver(
        ctx.session_factory,
        ctx.geocoder,
        batch_size=settings.geocode_batch_size,
        rate_limit_delay=settings.geocode_rate_limit_delay,
        max_attempts=settings.geocode_max_attempts,
        network_retry_delay=settings.network_retry_delay,
        sleep=ctx.sleep,
        should_stop=ctx.should_stop,
    )
    return resolver.run()


def run_cleanup(ctx: JobContext) -> BaseModel:
    settings = ctx.settings
    sweeper = MaintenanceSweeper(
        ctx.session_factory,
        ctx.storage,
        retention_days=settings.asset_retention_days,
        reports_dir=settings.reports_dir,
        should_stop=ctx.should_stop,
    )
    return sweeper.run()


JOBS: dict[str, Callable[..., BaseModel]] = {
    "discovery": run_discovery,
    "enrichment": run_enrichment,
    "geography": run_geography,
    "cleanup": run_cleanup,
}


def _record(ctx: JobContext, run_id: int | None, **values: Any) -> int | None:
    """Insert or update a JobRun row; history is best effort and never fails a job."""
    db = ctx.session_factory()
    try:
        if run_id is None:
            row = JobRun(**values)
            db.add(row)
        else:
            row = db.get(JobRun, run_id)
            if row is None:
                return None
            for key, value in values.items():
                setattr(row, key, value)
        db.commit()
        return row.id
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("could not record job run: %s", exc)
        return run_id
    finally:
        db.close()


def run_job(ctx: JobContext, name: str, **options: Any) -> BaseModel:
    """Run one registered job and keep a JobRun row of the outcome."""
    try:
        job = JOBS[name]
    except KeyError:
        raise ValueError(f"unknown job {name!r}") from None

    run_id = _record(ctx, None, job_name=name, status="running", stats={})
    logger.info("job %s started", name)
    try:
        summary = job(ctx, **options)
    except Exception as exc:
        _record(
            ctx, run_id,
            status="error", message=str(exc), finished_at=datetime.now(timezone.utc),
        )
        logger.exception("job %s failed", name)
        raise

    status = "cancelled" if ctx.should_stop() else "success"
    _record(
        ctx, run_id,
        status=status,
        stats=summary.model_dump(mode="json"),
        finished_at=datetime.now(timezone.utc),
    )
    logger.info("job %s finished (%s)", name, status)
    return summary


def recent_runs(ctx: JobContext, limit: int = 50) -> list[JobRun]:
    db = ctx.session_factory()
    try:
        stmt = select(JobRun).order_by(JobRun.started_at.desc(), JobRun.id.desc()).limit(limit)
        return list(db.execute(stmt).scalars())
    finally:
        db.close()
