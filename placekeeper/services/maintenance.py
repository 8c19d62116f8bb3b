"""Periodic cleanup: dedup, old asset removal, reference check, index rebuild, statistics report."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable

from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from placekeeper.core.errors import PipelineError
from placekeeper.schemas.jobs import CleanupReport
from placekeeper.services import store
from placekeeper.services.asset_pipeline import AssetStorage

logger = logging.getLogger(__name__)

STEP_ERRORS = (PipelineError, SQLAlchemyError, OSError, BotoCoreError, ClientError)


def find_duplicate_ids(db: Session) -> list[int]:
    """Ids of every place whose identity was already seen earlier in creation order."""
    seen: set[tuple[str, str, float, float]] = set()
    duplicates: list[int] = []
    for place_id, identity in store.stream_identities(db):
        if identity in seen:
            duplicates.append(place_id)
        else:
            seen.add(identity)
    return duplicates


class MaintenanceSweeper:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        storage: AssetStorage | None,
        *,
        retention_days: int = 30,
        reports_dir: str | Path = "logs",
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        should_stop: Callable[[], bool] = lambda: False,
    ) -> None:
        self.session_factory = session_factory
        self.storage = storage
        self.retention_days = retention_days
        self.reports_dir = Path(reports_dir)
        self.clock = clock
        self.should_stop = should_stop

    def remove_duplicates(self) -> int:
        db = self.session_factory()
        try:
            duplicate_ids = find_duplicate_ids(db)
            if not duplicate_ids:
                logger.info("no duplicates found")
                return 0
            removed = store.delete_places(db, duplicate_ids)
            logger.info("removed %d duplicate places", removed)
            return removed
        finally:
            db.close()

    def remove_old_assets(self) -> int:
        """Deletes by age only. Files still referenced by a place go too; see count_missing_assets."""
        if self.storage is None:
            return 0
        cutoff = self.clock() - timedelta(days=self.retention_days)
        removed = 0
        for asset in list(self.storage.iter_assets()):
            if asset.modified_at < cutoff:
                self.storage.delete(asset.name)
                removed += 1
                logger.debug("deleted old image %s", asset.name)
        logger.info("removed %d images older than %d days", removed, self.retention_days)
        return removed

    def count_missing_assets(self) -> int:
        """Image references whose file is no longer stored. Report only, nothing is changed."""
        if self.storage is None:
            return 0
        stored = {asset.name for asset in self.storage.iter_assets()}
        missing = 0
        db = self.session_factory()
        try:
            for place_id, images in store.iter_image_references(db):
                for path in images:
                    if path.rsplit("/", 1)[-1] not in stored:
                        missing += 1
                        logger.debug("place %d references missing image %s", place_id, path)
        finally:
            db.close()
        if missing:
            logger.warning("%d image references have no stored file", missing)
        return missing

    def rebuild_indexes(self) -> bool:
        db = self.session_factory()
        try:
            store.rebuild_coordinates_index(db)
        finally:
            db.close()
        logger.info("coordinates index rebuilt")
        return True

    def write_report(self, report: CleanupReport) -> Path:
        self.reports_dir.mkdir(parents=True, exist_ok=True)
        millis = int(report.timestamp.timestamp() * 1000)
        path = self.reports_dir / f"cleanup-report-{millis}.json"
        report.report_path = str(path)
        path.write_text(report.model_dump_json(indent=2), encoding="utf-8")
        logger.info("report written to %s", path)
        return path

    def run(self) -> CleanupReport:
        report = CleanupReport(timestamp=self.clock())

        steps = (
            ("duplicates", self.remove_duplicates, "duplicates_deleted"),
            ("images", self.remove_old_assets, "images_deleted"),
            ("references", self.count_missing_assets, "missing_images"),
            ("indexes", self.rebuild_indexes, "indexes_rebuilt"),
        )
        for step, action, attr in steps:
            if self.should_stop():
                report.errors[step] = "cancelled"
                continue
            started = time.monotonic()
            try:
                setattr(report, attr, action())
            except STEP_ERRORS as exc:
                report.errors[step] = str(exc)
                logger.error("cleanup step %s failed: %s", step, exc)
                continue
            logger.debug("cleanup step %s took %.2fs", step, time.monotonic() - started)

        db = self.session_factory()
        try:
            report.statistics = store.collect_statistics(db)
        except SQLAlchemyError as exc:
            report.errors["statistics"] = str(exc)
            logger.error("statistics failed: %s", exc)
        finally:
            db.close()

        try:
            self.write_report(report)
        except OSError as exc:
            report.errors["report"] = str(exc)
            logger.error("could not write report: %s", exc)
        return report
