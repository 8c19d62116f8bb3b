"""Dedup-gated persistence of discovered places."""

from __future__ import annotations

import enum
import hashlib
import logging
from typing import Callable, Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from placekeeper.core.errors import PersistenceFailure
from placekeeper.schemas.jobs import IngestSummary
from placekeeper.schemas.place import PlaceDraft
from placekeeper.services import store
from placekeeper.services.asset_pipeline import AssetPipeline

logger = logging.getLogger(__name__)


class IngestOutcome(str, enum.Enum):
    ADDED = "added"
    SKIPPED = "skipped"
    FAILED = "failed"


def owner_id_for(draft: PlaceDraft) -> str:
    """Provider id when known, otherwise a stable hash of the identity triple."""
    if draft.provider_place_id:
        return draft.provider_place_id
    raw = f"{draft.name}|{draft.category}|{draft.longitude}|{draft.latitude}"
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()[:16]


class IngestGate:
    """Skips drafts whose identity triple already exists, persists the rest."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        assets: AssetPipeline | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.assets = assets

    def ingest(self, draft: PlaceDraft) -> IngestOutcome:
        db = self.session_factory()
        try:
            try:
                existing = store.find_by_identity(db, *draft.identity)
            except SQLAlchemyError as exc:
                db.rollback()
                logger.error("lookup failed for %r: %s", draft.name, exc)
                return IngestOutcome.FAILED
            if existing is not None:
                logger.debug("already exists: %s (%s)", draft.name, draft.category)
                return IngestOutcome.SKIPPED

            images: list[str] = []
            if draft.photo_reference and self.assets is not None:
                path = self.assets.fetch(draft.photo_reference, owner_id_for(draft))
                if path:
                    images.append(path)

            try:
                place = store.insert_place(db, draft, official_images=images)
            except PersistenceFailure as exc:
                logger.error("%s", exc)
                return IngestOutcome.FAILED
            logger.info("saved place %s: %s (%s)", place.id, place.name, place.category)
            return IngestOutcome.ADDED
        finally:
            db.close()

    def ingest_many(self, drafts: Iterable[PlaceDraft], summary: IngestSummary | None = None) -> IngestSummary:
        summary = summary or IngestSummary()
        for draft in drafts:
            outcome = self.ingest(draft)
            if outcome is IngestOutcome.ADDED:
                summary.added += 1
            elif outcome is IngestOutcome.SKIPPED:
                summary.skipped += 1
            else:
                summary.failed += 1
        return summary
