"""Expose schemas for easier import."""

from placekeeper.schemas.place import PlaceDraft, PlaceOut  # noqa: F401
from placekeeper.schemas.jobs import (  # noqa: F401
    CleanupReport,
    CleanupStatistics,
    DiscoverySummary,
    EnrichmentSummary,
    GeographySummary,
    IngestSummary,
    JobInfo,
    JobRunOut,
    JobTriggerResponse,
)
