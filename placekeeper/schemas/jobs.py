"""Summaries returned by each job."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class IngestSummary(BaseModel):
    added: int = 0
    skipped: int = 0
    failed: int = 0


class DiscoverySummary(IngestSummary):
    found: int = 0
    requests: int = 0
    request_errors: int = 0
    by_cell: dict[str, dict[str, int]] = Field(default_factory=dict)


class EnrichmentSummary(BaseModel):
    candidates: int = 0
    enriched: int = 0
    skipped: int = 0
    api_calls: int = 0
    budget: int = 0
    stopped_reason: Optional[str] = None


class GeographySummary(BaseModel):
    targeted: int = 0
    updated_by_dictionary: int = 0
    updated_by_geocoder: int = 0
    failed: int = 0
    pending: int = 0
    by_city: dict[str, int] = Field(default_factory=dict)


class CleanupStatistics(BaseModel):
    total_places: int
    places_with_images: int
    percentage_with_images: str
    places_by_category: list[dict[str, Any]]
    places_by_source: list[dict[str, Any]]


class CleanupReport(BaseModel):
    timestamp: datetime
    duplicates_deleted: Optional[int] = None
    images_deleted: Optional[int] = None
    missing_images: Optional[int] = None
    indexes_rebuilt: bool = False
    statistics: Optional[CleanupStatistics] = None
    errors: dict[str, str] = Field(default_factory=dict)
    report_path: Optional[str] = None


class JobRunOut(BaseModel):
    id: int
    job_name: str
    status: str
    message: Optional[str] = None
    stats: dict[str, Any] = Field(default_factory=dict)
    started_at: datetime
    finished_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class JobTriggerResponse(BaseModel):
    job_name: str
    started: bool


class JobInfo(BaseModel):
    name: str
    schedule: Optional[str] = None
    next_run: Optional[datetime] = None
    running: bool = False
