"""Endpoints for listing and triggering pipeline jobs."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, status

from placekeeper.core.context import JobContext
from placekeeper.schemas.jobs import JobInfo, JobRunOut, JobTriggerResponse
from placekeeper.services.jobs import JOBS, recent_runs
from placekeeper.services.scheduler import Scheduler

router = APIRouter(prefix="/jobs", tags=["jobs"])


def get_context(request: Request) -> JobContext:
    return request.app.state.context


def get_scheduler(request: Request) -> Scheduler:
    return request.app.state.scheduler


@router.get("", response_model=list[JobInfo])
def list_jobs(scheduler: Scheduler = Depends(get_scheduler)) -> list[JobInfo]:
    """Registered jobs with their calendar and whether they are running now."""
    now = datetime.now(timezone.utc)
    jobs = []
    for name in JOBS:
        trigger = scheduler.schedule.get(name)
        jobs.append(
            JobInfo(
                name=name,
                schedule=trigger.describe() if trigger else None,
                next_run=trigger.next_fire(now) if trigger else None,
                running=scheduler.is_running(name),
            )
        )
    return jobs


@router.get("/runs", response_model=list[JobRunOut])
def list_runs(limit: int = 50, ctx: JobContext = Depends(get_context)) -> list[JobRunOut]:
    """Most recent job executions first."""
    limit = min(max(limit, 1), 500)
    return [JobRunOut.model_validate(run) for run in recent_runs(ctx, limit=limit)]


@router.post(
    "/{name}/run",
    response_model=JobTriggerResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
def trigger_job(name: str, scheduler: Scheduler = Depends(get_scheduler)) -> JobTriggerResponse:
    """Start a job in the background; 409 when it is already running."""
    if name not in JOBS:
        raise HTTPException(status_code=404, detail=f"unknown job {name!r}")
    if not scheduler.trigger(name):
        raise HTTPException(status_code=409, detail=f"job {name!r} is already running")
    return JobTriggerResponse(job_name=name, started=True)
