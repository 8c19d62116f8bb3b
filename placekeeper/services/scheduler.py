"""Calendar scheduling of the pipeline jobs with per-job overlap protection."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo

from placekeeper.core.context import JobContext
from placekeeper.services.jobs import JOBS, run_job

logger = logging.getLogger(__name__)

MAX_IDLE_SECONDS = 60.0
SUNDAY = 6


@dataclass(frozen=True)
class CalendarTrigger:
    hour: int
    minute: int = 0
    weekday: Optional[int] = None  # Monday=0 .. Sunday=6, None = every day
    tz: ZoneInfo = ZoneInfo("America/Bogota")

    def next_fire(self, after: datetime) -> datetime:
        """First matching wall-clock time strictly after ``after``."""
        local = after.astimezone(self.tz)
        for offset in range(8):
            day: date = local.date() + timedelta(days=offset)
            if self.weekday is not None and day.weekday() != self.weekday:
                continue
            candidate = datetime.combine(day, time(self.hour, self.minute), tzinfo=self.tz)
            if candidate > local:
                return candidate
        raise ValueError(f"no fire time found for {self}")

    def describe(self) -> str:
        days = "daily" if self.weekday is None else ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")[self.weekday]
        return f"{days} {self.hour:02d}:{self.minute:02d} {self.tz.key}"


def default_schedule(tz_name: str = "America/Bogota") -> dict[str, CalendarTrigger]:
    tz = ZoneInfo(tz_name)
    return {
        "discovery": CalendarTrigger(2, 0, tz=tz),
        "cleanup": CalendarTrigger(3, 0, weekday=SUNDAY, tz=tz),
        "enrichment": CalendarTrigger(4, 0, tz=tz),
        "geography": CalendarTrigger(5, 0, tz=tz),
    }


class Scheduler:
    """Fires jobs on their triggers; a job already running is never started twice."""

    def __init__(
        self,
        ctx: JobContext,
        schedule: dict[str, CalendarTrigger] | None = None,
        runner: Callable[..., Any] = run_job,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.ctx = ctx
        self.schedule = schedule if schedule is not None else default_schedule(ctx.settings.scheduler_timezone)
        self.runner = runner
        self.clock = clock
        self._locks = {name: threading.Lock() for name in JOBS}
        self._threads: list[threading.Thread] = []

    def is_running(self, name: str) -> bool:
        return self._locks[name].locked()

    def _execute(self, name: str, options: dict[str, Any]) -> None:
        lock = self._locks[name]
        try:
            self.runner(self.ctx, name, **options)
        except Exception as exc:  # noqa: BLE001 - thread boundary, run_job recorded the failure
            logger.error("job %s ended with an error: %s", name, exc)
        finally:
            lock.release()

    def trigger(self, name: str, **options: Any) -> bool:
        """Start ``name`` in a background thread; False if it is already running."""
        if name not in self._locks:
            raise ValueError(f"unknown job {name!r}")
        lock = self._locks[name]
        if not lock.acquire(blocking=False):
            logger.warning("job %s is still running, trigger dropped", name)
            return False
        thread = threading.Thread(target=self._execute, args=(name, options), name=f"job-{name}", daemon=True)
        self._threads = [t for t in self._threads if t.is_alive()]
        self._threads.append(thread)
        thread.start()
        return True

    def run_forever(self, run_at_start: bool = True, options: dict[str, dict[str, Any]] | None = None) -> None:
        """Block until stopped, firing each scheduled job on its trigger.

        With ``run_at_start`` every scheduled job is also triggered once before
        the first calendar wait. ``options`` maps job names to the keyword
        arguments used for every run of that job.
        """
        options = options or {}
        if run_at_start:
            for name in self.schedule:
                self.trigger(name, **options.get(name, {}))

        now = self.clock()
        next_runs = {name: trigger.next_fire(now) for name, trigger in self.schedule.items()}
        for name, when in sorted(next_runs.items(), key=lambda item: item[1]):
            logger.info("%s scheduled %s, next run %s", name, self.schedule[name].describe(), when.isoformat())

        while not self.ctx.should_stop():
            now = self.clock()
            for name, when in list(next_runs.items()):
                if when <= now:
                    self.trigger(name, **options.get(name, {}))
                    next_runs[name] = self.schedule[name].next_fire(now)
            wake = min(next_runs.values()) if next_runs else now + timedelta(seconds=MAX_IDLE_SECONDS)
            wait = min(max((wake - self.clock()).total_seconds(), 0.0), MAX_IDLE_SECONDS)
            self.ctx.stop_event.wait(wait)

        logger.info("scheduler stopping, waiting for running jobs")
        self.join()

    def stop(self) -> None:
        self.ctx.stop_event.set()

    def join(self, timeout: float | None = None) -> None:
        for thread in list(self._threads):
            thread.join(timeout)
