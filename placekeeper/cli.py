"""Command line entry point: ``placekeeper <job> --manual|--scheduler``."""

from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
import threading
from typing import Callable, Sequence

from dotenv import load_dotenv
from pydantic import BaseModel

from placekeeper.core.config import Settings, get_settings
from placekeeper.core.context import JobContext, build_context
from placekeeper.core.errors import StoreUnavailable
from placekeeper.core.logging_config import setup_logging
from placekeeper.services.discovery import select_cells
from placekeeper.services.jobs import JOBS, PROVIDERS, run_job
from placekeeper.services.scheduler import Scheduler, default_schedule

logger = logging.getLogger("placekeeper.cli")

ALL = "all"


def _csv_arg(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="placekeeper",
        description="Places discovery, enrichment, geography and cleanup jobs",
    )
    parser.add_argument("job", choices=[*JOBS, ALL], help="job to run ('all' for every job)")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--manual", action="store_true", help="run once now and exit (default)")
    mode.add_argument("--scheduler", action="store_true", help="stay running and fire on the calendar")
    parser.add_argument("--cities", type=_csv_arg, default=None, help="discovery: comma separated city names")
    parser.add_argument("--categories", type=_csv_arg, default=None, help="discovery: comma separated place types")
    parser.add_argument("--provider", choices=PROVIDERS, default=None, help="discovery provider")
    parser.add_argument("--log-level", default=None, help="overrides LOG_LEVEL")
    return parser


def print_summary(name: str, summary: BaseModel) -> None:
    print("\n" + "=" * 60)
    print(f"{name} finished")
    print("=" * 60)
    for key, value in summary.model_dump(mode="json").items():
        if isinstance(value, (dict, list)):
            value = json.dumps(value, ensure_ascii=False)
        print(f"  {key}: {value}")
    print("=" * 60)


def install_signal_handlers(stop_event: threading.Event) -> dict[int, object]:
    """SIGINT/SIGTERM request a graceful stop; returns the previous handlers."""
    if threading.current_thread() is not threading.main_thread():
        return {}

    def _handle(signum, _frame) -> None:
        logger.info("received %s, stopping after the current item", signal.Signals(signum).name)
        stop_event.set()

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.getsignal(signum)
        signal.signal(signum, _handle)
    return previous


def restore_signal_handlers(previous: dict[int, object]) -> None:
    for signum, handler in previous.items():
        signal.signal(signum, handler)


def main(
    argv: Sequence[str] | None = None,
    context_factory: Callable[[Settings], JobContext] = build_context,
) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        select_cells(args.cities)
    except ValueError as exc:
        parser.error(str(exc))
    settings = get_settings()
    setup_logging(args.log_level or settings.log_level)

    names = list(JOBS) if args.job == ALL else [args.job]
    discovery_options = {
        "cities": args.cities,
        "categories": args.categories,
        "provider": args.provider,
    }

    try:
        ctx = context_factory(settings)
    except StoreUnavailable as exc:
        logger.error("%s", exc)
        print(f"[ERROR] {exc}", file=sys.stderr)
        return 1

    previous = install_signal_handlers(ctx.stop_event)
    try:
        if args.scheduler:
            schedule = {n: t for n, t in default_schedule(settings.scheduler_timezone).items() if n in names}
            Scheduler(ctx, schedule).run_forever(options={"discovery": discovery_options})
            return 0

        for name in names:
            if ctx.should_stop():
                break
            options = discovery_options if name == "discovery" else {}
            summary = run_job(ctx, name, **options)
            print_summary(name, summary)
        return 0
    finally:
        restore_signal_handlers(previous)
        ctx.close()


if __name__ == "__main__":
    sys.exit(main())
