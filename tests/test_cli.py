import functools

import pytest

from placekeeper import cli
from placekeeper.core.errors import StoreUnavailable
from placekeeper.models.job_run import JobRun
from placekeeper.services.scheduler import Scheduler


def unreachable_store(settings):
    raise StoreUnavailable("cannot connect to store: connection refused")


def test_unreachable_store_exits_with_1(capsys):
    assert cli.main(["discovery", "--manual"], context_factory=unreachable_store) == 1
    assert "connection refused" in capsys.readouterr().err


def test_manual_run_prints_summary_and_records_run(build_test_context, make_place, db, capsys, monkeypatch):
    make_place(address="Calle 10 #5-23, Barranquilla, Norte")
    ctx = build_test_context()
    # keep the in-memory store alive for the assertions below
    monkeypatch.setattr(ctx, "close", lambda: None)

    assert cli.main(["geography", "--manual"], context_factory=lambda settings: ctx) == 0

    out = capsys.readouterr().out
    assert "=" * 60 in out
    assert "geography finished" in out
    assert "updated_by_dictionary: 1" in out
    run = db.query(JobRun).one()
    assert (run.job_name, run.status) == ("geography", "success")
    assert run.stats["updated_by_dictionary"] == 1
    assert run.finished_at is not None


def test_unknown_city_is_a_usage_error():
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["discovery", "--cities", "Atlantis"], context_factory=unreachable_store)
    assert excinfo.value.code == 2


def test_manual_and_scheduler_are_exclusive():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["cleanup", "--manual", "--scheduler"])


def test_parser_splits_comma_lists():
    args = cli.build_parser().parse_args(["discovery", "--cities", "Cali, Pereira", "--provider", "osm"])
    assert args.cities == ["Cali", "Pereira"]
    assert args.provider == "osm"


def test_scheduler_mode_runs_the_job_immediately(build_test_context, monkeypatch):
    ctx = build_test_context()
    monkeypatch.setattr(ctx, "close", lambda: None)
    fired = []

    def runner(ctx, name, **options):
        fired.append((name, options))
        ctx.stop_event.set()

    monkeypatch.setattr(cli, "Scheduler", functools.partial(Scheduler, runner=runner))

    argv = ["discovery", "--scheduler", "--cities", "Cali", "--provider", "osm"]
    assert cli.main(argv, context_factory=lambda settings: ctx) == 0

    assert [name for name, _ in fired] == ["discovery"]
    assert fired[0][1]["cities"] == ["Cali"]
    assert fired[0][1]["provider"] == "osm"
