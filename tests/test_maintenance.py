import json
import os
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path

from placekeeper.core.errors import AssetFailure
from placekeeper.models.place import Place
from placekeeper.schemas.place import PlaceDraft
from placekeeper.services.ingest import IngestGate, IngestOutcome
from placekeeper.services.maintenance import MaintenanceSweeper, find_duplicate_ids
from utils.storage_manager import LocalAssetStorage


def sweeper(session_factory, tmp_path, storage=None, **kwargs):
    return MaintenanceSweeper(
        session_factory,
        storage if storage is not None else LocalAssetStorage(tmp_path / "assets"),
        reports_dir=tmp_path / "reports",
        **kwargs,
    )


def age_file(path, days):
    stamp = time.time() - days * 86400
    os.utime(path, (stamp, stamp))


def test_ingest_then_cleanup_keeps_one_of_each_identity(session_factory, make_place, db, tmp_path):
    make_place(age=timedelta(days=2))
    make_place(age=timedelta(days=1))
    gate = IngestGate(session_factory)

    outcome = gate.ingest(PlaceDraft(name="Cafe X", category="cafe", coordinates=(-74.5, 10.9)))
    assert outcome is IngestOutcome.SKIPPED
    assert db.query(Place).count() == 2

    report = sweeper(session_factory, tmp_path).run()

    assert report.duplicates_deleted == 1
    assert db.query(Place).count() == 1


def test_dedup_keeps_the_earliest_record(session_factory, make_place, db, tmp_path):
    newest = make_place(age=timedelta(hours=1))
    oldest = make_place(age=timedelta(days=10))
    middle = make_place(age=timedelta(days=5))

    assert find_duplicate_ids(db) == [middle, newest]
    sweeper(session_factory, tmp_path).run()

    assert [p.id for p in db.query(Place).all()] == [oldest]


def test_dedup_removes_sum_of_group_surplus(session_factory, make_place, db, tmp_path):
    groups = {("A", "cafe", (-74.0, 4.6)): 3, ("B", "park", (-75.5, 6.2)): 2, ("C", "bar", (-76.5, 3.4)): 1}
    for (name, category, coords), count in groups.items():
        for i in range(count):
            make_place(name=name, category=category, coordinates=coords, age=timedelta(minutes=i))
    # same name, different category is a different place
    make_place(name="A", category="bar", coordinates=(-74.0, 4.6))

    report = sweeper(session_factory, tmp_path).run()

    assert report.duplicates_deleted == sum(n - 1 for n in groups.values())
    survivors = {(p.name, p.category) for p in db.query(Place).all()}
    assert survivors == {("A", "cafe"), ("B", "park"), ("C", "bar"), ("A", "bar")}
    assert db.query(Place).count() == 4


def test_old_assets_are_removed_and_recent_ones_kept(session_factory, tmp_path):
    storage = LocalAssetStorage(tmp_path / "assets")
    storage.save("old_1.jpg", b"x")
    storage.save("recent_2.jpg", b"y")
    age_file(tmp_path / "assets" / "old_1.jpg", 31)
    age_file(tmp_path / "assets" / "recent_2.jpg", 29)

    report = sweeper(session_factory, tmp_path, storage=storage, retention_days=30).run()

    assert report.images_deleted == 1
    assert not (tmp_path / "assets" / "old_1.jpg").exists()
    assert (tmp_path / "assets" / "recent_2.jpg").exists()


def test_report_file_contents(session_factory, make_place, tmp_path):
    make_place(name="A", official_images=["/uploads/places/a_1.jpg"])
    make_place(name="B", category="park")
    clock = datetime(2024, 6, 2, 8, 0, tzinfo=timezone.utc)

    report = sweeper(session_factory, tmp_path, clock=lambda: clock).run()

    expected = tmp_path / "reports" / f"cleanup-report-{int(clock.timestamp() * 1000)}.json"
    assert report.report_path == str(expected)
    data = json.loads(expected.read_text(encoding="utf-8"))
    assert data["indexes_rebuilt"] is True
    assert data["statistics"]["total_places"] == 2
    assert data["statistics"]["places_with_images"] == 1
    assert data["statistics"]["percentage_with_images"] == "50.00%"
    assert data["errors"] == {}



def test_references_to_deleted_images_are_reported(session_factory, make_place, db, tmp_path):
    storage = LocalAssetStorage(tmp_path / "assets")
    storage.save("kept_1.jpg", b"x")
    storage.save("expired_2.jpg", b"y")
    age_file(tmp_path / "assets" / "expired_2.jpg", 40)
    make_place(name="A", official_images=["/uploads/places/kept_1.jpg", "/uploads/places/expired_2.jpg"])
    make_place(name="B", official_images=["/uploads/places/never_3.jpg"])
    make_place(name="C")

    report = sweeper(session_factory, tmp_path, storage=storage, retention_days=30).run()

    assert report.images_deleted == 1
    assert report.missing_images == 2
    # report only: references are left as they were
    images = {p.name: p.official_images for p in db.query(Place).all()}
    assert images["A"] == ["/uploads/places/kept_1.jpg", "/uploads/places/expired_2.jpg"]
    data = json.loads(Path(report.report_path).read_text(encoding="utf-8"))
    assert data["missing_images"] == 2


class BrokenStorage:
    def iter_assets(self):
        raise AssetFailure("storage offline")

    def save(self, name, data, content_type="image/jpeg"):
        raise AssetFailure("storage offline")

    def delete(self, name):
        raise AssetFailure("storage offline")


def test_failing_step_does_not_stop_the_others(session_factory, make_place, db, tmp_path):
    make_place()
    make_place()

    report = sweeper(session_factory, tmp_path, storage=BrokenStorage()).run()

    assert report.errors == {"images": "storage offline", "references": "storage offline"}
    assert report.images_deleted is None
    assert report.missing_images is None
    assert report.duplicates_deleted == 1
    assert report.indexes_rebuilt is True
    assert report.statistics.total_places == 1
    assert db.query(Place).count() == 1


def test_sweep_is_safe_to_repeat(session_factory, make_place, tmp_path):
    make_place()
    make_place()
    first = sweeper(session_factory, tmp_path).run()
    second = sweeper(session_factory, tmp_path).run()
    assert (first.duplicates_deleted, second.duplicates_deleted) == (1, 0)
