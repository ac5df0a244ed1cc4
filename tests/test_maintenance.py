# tests/test_maintenance.py
import os

import pytest

from altosync import crud
from altosync.errors import LockHeldError
from altosync.locking import exclusive_lock
from altosync.maintenance import backfill_derivatives, reconcile_photos, reset_all, reset_pending
from altosync.models import Photo, Property, StagedProperty
from altosync.staging import StagingStore

from helpers import jpeg_bytes


@pytest.fixture
def prop(db):
    row = Property(alto_id="1001", pro_name="12 High Street")
    db.add(row)
    db.commit()
    return row.id


def write_originals(settings, pid, names):
    folder = os.path.join(settings.image_base_path, str(pid))
    os.makedirs(folder, exist_ok=True)
    for name in names:
        with open(os.path.join(folder, name), "wb") as fh:
            fh.write(jpeg_bytes(size=(320, 240)))
    return folder


def test_reconcile_adds_rows_in_natural_order(db, settings, prop):
    write_originals(settings, prop, ["img10.jpg", "img2.jpg", "img1.jpg", "notes.txt"])
    report = reconcile_photos(db, settings.image_base_path)
    assert (report.properties, report.added) == (1, 3)
    photos = crud.get_photos(db, prop)
    assert [(p.image, p.ordering) for p in photos] == [("img1.jpg", 1), ("img2.jpg", 2), ("img10.jpg", 3)]
    assert photos[0].is_default == 1


def test_reconcile_dry_run_changes_nothing(db, settings, prop):
    write_originals(settings, prop, ["a.jpg", "b.jpg"])
    report = reconcile_photos(db, settings.image_base_path, pid=prop, dry_run=True)
    assert report.added == 2
    assert crud.count_photos(db, prop) == 0


def test_reconcile_prunes_and_reorders(db, settings, prop):
    write_originals(settings, prop, ["a.jpg", "b.jpg"])
    db.add_all([
        Photo(pro_id=prop, image="b.jpg", ordering=0, is_default=1),
        Photo(pro_id=prop, image="gone.jpg", ordering=1),
    ])
    db.commit()
    report = reconcile_photos(db, settings.image_base_path, pid=prop, reorder=True, prune=True)
    assert report.pruned == 1
    assert report.added == 1
    photos = crud.get_photos(db, prop)
    assert [(p.image, p.ordering, p.is_default) for p in photos] == [("a.jpg", 1, 1), ("b.jpg", 2, 0)]


def test_reconcile_skips_folders_without_property(db, settings):
    write_originals(settings, 999, ["a.jpg"])
    assert reconcile_photos(db, settings.image_base_path).properties == 0


def test_backfill_writes_missing_derivatives_once(db, settings, prop):
    folder = write_originals(settings, prop, ["a.jpg"])
    db.add(Photo(pro_id=prop, image="a.jpg", ordering=0, is_default=1))
    db.commit()
    report = backfill_derivatives(db, settings)
    assert (report.properties, report.checked, report.written) == (1, 1, 2)
    assert os.path.exists(os.path.join(folder, "thumb", "a.jpg"))
    assert backfill_derivatives(db, settings).written == 0


def test_backfill_dry_run_writes_nothing(db, settings, prop):
    folder = write_originals(settings, prop, ["a.jpg"])
    db.add(Photo(pro_id=prop, image="a.jpg", ordering=0, is_default=1))
    db.commit()
    assert backfill_derivatives(db, settings, pid=prop, dry_run=True).written == 2
    assert not os.path.exists(os.path.join(folder, "thumb"))


def test_backfill_counts_broken_originals(db, settings, prop):
    folder = write_originals(settings, prop, [])
    with open(os.path.join(folder, "broken.jpg"), "wb") as fh:
        fh.write(b"not an image")
    db.add(Photo(pro_id=prop, image="broken.jpg", ordering=0, is_default=1))
    db.commit()
    assert backfill_derivatives(db, settings, pid=prop).errors == 1


def test_backfill_can_rebuild_rows_from_disk(db, settings, prop):
    write_originals(settings, prop, ["p2.jpg", "p1.jpg"])
    report = backfill_derivatives(db, settings, pid=prop, rebuild_db_from_disk=True)
    assert report.rebuilt == 2
    photos = crud.get_photos(db, prop)
    assert [(p.image, p.ordering, p.is_default) for p in photos] == [("p1.jpg", 0, 1), ("p2.jpg", 1, 0)]
    assert report.written == 4


def test_backfill_refuses_to_run_twice(db, settings):
    with exclusive_lock(settings.resize_lock_file):
        with pytest.raises(LockHeldError):
            backfill_derivatives(db, settings)


def test_reset_all_empties_tables_and_files(db, settings, prop):
    write_originals(settings, prop, ["a.jpg"])
    db.add(Photo(pro_id=prop, image="a.jpg", ordering=0, is_default=1))
    StagingStore(db).upsert_property("1001", "10", "<property/>", "fp")
    db.commit()

    reset_all(db, settings, clear_files=True)
    assert db.query(Property).count() == 0
    assert db.query(Photo).count() == 0
    assert db.query(StagedProperty).count() == 0
    assert not os.path.exists(os.path.join(settings.image_base_path, str(prop)))


def test_reset_all_can_keep_photo_rows(db, settings, prop):
    db.add(Photo(pro_id=prop, image="a.jpg", ordering=0, is_default=1))
    db.commit()
    reset_all(db, settings, keep_photos=True)
    assert db.query(Photo).count() == 1


def test_reset_pending_marks_everything_for_reimport(db):
    store = StagingStore(db)
    store.upsert_property("1001", "10", "<property/>", "fp")
    store.mark_processed("1001")
    db.commit()
    reset_pending(db)
    assert store.stats()["properties_pending"] == 1
