# tests/test_change_detection.py
import hashlib
import os

import pytest

from altosync.change_detection import ChangeDetector, Classification
from altosync.models import Photo, Property
from altosync.staging import BRANCH_LIST_KEY, StagingStore
from altosync.xmlutil import XML_DECLARATION, canonical_payload, fingerprint, parse_xml

PAYLOAD = XML_DECLARATION + "<property><prop_id>1001</prop_id><lastchanged>2024-05-01</lastchanged></property>"
CHANGED = XML_DECLARATION + "<property><prop_id>1001</prop_id><lastchanged>2024-06-01</lastchanged></property>"


@pytest.fixture
def detector(db, settings):
    return ChangeDetector(StagingStore(db), settings.image_base_path)


def staged(db, prop_id="1001"):
    db.commit()
    return StagingStore(db).get_property(prop_id)


def processed_destination(db, detector, with_photo=False):
    detector.observe_property("1001", "10", PAYLOAD)
    detector.staging.mark_processed("1001")
    prop = Property(alto_id="1001", pro_name="12 High Street")
    db.add(prop)
    db.flush()
    if with_photo:
        db.add(Photo(pro_id=prop.id, image="x.jpg", ordering=0, is_default=1))
    db.commit()
    return prop.id


def test_fingerprint_is_sha256_of_payload():
    assert fingerprint(PAYLOAD) == hashlib.sha256(PAYLOAD.encode("utf-8")).hexdigest()


def test_canonical_payload_is_stable_for_the_same_record():
    doc = "<properties><property><prop_id>7</prop_id></property></properties>"
    a = parse_xml(doc, "properties").find("property")
    b = parse_xml(doc, "properties").find("property")
    assert canonical_payload(a) == canonical_payload(b)
    assert canonical_payload(a).startswith(XML_DECLARATION)


def test_new_then_unchanged_then_changed(db, detector):
    assert detector.observe_property("1001", "10", PAYLOAD) == Classification.NEW
    row = staged(db)
    assert row.processed is False
    assert row.fingerprint == fingerprint(PAYLOAD)

    detector.staging.mark_processed("1001")
    db.commit()
    assert detector.observe_property("1001", "10", PAYLOAD) == Classification.UNCHANGED
    row = staged(db)
    assert row.processed is True
    assert row.xml_data == PAYLOAD

    assert detector.observe_property("1001", "10", CHANGED) == Classification.CHANGED
    row = staged(db)
    assert row.processed is False
    assert row.xml_data == CHANGED


def test_unchanged_with_no_photos_and_no_files_is_requeued(db, detector):
    processed_destination(db, detector)
    assert detector.observe_property("1001", "10", PAYLOAD) == Classification.REQUEUED
    row = staged(db)
    assert row.processed is False
    assert row.fingerprint == fingerprint(PAYLOAD)


def test_unchanged_with_photo_rows_stays_processed(db, detector):
    processed_destination(db, detector, with_photo=True)
    assert detector.observe_property("1001", "10", PAYLOAD) == Classification.UNCHANGED
    assert staged(db).processed is True


def test_unchanged_with_files_on_disk_stays_processed(db, detector, settings):
    pid = processed_destination(db, detector)
    thumb = os.path.join(settings.image_base_path, str(pid), "thumb")
    os.makedirs(thumb)
    with open(os.path.join(thumb, "a.jpg"), "wb") as fh:
        fh.write(b"x")
    assert detector.observe_property("1001", "10", PAYLOAD) == Classification.UNCHANGED
    assert staged(db).processed is True


def test_unchanged_without_destination_row_is_left_alone(db, detector):
    detector.observe_property("1001", "10", PAYLOAD)
    detector.staging.mark_processed("1001")
    db.commit()
    assert detector.observe_property("1001", "10", PAYLOAD) == Classification.UNCHANGED
    assert staged(db).processed is True


def test_branch_list_uses_sentinel_key(db, detector):
    assert detector.observe_branch_list("<branches/>") == Classification.NEW
    assert detector.observe_branch_list("<branches/>") == Classification.UNCHANGED
    assert detector.observe_branch_list("<branches><branch/></branches>") == Classification.CHANGED
    db.commit()
    row = StagingStore(db).get_branch(BRANCH_LIST_KEY)
    assert row.alto_branch_id == "FULL_BRANCH_LIST_XML"
    assert row.processed is False


def test_staging_stats_and_reset(db, detector):
    detector.observe_property("1001", "10", PAYLOAD)
    detector.observe_property("1002", "10", CHANGED)
    store = detector.staging
    store.mark_processed("1001")
    db.commit()
    assert store.stats()["properties_total"] == 2
    assert store.stats()["properties_pending"] == 1
    store.reset()
    db.commit()
    assert store.stats()["properties_pending"] == 2
    store.reset(clear=True)
    db.commit()
    assert store.stats()["properties_total"] == 0
