# tests/test_services.py
import os
from datetime import date

import pytest

from altosync import crud
from altosync.change_detection import ChangeDetector
from altosync.feed import FeedClient
from altosync.images import ImagePipeline
from altosync.maintenance import full_resync
from altosync.models import Company, Photo, Property, PropertyCategory, PropertyType, State, XmlDetail
from altosync.services import SyncOrchestrator
from altosync.staging import StagingStore

from helpers import BASE, FakeHTTP, FakeResponse, detail_xml, feed_routes, jpeg_bytes

DETAIL_URL = "https://feed.test/v13/datafeed/branch/10/property/{}"


def image_routes(pid, names=("front", "kitchen"), missing=()):
    return {
        f"https://img.test/{pid}/{n}.jpg": FakeResponse(404) if n in missing else FakeResponse(200, content=jpeg_bytes())
        for n in names
    }


@pytest.fixture
def make_orchestrator(session_factory, settings):
    def make(routes):
        http = FakeHTTP(routes)
        feed = FeedClient(settings, session=http)
        return SyncOrchestrator(session_factory, feed, settings), http
    return make


def test_full_run_imports_property_with_images(make_orchestrator, db):
    orchestrator, _ = make_orchestrator(feed_routes({"1001": detail_xml()}, images=image_routes("1001")))
    summary = orchestrator.run()

    assert summary.fatal is None
    assert (summary.processed, summary.failed) == (1, 0)
    assert summary.staged["new"] == 1
    assert summary.images.downloaded == 2
    assert summary.exit_code == 0

    prop = crud.get_property(db, "1001")
    assert prop.category_id == 6
    assert prop.created == date(2024, 5, 1)
    assert prop.pro_pdf_file == "https://img.test/1001/brochure.pdf"
    company = db.query(Company).filter(Company.alto_branch_id == "10").one()
    assert prop.company_id == company.id
    photos = crud.get_photos(db, prop.id)
    assert [p.is_default for p in photos] == [1, 0]
    assert {(x.kind, x.xml_id) for x in db.query(XmlDetail)} == {("branch", "10"), ("property", "1001")}
    assert StagingStore(db).stats()["properties_pending"] == 0


def test_second_run_with_no_upstream_change_is_a_no_op(make_orchestrator, db):
    orchestrator, http = make_orchestrator(feed_routes({"1001": detail_xml()}, images=image_routes("1001")))
    orchestrator.run()
    summary = orchestrator.run()

    assert summary.staged["unchanged"] == 1
    assert summary.processed == 0
    assert http.count(DETAIL_URL.format("1001")) == 1
    assert db.query(Photo).count() == 2


def test_image_failure_does_not_block_the_property(make_orchestrator, db):
    routes = feed_routes({"1001": detail_xml()}, images=image_routes("1001", missing=("kitchen",)))
    orchestrator, _ = make_orchestrator(routes)
    summary = orchestrator.run()

    assert summary.processed == 1
    assert summary.images.failed == 1
    assert crud.get_property(db, "1001") is not None
    assert db.query(Photo).count() == 1


def test_detail_fetch_failure_leaves_row_pending(make_orchestrator, db):
    orchestrator, _ = make_orchestrator(feed_routes({"1001": FakeResponse(500)}))
    summary = orchestrator.run()

    assert summary.failed == 1
    assert summary.exit_code == 1
    assert crud.get_property(db, "1001") is None
    assert StagingStore(db).stats()["properties_pending"] == 1


def test_unreadable_detail_is_marked_processed(make_orchestrator, db):
    orchestrator, _ = make_orchestrator(feed_routes({"1001": "<html><body>maintenance</body></html>"}))
    summary = orchestrator.run()

    assert summary.failed == 1
    assert StagingStore(db).stats()["properties_pending"] == 0
    assert crud.get_property(db, "1001") is None


def test_mapping_error_is_isolated_from_siblings(make_orchestrator, db):
    details = {"1001": detail_xml(), "1002": "<property><type>Flat</type></property>"}
    orchestrator, _ = make_orchestrator(feed_routes(details, images=image_routes("1001")))
    summary = orchestrator.run()

    assert (summary.processed, summary.failed) == (1, 1)
    assert crud.get_property(db, "1001") is not None
    assert StagingStore(db).get_property("1002").processed is False


def test_unexpected_branch_error_does_not_abort_the_run(make_orchestrator, db, monkeypatch):
    def broken_branch(*args, **kwargs):
        raise RuntimeError("bad branch row")

    monkeypatch.setattr("altosync.services.import_branch", broken_branch)
    orchestrator, _ = make_orchestrator(feed_routes({"1001": detail_xml()}, images=image_routes("1001")))
    summary = orchestrator.run()

    assert summary.fatal is None
    assert (summary.processed, summary.failed) == (1, 1)
    assert crud.get_property(db, "1001") is not None
    assert db.query(Company).count() == 0
    # retried on the next run
    assert StagingStore(db).get_branch().processed is False


def test_staging_error_is_isolated_to_one_property(make_orchestrator, db, monkeypatch):
    observe = ChangeDetector.observe_property

    def flaky_observe(self, prop_id, *args, **kwargs):
        if prop_id == "1002":
            raise RuntimeError("staging write failed")
        return observe(self, prop_id, *args, **kwargs)

    monkeypatch.setattr(ChangeDetector, "observe_property", flaky_observe)
    details = {"1001": detail_xml(), "1002": detail_xml(pid="1002")}
    orchestrator, _ = make_orchestrator(feed_routes(details, images=image_routes("1001")))
    summary = orchestrator.run()

    assert summary.fatal is None
    assert summary.staged["new"] == 1
    assert (summary.processed, summary.failed) == (1, 1)
    assert crud.get_property(db, "1001") is not None
    assert StagingStore(db).get_property("1002") is None


def test_image_crash_rolls_back_the_whole_property(make_orchestrator, db, monkeypatch):
    def broken_process(self, *args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(ImagePipeline, "process", broken_process)
    orchestrator, _ = make_orchestrator(feed_routes({"1001": detail_xml()}, images=image_routes("1001")))
    summary = orchestrator.run()

    assert (summary.processed, summary.failed) == (0, 1)
    assert crud.get_property(db, "1001") is None
    assert db.query(PropertyCategory).count() == 0
    assert db.query(PropertyType).count() == 0
    assert db.query(State).count() == 0
    assert db.query(XmlDetail).filter(XmlDetail.kind == "property").count() == 0
    assert StagingStore(db).stats()["properties_pending"] == 1


def test_authentication_failure_is_fatal(make_orchestrator, db):
    orchestrator, _ = make_orchestrator({BASE + "branch": FakeResponse(401)})
    summary = orchestrator.run()

    assert summary.fatal.startswith("AuthError")
    assert summary.exit_code == 1
    assert StagingStore(db).stats()["properties_total"] == 0


def test_changed_summary_is_reimported(make_orchestrator, db):
    routes = feed_routes({"1001": detail_xml(prop_type="Flat")}, images=image_routes("1001"))
    orchestrator, http = make_orchestrator(routes)
    orchestrator.run()

    routes[BASE + "branch/10/property"] = FakeResponse(
        200, text=('<?xml version="1.0" encoding="utf-8"?><properties><property><prop_id>1001</prop_id>'
                   '<lastchanged>2024-06-02T09:00:00</lastchanged>'
                   f'<url>{DETAIL_URL.format("1001")}</url></property></properties>'))
    routes[DETAIL_URL.format("1001")] = FakeResponse(200, text=detail_xml(web_status="101"))
    http.routes.update(routes)
    summary = orchestrator.run()

    assert summary.staged["changed"] == 1
    assert summary.processed == 1
    prop = crud.get_property(db, "1001")
    assert prop.isSold == 3
    assert prop.created == date(2024, 5, 1)
    assert prop.modified == date(2024, 6, 2)
    assert db.query(Property).count() == 1


def test_full_resync_rebuilds_everything(make_orchestrator, settings, db):
    orchestrator, _ = make_orchestrator(feed_routes({"1001": detail_xml()}, images=image_routes("1001")))
    orchestrator.run()
    summary = full_resync(orchestrator, settings, clear_files=True)

    assert summary.fatal is None
    assert summary.processed == 1
    prop = crud.get_property(db, "1001")
    photos = crud.get_photos(db, prop.id)
    # reconcile renumbers from 1 in filename order
    assert [p.ordering for p in photos] == [1, 2]
    folder = os.path.join(settings.image_base_path, str(prop.id))
    for p in photos:
        assert os.path.exists(os.path.join(folder, "thumb", p.image))
