# altosync/services.py
"""Sync orchestration: feed -> staging -> CMS tables -> images.

``run_sync`` stages what changed upstream, ``run_import`` drains pending
staging rows into destination rows. Each property is its own transaction;
only authentication and database connection failures stop a run.
"""
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Optional

from sqlalchemy.exc import OperationalError, SQLAlchemyError

from . import crud
from .change_detection import ChangeDetector
from .config import Settings
from .errors import AuthError, MappingError, ParseError, TransportError
from .feed import FeedClient
from .images import ImagePipeline, ImageStats
from .mappers.branch import import_branch
from .mappers.property import PropertyImporter
from .staging import BRANCH_LIST_KEY, StagingStore
from .utils import logger
from .xmlutil import canonical_payload, parse_xml, text_at

FATAL_ERRORS = (AuthError, OperationalError)


@dataclass
class RunSummary:
    processed: int = 0
    failed: int = 0
    skipped: int = 0
    staged: Dict[str, int] = field(default_factory=Counter)
    images: ImageStats = field(default_factory=ImageStats)
    fatal: Optional[str] = None

    @property
    def exit_code(self) -> int:
        return 1 if self.fatal or self.failed else 0

    def as_dict(self):
        return {
            "processed": self.processed,
            "failed": self.failed,
            "skipped": self.skipped,
            "staged": dict(self.staged),
            "images": self.images.as_dict(),
            "fatal": self.fatal,
            "exit_code": self.exit_code,
        }


class SyncOrchestrator:
    def __init__(self, session_factory, feed: FeedClient, settings: Settings, image_session=None):
        self.session_factory = session_factory
        self.feed = feed
        self.settings = settings
        self.image_session = image_session if image_session is not None else feed.session

    def run(self) -> RunSummary:
        return self._execute(self._sync, self._import)

    def run_sync(self) -> RunSummary:
        return self._execute(self._sync)

    def run_import(self) -> RunSummary:
        return self._execute(self._import)

    def _execute(self, *passes) -> RunSummary:
        summary = RunSummary()
        db = self.session_factory()
        try:
            for run_pass in passes:
                run_pass(db, summary)
        except FATAL_ERRORS as e:
            db.rollback()
            summary.fatal = f"{type(e).__name__}: {e}"
            logger.critical("Run aborted: %s", summary.fatal)
        finally:
            db.close()
        logger.info(
            "Run finished: processed=%s failed=%s skipped=%s staged=%s images=%s%s",
            summary.processed, summary.failed, summary.skipped, dict(summary.staged),
            summary.images.as_dict(), f" FATAL={summary.fatal}" if summary.fatal else "",
        )
        return summary

    # ---------- pass 1-3: feed -> staging ----------

    def _sync(self, db, summary: RunSummary):
        staging = StagingStore(db)
        detector = ChangeDetector(staging, self.settings.image_base_path)

        try:
            branch_xml = self.feed.fetch_branch_list()
            branches = parse_xml(branch_xml, "branches")
        except (TransportError, ParseError) as e:
            summary.failed += 1
            logger.error("Could not load the branch list: %s", e)
            return
        detector.observe_branch_list(branch_xml)
        db.commit()

        for branch in branches.find_all("branch", recursive=False):
            branch_id = text_at(branch, "branchid")
            url = text_at(branch, "url")
            if not url:
                summary.skipped += 1
                logger.warning("Branch %s has no url; skipped", branch_id or "?")
                continue
            logger.info("Fetching property list for branch %s", branch_id)
            try:
                listing = parse_xml(self.feed.fetch_property_summaries(url), "properties")
            except (TransportError, ParseError) as e:
                summary.failed += 1
                logger.error("Property list for branch %s failed: %s", branch_id, e)
                continue

            for prop in listing.find_all("property", recursive=False):
                prop_id = text_at(prop, "prop_id")
                if not prop_id:
                    summary.skipped += 1
                    logger.warning("Property summary without <prop_id> in branch %s; skipped", branch_id)
                    continue
                try:
                    result = detector.observe_property(prop_id, branch_id, canonical_payload(prop))
                    db.commit()
                except FATAL_ERRORS:
                    db.rollback()
                    raise
                except Exception as e:
                    db.rollback()
                    summary.failed += 1
                    logger.exception("Staging property %s of branch %s failed: %s", prop_id, branch_id, e)
                    continue
                summary.staged[result.value] += 1

    # ---------- pass 4-6: staging -> CMS ----------

    def _import(self, db, summary: RunSummary):
        staging = StagingStore(db)
        self._import_branches(db, staging, summary)

        sizes = self.settings.image_sizes
        try:
            sizes = crud.load_image_sizes(db, sizes)
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning("Could not read image sizes from configuration; using defaults: %s", e)
        pipeline = ImagePipeline(self.settings.image_base_path, sizes,
                                 session=self.image_session, timeout=self.settings.http_timeout)
        importer = PropertyImporter(pipeline, self.settings)

        pending = staging.pending_properties(self.settings.import_batch_size)
        logger.info("%s staged properties pending import", len(pending))
        for row in pending:
            self._import_one(db, staging, importer, row, summary)

    def _import_branches(self, db, staging: StagingStore, summary: RunSummary):
        row = staging.get_branch(BRANCH_LIST_KEY)
        if row is None:
            logger.info("No staged branch list yet")
            return
        if row.processed and crud.count_companies(db) > 0:
            return
        try:
            branches = parse_xml(row.xml_data, "branches")
        except ParseError as e:
            summary.failed += 1
            logger.error("Staged branch list is unreadable: %s", e)
            staging.mark_branch_processed()
            db.commit()
            return

        failures = 0
        for node in branches.find_all("branch", recursive=False):
            try:
                import_branch(db, node, self.settings.default_country)
                crud.archive_xml(db, "branch", text_at(node, "branchid"), str(node))
                db.commit()
            except FATAL_ERRORS:
                db.rollback()
                raise
            except MappingError as e:
                db.rollback()
                summary.skipped += 1
                logger.warning("Branch skipped: %s", e)
            except Exception as e:
                db.rollback()
                summary.failed += 1
                logger.exception("Branch %s failed: %s", text_at(node, "branchid") or "?", e)
                failures += 1
        if failures:
            logger.warning("%s branches failed; branch list stays pending for the next run", failures)
            return
        staging.mark_branch_processed()
        db.commit()

    def _import_one(self, db, staging: StagingStore, importer: PropertyImporter, row, summary: RunSummary):
        prop_id = row.alto_property_id
        try:
            staged = parse_xml(row.xml_data, "property")
        except ParseError as e:
            summary.failed += 1
            logger.error("Staged summary for %s is unreadable, marking processed: %s", prop_id, e)
            staging.mark_processed(prop_id)
            db.commit()
            return

        url = text_at(staged, "url")
        if not url:
            summary.skipped += 1
            logger.warning("Property %s has no detail url; marking processed", prop_id)
            staging.mark_processed(prop_id)
            db.commit()
            return

        try:
            detail_xml = self.feed.fetch_property_detail(url)
        except TransportError as e:
            summary.failed += 1
            logger.error("Detail fetch for %s failed, left pending: %s", prop_id, e)
            return

        try:
            node = parse_xml(detail_xml, "property")
        except ParseError as e:
            summary.failed += 1
            logger.error("Detail XML for %s is unreadable, marking processed: %s", prop_id, e)
            staging.mark_processed(prop_id)
            db.commit()
            return

        try:
            result = importer.import_property(db, node, row.alto_branch_id, text_at(staged, "lastchanged"))
            crud.archive_xml(db, "property", result.mapped.alto_id, detail_xml)
            staging.mark_processed(prop_id)
            db.commit()
        except FATAL_ERRORS:
            db.rollback()
            raise
        except MappingError as e:
            db.rollback()
            summary.failed += 1
            logger.error("Property %s not mapped, left pending: %s", prop_id, e)
            return
        except Exception as e:
            db.rollback()
            summary.failed += 1
            logger.exception("Property %s failed, left pending: %s", prop_id, e)
            return
        summary.processed += 1
        summary.images.add(result.images)
