# altosync/staging.py
"""Staging tables: the last fetched payload per upstream entity plus a
processed flag. A row stays pending until the import pass maps it."""
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from . import crud
from .models import StagedBranch, StagedProperty
from .utils import logger

BRANCH_LIST_KEY = "FULL_BRANCH_LIST_XML"


class StagingStore:
    def __init__(self, db: Session):
        self.db = db

    def get_branch(self, key: str = BRANCH_LIST_KEY):
        return self.db.query(StagedBranch).filter(StagedBranch.alto_branch_id == key).first()

    def get_property(self, prop_id: str):
        return self.db.query(StagedProperty).filter(StagedProperty.alto_property_id == prop_id).first()

    def upsert_branch(self, key: str, xml: str, fingerprint: str):
        crud.upsert(self.db, StagedBranch, {
            "alto_branch_id": key,
            "xml_data": xml,
            "fingerprint": fingerprint,
            "last_synced": crud.utcnow(),
            "processed": False,
        }, ["alto_branch_id"])

    def upsert_property(self, prop_id: str, branch_id: str, xml: str, fingerprint: str):
        crud.upsert(self.db, StagedProperty, {
            "alto_property_id": prop_id,
            "alto_branch_id": str(branch_id),
            "xml_data": xml,
            "fingerprint": fingerprint,
            "last_synced": crud.utcnow(),
            "processed": False,
        }, ["alto_property_id"])

    def touch_branch(self, key: str = BRANCH_LIST_KEY):
        self.db.execute(
            update(StagedBranch).where(StagedBranch.alto_branch_id == key).values(last_synced=crud.utcnow())
        )

    def touch_property(self, prop_id: str, pending: bool = False):
        values = {"last_synced": crud.utcnow()}
        if pending:
            values["processed"] = False
        self.db.execute(
            update(StagedProperty).where(StagedProperty.alto_property_id == prop_id).values(**values)
        )

    def mark_branch_processed(self, key: str = BRANCH_LIST_KEY):
        self.db.execute(update(StagedBranch).where(StagedBranch.alto_branch_id == key).values(processed=True))

    def mark_processed(self, prop_id: str):
        self.db.execute(
            update(StagedProperty).where(StagedProperty.alto_property_id == prop_id).values(processed=True)
        )

    def mark_pending(self, prop_id: str):
        self.db.execute(
            update(StagedProperty).where(StagedProperty.alto_property_id == prop_id).values(processed=False)
        )

    def pending_properties(self, limit: int = 0):
        q = self.db.query(StagedProperty).filter(StagedProperty.processed.is_(False)).order_by(StagedProperty.id)
        if limit:
            q = q.limit(limit)
        return q.all()

    def stats(self):
        def counts(model):
            total = self.db.execute(select(func.count(model.id))).scalar() or 0
            pending = self.db.execute(
                select(func.count(model.id)).where(model.processed.is_(False))
            ).scalar() or 0
            return total, pending

        branches_total, branches_pending = counts(StagedBranch)
        properties_total, properties_pending = counts(StagedProperty)
        return {
            "branches_total": branches_total,
            "branches_pending": branches_pending,
            "properties_total": properties_total,
            "properties_pending": properties_pending,
        }

    def reset(self, clear: bool = False):
        """Mark every staged row pending, or delete them all with ``clear``."""
        if clear:
            crud.truncate(self.db, [StagedBranch, StagedProperty])
            return
        self.db.execute(update(StagedBranch).values(processed=False))
        self.db.execute(update(StagedProperty).values(processed=False))
        logger.info("Marked all staged branches and properties pending")
