# altosync/change_detection.py
"""Fingerprint-based classification of upstream records against staging."""
from enum import Enum

from . import crud
from .imaging import has_image_files
from .staging import BRANCH_LIST_KEY, StagingStore
from .utils import logger
from .xmlutil import fingerprint


class Classification(str, Enum):
    NEW = "new"
    CHANGED = "changed"
    UNCHANGED = "unchanged"
    # fingerprint unchanged but the destination is missing its images
    REQUEUED = "requeued"


class ChangeDetector:
    def __init__(self, staging: StagingStore, image_root: str):
        self.staging = staging
        self.db = staging.db
        self.image_root = image_root

    def observe_branch_list(self, xml: str) -> Classification:
        fp = fingerprint(xml)
        row = self.staging.get_branch(BRANCH_LIST_KEY)
        if row is None:
            self.staging.upsert_branch(BRANCH_LIST_KEY, xml, fp)
            logger.info("Branch list staged for the first time")
            return Classification.NEW
        if row.fingerprint != fp:
            self.staging.upsert_branch(BRANCH_LIST_KEY, xml, fp)
            logger.info("Branch list changed; queued for re-import")
            return Classification.CHANGED
        self.staging.touch_branch(BRANCH_LIST_KEY)
        logger.debug("Branch list unchanged")
        return Classification.UNCHANGED

    def observe_property(self, prop_id: str, branch_id: str, payload: str) -> Classification:
        fp = fingerprint(payload)
        row = self.staging.get_property(prop_id)
        if row is None:
            self.staging.upsert_property(prop_id, branch_id, payload, fp)
            logger.info("Property %s is new", prop_id)
            return Classification.NEW
        if row.fingerprint != fp:
            self.staging.upsert_property(prop_id, branch_id, payload, fp)
            logger.info("Property %s changed", prop_id)
            return Classification.CHANGED
        if self.needs_assets(prop_id):
            self.staging.touch_property(prop_id, pending=True)
            logger.warning("Property %s unchanged but has no images; re-queued", prop_id)
            return Classification.REQUEUED
        self.staging.touch_property(prop_id)
        return Classification.UNCHANGED

    def needs_assets(self, prop_id: str) -> bool:
        """True when the destination row exists but has neither photo rows nor image files."""
        pid = crud.get_property_id(self.db, prop_id)
        if pid is None:
            return False
        if crud.count_photos(self.db, pid) > 0:
            return False
        return not has_image_files(self.image_root, pid)
