# altosync/maintenance.py
"""Maintenance jobs built on the same idempotent pieces as the import.

* ``reset_all``: empty staging and destination tables before a full resync
* ``reconcile_photos``: line photo rows up with the originals on disk
* ``backfill_derivatives``: create missing or stale thumb/medium files
* ``full_resync``: all of the above around a complete sync + import
"""
import os
import shutil
from dataclasses import asdict, dataclass
from typing import List, Optional

from sqlalchemy import delete
from sqlalchemy.orm import Session

from . import crud
from .config import ImageSizes, Settings
from .errors import AssetError
from .imaging import ensure_derivatives, list_originals, property_dir
from .locking import exclusive_lock
from .models import Photo, Property, PropertyCategory, StagedBranch, StagedProperty, XmlDetail
from .staging import StagingStore
from .utils import logger


@dataclass
class ReconcileReport:
    properties: int = 0
    added: int = 0
    reordered: int = 0
    pruned: int = 0


@dataclass
class BackfillReport:
    properties: int = 0
    checked: int = 0
    written: int = 0
    rebuilt: int = 0
    errors: int = 0


def property_ids_on_disk(image_root: str) -> List[int]:
    if not os.path.isdir(image_root):
        return []
    return sorted(
        int(name) for name in os.listdir(image_root)
        if name.isdigit() and os.path.isdir(os.path.join(image_root, name))
    )


def reset_all(db: Session, settings: Settings, clear_files: bool = False, keep_photos: bool = False):
    """Empty staging and destination tables; optionally delete the image tree."""
    tables = [StagedBranch, StagedProperty, Property, PropertyCategory, XmlDetail]
    if not keep_photos:
        tables.append(Photo)
    crud.truncate(db, tables)
    db.commit()
    if clear_files and os.path.isdir(settings.image_base_path):
        for pid in property_ids_on_disk(settings.image_base_path):
            shutil.rmtree(property_dir(settings.image_base_path, pid))
        logger.info("Removed property image folders under %s", settings.image_base_path)


def reset_pending(db: Session):
    """Keep everything but mark all staged rows for re-import."""
    StagingStore(db).reset()
    db.commit()


def reconcile_photos(db: Session, image_root: str, pid: Optional[int] = None, dry_run: bool = False,
                     reorder: bool = False, prune: bool = False) -> ReconcileReport:
    report = ReconcileReport()
    pids = [pid] if pid is not None else property_ids_on_disk(image_root)
    for current in pids:
        if db.get(Property, current) is None:
            logger.warning("Folder %s has no property row; skipped", current)
            continue
        report.properties += 1
        on_disk = list_originals(property_dir(image_root, current))
        rows = crud.get_photos(db, current)
        known = {row.image for row in rows}
        next_ordering = max([row.ordering or 0 for row in rows], default=0) + 1

        for filename in on_disk:
            if filename in known:
                continue
            logger.info("%sAdding photo row %s/%s", "[dry-run] " if dry_run else "", current, filename)
            if not dry_run:
                crud.sync_photo(db, current, filename, "", next_ordering, is_default=not rows and next_ordering == 1)
            next_ordering += 1
            report.added += 1

        if prune:
            present = set(on_disk)
            for row in rows:
                if row.image not in present:
                    logger.info("%sPruning photo row %s/%s", "[dry-run] " if dry_run else "", current, row.image)
                    if not dry_run:
                        db.execute(delete(Photo).where(Photo.id == row.id))
                    report.pruned += 1

        if reorder and not dry_run:
            db.flush()
            position = {name: i + 1 for i, name in enumerate(on_disk)}
            for row in crud.get_photos(db, current):
                if row.image not in position:
                    continue
                ordering = position[row.image]
                is_default = 1 if ordering == 1 else 0
                if row.ordering != ordering or row.is_default != is_default:
                    row.ordering = ordering
                    row.is_default = is_default
                    report.reordered += 1
        if not dry_run:
            db.commit()
    logger.info("Photo reconcile: %s", asdict(report))
    return report


def _rebuild_rows(db: Session, image_root: str, pid: int, dry_run: bool) -> int:
    files = list_originals(property_dir(image_root, pid))
    if not dry_run:
        for ordering, filename in enumerate(files):
            crud.sync_photo(db, pid, filename, "", ordering, is_default=(ordering == 0))
        db.commit()
    return len(files)


def backfill_derivatives(db: Session, settings: Settings, pid: Optional[int] = None, dry_run: bool = False,
                         rebuild_db_from_disk: bool = False, sizes: ImageSizes = None) -> BackfillReport:
    """Regenerate derivatives for stored photos; raises LockHeldError if another run is active."""
    image_root = settings.image_base_path
    report = BackfillReport()
    with exclusive_lock(settings.resize_lock_file):
        sizes = sizes or crud.load_image_sizes(db, settings.image_sizes)
        pids = [pid] if pid is not None else property_ids_on_disk(image_root)
        for current in pids:
            rows = crud.get_photos(db, current)
            if not rows and rebuild_db_from_disk and db.get(Property, current) is not None:
                report.rebuilt += _rebuild_rows(db, image_root, current, dry_run)
                rows = crud.get_photos(db, current)
            if not rows:
                continue
            report.properties += 1
            for row in rows:
                report.checked += 1
                try:
                    report.written += ensure_derivatives(image_root, current, row.image, sizes, dry_run=dry_run)
                except AssetError as e:
                    report.errors += 1
                    logger.error("Property %s: %s", current, e)
    logger.info("Derivative backfill: %s", asdict(report))
    return report


def full_resync(orchestrator, settings: Settings, clear_files: bool = False, keep_photos: bool = False):
    """Reset everything, then sync, drain staging, reconcile photos and backfill derivatives."""
    db = orchestrator.session_factory()
    try:
        reset_all(db, settings, clear_files=clear_files, keep_photos=keep_photos)
    finally:
        db.close()

    summary = orchestrator.run()
    while not summary.fatal:
        db = orchestrator.session_factory()
        try:
            pending = StagingStore(db).stats()["properties_pending"]
        finally:
            db.close()
        if not pending:
            break
        more = orchestrator.run_import()
        summary.processed += more.processed
        summary.failed += more.failed
        summary.skipped += more.skipped
        summary.images.add(more.images)
        summary.fatal = more.fatal
        if not more.processed:
            logger.warning("%s properties still pending and none imported in the last pass", pending)
            break
    if summary.fatal:
        return summary

    db = orchestrator.session_factory()
    try:
        reconcile_photos(db, settings.image_base_path, reorder=True, prune=True)
        backfill_derivatives(db, settings)
    finally:
        db.close()
    return summary
