# altosync/cli.py
"""Command line entry point.

Usage:
    altosync run                      # sync + import
    altosync sync | import
    altosync reset [--pending-only] [--clear-files] [--keep-photos]
    altosync full-resync [--clear-files] [--keep-photos]
    altosync reconcile-photos (--pid N | --all) [--dry-run] [--reorder] [--prune]
    altosync backfill-images (--pid N | --all) [--dry-run] [--rebuild-db-from-disk]
    altosync token [--refresh]
"""
import argparse
import datetime
import sys

from . import maintenance
from .config import Settings
from .db import create_db_engine, init_db, make_session_factory, session_scope
from .errors import AuthError, LockHeldError
from .feed import FeedClient
from .services import SyncOrchestrator
from .utils import logger, mask


def build(settings: Settings):
    engine = create_db_engine(settings.database_url, settings.db_pool_size, settings.db_max_overflow)
    init_db(engine)
    session_factory = make_session_factory(engine)
    feed = FeedClient(settings)
    return session_factory, feed, SyncOrchestrator(session_factory, feed, settings)


def _print_summary(summary):
    print(f"processed={summary.processed} failed={summary.failed} skipped={summary.skipped} "
          f"staged={dict(summary.staged)} images={summary.images.as_dict()}")
    if summary.fatal:
        print(f"FATAL: {summary.fatal}")
    return summary.exit_code


def cmd_run(args, settings):
    _, _, orchestrator = build(settings)
    return _print_summary(orchestrator.run())


def cmd_sync(args, settings):
    _, _, orchestrator = build(settings)
    return _print_summary(orchestrator.run_sync())


def cmd_import(args, settings):
    _, _, orchestrator = build(settings)
    return _print_summary(orchestrator.run_import())


def cmd_reset(args, settings):
    session_factory, _, _ = build(settings)
    with session_scope(session_factory) as db:
        if args.pending_only:
            maintenance.reset_pending(db)
            print("All staged rows marked pending")
        else:
            maintenance.reset_all(db, settings, clear_files=args.clear_files, keep_photos=args.keep_photos)
            print("Staging and destination tables emptied")
    return 0


def cmd_full_resync(args, settings):
    _, _, orchestrator = build(settings)
    return _print_summary(
        maintenance.full_resync(orchestrator, settings, clear_files=args.clear_files, keep_photos=args.keep_photos)
    )


def cmd_reconcile(args, settings):
    session_factory, _, _ = build(settings)
    with session_scope(session_factory) as db:
        report = maintenance.reconcile_photos(
            db, settings.image_base_path, pid=args.pid, dry_run=args.dry_run,
            reorder=args.reorder, prune=args.prune,
        )
    print(f"properties={report.properties} added={report.added} reordered={report.reordered} pruned={report.pruned}")
    return 0


def cmd_backfill(args, settings):
    session_factory, _, _ = build(settings)
    with session_scope(session_factory) as db:
        try:
            report = maintenance.backfill_derivatives(
                db, settings, pid=args.pid, dry_run=args.dry_run,
                rebuild_db_from_disk=args.rebuild_db_from_disk,
            )
        except LockHeldError as e:
            print(f"Another backfill is running: {e}")
            return 0
    print(f"properties={report.properties} checked={report.checked} written={report.written} "
          f"rebuilt={report.rebuilt} errors={report.errors}")
    return 1 if report.errors else 0


def cmd_token(args, settings):
    feed = FeedClient(settings)
    try:
        token = feed.authenticate() if args.refresh else feed.get_token()
    except AuthError as e:
        logger.critical("Token request failed: %s", e)
        return 1
    expiry = datetime.datetime.fromtimestamp(feed.tokens.expiry).isoformat(timespec="seconds")
    print(f"token={mask(token)} expires={expiry} state={feed.tokens.state.value}")
    return 0


def _add_target(parser):
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--pid", type=int, help="Single destination property id")
    target.add_argument("--all", action="store_true", help="Every property folder on disk")


def build_parser():
    parser = argparse.ArgumentParser(prog="altosync", description="Feed to CMS property sync")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("run", help="Sync then import").set_defaults(func=cmd_run)
    sub.add_parser("sync", help="Fetch branches and property lists into staging").set_defaults(func=cmd_sync)
    sub.add_parser("import", help="Import pending staged properties").set_defaults(func=cmd_import)

    p = sub.add_parser("reset", help="Empty staging and destination tables")
    p.add_argument("--pending-only", action="store_true", help="Only mark staged rows pending")
    p.add_argument("--clear-files", action="store_true", help="Also delete property image folders")
    p.add_argument("--keep-photos", action="store_true", help="Keep photo rows")
    p.set_defaults(func=cmd_reset)

    p = sub.add_parser("full-resync", help="Reset, then sync, import, reconcile and backfill")
    p.add_argument("--clear-files", action="store_true")
    p.add_argument("--keep-photos", action="store_true")
    p.set_defaults(func=cmd_full_resync)

    p = sub.add_parser("reconcile-photos", help="Add photo rows for originals on disk")
    _add_target(p)
    p.add_argument("--dry-run", action="store_true")
    p.add_argument("--reorder", action="store_true", help="Renumber ordering by filename")
    p.add_argument("--prune", action="store_true", help="Delete rows whose original is gone")
    p.set_defaults(func=cmd_reconcile)

    p = sub.add_parser("backfill-images", help="Create missing thumb/medium derivatives")
    _add_target(p)
    p.add_argument("--dry-run", action="store_true")
    p.add_argument("--rebuild-db-from-disk", action="store_true",
                   help="Create photo rows for properties with files but no rows")
    p.set_defaults(func=cmd_backfill)

    p = sub.add_parser("token", help="Show the cached feed token")
    p.add_argument("--refresh", action="store_true", help="Force a new token")
    p.set_defaults(func=cmd_token)
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = Settings.from_env()
    try:
        return args.func(args, settings)
    except KeyboardInterrupt:
        logger.warning("Interrupted; pending staging rows will be picked up next run")
        return 1


if __name__ == "__main__":
    sys.exit(main())
