# altosync/scheduler.py
from apscheduler.schedulers.background import BackgroundScheduler
from .utils import logger


def start_scheduler(orchestrator, hours: int = 1) -> BackgroundScheduler:
    """Run the full sync every ``hours`` in a background thread.

    ``max_instances=1`` keeps a slow run from overlapping the next tick.
    """
    scheduler = BackgroundScheduler()
    scheduler.add_job(orchestrator.run, "interval", hours=hours, id="alto-sync", max_instances=1, coalesce=True)
    scheduler.start()
    logger.info("Scheduler started (every %sh)", hours)
    return scheduler
