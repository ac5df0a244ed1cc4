# altosync/main.py
from fastapi import FastAPI

from altosync.api.routes import router as api_router
from altosync.config import Settings
from altosync.db import create_db_engine, init_db, make_session_factory
from altosync.feed import FeedClient
from altosync.scheduler import start_scheduler
from altosync.services import SyncOrchestrator
from altosync.utils import logger


def create_app(settings: Settings = None, session_factory=None, orchestrator=None) -> FastAPI:
    settings = settings or Settings.from_env()
    if session_factory is None:
        engine = create_db_engine(settings.database_url, settings.db_pool_size, settings.db_max_overflow)
        init_db(engine)
        session_factory = make_session_factory(engine)
    if orchestrator is None:
        orchestrator = SyncOrchestrator(session_factory, FeedClient(settings), settings)

    app = FastAPI(title="alto-sync")
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.orchestrator = orchestrator
    app.state.scheduler = None
    app.include_router(api_router)

    @app.on_event("startup")
    def on_startup_start_scheduler():
        if settings.scheduler_enabled:
            app.state.scheduler = start_scheduler(orchestrator, settings.sync_interval_hours)

    @app.on_event("shutdown")
    def on_shutdown_stop_scheduler():
        if app.state.scheduler is not None:
            app.state.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

    return app


app = create_app()
