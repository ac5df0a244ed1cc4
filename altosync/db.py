# altosync/db.py
"""Database engine and session utilities.

Engines are created explicitly per run and handed to the components that
need them; nothing here opens a connection at import time.
"""
from contextlib import contextmanager
from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

Base = declarative_base()


def create_db_engine(database_url: str, pool_size: int = 5, max_overflow: int = 10, **kwargs):
    if database_url.startswith("sqlite"):
        return create_engine(database_url, **kwargs)
    # tuned pool settings for cloud DB
    return create_engine(
        database_url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        **kwargs,
    )


def make_session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine):
    import altosync.models  # noqa: F401 ensure models are imported so tables are known
    Base.metadata.create_all(bind=engine)


@contextmanager
def session_scope(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


def get_db(request: Request):
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
