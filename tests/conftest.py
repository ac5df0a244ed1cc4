# tests/conftest.py
import os

# the API module builds an app at import time; keep it off any real database
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy.pool import StaticPool

from altosync.config import Settings
from altosync.db import create_db_engine, init_db, make_session_factory

from helpers import BASE


@pytest.fixture
def engine():
    engine = create_db_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url="sqlite://",
        api_base_url=BASE,
        api_username="user",
        api_password="secret",
        token_file=str(tmp_path / "tokens.json"),
        http_connect_retries=1,
        image_base_path=str(tmp_path / "images"),
        resize_lock_file=str(tmp_path / ".resize_images.lock"),
    )
