from datetime import datetime, timezone

import pytest

from lessonbook.config import get_settings
from lessonbook.core.clock import FixedClock
from lessonbook.db import models  # noqa: F401
from lessonbook.db.session import Base, make_engine, make_session_factory
from lessonbook.db.store import TransactionalStore

NOW = datetime(2025, 5, 20, 9, 0, tzinfo=timezone.utc)


@pytest.fixture()
def engine(tmp_path):
    engine = make_engine(
        f"sqlite+pysqlite:///{tmp_path / 'lessonbook.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture()
def store(session_factory):
    return TransactionalStore(session_factory)


@pytest.fixture()
def clock():
    return FixedClock(NOW)


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
