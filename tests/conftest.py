"""Shared test fixtures."""
import os

# Settings are read at import time
os.environ["SECRET_KEY"] = "test-secret"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("SLOT_STEP_MINUTES", None)
os.environ.pop("ENV", None)

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from clinic_scheduling.core.db import init_db, make_session_maker  # noqa: E402
from factories import sqlite_url  # noqa: E402


@pytest.fixture
async def db_engine(tmp_path):
    """File-backed SQLite so separate sessions and connections see committed rows."""
    engine = create_async_engine(sqlite_url(tmp_path), poolclass=NullPool)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session(db_engine):
    async with make_session_maker(db_engine)() as s:
        yield s
