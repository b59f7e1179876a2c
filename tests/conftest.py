"""Shared fixtures: a scratch SQLite database per test."""

from typing import List

import pytest
from sqlalchemy import event

from authorization_attrs import RetryPolicy, SqlAttributeStore
from authorization_attrs.core.database.engine import build_engine, build_session_factory, init_db
from tests.models import Article


@pytest.fixture
async def db_engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'authz.db'}")
    # Creates the host test tables too, they share Base.metadata
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest.fixture
def store(session_factory) -> SqlAttributeStore:
    return SqlAttributeStore(session_factory, RetryPolicy(max_retries=3))


@pytest.fixture
def statements(db_engine) -> List[str]:
    """SQL statements executed while the test runs."""
    captured: List[str] = []

    def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        captured.append(statement)

    event.listen(db_engine.sync_engine, "before_cursor_execute", before_cursor_execute)
    yield captured
    event.remove(db_engine.sync_engine, "before_cursor_execute", before_cursor_execute)


@pytest.fixture
def make_article(session_factory):
    async def _make(**fields) -> Article:
        async with session_factory() as session:
            article = Article(**fields)
            session.add(article)
            await session.commit()
            return article

    return _make
