"""
Postgres-backed fixtures for integration tests.

A session-wide Postgres test container replaces the in-memory SQLite
database for the tests in this package. Row locking, foreign keys and
ON DELETE CASCADE are only enforced here. Tests are skipped when Docker is
unavailable.
"""
import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from fakebusters.db import models

postgres = pytest.importorskip("testcontainers.postgres")


def _normalize_url(url: str) -> str:
    # e.g. postgresql+psycopg2:// -> postgresql://
    if "+" in url.split("://", 1)[0]:
        scheme, rest = url.split("://", 1)
        url = scheme.split("+", 1)[0] + "://" + rest
    return url


@pytest.fixture(scope="session")
def _test_postgres():
    image = os.getenv("TEST_POSTGRES_IMAGE", "postgres:16-alpine")
    container = postgres.PostgresContainer(image)
    try:
        container.start()
    except Exception as exc:
        pytest.skip(f"Postgres test container unavailable: {exc}")
    try:
        yield _normalize_url(container.get_connection_url())
    finally:
        container.stop()


@pytest.fixture(scope="session")
def pg_engine(_test_postgres):
    engine = create_engine(_test_postgres)
    models.Base.metadata.create_all(bind=engine)
    yield engine
    models.Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="session")
def pg_sessionmaker(pg_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=pg_engine)


@pytest.fixture(autouse=True)
def _clean_postgres(pg_engine):
    with pg_engine.begin() as connection:
        for table in reversed(models.Base.metadata.sorted_tables):
            connection.execute(table.delete())
    yield


@pytest.fixture
def db_session(pg_sessionmaker):
    db = pg_sessionmaker()
    try:
        yield db
    finally:
        db.close()
