"""
Database engine and session management.

Builds the SQLAlchemy engine from environment configuration with a test
fallback (SQLite in-memory) and exposes a session dependency.
"""
import os
import sys
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

SQLITE_MEMORY_URL = "sqlite+pysqlite:///:memory:"


# Database connection URL
# Generate dynamically from individual components if DATABASE_URL is not provided
def _get_database_url() -> str:
    if os.getenv("DATABASE_URL"):
        return os.getenv("DATABASE_URL")

    # Otherwise, generate from individual components (all must be set)
    components = {
        "POSTGRES_USER": os.getenv("POSTGRES_USER"),
        "POSTGRES_PASSWORD": os.getenv("POSTGRES_PASSWORD"),
        "POSTGRES_HOST": os.getenv("POSTGRES_HOST"),
        "POSTGRES_PORT": os.getenv("POSTGRES_PORT"),
        "POSTGRES_DB": os.getenv("POSTGRES_DB"),
    }
    missing = [name for name, value in components.items() if not value]
    if missing:
        raise ValueError(f"Missing required database environment variables: {', '.join(missing)}")

    return (
        f"postgresql://{components['POSTGRES_USER']}:{components['POSTGRES_PASSWORD']}"
        f"@{components['POSTGRES_HOST']}:{components['POSTGRES_PORT']}/{components['POSTGRES_DB']}"
    )


def _is_pytest_runtime() -> bool:
    """Best-effort detection that we're executing under pytest.

    ``PYTEST_CURRENT_TEST`` is only set while a test runs, so also check for
    the pytest package in ``sys.modules`` (true once collection started).
    ``PYTEST_RUNNING=1`` forces the test behaviour explicitly.
    """
    if os.getenv("PYTEST_RUNNING") == "1":
        return True
    if "PYTEST_CURRENT_TEST" in os.environ:
        return True
    return "pytest" in sys.modules


def resolve_engine_config():
    """Return ``(url, engine_kwargs)`` for the current environment.

    Order of precedence:
    1. FAKEBUSTERS_TEST_DB, when set.
    2. TEST_DATABASE_URL (integration tests against a real Postgres).
    3. Under pytest: in-memory SQLite shared through a StaticPool.
    4. DATABASE_URL / POSTGRES_* components.
    """
    explicit_test_db = os.getenv("FAKEBUSTERS_TEST_DB")
    explicit_e2e_db = os.getenv("TEST_DATABASE_URL")
    if explicit_test_db:
        url = explicit_test_db
    elif explicit_e2e_db:
        url = explicit_e2e_db
    elif _is_pytest_runtime():
        url = SQLITE_MEMORY_URL
    else:
        url = _get_database_url()

    if url.startswith("sqlite") and ":memory:" in url:
        # The schema must persist across connections
        return url, {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
    if url.startswith("sqlite"):
        return url, {"connect_args": {"check_same_thread": False}}
    return url, {}


DATABASE_URL, _engine_kwargs = resolve_engine_config()

engine = create_engine(DATABASE_URL, **_engine_kwargs)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind=None):
    """Create all tables on the given bind (defaults to the module engine)."""
    from fakebusters.db import models  # local import to avoid circular import at module load
    models.Base.metadata.create_all(bind=bind or engine)


# An in-memory SQLite database starts empty on every process; create the
# schema eagerly so sessions handed out by get_db() can be used right away.
if DATABASE_URL.startswith("sqlite") and ":memory:" in DATABASE_URL:
    init_db()


def get_db():
    """Dependency to get a database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
