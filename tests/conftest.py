import os
import uuid

import pytest
from sqlalchemy.orm import Session

os.environ.setdefault("PYTEST_RUNNING", "1")

from fakebusters.db.database import SessionLocal, engine  # noqa: E402
from fakebusters.db import models  # noqa: E402
from fakebusters.db.repositories.boards import BoardRepository  # noqa: E402
from fakebusters.services.board_events import BoardEventBus  # noqa: E402
from fakebusters.utils.feature_flags import refresh_feature_flag_cache  # noqa: E402

VALID_BOARD_ATTRS = {
    "description": "some description",
    "fact": "some fact",
    "phase": 42,
    "rules": "some rules",
    "verdict_falsy": 42,
    "verdict_truthy": 42,
}


@pytest.fixture(scope="session", autouse=True)
def create_schema_once():
    """Create all tables once per test session (SQLite in-memory resets per process)."""
    models.Base.metadata.create_all(bind=engine)
    yield
    models.Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_data():
    """Empty all tables between tests without dropping metadata (faster)."""
    connection = engine.connect()
    trans = connection.begin()
    for table in reversed(models.Base.metadata.sorted_tables):
        connection.execute(table.delete())
    trans.commit()
    connection.close()
    yield


@pytest.fixture(autouse=True)
def _fresh_feature_flags(monkeypatch):
    for env_name in ("AUDIT_TRAIL_ENABLED", "BOARD_EVENTS_ENABLED"):
        monkeypatch.delenv(env_name, raising=False)
    refresh_feature_flag_cache()
    yield
    refresh_feature_flag_cache()


@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def event_bus():
    return BoardEventBus()


@pytest.fixture
def published(event_bus):
    """Notifications received by a subscriber registered before the test acts."""
    received = []
    event_bus.subscribe(received.append)
    return received


@pytest.fixture
def board_repo(db_session, event_bus):
    return BoardRepository(db_session, event_bus=event_bus)


@pytest.fixture
def user_factory(db_session: Session):
    def _create(email: str = None, display_name: str = None):
        email = email or f"user_{uuid.uuid4().hex[:8]}@example.com"
        user = models.User(email=email, display_name=display_name or email.split('@')[0])
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user
    return _create


@pytest.fixture
def board_factory(db_session: Session):
    def _create(**overrides):
        board = models.Board(**{**VALID_BOARD_ATTRS, **overrides})
        db_session.add(board)
        db_session.commit()
        db_session.refresh(board)
        return board
    return _create


@pytest.fixture
def membership_factory(db_session: Session):
    def _create(board, user, role: int = 1):
        m = models.BoardMember(board_id=board.id, user_id=user.id, role=int(role))
        db_session.add(m)
        db_session.commit()
        db_session.refresh(m)
        return m
    return _create


@pytest.fixture
def join_request_factory(db_session: Session):
    def _create(board, user, motivation: str = "please", preferred_role: int = 1):
        jr = models.JoinRequest(
            board_id=board.id,
            user_id=user.id,
            motivation=motivation,
            preferred_role=int(preferred_role),
        )
        db_session.add(jr)
        db_session.commit()
        db_session.refresh(jr)
        return jr
    return _create
