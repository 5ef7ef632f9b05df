"""
Board repository.

CRUD over boards plus membership and role queries. Every successful
create/update/delete publishes exactly one notification on the injected
`BoardEventBus`, after the commit.
"""
from __future__ import annotations

import logging
import uuid
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from fakebusters import audit
from fakebusters.audit import AuditAction
from fakebusters.db import models, schemas
from fakebusters.db.changesets import Attrs, cast_attrs, current_values
from fakebusters.db.repositories import join_requests as repo_requests
from fakebusters.db.results import RepositoryResult, BASE_ERROR_KEY
from fakebusters.services.board_events import BoardEvent, BoardEventBus, BoardEventHandler
from fakebusters.utils.feature_flags import board_events_enabled
from fakebusters.utils.roles import BoardRole

logger = logging.getLogger(__name__)


class BoardRepository:
    """Board persistence bound to one session and one event bus."""

    def __init__(self, db: Session, event_bus: Optional[BoardEventBus] = None):
        self.db = db
        self.event_bus = event_bus

    # === Notifications ===

    def subscribe(self, handler: BoardEventHandler) -> None:
        self._require_bus().subscribe(handler)

    def unsubscribe(self, handler: BoardEventHandler) -> None:
        self._require_bus().unsubscribe(handler)

    def _require_bus(self) -> BoardEventBus:
        if self.event_bus is None:
            raise RuntimeError("BoardRepository was created without an event bus")
        return self.event_bus

    def _notify(self, event: BoardEvent, board: models.Board) -> None:
        if self.event_bus is None or not board_events_enabled():
            logger.debug(f"Skipping {event.value} notification for board {board.id}")
            return
        self.event_bus.publish(event, board)

    # === Queries ===

    def list_boards(self) -> List[models.Board]:
        return self.db.query(models.Board).all()

    def get_board(self, board_id: uuid.UUID) -> Optional[models.Board]:
        return self.db.query(models.Board).filter(models.Board.id == board_id).first()

    def get_board_strict(self, board_id: uuid.UUID) -> models.Board:
        """Like get_board but raises sqlalchemy.exc.NoResultFound when absent."""
        return self.db.query(models.Board).filter(models.Board.id == board_id).one()

    def members_count(self, board: models.Board) -> int:
        return self.db.query(models.BoardMember).filter(models.BoardMember.board_id == board.id).count()

    def judge(self, board: models.Board) -> Optional[models.User]:
        """Return the user holding the JUDGE role on board, or None.

        Raises sqlalchemy.exc.MultipleResultsFound if several judges exist.
        """
        return (
            self.db.query(models.User)
            .join(models.BoardMember, models.BoardMember.user_id == models.User.id)
            .filter(
                models.BoardMember.board_id == board.id,
                models.BoardMember.role == int(BoardRole.JUDGE),
            )
            .one_or_none()
        )

    def is_member(self, board: models.Board, user: models.User) -> bool:
        return (
            self.db.query(models.BoardMember)
            .filter(
                models.BoardMember.board_id == board.id,
                models.BoardMember.user_id == user.id,
            )
            .count()
            > 0
        )

    def role(self, board: models.Board, user: models.User) -> Optional[BoardRole]:
        member = (
            self.db.query(models.BoardMember)
            .filter(
                models.BoardMember.board_id == board.id,
                models.BoardMember.user_id == user.id,
            )
            .first()
        )
        return BoardRole(member.role) if member is not None else None

    def events(self, board: models.Board) -> List[models.JoinRequest]:
        """Activity feed for a board, most recent first. Currently join requests only."""
        return sorted(
            repo_requests.list_for_board(self.db, board),
            key=lambda jr: jr.created_at,
            reverse=True,
        )

    # === Mutations ===

    def change_board(self, attrs: Attrs, board: Optional[models.Board] = None):
        """Validate board attributes without persisting them."""
        current = current_values(board, schemas.BoardCreate) if board is not None else None
        return cast_attrs(schemas.BoardCreate, attrs, current=current)

    def create_board(self, attrs: Attrs) -> RepositoryResult[models.Board]:
        result = self.change_board(attrs)
        if not result.ok:
            return result
        db_board = models.Board(**result.value)
        self.db.add(db_board)
        self.db.flush()
        audit.log_board(self.db, board=db_board, action=AuditAction.BOARD_CREATE)
        self.db.commit()
        self.db.refresh(db_board)
        logger.info(f"Created board {db_board.id}")
        self._notify(BoardEvent.CREATED, db_board)
        return RepositoryResult.success(db_board)

    def create_board_with_judge(self, attrs: Attrs, user: models.User) -> RepositoryResult[models.Board]:
        """
        Create a board and make `user` its judge in one transaction.

        Either both rows are committed or neither is. Only the board is
        announced on the bus.
        """
        result = self.change_board(attrs)
        if not result.ok:
            return result
        db_board = models.Board(**result.value)
        try:
            self.db.add(db_board)
            self.db.flush()
            self.db.add(
                models.BoardMember(
                    role=int(BoardRole.JUDGE),
                    user_id=user.id,
                    board_id=db_board.id,
                )
            )
            self.db.flush()
            audit.log_board(self.db, board=db_board, action=AuditAction.BOARD_CREATE, actor_user_id=user.id)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.warning(f"Creating board with judge {user.id} rolled back")
            raise
        self.db.refresh(db_board)
        logger.info(f"Created board {db_board.id} with judge {user.id}")
        self._notify(BoardEvent.CREATED, db_board)
        return RepositoryResult.success(db_board)

    def update_board(self, board: models.Board, attrs: Attrs) -> RepositoryResult[models.Board]:
        result = self.change_board(attrs, board)
        if not result.ok:
            return result
        for key, value in result.value.items():
            setattr(board, key, value)
        self.db.commit()
        self.db.refresh(board)
        logger.info(f"Updated board {board.id}: {sorted(result.value)}")
        self._notify(BoardEvent.UPDATED, board)
        return RepositoryResult.success(board)

    def delete_board(self, board: models.Board) -> RepositoryResult[models.Board]:
        """Delete a board; its memberships and pending join requests go with it."""
        # Load every column first: the instance is detached once the delete commits
        self.db.refresh(board)
        try:
            audit.log_board(self.db, board=board, action=AuditAction.BOARD_DELETE)
            self.db.delete(board)
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            logger.warning(f"Deleting board {board.id} rejected: {exc.orig}")
            return RepositoryResult.failure({BASE_ERROR_KEY: [str(exc.orig)]})
        logger.info(f"Deleted board {board.id}")
        self._notify(BoardEvent.DELETED, board)
        return RepositoryResult.success(board)
