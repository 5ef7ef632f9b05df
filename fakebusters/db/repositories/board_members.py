"""
Board membership repository functions.

Implements CRUD for board members. A (board, user) pair holds at most one
membership; a duplicate insert comes back as a failed result.
"""
from __future__ import annotations

import logging
import uuid
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fakebusters.db import models, schemas
from fakebusters.db.changesets import Attrs, cast_attrs, current_values
from fakebusters.db.results import RepositoryResult, BASE_ERROR_KEY

logger = logging.getLogger(__name__)

DUPLICATE_MEMBER_MESSAGE = "is already a member of this board"


def _integrity_errors(exc: IntegrityError):
    message = str(getattr(exc, "orig", exc))
    if "uq_board_members_board_user" in message or "UNIQUE" in message.upper():
        return {"user_id": [DUPLICATE_MEMBER_MESSAGE]}
    return {BASE_ERROR_KEY: [message]}


def list_board_members(db: Session):
    return db.query(models.BoardMember).all()


def get_board_member(db: Session, board_member_id: uuid.UUID) -> Optional[models.BoardMember]:
    return db.query(models.BoardMember).filter(models.BoardMember.id == board_member_id).first()


def get_board_member_strict(db: Session, board_member_id: uuid.UUID) -> models.BoardMember:
    """Like get_board_member but raises sqlalchemy.exc.NoResultFound when absent."""
    return db.query(models.BoardMember).filter(models.BoardMember.id == board_member_id).one()


def change_board_member(attrs: Attrs, board_member: Optional[models.BoardMember] = None):
    """Validate membership attributes without persisting them."""
    current = current_values(board_member, schemas.BoardMemberCreate) if board_member is not None else None
    return cast_attrs(schemas.BoardMemberCreate, attrs, current=current)


def build_board_member(attrs: Attrs) -> RepositoryResult[models.BoardMember]:
    """Validate attrs and return an unsaved BoardMember."""
    result = change_board_member(attrs)
    if not result.ok:
        return result
    return RepositoryResult.success(models.BoardMember(**result.value))


def create_board_member(db: Session, attrs: Attrs) -> RepositoryResult[models.BoardMember]:
    result = build_board_member(attrs)
    if not result.ok:
        return result
    db_member = result.value
    db.add(db_member)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning(f"Board member insert rejected: {exc.orig}")
        return RepositoryResult.failure(_integrity_errors(exc))
    db.refresh(db_member)
    logger.info(f"Added member {db_member.user_id} to board {db_member.board_id} as role {db_member.role}")
    return RepositoryResult.success(db_member)


def update_board_member(db: Session, board_member: models.BoardMember, attrs: Attrs) -> RepositoryResult[models.BoardMember]:
    result = change_board_member(attrs, board_member)
    if not result.ok:
        return result
    for key, value in result.value.items():
        setattr(board_member, key, value)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning(f"Board member {board_member.id} update rejected: {exc.orig}")
        return RepositoryResult.failure(_integrity_errors(exc))
    db.refresh(board_member)
    return RepositoryResult.success(board_member)


def delete_board_member(db: Session, board_member: models.BoardMember) -> RepositoryResult[models.BoardMember]:
    # Load every column first: the instance is detached once the delete commits
    db.refresh(board_member)
    db.delete(board_member)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        return RepositoryResult.failure(_integrity_errors(exc))
    logger.info(f"Removed member {board_member.user_id} from board {board_member.board_id}")
    return RepositoryResult.success(board_member)
