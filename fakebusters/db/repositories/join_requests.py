"""
Join request repository functions.

A join request is pending while its row exists. It ends either through
`approve_join_request` (row deleted, membership created) or through
`delete_join_request` (withdrawn). Both outcomes are recorded in the audit
log so they remain distinguishable after the row is gone.
"""
from __future__ import annotations

import logging
import uuid
from typing import Optional

from sqlalchemy import delete, inspect
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import ObjectDeletedError

from fakebusters import audit
from fakebusters.audit import AuditAction
from fakebusters.db import models, schemas
from fakebusters.db.changesets import Attrs, cast_attrs, current_values
from fakebusters.db.repositories import board_members as repo_members
from fakebusters.db.results import RepositoryResult, BASE_ERROR_KEY
from fakebusters.errors import JoinRequestApprovalError

logger = logging.getLogger(__name__)

DUPLICATE_REQUEST_MESSAGE = "has already requested to join this board"
STALE_REQUEST_MESSAGE = "join request is no longer pending"


def _integrity_errors(exc: IntegrityError):
    message = str(getattr(exc, "orig", exc))
    if "uq_join_requests_board_user" in message or "UNIQUE" in message.upper():
        return {"user_id": [DUPLICATE_REQUEST_MESSAGE]}
    return {BASE_ERROR_KEY: [message]}


def _pending_query(db: Session, user_id, board_id):
    return db.query(models.JoinRequest).filter(
        models.JoinRequest.user_id == user_id,
        models.JoinRequest.board_id == board_id,
    )


def list_join_requests(db: Session):
    return db.query(models.JoinRequest).all()


def get_join_request(db: Session, join_request_id: uuid.UUID) -> Optional[models.JoinRequest]:
    return db.query(models.JoinRequest).filter(models.JoinRequest.id == join_request_id).first()


def get_join_request_strict(db: Session, join_request_id: uuid.UUID) -> models.JoinRequest:
    """Like get_join_request but raises sqlalchemy.exc.NoResultFound when absent."""
    return db.query(models.JoinRequest).filter(models.JoinRequest.id == join_request_id).one()


def already_requested(db: Session, user: models.User, board: models.Board) -> bool:
    return _pending_query(db, user.id, board.id).count() > 0


def list_for_board(db: Session, board: models.Board):
    return db.query(models.JoinRequest).filter(models.JoinRequest.board_id == board.id).all()


def change_join_request(attrs: Attrs, join_request: Optional[models.JoinRequest] = None):
    """Validate join request attributes without persisting them.

    Only motivation and preferred_role can change on an existing request.
    """
    if join_request is None:
        return cast_attrs(schemas.JoinRequestCreate, attrs)
    return cast_attrs(
        schemas.JoinRequestCreate,
        attrs,
        current=current_values(join_request, schemas.JoinRequestCreate),
        permitted=schemas.JoinRequestUpdate.model_fields,
    )


def create_join_request(db: Session, attrs: Attrs) -> RepositoryResult[models.JoinRequest]:
    result = change_join_request(attrs)
    if not result.ok:
        return result
    db_request = models.JoinRequest(**result.value)
    db.add(db_request)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.info(f"Join request rejected: {exc.orig}")
        return RepositoryResult.failure(_integrity_errors(exc))
    db.refresh(db_request)
    logger.info(f"User {db_request.user_id} requested to join board {db_request.board_id}")
    return RepositoryResult.success(db_request)


def update_join_request(db: Session, join_request: models.JoinRequest, attrs: Attrs) -> RepositoryResult[models.JoinRequest]:
    result = change_join_request(attrs, join_request)
    if not result.ok:
        return result
    for key, value in result.value.items():
        setattr(join_request, key, value)
    db.commit()
    db.refresh(join_request)
    return RepositoryResult.success(join_request)


def delete_join_request(
    db: Session,
    join_request: models.JoinRequest,
    *,
    actor_user_id: Optional[uuid.UUID] = None,
) -> RepositoryResult[models.JoinRequest]:
    """Withdraw a pending request. No membership is created.

    A request that was already approved or withdrawn comes back as a failed
    result keyed on BASE_ERROR_KEY.
    """
    state = inspect(join_request)
    if not state.persistent:
        current = get_join_request(db, state.identity[0]) if state.identity else None
        if current is None:
            logger.info(f"Withdrawal skipped: join request {state.identity} is no longer pending")
            return RepositoryResult.failure({BASE_ERROR_KEY: [STALE_REQUEST_MESSAGE]})
        join_request = current
    try:
        db.refresh(join_request)
    except ObjectDeletedError:
        logger.info(f"Withdrawal skipped: join request {state.identity} was removed concurrently")
        return RepositoryResult.failure({BASE_ERROR_KEY: [STALE_REQUEST_MESSAGE]})
    try:
        audit.log_join_request(
            db,
            join_request=join_request,
            action=AuditAction.JOIN_REQUEST_WITHDRAW,
            actor_user_id=actor_user_id,
        )
        db.delete(join_request)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        return RepositoryResult.failure(_integrity_errors(exc))
    logger.info(f"Join request {join_request.id} withdrawn from board {join_request.board_id}")
    return RepositoryResult.success(join_request)


def approve_join_request(
    db: Session,
    attrs: Attrs,
    *,
    actor_user_id: Optional[uuid.UUID] = None,
) -> RepositoryResult[models.BoardMember]:
    """
    Turn the pending request of (user_id, board_id) into a membership.

    In one transaction: lock the matching request, insert the BoardMember
    built from attrs, delete the request and record the approval. Exactly
    one pending request must match; otherwise nothing is written and
    JoinRequestApprovalError is raised. Database errors roll back and
    propagate.

    Invalid attrs (missing user_id, board_id or role) return a failed
    result without touching the database.
    """
    approval = cast_attrs(schemas.JoinRequestApproval, attrs)
    if not approval.ok:
        return approval
    user_id = approval.value["user_id"]
    board_id = approval.value["board_id"]

    member_result = repo_members.build_board_member(attrs)
    if not member_result.ok:
        return member_result
    member = member_result.value

    try:
        pending = _pending_query(db, user_id, board_id).with_for_update().all()
        if len(pending) != 1:
            raise JoinRequestApprovalError(user_id, board_id, len(pending))
        join_request = pending[0]

        db.add(member)
        db.flush()

        deleted = db.execute(
            delete(models.JoinRequest)
            .where(models.JoinRequest.id == join_request.id)
            .execution_options(synchronize_session=False)
        ).rowcount
        if deleted != 1:
            raise JoinRequestApprovalError(user_id, board_id, deleted)

        audit.log_join_request(
            db,
            join_request=join_request,
            action=AuditAction.JOIN_REQUEST_APPROVE,
            actor_user_id=actor_user_id,
            metadata={"role": int(member.role), "board_member_id": str(member.id)},
        )
        db.expunge(join_request)
        db.commit()
    except Exception:
        db.rollback()
        logger.warning(f"Approval of join request for user {user_id} on board {board_id} rolled back")
        raise

    db.refresh(member)
    logger.info(f"Approved join request {join_request.id}: user {user_id} joined board {board_id}")
    return RepositoryResult.success(member)
