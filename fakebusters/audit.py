"""
Audit logging helpers and enums.

Join requests are physically deleted both when approved and when withdrawn;
the audit rows written here keep the two outcomes distinguishable.
"""
from __future__ import annotations
import logging
import uuid
from enum import Enum
from typing import Any, Optional, Dict
from sqlalchemy.orm import Session

from fakebusters.db import schemas
from fakebusters.db.repositories import audits as repo_audits
from fakebusters.utils.feature_flags import audit_trail_enabled

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    # Board
    BOARD_CREATE = "board_create"
    BOARD_DELETE = "board_delete"
    # Join requests
    JOIN_REQUEST_APPROVE = "join_request_approve"
    JOIN_REQUEST_WITHDRAW = "join_request_withdraw"


class AuditStatus(str, Enum):
    SUCCESS = "success"


def log(
    db: Session,
    *,
    action: AuditAction | str,
    status: AuditStatus | str = AuditStatus.SUCCESS,
    target_type: str,
    target_id: Optional[uuid.UUID] = None,
    actor_user_id: Optional[uuid.UUID] = None,
    board_id: Optional[uuid.UUID] = None,
    metadata: Optional[Dict[str, Any]] = None,
):
    """Add an audit row to the current transaction.

    Returns None without touching the session when the audit trail is disabled.
    """
    if not audit_trail_enabled():
        return None
    # Persist pure string values, not Enum reprs
    action_value = action.value if isinstance(action, AuditAction) else str(action)
    status_value = status.value if isinstance(status, AuditStatus) else str(status)
    audit_log = schemas.AuditLogCreate(
        action_type=action_value,
        status=status_value,
        target_type=target_type,
        target_id=target_id,
        metadata=metadata or {},
    )
    logger.debug(f"audit: {action_value} {target_type} {target_id} status={status_value}")
    return repo_audits.create_audit_log(
        db,
        audit_log,
        actor_user_id=actor_user_id,
        board_id=board_id,
    )


def log_join_request(
    db: Session,
    *,
    join_request,
    action: AuditAction,
    actor_user_id: Optional[uuid.UUID] = None,
    metadata: Optional[Dict[str, Any]] = None,
):
    payload = {"user_id": str(join_request.user_id) if join_request.user_id else None}
    payload.update(metadata or {})
    return log(
        db,
        action=action,
        target_type="join_request",
        target_id=join_request.id,
        actor_user_id=actor_user_id,
        board_id=join_request.board_id,
        metadata=payload,
    )


def log_board(db: Session, *, board, action: AuditAction, actor_user_id: Optional[uuid.UUID] = None):
    return log(
        db,
        action=action,
        target_type="board",
        target_id=board.id,
        actor_user_id=actor_user_id,
        board_id=board.id,
    )


__all__ = ["AuditAction", "AuditStatus", "log", "log_join_request", "log_board"]
