"""
Audit log repository functions.

Audit rows join the caller's transaction: they are flushed, never
committed here, so they persist or roll back with the change they describe.
"""
from __future__ import annotations

import uuid
from typing import Optional
from sqlalchemy.orm import Session

from fakebusters.db import schemas, models


def create_audit_log(
    db: Session,
    audit_log: schemas.AuditLogCreate,
    actor_user_id: Optional[uuid.UUID] = None,
    board_id: Optional[uuid.UUID] = None,
):
    data = audit_log.model_dump()
    metadata_payload = data.pop('metadata', None)
    db_audit_log = models.AuditLog(
        **data,
        actor_user_id=actor_user_id,
        board_id=board_id,
        metadata_json=metadata_payload,
    )
    db.add(db_audit_log)
    db.flush()
    return db_audit_log


def get_audit_logs(
    db: Session,
    board_id: Optional[uuid.UUID] = None,
    user_id: Optional[uuid.UUID] = None,
    action_type: Optional[str] = None,
    target_id: Optional[uuid.UUID] = None,
    skip: int = 0,
    limit: int = 100,
):
    query = db.query(models.AuditLog)
    if board_id:
        query = query.filter(models.AuditLog.board_id == board_id)
    if user_id:
        query = query.filter(models.AuditLog.actor_user_id == user_id)
    if action_type:
        query = query.filter(models.AuditLog.action_type == action_type)
    if target_id:
        query = query.filter(models.AuditLog.target_id == target_id)
    return query.order_by(models.AuditLog.created_at.desc()).offset(skip).limit(limit).all()
