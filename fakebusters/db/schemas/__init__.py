"""
Domain-split Pydantic schemas re-exported from one import path.
"""

from .boards import (
    BoardBase,
    BoardCreate,
    Board,
    BoardMemberBase,
    BoardMemberCreate,
    JoinRequestBase,
    JoinRequestCreate,
    JoinRequestUpdate,
    JoinRequestApproval,
)
from .audits import AuditLogBase, AuditLogCreate, AuditLog

__all__ = [
    "BoardBase",
    "BoardCreate",
    "Board",
    "BoardMemberBase",
    "BoardMemberCreate",
    "JoinRequestBase",
    "JoinRequestCreate",
    "JoinRequestUpdate",
    "JoinRequestApproval",
    "AuditLogBase",
    "AuditLogCreate",
    "AuditLog",
]
