"""
Domain-split SQLAlchemy models.

Exposes `Base`, `now_utc`, and all ORM classes from one import path.
"""

from .base import Base, now_utc  # re-export

from .users import User
from .boards import Board, BoardMember, JoinRequest
from .audit import AuditLog

__all__ = [
    # base
    "Base",
    "now_utc",
    # users
    "User",
    # boards
    "Board",
    "BoardMember",
    "JoinRequest",
    # audit
    "AuditLog",
]
