"""Exceptions raised by the boards context."""
from __future__ import annotations

import uuid
from typing import Dict, List, Optional


class BoardsError(Exception):
    """Base class for boards context errors."""


class ValidationFailed(BoardsError):
    """Raised by RepositoryResult.unwrap() on a failed result."""

    def __init__(self, errors: Dict[str, List[str]]):
        self.errors = errors
        fields = ", ".join(sorted(errors)) or "unknown"
        super().__init__(f"Validation failed for: {fields}")


class JoinRequestApprovalError(BoardsError):
    """Approval found zero or several pending requests for (user, board)."""

    def __init__(self, user_id: Optional[uuid.UUID], board_id: Optional[uuid.UUID], matched: int):
        self.user_id = user_id
        self.board_id = board_id
        self.matched = matched
        super().__init__(
            f"Expected exactly one pending join request for user {user_id} on board {board_id}, "
            f"found {matched}"
        )
