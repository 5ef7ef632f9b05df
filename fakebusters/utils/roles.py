"""
Board member roles.

Roles are stored as integers on `board_members.role`; `BoardRole` gives each
value a name and rejects anything outside the known set.
"""

from enum import IntEnum


class BoardRole(IntEnum):
    """Roles a member can hold on a board. JUDGE owns the board."""
    JUDGE = 0
    JUROR = 1
    OBSERVER = 2


def _unknown_role(value) -> ValueError:
    return ValueError(f"Unknown role: {value!r}. Allowed roles: {[r.name.lower() for r in BoardRole]}")


def parse_role(value) -> BoardRole:
    """
    Coerce a stored or user-supplied role value to a BoardRole.

    Accepts BoardRole members, integers, integral floats and member names
    (case-insensitive). Booleans are rejected.

    Raises:
        ValueError: If the value does not name a known role
    """
    if isinstance(value, BoardRole):
        return value
    if isinstance(value, bool):
        raise _unknown_role(value)
    if isinstance(value, float) and not value.is_integer():
        raise _unknown_role(value)
    if isinstance(value, str) and not value.lstrip("-").isdigit():
        try:
            return BoardRole[value.strip().upper()]
        except KeyError:
            raise _unknown_role(value)
    try:
        return BoardRole(int(value))
    except (TypeError, ValueError):
        raise _unknown_role(value)
