"""
Typed results returned by repository operations.

Recoverable outcomes (validation failures, constraint violations on
single-row writes) come back as a failed `RepositoryResult` with per-field
messages instead of being raised.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Generic, List, Optional, TypeVar

from pydantic import ValidationError

from fakebusters.errors import ValidationFailed

T = TypeVar("T")

# Key used for errors that do not belong to a single field
BASE_ERROR_KEY = "__base__"


@dataclass
class RepositoryResult(Generic[T]):
    value: Optional[T] = None
    errors: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def unwrap(self) -> T:
        """Return the value or raise ValidationFailed with the collected errors."""
        if not self.ok:
            raise ValidationFailed(self.errors)
        return self.value

    @classmethod
    def success(cls, value: T) -> "RepositoryResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, errors: Dict[str, List[str]]) -> "RepositoryResult[T]":
        return cls(errors={key: list(messages) for key, messages in errors.items()})

    @classmethod
    def from_validation_error(cls, exc: ValidationError) -> "RepositoryResult[T]":
        errors: Dict[str, List[str]] = {}
        for err in exc.errors():
            loc = err.get("loc") or ()
            key = str(loc[0]) if loc else BASE_ERROR_KEY
            errors.setdefault(key, []).append(err.get("msg", "invalid"))
        return cls(errors=errors)
