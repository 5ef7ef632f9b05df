"""
Attribute casting shared by the repositories.

`cast_attrs` merges incoming attributes over the current values of a row,
validates the merged set with a pydantic schema, and returns only the
changed fields, normalized for the ORM columns.
"""
from __future__ import annotations

from enum import IntEnum
from typing import Any, Dict, Iterable, Mapping, Optional, Type, Union

from pydantic import BaseModel, ValidationError

from fakebusters.db.results import RepositoryResult

Attrs = Union[Mapping[str, Any], BaseModel, None]


def attrs_to_dict(attrs: Attrs) -> Dict[str, Any]:
    if attrs is None:
        return {}
    if isinstance(attrs, BaseModel):
        return attrs.model_dump(exclude_unset=True)
    return {str(key): value for key, value in dict(attrs).items()}


def current_values(obj, schema: Type[BaseModel]) -> Dict[str, Any]:
    return {name: getattr(obj, name) for name in schema.model_fields}


def _column_value(value):
    # Integer columns store roles as plain ints
    if isinstance(value, IntEnum):
        return int(value)
    return value


def cast_attrs(
    schema: Type[BaseModel],
    attrs: Attrs,
    current: Optional[Mapping[str, Any]] = None,
    permitted: Optional[Iterable[str]] = None,
) -> RepositoryResult[Dict[str, Any]]:
    """
    Validate attrs against schema.

    Without `current` (insert), every schema field is returned. With
    `current` (update), the merged row is validated as a whole and only the
    permitted fields present in attrs are returned. Unknown keys are ignored.
    """
    allowed = set(permitted) if permitted is not None else set(schema.model_fields)
    incoming = {key: value for key, value in attrs_to_dict(attrs).items() if key in allowed}

    data = dict(current or {})
    data.update(incoming)
    try:
        validated = schema.model_validate(data)
    except ValidationError as exc:
        return RepositoryResult.from_validation_error(exc)

    dumped = validated.model_dump()
    keys = incoming.keys() if current is not None else dumped.keys()
    return RepositoryResult.success({key: _column_value(dumped[key]) for key in keys})
