"""SQLite compilation shims for PostgreSQL-specific SQLAlchemy types.

Installs a compiler for JSONB when the active dialect is SQLite so that
`Base.metadata.create_all()` succeeds against the in-memory database used by
the unit tests. Audit metadata is only stored and read back there, so JSON
operators are not emulated.

Usage: Imported for side-effects by fakebusters.db.models.
"""
from __future__ import annotations

from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _compile_jsonb_sqlite(element, compiler, **kw):  # pragma: no cover - trivial
    return "JSON"
