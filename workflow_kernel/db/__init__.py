"""Database layer - engine, base classes, column types, immutability."""

from workflow_kernel.db.base import UUID, Base, UTCDateTime, UUIDString
from workflow_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    session_scope,
)

__all__ = [
    "get_engine",
    "get_session",
    "init_engine_from_url",
    "session_scope",
    "create_tables",
    "Base",
    "UTCDateTime",
    "UUIDString",
    "UUID",
]
