"""Database layer - engine, base classes and immutability listeners."""

from hrms_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from hrms_kernel.db.engine import (
    create_tables,
    drop_tables,
    enable_sqlite_savepoints,
    get_engine,
    get_session,
    init_engine_from_url,
    reset_engine,
    session_scope,
)

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "drop_tables",
    "reset_engine",
    "enable_sqlite_savepoints",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
]
