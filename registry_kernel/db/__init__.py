"""Database layer: engine and sessions, declarative base, append-only listeners."""

from registry_kernel.db.base import Base, TrackedBase, UUIDString
from registry_kernel.db.engine import create_tables, get_engine, get_session, session_scope

__all__ = [
    "Base",
    "TrackedBase",
    "UUIDString",
    "create_tables",
    "get_engine",
    "get_session",
    "session_scope",
]
