"""Persistence: async engine, sessions, and table mappings."""

from decision_hub.db.engine import (
    Base,
    close_db,
    get_session,
    get_session_maker,
    init_db,
    insert_or_ignore,
    session_scope,
)

__all__ = [
    "Base",
    "close_db",
    "get_session",
    "get_session_maker",
    "init_db",
    "insert_or_ignore",
    "session_scope",
]
