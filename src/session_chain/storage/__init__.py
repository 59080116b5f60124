"""Session store subpackage.

All stores implement the ``SessionStore`` ABC.  The Redis store guards its
third-party import so that the package remains importable without the
``redis`` extra.

Public surface
--------------
- SessionStore   — abstract base class
- InMemoryStore  — in-process dict (useful for testing)
- SQLiteStore    — persist sessions in a local SQLite database
- RedisStore     — Redis store (requires ``redis`` package)
"""
from __future__ import annotations

from session_chain.storage.base import SessionStore
from session_chain.storage.memory import InMemoryStore
from session_chain.storage.redis import RedisStore
from session_chain.storage.sqlite import SQLiteStore

__all__ = [
    "InMemoryStore",
    "RedisStore",
    "SQLiteStore",
    "SessionStore",
]
