"""session-chain — linked follow-up interview sessions.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import session_chain
>>> session_chain.__version__
'0.1.0'
"""
from __future__ import annotations

# Errors and configuration
from session_chain.errors import (
    ForbiddenError,
    InconsistentChainError,
    LinkConflictError,
    SessionChainError,
    SessionNotFoundError,
    TransientStorageError,
)
from session_chain.config import ChainConfig

# Session records
from session_chain.session.record import SessionRecord, SessionStatus
from session_chain.session.serializer import SchemaVersionError, SessionSerializer

# Storage backends
from session_chain.storage.base import SessionStore
from session_chain.storage.memory import InMemoryStore
from session_chain.storage.sqlite import SQLiteStore
from session_chain.storage.redis import RedisStore

# Chain components
from session_chain.chain.guard import OwnershipGuard
from session_chain.chain.linker import ChainLinker, LinkResult
from session_chain.chain.deleter import CascadeDeleter, DeleteResult
from session_chain.chain.reconstructor import ChainReconstructor, ChainResult, SpaceSummary

# Service facade
from session_chain.service import SessionChainService

__version__: str = "0.1.0"

__all__ = [
    "__version__",
    # Errors / config
    "ChainConfig",
    "ForbiddenError",
    "InconsistentChainError",
    "LinkConflictError",
    "SessionChainError",
    "SessionNotFoundError",
    "TransientStorageError",
    # Records
    "SchemaVersionError",
    "SessionRecord",
    "SessionSerializer",
    "SessionStatus",
    # Storage
    "InMemoryStore",
    "RedisStore",
    "SQLiteStore",
    "SessionStore",
    # Chain
    "CascadeDeleter",
    "ChainLinker",
    "ChainReconstructor",
    "ChainResult",
    "DeleteResult",
    "LinkResult",
    "OwnershipGuard",
    "SpaceSummary",
    # Service
    "SessionChainService",
]
