"""Session record subpackage.

Public surface
--------------
- SessionRecord      — persisted interview session with chain pointers
- SessionStatus      — enum: CREATED, COMPLETED
- SessionSerializer  — JSON/YAML round-trip with schema versioning
- SchemaVersionError — unsupported schema version on load
"""
from __future__ import annotations

from session_chain.session.record import CHAIN_FIELDS, SessionRecord, SessionStatus
from session_chain.session.serializer import SchemaVersionError, SessionSerializer

__all__ = [
    "CHAIN_FIELDS",
    "SchemaVersionError",
    "SessionRecord",
    "SessionSerializer",
    "SessionStatus",
]
