"""Interview session record.

A ``SessionRecord`` is one interview attempt.  Only the chain fields
(``id``, ``owner_id``, ``created_at``, ``parent_id``, ``child_id``) matter
to this package; everything else is payload that is stored and returned
untouched.

Classes
-------
- SessionStatus  — well-known values of the ``status`` payload field
- SessionRecord  — persisted session with parent/child pointers
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar
from uuid import uuid4

from pydantic import BaseModel, Field

# Fields owned by the chain mechanics.  Payload updates may never touch them.
CHAIN_FIELDS: frozenset[str] = frozenset(
    {"id", "owner_id", "created_at", "parent_id", "child_id", "schema_version"}
)


class SessionStatus(str, Enum):
    """Lifecycle labels written by the interview pipeline."""

    CREATED = "created"
    COMPLETED = "completed"


class SessionRecord(BaseModel):
    """Persisted interview session.

    Parameters
    ----------
    id:
        Opaque unique identifier, assigned at creation.
    owner_id:
        Identity of the owning user.
    created_at:
        Creation timestamp (UTC).
    parent_id:
        The session this one follows up on, fixed at creation.
    child_id:
        The follow-up created against this session.  Set at most once.
    job_context, resume_context, persona, status:
        Opaque payload supplied by the interview pipeline.

    Any additional keyword arguments (reports, transcripts, audio URLs, ...)
    are kept as extra fields and round-trip unchanged.
    """

    SCHEMA_VERSION: ClassVar[str] = "1.0"

    id: str = Field(default_factory=lambda: str(uuid4()))
    owner_id: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    parent_id: str | None = None
    child_id: str | None = None
    job_context: Any = Field(default_factory=dict)
    resume_context: Any = Field(default_factory=dict)
    persona: Any = None
    status: Any = SessionStatus.CREATED.value
    schema_version: str = "1.0"

    model_config = {"extra": "allow", "frozen": False}

    @property
    def is_root(self) -> bool:
        """True when this session has no parent."""
        return self.parent_id is None

    @property
    def is_head(self) -> bool:
        """True when no follow-up has been linked to this session."""
        return self.child_id is None

    def payload(self) -> dict[str, Any]:
        """Return every non-chain field as a JSON-compatible dict."""
        data = self.model_dump(mode="json")
        for name in CHAIN_FIELDS:
            data.pop(name, None)
        return data

    def __repr__(self) -> str:
        return (
            f"SessionRecord(id={self.id!r}, owner_id={self.owner_id!r}, "
            f"parent_id={self.parent_id!r}, child_id={self.child_id!r})"
        )
