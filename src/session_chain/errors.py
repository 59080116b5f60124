"""Error taxonomy for session chain operations.

Ownership and conflict failures abort an operation before anything is
written.  Inconsistencies found while reading chains are normally recorded
as warnings on the traversal result; ``InconsistentChainError`` exists for
callers that prefer to escalate them.

Classes
-------
- SessionChainError       — base class for every error raised here
- SessionNotFoundError    — referenced session id does not exist
- ForbiddenError          — session exists but belongs to another owner
- LinkConflictError       — parent already has a follow-up session
- InconsistentChainError  — traversal hit a broken link or a cycle
- TransientStorageError   — storage unavailable; safe to retry
"""
from __future__ import annotations

RETRY_MESSAGE = "Something went wrong. Please try again."


class SessionChainError(Exception):
    """Base class for all session chain errors.

    Attributes
    ----------
    user_message:
        Short text suitable for showing to an end user.
    """

    user_message: str = RETRY_MESSAGE


class SessionNotFoundError(SessionChainError, KeyError):
    """Raised when a requested session does not exist in the store."""

    user_message = "Interview not found."

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session {session_id!r} not found.")

    def __str__(self) -> str:
        # KeyError.__str__ would wrap the message in quotes.
        return str(self.args[0])


class ForbiddenError(SessionChainError, PermissionError):
    """Raised when the requester does not own the session."""

    user_message = "Forbidden: you do not own this interview."

    def __init__(self, session_id: str, owner_id: str) -> None:
        self.session_id = session_id
        self.owner_id = owner_id
        super().__init__(
            f"Owner {owner_id!r} is not allowed to access session {session_id!r}."
        )


class LinkConflictError(SessionChainError, ValueError):
    """Raised when a follow-up is attached to a session that already has one."""

    user_message = (
        "This interview already has a follow-up. "
        "Please use the latest session in the chain."
    )

    def __init__(self, session_id: str, existing_child_id: str | None = None) -> None:
        self.session_id = session_id
        self.existing_child_id = existing_child_id
        detail = f" (follow-up {existing_child_id!r})" if existing_child_id else ""
        super().__init__(f"Session {session_id!r} already has a follow-up{detail}.")


class InconsistentChainError(SessionChainError):
    """Raised on request when a chain traversal found corrupted links."""

    def __init__(self, start_id: str, problems: list[str]) -> None:
        self.start_id = start_id
        self.problems = list(problems)
        super().__init__(
            f"Chain from {start_id!r} is inconsistent: " + "; ".join(self.problems)
        )


class TransientStorageError(SessionChainError):
    """Raised when the storage layer is temporarily unavailable."""

    def __init__(self, operation: str, reason: str = "") -> None:
        self.operation = operation
        message = f"Storage unavailable during {operation}"
        super().__init__(f"{message}: {reason}" if reason else message)
