"""Ownership checks performed before any chain read or mutation.

Classes
-------
- OwnershipGuard  — fetch a session and verify who owns it
"""
from __future__ import annotations

from session_chain.errors import ForbiddenError
from session_chain.session.record import SessionRecord
from session_chain.storage.base import SessionStore


class OwnershipGuard:
    """Verify a requester owns a session.

    Parameters
    ----------
    store:
        The store sessions are fetched from.
    """

    def __init__(self, store: SessionStore) -> None:
        self._store = store

    def check(self, session_id: str, owner_id: str) -> SessionRecord:
        """Return the session when ``owner_id`` owns it.

        Raises
        ------
        SessionNotFoundError
            If ``session_id`` does not exist.
        ForbiddenError
            If the session belongs to a different owner.
        """
        record = self._store.get(session_id)
        if record.owner_id != owner_id:
            raise ForbiddenError(session_id, owner_id)
        return record
