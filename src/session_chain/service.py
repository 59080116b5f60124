"""Session chain service facade.

``SessionChainService`` is the surface consumed by the API layer.  Every
call takes an ``owner_id`` that the authentication layer has already
verified; the service routes it through the ownership guard before any
session is read or changed.

Classes
-------
- SessionChainService  — create / delete / list / reconstruct sessions
"""
from __future__ import annotations

import logging
from typing import Any, Iterable

from session_chain.chain.deleter import CascadeDeleter, DeleteResult
from session_chain.chain.guard import OwnershipGuard
from session_chain.chain.linker import ChainLinker, LinkResult
from session_chain.chain.reconstructor import ChainReconstructor, ChainResult, SpaceSummary
from session_chain.config import ChainConfig
from session_chain.session.record import SessionRecord
from session_chain.storage.base import SessionStore

logger = logging.getLogger(__name__)


class SessionChainService:
    """Create, link, traverse, and delete chains of interview sessions.

    Parameters
    ----------
    store:
        The storage backend holding session records.
    config:
        Traversal and delete policy.  Defaults to ``ChainConfig()``.
    """

    def __init__(self, store: SessionStore, config: ChainConfig | None = None) -> None:
        self._store = store
        self._config = config or ChainConfig()
        self._guard = OwnershipGuard(store)
        self._linker = ChainLinker(store, guard=self._guard)
        self._deleter = CascadeDeleter(store, config=self._config, guard=self._guard)
        self._reconstructor = ChainReconstructor(config=self._config)

    @property
    def config(self) -> ChainConfig:
        return self._config

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_session(
        self,
        payload: dict[str, Any],
        owner_id: str,
        parent_id: str | None = None,
    ) -> LinkResult:
        """Create a session, optionally as the follow-up of ``parent_id``.

        See ``ChainLinker.create_linked`` for the error contract.
        """
        return self._linker.create_linked(payload, owner_id, parent_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_session(self, session_id: str, owner_id: str) -> SessionRecord:
        """Return ``session_id`` after verifying ``owner_id`` owns it."""
        return self._guard.check(session_id, owner_id)

    def list_sessions_for_owner(self, owner_id: str) -> list[SessionRecord]:
        """Return every session of ``owner_id``, newest first."""
        return self._store.list_for_owner(owner_id)

    def reconstruct_chain(self, start_id: str, pool: Iterable[SessionRecord]) -> ChainResult:
        """Return the chain containing ``start_id`` from an already-loaded pool."""
        return self._reconstructor.reconstruct(start_id, pool)

    def chain_for_session(self, session_id: str, owner_id: str) -> ChainResult:
        """Guard ``session_id``, load the owner's pool, and reconstruct its chain."""
        self._guard.check(session_id, owner_id)
        return self._reconstructor.reconstruct(
            session_id, self._store.list_for_owner(owner_id)
        )

    def list_spaces(self, owner_id: str) -> list[SpaceSummary]:
        """Return one summary per chain of ``owner_id``, newest head first."""
        return self._reconstructor.spaces(self._store.list_for_owner(owner_id))

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def update_payload(
        self, session_id: str, owner_id: str, changes: dict[str, Any]
    ) -> SessionRecord:
        """Merge opaque payload ``changes`` into an owned session.

        Raises
        ------
        ValueError
            If ``changes`` names a chain field.
        """
        self._guard.check(session_id, owner_id)
        updated = self._store.update_payload(session_id, changes)
        logger.debug("SessionChainService: updated payload of %r: %s", session_id, sorted(changes))
        return updated

    def delete_session(
        self, session_id: str, owner_id: str, cascade: bool = False
    ) -> DeleteResult:
        """Delete ``session_id``, or its whole chain when ``cascade`` is True."""
        return self._deleter.delete(session_id, owner_id, cascade=cascade)

    def abandon_session(self, session_id: str, owner_id: str) -> DeleteResult:
        """Discard an unused head session and reopen its parent for follow-ups."""
        return self._deleter.abandon(session_id, owner_id)

    def __repr__(self) -> str:
        return f"SessionChainService(store={self._store!r}, max_depth={self._config.max_depth})"
