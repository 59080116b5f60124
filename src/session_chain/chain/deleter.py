"""Single and cascading session deletion.

The deletion set is collected first with bounded walks in both directions,
then handed to the store's ``delete_batch`` primitive so that no reader can
observe a partially deleted chain.

Classes
-------
- DeleteResult    — outcome of a delete
- CascadeDeleter  — delete one session, a whole chain, or abandon a head
"""
from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from session_chain.chain.guard import OwnershipGuard
from session_chain.chain.traversal import follow_pointers
from session_chain.config import ChainConfig
from session_chain.errors import LinkConflictError, SessionNotFoundError
from session_chain.session.record import SessionRecord
from session_chain.storage.base import SessionStore

logger = logging.getLogger(__name__)


class DeleteResult(BaseModel):
    """Outcome of a delete operation.

    Parameters
    ----------
    deleted_ids:
        Ids removed from the store.
    warnings:
        Inconsistencies met while collecting a cascade.
    """

    deleted_ids: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class CascadeDeleter:
    """Delete sessions, optionally taking their whole chain with them.

    Parameters
    ----------
    store:
        Backing session store.
    config:
        Supplies ``max_depth`` and ``repair_dangling_links``.
    guard:
        Ownership guard; one is built over ``store`` when omitted.
    """

    def __init__(
        self,
        store: SessionStore,
        config: ChainConfig | None = None,
        guard: OwnershipGuard | None = None,
    ) -> None:
        self._store = store
        self._config = config or ChainConfig()
        self._guard = guard or OwnershipGuard(store)

    def delete(self, session_id: str, owner_id: str, cascade: bool = False) -> DeleteResult:
        """Delete ``session_id``, or its whole chain when ``cascade`` is True.

        Parameters
        ----------
        session_id:
            Target session.
        owner_id:
            Verified identity of the requester.
        cascade:
            Also delete every session reachable through ``child_id`` and
            ``parent_id`` pointers (each direction bounded by
            ``max_depth``).

        Returns
        -------
        DeleteResult

        Raises
        ------
        SessionNotFoundError
            If ``session_id`` does not exist.
        ForbiddenError
            If it belongs to another owner.
        """
        target = self._guard.check(session_id, owner_id)

        doomed = [target.id]
        warnings: list[str] = []
        if cascade:
            members, warnings = self._collect_chain(target, owner_id)
            doomed.extend(member.id for member in members)
            for problem in warnings:
                logger.warning("CascadeDeleter: chain of %r: %s", session_id, problem)

        repair = not cascade and self._config.repair_dangling_links
        deleted = self._store.delete_batch(doomed, repair_neighbors=repair)
        logger.debug(
            "CascadeDeleter: deleted %d session(s) starting at %r (cascade=%s)",
            len(deleted),
            session_id,
            cascade,
        )
        return DeleteResult(deleted_ids=deleted, warnings=warnings)

    def abandon(self, session_id: str, owner_id: str) -> DeleteResult:
        """Delete a head session and hand the head role back to its parent.

        The parent's ``child_id`` is cleared in the same atomic batch, so a
        new follow-up can be created against it afterwards.  The store
        re-checks that the target is still a head inside that batch.

        Raises
        ------
        LinkConflictError
            If ``session_id`` already has a follow-up of its own, including
            one linked concurrently.
        """
        target = self._guard.check(session_id, owner_id)
        if target.child_id is not None:
            raise LinkConflictError(target.id, target.child_id)

        deleted = self._store.delete_batch(
            [target.id], repair_neighbors=True, require_head=True
        )
        logger.debug("CascadeDeleter: abandoned %r (parent=%r)", session_id, target.parent_id)
        return DeleteResult(deleted_ids=deleted)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _collect_chain(
        self, target: SessionRecord, owner_id: str
    ) -> tuple[list[SessionRecord], list[str]]:
        visited = {target.id}
        forward, forward_problems = follow_pointers(
            target,
            "child_id",
            self._lookup,
            max_depth=self._config.max_depth,
            visited=visited,
            owner_id=owner_id,
        )
        backward, backward_problems = follow_pointers(
            target,
            "parent_id",
            self._lookup,
            max_depth=self._config.max_depth,
            visited=visited,
            owner_id=owner_id,
        )
        return [*forward, *backward], [*forward_problems, *backward_problems]

    def _lookup(self, session_id: str) -> SessionRecord | None:
        try:
            return self._store.get(session_id)
        except SessionNotFoundError:
            return None
