"""Follow-up session creation.

Creates a new interview session and, when asked, attaches it as the
follow-up of an existing one.  The attach step relies on the store's
``create`` primitive, which inserts the record and claims the parent's
``child_id`` slot in one indivisible operation.

Classes
-------
- LinkResult   — outcome of ``ChainLinker.create_linked``
- ChainLinker  — create sessions, optionally linked to a parent
"""
from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel

from session_chain.chain.guard import OwnershipGuard
from session_chain.errors import LinkConflictError
from session_chain.session.record import CHAIN_FIELDS, SessionRecord
from session_chain.storage.base import SessionStore

logger = logging.getLogger(__name__)


class LinkResult(BaseModel):
    """Outcome of creating a session.

    Parameters
    ----------
    session_id:
        Id allocated to the new session.
    parent_updated:
        True when a parent's ``child_id`` now points at the new session.
    record:
        The record as written.
    """

    session_id: str
    parent_updated: bool = False
    record: SessionRecord


class ChainLinker:
    """Create sessions and link follow-ups to their parent.

    Parameters
    ----------
    store:
        Backing session store.
    guard:
        Ownership guard; one is built over ``store`` when omitted.
    """

    def __init__(self, store: SessionStore, guard: OwnershipGuard | None = None) -> None:
        self._store = store
        self._guard = guard or OwnershipGuard(store)

    def create_linked(
        self,
        payload: dict[str, Any],
        owner_id: str,
        parent_id: str | None = None,
    ) -> LinkResult:
        """Create a session owned by ``owner_id``, optionally following ``parent_id``.

        Parameters
        ----------
        payload:
            Opaque session fields (job context, persona, ...).  Chain
            fields are not accepted here.
        owner_id:
            Verified identity of the requester.
        parent_id:
            Session to follow up on.  Must be owned by ``owner_id`` and
            must not already have a follow-up.

        Returns
        -------
        LinkResult

        Raises
        ------
        SessionNotFoundError
            If ``parent_id`` does not exist.
        ForbiddenError
            If ``parent_id`` belongs to another owner.
        LinkConflictError
            If ``parent_id`` already has a follow-up, including when a
            concurrent request claimed it first.
        ValueError
            If ``payload`` contains chain fields.
        """
        reserved = sorted(CHAIN_FIELDS.intersection(payload))
        if reserved:
            raise ValueError(f"Payload may not set chain fields: {reserved}")

        if parent_id is not None:
            parent = self._guard.check(parent_id, owner_id)
            if parent.child_id is not None:
                raise LinkConflictError(parent.id, parent.child_id)

        record = SessionRecord(owner_id=owner_id, parent_id=parent_id, **payload)
        parent_updated = self._store.create(record)

        if parent_updated:
            logger.debug("ChainLinker: %r follows up on %r", record.id, parent_id)
        else:
            logger.debug("ChainLinker: created root session %r", record.id)
        return LinkResult(session_id=record.id, parent_updated=parent_updated, record=record)
