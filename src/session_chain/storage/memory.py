"""In-memory session store.

Stores serialised records in a plain Python dict guarded by a
``threading.Lock``.  All data is lost when the process exits.  This store is
primarily useful for tests and local prototyping.

Classes
-------
- InMemoryStore  — dict-backed ephemeral storage
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Sequence

from session_chain.errors import LinkConflictError, SessionNotFoundError
from session_chain.session.record import SessionRecord
from session_chain.session.serializer import SessionSerializer
from session_chain.storage.base import SessionStore

logger = logging.getLogger(__name__)


class InMemoryStore(SessionStore):
    """Ephemeral, in-process store backed by a Python dict.

    Every primitive runs entirely under one lock, which makes the link
    compare-and-swap and the batch delete atomic for threads sharing this
    object.

    Parameters
    ----------
    records:
        Optional records to pre-populate the store with.  They are stored
        as-is, without link validation, which lets tests seed corrupted
        chains.
    """

    def __init__(self, records: Sequence[SessionRecord] | None = None) -> None:
        self._serializer = SessionSerializer()
        self._store: dict[str, str] = {}
        self._lock = threading.Lock()
        for record in records or []:
            self._store[record.id] = self._serializer.to_json(record)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _read(self, session_id: str) -> SessionRecord:
        try:
            raw = self._store[session_id]
        except KeyError:
            raise SessionNotFoundError(session_id) from None
        return self._serializer.from_json(raw)

    def _write(self, record: SessionRecord) -> None:
        self._store[record.id] = self._serializer.to_json(record)

    # ------------------------------------------------------------------
    # SessionStore interface
    # ------------------------------------------------------------------

    def get(self, session_id: str) -> SessionRecord:
        with self._lock:
            return self._read(session_id)

    def exists(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._store

    def create(self, record: SessionRecord) -> bool:
        self._validate_new(record)
        with self._lock:
            if record.id in self._store:
                raise ValueError(f"Session {record.id!r} already exists.")
            if record.parent_id is None:
                self._write(record)
                return False

            parent = self._read(record.parent_id)
            if parent.child_id is not None:
                raise LinkConflictError(parent.id, parent.child_id)
            parent.child_id = record.id
            self._write(record)
            self._write(parent)
        logger.debug("InMemoryStore: linked %r -> %r", record.parent_id, record.id)
        return True

    def update_payload(self, session_id: str, changes: dict[str, Any]) -> SessionRecord:
        self._validate_changes(changes)
        with self._lock:
            current = self._read(session_id)
            updated = SessionRecord.model_validate({**current.model_dump(), **changes})
            self._write(updated)
            return updated

    def delete_batch(
        self,
        session_ids: Sequence[str],
        *,
        repair_neighbors: bool = False,
        require_head: bool = False,
    ) -> list[str]:
        with self._lock:
            doomed: list[SessionRecord] = []
            for session_id in dict.fromkeys(session_ids):
                if session_id in self._store:
                    doomed.append(self._read(session_id))
            if require_head:
                self._check_heads(doomed)
            deleted_ids = {record.id for record in doomed}

            repaired: list[SessionRecord] = []
            if repair_neighbors:
                repaired = self._detach_neighbors(doomed, deleted_ids)

            for record in doomed:
                del self._store[record.id]
            for neighbor in repaired:
                self._write(neighbor)
        return [record.id for record in doomed]

    def list_for_owner(self, owner_id: str) -> list[SessionRecord]:
        with self._lock:
            records = [self._serializer.from_json(raw) for raw in self._store.values()]
        return self._newest_first([r for r in records if r.owner_id == owner_id])

    # ------------------------------------------------------------------
    # Extras
    # ------------------------------------------------------------------

    def _detach_neighbors(
        self, doomed: list[SessionRecord], deleted_ids: set[str]
    ) -> list[SessionRecord]:
        """Return surviving neighbours with pointers into ``deleted_ids`` cleared."""
        neighbors: dict[str, SessionRecord] = {}
        for record in doomed:
            for neighbor_id in (record.parent_id, record.child_id):
                if neighbor_id is None or neighbor_id in deleted_ids:
                    continue
                if neighbor_id not in self._store:
                    continue
                neighbor = neighbors.get(neighbor_id) or self._read(neighbor_id)
                if neighbor.child_id in deleted_ids:
                    neighbor.child_id = None
                if neighbor.parent_id in deleted_ids:
                    neighbor.parent_id = None
                neighbors[neighbor_id] = neighbor
        return list(neighbors.values())

    def clear(self) -> None:
        """Remove all stored sessions."""
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        return len(self._store)

    def __repr__(self) -> str:
        return f"InMemoryStore(sessions={len(self._store)})"
