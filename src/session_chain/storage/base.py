"""Abstract base class for session stores.

Every chain mutation is expressed as one store primitive so that each
backend can make it indivisible:

- ``create`` inserts a record and, when it names a parent, sets the
  parent's ``child_id`` only if it is still null (compare-and-swap).
- ``delete_batch`` removes a set of records as one atomic unit.
- ``update_payload`` changes opaque payload fields of one record.

Classes
-------
- SessionStore  — abstract base for all stores
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Sequence

from session_chain.errors import LinkConflictError
from session_chain.session.record import CHAIN_FIELDS, SessionRecord


class SessionStore(ABC):
    """Protocol for persisting ``SessionRecord`` objects.

    Implementations must make ``create`` and ``delete_batch`` atomic with
    respect to concurrent callers, including callers in other processes
    where the backend is shared.
    """

    @abstractmethod
    def get(self, session_id: str) -> SessionRecord:
        """Return the record stored under ``session_id``.

        Raises
        ------
        SessionNotFoundError
            If no record exists for ``session_id``.
        """

    @abstractmethod
    def exists(self, session_id: str) -> bool:
        """Return True if a record for ``session_id`` exists."""

    @abstractmethod
    def create(self, record: SessionRecord) -> bool:
        """Insert ``record`` and link it to its parent in one step.

        When ``record.parent_id`` is set, the parent's ``child_id`` is set
        to ``record.id`` only if it is currently null.  Either both writes
        happen or neither does.

        Parameters
        ----------
        record:
            A new record with ``child_id`` unset.

        Returns
        -------
        bool
            True when a parent record was updated.

        Raises
        ------
        SessionNotFoundError
            If the named parent does not exist.
        LinkConflictError
            If the parent already has a follow-up.
        ValueError
            If a record with the same id already exists, or the record
            already carries a ``child_id``.
        """

    @abstractmethod
    def update_payload(self, session_id: str, changes: dict[str, Any]) -> SessionRecord:
        """Merge ``changes`` into the payload fields of ``session_id``.

        Raises
        ------
        SessionNotFoundError
            If no record exists for ``session_id``.
        ValueError
            If ``changes`` names a chain field.
        """

    @abstractmethod
    def delete_batch(
        self,
        session_ids: Sequence[str],
        *,
        repair_neighbors: bool = False,
        require_head: bool = False,
    ) -> list[str]:
        """Atomically delete every existing record in ``session_ids``.

        Ids that no longer exist are skipped.

        Parameters
        ----------
        session_ids:
            Records to remove.
        repair_neighbors:
            When True, surviving records whose ``child_id`` or
            ``parent_id`` points at a deleted record have that pointer
            cleared in the same atomic unit.
        require_head:
            When True, every record to delete must have no follow-up
            outside the batch.  The check runs inside the same atomic
            unit as the delete.

        Returns
        -------
        list[str]
            Ids actually deleted, in the order given.

        Raises
        ------
        LinkConflictError
            If ``require_head`` is set and a record has gained a
            follow-up.  Nothing is deleted.
        """

    @abstractmethod
    def list_for_owner(self, owner_id: str) -> list[SessionRecord]:
        """Return every record owned by ``owner_id``, newest first."""

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_new(record: SessionRecord) -> None:
        if record.child_id is not None:
            raise ValueError(
                f"New session {record.id!r} cannot already have a follow-up."
            )
        if record.parent_id == record.id:
            raise ValueError(f"Session {record.id!r} cannot follow up on itself.")

    @staticmethod
    def _validate_changes(changes: dict[str, Any]) -> None:
        forbidden = sorted(CHAIN_FIELDS.intersection(changes))
        if forbidden:
            raise ValueError(
                f"Chain fields cannot be changed through a payload update: {forbidden}"
            )

    @staticmethod
    def _check_heads(doomed: Sequence[SessionRecord]) -> None:
        deleted_ids = {record.id for record in doomed}
        for record in doomed:
            if record.child_id is not None and record.child_id not in deleted_ids:
                raise LinkConflictError(record.id, record.child_id)

    @staticmethod
    def _newest_first(records: list[SessionRecord]) -> list[SessionRecord]:
        return sorted(records, key=lambda r: (r.created_at, r.id), reverse=True)
