"""SQLite session store.

Stores sessions in a single SQLite database file using the Python standard
library ``sqlite3`` module.  Chain pointers live in their own columns so the
link compare-and-swap is a single conditional ``UPDATE``; opaque payload is
kept as a JSON document next to them.

Classes
-------
- SQLiteStore  — SQLite-backed session storage
"""
from __future__ import annotations

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Sequence

from session_chain.errors import (
    LinkConflictError,
    SessionNotFoundError,
    TransientStorageError,
)
from session_chain.session.record import SessionRecord
from session_chain.session.serializer import SessionSerializer
from session_chain.storage.base import SessionStore

logger = logging.getLogger(__name__)

_DEFAULT_DB_PATH: Path = Path.home() / ".session-chain" / "sessions.db"
_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS sessions (
    id         TEXT PRIMARY KEY,
    owner_id   TEXT NOT NULL,
    created_at TEXT NOT NULL,
    parent_id  TEXT,
    child_id   TEXT,
    payload    TEXT NOT NULL
)
"""
_CREATE_INDEX_SQL = "CREATE INDEX IF NOT EXISTS idx_sessions_owner ON sessions (owner_id)"
_INSERT_SQL = """
INSERT INTO sessions (id, owner_id, created_at, parent_id, child_id, payload)
VALUES (?, ?, ?, ?, NULL, ?)
"""
_LINK_SQL = "UPDATE sessions SET child_id = ? WHERE id = ? AND child_id IS NULL"
_SELECT_COLUMNS = "id, owner_id, created_at, parent_id, child_id, payload"


class SQLiteStore(SessionStore):
    """Persists sessions in a local SQLite database.

    Every mutating primitive runs inside a ``BEGIN IMMEDIATE`` transaction,
    so concurrent writers (threads or processes) are serialised by SQLite
    itself.

    Parameters
    ----------
    db_path:
        Path to the SQLite file.  Defaults to
        ``~/.session-chain/sessions.db``.  The parent directory and table
        are created automatically on first use.
    timeout:
        Seconds a connection waits on a locked database before the
        operation fails with ``TransientStorageError``.
    """

    def __init__(self, db_path: str | Path | None = None, timeout: float = 5.0) -> None:
        self._db_path: Path = (
            Path(db_path) if db_path is not None else _DEFAULT_DB_PATH
        )
        self._timeout = timeout
        self._serializer = SessionSerializer()
        self._initialized = False
        self._init_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ensure_schema(self) -> None:
        with self._init_lock:
            if self._initialized:
                return
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self._db_path), timeout=self._timeout)
            try:
                conn.execute("PRAGMA journal_mode=WAL")
                conn.execute(_CREATE_TABLE_SQL)
                conn.execute(_CREATE_INDEX_SQL)
                conn.commit()
            finally:
                conn.close()
            self._initialized = True

    @contextmanager
    def _connect(self, operation: str) -> Iterator[sqlite3.Connection]:
        """Yield an autocommit connection; driver errors become transient."""
        try:
            self._ensure_schema()
            conn = sqlite3.connect(
                str(self._db_path), timeout=self._timeout, isolation_level=None
            )
        except sqlite3.OperationalError as exc:
            raise TransientStorageError(operation, str(exc)) from exc
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        except sqlite3.OperationalError as exc:
            raise TransientStorageError(operation, str(exc)) from exc
        finally:
            conn.close()

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[sqlite3.Connection]:
        """Yield a connection inside ``BEGIN IMMEDIATE`` … ``COMMIT``."""
        with self._connect(operation) as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    def _row_to_record(self, row: sqlite3.Row) -> SessionRecord:
        data: dict[str, Any] = json.loads(row["payload"])
        data.update(
            id=row["id"],
            owner_id=row["owner_id"],
            created_at=row["created_at"],
            parent_id=row["parent_id"],
            child_id=row["child_id"],
        )
        return self._serializer.from_dict(data)

    @staticmethod
    def _encode_payload(record: SessionRecord) -> str:
        payload = record.payload()
        payload["schema_version"] = record.schema_version
        return json.dumps(payload, default=str)

    # ------------------------------------------------------------------
    # SessionStore interface
    # ------------------------------------------------------------------

    def get(self, session_id: str) -> SessionRecord:
        with self._connect("get") as conn:
            row = conn.execute(
                f"SELECT {_SELECT_COLUMNS} FROM sessions WHERE id = ?", (session_id,)
            ).fetchone()
        if row is None:
            raise SessionNotFoundError(session_id)
        return self._row_to_record(row)

    def exists(self, session_id: str) -> bool:
        with self._connect("exists") as conn:
            row = conn.execute(
                "SELECT 1 FROM sessions WHERE id = ?", (session_id,)
            ).fetchone()
        return row is not None

    def create(self, record: SessionRecord) -> bool:
        self._validate_new(record)
        parent_updated = False
        with self._transaction("create") as conn:
            clash = conn.execute(
                "SELECT 1 FROM sessions WHERE id = ?", (record.id,)
            ).fetchone()
            if clash is not None:
                raise ValueError(f"Session {record.id!r} already exists.")

            if record.parent_id is not None:
                cursor = conn.execute(_LINK_SQL, (record.id, record.parent_id))
                if cursor.rowcount == 0:
                    parent = conn.execute(
                        "SELECT child_id FROM sessions WHERE id = ?", (record.parent_id,)
                    ).fetchone()
                    if parent is None:
                        raise SessionNotFoundError(record.parent_id)
                    raise LinkConflictError(record.parent_id, parent["child_id"])
                parent_updated = True

            conn.execute(
                _INSERT_SQL,
                (
                    record.id,
                    record.owner_id,
                    record.created_at.isoformat(),
                    record.parent_id,
                    self._encode_payload(record),
                ),
            )
        logger.debug("SQLiteStore: created %r (parent=%r)", record.id, record.parent_id)
        return parent_updated

    def update_payload(self, session_id: str, changes: dict[str, Any]) -> SessionRecord:
        self._validate_changes(changes)
        with self._transaction("update_payload") as conn:
            row = conn.execute(
                f"SELECT {_SELECT_COLUMNS} FROM sessions WHERE id = ?", (session_id,)
            ).fetchone()
            if row is None:
                raise SessionNotFoundError(session_id)
            current = self._row_to_record(row)
            updated = SessionRecord.model_validate({**current.model_dump(), **changes})
            conn.execute(
                "UPDATE sessions SET payload = ? WHERE id = ?",
                (self._encode_payload(updated), session_id),
            )
        return updated

    def delete_batch(
        self,
        session_ids: Sequence[str],
        *,
        repair_neighbors: bool = False,
        require_head: bool = False,
    ) -> list[str]:
        wanted = list(dict.fromkeys(session_ids))
        if not wanted:
            return []
        marks = ", ".join("?" for _ in wanted)
        with self._transaction("delete_batch") as conn:
            rows = conn.execute(
                f"SELECT id, child_id FROM sessions WHERE id IN ({marks})", wanted
            ).fetchall()
            present = {str(row["id"]): row["child_id"] for row in rows}
            doomed = [session_id for session_id in wanted if session_id in present]
            if not doomed:
                return []
            if require_head:
                for session_id in doomed:
                    child_id = present[session_id]
                    if child_id is not None and child_id not in present:
                        raise LinkConflictError(session_id, child_id)

            doomed_marks = ", ".join("?" for _ in doomed)
            if repair_neighbors:
                conn.execute(
                    f"UPDATE sessions SET child_id = NULL "
                    f"WHERE child_id IN ({doomed_marks}) AND id NOT IN ({doomed_marks})",
                    [*doomed, *doomed],
                )
                conn.execute(
                    f"UPDATE sessions SET parent_id = NULL "
                    f"WHERE parent_id IN ({doomed_marks}) AND id NOT IN ({doomed_marks})",
                    [*doomed, *doomed],
                )
            conn.execute(f"DELETE FROM sessions WHERE id IN ({doomed_marks})", doomed)
        return doomed

    def list_for_owner(self, owner_id: str) -> list[SessionRecord]:
        with self._connect("list_for_owner") as conn:
            rows = conn.execute(
                f"SELECT {_SELECT_COLUMNS} FROM sessions WHERE owner_id = ?", (owner_id,)
            ).fetchall()
        return self._newest_first([self._row_to_record(row) for row in rows])

    # ------------------------------------------------------------------
    # Extras
    # ------------------------------------------------------------------

    def import_records(self, records: Sequence[SessionRecord]) -> None:
        """Write records verbatim, pointers included, without link checks.

        Intended for restoring exports and for seeding test fixtures.
        """
        with self._transaction("import_records") as conn:
            for record in records:
                conn.execute(
                    "INSERT OR REPLACE INTO sessions "
                    "(id, owner_id, created_at, parent_id, child_id, payload) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    (
                        record.id,
                        record.owner_id,
                        record.created_at.isoformat(),
                        record.parent_id,
                        record.child_id,
                        self._encode_payload(record),
                    ),
                )

    def __repr__(self) -> str:
        return f"SQLiteStore(db_path={str(self._db_path)!r})"
