"""Redis session store.

Import-guarded: ``redis`` is an optional dependency.  Attempting to
instantiate ``RedisStore`` without the ``redis`` package installed will
raise ``ImportError`` with a helpful message.

Each record is a JSON string under ``<key_prefix>session:<id>``; a set under
``<key_prefix>owner:<owner_id>`` indexes the ids of each owner.  Link and
batch-delete use optimistic ``WATCH``/``MULTI`` transactions.

Classes
-------
- RedisStore  — Redis key-value session storage
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Sequence, TypeVar

from session_chain.errors import (
    LinkConflictError,
    SessionNotFoundError,
    TransientStorageError,
)
from session_chain.session.record import SessionRecord
from session_chain.session.serializer import SessionSerializer
from session_chain.storage.base import SessionStore

logger = logging.getLogger(__name__)

_REDIS_IMPORT_ERROR = (
    "The 'redis' package is required for RedisStore. "
    "Install it with: pip install redis"
)

T = TypeVar("T")


class RedisStore(SessionStore):
    """Persists sessions in a Redis instance.

    Parameters
    ----------
    url:
        Redis connection URL (e.g. ``"redis://localhost:6379/0"``).  When
        omitted, ``host``/``port``/``db``/``password`` are used.
    host, port, db, password:
        Connection settings used when ``url`` is not supplied.
    key_prefix:
        String prepended to every key.  Defaults to ``"session_chain:"``.
    watch_retries:
        Optimistic-transaction attempts before ``TransientStorageError``.
    """

    def __init__(
        self,
        url: str | None = None,
        *,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: str | None = None,
        key_prefix: str = "session_chain:",
        watch_retries: int = 5,
    ) -> None:
        try:
            import redis as redis_module  # noqa: PLC0415
        except ImportError as exc:
            raise ImportError(_REDIS_IMPORT_ERROR) from exc

        self._redis = redis_module
        if url is not None:
            self._client = redis_module.Redis.from_url(url, decode_responses=True)
        else:
            self._client = redis_module.Redis(
                host=host,
                port=port,
                db=db,
                password=password,
                decode_responses=True,
            )
        self._key_prefix = key_prefix
        self._watch_retries = watch_retries
        self._serializer = SessionSerializer()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _key(self, session_id: str) -> str:
        return f"{self._key_prefix}session:{session_id}"

    def _owner_key(self, owner_id: str) -> str:
        return f"{self._key_prefix}owner:{owner_id}"

    def _decode(self, raw: str | bytes | None, session_id: str) -> SessionRecord:
        if raw is None:
            raise SessionNotFoundError(session_id)
        return self._serializer.from_json(raw)

    def _call(self, operation: str, func: Callable[[], T]) -> T:
        """Run ``func`` translating connection failures to transient errors."""
        exceptions = self._redis.exceptions
        try:
            return func()
        except (exceptions.ConnectionError, exceptions.TimeoutError) as exc:
            raise TransientStorageError(operation, str(exc)) from exc

    def _optimistic(self, operation: str, body: Callable[[Any], T]) -> T:
        """Run ``body(pipe)`` as a WATCH/MULTI transaction, retrying on contention.

        ``body`` must call ``pipe.watch`` on every key it reads, then
        ``pipe.multi()`` before queueing writes.  Domain errors raised by
        ``body`` abort the transaction without writing anything.
        """
        watch_error = self._redis.exceptions.WatchError

        def attempt() -> T:
            with self._client.pipeline() as pipe:
                for attempt_no in range(1, self._watch_retries + 1):
                    try:
                        result = body(pipe)
                        pipe.execute()
                        return result
                    except watch_error:
                        logger.debug(
                            "RedisStore: %s contended (attempt %d)", operation, attempt_no
                        )
                        pipe.reset()
                        continue
            raise TransientStorageError(operation, "too much contention")

        return self._call(operation, attempt)

    # ------------------------------------------------------------------
    # SessionStore interface
    # ------------------------------------------------------------------

    def get(self, session_id: str) -> SessionRecord:
        raw = self._call("get", lambda: self._client.get(self._key(session_id)))
        return self._decode(raw, session_id)

    def exists(self, session_id: str) -> bool:
        return bool(self._call("exists", lambda: self._client.exists(self._key(session_id))))

    def create(self, record: SessionRecord) -> bool:
        self._validate_new(record)
        key = self._key(record.id)
        owner_key = self._owner_key(record.owner_id)
        encoded = self._serializer.to_json(record)

        def body(pipe: Any) -> bool:
            watched = [key]
            parent_key = None
            if record.parent_id is not None:
                parent_key = self._key(record.parent_id)
                watched.append(parent_key)
            pipe.watch(*watched)
            if pipe.exists(key):
                raise ValueError(f"Session {record.id!r} already exists.")

            parent = None
            if record.parent_id is not None:
                parent = self._decode(pipe.get(parent_key), record.parent_id)
                if parent.child_id is not None:
                    raise LinkConflictError(parent.id, parent.child_id)
                parent.child_id = record.id

            pipe.multi()
            pipe.set(key, encoded)
            pipe.sadd(owner_key, record.id)
            if parent is not None:
                pipe.set(parent_key, self._serializer.to_json(parent))
            return parent is not None

        parent_updated = self._optimistic("create", body)
        logger.debug("RedisStore: created %r (parent=%r)", record.id, record.parent_id)
        return parent_updated

    def update_payload(self, session_id: str, changes: dict[str, Any]) -> SessionRecord:
        self._validate_changes(changes)
        key = self._key(session_id)

        def body(pipe: Any) -> SessionRecord:
            pipe.watch(key)
            current = self._decode(pipe.get(key), session_id)
            updated = SessionRecord.model_validate({**current.model_dump(), **changes})
            pipe.multi()
            pipe.set(key, self._serializer.to_json(updated))
            return updated

        return self._optimistic("update_payload", body)

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

        def body(pipe: Any) -> list[str]:
            pipe.watch(*[self._key(session_id) for session_id in wanted])
            doomed: list[SessionRecord] = []
            for session_id in wanted:
                raw = pipe.get(self._key(session_id))
                if raw is not None:
                    doomed.append(self._serializer.from_json(raw))
            if require_head:
                # A link committed after the WATCH aborts EXEC and re-runs this check.
                self._check_heads(doomed)
            deleted_ids = {record.id for record in doomed}

            neighbors: dict[str, SessionRecord] = {}
            if repair_neighbors:
                for record in doomed:
                    for neighbor_id in (record.parent_id, record.child_id):
                        if neighbor_id is None or neighbor_id in deleted_ids:
                            continue
                        if neighbor_id in neighbors:
                            continue
                        pipe.watch(self._key(neighbor_id))
                        raw = pipe.get(self._key(neighbor_id))
                        if raw is not None:
                            neighbors[neighbor_id] = self._serializer.from_json(raw)
                for neighbor in neighbors.values():
                    if neighbor.child_id in deleted_ids:
                        neighbor.child_id = None
                    if neighbor.parent_id in deleted_ids:
                        neighbor.parent_id = None

            pipe.multi()
            for record in doomed:
                pipe.delete(self._key(record.id))
                pipe.srem(self._owner_key(record.owner_id), record.id)
            for neighbor in neighbors.values():
                pipe.set(self._key(neighbor.id), self._serializer.to_json(neighbor))
            return [record.id for record in doomed]

        return self._optimistic("delete_batch", body)

    def list_for_owner(self, owner_id: str) -> list[SessionRecord]:
        def load() -> list[SessionRecord]:
            session_ids = sorted(self._client.smembers(self._owner_key(owner_id)))
            if not session_ids:
                return []
            raws = self._client.mget([self._key(session_id) for session_id in session_ids])
            return [self._serializer.from_json(raw) for raw in raws if raw is not None]

        records = self._call("list_for_owner", load)
        return self._newest_first([r for r in records if r.owner_id == owner_id])

    def __repr__(self) -> str:
        return f"RedisStore(key_prefix={self._key_prefix!r})"
