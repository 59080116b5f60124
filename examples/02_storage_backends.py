#!/usr/bin/env python3
"""Example: Storage Backends

Runs the same follow-up flow against each available store.  The Redis
store is skipped when the ``redis`` package is missing or no server
answers on localhost.

Usage:
    python examples/02_storage_backends.py

Requirements:
    pip install session-chain
    pip install "session-chain[redis]"   # optional
"""
from __future__ import annotations

import tempfile
from pathlib import Path

from session_chain import (
    InMemoryStore,
    RedisStore,
    SessionChainService,
    SessionStore,
    SQLiteStore,
    TransientStorageError,
)


def run_flow(label: str, store: SessionStore) -> None:
    service = SessionChainService(store)
    owner = "demo-user"
    root = service.create_session({"job_context": {"role": "SRE"}}, owner)
    service.create_session({}, owner, parent_id=root.session_id)
    chain = service.chain_for_session(root.session_id, owner)
    print(f"[{label}] {store!r}: chain of {len(chain)} -> {chain.ids}")
    service.delete_session(root.session_id, owner, cascade=True)


def main() -> None:
    run_flow("memory", InMemoryStore())

    with tempfile.TemporaryDirectory() as tmp:
        run_flow("sqlite", SQLiteStore(db_path=Path(tmp) / "sessions.db"))

    try:
        run_flow("redis", RedisStore(url="redis://localhost:6379/0", key_prefix="example:"))
    except ImportError as exc:
        print(f"[redis] skipped: {exc}")
    except TransientStorageError as exc:
        print(f"[redis] skipped: {exc}")


if __name__ == "__main__":
    main()
