"""Shared fixtures for the session-chain test suite."""
from __future__ import annotations

from pathlib import Path

import pytest

from session_chain.storage.base import SessionStore
from session_chain.storage.memory import InMemoryStore
from session_chain.storage.sqlite import SQLiteStore


@pytest.fixture(params=["memory", "sqlite"])
def store(request: pytest.FixtureRequest, tmp_path: Path) -> SessionStore:
    """Every local store, so chain behaviour is checked against each."""
    if request.param == "memory":
        return InMemoryStore()
    return SQLiteStore(db_path=tmp_path / "sessions.db")
