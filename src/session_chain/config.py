"""Runtime configuration for session chain operations.

Classes
-------
- ChainConfig  — traversal bounds and delete/link policies
"""
from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, Field

DEFAULT_MAX_DEPTH = 20


class ChainConfig(BaseModel):
    """Configuration parameters shared by the chain components.

    Parameters
    ----------
    max_depth:
        Maximum number of pointer hops followed in one direction by any
        traversal (cascade collection, reconstruction, spaces overview).
        Default: 20.
    repair_dangling_links:
        When True, a non-cascading delete also clears the neighbouring
        ``child_id`` / ``parent_id`` pointers in the same atomic batch.
        When False (default) neighbours keep a dangling reference, which
        every reader tolerates.
    redis_watch_retries:
        Number of optimistic-transaction attempts the Redis store makes
        before giving up with ``TransientStorageError``.  Default: 5.
    """

    max_depth: int = Field(default=DEFAULT_MAX_DEPTH, ge=1)
    repair_dangling_links: bool = False
    redis_watch_retries: int = Field(default=5, ge=1)

    model_config = {"frozen": True}

    @classmethod
    def from_yaml(cls, path: str | Path) -> ChainConfig:
        """Load configuration from a YAML mapping.

        Missing keys fall back to defaults.  An empty file yields the
        default configuration.

        Raises
        ------
        ValueError
            If the document is not a mapping.
        """
        data = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ValueError(f"Config file {str(path)!r} must contain a mapping.")
        return cls.model_validate(data)
