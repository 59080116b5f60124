"""Session record serialization with schema versioning.

Supports JSON and YAML round-trips.  The schema version is embedded in every
serialised document so that future readers can perform migrations.

Classes
-------
- SchemaVersionError  — unsupported ``schema_version`` on load
- SessionSerializer   — serialize/deserialize SessionRecord to JSON or YAML
"""
from __future__ import annotations

import json
from typing import Any, Iterable, Literal

import yaml

from session_chain.session.record import SessionRecord

_SUPPORTED_SCHEMA_VERSIONS: frozenset[str] = frozenset({"1.0"})


class SchemaVersionError(ValueError):
    """Raised when a serialised document uses an unsupported schema version."""

    def __init__(self, version: str) -> None:
        self.version = version
        supported = ", ".join(sorted(_SUPPORTED_SCHEMA_VERSIONS))
        super().__init__(
            f"Unsupported schema version {version!r}. "
            f"Supported versions: {supported}"
        )


class SessionSerializer:
    """Serialize and deserialize ``SessionRecord`` objects."""

    # ------------------------------------------------------------------
    # JSON
    # ------------------------------------------------------------------

    def to_json(self, record: SessionRecord, *, indent: int | None = None) -> str:
        """Serialise a record to a JSON string.

        Storage backends use the compact form (``indent=None``).
        """
        return json.dumps(record.model_dump(mode="json"), indent=indent, default=str)

    def from_json(self, raw: str | bytes) -> SessionRecord:
        """Deserialize a record from a JSON string.

        Raises
        ------
        SchemaVersionError
            If the ``schema_version`` field is not in the supported set.
        json.JSONDecodeError
            If ``raw`` is not valid JSON.
        """
        data: dict[str, Any] = json.loads(raw)
        return self._deserialize(data)

    # ------------------------------------------------------------------
    # YAML
    # ------------------------------------------------------------------

    def to_yaml(self, record: SessionRecord) -> str:
        """Serialise a record to a YAML string."""
        data = record.model_dump(mode="json")
        return yaml.dump(data, default_flow_style=False, allow_unicode=True, sort_keys=True)

    def from_yaml(self, raw: str) -> SessionRecord:
        """Deserialize a record from a YAML string."""
        data: dict[str, Any] = yaml.safe_load(raw)
        return self._deserialize(data)

    # ------------------------------------------------------------------
    # Plain mappings
    # ------------------------------------------------------------------

    def from_dict(self, data: dict[str, Any]) -> SessionRecord:
        """Validate an already-decoded mapping (e.g. a database row)."""
        return self._deserialize(data)

    # ------------------------------------------------------------------
    # Chains
    # ------------------------------------------------------------------

    def dump_many(
        self,
        records: Iterable[SessionRecord],
        format: Literal["json", "yaml"] = "json",
    ) -> str:
        """Serialise an ordered sequence of records as one document."""
        data = [record.model_dump(mode="json") for record in records]
        if format == "yaml":
            return yaml.dump(data, default_flow_style=False, allow_unicode=True, sort_keys=True)
        return json.dumps(data, indent=2, default=str)

    # ------------------------------------------------------------------
    # Format dispatch
    # ------------------------------------------------------------------

    def serialize(
        self, record: SessionRecord, format: Literal["json", "yaml"] = "json"
    ) -> str:
        if format == "yaml":
            return self.to_yaml(record)
        return self.to_json(record, indent=2)

    def deserialize(
        self, raw: str, format: Literal["json", "yaml"] = "json"
    ) -> SessionRecord:
        if format == "yaml":
            return self.from_yaml(raw)
        return self.from_json(raw)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _deserialize(self, data: dict[str, Any]) -> SessionRecord:
        version = str(data.get("schema_version", ""))
        if version not in _SUPPORTED_SCHEMA_VERSIONS:
            raise SchemaVersionError(version)
        return SessionRecord.model_validate(data)
