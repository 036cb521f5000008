"""Persisted field map handed to each lifecycle call.

ResourceData plays the part of the host framework's state: a map of field
name to value, an identifier slot, the prior snapshot used for change
detection, and the timeouts configured for this invocation.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any

from .config import DEFAULT_CREATE_TIMEOUT_SECONDS, DEFAULT_DELETE_TIMEOUT_SECONDS
from .schema import FIELDS_BY_NAME, empty_value


@dataclass(frozen=True)
class Timeouts:
    """Per-invocation wait limits, in seconds."""

    create: float = DEFAULT_CREATE_TIMEOUT_SECONDS
    delete: float = DEFAULT_DELETE_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        if self.create <= 0:
            raise ValueError(f"create timeout must be positive: {self.create}")
        if self.delete <= 0:
            raise ValueError(f"delete timeout must be positive: {self.delete}")


class ResourceData:
    """Mutable field map for one load balancer instance."""

    def __init__(
        self,
        fields: dict[str, Any] | None = None,
        resource_id: str = "",
        timeouts: Timeouts | None = None,
        prior: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the field map.

        Args:
            fields: Current (desired) field values.
            resource_id: Identifier slot; a work request id or load balancer id.
            timeouts: Wait limits for this invocation.
            prior: Field values as last persisted, for has_change().
        """
        unknown = [name for name in (fields or {}) if name not in FIELDS_BY_NAME]
        if unknown:
            raise KeyError(f"Unknown fields: {sorted(unknown)}")

        self._fields: dict[str, Any] = copy.deepcopy(fields or {})
        self._id = resource_id
        self._prior: dict[str, Any] = copy.deepcopy(prior if prior is not None else self._fields)
        self.timeouts = timeouts or Timeouts()

    @property
    def id(self) -> str:
        """The identifier slot ("" when the resource does not exist)."""
        return self._id

    def set_id(self, value: str) -> None:
        self._id = value

    def get(self, name: str) -> Any:
        """Get a field value, or its zero value if never set."""
        if name not in FIELDS_BY_NAME:
            raise KeyError(f"Unknown field: {name}")
        if name in self._fields:
            return copy.deepcopy(self._fields[name])
        return empty_value(name)

    def get_ok(self, name: str) -> tuple[Any, bool]:
        """Get a field value and whether it is set to a non-zero value."""
        value = self.get(name)
        return value, bool(value)

    def set(self, name: str, value: Any) -> None:
        if name not in FIELDS_BY_NAME:
            raise KeyError(f"Unknown field: {name}")
        self._fields[name] = copy.deepcopy(list(value) if isinstance(value, tuple) else value)

    def has_change(self, name: str) -> bool:
        """Check whether a field differs from the prior snapshot."""
        prior = self._prior.get(name, empty_value(name))
        return self.get(name) != prior

    def to_dict(self) -> dict[str, Any]:
        """Serialize for persistence."""
        return {"id": self._id, "fields": copy.deepcopy(self._fields)}

    @classmethod
    def from_dict(cls, data: dict[str, Any], timeouts: Timeouts | None = None) -> ResourceData:
        """Restore a persisted field map.

        The restored fields are also the prior snapshot.
        """
        fields = data.get("fields") or {}
        if not isinstance(fields, dict):
            raise ValueError("'fields' must be a mapping")
        return cls(fields=fields, resource_id=data.get("id") or "", timeouts=timeouts)

    def __repr__(self) -> str:
        return f"ResourceData(id={self._id!r}, fields={self._fields!r})"
