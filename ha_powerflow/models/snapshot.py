# ha_powerflow/models/snapshot.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from ha_powerflow.models.entity import EntityKind


UNAVAILABLE = "---"
FETCH_FAILED = "N/A"


class ConnectionStatus(Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"   # nothing configured
    ERROR = "error"                 # attempted, nothing succeeded

    @property
    def label(self) -> str:
        return {
            ConnectionStatus.CONNECTED: "Connected",
            ConnectionStatus.DISCONNECTED: "Disconnected",
            ConnectionStatus.ERROR: "Connection Error",
        }[self]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ValueSnapshot:
    """Formatted values for every EntityKind at one point in time.

    Built once per tick and never mutated afterwards; the coordinator swaps
    the whole object when it publishes.
    """

    values: Mapping[EntityKind, str]
    status: ConnectionStatus
    generation: int = 0
    timestamp: datetime = field(default_factory=_utcnow)
    attempted: int = 0
    succeeded: int = 0
    errors: Mapping[EntityKind, str] = field(default_factory=dict)

    def __post_init__(self):
        full = {kind: self.values.get(kind, UNAVAILABLE) for kind in EntityKind}
        object.__setattr__(self, "values", MappingProxyType(full))
        object.__setattr__(self, "errors", MappingProxyType(dict(self.errors)))

    @classmethod
    def unavailable(cls, status: ConnectionStatus, generation: int = 0, **kwargs) -> "ValueSnapshot":
        return cls(
            values={kind: UNAVAILABLE for kind in EntityKind},
            status=status,
            generation=generation,
            **kwargs,
        )

    def value(self, kind: EntityKind) -> str:
        return self.values[kind]

    def as_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "generation": self.generation,
            "status": self.status.value,
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "values": {kind.key: text for kind, text in self.values.items()},
            "errors": {kind.key: reason for kind, reason in self.errors.items()},
        }
