"""Value types threaded through one emission: the call context and per-device state."""

from __future__ import annotations

import copy
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from typing import Any


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class SimulationContext:
    """Identity of one emission. Every attribute feeds the value seed."""

    org_id: str
    site_id: str
    unit_id: str
    device_instance_id: str
    emission_sequence: int

    def seed_parts(self) -> tuple[str, ...]:
        return (
            self.org_id,
            self.site_id,
            self.unit_id,
            self.device_instance_id,
            str(self.emission_sequence),
        )


@dataclass(frozen=True)
class DeviceSimulationState:
    device_instance_id: str
    profile_id: str = ""
    f_cnt: int = 0
    emission_sequence: int = 0
    counters: dict[str, int] = field(default_factory=dict)
    last_values: dict[str, Any] = field(default_factory=dict)
    last_emitted_at: str | None = None
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)

    def evolve(self, **changes: Any) -> "DeviceSimulationState":
        """Copy with *changes* applied; mapping fields are never shared with the original."""

        changes.setdefault("counters", dict(self.counters))
        changes.setdefault("last_values", copy.deepcopy(self.last_values))
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DeviceSimulationState":
        return cls(
            device_instance_id=str(data["device_instance_id"]),
            profile_id=str(data.get("profile_id") or ""),
            f_cnt=int(data.get("f_cnt", 0)),
            emission_sequence=int(data.get("emission_sequence", 0)),
            counters={str(k): int(v) for k, v in (data.get("counters") or {}).items()},
            last_values=dict(data.get("last_values") or {}),
            last_emitted_at=data.get("last_emitted_at"),
            created_at=data.get("created_at") or utc_now_iso(),
            updated_at=data.get("updated_at") or utc_now_iso(),
        )
