"""Node identity and scheduler node records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class NodeInfo:
    """Identity and ownership metadata for a cloud instance."""

    instance_id: str
    name: str = ""
    asg_name: str = ""
    provider_id: str = ""
    private_ip_address: str = ""
    is_managed: bool = False
    tags: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SchedulerNode:
    """One entry of the scheduler's node list."""

    id: str
    address: str
    status: str
    drain: bool = False

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> SchedulerNode:
        return cls(
            id=str(raw.get("ID") or raw.get("Id") or ""),
            address=str(raw.get("Address") or ""),
            status=str(raw.get("Status") or ""),
            drain=bool(raw.get("Drain", False)),
        )
