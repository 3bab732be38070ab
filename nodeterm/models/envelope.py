"""Queue message envelope and source-specific detail payloads.

The envelope is the EventBridge shape delivered through SQS.  Its ``detail``
object is kept as raw JSON text so that each mapper decodes only the payload
it understands.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any


def _parse_time(value: Any) -> datetime:
    if not isinstance(value, str) or not value:
        raise ValueError(f"Envelope time must be an RFC3339 string, got: {value!r}")
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def _load_object(raw: str, what: str) -> dict[str, Any]:
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError(f"{what} must be a JSON object")
    return data


@dataclass(frozen=True)
class EventEnvelope:
    """Generic notification envelope decoded from a queue message body."""

    id: str
    source: str
    detail_type: str
    time: datetime
    detail: str
    version: str = ""
    account: str = ""
    region: str = ""

    @classmethod
    def from_json(cls, body: str) -> EventEnvelope:
        """Decode a message body.

        Raises:
            ValueError: if the body is not a JSON object or lacks a valid time.
        """
        data = _load_object(body, "Message body")
        return cls(
            id=str(data.get("id") or ""),
            source=str(data.get("source") or ""),
            detail_type=str(data.get("detail-type") or ""),
            time=_parse_time(data.get("time")),
            detail=json.dumps(data.get("detail")),
            version=str(data.get("version") or ""),
            account=str(data.get("account") or ""),
            region=str(data.get("region") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "id": self.id,
            "detail-type": self.detail_type,
            "source": self.source,
            "account": self.account,
            "time": self.time.isoformat().replace("+00:00", "Z"),
            "region": self.region,
            "detail": json.loads(self.detail),
        }


@dataclass(frozen=True)
class AsgTerminationDetail:
    """Detail of an ``EC2 Instance-terminate Lifecycle Action`` notification."""

    ec2_instance_id: str
    auto_scaling_group_name: str
    lifecycle_hook_name: str
    lifecycle_action_token: str

    @classmethod
    def from_json(cls, raw: str) -> AsgTerminationDetail:
        data = _load_object(raw, "ASG termination detail")
        return cls(
            ec2_instance_id=str(data.get("EC2InstanceId") or ""),
            auto_scaling_group_name=str(data.get("AutoScalingGroupName") or ""),
            lifecycle_hook_name=str(data.get("LifecycleHookName") or ""),
            lifecycle_action_token=str(data.get("LifecycleActionToken") or ""),
        )


@dataclass(frozen=True)
class StateChangeDetail:
    """Detail of an ``EC2 Instance State-change Notification``."""

    instance_id: str
    state: str

    @classmethod
    def from_json(cls, raw: str) -> StateChangeDetail:
        data = _load_object(raw, "EC2 state change detail")
        return cls(
            instance_id=str(data.get("InstanceID") or data.get("instance-id") or ""),
            state=str(data.get("State") or data.get("state") or ""),
        )
