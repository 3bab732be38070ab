"""Interruption event data structures and enumerations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import StrEnum


class EventKind(StrEnum):
    """Kind of cloud notification an interruption event was built from."""

    STATE_CHANGE = "StateChange"
    ASG_TERMINATION = "ASGTermination"
    HEALTH = "Health"


class MonitorKind(StrEnum):
    """Ingestion path that produced an interruption event."""

    SQS_MONITOR = "SqsMonitor"


@dataclass(frozen=True)
class CompleteLifecycleAction:
    """Acknowledge an autoscaling lifecycle hook, then delete the source message.

    Pure data: the drain orchestrator looks the hook type up in its dispatch
    table and performs the calls.  ``receipt_handle`` identifies the queue
    message that carried the termination notification.
    """

    auto_scaling_group_name: str
    lifecycle_hook_name: str
    lifecycle_action_token: str
    instance_id: str
    receipt_handle: str
    result: str = "CONTINUE"


# Every hook variant the orchestrator knows how to execute.
DrainHook = CompleteLifecycleAction


@dataclass
class InterruptionEvent:
    """Normalized record of an impending loss of a compute instance.

    Created by a monitor, owned by the EventStore afterwards.  Lifecycle flags
    only ever move forward: ``in_progress`` is set when the orchestrator claims
    the event and ``node_processed`` once the drain attempt has finished.
    """

    event_id: str
    kind: EventKind
    monitor: MonitorKind
    start_time: datetime
    node_name: str = ""
    instance_id: str = ""
    provider_id: str = ""
    private_ip_address: str = ""
    auto_scaling_group_name: str = ""
    is_managed: bool = False
    description: str = ""
    state: str = ""
    end_time: datetime | None = None
    node_labels: dict[str, str] = field(default_factory=dict)
    in_progress: bool = False
    node_processed: bool = False
    pre_drain_task: DrainHook | None = None
    post_drain_task: DrainHook | None = None

    def time_until_event(self, now: datetime | None = None) -> timedelta:
        """Return how long until the interruption itself takes place."""
        return self.start_time - (now or datetime.now(tz=UTC))

    def is_rebalance_recommendation(self) -> bool:
        return "rebalance-recommendation" in self.event_id

    def to_log_dict(self) -> dict[str, object]:
        """Flatten the event for structured logging."""
        return {
            "event_id": self.event_id,
            "kind": self.kind.value,
            "monitor": self.monitor.value,
            "node_name": self.node_name,
            "instance_id": self.instance_id,
            "private_ip_address": self.private_ip_address,
            "auto_scaling_group_name": self.auto_scaling_group_name,
            "start_time": self.start_time.isoformat(),
            "in_progress": self.in_progress,
            "node_processed": self.node_processed,
        }
