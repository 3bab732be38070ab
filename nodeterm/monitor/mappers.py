"""Envelope -> InterruptionEvent mappers, one per notification source.

Each mapper returns zero or more MappingResult entries.  A result carries an
event, an error, or neither; "neither" means the notification needs no action
and its message can be deleted straight away.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

import structlog

from nodeterm.aws.queue import QueueMessage
from nodeterm.models.envelope import AsgTerminationDetail, EventEnvelope, StateChangeDetail
from nodeterm.models.events import CompleteLifecycleAction, EventKind, InterruptionEvent, MonitorKind
from nodeterm.models.nodes import NodeInfo
from nodeterm.monitor.errors import UnsupportedSourceError

_log = structlog.get_logger(component="monitor.mappers")

SOURCE_AUTOSCALING = "aws.autoscaling"
SOURCE_EC2 = "aws.ec2"
SOURCE_HEALTH = "aws.health"

ASG_TERMINATION_EVENT_PREFIX = "asg-termination-event"
STATE_CHANGE_EVENT_PREFIX = "ec2-state-change-event"

STATES_TO_DRAIN = frozenset({"stopping", "stopped", "shutting-down", "terminated"})


class NodeResolver(Protocol):
    async def resolve(self, instance_id: str) -> NodeInfo: ...


@dataclass(frozen=True)
class MappingResult:
    """Outcome of mapping one notification."""

    event: InterruptionEvent | None = None
    error: Exception | None = None

    @property
    def is_empty(self) -> bool:
        return self.event is None and self.error is None


Mapper = Callable[[EventEnvelope, QueueMessage, NodeResolver], Awaitable[list[MappingResult]]]


async def map_asg_termination(
    envelope: EventEnvelope,
    message: QueueMessage,
    resolver: NodeResolver,
) -> list[MappingResult]:
    """Build an ASGTermination event whose post-drain hook acks the lifecycle hook.

    The source message is deleted only by that hook, so the notification is
    redelivered if the process dies before the drain finishes.
    """
    detail = AsgTerminationDetail.from_json(envelope.detail)
    node = await resolver.resolve(detail.ec2_instance_id)

    event = InterruptionEvent(
        event_id=f"{ASG_TERMINATION_EVENT_PREFIX}-{envelope.id}",
        kind=EventKind.ASG_TERMINATION,
        monitor=MonitorKind.SQS_MONITOR,
        start_time=envelope.time,
        node_name=node.name,
        instance_id=detail.ec2_instance_id,
        provider_id=node.provider_id,
        private_ip_address=node.private_ip_address,
        auto_scaling_group_name=node.asg_name,
        is_managed=node.is_managed,
        node_labels=dict(node.tags),
        description=f"ASG Termination event received. Instance {detail.ec2_instance_id} is terminating.",
        post_drain_task=CompleteLifecycleAction(
            auto_scaling_group_name=detail.auto_scaling_group_name,
            lifecycle_hook_name=detail.lifecycle_hook_name,
            lifecycle_action_token=detail.lifecycle_action_token,
            instance_id=detail.ec2_instance_id,
            receipt_handle=message.receipt_handle,
        ),
    )
    return [MappingResult(event=event)]


async def map_state_change(
    envelope: EventEnvelope,
    message: QueueMessage,
    resolver: NodeResolver,
) -> list[MappingResult]:
    """Build a StateChange event for instances that are going away."""
    detail = StateChangeDetail.from_json(envelope.detail)
    if detail.state.lower() not in STATES_TO_DRAIN:
        _log.debug("state_change_ignored", instance_id=detail.instance_id, state=detail.state)
        return [MappingResult()]

    node = await resolver.resolve(detail.instance_id)

    event = InterruptionEvent(
        event_id=f"{STATE_CHANGE_EVENT_PREFIX}-{envelope.id}",
        kind=EventKind.STATE_CHANGE,
        monitor=MonitorKind.SQS_MONITOR,
        start_time=envelope.time,
        node_name=node.name,
        instance_id=detail.instance_id,
        provider_id=node.provider_id,
        private_ip_address=node.private_ip_address,
        auto_scaling_group_name=node.asg_name,
        is_managed=node.is_managed,
        node_labels=dict(node.tags),
        state=detail.state,
        description=(
            f"EC2 State Change event received. Instance {detail.instance_id} went into "
            f"{detail.state} at {envelope.time.isoformat()}"
        ),
    )
    return [MappingResult(event=event)]


async def map_health(
    envelope: EventEnvelope,
    message: QueueMessage,
    resolver: NodeResolver,
) -> list[MappingResult]:
    # AWS Health events are accepted but not acted on yet.
    _log.debug("health_event_received", detail_type=envelope.detail_type, envelope_id=envelope.id)
    return []


MAPPERS: dict[str, Mapper] = {
    SOURCE_AUTOSCALING: map_asg_termination,
    SOURCE_EC2: map_state_change,
    SOURCE_HEALTH: map_health,
}


async def map_envelope(
    envelope: EventEnvelope,
    message: QueueMessage,
    resolver: NodeResolver,
    mappers: dict[str, Mapper] | None = None,
) -> list[MappingResult]:
    """Dispatch *envelope* to the mapper for its source.

    Never raises: a mapper failure or an unknown source becomes an error result.
    """
    table = MAPPERS if mappers is None else mappers
    mapper = table.get(envelope.source)
    if mapper is None:
        return [MappingResult(error=UnsupportedSourceError(envelope.source))]
    try:
        return await mapper(envelope, message, resolver)
    except Exception as exc:
        return [MappingResult(error=exc)]
