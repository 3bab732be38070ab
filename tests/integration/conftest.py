"""Fixtures wiring monitor, store and orchestrator with in-memory fakes.

The fakes record every external call so the end-to-end tests can assert on
exactly what was sent to the queue, the scheduler and the autoscaling API.
"""

from __future__ import annotations

import asyncio
import dataclasses
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest

from nodeterm.aws.instances import NodeInfoNotFoundError
from nodeterm.aws.queue import QueueMessage
from nodeterm.drain.orchestrator import DrainOrchestrator
from nodeterm.models.config import QueueConfig
from nodeterm.models.events import CompleteLifecycleAction
from nodeterm.models.nodes import NodeInfo, SchedulerNode
from nodeterm.monitor.sqs_monitor import SQSMonitor
from nodeterm.store.event_store import EventStore
from tests.conftest import make_node_info

T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)
GRACE_SECONDS = 60
CLEANING_PERIOD = 5


class FakeClock:
    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@dataclass
class FakeQueue:
    """SQS stand-in.  Received messages stay in flight until deleted with
    their latest receipt handle; ``redeliver`` returns them to the queue the
    way an expired visibility timeout does, each with a fresh handle.
    """

    queue_url: str = "https://sqs.us-east-1.amazonaws.com/123456789012/nomad-node-term"
    pending: list[QueueMessage] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    in_flight: dict[str, QueueMessage] = field(default_factory=dict)
    _deliveries: int = 0

    async def receive(self, max_messages: int = 10, wait_seconds: int = 20, visibility_timeout: int = 20):
        if not self.pending:
            await asyncio.sleep(0.005)
        batch, self.pending = self.pending[:max_messages], self.pending[max_messages:]
        for message in batch:
            self.in_flight[message.message_id] = message
        return batch

    async def delete(self, receipt_handle: str) -> None:
        self.deleted.append(receipt_handle)
        for message_id, message in list(self.in_flight.items()):
            if message.receipt_handle == receipt_handle:
                del self.in_flight[message_id]

    def redeliver(self) -> None:
        for message in self.in_flight.values():
            self._deliveries += 1
            handle = f"{message.message_id}-redelivery-{self._deliveries}"
            self.pending.append(dataclasses.replace(message, receipt_handle=handle))


@dataclass
class FakeResolver:
    nodes: dict[str, NodeInfo] = field(default_factory=dict)
    calls: list[str] = field(default_factory=list)

    async def resolve(self, instance_id: str) -> NodeInfo:
        self.calls.append(instance_id)
        if instance_id not in self.nodes:
            raise NodeInfoNotFoundError(instance_id, "no reservations found")
        return self.nodes[instance_id]


@dataclass
class FakeScheduler:
    nodes: list[SchedulerNode] = field(default_factory=list)
    drained: list[str] = field(default_factory=list)

    async def list_nodes(self) -> list[SchedulerNode]:
        return list(self.nodes)

    async def enable_drain(self, node_id: str) -> None:
        self.drained.append(node_id)


@dataclass
class FakeLifecycle:
    completed: list[CompleteLifecycleAction] = field(default_factory=list)

    async def complete_lifecycle_action(self, action: CompleteLifecycleAction) -> None:
        self.completed.append(action)


@dataclass
class Pipeline:
    clock: FakeClock
    queue: FakeQueue
    resolver: FakeResolver
    scheduler: FakeScheduler
    lifecycle: FakeLifecycle
    store: EventStore
    monitor: SQSMonitor
    orchestrator: DrainOrchestrator


@pytest.fixture()
def pipeline() -> Pipeline:
    clock = FakeClock()
    queue = FakeQueue()
    resolver = FakeResolver(nodes={"i-1": make_node_info("i-1", "10.0.0.1")})
    scheduler = FakeScheduler(nodes=[SchedulerNode(id="node-a", address="10.0.0.1", status="ready")])
    lifecycle = FakeLifecycle()
    store = EventStore(grace_period_seconds=GRACE_SECONDS, clock=clock, cleaning_period=CLEANING_PERIOD)
    monitor = SQSMonitor(queue, resolver, store, QueueConfig(error_backoff_seconds=0.01))  # type: ignore[arg-type]
    orchestrator = DrainOrchestrator(store, scheduler, lifecycle, queue, poll_interval=0.01)  # type: ignore[arg-type]
    return Pipeline(clock, queue, resolver, scheduler, lifecycle, store, monitor, orchestrator)
