"""Drain orchestrator.

A single loop asks the EventStore for the next drain-ready event and drains
it, one event at a time.  Hooks attached to the event are plain data; the
orchestrator executes them through ``_hook_handlers``.

A drain attempt always ends with the event marked processed, whatever
happened against the scheduler: failed or skipped drains are not retried.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Any, Protocol

import structlog

from nodeterm.aws.lifecycle import LifecycleClient
from nodeterm.aws.queue import SQSQueue
from nodeterm.models.events import CompleteLifecycleAction, DrainHook, InterruptionEvent
from nodeterm.models.nodes import SchedulerNode
from nodeterm.observability.metrics import drains_total, hook_executions_total
from nodeterm.store.event_store import EventStore

_log = structlog.get_logger(component="drain.orchestrator")

_NODE_READY = "ready"


class Scheduler(Protocol):
    async def list_nodes(self) -> list[SchedulerNode]: ...

    async def enable_drain(self, node_id: str) -> None: ...


class DrainOutcome(StrEnum):
    """Result of the scheduler part of a drain attempt."""

    DRAINED = "drained"
    SKIPPED_NO_ADDRESS = "skipped_no_address"
    SKIPPED_NOT_FOUND = "skipped_not_found"
    SKIPPED_NOT_READY = "skipped_not_ready"
    FAILED = "failed"


class DrainOrchestrator:
    """Drains scheduler nodes for due interruption events.

    Args:
        store:         Shared event store.
        scheduler:     Scheduler adapter (node list + enable drain).
        lifecycle:     Autoscaling adapter used by lifecycle hooks.
        queue:         Queue adapter used to delete acknowledged messages.
        poll_interval: Seconds to sleep when no event is due.
    """

    def __init__(
        self,
        store: EventStore,
        scheduler: Scheduler,
        lifecycle: LifecycleClient | None = None,
        queue: SQSQueue | None = None,
        poll_interval: float = 1.0,
    ) -> None:
        self._store = store
        self._scheduler = scheduler
        self._lifecycle = lifecycle
        self._queue = queue
        self._poll_interval = poll_interval
        self._hook_handlers: dict[type[Any], Callable[[Any], Awaitable[None]]] = {
            CompleteLifecycleAction: self._complete_lifecycle_action,
        }

    async def run(self, stop: asyncio.Event) -> None:
        """Drain due events until *stop* is set.

        *stop* is only checked between drains, so a drain in flight always
        runs to completion.
        """
        _log.info("drain_loop_started", poll_interval=self._poll_interval)
        while not stop.is_set():
            if not await self.run_once():
                with contextlib.suppress(TimeoutError):
                    await asyncio.wait_for(stop.wait(), timeout=self._poll_interval)
        _log.info("drain_loop_stopped")

    async def run_once(self) -> bool:
        """Drain the next due event, if any.  Returns True if one was handled."""
        event = self._store.get_active_event()
        if event is None:
            return False
        try:
            await self.drain(event)
        except Exception as exc:
            _log.error("drain_unexpected_error", event_id=event.event_id, error=str(exc), exc_info=True)
            self._store.mark_processed(event.event_id)
        return True

    async def drain(self, event: InterruptionEvent) -> DrainOutcome:
        """Run pre-drain hook, scheduler drain and post-drain hook for *event*."""
        if event.pre_drain_task is not None:
            await self._run_hook("pre_drain", event.pre_drain_task, event)

        outcome = await self._drain_node(event)
        drains_total.labels(outcome=outcome.value).inc()

        if event.post_drain_task is not None:
            await self._run_hook("post_drain", event.post_drain_task, event)

        self._store.mark_processed(event.event_id)
        _log.info("event_processed", event_id=event.event_id, outcome=outcome.value)
        return outcome

    async def _drain_node(self, event: InterruptionEvent) -> DrainOutcome:
        if not event.private_ip_address:
            _log.warning("drain_skipped_no_address", event_id=event.event_id, instance_id=event.instance_id)
            return DrainOutcome.SKIPPED_NO_ADDRESS

        _log.info("draining", **event.to_log_dict())
        try:
            nodes = await self._scheduler.list_nodes()
            selected = next((n for n in nodes if n.address == event.private_ip_address), None)
            if selected is None or not selected.id:
                _log.warning("drain_skipped_node_not_found", private_ip_address=event.private_ip_address)
                return DrainOutcome.SKIPPED_NOT_FOUND
            if selected.status != _NODE_READY:
                _log.warning("drain_skipped_node_not_ready", node_id=selected.id, status=selected.status)
                return DrainOutcome.SKIPPED_NOT_READY
            await self._scheduler.enable_drain(selected.id)
        except Exception as exc:
            _log.error("drain_failed", event_id=event.event_id, error=str(exc), exc_info=True)
            return DrainOutcome.FAILED
        return DrainOutcome.DRAINED

    async def _run_hook(self, name: str, hook: DrainHook, event: InterruptionEvent) -> bool:
        handler = self._hook_handlers.get(type(hook))
        if handler is None:
            _log.error("drain_hook_unknown", hook=name, hook_type=type(hook).__name__, event_id=event.event_id)
            hook_executions_total.labels(hook=name, success="false").inc()
            return False
        try:
            await handler(hook)
        except Exception as exc:
            _log.error("drain_hook_failed", hook=name, event_id=event.event_id, error=str(exc), exc_info=True)
            hook_executions_total.labels(hook=name, success="false").inc()
            return False
        hook_executions_total.labels(hook=name, success="true").inc()
        return True

    async def _complete_lifecycle_action(self, action: CompleteLifecycleAction) -> None:
        if self._lifecycle is None or self._queue is None:
            raise RuntimeError("lifecycle acknowledgement requires a lifecycle client and a queue")
        await self._lifecycle.complete_lifecycle_action(action)
        await self._queue.delete(action.receipt_handle)
