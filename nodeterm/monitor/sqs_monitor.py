"""SQS monitor: long-polls the notification queue into the EventStore.

Each message is handled independently.  A message whose mapping fails is left
on the queue so that the visibility timeout redelivers it; a message that maps
to nothing actionable is deleted immediately; a message that produced events
stays until an event's post-drain hook deletes it.

If every message of a non-empty batch fails, BatchProcessingError escapes
``run`` and the application treats it as fatal.  Errors from the poll itself
are logged and retried after a fixed back-off.
"""

from __future__ import annotations

import asyncio
import contextlib

import structlog

from nodeterm.aws.queue import QueueMessage, SQSQueue
from nodeterm.models.config import QueueConfig
from nodeterm.models.envelope import EventEnvelope
from nodeterm.monitor.base import Monitor
from nodeterm.monitor.errors import (
    BatchProcessingError,
    EventProcessingError,
    MessageDecodeError,
    MonitorError,
)
from nodeterm.monitor.mappers import MappingResult, NodeResolver, map_envelope
from nodeterm.observability.metrics import queue_messages_total
from nodeterm.store.event_store import EventStore

_log = structlog.get_logger(component="monitor.sqs")

SQS_MONITOR_KIND = "SQS_MONITOR"


class SQSMonitor(Monitor):
    """Turns queue messages into interruption events.

    Args:
        queue:    Queue adapter to poll and delete from.
        resolver: Node identity resolver used by the mappers.
        store:    Event store receiving the produced events.
        config:   Poll batch size, wait time and error back-off.
    """

    def __init__(
        self,
        queue: SQSQueue,
        resolver: NodeResolver,
        store: EventStore,
        config: QueueConfig | None = None,
    ) -> None:
        self._queue = queue
        self._resolver = resolver
        self._store = store
        self._config = config or QueueConfig()

    @property
    def kind(self) -> str:
        return SQS_MONITOR_KIND

    async def run(self, stop: asyncio.Event) -> None:
        _log.info("monitor_started", kind=self.kind, queue_url=self._queue.queue_url)
        while not stop.is_set():
            try:
                await self.poll_once()
            except BatchProcessingError:
                raise
            except Exception as exc:
                _log.error("queue_poll_failed", error=str(exc), exc_info=True)
                await _sleep_unless_stopped(stop, self._config.error_backoff_seconds)
        _log.info("monitor_stopped", kind=self.kind)

    async def poll_once(self) -> None:
        """Receive one batch and process every message in it.

        Raises:
            BatchProcessingError: if the batch is non-empty and no message
                                  could be processed.
        """
        _log.debug("checking_for_queue_messages")
        messages = await self._queue.receive(
            max_messages=self._config.max_messages,
            wait_seconds=self._config.wait_seconds,
            visibility_timeout=self._config.visibility_timeout,
        )
        queue_messages_total.labels(outcome="received").inc(len(messages))

        failed = 0
        for message in messages:
            if not await self.process_message(message):
                failed += 1

        if messages and failed == len(messages):
            raise BatchProcessingError(len(messages))

    async def process_message(self, message: QueueMessage) -> bool:
        """Decode, map and record one message.  Returns False if it failed."""
        try:
            envelope = self.decode(message)
            results = await map_envelope(envelope, message, self._resolver)
            await self.process_interruption_events(results, message)
        except MessageDecodeError as exc:
            _log.warning("queue_message_skipped", message_id=message.message_id, error=str(exc))
        except MonitorError as exc:
            _log.error("interruption_events_failed", message_id=message.message_id, error=str(exc))
        except Exception as exc:
            _log.error("queue_message_failed", message_id=message.message_id, error=str(exc), exc_info=True)
        else:
            return True
        queue_messages_total.labels(outcome="failed").inc()
        return False

    @staticmethod
    def decode(message: QueueMessage) -> EventEnvelope:
        try:
            return EventEnvelope.from_json(message.body)
        except ValueError as exc:
            raise MessageDecodeError(message.message_id, exc) from exc

    async def process_interruption_events(self, results: list[MappingResult], message: QueueMessage) -> None:
        """Hand events to the store and settle the source message.

        Raises:
            EventProcessingError: if any result carried an error.  The message
                                  is left on the queue in that case.
        """
        empty = 0
        failed = 0
        for result in results:
            if result.error is not None:
                _log.error(
                    "interruption_event_error",
                    message_id=message.message_id,
                    error=str(result.error),
                    error_type=type(result.error).__name__,
                )
                failed += 1
            elif result.event is None:
                empty += 1
            elif not self._store.add_interruption_event(result.event):
                # Another delivery of a known notification.
                if self._store.record_redelivery(result.event.event_id, message.receipt_handle):
                    empty += 1

        if empty == len(results):
            await self._queue.delete(message.receipt_handle)
            queue_messages_total.labels(outcome="deleted").inc()
            _log.debug("queue_message_dropped", message_id=message.message_id)

        if failed:
            raise EventProcessingError(message.message_id, failed)


async def _sleep_unless_stopped(stop: asyncio.Event, seconds: float) -> None:
    with contextlib.suppress(TimeoutError):
        await asyncio.wait_for(stop.wait(), timeout=seconds)
