"""In-memory interruption event store.

All event-map access goes through ``_lock``; the ignore set has its own lock
because it is append-only and never takes part in a read-then-claim.  When
both are needed, ``_lock`` is always acquired first.

Maintenance is driven by call counts on ``get_active_event`` rather than a
timer: every ``cleaning_period`` calls the processed events are dropped, and
every ``logging_period`` calls the store logs its size.  Ids of collected
events are remembered for ``retention`` so a late redelivery of their
notification is recognised as a duplicate instead of being drained again.
"""

from __future__ import annotations

import copy
import dataclasses
import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import structlog

from nodeterm.models.events import CompleteLifecycleAction, InterruptionEvent
from nodeterm.observability.metrics import drainable_events, event_store_size, interruption_events_total

_log = structlog.get_logger(component="store.event_store")

_CLEANING_PERIOD = 7200
_LOGGING_PERIOD = 1800
# SQS maximum message retention.
_RETENTION = timedelta(days=14)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class EventStore:
    """Thread-safe ledger of interruption events.

    Args:
        grace_period_seconds: How long before an event's start time it
                              becomes drain-ready.
        cleaning_period:      ``get_active_event`` calls between garbage
                              collections of processed events.
        logging_period:       ``get_active_event`` calls between statistics
                              log lines.
        retention:            How long the ids of collected events are remembered.
        clock:                Returns the current UTC time.  Injectable for tests.
    """

    def __init__(
        self,
        grace_period_seconds: int = 60,
        cleaning_period: int = _CLEANING_PERIOD,
        logging_period: int = _LOGGING_PERIOD,
        clock: Callable[[], datetime] = _utcnow,
        retention: timedelta = _RETENTION,
    ) -> None:
        self._grace_period = timedelta(seconds=grace_period_seconds)
        self._cleaning_period = cleaning_period
        self._logging_period = logging_period
        self._clock = clock
        self._retention = retention

        self._lock = threading.Lock()
        self._ignored_lock = threading.Lock()
        self._events: dict[str, InterruptionEvent] = {}
        self._ignored: set[str] = set()
        self._collected: dict[str, datetime] = {}
        self._at_least_one_event = False
        self._calls_since_last_clean = 0
        self._calls_since_last_log = 0

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_interruption_event(self, event: InterruptionEvent) -> bool:
        """Track *event* unless its id is tracked or was recently collected.

        Returns True when the event was inserted, False for a duplicate.
        """
        with self._lock:
            if event.event_id in self._events or event.event_id in self._collected:
                _log.debug("duplicate_event_ignored", event_id=event.event_id)
                return False

            _log.info("event_added", **event.to_log_dict())
            self._events[event.event_id] = event
            interruption_events_total.labels(kind=event.kind.value).inc()
            event_store_size.set(len(self._events))

            if not self._is_ignored(event.event_id):
                self._at_least_one_event = True
            return True

    def cancel_interruption_event(self, event_id: str) -> None:
        """Stop tracking an event, e.g. when its notification was withdrawn."""
        with self._lock:
            if self._events.pop(event_id, None) is not None:
                _log.info("event_cancelled", event_id=event_id)
                event_store_size.set(len(self._events))

    def ignore_event(self, event_id: str) -> None:
        """Permanently exclude *event_id* from drain-readiness."""
        if not event_id:
            return
        with self._ignored_lock:
            self._ignored.add(event_id)

    def mark_processed(self, event_id: str) -> None:
        """Record that the drain attempt for *event_id* has finished."""
        with self._lock:
            event = self._events.get(event_id)
            if event is not None:
                event.in_progress = True
                event.node_processed = True

    def record_redelivery(self, event_id: str, receipt_handle: str) -> bool:
        """Settle another delivery of a notification that is already known.

        While the event waits for its drain, its lifecycle hook is pointed at
        *receipt_handle* so the acknowledgement deletes the newest copy.

        Returns True when the event has already been handled (processed or
        collected) and the redelivered message can be deleted.
        """
        with self._lock:
            event = self._events.get(event_id)
            if event is None or event.node_processed:
                _log.debug("redelivery_of_handled_event", event_id=event_id)
                return True
            if not event.in_progress and isinstance(event.post_drain_task, CompleteLifecycleAction):
                event.post_drain_task = dataclasses.replace(event.post_drain_task, receipt_handle=receipt_handle)
                _log.debug("receipt_handle_refreshed", event_id=event_id)
            return False

    def mark_all_as_processed(self, node_name: str) -> None:
        """Mark every event targeting *node_name* as processed."""
        with self._lock:
            for event in self._events.values():
                if event.node_name == node_name:
                    event.node_processed = True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_active_event(self) -> InterruptionEvent | None:
        """Claim and return a drain-ready event, or None.

        The claim (``in_progress = True``) happens under the store lock, so two
        concurrent callers never receive the same event.  The returned object
        is a snapshot; report completion through ``mark_processed``.
        Scan order follows insertion order but callers must not rely on it.
        """
        self._clean_periodically()
        self._log_periodically()

        with self._lock:
            for event in self._events.values():
                if self._should_event_drain(event):
                    event.in_progress = True
                    return copy.copy(event)
            return None

    def should_drain_node(self) -> bool:
        """Return True if any tracked event is drain-ready.  Claims nothing."""
        with self._lock:
            return any(self._should_event_drain(e) for e in self._events.values())

    def should_uncordon_node(self, node_name: str) -> bool:
        """Return True once no live, unignored event targets *node_name*.

        Always False until at least one unignored event has been recorded.
        """
        with self._lock:
            if not self._at_least_one_event:
                return False
            if not self._events:
                return True
            for event in self._events.values():
                if event.node_name == node_name and not self._is_ignored(event.event_id):
                    return False
            return True

    def time_until_drain(self, event: InterruptionEvent) -> timedelta:
        """Return the time left before *event* may be drained (negative once due)."""
        drain_time = event.start_time - self._grace_period
        return drain_time - self._clock()

    def get(self, event_id: str) -> InterruptionEvent | None:
        """Return a snapshot of a tracked event."""
        with self._lock:
            event = self._events.get(event_id)
            return copy.copy(event) if event is not None else None

    @property
    def at_least_one_event(self) -> bool:
        with self._lock:
            return self._at_least_one_event

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    # ------------------------------------------------------------------
    # Internals (callers hold the locks noted)
    # ------------------------------------------------------------------

    def _is_ignored(self, event_id: str) -> bool:
        with self._ignored_lock:
            return event_id in self._ignored

    def _should_event_drain(self, event: InterruptionEvent) -> bool:
        # _lock held
        if self._is_ignored(event.event_id):
            return False
        if event.in_progress or event.node_processed:
            return False
        return self.time_until_drain(event) <= timedelta(0)

    def _clean_periodically(self) -> None:
        with self._lock:
            self._calls_since_last_clean += 1
            if self._calls_since_last_clean < self._cleaning_period:
                return

            _log.info("event_store_garbage_collecting")
            now = self._clock()
            processed = [event_id for event_id, e in self._events.items() if e.node_processed]
            for event_id in processed:
                del self._events[event_id]
                self._collected[event_id] = now

            cutoff = now - self._retention
            expired = [event_id for event_id, at in self._collected.items() if at < cutoff]
            for event_id in expired:
                del self._collected[event_id]

            event_store_size.set(len(self._events))
            self._calls_since_last_clean = 0
            if processed:
                _log.info("event_store_garbage_collected", removed=len(processed), size=len(self._events))

    def _log_periodically(self) -> None:
        with self._lock:
            self._calls_since_last_log += 1
            if self._calls_since_last_log < self._logging_period:
                return

            drainable = sum(1 for e in self._events.values() if self._should_event_drain(e))
            drainable_events.set(drainable)
            _log.info("event_store_statistics", size=len(self._events), drainable_events=drainable)
            self._calls_since_last_log = 0
