"""Prometheus metrics for the interruption pipeline."""

from __future__ import annotations

from prometheus_client import Counter, Gauge

queue_messages_total = Counter(
    "nodeterm_queue_messages_total",
    "Queue messages handled by the monitor, by outcome.",
    ["outcome"],
)

interruption_events_total = Counter(
    "nodeterm_interruption_events_total",
    "Interruption events added to the event store, by kind.",
    ["kind"],
)

drains_total = Counter(
    "nodeterm_drains_total",
    "Drain attempts by outcome.",
    ["outcome"],
)

hook_executions_total = Counter(
    "nodeterm_hook_executions_total",
    "Pre/post drain hook executions.",
    ["hook", "success"],
)

event_store_size = Gauge(
    "nodeterm_event_store_size",
    "Number of interruption events tracked by the store.",
)

drainable_events = Gauge(
    "nodeterm_drainable_events",
    "Number of tracked events currently ready to drain.",
)
