"""Cloud event monitors for nodeterm.

Submodules
----------
base        -- Monitor: abstract ingestion loop.
errors      -- Exception hierarchy for message and batch failures.
mappers     -- Source-specific envelope -> InterruptionEvent mappers.
sqs_monitor -- SQSMonitor: long-polls the notification queue into the EventStore.
"""

from nodeterm.monitor.base import Monitor
from nodeterm.monitor.errors import (
    BatchProcessingError,
    EventProcessingError,
    MessageDecodeError,
    MonitorError,
    UnsupportedSourceError,
)
from nodeterm.monitor.mappers import MappingResult, map_envelope
from nodeterm.monitor.sqs_monitor import SQSMonitor

__all__ = [
    "BatchProcessingError",
    "EventProcessingError",
    "MappingResult",
    "MessageDecodeError",
    "Monitor",
    "MonitorError",
    "SQSMonitor",
    "UnsupportedSourceError",
    "map_envelope",
]
