"""Core data structures for nodeterm."""

from nodeterm.models.config import NodeTermConfig
from nodeterm.models.envelope import AsgTerminationDetail, EventEnvelope, StateChangeDetail
from nodeterm.models.events import (
    CompleteLifecycleAction,
    DrainHook,
    EventKind,
    InterruptionEvent,
    MonitorKind,
)
from nodeterm.models.nodes import NodeInfo, SchedulerNode
from nodeterm.models.status import Status

__all__ = [
    "AsgTerminationDetail",
    "CompleteLifecycleAction",
    "DrainHook",
    "EventEnvelope",
    "EventKind",
    "InterruptionEvent",
    "MonitorKind",
    "NodeInfo",
    "NodeTermConfig",
    "SchedulerNode",
    "StateChangeDetail",
    "Status",
]
