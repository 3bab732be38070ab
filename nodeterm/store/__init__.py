"""Event store for nodeterm.

The EventStore is the single shared ledger between the monitor loop and the
drain orchestrator.  It decides when an interruption event is due and keeps
memory bounded by reclaiming processed events.
"""

from nodeterm.store.event_store import EventStore

__all__ = ["EventStore"]
