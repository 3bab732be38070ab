"""Drain orchestration for nodeterm."""

from nodeterm.drain.orchestrator import DrainOrchestrator, DrainOutcome

__all__ = ["DrainOrchestrator", "DrainOutcome"]
