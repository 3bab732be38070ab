"""Cluster scheduler adapters."""

from nodeterm.scheduler.nomad import NomadCLI, SchedulerError

__all__ = ["NomadCLI", "SchedulerError"]
