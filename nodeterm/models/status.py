"""Process status shared with the health endpoint."""

from __future__ import annotations


class Status:
    """Tracks whether the process has begun shutting down."""

    def __init__(self) -> None:
        self._shutting_down = False

    @property
    def shutting_down(self) -> bool:
        return self._shutting_down

    def application_is_stopping(self) -> bool:
        self._shutting_down = True
        return True
