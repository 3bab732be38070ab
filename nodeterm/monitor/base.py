"""Abstract base for ingestion monitors."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod


class Monitor(ABC):
    """A loop that turns external notifications into interruption events."""

    @property
    @abstractmethod
    def kind(self) -> str:
        """Identifier of this monitor used in logs."""

    @abstractmethod
    async def run(self, stop: asyncio.Event) -> None:
        """Run until *stop* is set.

        Implementations check *stop* between iterations and return promptly
        once it is set.  Fatal errors propagate to the caller.
        """
