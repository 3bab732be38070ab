"""Monitor exception hierarchy."""

from __future__ import annotations


class MonitorError(Exception):
    """Base class for monitor failures."""


class MessageDecodeError(MonitorError):
    """A queue message body could not be decoded into an envelope."""

    def __init__(self, message_id: str, cause: Exception) -> None:
        super().__init__(f"Error processing SQS message {message_id}: {cause}")
        self.message_id = message_id
        self.cause = cause


class UnsupportedSourceError(MonitorError):
    """An envelope came from a source no mapper handles."""

    def __init__(self, source: str) -> None:
        super().__init__(f"Event source {source} is not supported")
        self.source = source


class EventProcessingError(MonitorError):
    """Some interruption events of a message could not be built."""

    def __init__(self, message_id: str, failed: int) -> None:
        super().__init__(f"{failed} interruption event(s) for message Id {message_id} could not be processed")
        self.message_id = message_id
        self.failed = failed


class BatchProcessingError(MonitorError):
    """Every message of a non-empty batch failed.  Fatal to the process."""

    def __init__(self, batch_size: int) -> None:
        super().__init__(f"None of the {batch_size} waiting queue events could be processed")
        self.batch_size = batch_size
