"""SQS queue adapter."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

import structlog
from botocore.exceptions import ClientError

_log = structlog.get_logger(component="aws.queue")

_NOT_FOUND_CODES = {"AWS.SimpleQueueService.NonExistentQueue", "QueueDoesNotExist"}


class QueueNotFoundError(Exception):
    """Raised when the configured queue name cannot be resolved."""

    def __init__(self, queue_name: str) -> None:
        super().__init__(f"SQS queue named {queue_name!r} not found")
        self.queue_name = queue_name


@dataclass(frozen=True)
class QueueMessage:
    """A received queue message."""

    message_id: str
    receipt_handle: str
    body: str
    attributes: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_response(cls, raw: dict[str, Any]) -> QueueMessage:
        return cls(
            message_id=str(raw.get("MessageId", "")),
            receipt_handle=str(raw.get("ReceiptHandle", "")),
            body=str(raw.get("Body", "")),
            attributes=dict(raw.get("Attributes") or {}),
        )


class SQSQueue:
    """Receives and deletes messages on one SQS queue.

    Args:
        client:    boto3 SQS client.
        queue_url: Resolved queue URL.
    """

    def __init__(self, client: Any, queue_url: str) -> None:
        self._client = client
        self.queue_url = queue_url

    @classmethod
    async def resolve(cls, client: Any, queue_name: str) -> SQSQueue:
        """Look up *queue_name* and return an adapter bound to its URL.

        Raises:
            QueueNotFoundError: if the queue does not exist.
        """
        try:
            response = await asyncio.to_thread(client.get_queue_url, QueueName=queue_name)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in _NOT_FOUND_CODES:
                raise QueueNotFoundError(queue_name) from exc
            raise
        queue_url = response["QueueUrl"]
        _log.info("queue_resolved", queue_name=queue_name, queue_url=queue_url)
        return cls(client, queue_url)

    async def receive(
        self,
        max_messages: int = 10,
        wait_seconds: int = 20,
        visibility_timeout: int = 20,
    ) -> list[QueueMessage]:
        """Long-poll for up to *max_messages* messages."""
        response = await asyncio.to_thread(
            self._client.receive_message,
            QueueUrl=self.queue_url,
            MaxNumberOfMessages=max_messages,
            VisibilityTimeout=visibility_timeout,
            WaitTimeSeconds=wait_seconds,
            AttributeNames=["SentTimestamp"],
            MessageAttributeNames=["All"],
        )
        return [QueueMessage.from_response(m) for m in response.get("Messages", [])]

    async def delete(self, receipt_handle: str) -> None:
        """Delete a message.  Deleting an already-deleted message is harmless."""
        await asyncio.to_thread(
            self._client.delete_message,
            QueueUrl=self.queue_url,
            ReceiptHandle=receipt_handle,
        )
        _log.debug("queue_message_deleted", receipt_handle=receipt_handle[:16])
