"""Shared fixtures and factories for nodeterm tests."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from nodeterm.aws.queue import QueueMessage
from nodeterm.models.nodes import NodeInfo

_NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)


def make_envelope_body(
    source: str = "aws.autoscaling",
    detail: Any = None,
    envelope_id: str = "7c9d2b1e-0000-4000-8000-000000000001",
    time: datetime | None = None,
    detail_type: str = "EC2 Instance-terminate Lifecycle Action",
) -> str:
    """Serialize an EventBridge envelope the way SQS delivers it."""
    return json.dumps(
        {
            "version": "0",
            "id": envelope_id,
            "detail-type": detail_type,
            "source": source,
            "account": "123456789012",
            "time": (time or _NOW).isoformat().replace("+00:00", "Z"),
            "region": "us-east-1",
            "detail": detail if detail is not None else {},
        }
    )


def asg_detail(instance_id: str = "i-1") -> dict[str, str]:
    return {
        "EC2InstanceId": instance_id,
        "AutoScalingGroupName": "nomad-clients",
        "LifecycleHookName": "nomad-drain",
        "LifecycleActionToken": "token-123",
    }


def state_change_detail(state: str, instance_id: str = "i-1") -> dict[str, str]:
    return {"InstanceID": instance_id, "State": state}


def make_message(body: str, message_id: str = "msg-1", receipt_handle: str = "rh-1") -> QueueMessage:
    return QueueMessage(message_id=message_id, receipt_handle=receipt_handle, body=body)


def make_node_info(instance_id: str = "i-1", private_ip: str = "10.0.0.1") -> NodeInfo:
    return NodeInfo(
        instance_id=instance_id,
        name=f"ip-{private_ip.replace('.', '-')}.ec2.internal",
        asg_name="nomad-clients",
        provider_id=f"aws:///us-east-1a/{instance_id}",
        private_ip_address=private_ip,
        is_managed=True,
        tags={"aws:autoscaling:groupName": "nomad-clients"},
    )


def make_resolver(node: NodeInfo | None = None, error: Exception | None = None) -> MagicMock:
    resolver = MagicMock()
    if error is not None:
        resolver.resolve = AsyncMock(side_effect=error)
    else:
        resolver.resolve = AsyncMock(return_value=node or make_node_info())
    return resolver


def make_queue(messages: list[QueueMessage] | None = None) -> MagicMock:
    queue = MagicMock()
    queue.queue_url = "https://sqs.us-east-1.amazonaws.com/123456789012/nomad-node-term"
    queue.receive = AsyncMock(return_value=messages or [])
    queue.delete = AsyncMock(return_value=None)
    return queue


@pytest.fixture()
def resolver() -> MagicMock:
    return make_resolver()


@pytest.fixture()
def queue() -> MagicMock:
    return make_queue()
