"""Autoscaling lifecycle hook acknowledgement."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import structlog

from nodeterm.models.events import CompleteLifecycleAction

_log = structlog.get_logger(component="aws.lifecycle")


class LifecycleClient:
    """Tells the autoscaling group it may continue terminating an instance.

    Args:
        client:                          boto3 autoscaling client.
        before_complete_lifecycle_action: Optional callback run before each call.
    """

    def __init__(
        self,
        client: Any,
        before_complete_lifecycle_action: Callable[[], None] | None = None,
    ) -> None:
        self._client = client
        self.before_complete_lifecycle_action = before_complete_lifecycle_action

    async def complete_lifecycle_action(self, action: CompleteLifecycleAction) -> None:
        if self.before_complete_lifecycle_action is not None:
            self.before_complete_lifecycle_action()

        await asyncio.to_thread(
            self._client.complete_lifecycle_action,
            AutoScalingGroupName=action.auto_scaling_group_name,
            LifecycleHookName=action.lifecycle_hook_name,
            LifecycleActionToken=action.lifecycle_action_token,
            LifecycleActionResult=action.result,
            InstanceId=action.instance_id,
        )
        _log.info(
            "lifecycle_action_completed",
            instance_id=action.instance_id,
            asg_name=action.auto_scaling_group_name,
            hook=action.lifecycle_hook_name,
            result=action.result,
        )
