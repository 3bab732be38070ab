"""EC2 instance identity resolution."""

from __future__ import annotations

import asyncio
from typing import Any

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from nodeterm.models.nodes import NodeInfo

_log = structlog.get_logger(component="aws.instances")

ASG_TAG_NAME = "aws:autoscaling:groupName"


class NodeInfoNotFoundError(Exception):
    """Raised when an instance cannot be described."""

    def __init__(self, instance_id: str, reason: str) -> None:
        super().__init__(f"Error retrieving node info for instance {instance_id}: {reason}")
        self.instance_id = instance_id
        self.reason = reason


class InstanceResolver:
    """Resolves an EC2 instance id into NodeInfo.

    Args:
        client:           boto3 EC2 client.
        managed_tag:      Tag key marking nodes this process may act on.
        check_if_managed: When False every node is considered managed.
    """

    def __init__(self, client: Any, managed_tag: str = "", check_if_managed: bool = False) -> None:
        self._client = client
        self._managed_tag = managed_tag
        self._check_if_managed = check_if_managed

    def is_managed(self, tags: dict[str, str]) -> bool:
        if not self._check_if_managed or not self._managed_tag:
            return True
        return self._managed_tag in tags

    async def resolve(self, instance_id: str) -> NodeInfo:
        """Describe *instance_id*.

        Raises:
            NodeInfoNotFoundError: if the instance is unknown or the call fails.
        """
        if not instance_id:
            raise NodeInfoNotFoundError(instance_id, "empty instance id")
        try:
            response = await asyncio.to_thread(self._client.describe_instances, InstanceIds=[instance_id])
        except (ClientError, BotoCoreError) as exc:
            raise NodeInfoNotFoundError(instance_id, str(exc)) from exc

        reservations = response.get("Reservations") or []
        if not reservations:
            raise NodeInfoNotFoundError(instance_id, "no reservations found")
        instances = reservations[0].get("Instances") or []
        if not instances:
            raise NodeInfoNotFoundError(instance_id, "no instance found")

        instance = instances[0]
        tags = {t["Key"]: t.get("Value", "") for t in instance.get("Tags") or [] if "Key" in t}
        availability_zone = (instance.get("Placement") or {}).get("AvailabilityZone")
        resolved_id = instance.get("InstanceId", instance_id)

        node = NodeInfo(
            instance_id=resolved_id,
            name=instance.get("PrivateDnsName", ""),
            asg_name=tags.get(ASG_TAG_NAME, ""),
            provider_id=f"aws:///{availability_zone}/{resolved_id}" if availability_zone else "",
            private_ip_address=instance.get("PrivateIpAddress", ""),
            is_managed=self.is_managed(tags),
            tags=tags,
        )
        _log.debug("node_info_resolved", instance_id=resolved_id, node_name=node.name, asg_name=node.asg_name)
        return node
