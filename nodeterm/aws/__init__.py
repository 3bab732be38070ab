"""Thin boto3 adapters for the AWS services nodeterm talks to.

Submodules
----------
queue     -- SQSQueue: long-poll receive, delete, queue URL resolution.
instances -- InstanceResolver: EC2 describe -> NodeInfo, managed-tag predicate.
lifecycle -- LifecycleClient: autoscaling lifecycle hook acknowledgement.

boto3 clients are synchronous; every adapter call runs in a worker thread via
``asyncio.to_thread`` so the event loop is never blocked.
"""

from nodeterm.aws.instances import InstanceResolver, NodeInfoNotFoundError
from nodeterm.aws.lifecycle import LifecycleClient
from nodeterm.aws.queue import QueueMessage, QueueNotFoundError, SQSQueue

__all__ = [
    "InstanceResolver",
    "LifecycleClient",
    "NodeInfoNotFoundError",
    "QueueMessage",
    "QueueNotFoundError",
    "SQSQueue",
]
