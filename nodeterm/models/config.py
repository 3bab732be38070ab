"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class SettingsConfig:
    """Interruption handling settings."""

    node_termination_grace_period: int = 60
    queue_name: str = "nomad-node-term"
    managed_tag: str = ""
    check_if_managed: bool = False


@dataclass
class AWSConfig:
    """AWS client configuration."""

    region: str = "us-east-1"
    account: str = ""


@dataclass
class QueueConfig:
    """Queue polling configuration."""

    max_messages: int = 10
    wait_seconds: int = 20
    visibility_timeout: int = 20
    error_backoff_seconds: float = 1.0


@dataclass
class DrainConfig:
    """Drain orchestrator configuration."""

    poll_interval_seconds: float = 1.0
    nomad_binary: str = "nomad"


@dataclass
class APIConfig:
    """Health endpoint configuration."""

    port: int = 8080


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class NodeTermConfig:
    """Top-level nodeterm configuration."""

    settings: SettingsConfig = field(default_factory=SettingsConfig)
    aws: AWSConfig = field(default_factory=AWSConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)
    drain: DrainConfig = field(default_factory=DrainConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log: LogConfig = field(default_factory=LogConfig)
    shutdown_timeout_seconds: int = 60
