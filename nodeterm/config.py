"""Configuration loading from environment variables."""

from __future__ import annotations

import os

from nodeterm.models.config import (
    APIConfig,
    AWSConfig,
    DrainConfig,
    LogConfig,
    NodeTermConfig,
    QueueConfig,
    SettingsConfig,
)


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"NODETERM_{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_float(key: str, default: float, min_val: float | None = None) -> float:
    val = float(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    return val


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_queue_name(value: str) -> str:
    if not value:
        raise ValueError("Queue name must not be empty")
    return value


def load_config() -> NodeTermConfig:
    """Load configuration from NODETERM_* environment variables.

    Region and account fall back to the CONTEXT_REGION / CONTEXT_ACCOUNT
    variables set by the deployment platform.
    """
    return NodeTermConfig(
        settings=SettingsConfig(
            node_termination_grace_period=_env_int("NODE_TERMINATION_GRACE_PERIOD", 60, min_val=0),
            queue_name=_validate_queue_name(_env("QUEUE_NAME", "nomad-node-term")),
            managed_tag=_env("MANAGED_TAG", ""),
            check_if_managed=_env_bool("CHECK_IF_MANAGED", False),
        ),
        aws=AWSConfig(
            region=_env("REGION", os.environ.get("CONTEXT_REGION", "us-east-1")),
            account=_env("ACCOUNT", os.environ.get("CONTEXT_ACCOUNT", "")),
        ),
        queue=QueueConfig(
            max_messages=_env_int("QUEUE_MAX_MESSAGES", 10, min_val=1, max_val=10),
            wait_seconds=_env_int("QUEUE_WAIT_SECONDS", 20, min_val=0, max_val=20),
            visibility_timeout=_env_int("QUEUE_VISIBILITY_TIMEOUT", 20, min_val=0),
            error_backoff_seconds=_env_float("MONITOR_ERROR_BACKOFF", 1.0, min_val=0.0),
        ),
        drain=DrainConfig(
            poll_interval_seconds=_env_float("DRAIN_POLL_INTERVAL", 1.0, min_val=0.0),
            nomad_binary=_env("NOMAD_BINARY", "nomad"),
        ),
        api=APIConfig(
            port=_env_int("API_PORT", 8080, min_val=1024, max_val=65535),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
        shutdown_timeout_seconds=_env_int("SHUTDOWN_TIMEOUT", 60, min_val=1),
    )
