"""Polling package for Solana throughput metrics."""

from .cycle import Connector, PollCycle
from .intervals import (
    DEFAULT_POLL_INTERVAL,
    DEFAULT_POLL_INTERVAL_SECONDS,
    create_rpc_client,
    determine_poll_interval_seconds,
    parse_duration_to_seconds,
)
from .supervisor import ConnectionSupervisor
from .transform import transform_samples

__all__ = [
    "ConnectionSupervisor",
    "Connector",
    "DEFAULT_POLL_INTERVAL",
    "DEFAULT_POLL_INTERVAL_SECONDS",
    "PollCycle",
    "create_rpc_client",
    "determine_poll_interval_seconds",
    "parse_duration_to_seconds",
    "transform_samples",
]
