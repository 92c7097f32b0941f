"""Utilities for poll intervals and RPC connection creation."""

from __future__ import annotations

import re

from ..logging import get_logger
from ..rpc import SolanaRpcClient, connect
from ..settings import PollerSettings, get_settings

LOGGER = get_logger(__name__)

DEFAULT_POLL_INTERVAL = "1s"
POLL_INTERVAL_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|MS|Ms|[smhSMH]?)\s*$")


def determine_rpc_timeout_seconds(settings: PollerSettings | None = None) -> float:
    """Return the configured RPC request timeout in seconds."""
    poller_settings = settings or get_settings().poller
    return poller_settings.rpc_request_timeout_seconds


def create_rpc_client(endpoint: str) -> SolanaRpcClient:
    """Create an RPC client for `endpoint` using the configured request timeout.

    Args:
        endpoint: The RPC URL.

    Returns:
        Configured client instance (no request is made).
    """
    return connect(endpoint, timeout_seconds=determine_rpc_timeout_seconds())


def determine_poll_interval_seconds(settings: PollerSettings | None = None) -> float:
    """Determine the poll interval in seconds.

    Uses the configured interval, falling back to the default if it is
    missing or invalid.

    Args:
        settings: Poller settings (defaults to the environment-driven settings).

    Returns:
        Poll interval in seconds (always positive).
    """
    poller_settings = settings or get_settings().poller
    raw_value = poller_settings.interval or DEFAULT_POLL_INTERVAL

    resolved_seconds = parse_duration_to_seconds(raw_value)

    if resolved_seconds is None or resolved_seconds <= 0:
        LOGGER.warning(
            "Invalid poll interval '%s'. Falling back to %s.",
            raw_value,
            DEFAULT_POLL_INTERVAL,
        )

        return DEFAULT_POLL_INTERVAL_SECONDS

    return resolved_seconds


def parse_duration_to_seconds(value: str) -> float | None:
    """Parse a duration string (e.g., '500ms', '10s', '5m', '1h') to seconds.

    Supports formats: 'N', 'Nms', 'Ns', 'Nm', 'Nh' where N is a non-negative
    number. Bare numbers are seconds. Case-insensitive for unit letters.

    Args:
        value: Duration string to parse.

    Returns:
        Duration in seconds, or None if parsing fails.
    """
    match = POLL_INTERVAL_PATTERN.match(value)

    if not match:
        return None

    amount = float(match.group(1))

    unit = match.group(2).lower() or "s"

    unit_multipliers = {"ms": 0.001, "s": 1, "m": 60, "h": 3600}

    multiplier = unit_multipliers.get(unit)

    if multiplier is None:
        return None

    return amount * multiplier


DEFAULT_POLL_INTERVAL_SECONDS = parse_duration_to_seconds(DEFAULT_POLL_INTERVAL) or 1.0


__all__ = [
    "DEFAULT_POLL_INTERVAL",
    "DEFAULT_POLL_INTERVAL_SECONDS",
    "create_rpc_client",
    "determine_poll_interval_seconds",
    "determine_rpc_timeout_seconds",
    "parse_duration_to_seconds",
]
