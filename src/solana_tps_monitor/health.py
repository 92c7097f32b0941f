"""Health reporting and metrics formatting helpers."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Tuple

from fastapi import status

from .logging import redact_endpoint
from .models import ConnectionSnapshot, ConnectionStatus
from .settings import get_settings

SETTINGS = get_settings()
READINESS_STALE_THRESHOLD_SECONDS = SETTINGS.health.readiness_stale_threshold_seconds


def generate_health_report(
    snapshot: ConnectionSnapshot | None,
    include_details: bool = False,
) -> Tuple[str, int, Dict[str, object]]:
    if snapshot is None or snapshot.status is ConnectionStatus.CONNECTING:
        overall_status = "initializing"
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif snapshot.status is ConnectionStatus.CONNECTED:
        overall_status = "ok"
        status_code = status.HTTP_200_OK
    else:
        overall_status = "unhealthy"
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    if snapshot is None:
        return overall_status, status_code, {}

    return overall_status, status_code, _build_health_entry(snapshot, include_details=include_details)


def _build_health_entry(
    snapshot: ConnectionSnapshot,
    *,
    include_details: bool,
) -> Dict[str, object]:
    """Build the connection entry of a health report.

    Args:
        snapshot: Current supervisor snapshot.
        include_details: If True, include the last error and last success timestamp.

    Returns:
        Dictionary describing the monitored endpoint.
    """
    entry: Dict[str, object] = {
        "endpoint": redact_endpoint(snapshot.endpoint),
        "status": snapshot.status.value,
    }

    if include_details:
        entry["error"] = snapshot.error

        if snapshot.last_success_at is not None:
            entry["last_success_timestamp"] = _isoformat(snapshot.last_success_at)

    return entry


def generate_readiness_report(
    snapshot: ConnectionSnapshot | None,
    *,
    now: float | None = None,
    stale_threshold_seconds: float | None = None,
) -> Tuple[bool, Dict[str, object]]:
    if snapshot is None:
        return False, {}

    threshold_seconds = (
        READINESS_STALE_THRESHOLD_SECONDS
        if stale_threshold_seconds is None
        else stale_threshold_seconds
    )
    threshold = (time.time() if now is None else now) - threshold_seconds

    last_success = snapshot.last_success_at
    is_recent = last_success is not None and last_success >= threshold
    ready = snapshot.status is ConnectionStatus.CONNECTED and is_recent

    entry: Dict[str, object] = {
        "endpoint": redact_endpoint(snapshot.endpoint),
        "status": "ready" if ready else "not_ready",
    }

    if last_success is not None:
        entry["last_success_timestamp"] = _isoformat(last_success)

    return ready, entry


def _isoformat(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


def format_metrics_payload(payload: bytes) -> bytes:
    """Rewrite exponent notation in sample values as plain decimals."""

    text = payload.decode()

    lines = []

    for line in text.splitlines():
        if not line or line.startswith("#"):
            lines.append(line)

            continue

        parts = line.rsplit(" ", 1)

        if len(parts) != 2:
            lines.append(line)

            continue

        metric, value = parts

        if "e" in value.lower():
            try:
                decimal_value = Decimal(value)

                value = format(decimal_value, "f")
            except Exception:  # noqa: BLE001
                pass

        lines.append(f"{metric} {value}")

    return "\n".join(lines).encode()


__all__ = [
    "format_metrics_payload",
    "generate_health_report",
    "generate_readiness_report",
    "READINESS_STALE_THRESHOLD_SECONDS",
]
