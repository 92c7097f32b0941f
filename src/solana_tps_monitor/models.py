"""Core data models used across the monitor."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from .exceptions import describe_error


class ConnectionStatus(str, Enum):
    """Health of the connection to the current RPC endpoint."""

    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


def _require_int(payload: Mapping[str, Any], key: str) -> int:
    value = payload.get(key)

    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Performance sample field '{key}' must be an integer, got {value!r}.")

    if value < 0:
        raise ValueError(f"Performance sample field '{key}' must not be negative, got {value!r}.")

    return value


@dataclass(frozen=True, slots=True)
class PerformanceSample:
    """One entry of `getRecentPerformanceSamples`."""

    slot: int
    num_transactions: int
    num_non_vote_transactions: int
    sample_period_secs: int
    num_slots: int = 0

    @classmethod
    def from_rpc(cls, payload: Mapping[str, Any]) -> PerformanceSample:
        """Build a sample from the camelCase JSON-RPC representation.

        Raises:
            ValueError: If a required field is missing or not a non-negative integer.
        """
        if not isinstance(payload, Mapping):
            raise ValueError(f"Performance sample must be an object, got {type(payload).__name__}.")

        return cls(
            slot=_require_int(payload, "slot"),
            num_transactions=_require_int(payload, "numTransactions"),
            num_non_vote_transactions=_require_int(payload, "numNonVoteTransactions"),
            sample_period_secs=_require_int(payload, "samplePeriodSecs"),
            num_slots=_require_int(payload, "numSlots") if "numSlots" in payload else 0,
        )


@dataclass(frozen=True, slots=True)
class TPSMetrics:
    """Throughput derived from the most recent performance sample."""

    real_tps: float
    total_tps: float
    vote_percent: float

    def as_dict(self) -> dict[str, float]:
        return {
            "real_tps": self.real_tps,
            "total_tps": self.total_tps,
            "vote_percent": self.vote_percent,
        }


@dataclass(frozen=True, slots=True)
class PollResult:
    """Outcome of a single poll tick: metrics on success, a message on failure."""

    metrics: TPSMetrics | None = None
    error: str | None = None
    error_type: str | None = None

    @property
    def ok(self) -> bool:
        return self.metrics is not None and self.error is None

    @classmethod
    def success(cls, metrics: TPSMetrics) -> PollResult:
        return cls(metrics=metrics)

    @classmethod
    def failure(cls, exc: BaseException, error_type: str = "unknown") -> PollResult:
        return cls(error=describe_error(exc), error_type=error_type)


@dataclass(frozen=True, slots=True)
class ConnectionSnapshot:
    """Read-only view of the supervisor state exposed to callers."""

    status: ConnectionStatus
    metrics: TPSMetrics | None
    error: str | None
    endpoint: str
    last_success_at: float | None = None
    generation: int = 0

    def as_dict(self, *, endpoint: str | None = None) -> dict[str, Any]:
        """Serialize for the JSON surface, optionally substituting a redacted endpoint."""
        return {
            "status": self.status.value,
            "metrics": self.metrics.as_dict() if self.metrics is not None else None,
            "error": self.error,
            "endpoint": endpoint if endpoint is not None else self.endpoint,
            "last_success_at": self.last_success_at,
            "generation": self.generation,
        }


__all__ = [
    "ConnectionSnapshot",
    "ConnectionStatus",
    "PerformanceSample",
    "PollResult",
    "TPSMetrics",
]
