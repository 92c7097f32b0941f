"""Prometheus metric registry and helpers for TPS monitor state."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

from .models import ConnectionStatus, TPSMetrics


@dataclass(slots=True)
class ExporterMetrics:
    up: Gauge
    endpoint_changes: Counter


@dataclass(slots=True)
class ThroughputMetrics:
    real_tps: Gauge
    total_tps: Gauge
    vote_percent: Gauge


@dataclass(slots=True)
class PollMetrics:
    connection_status: Gauge
    poll_success: Gauge
    poll_timestamp: Gauge
    poll_failures: Counter
    poll_duration: Histogram
    skipped_ticks: Counter


@dataclass(slots=True)
class RpcMetrics:
    call_duration: Histogram
    errors: Counter


@runtime_checkable
class MetricsStoreProtocol(Protocol):
    registry: CollectorRegistry
    exporter: ExporterMetrics
    throughput: ThroughputMetrics
    poll: PollMetrics
    rpc: RpcMetrics


@dataclass(slots=True)
class MetricsBundle(MetricsStoreProtocol):
    registry: CollectorRegistry
    exporter: ExporterMetrics
    throughput: ThroughputMetrics
    poll: PollMetrics
    rpc: RpcMetrics


def create_metrics(registry: CollectorRegistry | None = None) -> MetricsBundle:
    registry = registry or CollectorRegistry()

    exporter = ExporterMetrics(
        up=Gauge(
            "solana_tps_monitor_up",
            "Indicates whether the monitor is available (1 for up, 0 for down).",
            registry=registry,
        ),
        endpoint_changes=Counter(
            "solana_tps_monitor_endpoint_changes",
            "Number of times the monitored RPC endpoint was (re)applied.",
            registry=registry,
        ),
    )

    throughput = ThroughputMetrics(
        real_tps=Gauge(
            "solana_real_tps",
            "Non-vote transactions per second from the most recent performance sample.",
            registry=registry,
        ),
        total_tps=Gauge(
            "solana_total_tps",
            "Total transactions per second (including votes) from the most recent performance sample.",
            registry=registry,
        ),
        vote_percent=Gauge(
            "solana_vote_percent",
            "Share of vote transactions in the most recent performance sample, in percent.",
            registry=registry,
        ),
    )

    poll = PollMetrics(
        connection_status=Gauge(
            "solana_tps_monitor_connection_status",
            "Current connection status (1 for the active state, 0 otherwise).",
            labelnames=("status",),
            registry=registry,
        ),
        poll_success=Gauge(
            "solana_tps_monitor_poll_success",
            "Indicates whether the most recent poll succeeded (1) or failed (0).",
            registry=registry,
        ),
        poll_timestamp=Gauge(
            "solana_tps_monitor_poll_timestamp_seconds",
            "Unix timestamp of the most recent successful poll.",
            registry=registry,
        ),
        poll_failures=Counter(
            "solana_tps_monitor_poll_failures",
            "Number of failed polls by error category.",
            labelnames=("error_type",),
            registry=registry,
        ),
        poll_duration=Histogram(
            "solana_tps_monitor_poll_duration_seconds",
            "Duration of a fetch-and-transform poll in seconds.",
            registry=registry,
        ),
        skipped_ticks=Counter(
            "solana_tps_monitor_skipped_ticks",
            "Number of timer ticks skipped because the previous fetch was still in flight.",
            registry=registry,
        ),
    )

    rpc = RpcMetrics(
        call_duration=Histogram(
            "solana_tps_monitor_rpc_call_duration_seconds",
            "Duration of successful RPC calls in seconds.",
            labelnames=("operation",),
            registry=registry,
        ),
        errors=Counter(
            "solana_tps_monitor_rpc_errors",
            "Number of failed RPC calls by operation and error category.",
            labelnames=("operation", "error_type"),
            registry=registry,
        ),
    )

    return MetricsBundle(
        registry=registry,
        exporter=exporter,
        throughput=throughput,
        poll=poll,
        rpc=rpc,
    )


_METRICS: MetricsStoreProtocol = create_metrics()


def get_metrics() -> MetricsStoreProtocol:
    return _METRICS


def set_metrics(bundle: MetricsStoreProtocol) -> None:
    global _METRICS
    _METRICS = bundle


def reset_metrics_state(registry: CollectorRegistry | None = None) -> MetricsStoreProtocol:
    """Rebuild the metrics bundle with a fresh registry."""

    bundle = create_metrics(registry)
    set_metrics(bundle)

    return bundle


def record_connection_status(status: ConnectionStatus) -> None:
    """Flag the active connection status and clear the others."""

    metrics = get_metrics()

    for candidate in ConnectionStatus:
        metrics.poll.connection_status.labels(candidate.value).set(
            1 if candidate is status else 0
        )


def record_endpoint_change() -> None:
    get_metrics().exporter.endpoint_changes.inc()


def record_poll_success(tps: TPSMetrics, *, timestamp: float | None = None) -> None:
    """Record a successful poll and publish its throughput figures."""

    metrics = get_metrics()

    now = time.time() if timestamp is None else timestamp

    metrics.throughput.real_tps.set(tps.real_tps)
    metrics.throughput.total_tps.set(tps.total_tps)
    metrics.throughput.vote_percent.set(tps.vote_percent)
    metrics.poll.poll_success.set(1)
    metrics.poll.poll_timestamp.set(now)


def record_poll_failure(error_type: str) -> None:
    """Record a failed poll; throughput gauges keep their last good value."""

    metrics = get_metrics()

    metrics.poll.poll_success.set(0)
    metrics.poll.poll_failures.labels(error_type).inc()


def record_poll_duration(duration_seconds: float) -> None:
    get_metrics().poll.poll_duration.observe(duration_seconds)


def record_skipped_tick() -> None:
    get_metrics().poll.skipped_ticks.inc()


def record_rpc_call_duration(operation: str, duration_seconds: float) -> None:
    get_metrics().rpc.call_duration.labels(operation).observe(duration_seconds)


def record_rpc_error(operation: str, error_type: str) -> None:
    get_metrics().rpc.errors.labels(operation, error_type).inc()


__all__ = [
    "ExporterMetrics",
    "MetricsBundle",
    "MetricsStoreProtocol",
    "PollMetrics",
    "RpcMetrics",
    "ThroughputMetrics",
    "create_metrics",
    "get_metrics",
    "record_connection_status",
    "record_endpoint_change",
    "record_poll_duration",
    "record_poll_failure",
    "record_poll_success",
    "record_rpc_call_duration",
    "record_rpc_error",
    "record_skipped_tick",
    "reset_metrics_state",
    "set_metrics",
]
