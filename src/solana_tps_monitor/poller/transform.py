"""Derivation of throughput metrics from raw performance samples."""

from __future__ import annotations

from typing import Sequence

from ..exceptions import NoSamplesAvailableError, TransformError
from ..models import PerformanceSample, TPSMetrics


def transform_samples(samples: Sequence[PerformanceSample]) -> TPSMetrics:
    """Compute real and total TPS plus the vote share from the most recent sample.

    Only the first sample is used; the RPC returns samples newest first. When a
    sample carries no transactions the vote share is reported as 0.0 instead of
    dividing by zero.

    Args:
        samples: Samples as returned by `getRecentPerformanceSamples`.

    Returns:
        Freshly computed metrics.

    Raises:
        NoSamplesAvailableError: If `samples` is empty.
        TransformError: If the sample period is not positive.
    """
    if not samples:
        raise NoSamplesAvailableError()

    latest = samples[0]

    if latest.sample_period_secs <= 0:
        raise TransformError(
            "Performance sample has a non-positive sample period",
            context={"slot": latest.slot, "sample_period_secs": latest.sample_period_secs},
        )

    real_tps = latest.num_non_vote_transactions / latest.sample_period_secs
    total_tps = latest.num_transactions / latest.sample_period_secs

    if total_tps == 0:
        vote_percent = 0.0
    else:
        vote_percent = (total_tps - real_tps) / total_tps * 100

    return TPSMetrics(real_tps=real_tps, total_tps=total_tps, vote_percent=vote_percent)


__all__ = ["transform_samples"]
