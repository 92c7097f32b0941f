"""Connection supervisor owning the active poll cycle and the health state machine."""

from __future__ import annotations

import asyncio
import time
from functools import partial
from typing import Callable

from ..config import DEFAULT_SAMPLE_COUNT, RPC_URL_STORAGE_KEY
from ..endpoint import EndpointStoreProtocol, sanitize_endpoint
from ..exceptions import ConfigError
from ..logging import build_log_extra, get_logger, redact_endpoint
from ..metrics import (
    record_connection_status,
    record_endpoint_change,
    record_poll_failure,
    record_poll_success,
)
from ..models import ConnectionSnapshot, ConnectionStatus, PollResult, TPSMetrics
from .cycle import Connector, PollCycle, SleepFunc

LOGGER = get_logger(__name__)


class ConnectionSupervisor:
    """Keeps exactly one poll cycle alive for the current endpoint.

    The persisted endpoint is read and sanitized on construction; `start`
    begins polling it. `set_endpoint` moves the status to `CONNECTING`,
    persists the new value as given, cancels the previous cycle and starts a
    new one. Every cycle is tagged with a generation number and results from
    any generation other than the current one are ignored, so a late response
    from an abandoned endpoint can never overwrite newer state.

    A failed poll sets the status to `ERROR` but keeps the last good metrics.

    Attributes:
        store: Persistence for the endpoint setting.
    """

    def __init__(
        self,
        *,
        store: EndpointStoreProtocol,
        connector: Connector,
        interval_seconds: float,
        sample_count: int = DEFAULT_SAMPLE_COUNT,
        sleep: SleepFunc | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.store = store
        self._connector = connector
        self._interval_seconds = interval_seconds
        self._sample_count = sample_count
        self._sleep = sleep
        self._clock = clock or time.time

        self._endpoint = sanitize_endpoint(store.get(RPC_URL_STORAGE_KEY), store=store)
        self._status = ConnectionStatus.CONNECTING
        self._metrics: TPSMetrics | None = None
        self._error: str | None = None
        self._last_success_at: float | None = None
        self._generation = 0
        self._cycle: PollCycle | None = None

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def cycle(self) -> PollCycle | None:
        return self._cycle

    def start(self) -> ConnectionSnapshot:
        """Begin polling the endpoint resolved at construction time."""

        return self.set_endpoint(self._endpoint)

    def set_endpoint(self, candidate: str) -> ConnectionSnapshot:
        """Switch polling to `candidate` and return the resulting snapshot.

        The value is persisted and used as given; blocklist sanitization only
        applies to the persisted value read at construction.

        Must be called from within a running event loop.

        Raises:
            ConfigError: If the endpoint cannot be persisted. The previous
                endpoint keeps polling and the status is left unchanged.
        """
        previous_status = self._status
        self._set_status(ConnectionStatus.CONNECTING)

        try:
            self.store.set(RPC_URL_STORAGE_KEY, candidate)
        except ConfigError:
            self._set_status(previous_status)
            raise

        previous = self._cycle

        if previous is not None:
            previous.cancel()

        self._generation += 1
        generation = self._generation
        self._endpoint = candidate

        LOGGER.info(
            "Switching RPC endpoint to %s.",
            redact_endpoint(candidate),
            extra=build_log_extra(endpoint=candidate, generation=generation),
        )
        record_endpoint_change()

        cycle = PollCycle(
            candidate,
            connector=self._connector,
            on_result=partial(self._handle_result, generation),
            interval_seconds=self._interval_seconds,
            generation=generation,
            sample_count=self._sample_count,
            sleep=self._sleep,
        )
        self._cycle = cycle
        cycle.start()

        return self.snapshot()

    request_endpoint_change = set_endpoint

    def snapshot(self) -> ConnectionSnapshot:
        return ConnectionSnapshot(
            status=self._status,
            metrics=self._metrics,
            error=self._error,
            endpoint=self._endpoint,
            last_success_at=self._last_success_at,
            generation=self._generation,
        )

    async def shutdown(self, timeout_seconds: float = 5.0) -> None:
        """Cancel the active cycle and wait for its tasks to finish.

        Args:
            timeout_seconds: Maximum time to wait for the tasks to complete.
        """
        cycle, self._cycle = self._cycle, None

        if cycle is None:
            return

        cycle.cancel()

        try:
            await asyncio.wait_for(cycle.wait_closed(), timeout=timeout_seconds)
        except asyncio.TimeoutError:
            LOGGER.warning(
                "Poll cycle did not stop within %s seconds.",
                timeout_seconds,
                extra=build_log_extra(
                    endpoint=cycle.endpoint,
                    generation=cycle.generation,
                    additional={"timeout_seconds": timeout_seconds},
                ),
            )

    def _handle_result(self, generation: int, result: PollResult) -> None:
        if generation != self._generation:
            LOGGER.debug(
                "Ignoring result from stale poll cycle %s (current %s).",
                generation,
                self._generation,
                extra=build_log_extra(generation=generation),
            )
            return

        if result.ok:
            now = self._clock()
            self._metrics = result.metrics
            self._error = None
            self._last_success_at = now
            self._set_status(ConnectionStatus.CONNECTED)
            record_poll_success(result.metrics, timestamp=now)
            return

        self._error = result.error
        self._set_status(ConnectionStatus.ERROR)
        record_poll_failure(result.error_type or "unknown")

    def _set_status(self, status: ConnectionStatus) -> None:
        if status is not self._status:
            LOGGER.debug(
                "Connection status %s -> %s.",
                self._status.value,
                status.value,
                extra=build_log_extra(endpoint=self._endpoint, generation=self._generation),
            )

        self._status = status
        record_connection_status(status)


__all__ = ["ConnectionSupervisor"]
