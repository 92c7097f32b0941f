"""Cancellable poll cycle bound to a single RPC endpoint."""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable

from ..config import DEFAULT_SAMPLE_COUNT
from ..exceptions import RpcConnectionError, RpcError, SampleError, describe_error
from ..logging import build_log_extra, get_logger, redact_endpoint
from ..metrics import record_poll_duration, record_skipped_tick
from ..models import PollResult
from ..rpc import RpcClientProtocol, categorize_error
from .transform import transform_samples

LOGGER = get_logger(__name__)

Connector = Callable[[str], RpcClientProtocol]
ResultCallback = Callable[[PollResult], None]
SleepFunc = Callable[[float], Awaitable[None]]


class PollCycle:
    """One connection handle plus one repeating timer.

    `start` opens the handle, fetches once right away and then arms a timer
    that fetches every `interval_seconds`. Each fetch runs the RPC call in a
    worker thread, derives metrics and reports a `PollResult` to `on_result`.
    Failures are reported and the timer keeps running. A tick that fires while
    the previous fetch is still in flight is skipped. A connection failure in
    `start` is reported by the first tick; later ticks reconnect.

    `cancel` is synchronous and idempotent; once it returns `on_result` is
    never called again by this cycle.

    Attributes:
        endpoint: The RPC URL this cycle is bound to.
        generation: Identifier assigned by the owner to tell cycles apart.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        connector: Connector,
        on_result: ResultCallback,
        interval_seconds: float,
        generation: int = 0,
        sample_count: int = DEFAULT_SAMPLE_COUNT,
        sleep: SleepFunc | None = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}.")

        if sample_count < 1:
            raise ValueError(f"sample_count must be at least 1, got {sample_count}.")

        self.endpoint = endpoint
        self.generation = generation
        self._connector = connector
        self._on_result = on_result
        self._interval_seconds = interval_seconds
        self._sample_count = sample_count
        self._sleep = sleep or asyncio.sleep

        self._loop: asyncio.AbstractEventLoop | None = None
        self._client: RpcClientProtocol | None = None
        self._timer_task: asyncio.Task | None = None
        self._fetch_task: asyncio.Task | None = None
        self._connect_error: RpcConnectionError | None = None
        self._started = False
        self._cancelled = False

    @property
    def interval_seconds(self) -> float:
        return self._interval_seconds

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def active(self) -> bool:
        return self._started and not self._cancelled

    @property
    def fetch_in_flight(self) -> bool:
        return self._fetch_task is not None and not self._fetch_task.done()

    def start(self) -> PollCycle:
        """Open the connection handle, fetch immediately and arm the timer.

        Must be called from within a running event loop.

        Raises:
            RuntimeError: If the cycle was already started or cancelled.
        """
        if self._started or self._cancelled:
            raise RuntimeError("A poll cycle can only be started once.")

        self._loop = asyncio.get_running_loop()
        self._started = True

        try:
            self._client = self._open_client()
        except RpcConnectionError as exc:
            # Reported by the first tick; later ticks retry the connection.
            self._connect_error = exc
            LOGGER.warning(
                "Unable to create RPC client for %s; retrying on the next poll.",
                redact_endpoint(self.endpoint),
                exc_info=exc,
                extra=self._log_extra(),
            )

        LOGGER.info(
            "Polling %s every %s seconds.",
            redact_endpoint(self.endpoint),
            self._interval_seconds,
            extra=self._log_extra(),
        )

        self._tick()
        self._timer_task = self._loop.create_task(
            self._run_timer(),
            name=f"poll-cycle-timer-{self.generation}",
        )

        return self

    def cancel(self) -> None:
        """Stop the timer, abandon any in-flight fetch and close the handle."""

        if self._cancelled:
            return

        self._cancelled = True

        for task in (self._timer_task, self._fetch_task):
            if task is not None and not task.done():
                task.cancel()

        client, self._client = self._client, None

        if client is not None:
            try:
                client.close()
            except Exception as exc:  # noqa: BLE001
                LOGGER.debug(
                    "Error while closing RPC client for %s.",
                    redact_endpoint(self.endpoint),
                    exc_info=exc,
                    extra=self._log_extra(),
                )

        LOGGER.debug(
            "Poll cycle for %s cancelled.",
            redact_endpoint(self.endpoint),
            extra=self._log_extra(),
        )

    async def wait_closed(self) -> None:
        """Wait until the timer and fetch tasks of a cancelled cycle have finished."""

        tasks = [task for task in (self._timer_task, self._fetch_task) if task is not None]

        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _open_client(self) -> RpcClientProtocol:
        try:
            return self._connector(self.endpoint)
        except Exception as exc:  # noqa: BLE001
            raise RpcConnectionError(
                f"Unable to connect to RPC endpoint: {describe_error(exc)}",
                endpoint=redact_endpoint(self.endpoint),
                operation="connect",
                context={"original_exception": type(exc).__name__},
            ) from exc

    def _tick(self) -> None:
        if self._cancelled or self._loop is None:
            return

        if self.fetch_in_flight:
            record_skipped_tick()
            LOGGER.debug(
                "Skipping poll of %s; the previous fetch is still in flight.",
                redact_endpoint(self.endpoint),
                extra=self._log_extra(),
            )
            return

        self._fetch_task = self._loop.create_task(
            self._fetch_and_publish(),
            name=f"poll-cycle-fetch-{self.generation}",
        )

    async def _run_timer(self) -> None:
        try:
            while True:
                await self._sleep(self._interval_seconds)
                self._tick()
        except asyncio.CancelledError:
            LOGGER.debug(
                "Poll timer for %s stopped.",
                redact_endpoint(self.endpoint),
                extra=self._log_extra(),
            )
            raise

    async def _fetch_and_publish(self) -> None:
        start_time = time.monotonic()

        try:
            if self._connect_error is not None:
                error, self._connect_error = self._connect_error, None
                raise error

            if self._client is None:
                self._client = self._open_client()

            samples = await asyncio.to_thread(
                self._client.get_recent_performance_samples,
                self._sample_count,
            )
            metrics = transform_samples(samples)
        except asyncio.CancelledError:
            raise
        except (RpcError, SampleError) as exc:
            LOGGER.warning(
                "Poll of %s failed: %s",
                redact_endpoint(self.endpoint),
                describe_error(exc),
                extra=self._log_extra(additional=exc.context),
            )
            result = PollResult.failure(exc, categorize_error(exc))
        except Exception as exc:  # noqa: BLE001
            # Keep broad Exception catch so a programming error in one tick does not stop polling.
            LOGGER.exception(
                "Unexpected error while polling %s.",
                redact_endpoint(self.endpoint),
                exc_info=exc,
                extra=self._log_extra(),
            )
            result = PollResult.failure(exc, categorize_error(exc))
        else:
            result = PollResult.success(metrics)

        elapsed = time.monotonic() - start_time
        record_poll_duration(elapsed)

        if self._cancelled:
            LOGGER.debug(
                "Discarding result from cancelled poll cycle for %s.",
                redact_endpoint(self.endpoint),
                extra=self._log_extra(elapsed=elapsed),
            )
            return

        try:
            self._on_result(result)
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception(
                "Result handler failed for poll of %s.",
                redact_endpoint(self.endpoint),
                exc_info=exc,
                extra=self._log_extra(elapsed=elapsed),
            )

    def _log_extra(
        self,
        *,
        elapsed: float | None = None,
        additional: dict[str, object] | None = None,
    ) -> dict[str, object]:
        return build_log_extra(
            endpoint=self.endpoint,
            generation=self.generation,
            elapsed=elapsed,
            additional=additional,
        )


__all__ = ["Connector", "PollCycle", "ResultCallback", "SleepFunc"]
