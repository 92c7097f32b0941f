"""Shared fakes for poller, supervisor and HTTP tests."""

from __future__ import annotations

import asyncio
import threading
import time
from typing import Callable

from solana_tps_monitor.models import PerformanceSample

SampleSource = Callable[[int], list[PerformanceSample]]


def make_sample(
    num_transactions: int = 1000,
    num_non_vote_transactions: int = 600,
    sample_period_secs: int = 60,
    slot: int = 1,
) -> PerformanceSample:
    return PerformanceSample(
        slot=slot,
        num_transactions=num_transactions,
        num_non_vote_transactions=num_non_vote_transactions,
        sample_period_secs=sample_period_secs,
        num_slots=150,
    )


class ManualClock:
    """Virtual clock injected as a poll cycle's `sleep`.

    Sleepers only wake when `advance` moves the clock past their deadline.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._waiters: list[tuple[float, asyncio.Future[None]]] = []

    @property
    def pending(self) -> int:
        return sum(1 for _, future in self._waiters if not future.done())

    async def sleep(self, seconds: float) -> None:
        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append((self.now + seconds, future))
        await future

    async def advance(self, seconds: float) -> None:
        # Let freshly started timers register their sleep first.
        await settle()

        self.now += seconds

        due = [item for item in self._waiters if item[0] <= self.now]
        self._waiters = [item for item in self._waiters if item[0] > self.now]

        for _, future in due:
            if not future.done():
                future.set_result(None)

        await settle()


async def settle(rounds: int = 5) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll `predicate` on the real loop clock; worker threads need real time to finish."""

    deadline = time.monotonic() + timeout

    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("Condition not met before timeout.")

        await asyncio.sleep(0.005)


class FakeRpcClient:
    """Connection handle whose samples come from `source`; optionally blocks on `gate`."""

    def __init__(
        self,
        endpoint: str,
        source: SampleSource | None = None,
        gate: threading.Event | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._source = source or (lambda _limit: [make_sample()])
        self.gate = gate
        self.limits: list[int] = []
        self.completed = 0
        self.closed = False

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def calls(self) -> int:
        return len(self.limits)

    def get_recent_performance_samples(self, limit: int) -> list[PerformanceSample]:
        self.limits.append(limit)

        try:
            if self.gate is not None:
                self.gate.wait(timeout=5)

            return self._source(limit)
        finally:
            self.completed += 1

    def close(self) -> None:
        self.closed = True


class FakeConnector:
    """Connector returning `FakeRpcClient`s configured per endpoint."""

    def __init__(self) -> None:
        self.sources: dict[str, SampleSource] = {}
        self.gates: dict[str, threading.Event] = {}
        self.failures: dict[str, Exception] = {}
        self.clients: list[FakeRpcClient] = []
        self.attempts: list[str] = []

    def __call__(self, endpoint: str) -> FakeRpcClient:
        self.attempts.append(endpoint)

        failure = self.failures.get(endpoint)

        if failure is not None:
            raise failure

        client = FakeRpcClient(
            endpoint,
            source=self.sources.get(endpoint),
            gate=self.gates.get(endpoint),
        )
        self.clients.append(client)

        return client

    def clients_for(self, endpoint: str) -> list[FakeRpcClient]:
        return [client for client in self.clients if client.endpoint == endpoint]

    def release_all(self) -> None:
        for gate in self.gates.values():
            gate.set()
