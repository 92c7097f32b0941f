from __future__ import annotations

import logging
import threading

import pytest

from helpers import FakeConnector, ManualClock, make_sample, settle, wait_until
from solana_tps_monitor.exceptions import RpcTimeoutError
from solana_tps_monitor.metrics import get_metrics
from solana_tps_monitor.models import PollResult
from solana_tps_monitor.poller.cycle import PollCycle

ENDPOINT = "https://a.example"


def _build_cycle(
    connector: FakeConnector,
    clock: ManualClock,
    results: list[PollResult],
    *,
    endpoint: str = ENDPOINT,
    sample_count: int = 5,
) -> PollCycle:
    return PollCycle(
        endpoint,
        connector=connector,
        on_result=results.append,
        interval_seconds=1.0,
        generation=1,
        sample_count=sample_count,
        sleep=clock.sleep,
    )


async def _stop(cycle: PollCycle) -> None:
    cycle.cancel()
    await cycle.wait_closed()


def test_cycle_rejects_invalid_arguments(connector: FakeConnector) -> None:
    with pytest.raises(ValueError):
        PollCycle(ENDPOINT, connector=connector, on_result=lambda _r: None, interval_seconds=0)

    with pytest.raises(ValueError):
        PollCycle(ENDPOINT, connector=connector, on_result=lambda _r: None, interval_seconds=1, sample_count=0)


@pytest.mark.anyio
@pytest.mark.parametrize("anyio_backend", ["asyncio"], indirect=True)
async def test_cycle_fetches_immediately_then_every_interval(
    connector: FakeConnector,
    clock: ManualClock,
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.INFO)

    results: list[PollResult] = []
    cycle = _build_cycle(connector, clock, results).start()

    try:
        await wait_until(lambda: len(results) == 1)

        assert results[0].ok
        assert results[0].metrics is not None
        assert results[0].metrics.real_tps == pytest.approx(10.0)
        assert connector.clients[0].limits == [5]
        assert cycle.active

        await clock.advance(1.0)
        await wait_until(lambda: len(results) == 2)

        await clock.advance(1.0)
        await wait_until(lambda: len(results) == 3)

        assert all(result.ok for result in results)
        assert len(connector.clients) == 1
        assert any("Polling https://a.example every 1.0 seconds." in message for message in caplog.messages)

        durations = get_metrics().registry.get_sample_value("solana_tps_monitor_poll_duration_seconds_count")
        assert durations == 3.0
    finally:
        await _stop(cycle)


@pytest.mark.anyio
@pytest.mark.parametrize("anyio_backend", ["asyncio"], indirect=True)
async def test_cycle_reports_failures_and_keeps_polling(connector: FakeConnector, clock: ManualClock) -> None:
    attempts: list[int] = []

    def _source(limit: int):
        attempts.append(limit)

        if len(attempts) == 1:
            raise RpcTimeoutError("RPC request timed out")

        if len(attempts) == 2:
            return []

        return [make_sample(600, 300, 60)]

    connector.sources[ENDPOINT] = _source

    results: list[PollResult] = []
    cycle = _build_cycle(connector, clock, results).start()

    try:
        await wait_until(lambda: len(results) == 1)

        assert not results[0].ok
        assert results[0].error == "RPC request timed out"
        assert results[0].error_type == "timeout"

        await clock.advance(1.0)
        await wait_until(lambda: len(results) == 2)

        assert results[1].error == "No performance samples available"
        assert results[1].error_type == "no_samples"

        await clock.advance(1.0)
        await wait_until(lambda: len(results) == 3)

        assert results[2].ok
        assert results[2].metrics is not None
        assert results[2].metrics.real_tps == pytest.approx(5.0)
    finally:
        await _stop(cycle)


@pytest.mark.anyio
@pytest.mark.parametrize("anyio_backend", ["asyncio"], indirect=True)
async def test_cycle_survives_unexpected_errors(
    connector: FakeConnector,
    clock: ManualClock,
    caplog: pytest.LogCaptureFixture,
) -> None:
    calls: list[int] = []

    def _source(limit: int):
        calls.append(limit)

        if len(calls) == 1:
            raise RuntimeError("boom")

        return [make_sample()]

    connector.sources[ENDPOINT] = _source

    caplog.set_level(logging.ERROR)

    results: list[PollResult] = []
    cycle = _build_cycle(connector, clock, results).start()

    try:
        await wait_until(lambda: len(results) == 1)

        assert results[0].error == "boom"
        assert results[0].error_type == "unknown"
        assert any("Unexpected error while polling" in message for message in caplog.messages)

        await clock.advance(1.0)
        await wait_until(lambda: len(results) == 2)

        assert results[1].ok
    finally:
        await _stop(cycle)


@pytest.mark.anyio
@pytest.mark.parametrize("anyio_backend", ["asyncio"], indirect=True)
async def test_cycle_retries_connection_on_next_tick(
    connector: FakeConnector,
    clock: ManualClock,
    caplog: pytest.LogCaptureFixture,
) -> None:
    connector.failures[ENDPOINT] = RuntimeError("name resolution failed")

    caplog.set_level(logging.WARNING)

    results: list[PollResult] = []
    cycle = _build_cycle(connector, clock, results).start()

    try:
        await wait_until(lambda: len(results) == 1)

        assert results[0].error == "Unable to connect to RPC endpoint: name resolution failed"
        # The first tick reports the failure from start without reconnecting.
        assert connector.attempts == [ENDPOINT]
        assert results[0].error_type == "connection_error"
        assert any("Unable to create RPC client" in message for message in caplog.messages)

        del connector.failures[ENDPOINT]

        await clock.advance(1.0)
        await wait_until(lambda: len(results) == 2)

        assert results[1].ok
        assert connector.attempts == [ENDPOINT, ENDPOINT]
        assert len(connector.clients) == 1
    finally:
        await _stop(cycle)


@pytest.mark.anyio
@pytest.mark.parametrize("anyio_backend", ["asyncio"], indirect=True)
async def test_cancelled_cycle_never_reports_again(connector: FakeConnector, clock: ManualClock) -> None:
    results: list[PollResult] = []
    cycle = _build_cycle(connector, clock, results).start()

    await wait_until(lambda: len(results) == 1)

    cycle.cancel()
    cycle.cancel()

    assert cycle.cancelled
    assert not cycle.active
    assert connector.clients[0].closed

    for _ in range(5):
        await clock.advance(1.0)

    await cycle.wait_closed()
    await settle()

    assert len(results) == 1
    assert connector.clients[0].calls == 1


@pytest.mark.anyio
@pytest.mark.parametrize("anyio_backend", ["asyncio"], indirect=True)
async def test_cancel_discards_in_flight_fetch(connector: FakeConnector, clock: ManualClock) -> None:
    gate = threading.Event()
    connector.gates[ENDPOINT] = gate

    results: list[PollResult] = []
    cycle = _build_cycle(connector, clock, results).start()

    try:
        await wait_until(lambda: connector.clients and connector.clients[0].calls == 1)

        assert cycle.fetch_in_flight

        cycle.cancel()
    finally:
        gate.set()

    await wait_until(lambda: connector.clients[0].completed == 1)
    await cycle.wait_closed()
    await settle()

    assert results == []


@pytest.mark.anyio
@pytest.mark.parametrize("anyio_backend", ["asyncio"], indirect=True)
async def test_tick_is_skipped_while_fetch_in_flight(connector: FakeConnector, clock: ManualClock) -> None:
    gate = threading.Event()
    connector.gates[ENDPOINT] = gate

    results: list[PollResult] = []
    cycle = _build_cycle(connector, clock, results).start()

    try:
        await wait_until(lambda: connector.clients and connector.clients[0].calls == 1)

        await clock.advance(1.0)
        await clock.advance(1.0)

        skipped = get_metrics().registry.get_sample_value("solana_tps_monitor_skipped_ticks_total")

        assert skipped == 2.0
        assert connector.clients[0].calls == 1
    finally:
        gate.set()

    try:
        await wait_until(lambda: len(results) == 1)

        await clock.advance(1.0)
        await wait_until(lambda: len(results) == 2)

        assert connector.clients[0].calls == 2
    finally:
        await _stop(cycle)


@pytest.mark.anyio
@pytest.mark.parametrize("anyio_backend", ["asyncio"], indirect=True)
async def test_result_handler_errors_do_not_stop_polling(
    connector: FakeConnector,
    clock: ManualClock,
    caplog: pytest.LogCaptureFixture,
) -> None:
    received: list[PollResult] = []

    def _handler(result: PollResult) -> None:
        received.append(result)
        raise RuntimeError("handler failed")

    caplog.set_level(logging.ERROR)

    cycle = PollCycle(
        ENDPOINT,
        connector=connector,
        on_result=_handler,
        interval_seconds=1.0,
        sleep=clock.sleep,
    ).start()

    try:
        await wait_until(lambda: len(received) == 1)

        await clock.advance(1.0)
        await wait_until(lambda: len(received) == 2)

        assert any("Result handler failed" in message for message in caplog.messages)
    finally:
        await _stop(cycle)


@pytest.mark.anyio
@pytest.mark.parametrize("anyio_backend", ["asyncio"], indirect=True)
async def test_cycle_can_only_start_once(connector: FakeConnector, clock: ManualClock) -> None:
    results: list[PollResult] = []
    cycle = _build_cycle(connector, clock, results).start()

    try:
        with pytest.raises(RuntimeError):
            cycle.start()
    finally:
        await _stop(cycle)

    with pytest.raises(RuntimeError):
        cycle.start()
