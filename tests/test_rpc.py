from __future__ import annotations

from typing import Any

import pytest
import requests

from solana_tps_monitor.exceptions import (
    NoSamplesAvailableError,
    RpcConnectionError,
    RpcError,
    RpcProtocolError,
    RpcTimeoutError,
    TransformError,
    ValidationError,
)
from solana_tps_monitor.metrics import get_metrics
from solana_tps_monitor.models import PerformanceSample
from solana_tps_monitor.rpc import (
    GET_RECENT_PERFORMANCE_SAMPLES,
    SolanaRpcClient,
    categorize_error,
    connect,
    wrap_rpc_exception,
)

ENDPOINT = "https://rpc.example/?api-key=secret"


class _FakeResponse:
    def __init__(self, body: Any = None, *, status_code: int = 200, invalid_json: bool = False) -> None:
        self._body = body
        self.status_code = status_code
        self._invalid_json = invalid_json

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error", response=self)

    def json(self) -> Any:
        if self._invalid_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")

        return self._body


class _FakeSession:
    def __init__(self, outcome: Any) -> None:
        self._outcome = outcome
        self.requests: list[dict[str, Any]] = []
        self.closed = False

    def post(self, url: str, *, json: Any, timeout: float) -> _FakeResponse:
        self.requests.append({"url": url, "json": json, "timeout": timeout})

        if isinstance(self._outcome, Exception):
            raise self._outcome

        return self._outcome

    def close(self) -> None:
        self.closed = True


def _client(outcome: Any) -> tuple[SolanaRpcClient, _FakeSession]:
    session = _FakeSession(outcome)

    return SolanaRpcClient(ENDPOINT, timeout_seconds=3.0, session=session), session


def _rpc_sample(**overrides: Any) -> dict[str, Any]:
    payload = {
        "slot": 250000000,
        "numTransactions": 1000,
        "numNonVoteTransactions": 600,
        "samplePeriodSecs": 60,
        "numSlots": 150,
    }
    payload.update(overrides)
    return payload


def test_get_recent_performance_samples_parses_result() -> None:
    client, session = _client(_FakeResponse({"jsonrpc": "2.0", "id": 1, "result": [_rpc_sample()]}))

    samples = client.get_recent_performance_samples(5)

    assert samples == [
        PerformanceSample(
            slot=250000000,
            num_transactions=1000,
            num_non_vote_transactions=600,
            sample_period_secs=60,
            num_slots=150,
        )
    ]

    request = session.requests[0]

    assert request["url"] == ENDPOINT
    assert request["timeout"] == 3.0
    assert request["json"]["method"] == GET_RECENT_PERFORMANCE_SAMPLES
    assert request["json"]["params"] == [5]
    assert request["json"]["jsonrpc"] == "2.0"

    duration = get_metrics().registry.get_sample_value(
        "solana_tps_monitor_rpc_call_duration_seconds_count",
        {"operation": GET_RECENT_PERFORMANCE_SAMPLES},
    )

    assert duration == 1.0


def test_request_ids_increase() -> None:
    client, session = _client(_FakeResponse({"result": []}))

    client.get_recent_performance_samples(1)
    client.get_recent_performance_samples(1)

    assert [request["json"]["id"] for request in session.requests] == [1, 2]


def test_null_result_is_empty_list() -> None:
    client, _ = _client(_FakeResponse({"result": None}))

    assert client.get_recent_performance_samples(5) == []


def test_json_rpc_error_raises_protocol_error() -> None:
    client, _ = _client(_FakeResponse({"error": {"code": -32601, "message": "Method not found"}}))

    with pytest.raises(RpcProtocolError) as exc_info:
        client.get_recent_performance_samples(5)

    error = exc_info.value

    assert error.rpc_error_code == -32601
    assert error.rpc_error_message == "Method not found"
    assert "Method not found" in error.message
    assert error.endpoint == "https://rpc.example"
    assert "secret" not in str(error)

    errors = get_metrics().registry.get_sample_value(
        "solana_tps_monitor_rpc_errors_total",
        {"operation": GET_RECENT_PERFORMANCE_SAMPLES, "error_type": "rpc_error"},
    )

    assert errors == 1.0


@pytest.mark.parametrize(
    "response",
    [
        _FakeResponse(invalid_json=True),
        _FakeResponse(["not", "an", "object"]),
        _FakeResponse({"jsonrpc": "2.0", "id": 1}),
        _FakeResponse({"result": {"unexpected": True}}),
        _FakeResponse({"result": [_rpc_sample(samplePeriodSecs="60")]}),
        _FakeResponse({"result": [{"slot": 1}]}),
    ],
)
def test_malformed_responses_raise_protocol_error(response: _FakeResponse) -> None:
    client, _ = _client(response)

    with pytest.raises(RpcProtocolError):
        client.get_recent_performance_samples(5)


def test_http_status_error_keeps_status_code() -> None:
    client, _ = _client(_FakeResponse(status_code=503))

    with pytest.raises(RpcProtocolError) as exc_info:
        client.get_recent_performance_samples(5)

    assert exc_info.value.rpc_error_code == 503


def test_timeout_maps_to_rpc_timeout_error() -> None:
    client, _ = _client(requests.Timeout("read timed out"))

    with pytest.raises(RpcTimeoutError):
        client.get_recent_performance_samples(5)

    errors = get_metrics().registry.get_sample_value(
        "solana_tps_monitor_rpc_errors_total",
        {"operation": GET_RECENT_PERFORMANCE_SAMPLES, "error_type": "timeout"},
    )

    assert errors == 1.0


def test_connection_failure_maps_to_rpc_connection_error() -> None:
    client, _ = _client(requests.ConnectionError("Connection refused"))

    with pytest.raises(RpcConnectionError) as exc_info:
        client.get_recent_performance_samples(5)

    assert exc_info.value.operation == GET_RECENT_PERFORMANCE_SAMPLES


@pytest.mark.parametrize("limit", [0, 721])
def test_sample_limit_is_bounded(limit: int) -> None:
    client, session = _client(_FakeResponse({"result": []}))

    with pytest.raises(ValueError):
        client.get_recent_performance_samples(limit)

    assert session.requests == []


def test_close_closes_session() -> None:
    client, session = _client(_FakeResponse({"result": []}))

    client.close()

    assert session.closed


def test_connect_creates_client_without_network() -> None:
    client = connect("https://rpc.example", timeout_seconds=2.5)

    try:
        assert client.endpoint == "https://rpc.example"
    finally:
        client.close()


@pytest.mark.parametrize("endpoint", ["not a url", "ftp://rpc.example", "https://"])
def test_connect_rejects_non_http_endpoints(endpoint: str) -> None:
    with pytest.raises(ValidationError) as exc_info:
        connect(endpoint)

    assert exc_info.value.config_key == "rpcUrl"


@pytest.mark.parametrize(
    ("exception", "expected"),
    [
        (NoSamplesAvailableError(), "no_samples"),
        (TransformError("bad period"), "transform_error"),
        (RpcTimeoutError("slow"), "timeout"),
        (RpcConnectionError("down"), "connection_error"),
        (RpcProtocolError("bad"), "rpc_error"),
        (RpcError("request timeout"), "timeout"),
        (RpcError("connection dropped"), "connection_error"),
        (RpcError("other"), "rpc_error"),
        (requests.Timeout(), "timeout"),
        (requests.ConnectionError(), "connection_error"),
        (requests.HTTPError(), "rpc_error"),
        (TimeoutError(), "timeout"),
        (OSError("Connection refused"), "connection_error"),
        (KeyError("slot"), "value_error"),
        (RuntimeError("boom"), "unknown"),
    ],
)
def test_categorize_error(exception: BaseException, expected: str) -> None:
    assert categorize_error(exception) == expected


def test_wrap_rpc_exception_redacts_endpoint() -> None:
    wrapped = wrap_rpc_exception(requests.Timeout("timed out"), ENDPOINT, "getHealth")

    assert isinstance(wrapped, RpcTimeoutError)
    assert wrapped.endpoint == "https://rpc.example"
    assert wrapped.context["original_exception"] == "Timeout"


def test_wrap_rpc_exception_passes_rpc_errors_through() -> None:
    original = RpcProtocolError("bad")

    assert wrap_rpc_exception(original, ENDPOINT, "getHealth") is original
