"""Solana JSON-RPC client and error categorization."""

from __future__ import annotations

import itertools
import time
from typing import Any, Protocol, runtime_checkable
from urllib.parse import urlsplit

import requests

from .config import RPC_URL_STORAGE_KEY
from .exceptions import (
    NoSamplesAvailableError,
    RpcConnectionError,
    RpcError,
    RpcProtocolError,
    RpcTimeoutError,
    TransformError,
    ValidationError,
)
from .logging import build_log_extra, get_logger, redact_endpoint
from .metrics import record_rpc_call_duration, record_rpc_error
from .models import PerformanceSample

LOGGER = get_logger(__name__)

GET_RECENT_PERFORMANCE_SAMPLES = "getRecentPerformanceSamples"
DEFAULT_RPC_TIMEOUT_SECONDS = 10.0
# Upper bound accepted by Solana nodes for getRecentPerformanceSamples.
MAX_PERFORMANCE_SAMPLES = 720


def categorize_error(exception: BaseException) -> str:
    """Categorize an exception into an error type for metrics.

    Args:
        exception: The exception to categorize.

    Returns:
        The error category: "timeout", "connection_error", "rpc_error",
        "no_samples", "transform_error", "value_error", or "unknown".
    """
    if isinstance(exception, NoSamplesAvailableError):
        return "no_samples"
    if isinstance(exception, TransformError):
        return "transform_error"
    if isinstance(exception, RpcTimeoutError):
        return "timeout"
    if isinstance(exception, RpcConnectionError):
        return "connection_error"
    if isinstance(exception, RpcProtocolError):
        return "rpc_error"
    if isinstance(exception, RpcError):
        if "timeout" in str(exception).lower():
            return "timeout"
        if "connection" in str(exception).lower():
            return "connection_error"
        return "rpc_error"

    if isinstance(exception, requests.Timeout):
        return "timeout"
    if isinstance(exception, requests.ConnectionError):
        return "connection_error"
    if isinstance(exception, requests.HTTPError):
        return "rpc_error"

    exception_type = type(exception).__name__
    exception_str = str(exception).lower()

    if "timeout" in exception_type.lower() or "timed out" in exception_str:
        return "timeout"

    if isinstance(exception, (OSError, ConnectionError)):
        if any(
            keyword in exception_str
            for keyword in [
                "connection refused",
                "network unreachable",
                "name resolution",
                "name or service not known",
                "connection aborted",
                "connection reset",
            ]
        ):
            return "connection_error"

    if isinstance(exception, (ValueError, TypeError, AttributeError, KeyError)):
        return "value_error"

    return "unknown"


def wrap_rpc_exception(
    exception: Exception,
    endpoint: str,
    operation: str,
) -> RpcError:
    """Wrap a transport exception in the matching RpcError subclass.

    Args:
        exception: The exception to wrap.
        endpoint: The RPC endpoint (redacted before it is stored).
        operation: The RPC method name.

    Returns:
        An RpcError or appropriate subclass wrapping the original exception.
    """
    if isinstance(exception, RpcError):
        return exception

    error_type = categorize_error(exception)
    error_message = f"RPC operation '{operation}' failed: {exception}"
    common: dict[str, Any] = {
        "endpoint": redact_endpoint(endpoint),
        "operation": operation,
        "context": {"original_exception": type(exception).__name__},
    }

    if error_type == "timeout":
        return RpcTimeoutError(error_message, **common)
    if error_type == "connection_error":
        return RpcConnectionError(error_message, **common)
    if error_type == "rpc_error":
        status_code = None

        if isinstance(exception, requests.HTTPError) and exception.response is not None:
            status_code = exception.response.status_code

        return RpcProtocolError(error_message, rpc_error_code=status_code, **common)

    common["context"]["error_type"] = error_type

    return RpcError(error_message, **common)


@runtime_checkable
class RpcClientProtocol(Protocol):
    """Connection handle bound to a single endpoint."""

    @property
    def endpoint(self) -> str: ...

    def get_recent_performance_samples(self, limit: int) -> list[PerformanceSample]: ...

    def close(self) -> None: ...


class SolanaRpcClient:
    """JSON-RPC 2.0 client over a pooled `requests.Session`.

    Construction performs no network I/O. Each call is attempted once; the
    poll interval is the only retry mechanism.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        timeout_seconds: float = DEFAULT_RPC_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._timeout_seconds = timeout_seconds
        self._session = session or _create_session()
        self._request_ids = itertools.count(1)

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def get_recent_performance_samples(self, limit: int) -> list[PerformanceSample]:
        """Return up to `limit` samples, most recent first.

        Raises:
            RpcError: On transport, HTTP, JSON-RPC or payload failures.
        """
        if limit < 1 or limit > MAX_PERFORMANCE_SAMPLES:
            raise ValueError(f"limit must be between 1 and {MAX_PERFORMANCE_SAMPLES}, got {limit}.")

        result = self.call(GET_RECENT_PERFORMANCE_SAMPLES, [limit])

        if result is None:
            return []

        if not isinstance(result, list):
            raise self._protocol_error(
                GET_RECENT_PERFORMANCE_SAMPLES,
                f"expected a list of samples, got {type(result).__name__}",
            )

        try:
            return [PerformanceSample.from_rpc(item) for item in result]
        except ValueError as exc:
            raise self._protocol_error(GET_RECENT_PERFORMANCE_SAMPLES, str(exc)) from exc

    def call(self, method: str, params: list[Any] | None = None) -> Any:
        """Issue one JSON-RPC request and return its `result` member."""

        payload = {
            "jsonrpc": "2.0",
            "id": next(self._request_ids),
            "method": method,
            "params": params or [],
        }

        start_time = time.perf_counter()

        try:
            response = self._session.post(
                self._endpoint,
                json=payload,
                timeout=self._timeout_seconds,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            error = wrap_rpc_exception(exc, self._endpoint, method)
            self._record_failure(method, error)
            raise error from exc

        try:
            body = response.json()
        except ValueError as exc:
            error = self._protocol_error(method, f"response is not valid JSON: {exc}")
            self._record_failure(method, error)
            raise error from exc

        if not isinstance(body, dict):
            error = self._protocol_error(method, "response is not a JSON-RPC object")
            self._record_failure(method, error)
            raise error

        rpc_error = body.get("error")

        if rpc_error is not None:
            code = rpc_error.get("code") if isinstance(rpc_error, dict) else None
            message = rpc_error.get("message") if isinstance(rpc_error, dict) else str(rpc_error)
            error = RpcProtocolError(
                f"RPC operation '{method}' failed: {message}",
                endpoint=redact_endpoint(self._endpoint),
                operation=method,
                rpc_error_code=code,
                rpc_error_message=message,
            )
            self._record_failure(method, error)
            raise error

        if "result" not in body:
            error = self._protocol_error(method, "response has neither 'result' nor 'error'")
            self._record_failure(method, error)
            raise error

        record_rpc_call_duration(method, time.perf_counter() - start_time)

        return body["result"]

    def close(self) -> None:
        self._session.close()

    def _protocol_error(self, method: str, detail: str) -> RpcProtocolError:
        return RpcProtocolError(
            f"RPC operation '{method}' returned a malformed response: {detail}",
            endpoint=redact_endpoint(self._endpoint),
            operation=method,
        )

    def _record_failure(self, method: str, error: RpcError) -> None:
        error_type = categorize_error(error)
        record_rpc_error(method, error_type)
        LOGGER.debug(
            "RPC operation '%s' failed (%s).",
            method,
            error_type,
            extra=build_log_extra(endpoint=self._endpoint, additional=error.context),
        )


def _create_session() -> requests.Session:
    session = requests.Session()
    adapter = requests.adapters.HTTPAdapter(
        pool_connections=1,
        pool_maxsize=2,
        max_retries=0,  # the poll interval is the retry policy
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def connect(endpoint: str, *, timeout_seconds: float | None = None) -> SolanaRpcClient:
    """Create a connection handle for `endpoint` without touching the network.

    Raises:
        ValidationError: If `endpoint` is not an http(s) URL with a host.
    """
    parts = urlsplit(endpoint)

    if parts.scheme not in {"http", "https"} or not parts.netloc:
        raise ValidationError(
            "RPC endpoint must be an http(s) URL",
            value=redact_endpoint(endpoint),
            expected_type="http(s) URL",
            config_key=RPC_URL_STORAGE_KEY,
        )

    return SolanaRpcClient(
        endpoint,
        timeout_seconds=timeout_seconds if timeout_seconds is not None else DEFAULT_RPC_TIMEOUT_SECONDS,
    )


__all__ = [
    "DEFAULT_RPC_TIMEOUT_SECONDS",
    "GET_RECENT_PERFORMANCE_SAMPLES",
    "MAX_PERFORMANCE_SAMPLES",
    "RpcClientProtocol",
    "SolanaRpcClient",
    "categorize_error",
    "connect",
    "wrap_rpc_exception",
]
