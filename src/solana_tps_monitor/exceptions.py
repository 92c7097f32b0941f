"""Custom exception hierarchy for the TPS monitor."""

from __future__ import annotations


class TpsMonitorError(Exception):
    """Base exception for all TPS monitor errors.

    All custom exceptions in this module inherit from this base class. The
    ``message`` attribute holds the human-readable text surfaced to callers,
    while ``str()`` additionally renders the attached context for logs.
    """

    def __init__(
        self,
        message: str,
        *,
        context: dict[str, object] | None = None,
    ) -> None:
        """Initialize the exception with a message and optional context.

        Args:
            message: The error message.
            context: Optional context dictionary with additional error information.
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """Return a string representation of the exception."""
        if self.context:
            context_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} (context: {context_str})"
        return self.message


class RpcError(TpsMonitorError):
    """Base exception for network errors raised while talking to the RPC endpoint.

    Raised when RPC operations fail due to network issues, timeouts,
    or JSON-RPC protocol errors.
    """

    def __init__(
        self,
        message: str,
        *,
        endpoint: str | None = None,
        operation: str | None = None,
        context: dict[str, object] | None = None,
    ) -> None:
        """Initialize the RPC error with context.

        Args:
            message: The error message.
            endpoint: The (redacted) RPC endpoint.
            operation: The RPC operation that failed.
            context: Optional additional context.
        """
        rpc_context: dict[str, object] = {}
        if endpoint:
            rpc_context["endpoint"] = endpoint
        if operation:
            rpc_context["operation"] = operation
        if context:
            rpc_context.update(context)

        super().__init__(message, context=rpc_context)
        self.endpoint = endpoint
        self.operation = operation


class RpcConnectionError(RpcError):
    """Raised when unable to connect to an RPC endpoint."""

    pass


class RpcTimeoutError(RpcError):
    """Raised when an RPC operation times out."""

    pass


class RpcProtocolError(RpcError):
    """Raised on HTTP status errors, JSON-RPC error responses, or malformed payloads."""

    def __init__(
        self,
        message: str,
        *,
        rpc_error_code: int | None = None,
        rpc_error_message: str | None = None,
        **kwargs: object,
    ) -> None:
        """Initialize the RPC protocol error.

        Args:
            message: The error message.
            rpc_error_code: The JSON-RPC error code (or HTTP status code).
            rpc_error_message: The JSON-RPC error message.
            **kwargs: Additional arguments passed to RpcError.
        """
        context = kwargs.pop("context", {}) or {}
        if rpc_error_code is not None:
            context["rpc_error_code"] = rpc_error_code
        if rpc_error_message:
            context["rpc_error_message"] = rpc_error_message
        kwargs["context"] = context
        super().__init__(message, **kwargs)
        self.rpc_error_code = rpc_error_code
        self.rpc_error_message = rpc_error_message


class SampleError(TpsMonitorError):
    """Base exception for failures deriving metrics from performance samples."""

    pass


class NoSamplesAvailableError(SampleError):
    """Raised when the RPC endpoint returned no performance samples."""

    def __init__(
        self,
        message: str = "No performance samples available",
        *,
        context: dict[str, object] | None = None,
    ) -> None:
        super().__init__(message, context=context)


class TransformError(SampleError):
    """Raised when a sample cannot be turned into valid throughput figures."""

    pass


class ConfigError(TpsMonitorError):
    """Base exception for configuration and persisted-state errors."""

    def __init__(
        self,
        message: str,
        *,
        config_file: str | None = None,
        config_key: str | None = None,
        context: dict[str, object] | None = None,
    ) -> None:
        """Initialize the configuration error with context.

        Args:
            message: The error message.
            config_file: The configuration or store file path.
            config_key: The offending key.
            context: Optional additional context.
        """
        config_context: dict[str, object] = {}
        if config_file:
            config_context["config_file"] = config_file
        if config_key:
            config_context["config_key"] = config_key
        if context:
            config_context.update(context)

        super().__init__(message, context=config_context)
        self.config_file = config_file
        self.config_key = config_key


class ValidationError(ConfigError):
    """Raised when a configured or persisted value fails validation."""

    def __init__(
        self,
        message: str,
        *,
        value: object | None = None,
        expected_type: str | None = None,
        **kwargs: object,
    ) -> None:
        """Initialize the validation error.

        Args:
            message: The error message.
            value: The invalid value.
            expected_type: The expected type.
            **kwargs: Additional arguments passed to ConfigError.
        """
        context = kwargs.pop("context", {}) or {}
        if value is not None:
            context["value"] = value
        if expected_type:
            context["expected_type"] = expected_type
        kwargs["context"] = context
        super().__init__(message, **kwargs)
        self.value = value
        self.expected_type = expected_type


def describe_error(exc: BaseException) -> str:
    """Return the human-readable message for an exception, without context."""

    if isinstance(exc, TpsMonitorError):
        return exc.message

    message = str(exc)

    return message or type(exc).__name__


__all__ = [
    "ConfigError",
    "NoSamplesAvailableError",
    "RpcConnectionError",
    "RpcError",
    "RpcProtocolError",
    "RpcTimeoutError",
    "SampleError",
    "TpsMonitorError",
    "TransformError",
    "ValidationError",
    "describe_error",
]
