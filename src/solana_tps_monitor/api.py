"""HTTP API surface for the TPS monitor."""

from __future__ import annotations

from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel, Field

from .exceptions import ConfigError, describe_error
from .health import (
    format_metrics_payload,
    generate_health_report,
    generate_readiness_report,
)
from .logging import build_log_extra, get_logger, redact_endpoint
from .metrics import get_metrics
from .models import ConnectionSnapshot
from .poller.supervisor import ConnectionSupervisor

LOGGER = get_logger(__name__)


class EndpointChangeRequest(BaseModel):
    """Body of `POST /endpoint`."""

    rpc_url: str = Field(min_length=1, description="RPC URL to poll from now on.")


def _get_supervisor(request: Request) -> ConnectionSupervisor | None:
    return getattr(request.app.state, "supervisor", None)


def _current_snapshot(request: Request) -> ConnectionSnapshot | None:
    supervisor = _get_supervisor(request)

    return supervisor.snapshot() if supervisor is not None else None


def _not_running() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Monitor is not running."},
    )


def register_health_routes(app: FastAPI) -> None:
    """Register health check endpoints.

    Registers the following endpoints:
    - GET /health: Overall health status of the connection
    - GET /health/details: Health status including the last error and success time
    - GET /health/livez: Liveness probe (always returns 200)
    - GET /health/readyz: Readiness probe (returns 200 if ready, 503 if not)
    """
    @app.get("/health", response_class=JSONResponse)
    async def health(request: Request) -> JSONResponse:
        overall_status, status_code, connection = generate_health_report(_current_snapshot(request))

        return JSONResponse(
            status_code=status_code,
            content={
                "status": overall_status,
                "connection": connection,
            },
        )

    @app.get("/health/details", response_class=JSONResponse)
    async def health_details(request: Request) -> JSONResponse:
        overall_status, status_code, connection = generate_health_report(
            _current_snapshot(request),
            include_details=True,
        )

        return JSONResponse(
            status_code=status_code,
            content={
                "status": overall_status,
                "connection": connection,
            },
        )

    @app.get("/health/livez", response_class=JSONResponse)
    async def livez() -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content={"status": "alive"},
        )

    @app.get("/health/readyz", response_class=JSONResponse)
    async def readyz(request: Request) -> JSONResponse:
        ready, connection = generate_readiness_report(_current_snapshot(request))

        status_code = (
            status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE
        )

        return JSONResponse(
            status_code=status_code,
            content={
                "status": "ready" if ready else "not_ready",
                "connection": connection,
            },
        )


def register_status_routes(app: FastAPI) -> None:
    """Register the snapshot and endpoint-change routes.

    Registers:
    - GET /status: Current status, metrics, error and endpoint
    - POST /endpoint: Switch polling to a new RPC endpoint
    """
    @app.get("/status", response_class=JSONResponse)
    async def connection_status(request: Request) -> JSONResponse:
        snapshot = _current_snapshot(request)

        if snapshot is None:
            return _not_running()

        return JSONResponse(status_code=status.HTTP_200_OK, content=snapshot.as_dict())

    @app.post("/endpoint", response_class=JSONResponse)
    async def change_endpoint(request: Request, body: EndpointChangeRequest) -> JSONResponse:
        supervisor = _get_supervisor(request)

        if supervisor is None:
            return _not_running()

        try:
            snapshot = supervisor.request_endpoint_change(body.rpc_url)
        except ConfigError as exc:
            LOGGER.error(
                "Unable to persist RPC endpoint %s: %s",
                redact_endpoint(body.rpc_url),
                describe_error(exc),
                extra=build_log_extra(endpoint=body.rpc_url, additional=exc.context),
            )

            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"detail": f"Unable to persist RPC endpoint: {describe_error(exc)}"},
            )

        return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content=snapshot.as_dict())


def register_metrics_routes(app: FastAPI) -> None:
    """Register the Prometheus metrics endpoint.

    Registers:
    - GET /metrics: Prometheus metrics endpoint (always returns 200)
    """
    @app.get("/metrics", response_class=Response)
    async def metrics() -> Response:
        metric_data = generate_latest(get_metrics().registry)
        formatted_payload = format_metrics_payload(metric_data)

        return Response(content=formatted_payload, media_type=CONTENT_TYPE_LATEST)


def register_routes(app: FastAPI) -> None:
    """Register all routes on a single app."""
    register_health_routes(app)
    register_status_routes(app)
    register_metrics_routes(app)


__all__ = [
    "EndpointChangeRequest",
    "register_health_routes",
    "register_metrics_routes",
    "register_routes",
    "register_status_routes",
]
