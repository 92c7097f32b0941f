import logging
import logging.config
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from .api import register_routes
from .context import (
    ApplicationContext,
    get_application_context,
    reset_application_context,
    set_application_context,
)
from .exceptions import ConfigError
from .logging import (
    JsonFormatter,
    StructuredTextFormatter,
    build_log_extra,
    get_logger,
)
from .metrics import MetricsStoreProtocol, set_metrics
from .settings import AppSettings, get_settings

SETTINGS = get_settings()


def _configure_logging(settings: AppSettings) -> None:
    """Configure logging based on application settings."""
    log_level = settings.logging.level
    log_format = settings.logging.format

    if log_level not in logging._nameToLevel:
        log_level = "INFO"

    if log_format == "json":
        formatter_config = {
            "()": JsonFormatter,
            "datefmt": "%Y-%m-%dT%H:%M:%S%z",
        }
    else:
        formatter_config = {
            "()": StructuredTextFormatter,
            "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
            "datefmt": "%Y-%m-%dT%H:%M:%S%z",
            "color_enabled": settings.logging.color_enabled,
        }

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"standard": formatter_config},
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "standard",
                }
            },
            "root": {"level": log_level, "handlers": ["default"]},
            "loggers": {
                "uvicorn": {
                    "handlers": ["default"],
                    "level": log_level,
                    "propagate": False,
                },
                "uvicorn.error": {
                    "handlers": ["default"],
                    "level": log_level,
                    "propagate": False,
                },
                "uvicorn.access": {
                    "handlers": ["default"],
                    "level": log_level,
                    "propagate": False,
                },
            },
        }
    )


_configure_logging(SETTINGS)
LOGGER = get_logger(__name__)


APP_TITLE = "Solana Real TPS Monitor"
APP_DESCRIPTION = "Polls a Solana RPC endpoint and exposes non-vote throughput and connection health."


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start the connection supervisor on startup and stop it on shutdown.

    On startup:
    - Resolves the application context (settings, endpoint store, RPC connector)
    - Builds the supervisor, which reads and sanitizes the persisted endpoint
    - Flags the monitor as up and starts polling

    On shutdown:
    - Flags the monitor as down
    - Cancels the active poll cycle and waits (bounded) for it to stop
    - Resets the application context
    """
    context = get_application_context()
    supervisor = context.create_supervisor()

    app.state.context = context
    app.state.supervisor = supervisor

    try:
        snapshot = supervisor.start()
    except ConfigError as exc:
        LOGGER.error("Unable to start polling: %s", exc)
        raise

    context.metrics.exporter.up.set(1)

    LOGGER.info(
        "TPS monitor started.",
        extra=build_log_extra(endpoint=snapshot.endpoint, generation=snapshot.generation),
    )

    try:
        yield
    finally:
        try:
            context.metrics.exporter.up.set(0)
        except Exception:  # noqa: BLE001
            # Ignore errors during shutdown to prevent cascading failures.
            pass

        await supervisor.shutdown(timeout_seconds=context.settings.poller.shutdown_timeout_seconds)

        app.state.supervisor = None
        app.state.context = None
        reset_application_context()


def create_app(
    *,
    metrics: MetricsStoreProtocol | None = None,
    context: ApplicationContext | None = None,
) -> FastAPI:
    """Create a FastAPI instance configured for the TPS monitor.

    Args:
        metrics: Optional metrics store for dependency injection (defaults to global metrics).
        context: Optional application context for dependency injection (defaults to global context).

    Returns:
        FastAPI application instance with all routes registered.
    """

    if metrics is not None:
        set_metrics(metrics)
        reset_application_context()

    if context is not None:
        set_application_context(context)

    app = FastAPI(
        title=APP_TITLE,
        description=APP_DESCRIPTION,
        lifespan=_lifespan,
    )

    app.state.supervisor = None
    app.state.context = None

    register_routes(app)

    return app


app = create_app()
