"""Runtime dependency container for wiring metrics, settings, storage and RPC connectors."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from .endpoint import EndpointStoreProtocol, JsonFileEndpointStore
from .metrics import MetricsStoreProtocol, get_metrics
from .poller.cycle import SleepFunc
from .poller.intervals import create_rpc_client, determine_poll_interval_seconds
from .poller.supervisor import ConnectionSupervisor
from .rpc import RpcClientProtocol
from .settings import AppSettings, get_settings


@dataclass(slots=True)
class ApplicationContext:
    """Bundle of services required while the monitor is running."""

    metrics: MetricsStoreProtocol

    settings: AppSettings

    store: EndpointStoreProtocol

    connector: Callable[[str], RpcClientProtocol]

    sleep: SleepFunc | None = None

    def create_supervisor(self) -> ConnectionSupervisor:
        """Construct a supervisor bound to this context's store and connector."""

        return ConnectionSupervisor(
            store=self.store,
            connector=self.connector,
            interval_seconds=determine_poll_interval_seconds(self.settings.poller),
            sample_count=self.settings.poller.sample_count,
            sleep=self.sleep,
        )


def default_connector(endpoint: str) -> RpcClientProtocol:
    """Create a `SolanaRpcClient` for the given endpoint."""

    return create_rpc_client(endpoint)


def create_default_context() -> ApplicationContext:
    """Build an application context from environment settings and the on-disk store."""

    settings = get_settings()

    return ApplicationContext(
        metrics=get_metrics(),
        settings=settings,
        store=JsonFileEndpointStore(settings.storage.resolve_store_path()),
        connector=default_connector,
    )


_APPLICATION_CONTEXT: ApplicationContext | None = None


def get_application_context() -> ApplicationContext:
    """Return the current application context, creating one when absent."""

    global _APPLICATION_CONTEXT

    if _APPLICATION_CONTEXT is None:
        _APPLICATION_CONTEXT = create_default_context()

    return _APPLICATION_CONTEXT


def set_application_context(context: ApplicationContext | None) -> None:
    """Replace the globally cached application context."""

    global _APPLICATION_CONTEXT

    _APPLICATION_CONTEXT = context


def reset_application_context() -> None:
    """Clear the cached context so the next access rebuilds dependencies."""

    set_application_context(None)


__all__ = [
    "ApplicationContext",
    "create_default_context",
    "default_connector",
    "get_application_context",
    "reset_application_context",
    "set_application_context",
]
