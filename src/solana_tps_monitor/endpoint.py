"""Persisted endpoint storage and sanitization of the stored RPC URL."""

from __future__ import annotations

import json
import os
import threading
from pathlib import Path
from typing import Iterable, Protocol, runtime_checkable

from .config import BLOCKED_ENDPOINT_SUBSTRINGS, DEFAULT_RPC_URL, RPC_URL_STORAGE_KEY
from .exceptions import ConfigError
from .logging import build_log_extra, get_logger, redact_endpoint

LOGGER = get_logger(__name__)


@runtime_checkable
class EndpointStoreProtocol(Protocol):
    """Minimal key-value persistence used for the endpoint setting."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class InMemoryEndpointStore:
    """Dictionary-backed store; state lives as long as the instance."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def remove(self, key: str) -> None:
        self._values.pop(key, None)


class JsonFileEndpointStore:
    """Store persisted as a flat JSON object so the endpoint survives restarts.

    A missing file reads as an empty store. A corrupt or unreadable file is
    logged and also treated as empty; the next write replaces it. Writes go to
    a temporary sibling file that is atomically moved into place.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> str | None:
        with self._lock:
            value = self._read().get(key)

        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    def remove(self, key: str) -> None:
        with self._lock:
            data = self._read()

            if key not in data:
                return

            del data[key]
            self._write(data)

    def _read(self) -> dict[str, object]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            LOGGER.warning(
                "Unable to read endpoint store %s; treating it as empty.",
                self._path,
                exc_info=exc,
                extra=build_log_extra(additional={"store_path": str(self._path)}),
            )
            return {}

        try:
            data = json.loads(raw) if raw.strip() else {}
        except json.JSONDecodeError as exc:
            LOGGER.warning(
                "Endpoint store %s is not valid JSON; treating it as empty.",
                self._path,
                exc_info=exc,
                extra=build_log_extra(additional={"store_path": str(self._path)}),
            )
            return {}

        if not isinstance(data, dict):
            LOGGER.warning(
                "Endpoint store %s does not contain a JSON object; treating it as empty.",
                self._path,
                extra=build_log_extra(additional={"store_path": str(self._path)}),
            )
            return {}

        return data

    def _write(self, data: dict[str, object]) -> None:
        tmp_path = self._path.with_name(f"{self._path.name}.tmp")

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as exc:
            raise ConfigError(
                f"Unable to write endpoint store: {exc}",
                config_file=str(self._path),
            ) from exc


def is_blocked_endpoint(
    endpoint: str,
    blocklist: Iterable[str] = BLOCKED_ENDPOINT_SUBSTRINGS,
) -> bool:
    """Return True if the endpoint contains a blocklisted substring (case-sensitive)."""

    return any(blocked in endpoint for blocked in blocklist)


def sanitize_endpoint(
    candidate: str | None,
    *,
    store: EndpointStoreProtocol | None = None,
    default: str = DEFAULT_RPC_URL,
    blocklist: Iterable[str] = BLOCKED_ENDPOINT_SUBSTRINGS,
) -> str:
    """Resolve a persisted endpoint into the one that should be used.

    Absent or empty values fall back to the default. A blocklisted value is
    removed from the store (when given) and replaced with the default. Any
    other value is returned unchanged.

    Args:
        candidate: The persisted endpoint, if any.
        store: Store to clear when the persisted value is blocked.
        default: Fallback endpoint.
        blocklist: Substrings that disqualify an endpoint.

    Returns:
        The endpoint to use.
    """
    if not candidate:
        return default

    if is_blocked_endpoint(candidate, blocklist):
        LOGGER.warning(
            "Discarding persisted RPC endpoint %s because it is blocklisted; using %s.",
            redact_endpoint(candidate),
            default,
            extra=build_log_extra(endpoint=candidate),
        )

        if store is not None:
            store.remove(RPC_URL_STORAGE_KEY)

        return default

    return candidate


__all__ = [
    "EndpointStoreProtocol",
    "InMemoryEndpointStore",
    "JsonFileEndpointStore",
    "is_blocked_endpoint",
    "sanitize_endpoint",
]
