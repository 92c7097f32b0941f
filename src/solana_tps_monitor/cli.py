"""Command-line helpers for TPS monitor tooling."""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict, is_dataclass
from typing import Any

from .config import RPC_URL_STORAGE_KEY
from .endpoint import JsonFileEndpointStore, sanitize_endpoint
from .exceptions import ConfigError, RpcError, SampleError, describe_error
from .logging import build_log_extra, get_logger, log_duration, redact_endpoint
from .poller.intervals import create_rpc_client, determine_poll_interval_seconds
from .poller.transform import transform_samples
from .settings import AppSettings, get_settings

LOGGER = get_logger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Inspect solana-tps-monitor settings or take a one-off TPS sample.",
    )
    parser.add_argument(
        "--print-resolved",
        action="store_true",
        help="Output the resolved settings and the endpoint that would be polled.",
    )
    parser.add_argument(
        "--show-secrets",
        action="store_true",
        help="Print RPC URLs in full instead of scheme and host only.",
    )
    parser.add_argument(
        "--sample",
        action="store_true",
        help="Fetch recent performance samples once and print the derived TPS metrics.",
    )
    parser.add_argument(
        "--rpc-url",
        dest="rpc_url",
        default=None,
        help="RPC URL to sample (defaults to the persisted endpoint).",
    )
    return parser


def _serialize(value: Any) -> Any:
    if is_dataclass(value):
        return {key: _serialize(val) for key, val in asdict(value).items()}
    if isinstance(value, list):
        return [_serialize(item) for item in value]
    if isinstance(value, dict):
        return {key: _serialize(val) for key, val in value.items()}
    return value


def resolve_current_endpoint(settings: AppSettings) -> str:
    """Return the endpoint the service would poll, sanitizing the stored value."""

    store = JsonFileEndpointStore(settings.storage.resolve_store_path())

    return sanitize_endpoint(store.get(RPC_URL_STORAGE_KEY), store=store)


def _render_resolved_settings(settings: AppSettings, *, show_secrets: bool) -> str:
    endpoint = resolve_current_endpoint(settings)

    payload = {
        "store_path": str(settings.storage.resolve_store_path()),
        "poll_interval_seconds": determine_poll_interval_seconds(settings.poller),
        "endpoint": endpoint if show_secrets else redact_endpoint(endpoint),
        "settings": _serialize(settings),
    }

    return json.dumps(payload, indent=2, sort_keys=True)


def sample_once(endpoint: str, sample_count: int) -> dict[str, Any]:
    """Fetch samples from `endpoint` once and return the derived metrics."""

    client = create_rpc_client(endpoint)

    try:
        with log_duration(LOGGER, "Fetched performance samples.", extra=build_log_extra(endpoint=endpoint)):
            samples = client.get_recent_performance_samples(sample_count)
    finally:
        client.close()

    return transform_samples(samples).as_dict()


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""

    parser = _build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()

    if args.print_resolved:
        print(_render_resolved_settings(settings, show_secrets=args.show_secrets))
        return 0

    if args.sample:
        endpoint = args.rpc_url or resolve_current_endpoint(settings)
        shown_endpoint = endpoint if args.show_secrets else redact_endpoint(endpoint)

        try:
            metrics = sample_once(endpoint, settings.poller.sample_count)
        except (ConfigError, RpcError, SampleError, ValueError) as exc:
            print(f"Sampling {shown_endpoint} failed: {describe_error(exc)}", file=sys.stderr)
            return 1

        print(json.dumps({"endpoint": shown_endpoint, "metrics": metrics}, indent=2, sort_keys=True))
        return 0

    parser.print_help()
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
