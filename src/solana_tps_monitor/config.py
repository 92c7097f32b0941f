"""Static configuration constants and `.env` loading."""

from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv

DEFAULT_ENV_PATH = Path.cwd().joinpath(".env").resolve()

DEFAULT_RPC_URL = "https://solana-rpc.publicnode.com"

# Public endpoints that rate-limit or reject browser-style polling. A persisted
# endpoint containing one of these substrings is discarded on load.
BLOCKED_ENDPOINT_SUBSTRINGS: tuple[str, ...] = (
    "api.mainnet-beta.solana.com",
    "ankr.com",
)

RPC_URL_STORAGE_KEY = "rpcUrl"

DEFAULT_SAMPLE_COUNT = 5


def load_environment(path: Path | None = None) -> bool:
    """Load variables from a `.env` file without overriding the real environment.

    Args:
        path: Path of the `.env` file (defaults to `./.env`).

    Returns:
        True if at least one variable was loaded.
    """

    return load_dotenv(path or DEFAULT_ENV_PATH)


__all__ = [
    "BLOCKED_ENDPOINT_SUBSTRINGS",
    "DEFAULT_ENV_PATH",
    "DEFAULT_RPC_URL",
    "DEFAULT_SAMPLE_COUNT",
    "RPC_URL_STORAGE_KEY",
    "load_environment",
]
