import asyncio
import signal
import sys

import uvicorn

from .app import create_app
from .settings import get_settings

SETTINGS = get_settings()


async def run_server() -> None:
    """Run the monitor's HTTP server until it is cancelled.

    The FastAPI lifespan starts polling on startup and cancels the active poll
    cycle on shutdown.
    """
    app = create_app()

    config = uvicorn.Config(
        app,
        host=SETTINGS.server.host,
        port=SETTINGS.server.port,
        log_config=None,
    )

    server = uvicorn.Server(config)

    await server.serve()


def run() -> None:
    """Run the server with graceful signal handling.

    Registers signal handlers for SIGTERM and SIGINT so that termination exits
    cleanly after the lifespan cleanup instead of printing a traceback.
    """
    def _signal_handler(signum: int, frame: object) -> None:
        """Handle termination signals by raising KeyboardInterrupt."""
        raise KeyboardInterrupt(f"Received signal {signum}")

    signal.signal(signal.SIGTERM, _signal_handler)
    signal.signal(signal.SIGINT, _signal_handler)

    try:
        asyncio.run(run_server())
    except KeyboardInterrupt:
        sys.exit(0)


if __name__ == "__main__":
    run()
