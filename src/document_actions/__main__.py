"""Entry point for the document actions hub.

This module sets up the async runtime and serves the hub until signalled.
"""

import asyncio
import signal
import sys

from aiohttp import web

from .config import load_settings
from .server import create_app, setup_logging


async def main() -> int:
    """Main entry point for the hub.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    settings = load_settings()
    logger = setup_logging(settings)
    runner = None

    try:
        app = create_app(settings, logger=logger)
        runner = web.AppRunner(app)
        await runner.setup()
        site = web.TCPSite(runner, settings.hub.host, settings.hub.port)
        await site.start()
        logger.info(
            "Action hub listening",
            host=settings.hub.host,
            port=settings.hub.port,
            base_url=settings.hub.base_url,
        )

        shutdown = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, shutdown.set)
        await shutdown.wait()
        logger.info("Received shutdown signal, stopping")
        return 0

    except Exception as e:
        logger.exception("Action hub failed", error=str(e))
        return 1

    finally:
        if runner:
            await runner.cleanup()


def run() -> None:
    """Run the hub with proper async context."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
