"""
Gamemaster Saga - Process Entry Point
=====================================

Starts the saga core (database, config, event bus, services) and keeps it
running until SIGINT or SIGTERM. A chat frontend attaches to
`context.service_container.router` to turn component events into view
models.
"""

import asyncio
import signal
import sys

from src.core.application_context import ApplicationContext
from src.core.config.config import Config
from src.core.logging.logger import get_logger, shutdown_logging

logger = get_logger(__name__)


async def run() -> None:
    # Production schemas are managed outside the process.
    context = ApplicationContext(create_schema=not Config.is_production())
    await context.initialize()

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows event loops have no signal handlers.
            signal.signal(sig, lambda *_: stop.set())

    logger.info("Gamemaster Saga core running")
    try:
        await stop.wait()
    finally:
        await context.shutdown()


def main() -> int:
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        logger.info("Interrupted")
    except RuntimeError as exc:
        logger.critical(f"Startup failed: {exc}")
        return 1
    finally:
        shutdown_logging()
    return 0


if __name__ == "__main__":
    sys.exit(main())
