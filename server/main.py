"""Entry point for the FileShare server.
Loads credentials, binds the listener and serves until interrupted.
"""

import asyncio
import signal
import sys

from common.logging_config import setup_logging
from server.config import ServerSettings
from server.listener import FileShareServer

logger = setup_logging('server')


async def serve(settings: ServerSettings) -> None:
    """
    Start the listener and run until a termination signal arrives.

    Args:
        settings: Server settings (bind address, storage root, limits)
    """
    server = FileShareServer(settings)
    await server.start()

    stop_event = asyncio.Event()

    if sys.platform != 'win32':
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda s=sig: _request_stop(stop_event, s))

    try:
        await stop_event.wait()
    finally:
        logger.info("Shutting down...")
        await server.stop()


def _request_stop(stop_event: asyncio.Event, sig) -> None:
    logger.info(f"Received signal {sig}, shutting down...")
    stop_event.set()


def main() -> None:
    """Bootstrap the FileShare server."""
    logger.info("Initializing FileShare server...")

    try:
        settings = ServerSettings()
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    try:
        asyncio.run(serve(settings))
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
    except Exception as e:
        logger.error(f"Server error: {e}", exc_info=True)
        raise
    logger.info("FileShare server shutdown complete")


if __name__ == "__main__":
    main()
