"""Entry point for the FileShare terminal client (`fileshare`)."""

import sys
import os

from common.logging_config import setup_logging
from cli.commands import get_config
from cli.repl import repl_loop


def main() -> None:
    """Start the FileShare REPL. Pass --debug for verbose client logs."""
    log_level = 'DEBUG' if '--debug' in sys.argv else os.getenv('LOG_LEVEL', 'WARNING')

    logger = setup_logging('cli', log_level=log_level)

    if '--debug' in sys.argv:
        logger.info("Debug logging enabled")
        sys.argv.remove('--debug')

    host, port = get_config().get_server_address()
    logger.info(f"FileShare client starting [server={host}:{port}]")
    try:
        repl_loop()
    except Exception as e:
        logger.error(f"FileShare client error: {e}", exc_info=True)
        raise
    finally:
        logger.info("FileShare client exiting")


if __name__ == "__main__":
    main()
