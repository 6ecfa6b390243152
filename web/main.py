"""Entry point for the FileShare web gateway."""

import uvicorn

from common.logging_config import setup_logging
from web.config import UPSTREAM_HOST, UPSTREAM_PORT, WEB_HOST, WEB_PORT

logger = setup_logging('web')


def main() -> None:
    """
    Start the FastAPI gateway with uvicorn.
    """
    logger.info(f"Web gateway on http://{WEB_HOST}:{WEB_PORT}, upstream {UPSTREAM_HOST}:{UPSTREAM_PORT}")
    uvicorn.run(
        "web.app:app",
        host=WEB_HOST,
        port=WEB_PORT,
    )


if __name__ == "__main__":
    main()
