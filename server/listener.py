"""TCP listener: accepts sockets and runs one ConnectionHandler task per connection."""

import asyncio
from typing import Optional, Set

from common.logging_config import get_logger
from server.config import ServerSettings
from server.connection import ConnectionHandler
from server.state import ServerState

logger = get_logger(__name__)


class FileShareServer:
    """
    Owns the listening socket and the shared ServerState.

    Port 0 binds an ephemeral port; read it back from `port` after start().
    """

    def __init__(self, settings: Optional[ServerSettings] = None, state: Optional[ServerState] = None):
        self.settings = settings or ServerSettings()
        self.state = state or ServerState(self.settings)
        self._server: Optional[asyncio.AbstractServer] = None
        self._handlers: Set[asyncio.Task] = set()

    @property
    def port(self) -> int:
        if self._server is None or not self._server.sockets:
            return self.settings.port
        return self._server.sockets[0].getsockname()[1]

    @property
    def connection_count(self) -> int:
        return len(self._handlers)

    async def start(self) -> None:
        self.settings.data_dir.mkdir(parents=True, exist_ok=True)
        loaded = self.state.load()
        logger.info(f"Loaded {loaded} accounts from {self.settings.data_dir}")

        self._server = await asyncio.start_server(
            self._on_connect,
            host=self.settings.host,
            port=self.settings.port,
            limit=self.settings.max_line_length,
        )
        logger.info(f"FileShare server listening on {self.settings.host}:{self.port}")

    async def _on_connect(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        task = asyncio.current_task()
        self._handlers.add(task)
        try:
            await ConnectionHandler(self.state, reader, writer).run()
        except Exception as e:
            logger.error(f"Unhandled error in connection handler: {e}", exc_info=True)
        finally:
            self._handlers.discard(task)

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        for task in list(self._handlers):
            task.cancel()
        if self._handlers:
            await asyncio.gather(*self._handlers, return_exceptions=True)
        await self._server.wait_closed()
        self._server = None
        logger.info("FileShare server stopped")
