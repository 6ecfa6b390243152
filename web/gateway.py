"""Bridge between one browser WebSocket and one upstream FileShare TCP session."""

import asyncio
import base64
from typing import Awaitable, Callable, Optional, Set

from pydantic import BaseModel

from common.constants import MAX_LINE_LENGTH
from common.logging_config import get_logger
from common.protocol import (
    DOWNLOAD_START,
    ERROR,
    RECOVER,
    SIGNUP,
    SUCCESS,
    FrameError,
    StreamCodec,
    split_command,
)
from web.schemas import BinaryDataEvent, ConnectServerEvent, MessageEvent

logger = get_logger(__name__)

Emit = Callable[[BaseModel], Awaitable[None]]


class UpstreamSession:
    """
    One TCP session with the FileShare server on behalf of a browser.

    The pump task is the session's only reader. After a DOWNLOAD_START
    line it reads length-prefixed blocks until the announced size has
    arrived, then goes back to reading lines.
    """

    def __init__(self, host: str, port: int, emit: Emit, registry: Set['UpstreamSession']):
        self.host = host
        self.port = port
        self.emit = emit
        self.registry = registry
        self.username: Optional[str] = None
        self.authenticated = False
        self._codec: Optional[StreamCodec] = None
        self._pump_task: Optional[asyncio.Task] = None

    @property
    def is_open(self) -> bool:
        return self._codec is not None

    async def open(self, event: ConnectServerEvent) -> None:
        """
        Connect upstream and send the handshake lines.

        Raises:
            OSError: If the server cannot be reached
        """
        reader, writer = await asyncio.open_connection(self.host, self.port, limit=MAX_LINE_LENGTH)
        self._codec = StreamCodec(reader, writer)
        self.username = event.username
        logger.info(f"Connected upstream for user: {event.username}")

        lines = [event.auth_mode, event.username, event.password]
        if event.auth_mode == SIGNUP and event.security_answer:
            lines.append(event.security_answer)
        if event.auth_mode == RECOVER and event.new_password:
            lines.append(event.new_password)
        try:
            for line in lines:
                await self._codec.write_line(line)
        except OSError:
            await self.close()
            raise

        self._pump_task = asyncio.create_task(self._pump())

    async def send_command(self, command: str) -> None:
        command = command.strip()
        if not command or self._codec is None:
            logger.debug(f"Ignoring command for {self.username}: empty or not connected")
            return
        logger.debug(f"Forwarding command for {self.username}: {command.split(':', 1)[0]}")
        await self._write(self._codec.write_line(command))

    async def send_chunk(self, data: bytes) -> None:
        if self._codec is None:
            return
        await self._write(self._codec.write_bytes(data))

    async def _write(self, pending: Awaitable[None]) -> None:
        try:
            await pending
        except (ConnectionError, OSError) as e:
            logger.warning(f"Upstream write failed for {self.username}: {e}")
            await self.close()

    async def _pump(self) -> None:
        codec = self._codec
        try:
            while True:
                line = await codec.read_line()
                if line is None:
                    break
                prefix, body = split_command(line)

                if not self.authenticated:
                    if prefix == SUCCESS:
                        self.authenticated = True
                        self.registry.add(self)
                        await self.emit(MessageEvent(type="connection-success", message=body))
                    elif prefix == ERROR:
                        await self.emit(MessageEvent(type="connection-error", message=body))
                    await self.emit(MessageEvent(type="server-message", message=line))
                    continue

                await self.emit(MessageEvent(type="server-message", message=line))
                if prefix == DOWNLOAD_START:
                    await self._relay_download(codec, body)
        except (FrameError, ValueError, OSError) as e:
            logger.warning(f"Upstream session for {self.username} ended: {e}")
        finally:
            self.registry.discard(self)
            logger.info(f"Upstream socket closed for: {self.username}")
            try:
                await self.emit(MessageEvent(type="disconnected"))
            except Exception as e:
                logger.debug(f"Could not report disconnect to browser: {e}")

    async def _relay_download(self, codec: StreamCodec, announcement: str) -> None:
        _, _, size_text = announcement.rpartition("|")
        size = int(size_text)
        received = 0
        while received < size:
            length = await codec.read_int32()
            if length <= 0 or received + length > size:
                raise FrameError(f"Bad block length {length} at {received}/{size}")
            data = await codec.read_exact(length)
            received += length
            await self.emit(BinaryDataEvent(data=base64.b64encode(data).decode("ascii"), bytes=length))
        logger.debug(f"Relayed {received} downloaded bytes to {self.username}")

    async def close(self) -> None:
        self.registry.discard(self)
        pump_task, self._pump_task = self._pump_task, None
        if pump_task is not None:
            pump_task.cancel()
        codec, self._codec = self._codec, None
        if codec is not None:
            await codec.close()
        if pump_task is not None:
            await asyncio.gather(pump_task, return_exceptions=True)
