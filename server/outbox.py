"""Per-connection outbound queue drained by the connection's single writer task."""

import asyncio
from typing import Awaitable, Callable, Optional, Tuple

from common.logging_config import get_logger
from common.protocol import StreamCodec

logger = get_logger(__name__)

Frame = Callable[[StreamCodec], Awaitable[None]]


class Outbox:
    """
    Serializes every write on one connection.

    Replies are submitted with send()/send_line() and awaited, so the
    handler resumes only once its reply is on the wire. Notifications from
    other handlers go through push_line() without waiting. A frame is
    written in one piece: a download submitted as a single frame cannot be
    interleaved with a pushed line.
    """

    def __init__(self, codec: StreamCodec, name: str = "outbox"):
        self.codec = codec
        self.name = name
        self._loop = asyncio.get_running_loop()
        self._queue: asyncio.Queue[Tuple[Optional[Frame], Optional[asyncio.Future]]] = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None
        self._closed = False
        self._broken: Optional[BaseException] = None

    def start(self) -> None:
        self._task = self._loop.create_task(self._drain(), name=f"{self.name}-writer")

    async def send(self, frame: Frame) -> None:
        """
        Queue a frame and wait until it has been written.

        Raises:
            ConnectionError: If the outbox is closed or the writer has failed
            Exception: Whatever the frame raised while writing
        """
        if self._closed:
            raise ConnectionError(f"{self.name} is closed")
        if self._broken is not None:
            raise ConnectionError(f"{self.name} writer failed: {self._broken}")
        future = self._loop.create_future()
        self._queue.put_nowait((frame, future))
        await future

    async def send_line(self, line: str) -> None:
        await self.send(lambda codec: codec.write_line(line))

    def push_line(self, line: str) -> None:
        """Queue a server-initiated line; safe to call from any task or thread."""
        if self._closed or self._broken is not None:
            return

        async def frame(codec: StreamCodec) -> None:
            await codec.write_line(line)

        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, (frame, None))
        except RuntimeError:
            logger.debug(f"{self.name}: event loop closed, dropping pushed line")

    async def _drain(self) -> None:
        while True:
            frame, future = await self._queue.get()
            if frame is None:
                break
            try:
                await frame(self.codec)
            except Exception as e:
                if self._broken is None:
                    self._broken = e
                if future is not None:
                    if not future.done():
                        future.set_exception(e)
                else:
                    logger.warning(f"{self.name}: failed to deliver pushed line: {e}")
            else:
                if future is not None and not future.done():
                    future.set_result(None)

    async def close(self) -> None:
        """Flush what is queued, then stop the writer task."""
        if self._closed:
            return
        self._closed = True
        if self._task is None:
            return
        self._queue.put_nowait((None, None))
        try:
            await self._task
        except asyncio.CancelledError:
            self._task.cancel()
            raise
