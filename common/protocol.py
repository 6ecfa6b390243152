"""Wire codec and vocabulary for the line-and-binary FileShare protocol.

Frames on the socket are either a text line terminated by LF (a CR right
before the LF is dropped) or a raw byte block whose length is known to the
caller: announced by an UPLOAD_CHUNK line on the way up, prefixed by a
4-byte big-endian signed length on the way down. A codec never consumes a
byte beyond the frame it was asked for, so a binary block always starts
exactly where the preceding line ended.
"""

import asyncio
import select
import socket
import struct
from typing import Iterable, Optional, Tuple

from common.constants import MAX_LINE_LENGTH

ENCODING = "utf-8"
INT32 = struct.Struct(">i")

# Handshake modes
LOGIN = "LOGIN"
SIGNUP = "SIGNUP"
RECOVER = "RECOVER"
AUTH_MODES = (LOGIN, SIGNUP, RECOVER)

# Client -> server commands
LIST_CLIENTS = "LIST_CLIENTS"
LIST_OWN_FILES = "LIST_OWN_FILES"
LIST_PUBLIC_FILES = "LIST_PUBLIC_FILES"
UPLOAD_REQUEST = "UPLOAD_REQUEST"
UPLOAD_CHUNK = "UPLOAD_CHUNK"
UPLOAD_COMPLETE = "UPLOAD_COMPLETE"
DOWNLOAD_REQUEST = "DOWNLOAD_REQUEST"
FILE_REQUEST = "FILE_REQUEST"
VIEW_MESSAGES = "VIEW_MESSAGES"
VIEW_HISTORY = "VIEW_HISTORY"
DELETE_FILE = "DELETE_FILE"
DELETE_MESSAGE = "DELETE_MESSAGE"
LOGOUT = "LOGOUT"

BROADCAST_RECIPIENT = "ALL"

# Server -> client reply prefixes
SUCCESS = "SUCCESS"
ERROR = "ERROR"
CLIENT_LIST = "CLIENT_LIST"
OWN_FILES = "OWN_FILES"
PUBLIC_FILES = "PUBLIC_FILES"
UPLOAD_APPROVED = "UPLOAD_APPROVED"
CHUNK_ACK = "CHUNK_ACK"
UPLOAD_SUCCESS = "UPLOAD_SUCCESS"
DOWNLOAD_START = "DOWNLOAD_START"
DOWNLOAD_COMPLETE = "DOWNLOAD_COMPLETE"
REQUEST_SENT = "REQUEST_SENT"
MESSAGES = "MESSAGES"
HISTORY = "HISTORY"
DELETE_SUCCESS = "DELETE_SUCCESS"
MESSAGE_DELETED = "MESSAGE_DELETED"
NEW_MESSAGE = "NEW_MESSAGE"


class FrameError(Exception):
    """Raised when the peer breaks framing (EOF inside a frame, oversized line)."""
    pass


def split_command(line: str) -> Tuple[str, str]:
    """Split 'CMD[:REST]' at the first colon."""
    command, _, rest = line.partition(":")
    return command, rest


def reply(prefix: str, body: str = "") -> str:
    return f"{prefix}:{body}"


def error(message: str) -> str:
    return reply(ERROR, message)


def join_items(items: Iterable[str], separator: str) -> str:
    """Join items keeping a separator after every element (legacy listing format)."""
    return "".join(f"{item}{separator}" for item in items)


def split_items(body: str, separator: str) -> list[str]:
    return [item for item in body.split(separator) if item]


def _decode_line(data: bytes) -> str:
    if data.endswith(b"\n"):
        data = data[:-1]
    if data.endswith(b"\r"):
        data = data[:-1]
    return data.decode(ENCODING, errors="replace")


def _encode_line(line: str) -> bytes:
    return line.encode(ENCODING) + b"\n"


class StreamCodec:
    """
    Frame codec over an asyncio stream pair.

    The StreamReader is the connection's only reader; readuntil/readexactly
    take exactly one frame from it and leave everything after it in place.
    """

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self.reader = reader
        self.writer = writer

    async def read_line(self) -> Optional[str]:
        """
        Read one text line.

        Returns:
            The line without its terminator, or None on EOF before any byte

        Raises:
            FrameError: If the line exceeds the reader's limit
        """
        try:
            data = await self.reader.readuntil(b"\n")
        except asyncio.IncompleteReadError as e:
            if not e.partial:
                return None
            data = e.partial
        except asyncio.LimitOverrunError as e:
            raise FrameError(f"Line exceeds maximum length ({e.consumed} bytes buffered)") from e
        return _decode_line(data)

    async def read_exact(self, length: int) -> bytes:
        """
        Read exactly length bytes.

        Raises:
            FrameError: If the stream ends first
        """
        if length == 0:
            return b""
        try:
            return await self.reader.readexactly(length)
        except asyncio.IncompleteReadError as e:
            raise FrameError(f"Connection closed after {len(e.partial)} of {length} bytes") from e

    async def read_int32(self) -> int:
        return INT32.unpack(await self.read_exact(INT32.size))[0]

    async def write_line(self, line: str) -> None:
        self.writer.write(_encode_line(line))
        await self.writer.drain()

    async def write_bytes(self, data: bytes) -> None:
        self.writer.write(data)
        await self.writer.drain()

    async def write_int32(self, value: int) -> None:
        self.writer.write(INT32.pack(value))
        await self.writer.drain()

    async def write_block(self, data: bytes) -> None:
        """Write one length-prefixed binary block."""
        self.writer.write(INT32.pack(len(data)) + data)
        await self.writer.drain()

    async def close(self) -> None:
        if self.writer.is_closing():
            return
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except (ConnectionError, OSError):
            pass


class SocketCodec:
    """
    Frame codec over a blocking socket.

    Lines are located with MSG_PEEK and then received exactly, so no bytes
    are ever held in a private buffer and select() on the socket stays an
    accurate readiness test.
    """

    PEEK_SIZE = 4096

    def __init__(self, sock: socket.socket, max_line_length: int = MAX_LINE_LENGTH):
        self.sock = sock
        self.max_line_length = max_line_length

    def read_line(self) -> Optional[str]:
        buffer = bytearray()
        while True:
            peeked = self.sock.recv(self.PEEK_SIZE, socket.MSG_PEEK)
            if not peeked:
                if not buffer:
                    return None
                return _decode_line(bytes(buffer))

            newline = peeked.find(b"\n")
            take = newline + 1 if newline >= 0 else len(peeked)
            buffer += self.read_exact(take)

            if newline >= 0:
                return _decode_line(bytes(buffer))
            if len(buffer) > self.max_line_length:
                raise FrameError("Line exceeds maximum length")

    def read_exact(self, length: int) -> bytes:
        """Receives exactly length bytes or raises FrameError."""
        data = bytearray()
        while len(data) < length:
            packet = self.sock.recv(length - len(data))
            if not packet:
                raise FrameError(f"Connection closed after {len(data)} of {length} bytes")
            data += packet
        return bytes(data)

    def read_int32(self) -> int:
        return INT32.unpack(self.read_exact(INT32.size))[0]

    def write_line(self, line: str) -> None:
        self.sock.sendall(_encode_line(line))

    def write_bytes(self, data: bytes) -> None:
        self.sock.sendall(data)

    def write_int32(self, value: int) -> None:
        self.sock.sendall(INT32.pack(value))

    def has_pending(self, timeout: float = 0.0) -> bool:
        """Whether at least one byte can be read without blocking."""
        ready, _, _ = select.select([self.sock], [], [], timeout)
        return bool(ready)

    def close(self) -> None:
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self.sock.close()
