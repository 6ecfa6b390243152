"""Shared pytest fixtures for all tests."""

import asyncio
import threading
from typing import Optional

import pytest
import pytest_asyncio

from cli.config import Config
from common.protocol import (
    CHUNK_ACK,
    DOWNLOAD_COMPLETE,
    DOWNLOAD_START,
    NEW_MESSAGE,
    SIGNUP,
    UPLOAD_APPROVED,
    StreamCodec,
    split_command,
)
from server.config import ServerSettings
from server.listener import FileShareServer

TIMEOUT = 5.0


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to temporary .fileshare directory
    """
    config_dir = tmp_path / '.fileshare'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir):
    """
    Create temporary config instance.

    Args:
        temp_config_dir: Temporary config directory fixture

    Returns:
        Config instance with temp config file
    """
    return Config(temp_config_dir / 'config.json')


@pytest.fixture
def sample_file(tmp_path):
    """
    Create a sample file for testing file uploads.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to sample text file
    """
    file_path = tmp_path / 'test.txt'
    file_path.write_text('Sample content for testing')
    return file_path


@pytest.fixture
def server_settings(tmp_path):
    """
    Settings for a test server: loopback, ephemeral port, small chunks.

    Returns:
        ServerSettings rooted in a temporary data directory
    """
    return ServerSettings(
        host='127.0.0.1',
        port=0,
        data_dir=tmp_path / 'server_data',
        max_buffer_size=1024 * 1024,
        min_chunk_size=16,
        max_chunk_size=64,
        bcrypt_rounds=4,
    )


@pytest_asyncio.fixture
async def running_server(server_settings):
    """
    FileShare server running inside the test's event loop.

    Yields:
        Started FileShareServer (read the bound port from .port)
    """
    server = FileShareServer(server_settings)
    await server.start()
    yield server
    await server.stop()


class Peer:
    """Raw protocol peer for driving the server line by line in async tests."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self.codec = StreamCodec(reader, writer)
        self.pushed: list[str] = []

    @classmethod
    async def connect(cls, port: int) -> 'Peer':
        reader, writer = await asyncio.open_connection('127.0.0.1', port)
        return cls(reader, writer)

    async def send(self, *lines: str) -> None:
        for line in lines:
            await self.codec.write_line(line)

    async def send_bytes(self, data: bytes) -> None:
        await self.codec.write_bytes(data)

    async def recv(self) -> Optional[str]:
        """Next raw line, pushes included."""
        return await asyncio.wait_for(self.codec.read_line(), TIMEOUT)

    async def reply(self) -> Optional[str]:
        """Next line that is not a NEW_MESSAGE push; pushes are kept in .pushed."""
        while True:
            line = await self.recv()
            if line is None:
                return None
            prefix, body = split_command(line)
            if prefix != NEW_MESSAGE:
                return line
            self.pushed.append(body)

    async def request(self, line: str) -> Optional[str]:
        await self.send(line)
        return await self.reply()

    async def signup(self, username: str, password: str = 'pw', answer: str = 'blue') -> Optional[str]:
        await self.send(SIGNUP, username, password, answer)
        return await self.recv()

    async def login(self, username: str, password: str = 'pw') -> Optional[str]:
        await self.send('LOGIN', username, password)
        return await self.recv()

    async def upload(self, filename: str, data: bytes, public: bool = True,
                     request_id: str = '', description: Optional[str] = None) -> Optional[str]:
        """Run a whole upload and return the reply to UPLOAD_COMPLETE."""
        fields = [filename, str(len(data)), 'true' if public else 'false', request_id]
        if description is not None:
            fields.append(description)
        approved = await self.request(f"UPLOAD_REQUEST:{'|'.join(fields)}")
        prefix, body = split_command(approved)
        assert prefix == UPLOAD_APPROVED, approved
        file_id, _, chunk_text = body.partition('|')
        chunk_size = int(chunk_text)

        for offset in range(0, len(data), chunk_size):
            chunk = data[offset:offset + chunk_size]
            await self.send(f"UPLOAD_CHUNK:{file_id}|{len(chunk)}")
            await self.send_bytes(chunk)
            assert await self.reply() == CHUNK_ACK
        return await self.request(f"UPLOAD_COMPLETE:{file_id}")

    async def download(self, owner: str, filename: str) -> bytes:
        """Download a file, asserting the framing along the way."""
        start = await self.request(f"DOWNLOAD_REQUEST:{owner}|{filename}")
        prefix, body = split_command(start)
        assert prefix == DOWNLOAD_START, start
        size = int(body.rpartition('|')[2])

        data = b''
        while len(data) < size:
            length = await asyncio.wait_for(self.codec.read_int32(), TIMEOUT)
            data += await asyncio.wait_for(self.codec.read_exact(length), TIMEOUT)
        assert await self.recv() == DOWNLOAD_COMPLETE
        return data

    async def close(self) -> None:
        await self.codec.close()


@pytest_asyncio.fixture
async def connect(running_server):
    """
    Factory for raw peers connected to the running server.

    Every peer opened through the factory is closed at teardown.
    """
    peers: list[Peer] = []

    async def _connect() -> Peer:
        peer = await Peer.connect(running_server.port)
        peers.append(peer)
        return peer

    yield _connect
    for peer in peers:
        await peer.close()


async def eventually(predicate, timeout: float = TIMEOUT) -> None:
    """Wait until predicate() is true, failing the test on timeout."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


class ServerThread:
    """Runs a FileShareServer on its own event loop in a background thread."""

    def __init__(self, settings: ServerSettings):
        self.loop = asyncio.new_event_loop()
        self.server = FileShareServer(settings)
        self.thread = threading.Thread(target=self.loop.run_forever, name='fileshare-test-server', daemon=True)

    @property
    def port(self) -> int:
        return self.server.port

    @property
    def state(self):
        return self.server.state

    def start(self) -> None:
        self.thread.start()
        asyncio.run_coroutine_threadsafe(self.server.start(), self.loop).result(TIMEOUT)

    def stop(self) -> None:
        if self.loop.is_closed():
            return
        asyncio.run_coroutine_threadsafe(self.server.stop(), self.loop).result(TIMEOUT)
        self.loop.call_soon_threadsafe(self.loop.stop)
        self.thread.join(TIMEOUT)
        self.loop.close()


@pytest.fixture
def live_server(server_settings):
    """
    FileShare server in a background thread, for blocking clients.

    Yields:
        ServerThread with the bound port
    """
    server = ServerThread(server_settings)
    server.start()
    yield server
    server.stop()
