"""End-to-end upload, download and notification scenarios."""

import dataclasses
import os

import pytest
import pytest_asyncio

from conftest import Peer, eventually
from server.connection import ConnectionHandler
from server.listener import FileShareServer
from server.services import DownloadService
from server.user_storage import UserStorage


def data_files(directory):
    """Content files under a user directory, reserved files and temp files excluded."""
    if not directory.exists():
        return []
    reserved = {'metadata.txt', 'messages.txt', 'log.txt'}
    return sorted(p.name for p in directory.iterdir() if p.name not in reserved)


@pytest.mark.asyncio
async def test_public_upload_cross_user_download(connect):
    alice = await connect()
    await alice.signup('alice', answer='blue')
    assert await alice.upload('hello.txt', b'hi\n', public=True) == 'UPLOAD_SUCCESS'

    bob = await connect()
    await bob.signup('bob')
    await bob.send('DOWNLOAD_REQUEST:alice|hello.txt')
    assert await bob.recv() == 'DOWNLOAD_START:hello.txt|3'
    assert await bob.codec.read_int32() == 3
    assert await bob.codec.read_exact(3) == b'hi\n'
    assert await bob.recv() == 'DOWNLOAD_COMPLETE'


@pytest.mark.asyncio
async def test_private_blocked_then_granted_by_request(connect):
    alice = await connect()
    await alice.signup('alice')
    bob = await connect()
    await bob.signup('bob')

    assert await alice.upload('secret.bin', b'\x00\x01secret', public=False) == 'UPLOAD_SUCCESS'
    assert await bob.request('DOWNLOAD_REQUEST:alice|secret.bin') == 'ERROR:File is private'

    assert await bob.request('FILE_REQUEST:please|alice') == 'REQUEST_SENT:REQ_1'
    assert await alice.upload('secret.bin', b'\x00\x01secret', public=False, request_id='REQ_1') == 'UPLOAD_SUCCESS'
    assert alice.pushed == ['File request from bob (ID: REQ_1): please']

    assert await bob.download('alice', 'secret.bin') == b'\x00\x01secret'
    assert bob.pushed == ["alice uploaded requested file 'secret.bin' (Request ID: REQ_1)"]

    carol = await connect()
    await carol.signup('carol')
    assert await carol.request('DOWNLOAD_REQUEST:alice|secret.bin') == 'ERROR:File is private'


@pytest.mark.asyncio
async def test_fulfillment_note_and_offline_requester(connect, server_settings):
    alice = await connect()
    await alice.signup('alice')
    bob = await connect()
    await bob.signup('bob')
    assert await bob.request('FILE_REQUEST:report|alice') == 'REQUEST_SENT:REQ_1'
    await bob.request('LOGOUT:')
    assert await bob.recv() is None

    reply = await alice.upload('report.pdf', b'%PDF', public=False, request_id='REQ_1', description='final')
    assert reply == 'UPLOAD_SUCCESS'

    path = server_settings.data_dir / 'bob' / 'messages.txt'
    await eventually(path.exists)
    assert path.read_text().splitlines() == [
        "alice uploaded requested file 'report.pdf' (Request ID: REQ_1) - Note: final"
    ]


@pytest.mark.asyncio
async def test_unknown_request_id(connect, running_server):
    alice = await connect()
    await alice.signup('alice')
    assert await alice.request('UPLOAD_REQUEST:a.txt|3|false|REQ_99') == 'ERROR:Invalid request ID'
    assert running_server.state.buffer.reserved == 0


@pytest.mark.asyncio
async def test_download_missing_file(connect):
    bob = await connect()
    await bob.signup('bob')
    assert await bob.request('DOWNLOAD_REQUEST:alice|nothing.txt') == 'ERROR:File not found'
    assert await bob.request('DOWNLOAD_REQUEST:alice|../bob/log.txt') == 'ERROR:File not found'
    assert await bob.request('DOWNLOAD_REQUEST:garbage') == 'ERROR:Invalid download request'


@pytest.mark.asyncio
async def test_large_download_is_split_into_blocks(connect, server_settings):
    alice = await connect()
    await alice.signup('alice')
    payload = os.urandom(1000)
    assert await alice.upload('blob.bin', payload) == 'UPLOAD_SUCCESS'

    await alice.send('DOWNLOAD_REQUEST:alice|blob.bin')
    assert await alice.recv() == 'DOWNLOAD_START:blob.bin|1000'
    received = b''
    blocks = 0
    while len(received) < 1000:
        length = await alice.codec.read_int32()
        assert 0 < length <= server_settings.max_chunk_size
        received += await alice.codec.read_exact(length)
        blocks += 1
    assert await alice.recv() == 'DOWNLOAD_COMPLETE'
    assert received == payload
    assert blocks >= 1000 // server_settings.max_chunk_size


@pytest.mark.asyncio
async def test_empty_file_round_trip(connect):
    alice = await connect()
    await alice.signup('alice')
    assert await alice.upload('empty.txt', b'') == 'UPLOAD_SUCCESS'
    assert await alice.download('alice', 'empty.txt') == b''


@pytest.mark.asyncio
async def test_reupload_replaces_content_and_metadata(connect):
    alice = await connect()
    await alice.signup('alice')
    await alice.upload('a.txt', b'old', public=True)
    await alice.upload('a.txt', b'newer', public=False)

    assert await alice.download('alice', 'a.txt') == b'newer'
    assert await alice.request('LIST_OWN_FILES:') == 'OWN_FILES:a.txt|private||;'


@pytest.mark.asyncio
async def test_size_mismatch(connect, running_server, server_settings):
    alice = await connect()
    await alice.signup('alice')
    before = running_server.state.buffer.reserved

    approved = await alice.request('UPLOAD_REQUEST:short.bin|10|true|')
    file_id = approved.split(':', 1)[1].split('|')[0]
    await alice.send(f'UPLOAD_CHUNK:{file_id}|7')
    await alice.send_bytes(b'1234567')
    assert await alice.reply() == 'CHUNK_ACK'
    assert await alice.request(f'UPLOAD_COMPLETE:{file_id}') == 'ERROR:File size mismatch'

    assert running_server.state.buffer.reserved == before
    assert data_files(server_settings.data_dir / 'alice') == []
    assert await alice.request('LIST_OWN_FILES:') == 'OWN_FILES:'
    assert await alice.request(f'UPLOAD_COMPLETE:{file_id}') == 'ERROR:Invalid file ID'


@pytest.mark.asyncio
async def test_chunk_errors_keep_stream_in_sync(connect, running_server):
    alice = await connect()
    await alice.signup('alice')

    await alice.send('UPLOAD_CHUNK:FILE_404|3')
    await alice.send_bytes(b'abc')
    assert await alice.reply() == 'ERROR:Invalid file ID'

    approved = await alice.request('UPLOAD_REQUEST:a.bin|4|true|')
    file_id = approved.split(':', 1)[1].split('|')[0]
    await alice.send(f'UPLOAD_CHUNK:{file_id}|6')
    await alice.send_bytes(b'abcdef')
    assert await alice.reply() == 'ERROR:Chunk exceeds declared size'

    assert await alice.request(f'UPLOAD_CHUNK:{file_id}|0') == 'ERROR:Invalid chunk size'

    await alice.send(f'UPLOAD_CHUNK:{file_id}|4')
    await alice.send_bytes(b'wxyz')
    assert await alice.reply() == 'CHUNK_ACK'
    assert await alice.request(f'UPLOAD_COMPLETE:{file_id}') == 'UPLOAD_SUCCESS'
    assert await alice.download('alice', 'a.bin') == b'wxyz'
    assert running_server.state.buffer.reserved == 0


@pytest.mark.asyncio
async def test_malformed_chunk_header_drops_connection(connect, running_server):
    alice = await connect()
    await alice.signup('alice')
    await alice.send('UPLOAD_CHUNK:FILE_1|lots')
    assert await alice.recv() is None
    await eventually(lambda: not running_server.state.presence.is_online('alice'))


@pytest.mark.asyncio
async def test_upload_request_validation(connect):
    alice = await connect()
    await alice.signup('alice')
    assert await alice.request('UPLOAD_REQUEST:a.txt|3') == 'ERROR:Invalid upload request'
    assert await alice.request('UPLOAD_REQUEST:a.txt|abc|true|') == 'ERROR:Invalid file size'
    assert await alice.request('UPLOAD_REQUEST:a.txt|-1|true|') == 'ERROR:Invalid file size'
    assert await alice.request('UPLOAD_REQUEST:../evil|3|true|') == 'ERROR:Invalid filename'
    assert await alice.request('UPLOAD_REQUEST:metadata.txt|3|true|') == 'ERROR:Invalid filename'


@pytest.mark.asyncio
async def test_uploads_are_bound_to_their_connection(connect, running_server):
    alice = await connect()
    await alice.signup('alice')
    bob = await connect()
    await bob.signup('bob')

    approved = await alice.request('UPLOAD_REQUEST:a.bin|2|true|')
    file_id = approved.split(':', 1)[1].split('|')[0]

    await bob.send(f'UPLOAD_CHUNK:{file_id}|2')
    await bob.send_bytes(b'hi')
    assert await bob.reply() == 'ERROR:Invalid file ID'
    assert await bob.request(f'UPLOAD_COMPLETE:{file_id}') == 'ERROR:Invalid file ID'
    assert running_server.state.uploads.get(file_id) is not None


@pytest.mark.asyncio
async def test_disconnect_releases_reservations(connect, running_server, server_settings):
    alice = await connect()
    await alice.signup('alice')

    approved = await alice.request('UPLOAD_REQUEST:big.bin|500|true|')
    file_id = approved.split(':', 1)[1].split('|')[0]
    await alice.send(f'UPLOAD_CHUNK:{file_id}|10')
    await alice.send_bytes(b'0123456789')
    assert await alice.reply() == 'CHUNK_ACK'
    assert running_server.state.buffer.reserved == 500

    await alice.close()
    await eventually(lambda: running_server.state.buffer.reserved == 0)
    await eventually(lambda: not running_server.state.presence.is_online('alice'))
    assert len(running_server.state.uploads) == 0
    assert data_files(server_settings.data_dir / 'alice') == []


@pytest.mark.asyncio
async def test_broadcast_request_notification(connect):
    a = await connect()
    await a.signup('A')
    b = await connect()
    await b.signup('B')
    c = await connect()
    await c.signup('C')

    assert await a.request('FILE_REQUEST:anything|ALL') == 'REQUEST_SENT:REQ_1'
    expected = 'File request from A (ID: REQ_1): anything'
    for peer in (b, c):
        assert await peer.recv() == f'NEW_MESSAGE:{expected}'
        assert await peer.request('VIEW_MESSAGES:') == f'MESSAGES:{expected};'
    assert await a.request('VIEW_MESSAGES:') == 'MESSAGES:'


@pytest.mark.asyncio
async def test_push_never_lands_inside_download(connect):
    alice = await connect()
    await alice.signup('alice')
    bob = await connect()
    await bob.signup('bob')
    payload = os.urandom(4000)
    await alice.upload('big.bin', payload)

    await alice.send('DOWNLOAD_REQUEST:alice|big.bin')
    assert await bob.request('FILE_REQUEST:more|alice') == 'REQUEST_SENT:REQ_1'

    first = await alice.recv()
    if first.startswith('NEW_MESSAGE:'):
        first = await alice.recv()
    assert first == 'DOWNLOAD_START:big.bin|4000'
    received = b''
    while len(received) < 4000:
        length = await alice.codec.read_int32()
        received += await alice.codec.read_exact(length)
    assert received == payload
    assert await alice.recv() == 'DOWNLOAD_COMPLETE'


class TestBufferCap:
    @pytest_asyncio.fixture
    async def small_server(self, server_settings):
        settings = dataclasses.replace(
            server_settings, max_buffer_size=10 * 1024, min_chunk_size=1024, max_chunk_size=2048
        )
        server = FileShareServer(settings)
        await server.start()
        peers = []

        async def _connect():
            peer = await Peer.connect(server.port)
            peers.append(peer)
            return peer

        yield server, _connect
        for peer in peers:
            await peer.close()
        await server.stop()

    @pytest.mark.asyncio
    async def test_second_upload_refused_until_first_completes(self, small_server):
        server, connect = small_server
        alice = await connect()
        await alice.signup('alice')
        bob = await connect()
        await bob.signup('bob')
        six_kib = 6 * 1024

        approved = await alice.request(f'UPLOAD_REQUEST:first.bin|{six_kib}|true|')
        assert approved.startswith('UPLOAD_APPROVED:FILE_')
        assert await bob.request(f'UPLOAD_REQUEST:second.bin|{six_kib}|true|') == 'ERROR:Buffer full'

        file_id, _, chunk_text = approved.split(':', 1)[1].partition('|')
        chunk_size = int(chunk_text)
        assert 1024 <= chunk_size <= 2048
        payload = os.urandom(six_kib)
        for offset in range(0, six_kib, chunk_size):
            chunk = payload[offset:offset + chunk_size]
            await alice.send(f'UPLOAD_CHUNK:{file_id}|{len(chunk)}')
            await alice.send_bytes(chunk)
            assert await alice.reply() == 'CHUNK_ACK'
        assert await alice.request(f'UPLOAD_COMPLETE:{file_id}') == 'UPLOAD_SUCCESS'
        assert server.state.buffer.reserved == 0

        assert await bob.upload('second.bin', payload) == 'UPLOAD_SUCCESS'
        assert await bob.download('alice', 'first.bin') == payload

        history = await bob.request('VIEW_HISTORY:')
        assert 'second.bin|' in history and '|upload|failed - buffer full;' in history


@pytest.mark.asyncio
async def test_failed_save_leaves_nothing_behind(connect, running_server, server_settings, monkeypatch):
    def broken_upsert(self, owner, record):
        raise OSError('disk full')

    monkeypatch.setattr(UserStorage, 'upsert_record', broken_upsert)

    alice = await connect()
    await alice.signup('alice')
    assert await alice.upload('doc.txt', b'content', public=True) == 'ERROR:Failed to save file'

    state = running_server.state
    assert state.buffer.reserved == 0
    assert len(state.uploads) == 0
    user_dir = server_settings.data_dir / 'alice'
    assert data_files(user_dir) == []
    assert not (user_dir / 'metadata.txt').exists()
    assert await alice.request('LIST_OWN_FILES:') == 'OWN_FILES:'
    assert state.storage.read_log_rows('alice')[-1].endswith('|upload|failed - save error')


@pytest.mark.asyncio
async def test_download_failure_mid_stream_closes_connection(connect, running_server, monkeypatch):
    alice = await connect()
    await alice.signup('alice')
    assert await alice.upload('big.bin', b'x' * 100) == 'UPLOAD_SUCCESS'

    def failing_stream(self, ticket):
        yield b'x' * 10
        raise OSError('read error')

    monkeypatch.setattr(DownloadService, 'open_stream', failing_stream)

    await alice.send('DOWNLOAD_REQUEST:alice|big.bin')
    assert await alice.recv() == 'DOWNLOAD_START:big.bin|100'
    assert await alice.codec.read_int32() == 10
    assert await alice.codec.read_exact(10) == b'x' * 10
    assert await alice.recv() == 'ERROR:Download failed'
    assert await alice.recv() is None

    rows = running_server.state.storage.read_log_rows('alice')
    assert rows[-1].startswith('big.bin|')
    assert rows[-1].endswith('|download|failed - transfer error')
    await eventually(lambda: not running_server.state.presence.is_online('alice'))


@pytest.mark.asyncio
async def test_requester_notified_when_uploader_connection_breaks(connect, server_settings, monkeypatch):
    alice = await connect()
    await alice.signup('alice')
    bob = await connect()
    await bob.signup('bob')
    assert await bob.request('FILE_REQUEST:slides|alice') == 'REQUEST_SENT:REQ_1'

    original_send = ConnectionHandler._send

    async def send_or_break(self, line):
        if line == 'UPLOAD_SUCCESS':
            raise ConnectionResetError('uploader went away')
        await original_send(self, line)

    monkeypatch.setattr(ConnectionHandler, '_send', send_or_break)

    assert await alice.upload('slides.pdf', b'deck', public=False, request_id='REQ_1') is None
    assert await bob.recv() == "NEW_MESSAGE:alice uploaded requested file 'slides.pdf' (Request ID: REQ_1)"
    assert (server_settings.data_dir / 'alice' / 'slides.pdf').read_bytes() == b'deck'
