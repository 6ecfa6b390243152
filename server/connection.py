"""Per-connection protocol driver: handshake, command loop and cleanup."""

import asyncio
from typing import Awaitable, Callable, Dict, Optional

from common.logging_config import get_logger
from common.protocol import (
    AUTH_MODES,
    CHUNK_ACK,
    CLIENT_LIST,
    DELETE_FILE,
    DELETE_MESSAGE,
    DELETE_SUCCESS,
    DOWNLOAD_COMPLETE,
    DOWNLOAD_REQUEST,
    DOWNLOAD_START,
    FILE_REQUEST,
    HISTORY,
    LIST_CLIENTS,
    LIST_OWN_FILES,
    LIST_PUBLIC_FILES,
    LOGIN,
    LOGOUT,
    MESSAGE_DELETED,
    MESSAGES,
    OWN_FILES,
    PUBLIC_FILES,
    RECOVER,
    REQUEST_SENT,
    SIGNUP,
    SUCCESS,
    UPLOAD_APPROVED,
    UPLOAD_CHUNK,
    UPLOAD_COMPLETE,
    UPLOAD_REQUEST,
    UPLOAD_SUCCESS,
    VIEW_HISTORY,
    VIEW_MESSAGES,
    FrameError,
    StreamCodec,
    error,
    join_items,
    reply,
    split_command,
)
from server.exceptions import (
    AuthenticationError,
    DownloadFailedError,
    FileShareError,
    ProtocolError,
    ValidationError,
)
from server.outbox import Outbox
from server.services import (
    AuthService,
    DownloadService,
    DownloadTicket,
    FileService,
    RequestService,
    UploadRequest,
    UploadService,
)
from server.state import ServerState

logger = get_logger(__name__)

CommandHandler = Callable[[str], Awaitable[None]]


class ConnectionHandler:
    """
    Drives one client connection from handshake to cleanup.

    The handler is the only reader of its socket; every write goes through
    its Outbox. It registers itself in the presence registry as the push
    target for its user and removes itself on the way out.
    """

    def __init__(self, state: ServerState, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self.state = state
        self.codec = StreamCodec(reader, writer)
        self.connection_id = state.next_connection_id()
        self.peer = writer.get_extra_info("peername")
        self.outbox = Outbox(self.codec, name=f"conn-{self.connection_id}")
        self.username: Optional[str] = None
        self.running = False

        self.auth = AuthService(state)
        self.uploads = UploadService(state)
        self.downloads = DownloadService(state)
        self.files = FileService(state)
        self.requests = RequestService(state)

        self._commands: Dict[str, CommandHandler] = {
            LIST_CLIENTS: self._list_clients,
            LIST_OWN_FILES: self._list_own_files,
            LIST_PUBLIC_FILES: self._list_public_files,
            UPLOAD_REQUEST: self._upload_request,
            UPLOAD_CHUNK: self._upload_chunk,
            UPLOAD_COMPLETE: self._upload_complete,
            DOWNLOAD_REQUEST: self._download_request,
            FILE_REQUEST: self._file_request,
            VIEW_MESSAGES: self._view_messages,
            VIEW_HISTORY: self._view_history,
            DELETE_FILE: self._delete_file,
            DELETE_MESSAGE: self._delete_message,
            LOGOUT: self._logout,
        }

    def push_line(self, line: str) -> None:
        self.outbox.push_line(line)

    async def run(self) -> None:
        logger.info(f"Connection {self.connection_id} accepted from {self.peer}")
        self.outbox.start()
        try:
            if await self._authenticate():
                self.running = True
                await self._command_loop()
        except (FrameError, ProtocolError) as e:
            logger.warning(f"Connection {self.connection_id} ({self.username}): protocol failure: {e}")
        except (ConnectionError, OSError) as e:
            logger.info(f"Connection {self.connection_id} ({self.username}) lost: {e}")
        finally:
            await self._cleanup()

    async def _send(self, line: str) -> None:
        await self.outbox.send_line(line)

    async def _authenticate(self) -> bool:
        """
        Read the handshake lines and answer with one SUCCESS or ERROR line.
        Password hashing runs in a worker thread.

        Returns:
            True if the connection is now a logged-in session
        """
        mode = await self.codec.read_line()
        if mode is None:
            return False
        username = await self.codec.read_line()
        password = await self.codec.read_line()
        mode = mode.strip() or LOGIN

        try:
            username = self.auth.validate_username(username)

            if mode == RECOVER:
                new_password = await self.codec.read_line()
                message = await asyncio.to_thread(self.auth.recover, username, password, new_password)
                # legacy clients read this line as information, keep the ERROR prefix
                await self._send(error(message))
                return False

            if mode not in AUTH_MODES:
                raise AuthenticationError("Unknown auth mode")
            password = self.auth.validate_password(password)

            if mode == SIGNUP:
                self.auth.ensure_signup_available(username)
                answer = await self.codec.read_line()
                await asyncio.to_thread(self.auth.signup, username, password, answer)
            else:
                await asyncio.to_thread(self.auth.login, username, password)

            self.auth.enter_session(username, self)
        except AuthenticationError as e:
            await self._send(error(e.message))
            return False

        self.username = username
        await self._send(reply(SUCCESS, f"Welcome {username}"))
        return True

    async def _command_loop(self) -> None:
        while self.running:
            line = await self.codec.read_line()
            if not line:
                logger.info(f"{self.username} ended the session")
                break

            command, argument = split_command(line)
            handler = self._commands.get(command)
            if handler is None:
                logger.debug(f"Unknown command from {self.username}: {command!r}")
                await self._send(error("Unknown command"))
                continue

            logger.debug(f"{self.username}: {command}")
            try:
                await handler(argument)
            except FileShareError as e:
                await self._send(error(e.message))

    async def _list_clients(self, argument: str) -> None:
        await self._send(reply(CLIENT_LIST, join_items(self.auth.list_clients(), ",")))

    async def _list_own_files(self, argument: str) -> None:
        await self._send(reply(OWN_FILES, join_items(self.files.list_own_files(self.username), ";")))

    async def _list_public_files(self, argument: str) -> None:
        await self._send(reply(PUBLIC_FILES, join_items(self.files.list_public_files(argument), ";")))

    async def _upload_request(self, argument: str) -> None:
        request = UploadRequest.parse(argument)
        session = self.uploads.request_upload(self.username, self.connection_id, request)
        await self._send(reply(UPLOAD_APPROVED, f"{session.file_id}|{session.chunk_size}"))

    async def _upload_chunk(self, argument: str) -> None:
        file_id, sep, size_text = argument.partition("|")
        try:
            size = int(size_text.strip())
        except ValueError:
            raise ProtocolError(f"Malformed chunk header: {argument!r}")
        if not sep or size < 0 or size > self.state.settings.max_buffer_size:
            raise ProtocolError(f"Unacceptable chunk length in {argument!r}")

        # the announced bytes are consumed whatever the outcome
        data = await self.codec.read_exact(size)
        if size == 0:
            raise ValidationError("Invalid chunk size")
        self.uploads.receive_chunk(self.connection_id, file_id.strip(), data)
        await self._send(CHUNK_ACK)

    async def _upload_complete(self, argument: str) -> None:
        session = await asyncio.to_thread(self.uploads.complete, self.connection_id, argument.strip())
        try:
            await self._send(UPLOAD_SUCCESS)
        finally:
            # the file is saved, the requester hears about it even if this socket is gone
            self.uploads.notify_requester(session)

    async def _download_request(self, argument: str) -> None:
        owner, filename = self.downloads.parse(argument)
        ticket = self.downloads.authorize(self.username, owner, filename)

        async def frame(codec: StreamCodec) -> None:
            await self._stream_download(codec, ticket)

        try:
            await self.outbox.send(frame)
        except DownloadFailedError as e:
            self.downloads.record_failure(ticket, e)
            self.running = False
            return
        except (ConnectionError, OSError) as e:
            self.downloads.record_failure(ticket, e)
            raise
        self.downloads.record_success(ticket)

    async def _stream_download(self, codec: StreamCodec, ticket: DownloadTicket) -> None:
        """
        Write DOWNLOAD_START, the length-prefixed blocks and DOWNLOAD_COMPLETE
        as one outbox frame, so no pushed line can land inside the stream.
        """
        await codec.write_line(reply(DOWNLOAD_START, f"{ticket.filename}|{ticket.size}"))
        stream = self.downloads.open_stream(ticket)
        try:
            while True:
                try:
                    block = await asyncio.to_thread(next, stream, None)
                except OSError as e:
                    await codec.write_line(error(DownloadFailedError.message))
                    raise DownloadFailedError() from e
                if block is None:
                    break
                await codec.write_block(block)
        finally:
            stream.close()
        await codec.write_line(DOWNLOAD_COMPLETE)

    async def _file_request(self, argument: str) -> None:
        description, recipient = self.requests.parse(argument)
        request = self.requests.create_request(self.username, description, recipient)
        await self._send(reply(REQUEST_SENT, request.request_id))

    async def _view_messages(self, argument: str) -> None:
        await self._send(reply(MESSAGES, join_items(self.requests.view_messages(self.username), ";")))

    async def _view_history(self, argument: str) -> None:
        await self._send(reply(HISTORY, join_items(self.files.view_history(self.username), ";")))

    async def _delete_file(self, argument: str) -> None:
        filename = self.files.delete_file(self.username, argument)
        await self._send(reply(DELETE_SUCCESS, filename))

    async def _delete_message(self, argument: str) -> None:
        self.requests.delete_message(self.username, argument)
        await self._send(MESSAGE_DELETED)

    async def _logout(self, argument: str) -> None:
        await self._send(reply(SUCCESS, "Logged out"))
        self.running = False
        logger.info(f"{self.username} logged out")

    async def _cleanup(self) -> None:
        dropped = self.uploads.abandon_connection(self.connection_id)
        if dropped:
            logger.info(f"Released {dropped} unfinished upload(s) of connection {self.connection_id}")
        if self.username is not None:
            self.auth.leave_session(self.username, self)
        try:
            await self.outbox.close()
        finally:
            await self.codec.close()
        logger.info(f"Connection {self.connection_id} closed")
