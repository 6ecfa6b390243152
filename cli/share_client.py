"""Blocking TCP client for the FileShare protocol."""

import os
import socket
from pathlib import Path
from typing import Callable, Optional

from common.logging_config import get_logger
from common.protocol import (
    CHUNK_ACK,
    CLIENT_LIST,
    DELETE_FILE,
    DELETE_MESSAGE,
    DELETE_SUCCESS,
    DOWNLOAD_COMPLETE,
    DOWNLOAD_REQUEST,
    DOWNLOAD_START,
    ERROR,
    FILE_REQUEST,
    HISTORY,
    LIST_CLIENTS,
    LIST_OWN_FILES,
    LIST_PUBLIC_FILES,
    LOGIN,
    LOGOUT,
    MESSAGE_DELETED,
    MESSAGES,
    NEW_MESSAGE,
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
    SocketCodec,
    split_command,
    split_items,
)
from common.types import FileRecord, LogEntry

logger = get_logger(__name__)

ProgressCallback = Callable[[int, int], None]

PASSWORD_RESET_MARKER = "Password reset successful"


class ServerError(Exception):
    """The server answered with an ERROR: line."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ShareClient:
    """
    One authenticated session with a FileShare server.

    Every read takes exactly one frame off the socket. NEW_MESSAGE lines
    that arrive while a reply is awaited are queued and handed out by
    pop_notifications(); poll_notifications() collects pushes that arrive
    while the client is idle.
    """

    def __init__(self, host: str, port: int, timeout: Optional[float] = None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.username: Optional[str] = None
        self._codec: Optional[SocketCodec] = None
        self._notifications: list[str] = []
        logger.info(f"Initialized ShareClient [server={host}:{port}]")

    @property
    def connected(self) -> bool:
        return self._codec is not None and self.username is not None

    def _open(self) -> SocketCodec:
        self.close()
        try:
            sock = socket.create_connection((self.host, self.port), timeout=self.timeout)
        except OSError as e:
            logger.error(f"Cannot connect to {self.host}:{self.port}: {e}")
            raise ConnectionError(f"Cannot connect to server at {self.host}:{self.port}. Is it running?")
        self._codec = SocketCodec(sock)
        return self._codec

    def _handshake(self, lines: list[str]) -> str:
        codec = self._open()
        for line in lines:
            codec.write_line(line)
        response = codec.read_line()
        if response is None:
            self.close()
            raise ConnectionError("Server closed the connection during login")
        return response

    def _require_session(self) -> SocketCodec:
        if not self.connected:
            raise ConnectionError("Not logged in. Please run: login <username> <password>")
        return self._codec

    def connect(self, mode: str, username: str, password: str, extra: Optional[str] = None) -> str:
        """
        Open a connection and run the authentication handshake.

        Args:
            mode: LOGIN, SIGNUP or RECOVER
            username: Account name
            password: Password (the recovery answer for RECOVER)
            extra: Recovery answer for SIGNUP, new password for RECOVER

        Returns:
            The server's message

        Raises:
            ServerError: If the server rejects the handshake
            ConnectionError: If the server cannot be reached
        """
        lines = [mode, username, password]
        if extra is not None:
            lines.append(extra)
        response = self._handshake(lines)
        prefix, body = split_command(response)

        if prefix == SUCCESS:
            self.username = username
            logger.info(f"Logged in as {username}")
            return body

        self.close()
        if mode == RECOVER and PASSWORD_RESET_MARKER in body:
            return body
        raise ServerError(body if prefix == ERROR else f"Unexpected response: {response}")

    def login(self, username: str, password: str) -> str:
        return self.connect(LOGIN, username, password)

    def signup(self, username: str, password: str, recovery_answer: str) -> str:
        return self.connect(SIGNUP, username, password, recovery_answer)

    def recover(self, username: str, recovery_answer: str, new_password: str) -> str:
        return self.connect(RECOVER, username, recovery_answer, new_password)

    def _read_reply(self) -> str:
        codec = self._require_session()
        while True:
            try:
                line = codec.read_line()
            except (FrameError, OSError) as e:
                self.close()
                raise ConnectionError(f"Connection lost: {e}")
            if line is None:
                self.close()
                raise ConnectionError("Server closed the connection")
            prefix, body = split_command(line)
            if prefix == NEW_MESSAGE:
                self._notifications.append(body)
                continue
            return line

    def _request(self, line: str) -> str:
        codec = self._require_session()
        try:
            codec.write_line(line)
        except OSError as e:
            self.close()
            raise ConnectionError(f"Connection lost: {e}")
        return self._read_reply()

    @staticmethod
    def _expect(response: str, prefix: str) -> str:
        """Return the body of a reply with the given prefix; raise on ERROR."""
        reply_prefix, body = split_command(response)
        if reply_prefix == ERROR:
            raise ServerError(body)
        if reply_prefix != prefix:
            raise ServerError(f"Unexpected response: {response}")
        return body

    def list_clients(self) -> list[str]:
        return split_items(self._expect(self._request(f"{LIST_CLIENTS}:"), CLIENT_LIST), ",")

    def list_own_files(self) -> list[FileRecord]:
        rows = split_items(self._expect(self._request(f"{LIST_OWN_FILES}:"), OWN_FILES), ";")
        return [record for record in map(FileRecord.from_row, rows) if record is not None]

    def list_public_files(self, owner: str) -> list[tuple[str, str]]:
        """Public files of owner as (filename, description) pairs."""
        body = self._expect(self._request(f"{LIST_PUBLIC_FILES}:{owner}"), PUBLIC_FILES)
        files = []
        for item in split_items(body, ";"):
            filename, _, description = item.partition("~")
            files.append((filename, description))
        return files

    def upload(
        self,
        path: str,
        is_public: bool = False,
        request_id: str = "",
        description: str = "",
        progress: Optional[ProgressCallback] = None,
    ) -> str:
        """
        Upload a local file using the chunk size the server approves.

        Returns:
            The stored file name

        Raises:
            FileNotFoundError: If path is not a readable file
            ServerError: If the server refuses the upload at any step
        """
        if not os.path.isfile(path):
            raise FileNotFoundError(f"File not found: {path}")

        codec = self._require_session()
        filename = os.path.basename(path)
        size = os.path.getsize(path)
        fields = [filename, str(size), "true" if is_public else "false", request_id]
        if description:
            fields.append(description.replace("\n", " "))

        body = self._expect(self._request(f"{UPLOAD_REQUEST}:{'|'.join(fields)}"), UPLOAD_APPROVED)
        file_id, _, chunk_text = body.partition("|")
        chunk_size = int(chunk_text)
        logger.info(f"Upload approved: {filename} ({size} bytes) [file_id={file_id}, chunk_size={chunk_size}]")

        sent = 0
        with open(path, "rb") as f:
            while True:
                chunk = f.read(chunk_size)
                if not chunk:
                    break
                codec.write_line(f"{UPLOAD_CHUNK}:{file_id}|{len(chunk)}")
                codec.write_bytes(chunk)
                self._expect(self._read_reply(), CHUNK_ACK)
                sent += len(chunk)
                if progress:
                    progress(sent, size)

        self._expect(self._request(f"{UPLOAD_COMPLETE}:{file_id}"), UPLOAD_SUCCESS)
        logger.info(f"Upload completed: {filename}")
        return filename

    def download(
        self,
        owner: str,
        filename: str,
        dest_dir: Path,
        progress: Optional[ProgressCallback] = None,
    ) -> Path:
        """
        Download owner's file into dest_dir.

        Content goes to a temporary file that is renamed once the whole
        announced size has arrived.

        Returns:
            Path of the downloaded file
        """
        codec = self._require_session()
        body = self._expect(self._request(f"{DOWNLOAD_REQUEST}:{owner}|{filename}"), DOWNLOAD_START)
        name, _, size_text = body.rpartition("|")
        size = int(size_text)

        dest_dir = Path(dest_dir)
        dest_dir.mkdir(parents=True, exist_ok=True)
        target = dest_dir / os.path.basename(name or filename)
        partial = target.with_name(target.name + ".part")

        received = 0
        try:
            with open(partial, "wb") as f:
                while received < size:
                    length = codec.read_int32()
                    if length <= 0 or received + length > size:
                        raise FrameError(f"Bad block length {length} at {received}/{size}")
                    f.write(codec.read_exact(length))
                    received += length
                    if progress:
                        progress(received, size)
            complete = self._read_reply()
        except FrameError as e:
            self.close()
            partial.unlink(missing_ok=True)
            logger.error(f"Download of {owner}/{filename} interrupted: {e}")
            raise ConnectionError("Download failed; the connection was closed")
        except BaseException:
            partial.unlink(missing_ok=True)
            raise

        if complete != DOWNLOAD_COMPLETE:
            partial.unlink(missing_ok=True)
            self._expect(complete, DOWNLOAD_COMPLETE)
        os.replace(partial, target)
        logger.info(f"Downloaded {owner}/{filename} to {target}")
        return target

    def request_file(self, description: str, recipient: str) -> str:
        """Returns the request id the server assigned."""
        return self._expect(self._request(f"{FILE_REQUEST}:{description}|{recipient}"), REQUEST_SENT)

    def view_messages(self) -> list[str]:
        return split_items(self._expect(self._request(f"{VIEW_MESSAGES}:"), MESSAGES), ";")

    def view_history(self) -> list[LogEntry]:
        rows = split_items(self._expect(self._request(f"{VIEW_HISTORY}:"), HISTORY), ";")
        return [entry for entry in map(LogEntry.from_row, rows) if entry is not None]

    def delete_file(self, filename: str) -> str:
        return self._expect(self._request(f"{DELETE_FILE}:{filename}"), DELETE_SUCCESS)

    def delete_message(self, text: str) -> None:
        self._expect(self._request(f"{DELETE_MESSAGE}:{text}"), MESSAGE_DELETED)

    def logout(self) -> str:
        try:
            return self._expect(self._request(f"{LOGOUT}:"), SUCCESS)
        finally:
            self.close()

    def pop_notifications(self) -> list[str]:
        notifications, self._notifications = self._notifications, []
        return notifications

    def poll_notifications(self, timeout: float = 0.0) -> list[str]:
        """
        Collect pushed lines that are already waiting on the socket.

        Returns:
            Every queued notification, including ones seen earlier
        """
        if self.connected:
            codec = self._codec
            try:
                while codec.has_pending(timeout):
                    timeout = 0.0
                    line = codec.read_line()
                    if line is None:
                        logger.info("Server closed the connection")
                        self.close()
                        break
                    prefix, body = split_command(line)
                    if prefix == NEW_MESSAGE:
                        self._notifications.append(body)
                    else:
                        logger.warning(f"Discarding unsolicited line: {line}")
            except (FrameError, OSError) as e:
                logger.warning(f"Connection lost while polling: {e}")
                self.close()
        return self.pop_notifications()

    def close(self) -> None:
        if self._codec is not None:
            self._codec.close()
        self._codec = None
        self.username = None
