"""Manages per-user directories on disk: content files, metadata, messages, activity log."""

import os
import tempfile
from pathlib import Path
from typing import Iterator, Optional

from common.constants import (
    CREDENTIALS_FILENAME,
    LOG_FILENAME,
    MESSAGES_FILENAME,
    METADATA_FILENAME,
    RESERVED_FILENAMES,
)
from common.logging_config import get_logger
from common.protocol import BROADCAST_RECIPIENT
from common.types import FileRecord, LogEntry

logger = get_logger(__name__)

FORBIDDEN_NAME_CHARS = ("/", "\\", "\0", "\n", "\r")


def is_valid_filename(filename: str) -> bool:
    """
    Check that a client-supplied file name stays inside the owner's directory.

    Args:
        filename: Name as received on the wire

    Returns:
        False for empty names, path separators, '..', hidden names and reserved files
    """
    if not filename or filename.strip() != filename:
        return False
    if any(c in filename for c in FORBIDDEN_NAME_CHARS):
        return False
    if ".." in filename or filename.startswith("."):
        return False
    return filename not in RESERVED_FILENAMES


def is_valid_username(username: str) -> bool:
    """
    Usernames double as directory names next to the credential file and
    as request recipients, so they may not shadow either.
    """
    if not username or username.strip() != username:
        return False
    if username == BROADCAST_RECIPIENT or username.startswith(CREDENTIALS_FILENAME):
        return False
    if any(c in username for c in FORBIDDEN_NAME_CHARS + ("|", ",", ":")):
        return False
    return ".." not in username and not username.startswith(".")


def _read_lines(path: Path) -> list[str]:
    if not path.exists():
        return []
    with open(path, "r", encoding="utf-8") as f:
        return [line.rstrip("\r\n") for line in f]


def _write_lines(path: Path, lines: list[str]) -> None:
    tmp_path = path.with_name("." + path.name + ".tmp")
    with open(tmp_path, "w", encoding="utf-8") as f:
        for line in lines:
            f.write(line + "\n")
    os.replace(tmp_path, path)


def _append_line(path: Path, line: str) -> None:
    with open(path, "a", encoding="utf-8") as f:
        f.write(line + "\n")


class UserStorage:
    """
    Filesystem layout rooted at the data directory:

        <root>/<user>/<filename>      uploaded content
        <root>/<user>/metadata.txt    filename|public|requester|description
        <root>/<user>/messages.txt    one message per line
        <root>/<user>/log.txt         filename|timestamp|action|status

    Callers validate names with is_valid_filename / is_valid_username
    before they reach these methods.
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    def user_dir(self, username: str) -> Path:
        return self.root / username

    def ensure_user_dir(self, username: str) -> Path:
        """
        Create the user's directory if this is their first session.

        Returns:
            Path to the user directory
        """
        path = self.user_dir(username)
        if not path.exists():
            path.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created directory for new user: {username}")
        return path

    def file_path(self, owner: str, filename: str) -> Path:
        return self.user_dir(owner) / filename

    def file_exists(self, owner: str, filename: str) -> bool:
        return self.file_path(owner, filename).is_file()

    def file_size(self, owner: str, filename: str) -> Optional[int]:
        path = self.file_path(owner, filename)
        if path.is_file():
            return path.stat().st_size
        return None

    def write_file(self, owner: str, filename: str, chunks: list[bytes]) -> Path:
        """
        Write content atomically: chunks go to a hidden temp file which is
        then moved over the final name.

        Raises:
            OSError: If the write fails (no partial file is left behind)
        """
        directory = self.ensure_user_dir(owner)
        fd, tmp_name = tempfile.mkstemp(dir=directory, prefix=".", suffix=".part")
        try:
            with os.fdopen(fd, "wb") as f:
                for chunk in chunks:
                    f.write(chunk)
            final_path = directory / filename
            os.replace(tmp_name, final_path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise
        return final_path

    def read_file_streaming(self, owner: str, filename: str, piece_size: int) -> Iterator[bytes]:
        """
        Stream file content in pieces of at most piece_size bytes.

        Raises:
            FileNotFoundError: If the file does not exist
            OSError: If reading fails
        """
        with open(self.file_path(owner, filename), "rb") as f:
            while True:
                piece = f.read(piece_size)
                if not piece:
                    break
                yield piece

    def delete_file(self, owner: str, filename: str) -> bool:
        """
        Delete a content file.

        Returns:
            True if the file was deleted, False if it didn't exist

        Raises:
            OSError: If the file exists but cannot be removed
        """
        path = self.file_path(owner, filename)
        if not path.is_file():
            return False
        path.unlink()
        return True

    def list_metadata_rows(self, owner: str) -> list[str]:
        return [row for row in _read_lines(self.user_dir(owner) / METADATA_FILENAME) if row]

    def list_records(self, owner: str) -> list[FileRecord]:
        records = []
        for row in self.list_metadata_rows(owner):
            record = FileRecord.from_row(row)
            if record is not None:
                records.append(record)
        return records

    def get_record(self, owner: str, filename: str) -> Optional[FileRecord]:
        for record in self.list_records(owner):
            if record.filename == filename:
                return record
        return None

    def upsert_record(self, owner: str, record: FileRecord) -> None:
        """Write the metadata row for record.filename, replacing any previous row."""
        path = self.ensure_user_dir(owner) / METADATA_FILENAME
        rows = [row for row in _read_lines(path) if row and row.split("|", 1)[0] != record.filename]
        rows.append(record.to_row())
        _write_lines(path, rows)

    def remove_record(self, owner: str, filename: str) -> bool:
        path = self.user_dir(owner) / METADATA_FILENAME
        if not path.exists():
            return False
        rows = _read_lines(path)
        kept = [row for row in rows if row and row.split("|", 1)[0] != filename]
        _write_lines(path, kept)
        return len(kept) != len([row for row in rows if row])

    def append_message(self, username: str, message: str) -> None:
        _append_line(self.ensure_user_dir(username) / MESSAGES_FILENAME, message)

    def read_messages(self, username: str) -> list[str]:
        return [line for line in _read_lines(self.user_dir(username) / MESSAGES_FILENAME) if line.strip()]

    def has_messages_file(self, username: str) -> bool:
        return (self.user_dir(username) / MESSAGES_FILENAME).exists()

    def delete_first_message(self, username: str, text: str) -> bool:
        """
        Rewrite messages.txt without the first line equal to text (both trimmed).

        Returns:
            True if a line was removed; the file is left untouched otherwise
        """
        path = self.user_dir(username) / MESSAGES_FILENAME
        lines = _read_lines(path)
        target = text.strip()
        for index, line in enumerate(lines):
            if line.strip() == target:
                del lines[index]
                _write_lines(path, lines)
                return True
        return False

    def append_log(self, username: str, entry: LogEntry) -> None:
        _append_line(self.ensure_user_dir(username) / LOG_FILENAME, entry.to_row())

    def read_log_rows(self, username: str) -> list[str]:
        return [row for row in _read_lines(self.user_dir(username) / LOG_FILENAME) if row]
