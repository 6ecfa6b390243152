"""Shared record types (FileRecord, FileRequest, LogEntry) and their row formats."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from common.constants import LOG_TIMESTAMP_FORMAT

PUBLIC = "public"
PRIVATE = "private"


@dataclass(frozen=True)
class FileRecord:
    """
    One metadata row: filename|public|requester|description.
    """
    filename: str
    is_public: bool
    requester: str = ""
    description: str = ""

    @property
    def visibility(self) -> str:
        return PUBLIC if self.is_public else PRIVATE

    def to_row(self) -> str:
        return f"{self.filename}|{self.visibility}|{self.requester}|{self.description}"

    @classmethod
    def from_row(cls, row: str) -> Optional['FileRecord']:
        """Parse a metadata row, returning None for blank or malformed rows."""
        parts = row.split("|", 3)
        if len(parts) < 2 or not parts[0]:
            return None
        parts += [""] * (4 - len(parts))
        return cls(
            filename=parts[0],
            is_public=parts[1] == PUBLIC,
            requester=parts[2],
            description=parts[3],
        )

    def is_accessible_by(self, username: str) -> bool:
        """Whether a non-owner may download the file."""
        return self.is_public or (bool(self.requester) and self.requester == username)


@dataclass(frozen=True)
class FileRequest:
    """
    An outstanding solicitation for a file.
    """
    request_id: str
    requester: str
    description: str


@dataclass(frozen=True)
class LogEntry:
    """
    One activity log row: filename|yyyy-MM-dd HH:mm:ss|action|status.
    """
    filename: str
    timestamp: str
    action: str
    status: str

    @classmethod
    def now(cls, filename: str, action: str, status: str) -> 'LogEntry':
        return cls(
            filename=filename,
            timestamp=datetime.now().strftime(LOG_TIMESTAMP_FORMAT),
            action=action,
            status=status,
        )

    def to_row(self) -> str:
        return f"{self.filename}|{self.timestamp}|{self.action}|{self.status}"

    @classmethod
    def from_row(cls, row: str) -> Optional['LogEntry']:
        parts = row.split("|", 3)
        if len(parts) != 4:
            return None
        return cls(*parts)
