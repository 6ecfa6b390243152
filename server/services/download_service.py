"""Download service: existence and visibility checks, content streaming."""

from dataclasses import dataclass
from typing import Iterator

from common.logging_config import get_logger
from server.exceptions import FileNotFoundOnServerError, FilePrivateError, ValidationError
from server.state import ServerState
from server.user_storage import is_valid_filename, is_valid_username

logger = get_logger(__name__)

DOWNLOAD_ACTION = "download"


@dataclass(frozen=True)
class DownloadTicket:
    """An authorized download, ready to stream."""
    requester: str
    owner: str
    filename: str
    size: int


class DownloadService:
    def __init__(self, state: ServerState):
        self.state = state
        self.storage = state.storage

    @staticmethod
    def parse(argument: str) -> tuple[str, str]:
        owner, sep, filename = argument.partition("|")
        if not sep or not owner.strip() or not filename:
            raise ValidationError("Invalid download request")
        return owner.strip(), filename

    def authorize(self, requester: str, owner: str, filename: str) -> DownloadTicket:
        """
        Check that filename exists under owner and that requester may read it.

        Access is granted to the owner, to anyone when the file is public,
        and to the user whose request the upload fulfilled.

        Raises:
            FileNotFoundOnServerError: If there is no such content file
            FilePrivateError: If requester is not allowed to read it
        """
        size = None
        if is_valid_username(owner) and is_valid_filename(filename):
            size = self.storage.file_size(owner, filename)
        if size is None:
            self.state.record_activity(requester, filename, DOWNLOAD_ACTION, "failed - not found")
            logger.info(f"Download by {requester} of {owner}/{filename}: not found")
            raise FileNotFoundOnServerError()

        if requester != owner:
            record = self.storage.get_record(owner, filename)
            if record is None or not record.is_accessible_by(requester):
                self.state.record_activity(requester, filename, DOWNLOAD_ACTION, "failed - private")
                logger.warning(f"Download by {requester} of {owner}/{filename} denied: private")
                raise FilePrivateError()

        return DownloadTicket(requester=requester, owner=owner, filename=filename, size=size)

    def open_stream(self, ticket: DownloadTicket) -> Iterator[bytes]:
        """Content in blocks of at most the configured maximum chunk size."""
        return self.storage.read_file_streaming(
            ticket.owner, ticket.filename, self.state.settings.max_chunk_size
        )

    def record_success(self, ticket: DownloadTicket) -> None:
        self.state.record_activity(ticket.requester, ticket.filename, DOWNLOAD_ACTION, "success")
        logger.info(f"Download completed: {ticket.owner}/{ticket.filename} -> {ticket.requester} ({ticket.size} bytes)")

    def record_failure(self, ticket: DownloadTicket, error: Exception) -> None:
        self.state.record_activity(ticket.requester, ticket.filename, DOWNLOAD_ACTION, "failed - transfer error")
        logger.error(f"Download of {ticket.owner}/{ticket.filename} to {ticket.requester} failed: {error}")
