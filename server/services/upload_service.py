"""Upload service: admission under the buffer cap, chunk intake and completion."""

from dataclasses import dataclass

from common.logging_config import get_logger
from common.types import FileRecord
from server.exceptions import (
    BufferFullError,
    InvalidFileIdError,
    InvalidRequestIdError,
    SaveFailedError,
    SizeMismatchError,
    ValidationError,
)
from server.state import ServerState
from server.upload_sessions import UploadSession
from server.user_storage import is_valid_filename

logger = get_logger(__name__)

UPLOAD_ACTION = "upload"


@dataclass(frozen=True)
class UploadRequest:
    """Parsed UPLOAD_REQUEST argument: name|size|isPublic|requestId?|description?"""
    filename: str
    size: int
    is_public: bool
    request_id: str = ""
    description: str = ""

    @classmethod
    def parse(cls, argument: str) -> 'UploadRequest':
        parts = argument.split("|", 4)
        if len(parts) < 3:
            raise ValidationError("Invalid upload request")
        filename, size_text, public_text = parts[0], parts[1].strip(), parts[2].strip()
        try:
            size = int(size_text)
        except ValueError:
            raise ValidationError("Invalid file size")
        if size < 0:
            raise ValidationError("Invalid file size")
        return cls(
            filename=filename,
            size=size,
            is_public=public_text.lower() == "true",
            request_id=parts[3].strip() if len(parts) > 3 else "",
            description=parts[4] if len(parts) > 4 else "",
        )


class UploadService:
    def __init__(self, state: ServerState):
        self.state = state
        self.sessions = state.uploads
        self.buffer = state.buffer

    def request_upload(self, owner: str, connection_id: int, request: UploadRequest) -> UploadSession:
        """
        Admit an upload and open its session.

        Raises:
            ValidationError: If the file name is unusable
            InvalidRequestIdError: If request_id names no outstanding request
            BufferFullError: If the declared size does not fit under the cap
        """
        if not is_valid_filename(request.filename):
            logger.warning(f"Upload rejected for {owner}: invalid file name {request.filename!r}")
            raise ValidationError("Invalid filename")

        requester = ""
        if request.request_id:
            file_request = self.state.requests.find(request.request_id)
            if file_request is None:
                logger.warning(f"Invalid request ID {request.request_id} from {owner}")
                raise InvalidRequestIdError()
            requester = file_request.requester

        if not self.buffer.reserve(request.size):
            self.state.record_activity(owner, request.filename, UPLOAD_ACTION, "failed - buffer full")
            logger.warning(f"Upload of {request.filename} by {owner} refused: buffer full")
            raise BufferFullError()

        session = UploadSession(
            file_id=self.state.file_ids.next_id(),
            owner=owner,
            filename=request.filename,
            total_size=request.size,
            chunk_size=self.state.random_chunk_size(),
            is_public=request.is_public,
            request_id=request.request_id,
            requester=requester,
            description=request.description,
            connection_id=connection_id,
        )
        self.sessions.add(session)
        logger.info(
            f"Upload approved for {owner}: {request.filename} ({request.size} bytes) "
            f"[file_id={session.file_id}, chunk_size={session.chunk_size}]"
        )
        return session

    def _owned_session(self, connection_id: int, file_id: str) -> UploadSession:
        session = self.sessions.get(file_id)
        if session is None or session.connection_id != connection_id:
            raise InvalidFileIdError()
        return session

    def receive_chunk(self, connection_id: int, file_id: str, chunk: bytes) -> UploadSession:
        """
        Append a chunk that has already been read off the wire.

        Raises:
            InvalidFileIdError: If the session is unknown to this connection
            ValidationError: If the chunk would exceed the declared size
        """
        session = self._owned_session(connection_id, file_id)
        try:
            session.add_chunk(chunk)
        except ValueError:
            logger.warning(f"Discarded oversized chunk for {file_id}: {len(chunk)} bytes, {session.remaining} remaining")
            raise ValidationError("Chunk exceeds declared size")
        logger.debug(f"Chunk received for {file_id}: {len(chunk)} bytes ({session.received_size}/{session.total_size})")
        return session

    def complete(self, connection_id: int, file_id: str) -> UploadSession:
        """
        Persist a finished upload. The session is removed and its
        reservation released whatever the outcome.

        Raises:
            InvalidFileIdError: If the session is unknown to this connection
            SizeMismatchError: If fewer bytes arrived than were declared
            SaveFailedError: If the content or metadata could not be written
        """
        session = self._owned_session(connection_id, file_id)
        self.sessions.remove(file_id)
        try:
            if not session.is_complete():
                self.state.record_activity(session.owner, session.filename, UPLOAD_ACTION, "failed - size mismatch")
                logger.warning(
                    f"Size mismatch for {session.filename}: received {session.received_size} "
                    f"of {session.total_size} bytes"
                )
                raise SizeMismatchError()

            record = FileRecord(
                filename=session.filename,
                is_public=session.is_public,
                requester=session.requester,
                description=session.description,
            )
            try:
                self._save(session, record)
            except OSError as e:
                self.state.record_activity(session.owner, session.filename, UPLOAD_ACTION, "failed - save error")
                logger.error(f"Failed to save {session.filename} for {session.owner}: {e}")
                raise SaveFailedError()
        finally:
            session.discard_chunks()
            self.buffer.release(session.total_size)

        self.state.record_activity(session.owner, session.filename, UPLOAD_ACTION, "success")
        logger.info(f"Upload completed: {session.owner}/{session.filename} ({session.total_size} bytes)")
        return session

    def _save(self, session: UploadSession, record: FileRecord) -> None:
        storage = self.state.storage
        existed = storage.file_exists(session.owner, session.filename)
        storage.write_file(session.owner, session.filename, session.chunks)
        try:
            storage.upsert_record(session.owner, record)
        except OSError:
            # content without a metadata row must not stay behind
            if not existed:
                storage.delete_file(session.owner, session.filename)
            raise

    def notify_requester(self, session: UploadSession) -> None:
        """Tell the original requester that their request was fulfilled."""
        if not session.request_id:
            return
        file_request = self.state.requests.find(session.request_id)
        if file_request is None:
            return
        message = (
            f"{session.owner} uploaded requested file '{session.filename}' "
            f"(Request ID: {session.request_id})"
        )
        if session.description:
            message += f" - Note: {session.description}"
        self.state.notify(file_request.requester, message)
        logger.info(f"Notified {file_request.requester} about uploaded file: {session.filename}")

    def abandon_connection(self, connection_id: int) -> int:
        """
        Drop every session a disconnected connection left open.

        Returns:
            Number of sessions dropped
        """
        sessions = self.sessions.pop_for_connection(connection_id)
        for session in sessions:
            session.discard_chunks()
            self.buffer.release(session.total_size)
            logger.info(f"Abandoned upload {session.file_id} ({session.filename}) by {session.owner}")
        return len(sessions)
