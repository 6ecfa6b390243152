"""File service: listings, activity history and deletion of a user's files."""

from common.logging_config import get_logger
from server.exceptions import FileNotFoundOnServerError, FileShareError, ValidationError
from server.state import ServerState
from server.user_storage import is_valid_filename, is_valid_username

logger = get_logger(__name__)

DELETE_ACTION = "delete"


class FileService:
    def __init__(self, state: ServerState):
        self.state = state
        self.storage = state.storage

    def list_own_files(self, owner: str) -> list[str]:
        """Metadata rows exactly as stored."""
        return self.storage.list_metadata_rows(owner)

    def list_public_files(self, target: str) -> list[str]:
        """
        Public files of target as 'filename~description'.

        Private files are left out whoever asks.

        Raises:
            ValidationError: If no username was given
        """
        if not target or not target.strip():
            raise ValidationError("No username specified")
        target = target.strip()
        if not is_valid_username(target):
            return []
        return [
            f"{record.filename}~{record.description}"
            for record in self.storage.list_records(target)
            if record.is_public
        ]

    def view_history(self, username: str) -> list[str]:
        return self.storage.read_log_rows(username)

    def delete_file(self, owner: str, filename: str) -> str:
        """
        Delete one of owner's files together with its metadata row.

        Raises:
            ValidationError: If no file name was given
            FileNotFoundOnServerError: If there is no such file
            FileShareError: If the file system refuses the deletion
        """
        if not filename or not filename.strip():
            raise ValidationError("No filename specified")
        if not is_valid_filename(filename) or not self.storage.file_exists(owner, filename):
            raise FileNotFoundOnServerError()

        try:
            self.storage.delete_file(owner, filename)
            self.storage.remove_record(owner, filename)
        except OSError as e:
            self.state.record_activity(owner, filename, DELETE_ACTION, "failed")
            logger.error(f"Failed to delete {owner}/{filename}: {e}")
            raise FileShareError("Failed to delete file")

        self.state.record_activity(owner, filename, DELETE_ACTION, "success")
        logger.info(f"Deleted file {owner}/{filename}")
        return filename
