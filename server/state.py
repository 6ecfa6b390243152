"""The Server value: every process-wide registry, owned in one place and passed to handlers."""

import itertools
import random
import threading

from common.constants import CREDENTIALS_FILENAME
from common.logging_config import get_logger
from common.protocol import NEW_MESSAGE, reply
from common.types import LogEntry
from server.buffer_accountant import BufferAccountant
from server.config import ServerSettings
from server.credential_store import CredentialStore
from server.id_generator import file_id_generator, request_id_generator
from server.registries import KnownUsers, MessageRegistry, PresenceRegistry, RequestRegistry
from server.upload_sessions import UploadSessionTable
from server.user_storage import UserStorage

logger = get_logger(__name__)


class ServerState:
    """
    Shared state for all connections of one server instance.
    """

    def __init__(self, settings: ServerSettings):
        self.settings = settings
        self.storage = UserStorage(settings.data_dir)
        self.credentials = CredentialStore(
            settings.data_dir / CREDENTIALS_FILENAME, rounds=settings.bcrypt_rounds
        )
        self.known_users = KnownUsers()
        self.presence = PresenceRegistry()
        self.buffer = BufferAccountant(settings.max_buffer_size)
        self.file_ids = file_id_generator()
        self.request_ids = request_id_generator()
        self.uploads = UploadSessionTable()
        self.requests = RequestRegistry()
        self.messages = MessageRegistry(self.storage)
        self._connection_ids = itertools.count(1)
        self._connection_lock = threading.Lock()

    def load(self) -> int:
        """Load persisted accounts into the credential store and known users."""
        count = self.credentials.load()
        for username in self.credentials.usernames():
            self.known_users.add(username)
        return count

    def next_connection_id(self) -> int:
        with self._connection_lock:
            return next(self._connection_ids)

    def random_chunk_size(self) -> int:
        return random.randint(self.settings.min_chunk_size, self.settings.max_chunk_size)

    def record_activity(self, username: str, filename: str, action: str, status: str) -> None:
        """Append a row to the user's log.txt; failures only reach the server log."""
        try:
            self.storage.append_log(username, LogEntry.now(filename, action, status))
        except OSError as e:
            logger.error(f"Failed to write activity log for {username}: {e}")

    def notify(self, username: str, message: str) -> bool:
        """
        Persist a message for username and push it if they are connected.

        Returns:
            True if the message was pushed to a live connection
        """
        self.messages.post(username, message)
        target = self.presence.get(username)
        if target is None:
            return False
        target.push_line(reply(NEW_MESSAGE, message))
        logger.debug(f"Pushed notification to {username}")
        return True
