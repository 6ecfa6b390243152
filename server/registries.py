"""Shared in-memory registries: known users, presence, file requests, messages."""

import threading
from typing import Dict, Iterable, List, Optional, Protocol

from common.logging_config import get_logger
from common.types import FileRequest
from server.user_storage import UserStorage

logger = get_logger(__name__)


class PushTarget(Protocol):
    """Anything that can accept a server-initiated line for a connected user."""

    def push_line(self, line: str) -> None:
        ...


class KnownUsers:
    """Set of every username that has an account."""

    def __init__(self, usernames: Iterable[str] = ()):
        self._order: List[str] = list(dict.fromkeys(usernames))
        self._users = set(self._order)
        self._lock = threading.Lock()

    def add(self, username: str) -> None:
        with self._lock:
            if username not in self._users:
                self._users.add(username)
                self._order.append(username)

    def __contains__(self, username: str) -> bool:
        with self._lock:
            return username in self._users

    def snapshot(self) -> List[str]:
        """Usernames in first-seen order."""
        with self._lock:
            return list(self._order)


class PresenceRegistry:
    """
    Map username -> push target of the live connection.

    register() checks and inserts under one lock so two sockets can never
    both hold the same username.
    """

    def __init__(self):
        self._online: Dict[str, PushTarget] = {}
        self._lock = threading.Lock()

    def register(self, username: str, target: PushTarget) -> bool:
        with self._lock:
            if username in self._online:
                return False
            self._online[username] = target
            return True

    def unregister(self, username: str, target: PushTarget) -> None:
        """Remove the entry only if it still belongs to target."""
        with self._lock:
            if self._online.get(username) is target:
                del self._online[username]

    def get(self, username: str) -> Optional[PushTarget]:
        with self._lock:
            return self._online.get(username)

    def is_online(self, username: str) -> bool:
        with self._lock:
            return username in self._online

    def online_usernames(self) -> List[str]:
        with self._lock:
            return list(self._online)

    def __len__(self) -> int:
        with self._lock:
            return len(self._online)


class RequestRegistry:
    """Map recipient -> outstanding file requests. Requests are never expired."""

    def __init__(self):
        self._requests: Dict[str, List[FileRequest]] = {}
        self._lock = threading.Lock()

    def add(self, recipient: str, request: FileRequest) -> None:
        with self._lock:
            self._requests.setdefault(recipient, []).append(request)

    def for_recipient(self, recipient: str) -> List[FileRequest]:
        with self._lock:
            return list(self._requests.get(recipient, ()))

    def find(self, request_id: str) -> Optional[FileRequest]:
        """Look a request up across all recipients."""
        with self._lock:
            for requests in self._requests.values():
                for request in requests:
                    if request.request_id == request_id:
                        return request
        return None


class MessageRegistry:
    """
    Per-user unread notifications in memory, plus the persistent
    append-only messages.txt in each user's directory.
    """

    def __init__(self, storage: UserStorage):
        self.storage = storage
        self._unread: Dict[str, List[str]] = {}
        self._lock = threading.Lock()

    def ensure_user(self, username: str) -> None:
        with self._lock:
            self._unread.setdefault(username, [])

    def post(self, username: str, message: str) -> None:
        """Record an unread copy and append the message to the user's file."""
        with self._lock:
            self._unread.setdefault(username, []).append(message)
        try:
            self.storage.append_message(username, message)
        except OSError as e:
            logger.error(f"Failed to persist message for {username}: {e}")

    def unread(self, username: str) -> List[str]:
        with self._lock:
            return list(self._unread.get(username, ()))

    def clear_unread(self, username: str) -> None:
        with self._lock:
            if username in self._unread:
                self._unread[username].clear()

    def discard_unread(self, username: str, message: str) -> None:
        target = message.strip()
        with self._lock:
            messages = self._unread.get(username)
            if not messages:
                return
            for index, text in enumerate(messages):
                if text.strip() == target:
                    del messages[index]
                    return

    def persisted(self, username: str) -> List[str]:
        return self.storage.read_messages(username)
