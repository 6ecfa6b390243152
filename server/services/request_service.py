"""File requests between users and the per-user message log."""

from common.logging_config import get_logger
from common.protocol import BROADCAST_RECIPIENT
from common.types import FileRequest
from server.exceptions import FileShareError, ValidationError
from server.state import ServerState

logger = get_logger(__name__)


def request_message(request: FileRequest) -> str:
    return f"File request from {request.requester} (ID: {request.request_id}): {request.description}"


class RequestService:
    def __init__(self, state: ServerState):
        self.state = state
        self.requests = state.requests
        self.messages = state.messages

    @staticmethod
    def parse(argument: str) -> tuple[str, str]:
        """Split 'description|recipient'; the description may itself contain '|'."""
        description, sep, recipient = argument.rpartition("|")
        if not sep or not recipient.strip():
            raise ValidationError("Invalid file request")
        return description, recipient.strip()

    def create_request(self, requester: str, description: str, recipient: str) -> FileRequest:
        """
        Register a file request and notify its recipients.

        A recipient of ALL addresses every known user except the requester.

        Raises:
            FileShareError: If the recipient is not a known user
        """
        if recipient == BROADCAST_RECIPIENT:
            recipients = [u for u in self.state.known_users.snapshot() if u != requester]
        elif recipient in self.state.known_users:
            recipients = [recipient]
        else:
            logger.warning(f"File request from {requester} to unknown user {recipient}")
            raise FileShareError("Unknown recipient")

        request = FileRequest(
            request_id=self.state.request_ids.next_id(),
            requester=requester,
            description=description,
        )
        message = request_message(request)
        for target in recipients:
            self.requests.add(target, request)
            self.state.notify(target, message)

        logger.info(f"File request created: {request.request_id} by {requester} for {len(recipients)} user(s)")
        return request

    def view_messages(self, username: str) -> list[str]:
        """Return the persisted messages and clear the unread notifications."""
        try:
            messages = self.messages.persisted(username)
        except OSError as e:
            logger.error(f"Failed to read messages for {username}: {e}")
            raise FileShareError("Failed to read messages")
        self.messages.clear_unread(username)
        return messages

    def delete_message(self, username: str, text: str) -> None:
        """
        Remove the first persisted message equal to text (trimmed).

        Raises:
            ValidationError: If text is blank
            FileShareError: If there is no message file or no matching line
        """
        if not text or not text.strip():
            raise ValidationError("No message specified")
        if not self.state.storage.has_messages_file(username):
            raise FileShareError("No messages file")
        try:
            removed = self.state.storage.delete_first_message(username, text)
        except OSError as e:
            logger.error(f"Failed to update messages for {username}: {e}")
            raise FileShareError("Failed to update messages")
        if not removed:
            raise FileShareError("Message not found")
        self.messages.discard_unread(username, text)
        logger.info(f"Deleted a message for {username}")
