"""Authentication service: signup, login, password recovery and presence."""

from typing import Optional

from common.logging_config import get_logger
from server.exceptions import AuthenticationError
from server.registries import PushTarget
from server.state import ServerState
from server.user_storage import is_valid_username

logger = get_logger(__name__)

RESET_SUCCESS_MESSAGE = "Password reset successful! Please login with your new password."


class AuthService:
    def __init__(self, state: ServerState):
        self.state = state
        self.credentials = state.credentials

    def validate_username(self, username: Optional[str]) -> str:
        if username is None or not username.strip():
            raise AuthenticationError("Invalid username")
        username = username.strip()
        if not is_valid_username(username):
            logger.warning(f"Rejected malformed username: {username!r}")
            raise AuthenticationError("Invalid username")
        return username

    def validate_password(self, password: Optional[str]) -> str:
        if password is None or not password.strip():
            raise AuthenticationError("Invalid password")
        return password

    def ensure_signup_available(self, username: str) -> None:
        if self.credentials.exists(username):
            logger.warning(f"Signup denied for {username}: already registered")
            raise AuthenticationError("Username already registered")

    def signup(self, username: str, password: str, recovery_answer: Optional[str]) -> None:
        logger.info(f"Signup attempt for user: {username}")
        if recovery_answer is None or not recovery_answer.strip():
            raise AuthenticationError("Security answer is required for signup")
        try:
            added = self.credentials.add_user(username, password, recovery_answer)
        except OSError:
            raise AuthenticationError("Failed to save account")
        if not added:
            logger.warning(f"Signup denied for {username}: already registered")
            raise AuthenticationError("Username already registered")

    def login(self, username: str, password: str) -> None:
        logger.info(f"Login attempt for user: {username}")
        if not self.credentials.exists(username):
            logger.warning(f"Login denied for {username}: not registered")
            raise AuthenticationError("Account not found")
        if not self.credentials.verify_password(username, password):
            logger.warning(f"Login denied for {username}: wrong password")
            raise AuthenticationError("Wrong password")

    def recover(self, username: str, answer: Optional[str], new_password: Optional[str]) -> str:
        """
        Reset a password after checking the recovery answer.

        Returns:
            The text sent back to the client on success

        Raises:
            AuthenticationError: If the account or answer does not check out
        """
        logger.info(f"Password recovery attempt for user: {username}")
        creds = self.credentials.get(username)
        if creds is None:
            raise AuthenticationError("Account not found")
        if not creds.recovery_answer.strip():
            raise AuthenticationError("No security question set for this account")
        if not self.credentials.check_recovery_answer(username, answer or ""):
            logger.warning(f"Password recovery failed for {username}: incorrect answer")
            raise AuthenticationError("Incorrect security answer")
        if new_password is None or not new_password.strip():
            raise AuthenticationError("New password cannot be empty")

        try:
            self.credentials.reset_password(username, new_password)
        except OSError:
            raise AuthenticationError("Failed to save new password")
        return RESET_SUCCESS_MESSAGE

    def enter_session(self, username: str, target: PushTarget) -> None:
        """
        Claim presence for username and prepare the user's server-side state.

        Raises:
            AuthenticationError: If another connection already holds the username
        """
        if not self.state.presence.register(username, target):
            logger.warning(f"Login denied for {username}: already online")
            raise AuthenticationError("Username already online")

        try:
            self.state.storage.ensure_user_dir(username)
        except OSError as e:
            self.state.presence.unregister(username, target)
            logger.error(f"Failed to create directory for {username}: {e}")
            raise AuthenticationError("Failed to create user directory")
        self.state.known_users.add(username)
        self.state.messages.ensure_user(username)
        logger.info(f"User {username} logged in successfully")

    def list_clients(self) -> list[str]:
        """Every known user tagged (online) or (offline)."""
        presence = self.state.presence
        return [
            f"{username}({'online' if presence.is_online(username) else 'offline'})"
            for username in self.state.known_users.snapshot()
        ]

    def leave_session(self, username: str, target: PushTarget) -> None:
        self.state.presence.unregister(username, target)
        logger.info(f"User {username} left")
