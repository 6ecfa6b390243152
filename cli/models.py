"""Command request data types for CLI."""

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True)
class SignupCommand:
    """Create an account and log in."""

    username: str
    password: str
    recovery_answer: str
    command: Literal["signup"] = "signup"


@dataclass(frozen=True)
class LoginCommand:
    """Login with username and password."""

    username: str
    password: str
    command: Literal["login"] = "login"


@dataclass(frozen=True)
class RecoverCommand:
    """Reset a forgotten password with the recovery answer."""

    username: str
    recovery_answer: str
    new_password: str
    command: Literal["recover"] = "recover"


@dataclass(frozen=True)
class ClientsCommand:
    """List every user with online status."""

    command: Literal["clients"] = "clients"


@dataclass(frozen=True)
class FilesCommand:
    """List own files."""

    command: Literal["files"] = "files"


@dataclass(frozen=True)
class PublicFilesCommand:
    """List another user's public files."""

    owner: str
    command: Literal["public"] = "public"


@dataclass(frozen=True)
class UploadCommand:
    """Upload a local file."""

    path: str
    is_public: bool = False
    request_id: str = ""
    description: str = ""
    command: Literal["upload"] = "upload"


@dataclass(frozen=True)
class DownloadCommand:
    """Download a file owned by a user."""

    owner: str
    filename: str
    command: Literal["download"] = "download"


@dataclass(frozen=True)
class RequestCommand:
    """Ask one user, or ALL, for a file."""

    recipient: str
    description: str
    command: Literal["request"] = "request"


@dataclass(frozen=True)
class MessagesCommand:
    command: Literal["messages"] = "messages"


@dataclass(frozen=True)
class HistoryCommand:
    command: Literal["history"] = "history"


@dataclass(frozen=True)
class DeleteFileCommand:
    """Delete one of own files."""

    filename: str
    command: Literal["delete-file"] = "delete-file"


@dataclass(frozen=True)
class DeleteMessageCommand:
    """Delete a stored message by its exact text."""

    text: str
    command: Literal["delete-message"] = "delete-message"


@dataclass(frozen=True)
class LogoutCommand:
    command: Literal["logout"] = "logout"


CommandRequest = (
    SignupCommand
    | LoginCommand
    | RecoverCommand
    | ClientsCommand
    | FilesCommand
    | PublicFilesCommand
    | UploadCommand
    | DownloadCommand
    | RequestCommand
    | MessagesCommand
    | HistoryCommand
    | DeleteFileCommand
    | DeleteMessageCommand
    | LogoutCommand
)
