"""Command handler functions for CLI operations."""

from pathlib import Path
from typing import Optional

from common.logging_config import get_logger
from cli.config import Config
from cli.models import (
    ClientsCommand,
    DeleteFileCommand,
    DeleteMessageCommand,
    DownloadCommand,
    FilesCommand,
    HistoryCommand,
    LoginCommand,
    LogoutCommand,
    MessagesCommand,
    PublicFilesCommand,
    RecoverCommand,
    RequestCommand,
    SignupCommand,
    UploadCommand,
)
from cli.share_client import ServerError, ShareClient
from cli.utils import ProgressPrinter, format_table

logger = get_logger(__name__)


_config: Optional[Config] = None
_client: Optional[ShareClient] = None


def get_config() -> Config:
    global _config
    if _config is None:
        _config = Config(Path.home() / '.fileshare' / 'config.json')
    return _config


def get_client() -> ShareClient:
    """
    Get or create global ShareClient instance.

    Returns:
        ShareClient instance (not necessarily logged in)
    """
    global _client
    if _client is None:
        logger.debug("Creating new ShareClient instance")
        config = get_config()
        host, port = config.get_server_address()
        _client = ShareClient(host, port, timeout=config.get_timeout())
    return _client


def _failure(action: str, error: Exception) -> str:
    if isinstance(error, ServerError):
        logger.warning(f"{action} failed: {error.message}")
        return f"{action} failed: {error.message}"
    logger.error(f"{action} failed: {error}")
    return f"Error: {error}"


def handle_signup(cmd: SignupCommand, client: Optional[ShareClient] = None,
                  config: Optional[Config] = None) -> str:
    """
    Handle 'signup' command.

    Args:
        cmd: SignupCommand with username, password and recovery answer
        client: Optional ShareClient for dependency injection (testing)
        config: Optional Config for dependency injection (testing)

    Returns:
        Success or error message
    """
    if client is None:
        client = get_client()
    try:
        message = client.signup(cmd.username, cmd.password, cmd.recovery_answer)
    except (ServerError, OSError) as e:
        return _failure("Signup", e)
    (config or get_config()).set_last_username(cmd.username)
    return f"Signup successful! {message}"


def handle_login(cmd: LoginCommand, client: Optional[ShareClient] = None,
                 config: Optional[Config] = None) -> str:
    """
    Handle 'login' command.

    Args:
        cmd: LoginCommand with username and password
        client: Optional ShareClient for dependency injection (testing)
        config: Optional Config for dependency injection (testing)

    Returns:
        Success or error message
    """
    if client is None:
        client = get_client()
    try:
        message = client.login(cmd.username, cmd.password)
    except (ServerError, OSError) as e:
        return _failure("Login", e)
    (config or get_config()).set_last_username(cmd.username)
    return f"Login successful! {message}"


def handle_recover(cmd: RecoverCommand, client: Optional[ShareClient] = None) -> str:
    if client is None:
        client = get_client()
    try:
        return client.recover(cmd.username, cmd.recovery_answer, cmd.new_password)
    except (ServerError, OSError) as e:
        return _failure("Recovery", e)


def handle_clients(cmd: ClientsCommand, client: Optional[ShareClient] = None) -> str:
    if client is None:
        client = get_client()
    try:
        clients = client.list_clients()
    except (ServerError, OSError) as e:
        return _failure("Listing clients", e)
    if not clients:
        return "No clients found"
    return "Clients:\n" + "\n".join(f"  - {entry}" for entry in clients)


def handle_files(cmd: FilesCommand, client: Optional[ShareClient] = None) -> str:
    """
    Handle 'files' command.

    Returns:
        Table of own files with visibility, requester and description
    """
    if client is None:
        client = get_client()
    try:
        records = client.list_own_files()
    except (ServerError, OSError) as e:
        return _failure("Listing files", e)
    if not records:
        return "No files uploaded"
    rows = [
        (r.filename, r.visibility, r.requester or "-", r.description or "-")
        for r in records
    ]
    return format_table(rows, ("FILE", "VISIBILITY", "REQUESTED BY", "DESCRIPTION"))


def handle_public_files(cmd: PublicFilesCommand, client: Optional[ShareClient] = None) -> str:
    if client is None:
        client = get_client()
    try:
        files = client.list_public_files(cmd.owner)
    except (ServerError, OSError) as e:
        return _failure("Listing public files", e)
    if not files:
        return f"No public files found for {cmd.owner}"
    lines = [f"Public files of {cmd.owner}:"]
    for filename, description in files:
        lines.append(f"  - {filename}" + (f" ({description})" if description else ""))
    return "\n".join(lines)


def handle_upload(cmd: UploadCommand, client: Optional[ShareClient] = None) -> str:
    """
    Handle 'upload' command.

    Args:
        cmd: UploadCommand with path, visibility, optional request id and description
        client: Optional ShareClient for dependency injection (testing)

    Returns:
        Success or error message
    """
    logger.info(f"Executing upload command: path={cmd.path} public={cmd.is_public} request={cmd.request_id or '-'}")
    if client is None:
        client = get_client()

    path = Path(cmd.path).expanduser()
    progress = ProgressPrinter("Uploading", path.name)
    try:
        filename = client.upload(
            str(path),
            is_public=cmd.is_public,
            request_id=cmd.request_id,
            description=cmd.description,
            progress=progress,
        )
    except FileNotFoundError:
        return f"Error: File not found: {cmd.path}"
    except (ServerError, OSError) as e:
        return _failure("Upload", e)
    finally:
        progress.finish()
    return f"File uploaded successfully: {filename}"


def handle_download(cmd: DownloadCommand, client: Optional[ShareClient] = None,
                    config: Optional[Config] = None) -> str:
    """
    Handle 'download' command.

    Args:
        cmd: DownloadCommand with owner and filename
        client: Optional ShareClient for dependency injection (testing)
        config: Optional Config for dependency injection (testing)

    Returns:
        Path of the downloaded file or an error message
    """
    logger.info(f"Executing download command: owner={cmd.owner} filename={cmd.filename}")
    if client is None:
        client = get_client()
    dest_dir = (config or get_config()).get_download_dir()

    progress = ProgressPrinter("Downloading", cmd.filename)
    try:
        target = client.download(cmd.owner, cmd.filename, dest_dir, progress=progress)
    except (ServerError, OSError) as e:
        return _failure("Download", e)
    finally:
        progress.finish()
    return f"File downloaded successfully to: {target.resolve()}"


def handle_request(cmd: RequestCommand, client: Optional[ShareClient] = None) -> str:
    if client is None:
        client = get_client()
    try:
        request_id = client.request_file(cmd.description, cmd.recipient)
    except (ServerError, OSError) as e:
        return _failure("File request", e)
    return f"File request sent! Request ID: {request_id}"


def handle_messages(cmd: MessagesCommand, client: Optional[ShareClient] = None) -> str:
    if client is None:
        client = get_client()
    try:
        messages = client.view_messages()
    except (ServerError, OSError) as e:
        return _failure("Viewing messages", e)
    if not messages:
        return "No messages"
    return "Messages:\n" + "\n".join(f"  - {message}" for message in messages)


def handle_history(cmd: HistoryCommand, client: Optional[ShareClient] = None) -> str:
    if client is None:
        client = get_client()
    try:
        entries = client.view_history()
    except (ServerError, OSError) as e:
        return _failure("Viewing history", e)
    if not entries:
        return "No history found"
    rows = [(e.timestamp, e.action, e.filename, e.status) for e in entries]
    return format_table(rows, ("TIME", "ACTION", "FILE", "STATUS"))


def handle_delete_file(cmd: DeleteFileCommand, client: Optional[ShareClient] = None) -> str:
    if client is None:
        client = get_client()
    try:
        filename = client.delete_file(cmd.filename)
    except (ServerError, OSError) as e:
        return _failure("Delete", e)
    return f"Deleted {filename}"


def handle_delete_message(cmd: DeleteMessageCommand, client: Optional[ShareClient] = None) -> str:
    if client is None:
        client = get_client()
    try:
        client.delete_message(cmd.text)
    except (ServerError, OSError) as e:
        return _failure("Delete message", e)
    return "Message deleted"


def handle_logout(cmd: LogoutCommand, client: Optional[ShareClient] = None) -> str:
    if client is None:
        client = get_client()
    try:
        client.logout()
    except (ServerError, OSError) as e:
        return _failure("Logout", e)
    return "Logged out successfully"


def collect_notifications(client: Optional[ShareClient] = None) -> list[str]:
    """Pushed messages received since the last call, without blocking."""
    if client is None:
        client = get_client()
    return client.poll_notifications()
