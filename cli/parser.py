"""Command parser for CLI input."""

import shlex

from cli.models import (
    ClientsCommand,
    CommandRequest,
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


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


def parse_command(input_line: str) -> CommandRequest:
    """Parse user input into a CommandRequest object.

    Args:
        input_line: Raw user input from REPL

    Returns:
        CommandRequest object

    Raises:
        ParseError: If command syntax is invalid
    """
    if not input_line.strip():
        raise ParseError("Empty command")

    try:
        tokens = shlex.split(input_line)
    except ValueError as e:
        raise ParseError(f"Invalid syntax: {e}")

    if not tokens:
        raise ParseError("Empty command")

    command_name = tokens[0]
    args = tokens[1:]

    if command_name == "signup":
        return _parse_signup(args)
    elif command_name == "login":
        return _parse_login(args)
    elif command_name == "recover":
        return _parse_recover(args)
    elif command_name == "clients":
        _expect_no_args(command_name, args)
        return ClientsCommand()
    elif command_name == "files":
        _expect_no_args(command_name, args)
        return FilesCommand()
    elif command_name == "public":
        return _parse_public(args)
    elif command_name == "upload":
        return _parse_upload(args)
    elif command_name == "download":
        return _parse_download(args)
    elif command_name == "request":
        return _parse_request(args)
    elif command_name == "messages":
        _expect_no_args(command_name, args)
        return MessagesCommand()
    elif command_name == "history":
        _expect_no_args(command_name, args)
        return HistoryCommand()
    elif command_name == "delete-file":
        return _parse_delete_file(args)
    elif command_name == "delete-message":
        return _parse_delete_message(args)
    elif command_name == "logout":
        _expect_no_args(command_name, args)
        return LogoutCommand()
    else:
        raise ParseError(f"Unknown command: {command_name}")


def _expect_no_args(command_name: str, args: list[str]) -> None:
    if args:
        raise ParseError(f"{command_name} takes no arguments")


def _parse_signup(args: list[str]) -> SignupCommand:
    """Parse 'signup <username> <password> <recovery-answer>' command."""
    if len(args) != 3:
        raise ParseError("signup requires exactly 3 arguments: <username> <password> <recovery-answer>")

    username, password, answer = args
    return SignupCommand(username=username, password=password, recovery_answer=answer)


def _parse_login(args: list[str]) -> LoginCommand:
    """Parse 'login <username> <password>' command."""
    if len(args) != 2:
        raise ParseError("login requires exactly 2 arguments: <username> <password>")

    username, password = args
    return LoginCommand(username=username, password=password)


def _parse_recover(args: list[str]) -> RecoverCommand:
    """Parse 'recover <username> <recovery-answer> <new-password>' command."""
    if len(args) != 3:
        raise ParseError("recover requires exactly 3 arguments: <username> <recovery-answer> <new-password>")

    username, answer, new_password = args
    return RecoverCommand(username=username, recovery_answer=answer, new_password=new_password)


def _parse_public(args: list[str]) -> PublicFilesCommand:
    if len(args) != 1:
        raise ParseError("public requires exactly 1 argument: <username>")
    return PublicFilesCommand(owner=args[0])


def _parse_upload(args: list[str]) -> UploadCommand:
    """Parse 'upload <path> [--public] [--request <id>] [--desc <text>]' command."""
    path = None
    is_public = False
    request_id = ""
    description = ""

    i = 0
    while i < len(args):
        arg = args[i]
        if arg == "--public":
            is_public = True
        elif arg in ("--request", "--desc"):
            if i + 1 >= len(args):
                raise ParseError(f"{arg} requires a value")
            if arg == "--request":
                request_id = args[i + 1]
            else:
                description = args[i + 1]
            i += 1
        elif arg.startswith("--"):
            raise ParseError(f"Unknown option for upload: {arg}")
        elif path is None:
            path = arg
        else:
            raise ParseError("upload takes a single file path")
        i += 1

    if path is None:
        raise ParseError("upload requires a file path: upload <path> [--public] [--request <id>] [--desc <text>]")

    return UploadCommand(path=path, is_public=is_public, request_id=request_id, description=description)


def _parse_download(args: list[str]) -> DownloadCommand:
    """Parse 'download <owner> <filename>' command."""
    if len(args) != 2:
        raise ParseError("download requires exactly 2 arguments: <owner> <filename>")

    owner, filename = args
    return DownloadCommand(owner=owner, filename=filename)


def _parse_request(args: list[str]) -> RequestCommand:
    """Parse 'request <username|ALL> <description...>' command."""
    if len(args) < 2:
        raise ParseError("request requires a recipient and a description: request <username|ALL> <description>")

    return RequestCommand(recipient=args[0], description=" ".join(args[1:]))


def _parse_delete_file(args: list[str]) -> DeleteFileCommand:
    if len(args) != 1:
        raise ParseError("delete-file requires exactly 1 argument: <filename>")
    return DeleteFileCommand(filename=args[0])


def _parse_delete_message(args: list[str]) -> DeleteMessageCommand:
    if not args:
        raise ParseError("delete-message requires the message text")
    return DeleteMessageCommand(text=" ".join(args))
