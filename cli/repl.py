"""REPL with prompt_toolkit for user interaction."""

import os
import sys
from prompt_toolkit import PromptSession
from prompt_toolkit.history import InMemoryHistory

from cli.commands import (
    collect_notifications,
    get_client,
    handle_clients,
    handle_delete_file,
    handle_delete_message,
    handle_download,
    handle_files,
    handle_history,
    handle_login,
    handle_logout,
    handle_messages,
    handle_public_files,
    handle_recover,
    handle_request,
    handle_signup,
    handle_upload,
)
from cli.completer import FileShareCompleter
from cli.constants import (
    HELP_TEXT,
    LOGO,
    PROMPT_TEXT,
    RESET,
    STYLE,
    WELCOME_HELP,
    WELCOME_TITLE,
    YELLOW,
)
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
from cli.parser import ParseError, parse_command

HANDLERS = {
    SignupCommand: handle_signup,
    LoginCommand: handle_login,
    RecoverCommand: handle_recover,
    ClientsCommand: handle_clients,
    FilesCommand: handle_files,
    PublicFilesCommand: handle_public_files,
    UploadCommand: handle_upload,
    DownloadCommand: handle_download,
    RequestCommand: handle_request,
    MessagesCommand: handle_messages,
    HistoryCommand: handle_history,
    DeleteFileCommand: handle_delete_file,
    DeleteMessageCommand: handle_delete_message,
    LogoutCommand: handle_logout,
}


def clear_screen() -> None:
    """Clear the terminal screen (cross-platform)."""
    if sys.platform == "win32":
        os.system("cls")
    else:
        os.system("clear")


def show_welcome() -> None:
    print(LOGO)
    print(WELCOME_TITLE)
    print(WELCOME_HELP)


def dispatch_command(cmd_obj) -> str:
    """Dispatch parsed command to appropriate handler."""
    handler = HANDLERS.get(type(cmd_obj))
    if handler is None:
        return f"Unknown command type: {type(cmd_obj)}"
    return handler(cmd_obj)


def print_notifications() -> None:
    for message in collect_notifications():
        print(f"{YELLOW}[NOTIFICATION]{RESET} {message}")


def prompt_text() -> str:
    client = get_client()
    if client.connected:
        return f"{client.username}@{PROMPT_TEXT}"
    return PROMPT_TEXT


def repl_loop() -> None:
    """Start interactive REPL with prompt_toolkit."""
    history = InMemoryHistory()
    session: PromptSession = PromptSession(
        completer=FileShareCompleter(), history=history, style=STYLE
    )

    clear_screen()
    show_welcome()

    try:
        while True:
            try:
                print_notifications()
                user_input = session.prompt([("class:prompt", prompt_text())])

                if not user_input.strip():
                    continue

                if user_input.strip() == "exit":
                    print("Goodbye!")
                    break

                if user_input.strip() == "help":
                    print(HELP_TEXT)
                    continue

                if user_input.strip() == "clear":
                    clear_screen()
                    show_welcome()
                    continue

                cmd_obj = parse_command(user_input)
                result = dispatch_command(cmd_obj)
                print(result)

            except ParseError as e:
                print(f"Error: {e}")
            except KeyboardInterrupt:
                continue
            except EOFError:
                print("\nGoodbye!")
                break
    finally:
        client = get_client()
        if client.connected:
            handle_logout(LogoutCommand(), client)
