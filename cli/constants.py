"""CLI constants and configuration."""

from prompt_toolkit.styles import Style

COMMANDS = [
    "signup", "login", "recover", "clients", "files", "public", "upload", "download",
    "request", "messages", "history", "delete-file", "delete-message", "logout",
    "clear", "exit", "help",
]

UPLOAD_OPTIONS = ["--public", "--request", "--desc"]

STYLE = Style.from_dict(
    {
        "prompt": "#2E9CCA bold",
        "command": "#0088ff bold",
    }
)

BLUE = "\033[38;2;46;156;202m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
RESET = "\033[0m"

LOGO = f"""{BLUE}
  _____ _ _      ____  _
 |  ___(_) | ___/ ___|| |__   __ _ _ __ ___
 | |_  | | |/ _ \\___ \\| '_ \\ / _` | '__/ _ \\
 |  _| | | |  __/___) | | | | (_| | | |  __/
 |_|   |_|_|\\___|____/|_| |_|\\__,_|_|  \\___|
{RESET}"""

WELCOME_TITLE = "FileShare CLI - share files with other users"
WELCOME_HELP = "Type 'help' for commands or 'exit' to quit.\n"

PROMPT_TEXT = "fileshare> "

HELP_TEXT = """Available commands:
  signup <username> <password> <answer>     Create an account (answer is used for password recovery)
  login <username> <password>               Login
  recover <username> <answer> <new-pass>    Reset a forgotten password
  clients                                   List users and who is online
  files                                     List your files
  public <username>                         List a user's public files
  upload <path> [--public] [--request ID] [--desc TEXT]
                                            Upload a file (private unless --public)
  download <owner> <filename>               Download a file into the download directory
  request <username|ALL> <description>      Ask a user (or everyone) for a file
  messages                                  Show your messages
  history                                   Show your upload/download history
  delete-file <filename>                    Delete one of your files
  delete-message <text>                     Delete a message by its exact text
  logout                                    Logout
  clear                                     Clear screen and redisplay welcome message
  help                                      Show this help
  exit                                      Exit REPL

Examples:
  signup alice secret123 blue
  upload notes.txt --public --desc "lecture notes"
  request ALL "slides from monday"
  upload slides.pdf --request REQ_1
  download alice notes.txt"""
