"""Custom completer for FileShare CLI with local file autocompletion."""

from pathlib import Path
from typing import Iterable

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from cli.constants import COMMANDS, UPLOAD_OPTIONS


class FileShareCompleter(Completer):
    """
    Custom completer that provides:
    - Command name completion for the first token
    - Local path and option completion for the 'upload' command
    """

    def get_completions(
        self, document: Document, complete_event
    ) -> Iterable[Completion]:
        text = document.text_before_cursor
        tokens = text.split()

        is_typing_new_token = text.endswith(" ") or not tokens

        if not tokens or (len(tokens) == 1 and not is_typing_new_token):
            yield from self._complete_commands(tokens[0] if tokens else "")
            return

        if tokens[0].lower() != "upload":
            return

        current_word = "" if is_typing_new_token else tokens[-1]
        previous = tokens[-1] if is_typing_new_token else (tokens[-2] if len(tokens) > 1 else "")
        if previous in ("--request", "--desc"):
            return

        if current_word.startswith("-"):
            used = set(tokens[1:])
            for option in UPLOAD_OPTIONS:
                if option.startswith(current_word) and option not in used:
                    yield Completion(option, start_position=-len(current_word))
            return

        yield from self._complete_paths(current_word)

    def _complete_commands(self, partial: str) -> Iterable[Completion]:
        """Complete command names matching the partial input."""
        partial_lower = partial.lower()
        for cmd in COMMANDS:
            if cmd.startswith(partial_lower):
                yield Completion(cmd, start_position=-len(partial))

    def _complete_paths(self, partial: str) -> Iterable[Completion]:
        """
        Complete local paths relative to the working directory.

        Directories are offered with a trailing '/', hidden entries only
        when the partial name starts with '.'.
        """
        directory_part, _, name_part = partial.rpartition("/")
        if directory_part or partial.startswith("/"):
            base = Path(directory_part or "/").expanduser()
            prefix = directory_part + "/"
        else:
            base = Path.cwd()
            prefix = ""

        if not base.is_dir():
            return

        try:
            entries = sorted(base.iterdir(), key=lambda p: p.name)
        except OSError:
            return

        for entry in entries:
            if entry.name.startswith(".") and not name_part.startswith("."):
                continue
            if not entry.name.startswith(name_part):
                continue
            suffix = "/" if entry.is_dir() else ""
            yield Completion(
                f"{prefix}{entry.name}{suffix}",
                start_position=-len(partial),
                display=entry.name + suffix,
            )
