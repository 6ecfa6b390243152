"""Utility functions for CLI output."""

import sys

from cli.constants import GREEN, RESET


class ProgressPrinter:
    """Progress callback that redraws one status line on stdout."""

    def __init__(self, verb: str, filename: str):
        """
        Args:
            verb: Action shown in the line (e.g. "Uploading")
            filename: Display name for the file
        """
        self.verb = verb
        self.filename = filename
        self._started = False
        self._finished = False

    def __call__(self, done: int, total: int) -> None:
        self._started = True
        progress = (done / total) * 100 if total else 100.0
        sys.stdout.write(
            f"\r{self.verb} {self.filename}: {format_file_size(done)} / {format_file_size(total)} "
            f"({GREEN}{progress:.1f}%{RESET})"
        )
        sys.stdout.flush()
        if done >= total:
            self.finish()

    def finish(self) -> None:
        """Terminate the progress line once."""
        if self._started and not self._finished:
            self._finished = True
            sys.stdout.write('\n')
            sys.stdout.flush()


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in bytes to human-readable format with appropriate unit.

    Uses binary units (1024-based): B, KiB, MiB, GiB, TiB.

    Args:
        size_bytes: File size in bytes

    Returns:
        Formatted string with size and unit (e.g., "1.50 MiB", "512 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    size = size_bytes / 1024.0
    for unit in ['KiB', 'MiB', 'GiB', 'TiB']:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0

    return f"{size:.2f} PiB"


def format_table(rows: list[tuple[str, ...]], headers: tuple[str, ...]) -> str:
    """Left-aligned plain-text table."""
    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))
    lines = ["  ".join(h.ljust(widths[i]) for i, h in enumerate(headers)).rstrip()]
    lines.append("  ".join("-" * w for w in widths))
    for row in rows:
        lines.append("  ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)).rstrip())
    return "\n".join(lines)
