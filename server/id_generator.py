"""Monotonic id generators for upload sessions (FILE_<n>) and file requests (REQ_<n>)."""

import itertools
import threading


class IdGenerator:
    """Yields PREFIX_1, PREFIX_2, ... for the lifetime of the process."""

    def __init__(self, prefix: str):
        self.prefix = prefix
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            return f"{self.prefix}_{next(self._counter)}"


def file_id_generator() -> IdGenerator:
    return IdGenerator("FILE")


def request_id_generator() -> IdGenerator:
    return IdGenerator("REQ")
