"""Configuration settings for the FileShare server."""

import os
from dataclasses import dataclass
from pathlib import Path

from common.constants import (
    DEFAULT_DATA_DIR,
    MAX_BUFFER_SIZE,
    MAX_CHUNK_SIZE,
    MAX_LINE_LENGTH,
    MIN_CHUNK_SIZE,
    SERVER_PORT,
)


SERVER_HOST = os.environ.get("FILESHARE_HOST", "0.0.0.0")

SERVER_PORT = int(os.environ.get("FILESHARE_PORT", str(SERVER_PORT)))

DATA_DIR = os.environ.get("FILESHARE_DATA_DIR", DEFAULT_DATA_DIR)

BUFFER_LIMIT = int(os.environ.get("FILESHARE_MAX_BUFFER_SIZE", str(MAX_BUFFER_SIZE)))

CHUNK_SIZE_MIN = int(os.environ.get("FILESHARE_MIN_CHUNK_SIZE", str(MIN_CHUNK_SIZE)))

CHUNK_SIZE_MAX = int(os.environ.get("FILESHARE_MAX_CHUNK_SIZE", str(MAX_CHUNK_SIZE)))

LINE_LIMIT = int(os.environ.get("FILESHARE_MAX_LINE_LENGTH", str(MAX_LINE_LENGTH)))

HASH_ROUNDS = int(os.environ.get("FILESHARE_BCRYPT_ROUNDS", "12"))


@dataclass(frozen=True)
class ServerSettings:
    """
    Settings for one server instance. Defaults come from the environment.
    """
    host: str = SERVER_HOST
    port: int = SERVER_PORT
    data_dir: Path = Path(DATA_DIR)
    max_buffer_size: int = BUFFER_LIMIT
    min_chunk_size: int = CHUNK_SIZE_MIN
    max_chunk_size: int = CHUNK_SIZE_MAX
    max_line_length: int = LINE_LIMIT
    bcrypt_rounds: int = HASH_ROUNDS

    def __post_init__(self):
        if self.min_chunk_size <= 0 or self.max_chunk_size < self.min_chunk_size:
            raise ValueError(
                f"Invalid chunk size range [{self.min_chunk_size}, {self.max_chunk_size}]"
            )
        if self.max_buffer_size < 0:
            raise ValueError(f"Invalid buffer size {self.max_buffer_size}")
        if not 4 <= self.bcrypt_rounds <= 31:
            raise ValueError(f"Invalid bcrypt rounds {self.bcrypt_rounds}")
