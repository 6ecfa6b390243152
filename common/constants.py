"""Project-wide constants (default sizes, ports, storage names)."""

MAX_BUFFER_SIZE: int = 10 * 1024 * 1024  # 10 MiB of in-flight upload data
MIN_CHUNK_SIZE: int = 50 * 1024
MAX_CHUNK_SIZE: int = 100 * 1024

SERVER_PORT: int = 8000
WEB_PORT: int = 3000

MAX_LINE_LENGTH: int = 1024 * 1024

DEFAULT_DATA_DIR: str = "server_data"
CREDENTIALS_FILENAME: str = "credentials.txt"
METADATA_FILENAME: str = "metadata.txt"
MESSAGES_FILENAME: str = "messages.txt"
LOG_FILENAME: str = "log.txt"

RESERVED_FILENAMES = frozenset({METADATA_FILENAME, MESSAGES_FILENAME, LOG_FILENAME})

LOG_TIMESTAMP_FORMAT: str = "%Y-%m-%d %H:%M:%S"
