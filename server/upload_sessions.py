"""Upload sessions keyed by server-generated file id."""

import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class UploadSession:
    """
    State of one upload between UPLOAD_APPROVED and UPLOAD_COMPLETE.

    While the session exists, total_size bytes are reserved from the
    buffer accountant. Only the owning connection touches chunks.
    """
    file_id: str
    owner: str
    filename: str
    total_size: int
    chunk_size: int
    is_public: bool
    request_id: str = ""
    requester: str = ""
    description: str = ""
    connection_id: Optional[int] = None
    received_size: int = 0
    chunks: List[bytes] = field(default_factory=list)

    @property
    def remaining(self) -> int:
        return self.total_size - self.received_size

    def add_chunk(self, chunk: bytes) -> None:
        if len(chunk) > self.remaining:
            raise ValueError(
                f"Chunk of {len(chunk)} bytes exceeds remaining {self.remaining} for {self.file_id}"
            )
        self.chunks.append(chunk)
        self.received_size += len(chunk)

    def is_complete(self) -> bool:
        return self.received_size == self.total_size

    def discard_chunks(self) -> None:
        self.chunks.clear()


class UploadSessionTable:
    """Concurrent map file_id -> UploadSession."""

    def __init__(self):
        self._sessions: Dict[str, UploadSession] = {}
        self._lock = threading.Lock()

    def add(self, session: UploadSession) -> None:
        with self._lock:
            self._sessions[session.file_id] = session

    def get(self, file_id: str) -> Optional[UploadSession]:
        with self._lock:
            return self._sessions.get(file_id)

    def remove(self, file_id: str) -> Optional[UploadSession]:
        with self._lock:
            return self._sessions.pop(file_id, None)

    def pop_for_connection(self, connection_id: int) -> List[UploadSession]:
        """Remove and return every session opened by one connection."""
        with self._lock:
            owned = [s for s in self._sessions.values() if s.connection_id == connection_id]
            for session in owned:
                del self._sessions[session.file_id]
            return owned

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
