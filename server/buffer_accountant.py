"""Process-wide accounting of bytes reserved by in-flight uploads."""

import threading

from common.logging_config import get_logger

logger = get_logger(__name__)


class BufferAccountant:
    """
    Tracks reserved upload bytes against a fixed cap.

    reserve() is an atomic check-and-add; release() never drives the
    counter below zero.
    """

    def __init__(self, capacity: int):
        self.capacity = capacity
        self._reserved = 0
        self._lock = threading.Lock()

    @property
    def reserved(self) -> int:
        with self._lock:
            return self._reserved

    @property
    def available(self) -> int:
        with self._lock:
            return self.capacity - self._reserved

    def reserve(self, size: int) -> bool:
        """
        Reserve size bytes if they fit under the cap.

        Args:
            size: Declared upload size in bytes

        Returns:
            True if the reservation was taken, False if the buffer is full
        """
        if size < 0:
            raise ValueError(f"Cannot reserve a negative size: {size}")
        with self._lock:
            if self._reserved + size > self.capacity:
                logger.debug(f"Reservation of {size} bytes refused ({self._reserved}/{self.capacity} in use)")
                return False
            self._reserved += size
            return True

    def release(self, size: int) -> None:
        with self._lock:
            self._reserved -= size
            if self._reserved < 0:
                logger.warning(f"Buffer released below zero by {-self._reserved} bytes, clamping")
                self._reserved = 0
