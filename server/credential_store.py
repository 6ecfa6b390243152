"""Persistent credential store: username -> (password hash, recovery answer hash)."""

import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from common.logging_config import get_logger
from server.passwords import (
    DEFAULT_ROUNDS,
    hash_secret,
    is_hashed,
    normalize_answer,
    verify_secret,
)

logger = get_logger(__name__)


@dataclass
class Credentials:
    password: str
    recovery_answer: str = ""


class CredentialStore:
    """
    In-memory credential map backed by a username|password|answer file.

    Passwords and recovery answers are stored as bcrypt hashes. The file
    is rewritten in full on every change, under the same lock that guards
    the map. Hashing happens before the lock is taken.
    """

    def __init__(self, path: Path, rounds: int = DEFAULT_ROUNDS):
        self.path = Path(path)
        self.rounds = rounds
        self._credentials: Dict[str, Credentials] = {}
        self._lock = threading.Lock()

    def load(self) -> int:
        """
        Load credentials from disk, replacing the in-memory map.

        Returns:
            Number of accounts loaded (0 if the file does not exist)
        """
        if not self.path.exists():
            logger.info(f"No saved credentials found at {self.path}")
            return 0

        loaded: Dict[str, Credentials] = {}
        with open(self.path, "r", encoding="utf-8") as f:
            for line in f:
                parts = line.rstrip("\r\n").split("|", 2)
                if len(parts) < 2 or not parts[0]:
                    continue
                answer = parts[2] if len(parts) == 3 else ""
                loaded[parts[0]] = Credentials(password=parts[1], recovery_answer=answer)

        with self._lock:
            self._credentials = loaded
        logger.info(f"Loaded {len(loaded)} saved credentials")
        return len(loaded)

    def _save_locked(self) -> None:
        """
        Rewrite the credential file from the in-memory map.

        Raises:
            OSError: If the file cannot be written; callers roll back their change
        """
        tmp_path = self.path.with_name("." + self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                for username, creds in self._credentials.items():
                    f.write(f"{username}|{creds.password}|{creds.recovery_answer}\n")
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error(f"Error saving credentials to {self.path}: {e}")
            raise

    def usernames(self) -> list[str]:
        with self._lock:
            return list(self._credentials)

    def exists(self, username: str) -> bool:
        with self._lock:
            return username in self._credentials

    def get(self, username: str) -> Optional[Credentials]:
        with self._lock:
            creds = self._credentials.get(username)
            return Credentials(creds.password, creds.recovery_answer) if creds else None

    def verify_password(self, username: str, password: str) -> bool:
        creds = self.get(username)
        return creds is not None and verify_secret(password, creds.password)

    def add_user(self, username: str, password: str, recovery_answer: str) -> bool:
        """
        Register a new account and persist it.

        Returns:
            False if the username is already taken

        Raises:
            OSError: If the credential file cannot be written (nothing is kept)
        """
        if self.exists(username):
            return False
        answer = normalize_answer(recovery_answer)
        creds = Credentials(
            hash_secret(password, self.rounds),
            hash_secret(answer, self.rounds) if answer else "",
        )
        with self._lock:
            if username in self._credentials:
                return False
            self._credentials[username] = creds
            try:
                self._save_locked()
            except OSError:
                del self._credentials[username]
                raise
        logger.info(f"Registered new user: {username}")
        return True

    def check_recovery_answer(self, username: str, answer: str) -> bool:
        """Compare a recovery answer case-insensitively after trimming both sides."""
        creds = self.get(username)
        if creds is None or not creds.recovery_answer.strip():
            return False
        stored = creds.recovery_answer
        if not is_hashed(stored):
            stored = normalize_answer(stored)
        return verify_secret(normalize_answer(answer), stored)

    def reset_password(self, username: str, new_password: str) -> bool:
        """
        Replace a password and persist it.

        Raises:
            OSError: If the credential file cannot be written (the old password stays)
        """
        hashed = hash_secret(new_password, self.rounds)
        with self._lock:
            creds = self._credentials.get(username)
            if creds is None:
                return False
            previous, creds.password = creds.password, hashed
            try:
                self._save_locked()
            except OSError:
                creds.password = previous
                raise
        logger.info(f"Password reset for user: {username}")
        return True
