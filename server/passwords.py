"""Hashing of stored secrets (passwords and recovery answers)."""

import bcrypt

DEFAULT_ROUNDS = 12

# bcrypt only looks at the first 72 bytes
BCRYPT_MAX_BYTES = 72

HASH_PREFIXES = ("$2a$", "$2b$", "$2y$")


def _encode(secret: str) -> bytes:
    return secret.encode('utf-8')[:BCRYPT_MAX_BYTES]


def hash_secret(secret: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """
    Hash a secret using bcrypt.

    Args:
        secret: Plain text to hash
        rounds: bcrypt cost factor

    Returns:
        Bcrypt hash of the secret
    """
    salt = bcrypt.gensalt(rounds)
    hashed = bcrypt.hashpw(_encode(secret), salt)
    return hashed.decode('utf-8')


def is_hashed(value: str) -> bool:
    return value.startswith(HASH_PREFIXES)


def verify_secret(secret: str, stored: str) -> bool:
    """
    Verify a secret against its stored form.

    Credential files written before hashing hold the plain text, which is
    compared directly.

    Args:
        secret: Plain text to verify
        stored: Bcrypt hash, or legacy plain text

    Returns:
        True if the secret matches
    """
    if not is_hashed(stored):
        return secret == stored
    try:
        return bcrypt.checkpw(_encode(secret), stored.encode('utf-8'))
    except ValueError:
        return False


def normalize_answer(answer: str) -> str:
    """Recovery answers match case-insensitively, ignoring surrounding blanks."""
    return answer.strip().lower()
