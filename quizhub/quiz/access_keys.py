"""
Access keys for anonymous (QR code) quiz entry.

Keys are short uppercase alphanumeric tokens shared by the teacher.
"""
import re
import secrets
import string
from typing import Callable, Optional

from quizhub.config import config


ACCESS_KEY_ALPHABET = string.ascii_uppercase + string.digits
MAX_GENERATION_ATTEMPTS = 20


def generate_access_key(length: Optional[int] = None) -> str:
    """Generate a random uppercase alphanumeric key (5 characters by default)."""
    if length is None:
        length = config.ACCESS_KEY_LENGTH
    return "".join(secrets.choice(ACCESS_KEY_ALPHABET) for _ in range(length))


def validate_access_key(key: str, length: Optional[int] = None) -> bool:
    if length is None:
        length = config.ACCESS_KEY_LENGTH
    if not key or not isinstance(key, str):
        return False
    return bool(re.fullmatch(rf"[A-Z0-9]{{{length}}}", key))


def generate_unique_access_key(exists: Callable[[str], bool]) -> str:
    """
    Generate a key that ``exists`` reports as unused.

    Raises:
        RuntimeError: no free key was found after MAX_GENERATION_ATTEMPTS tries.
    """
    for _ in range(MAX_GENERATION_ATTEMPTS):
        key = generate_access_key()
        if not exists(key):
            return key
    raise RuntimeError("Could not generate a unique access key")


def keys_match(supplied: Optional[str], expected: Optional[str]) -> bool:
    """Exact, case-sensitive comparison after trimming the supplied key."""
    if not supplied or not expected:
        return False
    return secrets.compare_digest(supplied.strip().encode("utf-8"), expected.encode("utf-8"))
