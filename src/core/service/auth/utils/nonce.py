"""
Challenge nonce format.

A nonce is a random alphanumeric segment followed by the issue time in Unix
seconds, encoded as exactly 8 lowercase hex characters. Carrying the timestamp
inside the value lets the login step reject stale challenges without consulting
the challenge store.
"""

import re
import secrets
import string
from typing import Optional

NONCE_PATTERN = re.compile(r"[a-zA-Z0-9]{20,40}")
TIMESTAMP_PATTERN = re.compile(r"[0-9a-f]{8}")
TIMESTAMP_HEX_LENGTH = 8

_ALPHABET = string.ascii_letters + string.digits


def generate_nonce(now: float, random_length: int = 24) -> str:
    """Generate a cryptographically random nonce stamped with `now`"""
    random_part = "".join(secrets.choice(_ALPHABET) for _ in range(random_length))
    return f"{random_part}{int(now):08x}"


def is_valid_nonce_format(nonce: str) -> bool:
    return isinstance(nonce, str) and NONCE_PATTERN.fullmatch(nonce) is not None


def extract_timestamp(nonce: str) -> Optional[int]:
    """Return the Unix-second timestamp carried in the last 8 characters"""
    suffix = nonce[-TIMESTAMP_HEX_LENGTH:]
    if len(suffix) != TIMESTAMP_HEX_LENGTH or not TIMESTAMP_PATTERN.fullmatch(suffix):
        return None
    return int(suffix, 16)
