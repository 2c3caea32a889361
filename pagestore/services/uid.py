"""Short, filesystem-safe random identifiers for pages."""

import secrets
import string
from typing import Container

from pagestore.exceptions import UidExhaustedError

UID_ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits
UID_LENGTH = 16

# Resample budget before giving up.  With 62**16 candidates a collision here
# means the caller's snapshot is broken, not bad luck.
MAX_ATTEMPTS = 8


def generate_uid(length: int = UID_LENGTH) -> str:
    """Return *length* characters drawn from :data:`UID_ALPHABET` using a CSPRNG."""
    return "".join(secrets.choice(UID_ALPHABET) for _ in range(length))


def generate_unique_id(taken: Container[str], attempts: int = MAX_ATTEMPTS) -> str:
    """Return a uid that is not in *taken*.

    Raises:
        UidExhaustedError: if *attempts* consecutive candidates all collide.
    """
    for _ in range(attempts):
        candidate = generate_uid()
        if candidate not in taken:
            return candidate
    raise UidExhaustedError(attempts)
