import secrets
from typing import Callable, Optional

REF_ID_ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"
MAX_ATTEMPTS = 1000


def short_id(length: int = 6, exists: Optional[Callable[[str], bool]] = None) -> str:
    """Generate a short opaque id, retrying while ``exists(id)`` is true.

    After MAX_ATTEMPTS collisions a random numeric suffix is appended so the
    loop always terminates.
    """
    attempts = 0
    while True:
        candidate = "".join(secrets.choice(REF_ID_ALPHABET) for _ in range(length))
        attempts += 1
        if exists is None or not exists(candidate):
            return candidate
        if attempts >= MAX_ATTEMPTS:
            candidate += str(secrets.randbelow(1000))
            if not exists(candidate):
                return candidate
