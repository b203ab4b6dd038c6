from __future__ import annotations

import secrets
import string

UID_LENGTH = 8
UID_ALPHABET = string.ascii_letters + string.digits


def generate_uid() -> str:
    """Random 8 character alphanumeric UID (uniqueness is checked by the store)."""
    return "".join(secrets.choice(UID_ALPHABET) for _ in range(UID_LENGTH))
