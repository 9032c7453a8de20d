"""Random identifiers and secrets."""

import secrets
import string

_ALPHABET = string.ascii_letters + string.digits + "-_"


def generate_random_string(length: int) -> str:
    """Return a random string of URL-safe base64 characters."""
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))
