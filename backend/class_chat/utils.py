"""Small helpers shared by the services."""
import secrets
import string
import time
from datetime import datetime, timezone

_ID_ALPHABET = string.digits + string.ascii_lowercase


def now_ms() -> int:
    return int(time.time() * 1000)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def generate_id(suffix_length: int = 5) -> str:
    """Millisecond timestamp followed by a random base-36 suffix.

    Unique across concurrent calls in the same millisecond; not strictly
    ordered.
    """
    suffix = ''.join(secrets.choice(_ID_ALPHABET) for _ in range(suffix_length))
    return f"{now_ms()}{suffix}"
