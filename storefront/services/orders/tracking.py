"""Human-readable tracking id generation."""

import secrets
import string
from datetime import datetime


TRACKING_ALPHABET = string.ascii_uppercase + string.digits
SUFFIX_LENGTH = 8


def generate_tracking_id(prefix: str, now: datetime) -> str:
    """Return `PREFIX-YYYYMMDD-XXXXXXXX` with a random 8-character suffix."""

    suffix = "".join(secrets.choice(TRACKING_ALPHABET) for _ in range(SUFFIX_LENGTH))
    return f"{prefix.strip().upper() or 'ORD'}-{now:%Y%m%d}-{suffix}"


def generate_batch(prefix: str, now: datetime, count: int) -> list[str]:
    """Generate `count` tracking ids that are distinct within the batch."""

    ids: list[str] = []
    seen: set[str] = set()
    while len(ids) < count:
        candidate = generate_tracking_id(prefix, now)
        if candidate in seen:
            continue
        seen.add(candidate)
        ids.append(candidate)
    return ids
