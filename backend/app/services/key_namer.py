"""
Storage key generation for uploaded files and their thumbnails.

Pattern: {millisecond timestamp}-{13 random base36 chars}{original extension}

Keys are not checked against the bucket. With 36**13 possible suffixes per
millisecond a collision is treated as improbable rather than defended
against.
"""
import os
import secrets
import string
import time
from dataclasses import dataclass
from typing import Callable, Optional

RANDOM_ALPHABET = string.ascii_lowercase + string.digits
RANDOM_LENGTH = 13
THUMBNAIL_SUFFIX = "-thumb.jpg"


@dataclass(frozen=True)
class DerivedKeys:
    """Object keys assigned to one upload."""
    key: str
    thumbnail_key: str


def _random_string(length: int = RANDOM_LENGTH) -> str:
    return "".join(secrets.choice(RANDOM_ALPHABET) for _ in range(length))


def derive_keys(
    original_filename: Optional[str],
    clock: Callable[[], float] = time.time,
) -> DerivedKeys:
    """
    Derive the storage key for a file and the key its thumbnail would use.

    The thumbnail key shares the timestamp and random prefix and is always
    a JPEG, whatever the source container.
    """
    timestamp = int(clock() * 1000)
    prefix = f"{timestamp}-{_random_string()}"
    extension = os.path.splitext(original_filename or "")[1]

    return DerivedKeys(
        key=f"{prefix}{extension}",
        thumbnail_key=f"{prefix}{THUMBNAIL_SUFFIX}",
    )


def derive_key(original_filename: Optional[str]) -> str:
    """Derive just the storage key for a file."""
    return derive_keys(original_filename).key
