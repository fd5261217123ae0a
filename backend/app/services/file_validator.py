"""
Classification of incoming files by their declared MIME type.
"""
import enum
from typing import Optional


class MediaKind(str, enum.Enum):
    """What an incoming file was classified as."""
    IMAGE = "image"
    VIDEO = "video"
    REJECTED = "rejected"


ALLOWED_IMAGE_TYPES = frozenset({
    'image/jpeg',
    'image/jpg',
    'image/png',
    'image/gif',
    'image/webp',
})

ALLOWED_VIDEO_TYPES = frozenset({
    'video/mp4',
    'video/webm',
    'video/ogg',
    'video/quicktime',  # .mov
})


def classify(declared_media_type: Optional[str]) -> MediaKind:
    """
    Classify a file by the content type the client declared for it.

    Matching is case-insensitive and ignores MIME parameters
    (``image/png; charset=binary`` is still an image). Anything not in the
    allow-lists is rejected.
    """
    if not declared_media_type:
        return MediaKind.REJECTED

    media_type = declared_media_type.split(';', 1)[0].strip().lower()

    if media_type in ALLOWED_IMAGE_TYPES:
        return MediaKind.IMAGE
    if media_type in ALLOWED_VIDEO_TYPES:
        return MediaKind.VIDEO
    return MediaKind.REJECTED
