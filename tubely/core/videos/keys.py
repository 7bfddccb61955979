"""
Storage key derivation.

Keys are random rather than derived from the video ID so that a
re-upload never overwrites an object a cached presigned URL still
points at. 32 bytes of entropy makes collisions negligible, so no
existence check is made.
"""

import base64
import secrets

from .models import AspectClassification

KEY_ENTROPY_BYTES = 32
THUMBNAIL_PREFIX = "thumbnails"


def _random_token() -> str:
    raw = secrets.token_bytes(KEY_ENTROPY_BYTES)
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def derive_key(classification: AspectClassification, extension: str) -> str:
    """
    Build a fresh object key: ``{classification}/{random}.{extension}``.

    >>> derive_key(AspectClassification.PORTRAIT, "mp4")  # doctest: +SKIP
    'portrait/3q2-7wEAAAB...Zg.mp4'
    """
    if not extension:
        raise ValueError("extension is required")
    return f"{classification.value}/{_random_token()}.{extension}"


def derive_thumbnail_key(extension: str) -> str:
    """Same scheme as videos, under the thumbnails prefix."""
    if not extension:
        raise ValueError("extension is required")
    return f"{THUMBNAIL_PREFIX}/{_random_token()}.{extension}"
