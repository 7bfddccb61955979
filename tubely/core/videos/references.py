"""
Turning stored references into something a browser can fetch.

Records hold either an encoded "bucket,key" reference (private bucket)
or a direct URL (public/CDN deployments). Resolution happens lazily,
only when a record is about to be shown to a client, so the presigned
URL's lifetime starts at read time.
"""

import logging
from typing import Optional

from .models import StorageReference, Video
from .ports import ObjectStorage, StorageError

logger = logging.getLogger(__name__)

DEFAULT_EXPIRY_SECONDS = 60 * 60


class ResolveError(Exception):
    """Raised when a presigned URL can't be generated."""
    pass


class ReferenceResolver:
    """Resolves stored video/thumbnail references into display URLs."""

    def __init__(self, storage: ObjectStorage, expiry_seconds: int = DEFAULT_EXPIRY_SECONDS):
        if expiry_seconds <= 0:
            raise ValueError("expiry_seconds must be positive")
        self._storage = storage
        self._expiry = expiry_seconds

    async def resolve(self, value: str) -> str:
        """
        Resolve one stored value.

        An encoded "bucket,key" pair becomes a presigned URL; anything
        else (a direct URL) is returned unchanged.
        """
        reference = StorageReference.parse(value)
        if reference is None:
            return value

        try:
            return await self._storage.get_presigned_url(
                reference.bucket,
                reference.key,
                expiry_seconds=self._expiry,
            )
        except StorageError as e:
            raise ResolveError(f"Could not sign {reference.key}: {e}") from e

    async def _resolve_optional(self, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return await self.resolve(value)

    async def sign_video(self, video: Video) -> Video:
        """Copy of ``video`` with both URLs ready for display."""
        return video.with_urls(
            video_url=await self._resolve_optional(video.video_url),
            thumbnail_url=await self._resolve_optional(video.thumbnail_url),
        )


def stored_value_for(reference: StorageReference, public_base_url: Optional[str] = None) -> str:
    """
    What to persist on the record for a freshly written object.

    With a public base URL (CDN in front of the bucket) the record holds
    the direct URL; otherwise the encoded reference.
    """
    if public_base_url:
        return f"{public_base_url.rstrip('/')}/{reference.key}"
    return reference.encode()
