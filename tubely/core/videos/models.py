"""
Domain models for video uploads.

These models represent the core business concepts. They have no dependencies
on external frameworks, databases, or APIs. The pipeline only ever touches
the storage references on a Video; everything else belongs to the caller.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AspectClassification(Enum):
    """
    Coarse orientation of a video, used as the storage key prefix.

    Only the two common phone/desktop shapes get their own bucket
    namespace. Everything else lands under "other".
    """
    LANDSCAPE = "landscape"
    PORTRAIT = "portrait"
    OTHER = "other"


@dataclass(frozen=True)
class StorageReference:
    """
    A (bucket, key) pair identifying an object in object storage.

    Frozen because references are values. This is what gets persisted,
    not the presigned URL, so a record never holds an expired link.
    """
    bucket: str
    key: str

    def __post_init__(self) -> None:
        if not self.bucket or not self.key:
            raise ValueError("Storage reference needs both bucket and key")
        if "," in self.bucket or "," in self.key:
            raise ValueError("Storage reference parts cannot contain commas")

    def encode(self) -> str:
        """Encoded form stored on the record: "bucket,key"."""
        return f"{self.bucket},{self.key}"

    @classmethod
    def parse(cls, value: str) -> Optional["StorageReference"]:
        """
        Parse an encoded reference.

        Returns None when the value is not exactly two comma-separated
        parts, which is how direct URLs are told apart from references.
        """
        parts = value.split(",")
        if len(parts) != 2 or not parts[0] or not parts[1]:
            return None
        return cls(bucket=parts[0], key=parts[1])


@dataclass
class Video:
    """
    Metadata record for an uploaded video.

    Created by the create endpoint as a draft (no video_url), then
    mutated in place by the upload pipelines.
    """
    user_id: UUID
    title: str = ""
    description: str = ""
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    thumbnail_url: Optional[str] = None
    video_url: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.user_id, UUID):
            raise ValueError("Video user_id must be a UUID")

    @property
    def has_video(self) -> bool:
        return self.video_url is not None

    def is_owned_by(self, user_id: UUID) -> bool:
        return self.user_id == user_id

    def with_urls(
        self,
        video_url: Optional[str],
        thumbnail_url: Optional[str],
    ) -> "Video":
        """Copy of this record with display URLs swapped in."""
        return replace(self, video_url=video_url, thumbnail_url=thumbnail_url)

    def touch(self) -> None:
        self.updated_at = _utcnow()
