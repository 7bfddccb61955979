"""
Interfaces the upload pipelines depend on.

Using Protocols here means the pipeline doesn't know or care whether
it's talking to ffprobe or a fake, S3 or an in-memory dict, Snowflake
or a test double. Infrastructure modules implement these; tests
substitute deterministic fakes.

The failure types for each collaborator live here too, so the
pipeline can tell a probe failure from a storage failure without
importing any infrastructure code.
"""

from typing import BinaryIO, Callable, Protocol
from uuid import UUID

from .models import AspectClassification, Video


class ProbeError(Exception):
    """Media prober could not run or its output couldn't be classified."""
    pass


class RewriteError(Exception):
    """Container rewriter failed. ``stderr`` holds the tool's diagnostics."""

    def __init__(self, message: str, stderr: str = "") -> None:
        super().__init__(message)
        self.stderr = stderr

    def __str__(self) -> str:
        base = super().__str__()
        if self.stderr:
            return f"{base}: {self.stderr.strip()}"
        return base


class StorageError(Exception):
    """Raised when storage operations fail."""
    pass


class VideoNotFoundError(Exception):
    """Raised when a requested video doesn't exist."""
    pass


class AuthError(Exception):
    """Raised when a bearer credential is missing or invalid."""
    pass


# Turns a raw bearer token into the caller's user ID, or raises AuthError.
Authenticator = Callable[[str], UUID]


class MediaProber(Protocol):
    """Reads a local video file and classifies its orientation."""

    async def probe(self, path: str) -> AspectClassification:
        ...


class ContainerRewriter(Protocol):
    """Writes a fast-start copy of a local video and returns its path."""

    async def rewrite(self, path: str) -> str:
        ...


class ObjectStorage(Protocol):
    """The subset of object storage the pipelines write through."""

    async def put_object(
        self,
        bucket: str,
        key: str,
        body: BinaryIO,
        content_type: str,
    ) -> None:
        ...

    async def delete_object(self, bucket: str, key: str) -> None:
        ...

    async def get_presigned_url(
        self,
        bucket: str,
        key: str,
        expiry_seconds: int = 3600,
    ) -> str:
        ...


class VideoStore(Protocol):
    """Metadata store for video records."""

    def get_video(self, video_id: UUID) -> Video:
        """Load a record. Raises VideoNotFoundError if absent."""
        ...

    def update_video(self, video: Video) -> None:
        ...
