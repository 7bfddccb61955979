"""
Object storage client for processed videos and thumbnails.

Supports AWS S3 and any S3-compatible endpoint (MinIO, R2) through boto3,
with a mock mode for local development.

Objects are private. Clients only ever see presigned URLs, which are
generated on read so the expiry window starts when the record is served,
not when the file was uploaded.

Mock mode stores objects in memory, enabling API testing without
provisioning actual object storage.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import BinaryIO, Optional, Protocol
from urllib.parse import quote

from ...core.videos.ports import StorageError

logger = logging.getLogger(__name__)


@dataclass
class StorageConfig:
    """
    Configuration for S3-compatible storage.

    Credentials may be left empty, in which case boto3 falls back to its
    default chain (env vars, shared config, instance role).
    """
    region: str
    access_key_id: str = ""
    secret_access_key: str = ""
    endpoint_url: Optional[str] = None
    connect_timeout_seconds: float = 10.0
    read_timeout_seconds: float = 300.0


@dataclass(frozen=True)
class StoredObjectInfo:
    key: str
    last_modified: datetime


class StorageClient(Protocol):
    """
    Protocol for object storage operations.

    Using a protocol means tests can provide fakes and we can
    swap storage backends without changing dependent code.
    """

    async def put_object(
        self,
        bucket: str,
        key: str,
        body: BinaryIO,
        content_type: str,
    ) -> None:
        """Stream ``body`` from its current position into bucket/key."""
        ...

    async def delete_object(self, bucket: str, key: str) -> None:
        """Remove an object. Missing objects are not an error."""
        ...

    async def list_objects(self, bucket: str, prefix: str = "") -> list[StoredObjectInfo]:
        """List objects under ``prefix``."""
        ...

    async def get_presigned_url(
        self,
        bucket: str,
        key: str,
        expiry_seconds: int = 3600,
    ) -> str:
        """Generate a temporary download URL."""
        ...


class S3StorageClient:
    """
    S3 object storage client.

    All methods are async to match the Protocol even though boto3 is
    synchronous; blocking calls are pushed onto a worker thread so a
    1 GiB upload doesn't stall the event loop.

    boto3's own retries are disabled. The pipeline does at most one
    write per request and leaves retry policy to the caller.
    """

    def __init__(self, config: StorageConfig) -> None:
        """
        Initialize S3 client with boto3.

        We import boto3 here (not at module level) because mock mode
        doesn't need it.
        """
        try:
            import boto3
            from botocore.config import Config
        except ImportError:
            raise ImportError(
                "boto3 is required for S3 storage. Install with: pip install boto3"
            )

        self._config = config

        boto_config = Config(
            signature_version="s3v4",
            connect_timeout=config.connect_timeout_seconds,
            read_timeout=config.read_timeout_seconds,
            retries={"max_attempts": 1, "mode": "standard"},
        )

        client_kwargs = {
            "region_name": config.region,
            "config": boto_config,
        }
        if config.endpoint_url:
            client_kwargs["endpoint_url"] = config.endpoint_url
        if config.access_key_id and config.secret_access_key:
            client_kwargs["aws_access_key_id"] = config.access_key_id
            client_kwargs["aws_secret_access_key"] = config.secret_access_key

        self._s3_client = boto3.client("s3", **client_kwargs)

        logger.info(
            "Initialized S3 storage client",
            extra={
                "region": config.region,
                "endpoint": config.endpoint_url or "aws",
            }
        )

    async def put_object(
        self,
        bucket: str,
        key: str,
        body: BinaryIO,
        content_type: str,
    ) -> None:
        """
        Upload a file object to S3.

        upload_fileobj streams the file in parts (multipart above 8 MiB),
        so the full video is never held in memory.
        """
        try:
            await asyncio.to_thread(
                self._s3_client.upload_fileobj,
                body,
                bucket,
                key,
                ExtraArgs={"ContentType": content_type},
            )
        except Exception as e:
            logger.error(
                "Failed to upload object",
                extra={"bucket": bucket, "key": key, "error": str(e)}
            )
            raise StorageError(f"Upload failed: {e}") from e

        logger.info(
            "Uploaded object",
            extra={"bucket": bucket, "key": key, "content_type": content_type}
        )

    async def delete_object(self, bucket: str, key: str) -> None:
        try:
            await asyncio.to_thread(
                self._s3_client.delete_object,
                Bucket=bucket,
                Key=key,
            )
        except Exception as e:
            logger.error(
                "Failed to delete object",
                extra={"bucket": bucket, "key": key, "error": str(e)}
            )
            raise StorageError(f"Delete failed: {e}") from e

        logger.info("Deleted object", extra={"bucket": bucket, "key": key})

    async def list_objects(self, bucket: str, prefix: str = "") -> list[StoredObjectInfo]:
        """List objects under ``prefix``, following continuation pages."""

        def _list() -> list[StoredObjectInfo]:
            paginator = self._s3_client.get_paginator("list_objects_v2")
            found = []
            for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    found.append(StoredObjectInfo(key=obj["Key"], last_modified=obj["LastModified"]))
            return found

        try:
            return await asyncio.to_thread(_list)
        except Exception as e:
            logger.error(
                "Failed to list objects",
                extra={"bucket": bucket, "prefix": prefix, "error": str(e)}
            )
            raise StorageError(f"List failed: {e}") from e

    async def get_presigned_url(
        self,
        bucket: str,
        key: str,
        expiry_seconds: int = 3600,
    ) -> str:
        """
        Generate a temporary download URL.

        Signing is local (no network call), so this is cheap enough to
        run on every read.
        """
        try:
            return self._s3_client.generate_presigned_url(
                "get_object",
                Params={
                    "Bucket": bucket,
                    "Key": key,
                },
                ExpiresIn=expiry_seconds,
            )
        except Exception as e:
            logger.error(
                "Failed to generate presigned URL",
                extra={"bucket": bucket, "key": key, "error": str(e)}
            )
            raise StorageError(f"Presigned URL generation failed: {e}") from e


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

@dataclass
class StoredObject:
    data: bytes
    content_type: str
    last_modified: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class MockStorageClient:
    """
    In-memory storage for local development.

    Objects are kept in a dict keyed by (bucket, key) and "presigned
    URLs" are mock URIs. Not suitable for production.
    """

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str], StoredObject] = {}
        logger.info("Initialized mock storage client (in-memory)")

    async def put_object(
        self,
        bucket: str,
        key: str,
        body: BinaryIO,
        content_type: str,
    ) -> None:
        data = body.read()
        self.objects[(bucket, key)] = StoredObject(data=data, content_type=content_type)

        logger.debug(
            "Stored object in mock storage",
            extra={"bucket": bucket, "key": key, "size_bytes": len(data)}
        )

    async def delete_object(self, bucket: str, key: str) -> None:
        self.objects.pop((bucket, key), None)

    async def list_objects(self, bucket: str, prefix: str = "") -> list[StoredObjectInfo]:
        return [
            StoredObjectInfo(key=key, last_modified=obj.last_modified)
            for (obj_bucket, key), obj in self.objects.items()
            if obj_bucket == bucket and key.startswith(prefix)
        ]

    async def get_presigned_url(
        self,
        bucket: str,
        key: str,
        expiry_seconds: int = 3600,
    ) -> str:
        if (bucket, key) not in self.objects:
            raise StorageError(f"Object not found: {bucket}/{key}")

        return f"mock://storage/{bucket}/{quote(key)}?expires={expiry_seconds}"


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_client(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> StorageClient:
    """
    Create storage client based on configuration.

    Args:
        config: Storage configuration (required if not mock_mode)
        mock_mode: If True, return mock client for testing

    Returns:
        StorageClient implementation (S3 or Mock)
    """
    if mock_mode:
        return MockStorageClient()

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return S3StorageClient(config)
