"""
Wiring between settings, infrastructure and the upload pipelines.

Routes ask for pipelines, repositories and resolvers through the
Annotated aliases at the bottom of this module; tests swap any of them
with app.dependency_overrides.
"""

import logging
from typing import Annotated, Generator, Optional
from uuid import UUID

from fastapi import Depends, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..config.settings import Settings, get_settings
from ..core.videos.errors import UnauthorizedError
from ..core.videos.pipeline import PipelineConfig, ThumbnailUploadPipeline, VideoUploadPipeline
from ..core.videos.ports import AuthError, Authenticator
from ..core.videos.references import ReferenceResolver
from ..infrastructure.auth.tokens import JWTAuthenticator
from ..infrastructure.snowflake.client import MockSnowflakeConnection, SnowflakeConfig, create_snowflake_connection
from ..infrastructure.snowflake.repositories.videos import VideoRepository
from ..infrastructure.storage.client import StorageClient, StorageConfig, create_storage_client
from ..infrastructure.video.processor import create_media_tools

logger = logging.getLogger(__name__)

# Bearer scheme. auto_error=False so a missing header reaches the pipeline
# and fails as Unauthorized with our error body instead of FastAPI's 403.
bearer_scheme = HTTPBearer(auto_error=False)

# Process-wide clients (mock ones must be shared so data persists across requests)
_storage_client: Optional[StorageClient] = None
_mock_snowflake_connection: Optional[MockSnowflakeConnection] = None


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
) -> Optional[str]:
    """Raw bearer token, or None if the header is missing or not Bearer."""
    if credentials is None:
        return None
    return credentials.credentials


def get_authenticator(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Authenticator:
    return JWTAuthenticator(
        secret=settings.jwt_secret,
        issuer=settings.jwt_issuer,
        algorithm=settings.jwt_algorithm,
    )


def get_current_user_id(
    token: Annotated[Optional[str], Depends(get_bearer_token)],
    authenticator: Annotated[Authenticator, Depends(get_authenticator)],
) -> UUID:
    """
    Validate the bearer token for read/create endpoints.

    Upload endpoints don't use this; authentication is the first
    stage of their pipeline.
    """
    if not token:
        raise UnauthorizedError("Couldn't find JWT")
    try:
        return authenticator(token)
    except AuthError as e:
        logger.warning("Rejected bearer token", extra={"error": str(e)})
        raise UnauthorizedError("Couldn't validate JWT") from e


# ---------------------------------------------------------------------------
# Infrastructure Dependencies
# ---------------------------------------------------------------------------

def get_video_repository(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Generator[VideoRepository, None, None]:
    """
    Repository bound to a connection that lives for one request.

    Mock mode shares a single in-memory connection across requests so
    records survive between calls.
    """
    global _mock_snowflake_connection

    if settings.snowflake_mock_mode:
        if _mock_snowflake_connection is None:
            _mock_snowflake_connection = MockSnowflakeConnection()
            logger.info("Created shared mock Snowflake connection")

        yield VideoRepository(_mock_snowflake_connection)
    else:
        config = SnowflakeConfig(
            account=settings.snowflake_account,
            user=settings.snowflake_user,
            password=settings.snowflake_password or None,
            private_key_path=settings.snowflake_private_key_path,
            database=settings.snowflake_database,
            schema=settings.snowflake_schema,
            warehouse=settings.snowflake_warehouse,
            role=settings.snowflake_role,
        )

        with create_snowflake_connection(config=config) as conn:
            yield VideoRepository(conn)


def get_storage_client(
    settings: Annotated[Settings, Depends(get_settings)],
) -> StorageClient:
    """
    Provide the storage client.

    Created once per process. boto3 clients are thread-safe, and the
    mock keeps its objects only as long as the instance lives.
    """
    global _storage_client

    if _storage_client is None:
        if settings.s3_mock_mode:
            _storage_client = create_storage_client(mock_mode=True)
        else:
            config = StorageConfig(
                region=settings.s3_region,
                access_key_id=settings.s3_access_key_id,
                secret_access_key=settings.s3_secret_access_key,
                endpoint_url=settings.s3_endpoint_url,
                connect_timeout_seconds=settings.storage_connect_timeout_seconds,
                read_timeout_seconds=settings.storage_read_timeout_seconds,
            )
            _storage_client = create_storage_client(config=config)

    return _storage_client


def get_pipeline_config(
    settings: Annotated[Settings, Depends(get_settings)],
) -> PipelineConfig:
    return PipelineConfig(
        bucket=settings.s3_bucket,
        max_upload_bytes=settings.max_upload_bytes,
        max_thumbnail_bytes=settings.max_thumbnail_bytes,
        staging_dir=settings.staging_dir,
        public_base_url=settings.video_public_base_url,
    )


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_video_upload_pipeline(
    settings: Annotated[Settings, Depends(get_settings)],
    config: Annotated[PipelineConfig, Depends(get_pipeline_config)],
    authenticator: Annotated[Authenticator, Depends(get_authenticator)],
    repository: Annotated[VideoRepository, Depends(get_video_repository)],
    storage: Annotated[StorageClient, Depends(get_storage_client)],
) -> VideoUploadPipeline:
    prober, rewriter = create_media_tools(
        mock_mode=settings.ffmpeg_mock_mode,
        ffmpeg_path=settings.ffmpeg_path,
        ffprobe_path=settings.ffprobe_path,
        timeout_seconds=settings.ffmpeg_timeout_seconds,
    )

    return VideoUploadPipeline(
        config=config,
        authenticator=authenticator,
        repository=repository,
        prober=prober,
        rewriter=rewriter,
        storage=storage,
    )


def get_thumbnail_upload_pipeline(
    config: Annotated[PipelineConfig, Depends(get_pipeline_config)],
    authenticator: Annotated[Authenticator, Depends(get_authenticator)],
    repository: Annotated[VideoRepository, Depends(get_video_repository)],
    storage: Annotated[StorageClient, Depends(get_storage_client)],
) -> ThumbnailUploadPipeline:
    return ThumbnailUploadPipeline(
        config=config,
        authenticator=authenticator,
        repository=repository,
        storage=storage,
    )


def get_reference_resolver(
    settings: Annotated[Settings, Depends(get_settings)],
    storage: Annotated[StorageClient, Depends(get_storage_client)],
) -> ReferenceResolver:
    return ReferenceResolver(storage, expiry_seconds=settings.presigned_url_expiry_seconds)


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

BearerToken = Annotated[Optional[str], Depends(get_bearer_token)]
CurrentUserId = Annotated[UUID, Depends(get_current_user_id)]
VideoRepositoryDep = Annotated[VideoRepository, Depends(get_video_repository)]
VideoUploadPipelineDep = Annotated[VideoUploadPipeline, Depends(get_video_upload_pipeline)]
ThumbnailUploadPipelineDep = Annotated[ThumbnailUploadPipeline, Depends(get_thumbnail_upload_pipeline)]
ReferenceResolverDep = Annotated[ReferenceResolver, Depends(get_reference_resolver)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
