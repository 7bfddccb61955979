"""
Upload pipelines for videos and thumbnails.

A video upload runs through a fixed sequence of stages:

    AUTHENTICATING -> AUTHORIZING -> STAGING -> PROBING -> REWRITING
        -> KEYING_AND_UPLOADING -> RECORD_UPDATING -> DONE

Any stage can fail, which aborts everything after it and surfaces a
single VideoServiceError to the caller. Nothing is retried.

Two guarantees hold on every path, success or failure:
- Local temp files live in a request-private directory that is removed
  when the pipeline returns or raises.
- The record's reference is only written after the object upload has
  succeeded. If the record write then fails, the object is deleted
  again; if even that fails, the orphaned key is logged for the sweep.

This module is framework-agnostic. The HTTP layer hands it the raw
token, path ID and upload; collaborators are injected as protocols.
"""

import logging
import os
import shutil
import tempfile
from contextlib import ExitStack
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Optional, Protocol
from uuid import UUID

from .errors import (
    BadRequestError,
    ForbiddenError,
    InternalServerError,
    NotFoundError,
    UnauthorizedError,
    UnsupportedMediaTypeError,
    VideoServiceError,
)
from .keys import derive_key, derive_thumbnail_key
from .models import AspectClassification, StorageReference, Video
from .ports import (
    AuthError,
    Authenticator,
    ContainerRewriter,
    MediaProber,
    ObjectStorage,
    ProbeError,
    RewriteError,
    StorageError,
    VideoNotFoundError,
    VideoStore,
)
from .references import stored_value_for

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1 << 20
STAGED_FILENAME = "tubely-upload"

VIDEO_MEDIA_TYPES = frozenset({"video/mp4"})
THUMBNAIL_MEDIA_TYPES = frozenset({"image/jpeg", "image/png"})


class UploadStage(Enum):
    AUTHENTICATING = "authenticating"
    AUTHORIZING = "authorizing"
    STAGING = "staging"
    PROBING = "probing"
    REWRITING = "rewriting"
    KEYING_AND_UPLOADING = "keying_and_uploading"
    RECORD_UPDATING = "record_updating"
    DONE = "done"


class UploadSource(Protocol):
    """
    An incoming file part.

    FastAPI's UploadFile satisfies this directly.
    """
    filename: Optional[str]
    content_type: Optional[str]

    async def read(self, size: int = -1) -> bytes:
        ...


@dataclass
class PipelineConfig:
    """
    Everything the pipelines need from configuration.

    Passed explicitly so the pipeline never reaches for global settings.
    """
    bucket: str
    max_upload_bytes: int = 1 << 30
    max_thumbnail_bytes: int = 10 << 20
    staging_dir: Optional[str] = None
    public_base_url: Optional[str] = None


def parse_media_type(content_type: Optional[str]) -> Optional[str]:
    """
    Strip parameters and normalise case: "Video/MP4; codecs=x" -> "video/mp4".

    Returns None when nothing usable was declared.
    """
    if not content_type:
        return None
    media_type = content_type.split(";", 1)[0].strip().lower()
    main_type, sep, sub_type = media_type.partition("/")
    if not sep or not main_type or not sub_type or "/" in sub_type or " " in media_type:
        return None
    return media_type


def parse_video_id(raw_video_id: str) -> UUID:
    try:
        return UUID(str(raw_video_id))
    except ValueError as e:
        raise BadRequestError("Invalid ID") from e


def extension_for(media_type: str) -> str:
    return media_type.split("/")[-1]


class _UploadPipeline:
    """Steps shared by the video and thumbnail pipelines."""

    accepted_media_types: frozenset = frozenset()

    def __init__(
        self,
        config: PipelineConfig,
        authenticator: Authenticator,
        repository: VideoStore,
        storage: ObjectStorage,
    ) -> None:
        self._config = config
        self._authenticate_token = authenticator
        self._repository = repository
        self._storage = storage

    def _authenticate(self, token: Optional[str]) -> UUID:
        if not token:
            raise UnauthorizedError("Couldn't find JWT")
        try:
            return self._authenticate_token(token)
        except AuthError as e:
            raise UnauthorizedError("Couldn't validate JWT") from e

    def _authorize(self, raw_video_id: str, user_id: UUID) -> Video:
        video_id = parse_video_id(raw_video_id)

        try:
            video = self._repository.get_video(video_id)
        except VideoNotFoundError as e:
            raise NotFoundError("Video not found") from e

        if not video.is_owned_by(user_id):
            logger.warning(
                "Upload attempt by non-owner",
                extra={"video_id": str(video_id), "user_id": str(user_id)}
            )
            raise ForbiddenError("You are not the owner of this video")

        return video

    def _check_media_type(self, upload: Optional[UploadSource]) -> str:
        if upload is None:
            raise BadRequestError("Unable to parse form file")

        media_type = parse_media_type(upload.content_type)
        if media_type not in self.accepted_media_types:
            raise UnsupportedMediaTypeError(
                f"Invalid file format: {upload.content_type or 'none declared'}"
            )
        return media_type

    async def _stage(
        self,
        upload: UploadSource,
        cleanup: ExitStack,
        max_bytes: int,
        suffix: str,
    ) -> BinaryIO:
        """
        Copy the upload into a private temp dir, enforcing the size limit.

        The directory is registered on ``cleanup`` before anything is
        written to it, so even a half-written file is removed.
        """
        workdir = tempfile.mkdtemp(prefix="tubely-", dir=self._config.staging_dir)
        cleanup.callback(shutil.rmtree, workdir, ignore_errors=True)

        staged = cleanup.enter_context(
            open(os.path.join(workdir, STAGED_FILENAME + suffix), "w+b")
        )

        total = 0
        while True:
            try:
                chunk = await upload.read(CHUNK_SIZE)
            except OSError as e:
                raise BadRequestError("Unable to read file data") from e
            if not chunk:
                break
            total += len(chunk)
            if total > max_bytes:
                raise BadRequestError(f"File exceeds the {max_bytes} byte limit")
            staged.write(chunk)

        if total == 0:
            raise BadRequestError("Uploaded file is empty")

        staged.flush()
        staged.seek(0)

        logger.debug("Staged upload", extra={"path": staged.name, "size_bytes": total})

        return staged

    async def _write_object(
        self,
        reference: StorageReference,
        body: BinaryIO,
        media_type: str,
    ) -> None:
        try:
            await self._storage.put_object(reference.bucket, reference.key, body, media_type)
        except StorageError as e:
            raise InternalServerError("Unable to upload file to storage") from e

    async def _commit(self, video: Video, reference: StorageReference) -> None:
        """
        Persist the record; undo the object write if that fails.

        The object already exists at this point. A failed record update
        would leave it unreferenced, so it's deleted again. If the delete
        also fails the key is logged as orphaned for the reconciliation
        sweep to pick up.
        """
        try:
            self._repository.update_video(video)
        except Exception as e:
            logger.error(
                "Record update failed after upload, removing object",
                extra={
                    "video_id": str(video.id),
                    "bucket": reference.bucket,
                    "key": reference.key,
                    "error": str(e),
                }
            )
            try:
                await self._storage.delete_object(reference.bucket, reference.key)
            except StorageError as delete_error:
                logger.error(
                    "Orphaned object left in storage",
                    extra={
                        "video_id": str(video.id),
                        "bucket": reference.bucket,
                        "key": reference.key,
                        "error": str(delete_error),
                    }
                )
            raise InternalServerError("Unable to update video in DB") from e

    def _log_failure(self, stage: UploadStage, raw_video_id: str, error: VideoServiceError) -> None:
        error.stage = stage
        log = logger.error if error.status_code >= 500 else logger.warning
        log(
            "Upload failed",
            extra={
                "video_id": str(raw_video_id),
                "stage": stage.value,
                "status_code": error.status_code,
                "error": error.message,
                "cause": str(error.__cause__) if error.__cause__ else None,
            }
        )


class VideoUploadPipeline(_UploadPipeline):
    """
    Stage, probe, rewrite, store and record a video upload.

    One instance can serve concurrent requests: all per-request state
    lives in local variables and the request's temp directory.
    """

    accepted_media_types = VIDEO_MEDIA_TYPES

    def __init__(
        self,
        config: PipelineConfig,
        authenticator: Authenticator,
        repository: VideoStore,
        prober: MediaProber,
        rewriter: ContainerRewriter,
        storage: ObjectStorage,
    ) -> None:
        super().__init__(config, authenticator, repository, storage)
        self._prober = prober
        self._rewriter = rewriter

    async def upload(
        self,
        video_id: str,
        token: Optional[str],
        upload: Optional[UploadSource],
    ) -> Video:
        """
        Run the full pipeline for one request.

        Returns the updated record (with the stored reference, not a
        presigned URL). Raises a VideoServiceError subclass on failure.
        """
        stage = UploadStage.AUTHENTICATING
        try:
            with ExitStack() as cleanup:
                user_id = self._authenticate(token)

                stage = UploadStage.AUTHORIZING
                video = self._authorize(video_id, user_id)

                stage = UploadStage.STAGING
                media_type = self._check_media_type(upload)
                extension = extension_for(media_type)
                staged = await self._stage(
                    upload, cleanup, self._config.max_upload_bytes, suffix=f".{extension}"
                )

                logger.info(
                    "Uploading video",
                    extra={"video_id": str(video.id), "user_id": str(user_id)}
                )

                stage = UploadStage.PROBING
                staged.seek(0)
                classification = await self._probe(staged.name)

                stage = UploadStage.REWRITING
                processed_path = await self._rewrite(staged.name, cleanup)

                stage = UploadStage.KEYING_AND_UPLOADING
                reference = StorageReference(
                    bucket=self._config.bucket,
                    key=derive_key(classification, extension),
                )
                with open(processed_path, "rb") as body:
                    await self._write_object(reference, body, media_type)

                stage = UploadStage.RECORD_UPDATING
                video.video_url = stored_value_for(reference, self._config.public_base_url)
                video.touch()
                await self._commit(video, reference)

            stage = UploadStage.DONE
        except VideoServiceError as e:
            self._log_failure(stage, video_id, e)
            raise

        logger.info(
            "Video upload complete",
            extra={
                "video_id": str(video.id),
                "bucket": reference.bucket,
                "key": reference.key,
            }
        )

        return video

    async def _probe(self, path: str) -> AspectClassification:
        try:
            return await self._prober.probe(path)
        except ProbeError as e:
            raise InternalServerError("Error getting video aspect ratio") from e

    async def _rewrite(self, path: str, cleanup: ExitStack) -> str:
        try:
            processed_path = await self._rewriter.rewrite(path)
        except RewriteError as e:
            raise InternalServerError("File optimization failed") from e

        # normally inside the staging dir already; covers rewriters that write elsewhere
        cleanup.callback(_remove_if_exists, processed_path)
        return processed_path


class ThumbnailUploadPipeline(_UploadPipeline):
    """
    Store a thumbnail image and record it.

    The same write pattern as videos, minus probing and rewriting.
    """

    accepted_media_types = THUMBNAIL_MEDIA_TYPES

    async def upload(
        self,
        video_id: str,
        token: Optional[str],
        upload: Optional[UploadSource],
    ) -> Video:
        stage = UploadStage.AUTHENTICATING
        try:
            with ExitStack() as cleanup:
                user_id = self._authenticate(token)

                stage = UploadStage.AUTHORIZING
                video = self._authorize(video_id, user_id)

                stage = UploadStage.STAGING
                media_type = self._check_media_type(upload)
                extension = extension_for(media_type)
                staged = await self._stage(
                    upload, cleanup, self._config.max_thumbnail_bytes, suffix=f".{extension}"
                )

                stage = UploadStage.KEYING_AND_UPLOADING
                reference = StorageReference(
                    bucket=self._config.bucket,
                    key=derive_thumbnail_key(extension),
                )
                await self._write_object(reference, staged, media_type)

                stage = UploadStage.RECORD_UPDATING
                video.thumbnail_url = stored_value_for(reference, self._config.public_base_url)
                video.touch()
                await self._commit(video, reference)

            stage = UploadStage.DONE
        except VideoServiceError as e:
            self._log_failure(stage, video_id, e)
            raise

        logger.info(
            "Thumbnail upload complete",
            extra={"video_id": str(video.id), "key": reference.key}
        )

        return video


def _remove_if_exists(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Could not remove temp file", extra={"path": path, "error": str(e)})
