"""
Upload endpoints.

Thin HTTP adapters over the upload pipelines: they pull the token,
path ID and file part off the request and hand them over unparsed.
All checks and temp-file cleanup happen inside the pipeline.

UploadSizeLimitMiddleware caps the raw body before Starlette parses the
form; the pipeline then copies the part into its own staging directory
with the exact size limit applied.
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, File, UploadFile, status

from ..dependencies import (
    BearerToken,
    ReferenceResolverDep,
    ThumbnailUploadPipelineDep,
    VideoUploadPipelineDep,
)
from .videos import VideoResponse, to_display

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/video_upload/{video_id}",
    response_model=VideoResponse,
    status_code=status.HTTP_200_OK,
    summary="Upload a video file",
    description="Upload an MP4 for an existing video record. The file is rewritten for fast start before storage.",
)
async def upload_video(
    video_id: str,
    token: BearerToken,
    pipeline: VideoUploadPipelineDep,
    resolver: ReferenceResolverDep,
    video: Annotated[Optional[UploadFile], File(description="MP4 video file")] = None,
) -> VideoResponse:
    try:
        updated = await pipeline.upload(video_id, token, video)
    finally:
        if video is not None:
            await video.close()

    return await to_display(updated, resolver)


@router.post(
    "/thumbnail_upload/{video_id}",
    response_model=VideoResponse,
    status_code=status.HTTP_200_OK,
    summary="Upload a thumbnail image",
    description="Upload a JPEG or PNG thumbnail for an existing video record.",
)
async def upload_thumbnail(
    video_id: str,
    token: BearerToken,
    pipeline: ThumbnailUploadPipelineDep,
    resolver: ReferenceResolverDep,
    thumbnail: Annotated[Optional[UploadFile], File(description="JPEG or PNG image")] = None,
) -> VideoResponse:
    try:
        updated = await pipeline.upload(video_id, token, thumbnail)
    finally:
        if thumbnail is not None:
            await thumbnail.close()

    return await to_display(updated, resolver)
