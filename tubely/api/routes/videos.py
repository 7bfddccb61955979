"""
Video record endpoints.

Creates draft records and serves them back to their owners. Every
record leaving these endpoints goes through the ReferenceResolver, so
clients get short-lived presigned URLs rather than bucket/key pairs.
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from ...core.videos.errors import ForbiddenError, InternalServerError, NotFoundError
from ...core.videos.models import Video
from ...core.videos.pipeline import parse_video_id
from ...core.videos.ports import VideoNotFoundError
from ...core.videos.references import ReferenceResolver, ResolveError
from ..dependencies import CurrentUserId, ReferenceResolverDep, VideoRepositoryDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class VideoCreateRequest(BaseModel):
    """Request to create a draft video record."""
    title: str = Field(min_length=1, max_length=200, description="Video title")
    description: str = Field(default="", max_length=5000, description="Video description")


class VideoResponse(BaseModel):
    """A video record as shown to its owner."""
    id: UUID = Field(description="Video identifier")
    user_id: UUID = Field(description="Owning user")
    title: str
    description: str
    created_at: datetime
    updated_at: datetime
    thumbnail_url: Optional[str] = Field(None, description="Display URL for the thumbnail")
    video_url: Optional[str] = Field(None, description="Display URL for the video")

    @classmethod
    def from_video(cls, video: Video) -> "VideoResponse":
        return cls(
            id=video.id,
            user_id=video.user_id,
            title=video.title,
            description=video.description,
            created_at=video.created_at,
            updated_at=video.updated_at,
            thumbnail_url=video.thumbnail_url,
            video_url=video.video_url,
        )


async def to_display(video: Video, resolver: ReferenceResolver) -> VideoResponse:
    """Resolve stored references and build the response body."""
    try:
        signed = await resolver.sign_video(video)
    except ResolveError as e:
        logger.error(
            "Failed to sign video URLs",
            extra={"video_id": str(video.id), "error": str(e)}
        )
        raise InternalServerError("Couldn't generate presigned URL") from e
    return VideoResponse.from_video(signed)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=VideoResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a video draft",
    description="Create an empty video record that a file can then be uploaded to",
)
async def create_video(
    request: VideoCreateRequest,
    user_id: CurrentUserId,
    repository: VideoRepositoryDep,
    resolver: ReferenceResolverDep,
) -> VideoResponse:
    video = repository.create_video(
        Video(user_id=user_id, title=request.title, description=request.description)
    )
    return await to_display(video, resolver)


@router.get(
    "",
    response_model=list[VideoResponse],
    summary="List my videos",
    description="All videos owned by the authenticated user, newest first",
)
async def list_videos(
    user_id: CurrentUserId,
    repository: VideoRepositoryDep,
    resolver: ReferenceResolverDep,
) -> list[VideoResponse]:
    videos = repository.list_videos(user_id)
    return [await to_display(video, resolver) for video in videos]


@router.get(
    "/{video_id}",
    response_model=VideoResponse,
    summary="Get a video",
)
async def get_video(
    video_id: str,
    user_id: CurrentUserId,
    repository: VideoRepositoryDep,
    resolver: ReferenceResolverDep,
) -> VideoResponse:
    try:
        video = repository.get_video(parse_video_id(video_id))
    except VideoNotFoundError as e:
        raise NotFoundError("Video not found") from e

    if not video.is_owned_by(user_id):
        raise ForbiddenError("You are not the owner of this video")

    return await to_display(video, resolver)
