"""
Video upload pipeline.

Contains the domain models, key derivation, reference resolution and
the upload pipelines themselves.
"""

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
from .pipeline import PipelineConfig, ThumbnailUploadPipeline, UploadStage, VideoUploadPipeline
from .references import ReferenceResolver, ResolveError

__all__ = [
    "AspectClassification",
    "BadRequestError",
    "ForbiddenError",
    "InternalServerError",
    "NotFoundError",
    "PipelineConfig",
    "ReferenceResolver",
    "ResolveError",
    "StorageReference",
    "ThumbnailUploadPipeline",
    "UnauthorizedError",
    "UnsupportedMediaTypeError",
    "UploadStage",
    "Video",
    "VideoServiceError",
    "VideoUploadPipeline",
    "derive_key",
    "derive_thumbnail_key",
]
