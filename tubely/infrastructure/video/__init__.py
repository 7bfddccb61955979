"""
Video processing infrastructure.

Wraps the external FFmpeg tools used by the upload pipeline:
- ffprobe for aspect classification
- ffmpeg for fast-start container rewriting
"""

from .processor import (
    ContainerRewriter,
    FFmpegContainerRewriter,
    FFprobeMediaProber,
    MediaProber,
    ProbeError,
    RewriteError,
    classify_aspect_ratio,
    create_media_tools,
)

__all__ = [
    "ContainerRewriter",
    "FFmpegContainerRewriter",
    "FFprobeMediaProber",
    "MediaProber",
    "ProbeError",
    "RewriteError",
    "classify_aspect_ratio",
    "create_media_tools",
]
