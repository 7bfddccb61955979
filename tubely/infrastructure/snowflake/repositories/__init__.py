"""
Repository implementations for Snowflake.
"""

from .videos import VideoNotFoundError, VideoRepository

__all__ = ["VideoNotFoundError", "VideoRepository"]
