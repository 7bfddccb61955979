"""
Snowflake repository for video metadata records.

The repository:
1. Translates between the Video domain model and VIDEOS rows
2. Encapsulates all SQL queries
3. Provides get/update in the shape the upload pipelines consume

The application code never writes SQL directly.
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from ....core.videos.models import Video
from ....core.videos.ports import VideoNotFoundError
from ..client import SnowflakeConnection

logger = logging.getLogger(__name__)


CREATE_VIDEOS_TABLE = """
    CREATE TABLE IF NOT EXISTS VIDEOS (
        video_id VARCHAR(36) PRIMARY KEY,
        user_id VARCHAR(36) NOT NULL,
        title VARCHAR NOT NULL,
        description VARCHAR,
        created_at TIMESTAMP_TZ NOT NULL,
        updated_at TIMESTAMP_TZ NOT NULL,
        thumbnail_url VARCHAR,
        video_url VARCHAR
    )
"""

_SELECT_COLUMNS = """
    SELECT
        video_id,
        user_id,
        title,
        description,
        created_at,
        updated_at,
        thumbnail_url,
        video_url
    FROM VIDEOS
"""


class VideoRepository:
    """
    Repository for video record persistence.

    Each method corresponds to a use case:
    - create_video: persist a new draft record
    - get_video: load one record by ID
    - list_videos: a user's records, newest first
    - update_video: write back a mutated record
    """

    def __init__(self, connection: SnowflakeConnection) -> None:
        self._conn = connection

    def create_table(self) -> None:
        cursor = self._conn.cursor()
        try:
            cursor.execute(CREATE_VIDEOS_TABLE)
            self._conn.commit()
        finally:
            cursor.close()

    def create_video(self, video: Video) -> Video:
        cursor = self._conn.cursor()

        try:
            cursor.execute(
                """
                INSERT INTO VIDEOS (
                    video_id, user_id, title, description,
                    created_at, updated_at, thumbnail_url, video_url
                ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    str(video.id),
                    str(video.user_id),
                    video.title,
                    video.description,
                    video.created_at,
                    video.updated_at,
                    video.thumbnail_url,
                    video.video_url,
                ),
            )
            self._conn.commit()

        except Exception as e:
            logger.error(
                "Failed to create video",
                extra={"video_id": str(video.id), "error": str(e)}
            )
            raise
        finally:
            cursor.close()

        logger.info(
            "Created video record",
            extra={"video_id": str(video.id), "user_id": str(video.user_id)}
        )

        return video

    def get_video(self, video_id: UUID) -> Video:
        cursor = self._conn.cursor()

        try:
            cursor.execute(
                _SELECT_COLUMNS + " WHERE video_id = %s",
                (str(video_id),),
            )
            row = cursor.fetchone()
        finally:
            cursor.close()

        if row is None:
            raise VideoNotFoundError(f"Video {video_id} not found")

        return self._row_to_video(row)

    def list_videos(self, user_id: UUID) -> list[Video]:
        cursor = self._conn.cursor()

        try:
            cursor.execute(
                _SELECT_COLUMNS + " WHERE user_id = %s ORDER BY created_at DESC",
                (str(user_id),),
            )
            rows = cursor.fetchall()
        finally:
            cursor.close()

        return [self._row_to_video(row) for row in rows]

    def list_storage_urls(self) -> list[str]:
        """Every stored video/thumbnail reference, for orphan sweeps."""
        cursor = self._conn.cursor()

        try:
            cursor.execute(_SELECT_COLUMNS)
            rows = cursor.fetchall()
        finally:
            cursor.close()

        urls = []
        for row in rows:
            video = self._row_to_video(row)
            urls.extend(u for u in (video.video_url, video.thumbnail_url) if u)
        return urls

    def update_video(self, video: Video) -> None:
        """
        Write back title, description and storage references.

        Ownership and creation time are immutable and never updated.
        """
        cursor = self._conn.cursor()

        try:
            cursor.execute(
                """
                UPDATE VIDEOS SET
                    title = %s,
                    description = %s,
                    updated_at = %s,
                    thumbnail_url = %s,
                    video_url = %s
                WHERE video_id = %s
                """,
                (
                    video.title,
                    video.description,
                    video.updated_at,
                    video.thumbnail_url,
                    video.video_url,
                    str(video.id),
                ),
            )
            updated = cursor.rowcount
            self._conn.commit()

        except Exception as e:
            logger.error(
                "Failed to update video",
                extra={"video_id": str(video.id), "error": str(e)}
            )
            raise
        finally:
            cursor.close()

        if not updated:
            raise VideoNotFoundError(f"Video {video.id} not found")

    @staticmethod
    def _row_to_video(row: tuple) -> Video:
        return Video(
            id=UUID(str(row[0])),
            user_id=UUID(str(row[1])),
            title=row[2] or "",
            description=row[3] or "",
            created_at=_as_datetime(row[4]),
            updated_at=_as_datetime(row[5]),
            thumbnail_url=row[6],
            video_url=row[7],
        )


def _as_datetime(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))
