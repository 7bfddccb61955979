"""
Unit tests for stored reference resolution and orphan detection.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from tubely.core.videos.models import StorageReference, Video
from tubely.core.videos.ports import StorageError
from tubely.core.videos.reconcile import find_orphaned_keys, referenced_keys
from tubely.core.videos.references import ReferenceResolver, ResolveError, stored_value_for
from tubely.infrastructure.storage.client import StoredObjectInfo


class SigningStorage:
    """Produces a unique URL per call, like a real signer with a fresh timestamp."""

    def __init__(self, fail: bool = False):
        self.calls = []
        self._fail = fail

    async def get_presigned_url(self, bucket, key, expiry_seconds=3600):
        if self._fail:
            raise StorageError("credentials expired")
        self.calls.append((bucket, key, expiry_seconds))
        return f"https://{bucket}.s3.amazonaws.com/{key}?X-Amz-Expires={expiry_seconds}&n={len(self.calls)}"


# ---------------------------------------------------------------------------
# ReferenceResolver Tests
# ---------------------------------------------------------------------------

class TestReferenceResolver:
    """Tests for turning stored values into display URLs."""

    def test_reference_becomes_presigned_url(self):
        storage = SigningStorage()
        resolver = ReferenceResolver(storage, expiry_seconds=600)

        url = asyncio.run(resolver.resolve("tubely-videos,portrait/abc.mp4"))

        assert url != "tubely-videos,portrait/abc.mp4"
        assert "portrait/abc.mp4" in url
        assert storage.calls == [("tubely-videos", "portrait/abc.mp4", 600)]

    def test_plain_url_passes_through_unsigned(self):
        storage = SigningStorage()
        resolver = ReferenceResolver(storage)

        url = asyncio.run(resolver.resolve("https://cdn.example.com/portrait/abc.mp4"))

        assert url == "https://cdn.example.com/portrait/abc.mp4"
        assert storage.calls == []

    def test_signing_failure_raises_resolve_error(self):
        resolver = ReferenceResolver(SigningStorage(fail=True))

        with pytest.raises(ResolveError, match="portrait/abc.mp4"):
            asyncio.run(resolver.resolve("b,portrait/abc.mp4"))

    def test_rejects_non_positive_expiry(self):
        with pytest.raises(ValueError, match="positive"):
            ReferenceResolver(SigningStorage(), expiry_seconds=0)

    def test_sign_video_resolves_both_urls_on_a_copy(self):
        video = Video(
            user_id=uuid4(),
            video_url="b,landscape/v.mp4",
            thumbnail_url="b,thumbnails/t.png",
        )
        resolver = ReferenceResolver(SigningStorage())

        signed = asyncio.run(resolver.sign_video(video))

        assert "landscape/v.mp4" in signed.video_url
        assert "thumbnails/t.png" in signed.thumbnail_url
        assert video.video_url == "b,landscape/v.mp4"

    def test_sign_video_leaves_missing_urls_empty(self):
        video = Video(user_id=uuid4())
        signed = asyncio.run(ReferenceResolver(SigningStorage()).sign_video(video))
        assert signed.video_url is None
        assert signed.thumbnail_url is None


class TestStoredValueFor:
    """Tests for what gets persisted after an upload."""

    def test_defaults_to_encoded_reference(self):
        ref = StorageReference(bucket="b", key="portrait/k.mp4")
        assert stored_value_for(ref) == "b,portrait/k.mp4"

    def test_public_base_url_gives_direct_url(self):
        ref = StorageReference(bucket="b", key="portrait/k.mp4")
        assert stored_value_for(ref, "https://cdn.example.com/") == "https://cdn.example.com/portrait/k.mp4"


# ---------------------------------------------------------------------------
# Orphan Detection Tests
# ---------------------------------------------------------------------------

NOW = datetime(2026, 1, 10, 12, 0, tzinfo=timezone.utc)


class TestOrphanDetection:
    """Tests for diffing the bucket against record references."""

    def test_referenced_keys_understands_both_encodings(self):
        keys = referenced_keys(
            [
                "b,portrait/one.mp4",
                "other-bucket,portrait/two.mp4",
                "https://cdn.example.com/landscape/three.mp4",
                "https://elsewhere.example.com/other/four.mp4",
            ],
            bucket="b",
            public_base_url="https://cdn.example.com",
        )
        assert keys == {"portrait/one.mp4", "landscape/three.mp4"}

    def test_unreferenced_old_objects_are_orphans(self):
        objects = [
            StoredObjectInfo("portrait/kept.mp4", NOW - timedelta(days=3)),
            StoredObjectInfo("portrait/lost.mp4", NOW - timedelta(days=3)),
        ]

        orphans = find_orphaned_keys(objects, {"portrait/kept.mp4"}, now=NOW)

        assert orphans == ["portrait/lost.mp4"]

    def test_recent_objects_are_within_grace_period(self):
        """An upload whose record update is still in flight must not be swept."""
        objects = [StoredObjectInfo("portrait/new.mp4", NOW - timedelta(minutes=5))]

        assert find_orphaned_keys(objects, set(), now=NOW) == []
        assert find_orphaned_keys(objects, set(), now=NOW, grace_period=timedelta(minutes=1)) == [
            "portrait/new.mp4"
        ]
