"""
Unit tests for the video domain logic.

These tests verify the core business logic without touching
external services (no storage, no database, no subprocesses).

Testing philosophy:
- Test behavior, not implementation
- Each test should have a clear "given/when/then" structure
- Use descriptive names that explain what we're testing
- Prefer real objects over mocks where practical
"""

import re
from uuid import uuid4

import pytest

from tubely.core.videos.errors import (
    BadRequestError,
    InternalServerError,
    UnsupportedMediaTypeError,
    VideoServiceError,
)
from tubely.core.videos.keys import derive_key, derive_thumbnail_key
from tubely.core.videos.models import AspectClassification, StorageReference, Video
from tubely.core.videos.pipeline import extension_for, parse_media_type, parse_video_id


# ---------------------------------------------------------------------------
# StorageReference Tests
# ---------------------------------------------------------------------------

class TestStorageReference:
    """Tests for the StorageReference value object."""

    def test_encodes_as_bucket_comma_key(self):
        ref = StorageReference(bucket="tubely-videos", key="portrait/abc.mp4")
        assert ref.encode() == "tubely-videos,portrait/abc.mp4"

    def test_parse_reverses_encode(self):
        ref = StorageReference(bucket="tubely-videos", key="landscape/xyz.mp4")
        assert StorageReference.parse(ref.encode()) == ref

    def test_parse_returns_none_for_plain_url(self):
        """A direct URL has no comma, so it isn't a reference."""
        assert StorageReference.parse("https://cdn.example.com/portrait/abc.mp4") is None

    def test_parse_returns_none_for_three_parts(self):
        assert StorageReference.parse("a,b,c") is None

    def test_parse_returns_none_for_empty_part(self):
        assert StorageReference.parse("bucket,") is None
        assert StorageReference.parse(",key") is None

    def test_rejects_empty_bucket(self):
        with pytest.raises(ValueError, match="both bucket and key"):
            StorageReference(bucket="", key="portrait/abc.mp4")

    def test_rejects_comma_in_key(self):
        """A comma would make the encoded form ambiguous."""
        with pytest.raises(ValueError, match="commas"):
            StorageReference(bucket="b", key="a,b.mp4")

    def test_is_immutable(self):
        ref = StorageReference(bucket="b", key="k")
        with pytest.raises(AttributeError):
            ref.key = "other"


# ---------------------------------------------------------------------------
# Video Tests
# ---------------------------------------------------------------------------

class TestVideo:
    """Tests for the Video record."""

    def test_new_video_is_a_draft(self):
        video = Video(user_id=uuid4(), title="Boots and Cats")
        assert video.has_video is False
        assert video.thumbnail_url is None

    def test_rejects_non_uuid_owner(self):
        with pytest.raises(ValueError, match="UUID"):
            Video(user_id="not-a-uuid")

    def test_is_owned_by_compares_user_ids(self):
        owner = uuid4()
        video = Video(user_id=owner)
        assert video.is_owned_by(owner)
        assert not video.is_owned_by(uuid4())

    def test_with_urls_leaves_original_untouched(self):
        """Display URLs go on a copy so the stored reference survives."""
        video = Video(user_id=uuid4(), video_url="b,portrait/k.mp4")
        signed = video.with_urls(video_url="https://signed", thumbnail_url=None)

        assert signed.video_url == "https://signed"
        assert video.video_url == "b,portrait/k.mp4"
        assert signed.id == video.id

    def test_touch_moves_updated_at_forward(self):
        video = Video(user_id=uuid4())
        created, before = video.created_at, video.updated_at
        video.touch()
        assert video.updated_at >= before
        assert video.created_at == created


# ---------------------------------------------------------------------------
# Key Derivation Tests
# ---------------------------------------------------------------------------

KEY_PATTERN = re.compile(r"^(landscape|portrait|other)/[A-Za-z0-9_-]{43}\.mp4$")


class TestDeriveKey:
    """Tests for storage key derivation."""

    def test_key_is_prefixed_with_classification(self):
        key = derive_key(AspectClassification.PORTRAIT, "mp4")
        assert key.startswith("portrait/")
        assert key.endswith(".mp4")

    def test_token_is_url_safe_without_padding(self):
        """32 bytes base64url-encoded without '=' is 43 characters."""
        for classification in AspectClassification:
            assert KEY_PATTERN.match(derive_key(classification, "mp4"))

    def test_keys_do_not_collide(self):
        keys = {derive_key(AspectClassification.LANDSCAPE, "mp4") for _ in range(10_000)}
        assert len(keys) == 10_000

    def test_rejects_empty_extension(self):
        with pytest.raises(ValueError, match="extension"):
            derive_key(AspectClassification.OTHER, "")

    def test_thumbnail_keys_use_their_own_prefix(self):
        key = derive_thumbnail_key("png")
        assert key.startswith("thumbnails/")
        assert key.endswith(".png")


# ---------------------------------------------------------------------------
# Request Parsing Tests
# ---------------------------------------------------------------------------

class TestParseMediaType:
    """Tests for declared content-type parsing."""

    def test_strips_parameters(self):
        assert parse_media_type("video/mp4; codecs=avc1") == "video/mp4"

    def test_normalises_case(self):
        assert parse_media_type("Video/MP4") == "video/mp4"

    def test_missing_type_is_none(self):
        assert parse_media_type(None) is None
        assert parse_media_type("") is None

    def test_malformed_type_is_none(self):
        assert parse_media_type("mp4") is None
        assert parse_media_type("video/") is None
        assert parse_media_type("video/mp4/extra") is None

    def test_extension_is_the_subtype(self):
        assert extension_for("video/mp4") == "mp4"
        assert extension_for("image/png") == "png"


class TestParseVideoId:
    """Tests for path ID parsing."""

    def test_accepts_uuid_string(self):
        video_id = uuid4()
        assert parse_video_id(str(video_id)) == video_id

    def test_rejects_garbage_as_bad_request(self):
        with pytest.raises(BadRequestError, match="Invalid ID"):
            parse_video_id("not-a-uuid")


# ---------------------------------------------------------------------------
# Error Taxonomy Tests
# ---------------------------------------------------------------------------

class TestErrors:
    """Tests for the client-facing error types."""

    def test_unsupported_media_type_is_a_bad_request(self):
        error = UnsupportedMediaTypeError("Invalid file format: text/plain")
        assert isinstance(error, BadRequestError)
        assert error.status_code == 415
        assert error.kind == "bad_request"

    def test_internal_error_keeps_message(self):
        error = InternalServerError("File optimization failed")
        assert isinstance(error, VideoServiceError)
        assert error.status_code == 500
        assert error.message == "File optimization failed"
