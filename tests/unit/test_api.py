"""
API tests through FastAPI's TestClient.

Everything runs in mock mode: in-memory storage and database, and the
FFmpeg-free prober/rewriter. Each test gets fresh instances through
app.dependency_overrides so state never leaks between tests.
"""

from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from tubely.api.dependencies import get_storage_client, get_video_repository
from tubely.config.settings import Settings, get_settings
from tubely.core.videos.models import StorageReference
from tubely.infrastructure.auth.tokens import make_jwt
from tubely.infrastructure.snowflake.client import MockSnowflakeConnection
from tubely.infrastructure.snowflake.repositories.videos import VideoRepository
from tubely.infrastructure.storage.client import MockStorageClient
from tubely.main import create_app

SECRET = "api-test-secret-that-is-long-enough"
BUCKET = "tubely-test"


@pytest.fixture
def staging(tmp_path):
    path = tmp_path / "staging"
    path.mkdir()
    return path


@pytest.fixture
def settings(staging):
    return Settings(
        jwt_secret=SECRET,
        s3_bucket=BUCKET,
        s3_mock_mode=True,
        snowflake_mock_mode=True,
        ffmpeg_mock_mode=True,
        staging_dir=str(staging),
        max_upload_bytes=1024,
    )


@pytest.fixture
def repository():
    return VideoRepository(MockSnowflakeConnection())


@pytest.fixture
def storage():
    return MockStorageClient()


@pytest.fixture
def client(settings, repository, storage):
    app = create_app(settings)
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_video_repository] = lambda: repository
    app.dependency_overrides[get_storage_client] = lambda: storage
    return TestClient(app)


@pytest.fixture
def owner():
    return uuid4()


def auth(user_id) -> dict:
    return {"Authorization": f"Bearer {make_jwt(user_id, SECRET)}"}


def create_video(client, user_id, title="Lap 1") -> dict:
    response = client.post("/api/videos", json={"title": title}, headers=auth(user_id))
    assert response.status_code == 201
    return response.json()


def mp4(data: bytes = b"\x00\x00\x00\x18ftypmp42", content_type: str = "video/mp4") -> dict:
    return {"video": ("clip.mp4", data, content_type)}


# ---------------------------------------------------------------------------
# Video Records
# ---------------------------------------------------------------------------

class TestVideoEndpoints:
    """Tests for creating and reading records."""

    def test_create_returns_draft(self, client, owner):
        body = create_video(client, owner)
        assert body["user_id"] == str(owner)
        assert body["video_url"] is None

    def test_create_requires_auth(self, client):
        response = client.post("/api/videos", json={"title": "Lap 1"})
        assert response.status_code == 401
        assert response.json() == {"error": "Couldn't find JWT"}

    def test_list_only_returns_own_videos(self, client, owner):
        create_video(client, owner, "Mine")
        create_video(client, uuid4(), "Theirs")

        response = client.get("/api/videos", headers=auth(owner))

        assert [v["title"] for v in response.json()] == ["Mine"]

    def test_get_other_users_video_is_forbidden(self, client, owner):
        video = create_video(client, owner)
        response = client.get(f"/api/videos/{video['id']}", headers=auth(uuid4()))
        assert response.status_code == 403

    def test_get_malformed_id_is_bad_request(self, client, owner):
        response = client.get("/api/videos/not-a-uuid", headers=auth(owner))
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid ID"}


# ---------------------------------------------------------------------------
# Video Upload
# ---------------------------------------------------------------------------

class TestVideoUploadEndpoint:
    """Tests for POST /api/video_upload/{video_id}."""

    def test_upload_stores_reference_and_returns_presigned_url(self, client, owner, repository, storage, staging):
        video = create_video(client, owner)

        response = client.post(f"/api/video_upload/{video['id']}", files=mp4(), headers=auth(owner))

        assert response.status_code == 200
        body = response.json()
        assert body["video_url"].startswith(f"mock://storage/{BUCKET}/landscape/")

        stored = repository.get_video(UUID(video["id"]))
        reference = StorageReference.parse(stored.video_url)
        assert reference.bucket == BUCKET
        assert (BUCKET, reference.key) in storage.objects
        assert list(staging.iterdir()) == []

    def test_get_after_upload_signs_fresh_url(self, client, owner):
        video = create_video(client, owner)
        client.post(f"/api/video_upload/{video['id']}", files=mp4(), headers=auth(owner))

        response = client.get(f"/api/videos/{video['id']}", headers=auth(owner))

        assert response.json()["video_url"].startswith("mock://storage/")

    def test_missing_token(self, client, owner):
        video = create_video(client, owner)
        response = client.post(f"/api/video_upload/{video['id']}", files=mp4())
        assert response.status_code == 401

    def test_non_owner_is_forbidden(self, client, owner, storage, staging):
        video = create_video(client, owner)

        response = client.post(f"/api/video_upload/{video['id']}", files=mp4(), headers=auth(uuid4()))

        assert response.status_code == 403
        assert response.json() == {"error": "You are not the owner of this video"}
        assert storage.objects == {}
        assert list(staging.iterdir()) == []

    def test_unknown_video(self, client, owner):
        response = client.post(f"/api/video_upload/{uuid4()}", files=mp4(), headers=auth(owner))
        assert response.status_code == 404

    def test_wrong_content_type(self, client, owner, storage):
        video = create_video(client, owner)

        response = client.post(
            f"/api/video_upload/{video['id']}",
            files=mp4(content_type="video/quicktime"),
            headers=auth(owner),
        )

        assert response.status_code == 415
        assert response.json()["error"].startswith("Invalid file format")
        assert storage.objects == {}

    def test_missing_file_part(self, client, owner):
        video = create_video(client, owner)

        response = client.post(
            f"/api/video_upload/{video['id']}",
            files={"other": ("clip.mp4", b"x", "video/mp4")},
            headers=auth(owner),
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Unable to parse form file"}

    def test_oversize_upload(self, client, owner, staging):
        video = create_video(client, owner)

        response = client.post(f"/api/video_upload/{video['id']}", files=mp4(b"x" * 2048), headers=auth(owner))

        assert response.status_code == 400
        assert list(staging.iterdir()) == []

    def test_body_far_over_limit_is_refused_before_the_handler(self, client, owner, storage, staging):
        """No token is sent: a 400 rather than a 401 shows the handler never ran."""
        video = create_video(client, owner)

        response = client.post(f"/api/video_upload/{video['id']}", files=mp4(b"x" * 200_000))

        assert response.status_code == 400
        assert response.json() == {"error": "File exceeds the 1024 byte limit"}
        assert storage.objects == {}
        assert list(staging.iterdir()) == []


# ---------------------------------------------------------------------------
# Thumbnail Upload
# ---------------------------------------------------------------------------

class TestThumbnailUploadEndpoint:
    """Tests for POST /api/thumbnail_upload/{video_id}."""

    def test_upload_png(self, client, owner):
        video = create_video(client, owner)

        response = client.post(
            f"/api/thumbnail_upload/{video['id']}",
            files={"thumbnail": ("thumb.png", b"\x89PNG", "image/png")},
            headers=auth(owner),
        )

        assert response.status_code == 200
        assert "/thumbnails/" in response.json()["thumbnail_url"]

    def test_rejects_gif(self, client, owner):
        video = create_video(client, owner)

        response = client.post(
            f"/api/thumbnail_upload/{video['id']}",
            files={"thumbnail": ("thumb.gif", b"GIF89a", "image/gif")},
            headers=auth(owner),
        )

        assert response.status_code == 415


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

class TestHealth:
    """Tests for the health endpoints."""

    def test_liveness(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_ready_in_mock_mode(self, client):
        response = client.get("/health/ready")
        assert response.status_code == 200
        assert response.json()["status"] == "ready"
