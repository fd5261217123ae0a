"""
Tests for API endpoints.
Uses httpx AsyncClient for testing FastAPI routes.
"""
import os

import pytest
from httpx import AsyncClient

from app.config import settings


class TestRootEndpoint:
    """Tests for root endpoint."""

    @pytest.mark.asyncio
    async def test_root_returns_info(self, client: AsyncClient):
        response = await client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Media Upload API"
        assert "version" in data


class TestUploadAuth:
    """Bearer token handling."""

    @pytest.mark.asyncio
    async def test_missing_token(self, client: AsyncClient, metadata_store):
        response = await client.post(
            "/api/upload",
            files=[("files", ("photo.png", b"x" * 10, "image/png"))],
        )

        assert response.status_code == 401
        assert response.json()["error"] == "No token provided"
        assert response.headers["www-authenticate"] == "Bearer"
        assert metadata_store.calls == []

    @pytest.mark.asyncio
    async def test_invalid_token(self, client: AsyncClient, metadata_store, temp_dir):
        response = await client.post(
            "/api/upload",
            headers={"Authorization": "Bearer forged"},
            files=[("files", ("photo.png", b"x" * 10, "image/png"))],
        )

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid token"
        assert metadata_store.calls == []
        assert os.listdir(temp_dir) == []


class TestUploadEndpoint:
    """End-to-end uploads through the fakes."""

    @pytest.mark.asyncio
    async def test_upload_image(self, client: AsyncClient, auth_headers, metadata_store, temp_dir):
        response = await client.post(
            "/api/upload",
            headers=auth_headers,
            files=[("files", ("photo.png", b"p" * 1024, "image/png"))],
        )

        assert response.status_code == 200
        data = response.json()
        assert len(data) == 1
        entry = data[0]
        assert entry["success"] is True
        assert entry["thumbnail"] is None
        assert entry["size"] == 1024
        assert entry["type"] == "image/png"
        assert entry["url"] == f"https://media.test/{entry['filename']}"

        row = metadata_store.by_name(entry["filename"])
        assert row.url == entry["url"]
        assert row.user_id == "firebase-test-uid"
        assert os.listdir(temp_dir) == []

    @pytest.mark.asyncio
    async def test_upload_video(self, client: AsyncClient, auth_headers, metadata_store, temp_dir):
        response = await client.post(
            "/api/upload",
            headers=auth_headers,
            files=[("files", ("clip.mp4", b"v" * 2048, "video/mp4"))],
        )

        assert response.status_code == 200
        entry = response.json()[0]
        assert entry["thumbnail"] is not None
        assert entry["thumbnail"] != entry["url"]
        assert entry["thumbnail"].endswith("-thumb.jpg")
        assert metadata_store.by_name(entry["filename"]).thumbnail == entry["thumbnail"]
        assert os.listdir(temp_dir) == []

    @pytest.mark.asyncio
    async def test_upload_multiple_in_order(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/upload",
            headers=auth_headers,
            files=[
                ("files", ("a.jpg", b"a" * 3, "image/jpeg")),
                ("files", ("b.webm", b"b" * 5, "video/webm")),
            ],
        )

        assert response.status_code == 200
        data = response.json()
        assert [entry["type"] for entry in data] == ["image/jpeg", "video/webm"]
        assert [entry["size"] for entry in data] == [3, 5]

    @pytest.mark.asyncio
    async def test_invalid_file_type(self, client: AsyncClient, auth_headers, metadata_store, temp_dir):
        response = await client.post(
            "/api/upload",
            headers=auth_headers,
            files=[("files", ("doc.pdf", b"%PDF-1.4", "application/pdf"))],
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid file type"
        assert metadata_store.rows == {}
        assert metadata_store.calls == []
        assert os.listdir(temp_dir) == []

    @pytest.mark.asyncio
    async def test_no_files(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/upload",
            headers=auth_headers,
            data={"note": "nothing attached"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "No valid files uploaded"

    @pytest.mark.asyncio
    async def test_file_too_large(self, client: AsyncClient, auth_headers, metadata_store, temp_dir, monkeypatch):
        monkeypatch.setattr(settings, "max_upload_bytes", 100)

        response = await client.post(
            "/api/upload",
            headers=auth_headers,
            files=[
                ("files", ("small.png", b"s" * 10, "image/png")),
                ("files", ("big.png", b"b" * 101, "image/png")),
            ],
        )

        assert response.status_code == 413
        assert response.json()["error"].startswith("File too large")
        assert metadata_store.calls == []
        assert os.listdir(temp_dir) == []

    @pytest.mark.asyncio
    async def test_method_not_allowed(self, client: AsyncClient):
        response = await client.get("/api/upload")

        assert response.status_code == 405
        assert response.json()["error"] == "Method not allowed"

    @pytest.mark.asyncio
    async def test_options_is_method_not_allowed(self, client: AsyncClient):
        response = await client.options("/api/upload")

        assert response.status_code == 405
        assert response.json() == {"error": "Method not allowed"}
        assert response.headers["allow"] == "POST"

    @pytest.mark.asyncio
    async def test_cors_preflight_still_answered(self, client: AsyncClient):
        response = await client.options(
            "/api/upload",
            headers={
                "Origin": "https://app.example.com",
                "Access-Control-Request-Method": "POST",
            },
        )

        assert response.status_code == 200
        assert "access-control-allow-methods" in response.headers


class TestUploadFailures:
    """Collaborator failures surface as 500 after rollback."""

    @pytest.mark.asyncio
    async def test_storage_failure_includes_details_outside_production(
        self, client: AsyncClient, auth_headers, metadata_store, object_store, temp_dir
    ):
        object_store.fail_when = lambda key: True

        response = await client.post(
            "/api/upload",
            headers=auth_headers,
            files=[("files", ("photo.png", b"x" * 10, "image/png"))],
        )

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "File upload failed"
        assert "PutObject failed" in body["details"]
        assert metadata_store.rows == {}
        assert os.listdir(temp_dir) == []

    @pytest.mark.asyncio
    async def test_production_hides_details(
        self, client: AsyncClient, auth_headers, metadata_store, monkeypatch
    ):
        monkeypatch.setattr(settings, "environment", "production")
        metadata_store.fail_insert = True

        response = await client.post(
            "/api/upload",
            headers=auth_headers,
            files=[("files", ("photo.png", b"x" * 10, "image/png"))],
        )

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to save metadata"}

    @pytest.mark.asyncio
    async def test_transcode_failure(self, client: AsyncClient, auth_headers, metadata_store, transcoder, temp_dir):
        transcoder.fail = True

        response = await client.post(
            "/api/upload",
            headers=auth_headers,
            files=[("files", ("clip.mov", b"m" * 10, "video/quicktime"))],
        )

        assert response.status_code == 500
        assert response.json()["error"] == "Thumbnail generation failed"
        assert metadata_store.rows == {}
        assert os.listdir(temp_dir) == []

    @pytest.mark.asyncio
    async def test_batch_abort_keeps_earlier_files(
        self, client: AsyncClient, auth_headers, metadata_store, object_store, temp_dir
    ):
        async def failing_update(record_id, url, thumbnail):
            if metadata_store.rows[record_id].name.endswith(".gif"):
                raise RuntimeError("update rejected")
            row = metadata_store.rows[record_id]
            row.url = url
            row.thumbnail = thumbnail

        metadata_store.update = failing_update

        response = await client.post(
            "/api/upload",
            headers=auth_headers,
            files=[
                ("files", ("a.png", b"a", "image/png")),
                ("files", ("b.gif", b"b", "image/gif")),
                ("files", ("c.png", b"c", "image/png")),
            ],
        )

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to update metadata"

        names = [row.name for row in metadata_store.rows.values()]
        assert len(names) == 1
        assert names[0].endswith(".png")
        assert metadata_store.rows[next(iter(metadata_store.rows))].url is not None
        assert len([c for c in metadata_store.calls if c[0] == "insert"]) == 2
        assert os.listdir(temp_dir) == []


class FakeSession:
    def __init__(self, fail: bool = False):
        self.fail = fail

    async def execute(self, statement):
        if self.fail:
            raise ConnectionError("database unreachable")


class TestHealthEndpoint:
    """Tests for the database health check."""

    @pytest.mark.asyncio
    async def test_healthy(self, client: AsyncClient):
        from app.database import get_db
        from app.main import app

        app.dependency_overrides[get_db] = lambda: FakeSession()
        response = await client.get("/api/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "database": "connected"}

    @pytest.mark.asyncio
    async def test_unhealthy(self, client: AsyncClient):
        from app.database import get_db
        from app.main import app

        app.dependency_overrides[get_db] = lambda: FakeSession(fail=True)
        response = await client.get("/api/health")

        assert response.status_code == 503
        assert response.json()["detail"]["status"] == "unhealthy"
