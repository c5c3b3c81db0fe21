"""Chat media upload tests (presigning is stubbed out)."""

import re

import pytest
from httpx import AsyncClient

from campus.chat.media import build_file_key


@pytest.fixture
def presigned(monkeypatch) -> list:
    calls = []

    async def fake_presign(file_key: str, content_type: str) -> str:
        calls.append((file_key, content_type))
        return f"https://bucket.example.com/{file_key}?signature=abc"

    monkeypatch.setattr("campus.chat.media.presign_put", fake_presign)
    return calls


def test_file_key_is_scoped_and_sanitized() -> None:
    key = build_file_key("campus1", "user1", "my photo (1).JPG")
    assert re.fullmatch(r"chat-media/campus1/user1/\d+-[0-9a-f]{16}\.JPG", key)
    assert build_file_key("c", "u", "noextension").endswith(".bin")


class TestUploads:
    @pytest.mark.asyncio
    async def test_request_then_complete(self, client: AsyncClient, school, presigned) -> None:
        headers = school.headers(school.student)
        response = await client.post(
            "/api/chat/media/upload-url",
            json={"file_name": "diagram.png", "file_type": "image/png", "file_size": 2048},
            headers=headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["upload_url"].startswith("https://bucket.example.com/chat-media/")
        assert data["expires_in"] == 3600
        assert presigned == [(data["file_key"], "image/png")]

        response = await client.post(
            f"/api/chat/media/{data['upload_id']}/complete", json={"width": 640, "height": 480}, headers=headers
        )
        assert response.status_code == 200
        done = response.json()
        assert done["url"] == f"https://media.campus.local/{data['file_key']}"
        assert done["thumbnail_url"] == f"{done['url']}?width=200&height=200"

        # Completing again is harmless
        again = await client.post(f"/api/chat/media/{data['upload_id']}/complete", json={}, headers=headers)
        assert again.json()["url"] == done["url"]

    @pytest.mark.asyncio
    async def test_documents_have_no_thumbnail(self, client: AsyncClient, school, presigned) -> None:
        headers = school.headers(school.teacher)
        response = await client.post(
            "/api/chat/media/upload-url",
            json={"file_name": "notes.pdf", "file_type": "application/pdf", "file_size": 10},
            headers=headers,
        )
        upload_id = response.json()["upload_id"]
        response = await client.post(f"/api/chat/media/{upload_id}/complete", json={}, headers=headers)
        assert response.json()["thumbnail_url"] is None

    @pytest.mark.asyncio
    async def test_rejects_large_and_unknown_files(self, client: AsyncClient, school, presigned) -> None:
        headers = school.headers(school.student)
        response = await client.post(
            "/api/chat/media/upload-url",
            json={"file_name": "movie.mp4", "file_type": "video/mp4", "file_size": 200 * 1024 * 1024},
            headers=headers,
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "File size exceeds maximum allowed size of 100MB"

        response = await client.post(
            "/api/chat/media/upload-url",
            json={"file_name": "tool.exe", "file_type": "application/x-msdownload", "file_size": 10},
            headers=headers,
        )
        assert response.status_code == 400
        assert presigned == []

    @pytest.mark.asyncio
    async def test_cannot_complete_someone_elses_upload(self, client: AsyncClient, school, presigned) -> None:
        response = await client.post(
            "/api/chat/media/upload-url",
            json={"file_name": "a.png", "file_type": "image/png", "file_size": 10},
            headers=school.headers(school.student),
        )
        response = await client.post(
            f"/api/chat/media/{response.json()['upload_id']}/complete",
            json={},
            headers=school.headers(school.other_student),
        )
        assert response.status_code == 404
