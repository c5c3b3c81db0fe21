"""Video call tests with the provider mocked at the HTTP transport."""

import json

import httpx
import jwt
import pytest
from httpx import AsyncClient

from campus.calls.getstream import GetStreamClient, build_settings_override, reset_stream_client

SECRET = "stream-test-secret"


@pytest.fixture
def provider() -> list[httpx.Request]:
    """Install a GetStream client whose requests are recorded and answered locally."""
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(201, json={"duration": "1ms"})

    reset_stream_client(GetStreamClient("stream-key", SECRET, transport=httpx.MockTransport(handler)))
    return requests


@pytest.fixture
def failing_provider() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"message": "boom"})

    reset_stream_client(GetStreamClient("stream-key", SECRET, transport=httpx.MockTransport(handler)))


def test_audio_calls_keep_camera_off() -> None:
    audio = build_settings_override("audio", screen_sharing=True, recording=False)
    assert audio["video"]["camera_default_on"] is False
    assert audio["screensharing"]["enabled"] is False
    assert audio["recording"]["mode"] == "disabled"

    video = build_settings_override("video", screen_sharing=True, recording=True)
    assert video["video"]["camera_facing"] == "front"
    assert video["screensharing"]["enabled"] is True


def test_user_token_is_scoped_to_call() -> None:
    client = GetStreamClient("k", SECRET)
    token = client.user_token("u1", 60, call_cids=["default:call_1"])
    payload = jwt.decode(token, SECRET, algorithms=["HS256"])
    assert payload["user_id"] == "u1"
    assert payload["call_cids"] == ["default:call_1"]


async def _start_call(client: AsyncClient, school, **extra) -> dict:
    response = await client.post(
        "/api/calls",
        json={"participant_ids": [school.student.id], **extra},
        headers=school.headers(school.teacher),
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestCallLifecycle:
    @pytest.mark.asyncio
    async def test_create_registers_users_and_call(self, client: AsyncClient, school, provider) -> None:
        data = await _start_call(client, school, call_type="audio")

        call = data["call"]
        assert call["call_id"].startswith("call_")
        assert call["call_status"] == "created"
        assert call["call_settings"]["video_enabled"] is False
        roles = {p["user_id"]: p["role"] for p in call["participants"]}
        assert roles == {school.teacher.id: "host", school.student.id: "participant"}
        assert {t["user_id"] for t in data["tokens"]} == set(roles)

        paths = [r.url.path for r in provider]
        assert paths == ["/api/v2/users", f"/api/v2/video/call/default/{call['call_id']}"]
        assert provider[0].url.params["api_key"] == "stream-key"
        body = json.loads(provider[1].content)
        assert body["data"]["created_by_id"] == school.teacher.id

    @pytest.mark.asyncio
    async def test_join_end_and_history(self, client: AsyncClient, school, provider) -> None:
        call_id = (await _start_call(client, school))["call"]["call_id"]

        response = await client.post(f"/api/calls/{call_id}/join", headers=school.headers(school.student))
        assert response.status_code == 200
        joined = response.json()
        assert joined["call"]["call_status"] == "ongoing"
        assert joined["token"]

        response = await client.post(f"/api/calls/{call_id}/end", headers=school.headers(school.teacher))
        assert response.json()["call_status"] == "ended"
        assert response.json()["duration"] >= 0

        response = await client.post(f"/api/calls/{call_id}/join", headers=school.headers(school.student))
        assert response.status_code == 400

        response = await client.get("/api/calls", params={"status": "ended"}, headers=school.headers(school.student))
        assert response.json()["total"] == 1
        response = await client.get("/api/calls", headers=school.headers(school.other_student))
        assert response.json()["total"] == 0

    @pytest.mark.asyncio
    async def test_reject_only_while_ringing(self, client: AsyncClient, school, provider) -> None:
        call_id = (await _start_call(client, school))["call"]["call_id"]
        headers = school.headers(school.student)

        response = await client.post(f"/api/calls/{call_id}/reject", headers=headers)
        assert response.json()["call_status"] == "rejected"
        response = await client.post(f"/api/calls/{call_id}/reject", headers=headers)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_outsiders_cannot_see_call(self, client: AsyncClient, school, provider) -> None:
        call_id = (await _start_call(client, school))["call"]["call_id"]
        response = await client.get(f"/api/calls/{call_id}", headers=school.headers(school.other_student))
        assert response.status_code == 403
        response = await client.get("/api/calls/call_missing", headers=school.headers(school.student))
        assert response.status_code == 404


class TestCallValidation:
    @pytest.mark.asyncio
    async def test_cannot_call_only_yourself(self, client: AsyncClient, school, provider) -> None:
        response = await client.post(
            "/api/calls", json={"participant_ids": [school.teacher.id]}, headers=school.headers(school.teacher)
        )
        assert response.status_code == 400
        assert provider == []

    @pytest.mark.asyncio
    async def test_cannot_call_other_campus(self, client: AsyncClient, school, provider, user_factory) -> None:
        stranger = await user_factory(None, "Super Admin", "Zed")
        response = await client.post(
            "/api/calls", json={"participant_ids": [stranger.id]}, headers=school.headers(school.teacher)
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_provider_failure_is_bad_gateway(self, client: AsyncClient, school, failing_provider) -> None:
        response = await client.post(
            "/api/calls", json={"participant_ids": [school.student.id]}, headers=school.headers(school.teacher)
        )
        assert response.status_code == 502
        response = await client.get("/api/calls", headers=school.headers(school.teacher))
        assert response.json()["total"] == 0

    @pytest.mark.asyncio
    async def test_unconfigured_provider(self, client: AsyncClient, school) -> None:
        response = await client.post(
            "/api/calls", json={"participant_ids": [school.student.id]}, headers=school.headers(school.teacher)
        )
        assert response.status_code == 502

    @pytest.mark.asyncio
    async def test_bad_call_type(self, client: AsyncClient, school, provider) -> None:
        response = await client.post(
            "/api/calls",
            json={"participant_ids": [school.student.id], "call_type": "hologram"},
            headers=school.headers(school.teacher),
        )
        assert response.status_code == 422
