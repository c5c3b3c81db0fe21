"""Multi-device sync tests: device registry, chat snapshot and message delta."""

import pytest
from httpx import AsyncClient

from campus.chat.sync import SyncResult

PHONE = {
    "device_id": "phone-1",
    "device_name": "Sam's phone",
    "device_type": "mobile",
    "platform": "ios",
    "app_version": "2.4.0",
    "push_token": "apns-token-1",
}


async def _room_with_messages(client: AsyncClient, school, count: int) -> str:
    response = await client.post(
        "/api/chat/rooms",
        json={"name": "7A chat", "room_type": "class_group", "class_id": school.klass.id},
        headers=school.headers(school.teacher),
    )
    room_id = response.json()["id"]
    for i in range(count):
        await client.post(
            f"/api/chat/rooms/{room_id}/messages",
            json={"content": f"m{i + 1}"},
            headers=school.headers(school.teacher),
        )
    return room_id


class TestSyncResult:
    def test_ok_and_fail_shapes(self) -> None:
        assert SyncResult.ok({"a": 1}).to_dict() == {"success": True, "data": {"a": 1}}
        assert SyncResult.fail("boom").to_dict() == {"success": False, "error": "boom"}
        assert SyncResult.ok().to_dict() == {"success": True}


class TestDevices:
    @pytest.mark.asyncio
    async def test_register_is_an_upsert(self, client: AsyncClient, school) -> None:
        headers = school.headers(school.student)
        first = await client.post("/api/sync/devices", json=PHONE, headers=headers)
        assert first.status_code == 201
        assert first.json()["push_token"] == "apns-token-1"

        update = {k: v for k, v in PHONE.items() if k != "push_token"} | {"app_version": "2.5.0"}
        second = await client.post("/api/sync/devices", json=update, headers=headers)
        assert second.json()["id"] == first.json()["id"]
        assert second.json()["app_version"] == "2.5.0"
        assert second.json()["push_token"] == "apns-token-1"

        response = await client.get("/api/sync/devices", headers=headers)
        assert [d["device_id"] for d in response.json()["devices"]] == ["phone-1"]
        assert response.json()["active_count"] == 1

    @pytest.mark.asyncio
    async def test_logout_and_reactivate(self, client: AsyncClient, school) -> None:
        headers = school.headers(school.student)
        await client.post("/api/sync/devices", json=PHONE, headers=headers)

        response = await client.delete("/api/sync/devices/phone-1", headers=headers)
        assert response.json() == {"device_id": "phone-1", "is_active": False}

        response = await client.post("/api/sync/devices", json=PHONE, headers=headers)
        assert response.json()["is_active"] is True

    @pytest.mark.asyncio
    async def test_logout_unknown_device(self, client: AsyncClient, school) -> None:
        response = await client.delete("/api/sync/devices/nope", headers=school.headers(school.student))
        assert response.status_code == 404
        assert response.json()["detail"] == "Device not found"

    @pytest.mark.asyncio
    async def test_devices_are_per_user(self, client: AsyncClient, school) -> None:
        await client.post("/api/sync/devices", json=PHONE, headers=school.headers(school.student))
        response = await client.delete("/api/sync/devices/phone-1", headers=school.headers(school.other_student))
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_invalid_device_type(self, client: AsyncClient, school) -> None:
        response = await client.post(
            "/api/sync/devices", json={**PHONE, "device_type": "toaster"}, headers=school.headers(school.student)
        )
        assert response.status_code == 422


class TestChatSnapshot:
    @pytest.mark.asyncio
    async def test_unread_counts_follow_seen_receipts(self, client: AsyncClient, school) -> None:
        room_id = await _room_with_messages(client, school, 3)
        await client.post(
            f"/api/chat/rooms/{room_id}/seen", json={"up_to_sequence": 1}, headers=school.headers(school.student)
        )

        response = await client.get("/api/sync/chats", headers=school.headers(school.student))
        assert response.status_code == 200
        [room] = response.json()["rooms"]
        assert room["id"] == room_id
        assert room["unread_count"] == 2
        assert response.json()["last_sync_timestamp"]

        # Own messages are never unread
        response = await client.get("/api/sync/chats", headers=school.headers(school.teacher))
        assert response.json()["rooms"][0]["unread_count"] == 0

    @pytest.mark.asyncio
    async def test_snapshot_stamps_device(self, client: AsyncClient, school) -> None:
        headers = school.headers(school.student)
        await client.post("/api/sync/devices", json=PHONE, headers=headers)
        await client.get("/api/sync/chats", headers={**headers, "X-Device-Id": "phone-1"})

        response = await client.get("/api/sync/devices", headers=headers)
        assert response.json()["devices"][0]["last_sync_at"] is not None

    @pytest.mark.asyncio
    async def test_empty_snapshot(self, client: AsyncClient, school) -> None:
        response = await client.get("/api/sync/chats", headers=school.headers(school.parent))
        assert response.json()["rooms"] == []


class TestMessageDelta:
    @pytest.mark.asyncio
    async def test_since_sequence_with_paging(self, client: AsyncClient, school) -> None:
        room_id = await _room_with_messages(client, school, 5)
        headers = school.headers(school.student)
        url = f"/api/sync/rooms/{room_id}/messages"

        response = await client.get(url, params={"since_sequence": 1, "limit": 2}, headers=headers)
        data = response.json()
        assert [m["sequence_number"] for m in data["messages"]] == [2, 3]
        assert data["has_more"] is True
        assert data["last_sequence"] == 3

        response = await client.get(url, params={"since_sequence": data["last_sequence"], "limit": 2}, headers=headers)
        data = response.json()
        assert [m["content"] for m in data["messages"]] == ["m4", "m5"]
        assert data["has_more"] is False

    @pytest.mark.asyncio
    async def test_same_watermark_replays_same_prefix(self, client: AsyncClient, school) -> None:
        room_id = await _room_with_messages(client, school, 3)
        headers = school.headers(school.student)
        url = f"/api/sync/rooms/{room_id}/messages"

        first = (await client.get(url, params={"since_sequence": 1}, headers=headers)).json()["messages"]
        for content in ("m4", "m5"):
            await client.post(
                f"/api/chat/rooms/{room_id}/messages", json={"content": content}, headers=school.headers(school.teacher)
            )
        second = (await client.get(url, params={"since_sequence": 1}, headers=headers)).json()["messages"]

        assert [m["sequence_number"] for m in first] == [2, 3]
        assert [m["sequence_number"] for m in second] == [2, 3, 4, 5]
        assert [m["id"] for m in second[: len(first)]] == [m["id"] for m in first]

    @pytest.mark.asyncio
    async def test_caught_up_client_gets_nothing(self, client: AsyncClient, school) -> None:
        room_id = await _room_with_messages(client, school, 2)
        response = await client.get(
            f"/api/sync/rooms/{room_id}/messages",
            params={"since_sequence": 2},
            headers=school.headers(school.student),
        )
        assert response.json() == {"messages": [], "has_more": False, "last_sequence": None}

    @pytest.mark.asyncio
    async def test_since_timestamp(self, client: AsyncClient, school) -> None:
        room_id = await _room_with_messages(client, school, 3)
        headers = school.headers(school.student)
        url = f"/api/sync/rooms/{room_id}/messages"
        full = (await client.get(url, headers=headers)).json()["messages"]

        response = await client.get(url, params={"since_timestamp": full[1]["created_at"]}, headers=headers)
        assert [m["sequence_number"] for m in response.json()["messages"]] == [3]

    @pytest.mark.asyncio
    async def test_both_watermarks_apply(self, client: AsyncClient, school) -> None:
        room_id = await _room_with_messages(client, school, 4)
        headers = school.headers(school.student)
        url = f"/api/sync/rooms/{room_id}/messages"
        full = (await client.get(url, headers=headers)).json()["messages"]

        response = await client.get(
            url, params={"since_timestamp": full[0]["created_at"], "since_sequence": 2}, headers=headers
        )
        assert [m["sequence_number"] for m in response.json()["messages"]] == [3, 4]

    @pytest.mark.asyncio
    async def test_deleted_messages_are_skipped(self, client: AsyncClient, school) -> None:
        room_id = await _room_with_messages(client, school, 3)
        url = f"/api/sync/rooms/{room_id}/messages"
        full = (await client.get(url, headers=school.headers(school.teacher))).json()["messages"]
        await client.delete(f"/api/chat/messages/{full[1]['id']}", headers=school.headers(school.teacher))

        response = await client.get(url, headers=school.headers(school.student))
        assert [m["sequence_number"] for m in response.json()["messages"]] == [1, 3]

    @pytest.mark.asyncio
    async def test_device_watermark_only_moves_forward(self, client: AsyncClient, school) -> None:
        room_id = await _room_with_messages(client, school, 3)
        headers = {**school.headers(school.student), "X-Device-Id": "phone-1"}
        await client.post("/api/sync/devices", json=PHONE, headers=headers)
        url = f"/api/sync/rooms/{room_id}/messages"

        await client.get(url, headers=headers)
        await client.get(url, params={"since_sequence": 0, "limit": 1}, headers=headers)

        response = await client.get("/api/sync/devices", headers=headers)
        assert response.json()["devices"][0]["last_message_seq"] == 3

    @pytest.mark.asyncio
    async def test_non_member_is_denied(self, client: AsyncClient, school) -> None:
        room_id = await _room_with_messages(client, school, 1)
        response = await client.get(
            f"/api/sync/rooms/{room_id}/messages", headers=school.headers(school.parent)
        )
        assert response.status_code == 403
        assert response.json()["detail"] == "Access denied to this room"

    @pytest.mark.asyncio
    async def test_super_admin_has_no_sync_surface(self, client: AsyncClient, school) -> None:
        response = await client.get("/api/sync/chats", headers=school.headers(school.super_admin))
        assert response.status_code == 403
