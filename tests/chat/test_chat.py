"""Chat room and message tests."""

import json
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient

from campus.chat.service import edit_message, extract_mentions, send_message
from campus.exceptions import AccessDeniedError


async def _class_room(client: AsyncClient, school) -> dict:
    response = await client.post(
        "/api/chat/rooms",
        json={"name": "7A chat", "room_type": "class_group", "class_id": school.klass.id},
        headers=school.headers(school.teacher),
    )
    assert response.status_code == 201
    return response.json()


async def _send(client: AsyncClient, school, user, room_id: str, content: str, **extra) -> dict:
    response = await client.post(
        f"/api/chat/rooms/{room_id}/messages",
        json={"content": content, **extra},
        headers=school.headers(user),
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_extract_mentions_keeps_members_only() -> None:
    content = "@abc and @def and @abc again, not @ghost"
    assert extract_mentions(content, ["abc", "def", "xyz"]) == ["abc", "def"]
    assert extract_mentions("", ["abc"]) == []


class TestRooms:
    @pytest.mark.asyncio
    async def test_class_group_pulls_in_roster(self, client: AsyncClient, school) -> None:
        room = await _class_room(client, school)
        assert set(room["members"]) == {school.teacher.id, school.student.id, school.other_student.id}
        assert room["last_sequence"] == 0

    @pytest.mark.asyncio
    async def test_personal_room_is_unique_per_pair(self, client: AsyncClient, school) -> None:
        body = {"name": "DM", "room_type": "personal", "member_ids": [school.parent.id]}
        first = await client.post("/api/chat/rooms", json=body, headers=school.headers(school.teacher))
        second = await client.post(
            "/api/chat/rooms",
            json={**body, "member_ids": [school.teacher.id]},
            headers=school.headers(school.parent),
        )
        assert first.json()["id"] == second.json()["id"]

    @pytest.mark.asyncio
    async def test_unknown_members_rejected(self, client: AsyncClient, school) -> None:
        response = await client.post(
            "/api/chat/rooms",
            json={"name": "Club", "member_ids": ["ghost"]},
            headers=school.headers(school.teacher),
        )
        assert response.status_code == 400
        assert "ghost" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_room_listing_and_access(self, client: AsyncClient, school) -> None:
        room = await _class_room(client, school)
        response = await client.get("/api/chat/rooms", headers=school.headers(school.student))
        assert [r["id"] for r in response.json()["rooms"]] == [room["id"]]

        response = await client.get(f"/api/chat/rooms/{room['id']}", headers=school.headers(school.parent))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_only_room_admins_add_members(self, client: AsyncClient, school) -> None:
        room = await _class_room(client, school)
        url = f"/api/chat/rooms/{room['id']}/members"
        response = await client.post(url, json={"user_ids": [school.parent.id]}, headers=school.headers(school.student))
        assert response.status_code == 403

        response = await client.post(url, json={"user_ids": [school.parent.id]}, headers=school.headers(school.teacher))
        assert response.json() == {"added": [school.parent.id]}

    @pytest.mark.asyncio
    async def test_member_can_leave(self, client: AsyncClient, school) -> None:
        room = await _class_room(client, school)
        response = await client.delete(
            f"/api/chat/rooms/{room['id']}/members/{school.student.id}", headers=school.headers(school.student)
        )
        assert response.status_code == 200
        response = await client.delete(
            f"/api/chat/rooms/{room['id']}/members/{school.other_student.id}", headers=school.headers(school.student)
        )
        assert response.status_code == 403


class TestSending:
    @pytest.mark.asyncio
    async def test_sequence_numbers_are_gap_free(self, client: AsyncClient, school) -> None:
        room = await _class_room(client, school)
        senders = [school.teacher, school.student, school.other_student, school.teacher]
        sequences = []
        for i, sender in enumerate(senders):
            sent = await _send(client, school, sender, room["id"], f"msg {i}")
            sequences.append(sent["message"]["sequence_number"])
        assert sequences == [1, 2, 3, 4]

        response = await client.get(f"/api/chat/rooms/{room['id']}", headers=school.headers(school.teacher))
        assert response.json()["last_sequence"] == 4
        assert response.json()["last_message"]["content"] == "msg 3"

    @pytest.mark.asyncio
    async def test_resend_with_client_message_id_is_idempotent(self, client: AsyncClient, school) -> None:
        room = await _class_room(client, school)
        first = await _send(client, school, school.student, room["id"], "hello", client_message_id="c-1")
        again = await _send(client, school, school.student, room["id"], "hello", client_message_id="c-1")
        assert first["created"] is True
        assert again["created"] is False
        assert again["message"]["id"] == first["message"]["id"]

        # No sequence number was burned by the duplicate
        nxt = await _send(client, school, school.student, room["id"], "next")
        assert nxt["message"]["sequence_number"] == 2

    @pytest.mark.asyncio
    async def test_same_client_id_from_another_sender_is_new(self, client: AsyncClient, school) -> None:
        room = await _class_room(client, school)
        await _send(client, school, school.student, room["id"], "a", client_message_id="c-1")
        other = await _send(client, school, school.other_student, room["id"], "b", client_message_id="c-1")
        assert other["created"] is True

    @pytest.mark.asyncio
    async def test_non_member_cannot_send(self, client: AsyncClient, school) -> None:
        room = await _class_room(client, school)
        response = await client.post(
            f"/api/chat/rooms/{room['id']}/messages", json={"content": "hi"}, headers=school.headers(school.parent)
        )
        assert response.status_code == 403
        assert response.json()["detail"] == "Access denied to this room"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("body", "detail"),
        [
            ({"content": "   "}, "Message content cannot be empty"),
            ({"message_type": "image"}, "file_url is required for media messages"),
            ({"content": "re", "reply_to": "missing"}, "reply_to must reference a message in the same room"),
        ],
    )
    async def test_invalid_messages(self, client: AsyncClient, school, body: dict, detail: str) -> None:
        room = await _class_room(client, school)
        response = await client.post(
            f"/api/chat/rooms/{room['id']}/messages", json=body, headers=school.headers(school.teacher)
        )
        assert response.status_code == 400
        assert response.json()["detail"] == detail

    @pytest.mark.asyncio
    async def test_mentions_recorded_for_members(self, client: AsyncClient, school) -> None:
        room = await _class_room(client, school)
        sent = await _send(
            client, school, school.teacher, room["id"], f"@{school.other_student.id} and @{school.parent.id} see me"
        )
        assert sent["message"]["meta_data"]["mentions"] == [school.other_student.id]


class TestRealtimeFanOut:
    @pytest.mark.asyncio
    async def test_send_publishes_room_event_and_mentions(self, client: AsyncClient, db, school) -> None:
        room = await _class_room(client, school)
        redis = AsyncMock()

        message, created = await send_message(
            db,
            school.campus.id,
            school.teacher,
            room["id"],
            content=f"hi @{school.student.id}",
            redis=redis,
        )
        assert created

        calls = redis.publish.await_args_list
        assert [c.args[0] for c in calls] == [f"ws:room:{room['id']}", f"ws:user:{school.student.id}"]
        room_payload = json.loads(calls[0].args[1])
        assert room_payload["event"] == "message:new"
        assert room_payload["exclude_user_id"] == school.teacher.id
        assert room_payload["data"]["id"] == message.id
        mention_payload = json.loads(calls[1].args[1])
        assert mention_payload["event"] == "mention"
        assert mention_payload["data"]["mentioned_by"] == school.teacher.id

    @pytest.mark.asyncio
    async def test_publish_failure_does_not_fail_send(self, client: AsyncClient, db, school) -> None:
        room = await _class_room(client, school)
        redis = AsyncMock()
        redis.publish.side_effect = ConnectionError("redis down")

        message, created = await send_message(db, school.campus.id, school.teacher, room["id"], content="x", redis=redis)
        assert created
        assert message.sequence_number == 1


class TestHistoryAndReceipts:
    @pytest.mark.asyncio
    async def test_history_pages_backwards(self, client: AsyncClient, school) -> None:
        room = await _class_room(client, school)
        for i in range(3):
            await _send(client, school, school.teacher, room["id"], f"m{i}")
        headers = school.headers(school.student)

        response = await client.get(f"/api/chat/rooms/{room['id']}/messages", params={"limit": 2}, headers=headers)
        data = response.json()
        assert [m["sequence_number"] for m in data["messages"]] == [2, 3]
        assert data["has_more"] is True

        response = await client.get(
            f"/api/chat/rooms/{room['id']}/messages", params={"before_sequence": 2}, headers=headers
        )
        assert [m["content"] for m in response.json()["messages"]] == ["m0"]
        assert response.json()["has_more"] is False

    @pytest.mark.asyncio
    async def test_seen_receipts(self, client: AsyncClient, school) -> None:
        room = await _class_room(client, school)
        await _send(client, school, school.teacher, room["id"], "one")
        await _send(client, school, school.teacher, room["id"], "two")
        await _send(client, school, school.student, room["id"], "mine")
        headers = school.headers(school.student)
        url = f"/api/chat/rooms/{room['id']}/seen"

        response = await client.post(url, json={"up_to_sequence": 1}, headers=headers)
        assert response.json() == {"marked": 1}
        response = await client.post(url, json={}, headers=headers)
        assert response.json() == {"marked": 1}
        response = await client.post(url, json={}, headers=headers)
        assert response.json() == {"marked": 0}

        response = await client.get(f"/api/chat/rooms/{room['id']}/messages", headers=school.headers(school.teacher))
        first = response.json()["messages"][0]
        assert [r["user_id"] for r in first["seen_by"]] == [school.student.id]

    @pytest.mark.asyncio
    async def test_delivered_receipt_once(self, client: AsyncClient, school) -> None:
        room = await _class_room(client, school)
        sent = await _send(client, school, school.teacher, room["id"], "ping")
        url = f"/api/chat/messages/{sent['message']['id']}/delivered"

        assert (await client.post(url, headers=school.headers(school.student))).json() == {"recorded": True}
        assert (await client.post(url, headers=school.headers(school.student))).json() == {"recorded": False}
        assert (await client.post(url, headers=school.headers(school.teacher))).json() == {"recorded": False}


class TestEditAndDelete:
    @pytest.mark.asyncio
    async def test_edit_by_sender(self, client: AsyncClient, school) -> None:
        room = await _class_room(client, school)
        sent = await _send(client, school, school.student, room["id"], "helo")
        url = f"/api/chat/messages/{sent['message']['id']}"

        response = await client.patch(url, json={"content": "hello"}, headers=school.headers(school.other_student))
        assert response.status_code == 403

        response = await client.patch(url, json={"content": "hello"}, headers=school.headers(school.student))
        assert response.status_code == 200
        assert response.json()["content"] == "hello"
        assert response.json()["is_edited"] is True

    @pytest.mark.asyncio
    async def test_edit_window_closes(self, client: AsyncClient, db, school) -> None:
        room = await _class_room(client, school)
        sent = await _send(client, school, school.student, room["id"], "old")

        from campus.db.models import ChatMessage

        message = await db.get(ChatMessage, sent["message"]["id"])
        with pytest.raises(ValueError, match="no longer be edited"):
            await edit_message(
                db,
                school.campus.id,
                school.student.id,
                message.id,
                "new",
                now=message.created_at + timedelta(hours=25),
            )

    @pytest.mark.asyncio
    async def test_delete_hides_from_history(self, client: AsyncClient, school) -> None:
        room = await _class_room(client, school)
        keep = await _send(client, school, school.teacher, room["id"], "keep")
        gone = await _send(client, school, school.teacher, room["id"], "gone")

        response = await client.delete(
            f"/api/chat/messages/{gone['message']['id']}", headers=school.headers(school.student)
        )
        assert response.status_code == 403
        response = await client.delete(
            f"/api/chat/messages/{gone['message']['id']}", headers=school.headers(school.teacher)
        )
        assert response.status_code == 200

        response = await client.get(f"/api/chat/rooms/{room['id']}/messages", headers=school.headers(school.teacher))
        assert [m["id"] for m in response.json()["messages"]] == [keep["message"]["id"]]

    @pytest.mark.asyncio
    async def test_access_denied_error_type(self, client: AsyncClient, db, school) -> None:
        room = await _class_room(client, school)
        with pytest.raises(AccessDeniedError):
            await send_message(db, school.campus.id, school.parent, room["id"], content="hi")
