"""Notification API tests."""

import json
from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from campus.notifications.service import create_notification


async def _seed(db: AsyncSession, user_id: str, count: int = 3) -> list[str]:
    ids = []
    for i in range(count):
        notification = await create_notification(db, user_id, "academic", "grade_posted", f"Grade {i}")
        ids.append(notification.id)
    await db.commit()
    return ids


class TestNotifications:
    @pytest.mark.asyncio
    async def test_list_and_unread_count(self, client: AsyncClient, db: AsyncSession, school) -> None:
        await _seed(db, school.student.id)
        await _seed(db, school.other_student.id, count=1)
        headers = school.headers(school.student)

        response = await client.get("/api/notifications", params={"per_page": 2}, headers=headers)
        data = response.json()
        assert data["total"] == 3
        assert len(data["notifications"]) == 2
        assert data["notifications"][0]["type"] == "academic"

        response = await client.get("/api/notifications/unread-count", headers=headers)
        assert response.json() == {"unread_count": 3}

    @pytest.mark.asyncio
    async def test_mark_read(self, client: AsyncClient, db: AsyncSession, school) -> None:
        ids = await _seed(db, school.student.id)
        headers = school.headers(school.student)

        response = await client.post(f"/api/notifications/{ids[0]}/read", headers=headers)
        assert response.status_code == 200
        response = await client.get("/api/notifications", params={"unread_only": True}, headers=headers)
        assert response.json()["total"] == 2

        response = await client.post("/api/notifications/read-all", headers=headers)
        assert response.json()["count"] == 2
        response = await client.get("/api/notifications/unread-count", headers=headers)
        assert response.json()["unread_count"] == 0

    @pytest.mark.asyncio
    async def test_cannot_read_others(self, client: AsyncClient, db: AsyncSession, school) -> None:
        ids = await _seed(db, school.student.id, count=1)
        response = await client.post(f"/api/notifications/{ids[0]}/read", headers=school.headers(school.parent))
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_unknown_type_rejected(self, db: AsyncSession, school) -> None:
        with pytest.raises(ValueError):
            await create_notification(db, school.student.id, "marketing", "promo", "Nope")

    @pytest.mark.asyncio
    async def test_pushed_to_user_channel(self, db: AsyncSession, school) -> None:
        redis = AsyncMock()
        notification = await create_notification(
            db, school.student.id, "system", "welcome", "Hello", redis=redis
        )
        channel, payload = redis.publish.await_args.args
        assert channel == f"ws:user:{school.student.id}"
        message = json.loads(payload)
        assert message["event"] == "notification"
        assert message["data"]["id"] == notification.id
