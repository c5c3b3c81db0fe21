"""Assignment and submission tests."""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient


async def _create_assignment(client: AsyncClient, school, *, due_in: timedelta) -> dict:
    response = await client.post(
        "/api/assignments",
        json={
            "class_id": school.klass.id,
            "title": "Fractions worksheet",
            "subject": "Math",
            "due_date": (datetime.now(timezone.utc) + due_in).isoformat(),
            "max_score": 20,
        },
        headers=school.headers(school.teacher),
    )
    assert response.status_code == 201
    return response.json()


class TestAssignments:
    @pytest.mark.asyncio
    async def test_unknown_class_rejected(self, client: AsyncClient, school) -> None:
        response = await client.post(
            "/api/assignments",
            json={"class_id": "nope", "title": "X", "due_date": "2026-12-01T10:00:00Z"},
            headers=school.headers(school.teacher),
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_students_see_only_their_classes(self, client: AsyncClient, school, user_factory) -> None:
        await _create_assignment(client, school, due_in=timedelta(days=3))
        outsider = await user_factory(school.campus.id, "Student", "Ola")

        response = await client.get("/api/assignments", headers=school.headers(school.student))
        assert response.json()["total"] == 1
        response = await client.get("/api/assignments", headers=school.headers(outsider))
        assert response.json() == {"assignments": [], "total": 0, "page": 1, "per_page": 20}

    @pytest.mark.asyncio
    async def test_update_and_delete(self, client: AsyncClient, school) -> None:
        assignment = await _create_assignment(client, school, due_in=timedelta(days=3))
        headers = school.headers(school.teacher)
        response = await client.patch(
            f"/api/assignments/{assignment['id']}", json={"title": "Decimals"}, headers=headers
        )
        assert response.json()["title"] == "Decimals"

        await client.delete(f"/api/assignments/{assignment['id']}", headers=headers)
        response = await client.get(f"/api/assignments/{assignment['id']}", headers=headers)
        assert response.status_code == 404


class TestSubmissions:
    @pytest.mark.asyncio
    async def test_submit_on_time_then_grade(self, client: AsyncClient, school) -> None:
        assignment = await _create_assignment(client, school, due_in=timedelta(days=3))
        response = await client.post(
            f"/api/assignments/{assignment['id']}/submissions",
            json={"content": "1/2 + 1/4 = 3/4"},
            headers=school.headers(school.student),
        )
        assert response.status_code == 201
        submission = response.json()
        assert submission["status"] == "submitted"
        assert submission["is_late"] is False

        response = await client.patch(
            f"/api/assignments/submissions/{submission['id']}/grade",
            json={"grade": 18, "feedback": "Nice"},
            headers=school.headers(school.teacher),
        )
        assert response.status_code == 200
        assert response.json()["status"] == "graded"
        assert response.json()["graded_by"] == school.teacher.id

        response = await client.get(
            f"/api/assignments/{assignment['id']}/submissions", headers=school.headers(school.teacher)
        )
        [row] = response.json()
        assert row["student_name"] == "Sam Tester"

    @pytest.mark.asyncio
    async def test_late_submission_flagged(self, client: AsyncClient, school) -> None:
        assignment = await _create_assignment(client, school, due_in=timedelta(hours=-1))
        response = await client.post(
            f"/api/assignments/{assignment['id']}/submissions",
            json={"content": "sorry"},
            headers=school.headers(school.student),
        )
        assert response.json()["status"] == "late"
        assert response.json()["is_late"] is True

    @pytest.mark.asyncio
    async def test_double_submit_conflicts(self, client: AsyncClient, school) -> None:
        assignment = await _create_assignment(client, school, due_in=timedelta(days=1))
        url = f"/api/assignments/{assignment['id']}/submissions"
        await client.post(url, json={"content": "a"}, headers=school.headers(school.student))
        response = await client.post(url, json={"content": "b"}, headers=school.headers(school.student))
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_outsider_cannot_submit(self, client: AsyncClient, school, user_factory) -> None:
        assignment = await _create_assignment(client, school, due_in=timedelta(days=1))
        outsider = await user_factory(school.campus.id, "Student", "Ola")
        response = await client.post(
            f"/api/assignments/{assignment['id']}/submissions",
            json={"content": "x"},
            headers=school.headers(outsider),
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_grade_above_max_rejected(self, client: AsyncClient, school) -> None:
        assignment = await _create_assignment(client, school, due_in=timedelta(days=1))
        response = await client.post(
            f"/api/assignments/{assignment['id']}/submissions",
            json={"content": "x"},
            headers=school.headers(school.student),
        )
        response = await client.patch(
            f"/api/assignments/submissions/{response.json()['id']}/grade",
            json={"grade": 25},
            headers=school.headers(school.teacher),
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Grade cannot exceed max score 20"
