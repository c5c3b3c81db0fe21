"""Course, enrollment and progress tests."""

import pytest
from httpx import AsyncClient


async def _create_course(client: AsyncClient, school, **overrides) -> dict:
    body = {
        "course_name": "Algebra I",
        "course_code": "MATH-101",
        "status": "published",
        "total_chapters": 2,
        **overrides,
    }
    response = await client.post("/api/course", json=body, headers=school.headers(school.teacher))
    assert response.status_code == 201
    return response.json()


class TestCourses:
    @pytest.mark.asyncio
    async def test_create_and_fetch(self, client: AsyncClient, school) -> None:
        course = await _create_course(client, school)
        assert course["created_by"] == school.teacher.id
        assert course["enrollment_count"] == 0

        response = await client.get(f"/api/course/{course['id']}", headers=school.headers(school.parent))
        assert response.json()["course_code"] == "MATH-101"

    @pytest.mark.asyncio
    async def test_duplicate_code_conflicts(self, client: AsyncClient, school) -> None:
        await _create_course(client, school)
        response = await client.post(
            "/api/course",
            json={"course_name": "Again", "course_code": "MATH-101"},
            headers=school.headers(school.admin),
        )
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_students_only_see_published(self, client: AsyncClient, school) -> None:
        await _create_course(client, school)
        draft = await _create_course(client, school, course_code="DRAFT-1", status="draft")

        response = await client.get("/api/course", headers=school.headers(school.student))
        assert [c["course_code"] for c in response.json()["courses"]] == ["MATH-101"]
        response = await client.get(f"/api/course/{draft['id']}", headers=school.headers(school.student))
        assert response.status_code == 404

        response = await client.get("/api/course", headers=school.headers(school.teacher))
        assert response.json()["total"] == 2

    @pytest.mark.asyncio
    async def test_only_admin_deletes(self, client: AsyncClient, school) -> None:
        course = await _create_course(client, school)
        response = await client.delete(f"/api/course/{course['id']}", headers=school.headers(school.teacher))
        assert response.status_code == 403
        response = await client.delete(f"/api/course/{course['id']}", headers=school.headers(school.admin))
        assert response.status_code == 200


class TestEnrollment:
    @pytest.mark.asyncio
    async def test_self_enroll_once(self, client: AsyncClient, school) -> None:
        course = await _create_course(client, school)
        headers = school.headers(school.student)

        response = await client.post(f"/api/course/{course['id']}/enroll", headers=headers)
        assert response.status_code == 201
        assert response.json()["enrollment_type"] == "self"
        assert response.json()["user_id"] == school.student.id

        response = await client.post(f"/api/course/{course['id']}/enroll", headers=headers)
        assert response.status_code == 409

        response = await client.get(f"/api/course/{course['id']}", headers=headers)
        assert response.json()["enrollment_count"] == 1

    @pytest.mark.asyncio
    async def test_staff_assigns_student(self, client: AsyncClient, school) -> None:
        course = await _create_course(client, school)
        response = await client.post(
            f"/api/course/{course['id']}/enroll",
            json={"student_id": school.other_student.id},
            headers=school.headers(school.teacher),
        )
        assert response.status_code == 201
        assert response.json()["enrollment_type"] == "assigned"
        assert response.json()["enrolled_by"] == school.teacher.id

        response = await client.get(
            f"/api/course/{course['id']}/enrollments", headers=school.headers(school.teacher)
        )
        [row] = response.json()
        assert row["student_name"] == "Sue Tester"

    @pytest.mark.asyncio
    async def test_only_students_can_be_assigned(self, client: AsyncClient, school) -> None:
        course = await _create_course(client, school)
        response = await client.post(
            f"/api/course/{course['id']}/enroll",
            json={"student_id": school.parent.id},
            headers=school.headers(school.admin),
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_enrollment_limit(self, client: AsyncClient, school) -> None:
        course = await _create_course(client, school, max_enrollments=1)
        await client.post(f"/api/course/{course['id']}/enroll", headers=school.headers(school.student))
        response = await client.post(f"/api/course/{course['id']}/enroll", headers=school.headers(school.other_student))
        assert response.status_code == 409
        assert "limit" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_my_enrollments(self, client: AsyncClient, school) -> None:
        course = await _create_course(client, school)
        await client.post(f"/api/course/{course['id']}/enroll", headers=school.headers(school.student))
        response = await client.get("/api/course/enrollments/me", headers=school.headers(school.student))
        assert response.status_code == 200
        [row] = response.json()
        assert row["course"]["id"] == course["id"]


class TestProgress:
    @pytest.mark.asyncio
    async def test_watch_history_drives_completion(self, client: AsyncClient, school) -> None:
        course = await _create_course(client, school)
        headers = school.headers(school.student)
        await client.post(f"/api/course/{course['id']}/enroll", headers=headers)

        response = await client.post(
            f"/api/course/{course['id']}/watch-history",
            json={"content_id": "ch-1", "watch_duration": 300, "is_completed": True},
            headers=headers,
        )
        assert response.status_code == 200
        assert response.json()["completion_percentage"] == 50.0
        assert response.json()["is_completed"] is False

        # Re-watching a finished chapter does not count twice
        response = await client.post(
            f"/api/course/{course['id']}/watch-history",
            json={"content_id": "ch-1", "watch_duration": 60, "is_completed": True},
            headers=headers,
        )
        assert response.json()["chapters_completed"] == 1
        assert response.json()["total_watch_time"] == 360

        response = await client.post(
            f"/api/course/{course['id']}/watch-history",
            json={"content_id": "ch-2", "watch_duration": 200, "is_completed": True},
            headers=headers,
        )
        assert response.json()["completion_percentage"] == 100.0
        assert response.json()["is_completed"] is True
        assert response.json()["last_content_id"] == "ch-2"

        response = await client.get(f"/api/course/{course['id']}", headers=headers)
        assert response.json()["completion_count"] == 1

    @pytest.mark.asyncio
    async def test_completion_counted_once_per_enrollment(self, client: AsyncClient, school) -> None:
        course = await _create_course(client, school, total_chapters=1)
        headers = school.headers(school.student)
        enrollment = (await client.post(f"/api/course/{course['id']}/enroll", headers=headers)).json()
        watch = {"content_id": "ch-1", "watch_duration": 30, "is_completed": True}
        patch_url = f"/api/course/{course['id']}/enrollments/{enrollment['id']}"
        staff = school.headers(school.teacher)

        await client.post(f"/api/course/{course['id']}/watch-history", json=watch, headers=headers)
        response = await client.patch(patch_url, json={"enrollment_status": "active"}, headers=staff)
        assert response.json()["enrollment_status"] == "active"

        await client.post(f"/api/course/{course['id']}/watch-history", json=watch, headers=headers)
        await client.patch(patch_url, json={"enrollment_status": "completed"}, headers=staff)

        response = await client.get(f"/api/course/{course['id']}", headers=headers)
        assert response.json()["completion_count"] == 1

    @pytest.mark.asyncio
    async def test_staff_completion_counts(self, client: AsyncClient, school) -> None:
        course = await _create_course(client, school)
        enrollment = (
            await client.post(f"/api/course/{course['id']}/enroll", headers=school.headers(school.student))
        ).json()

        response = await client.patch(
            f"/api/course/{course['id']}/enrollments/{enrollment['id']}",
            json={"enrollment_status": "completed"},
            headers=school.headers(school.admin),
        )
        assert response.json()["enrollment_status"] == "completed"

        response = await client.get(f"/api/course/{course['id']}", headers=school.headers(school.student))
        assert response.json()["completion_count"] == 1

    @pytest.mark.asyncio
    async def test_watch_requires_enrollment(self, client: AsyncClient, school) -> None:
        course = await _create_course(client, school)
        response = await client.post(
            f"/api/course/{course['id']}/watch-history",
            json={"content_id": "ch-1", "watch_duration": 10},
            headers=school.headers(school.student),
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_progress_before_watching_is_zero(self, client: AsyncClient, school) -> None:
        course = await _create_course(client, school)
        await client.post(f"/api/course/{course['id']}/enroll", headers=school.headers(school.student))

        response = await client.get(
            f"/api/course/{course['id']}/progress",
            params={"user_id": school.student.id},
            headers=school.headers(school.teacher),
        )
        assert response.status_code == 200
        assert response.json()["completion_percentage"] == 0.0
