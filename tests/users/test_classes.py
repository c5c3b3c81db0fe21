"""Class management and roster tests."""

import pytest
from httpx import AsyncClient


class TestClassCrud:
    @pytest.mark.asyncio
    async def test_create_with_class_teacher(self, client: AsyncClient, school) -> None:
        response = await client.post(
            "/api/class",
            json={"name": "Grade 8B", "academic_year": "2026-2027", "class_teacher_id": school.teacher.id},
            headers=school.headers(school.admin),
        )
        assert response.status_code == 201
        class_id = response.json()["id"]

        detail = await client.get(f"/api/class/{class_id}", headers=school.headers(school.teacher))
        assert [t["id"] for t in detail.json()["teachers"]] == [school.teacher.id]
        assert detail.json()["student_count"] == 0

    @pytest.mark.asyncio
    async def test_class_teacher_must_be_teacher(self, client: AsyncClient, school) -> None:
        response = await client.post(
            "/api/class",
            json={"name": "Grade 8B", "class_teacher_id": school.student.id},
            headers=school.headers(school.admin),
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_list_includes_student_counts(self, client: AsyncClient, school) -> None:
        response = await client.get("/api/class", headers=school.headers(school.parent))
        assert response.status_code == 200
        [klass] = response.json()["classes"]
        assert klass["name"] == "Grade 7A"
        assert klass["student_count"] == 2

    @pytest.mark.asyncio
    async def test_detail_roster(self, client: AsyncClient, school) -> None:
        response = await client.get(f"/api/class/{school.klass.id}", headers=school.headers(school.student))
        data = response.json()
        assert [s["first_name"] for s in data["students"]] == ["Sam", "Sue"]
        assert data["student_count"] == 2

    @pytest.mark.asyncio
    async def test_update_and_delete(self, client: AsyncClient, school) -> None:
        headers = school.headers(school.admin)
        response = await client.patch(f"/api/class/{school.klass.id}", json={"name": "Grade 7 Alpha"}, headers=headers)
        assert response.json()["name"] == "Grade 7 Alpha"

        response = await client.delete(f"/api/class/{school.klass.id}", headers=headers)
        assert response.status_code == 200
        response = await client.get(f"/api/class/{school.klass.id}", headers=headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_teacher_cannot_create(self, client: AsyncClient, school) -> None:
        response = await client.post("/api/class", json={"name": "X"}, headers=school.headers(school.teacher))
        assert response.status_code == 403


class TestRoster:
    @pytest.mark.asyncio
    async def test_add_students_reports_failures(self, client: AsyncClient, school, user_factory) -> None:
        newcomer = await user_factory(school.campus.id, "Student", "Nia")
        response = await client.post(
            f"/api/class/{school.klass.id}/students",
            json={"student_ids": [newcomer.id, school.student.id, school.parent.id, "ghost"]},
            headers=school.headers(school.teacher),
        )
        assert response.status_code == 200
        data = response.json()
        assert data["added"] == [newcomer.id]
        errors = {f["user_id"]: f["error"] for f in data["failed"]}
        assert errors == {
            school.student.id: "Already in class",
            school.parent.id: "User is not a student",
            "ghost": "User not found",
        }

        response = await client.get(f"/api/class/{school.klass.id}/students", headers=school.headers(school.teacher))
        assert {s["id"] for s in response.json()} == {school.student.id, school.other_student.id, newcomer.id}

    @pytest.mark.asyncio
    async def test_remove_student(self, client: AsyncClient, school) -> None:
        headers = school.headers(school.admin)
        response = await client.delete(
            f"/api/class/{school.klass.id}/students/{school.other_student.id}", headers=headers
        )
        assert response.status_code == 200

        response = await client.delete(
            f"/api/class/{school.klass.id}/students/{school.other_student.id}", headers=headers
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_students_cannot_manage_roster(self, client: AsyncClient, school) -> None:
        response = await client.post(
            f"/api/class/{school.klass.id}/students",
            json={"student_ids": [school.other_student.id]},
            headers=school.headers(school.student),
        )
        assert response.status_code == 403
