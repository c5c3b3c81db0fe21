"""Super-admin tests: campus onboarding, lifecycle and analytics."""

import pytest
from httpx import AsyncClient

ONBOARD = {
    "name": "Hillside Academy",
    "code": "hill-01",
    "contact_email": "office@hillside.example.com",
    "admin": {
        "email": "Head@Hillside.example.com",
        "password": "Welcome2026",
        "first_name": "Hana",
        "last_name": "Head",
    },
}


class TestOnboarding:
    @pytest.mark.asyncio
    async def test_onboard_creates_campus_and_admin(
        self, client: AsyncClient, school, mock_email_service
    ) -> None:
        response = await client.post(
            "/api/super-admin/campuses", json=ONBOARD, headers=school.headers(school.super_admin)
        )
        assert response.status_code == 201
        data = response.json()
        assert data["campus"]["code"] == "HILL-01"
        assert data["admin"]["user_type"] == "Admin"
        assert data["admin"]["email"] == "head@hillside.example.com"
        assert data["admin"]["campus_id"] == data["campus"]["id"]
        assert data["welcome_email_sent"] is True

        mock_email_service.send_template.assert_awaited_once()
        args = mock_email_service.send_template.await_args.args
        assert args[0] == "head@hillside.example.com"
        assert args[1] == "campus_welcome"
        assert args[2]["campus_name"] == "Hillside Academy"

    @pytest.mark.asyncio
    async def test_new_admin_can_log_in(self, client: AsyncClient, school, mock_email_service) -> None:
        await client.post("/api/super-admin/campuses", json=ONBOARD, headers=school.headers(school.super_admin))
        response = await client.post(
            "/api/auth/login", json={"email": "head@hillside.example.com", "password": "Welcome2026"}
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_email_failure_does_not_fail_onboarding(
        self, client: AsyncClient, school, mock_email_service
    ) -> None:
        mock_email_service.send_template.return_value = False
        response = await client.post(
            "/api/super-admin/campuses", json=ONBOARD, headers=school.headers(school.super_admin)
        )
        assert response.status_code == 201
        assert response.json()["welcome_email_sent"] is False

    @pytest.mark.asyncio
    async def test_duplicate_code_conflicts(self, client: AsyncClient, school, mock_email_service) -> None:
        body = {**ONBOARD, "code": "river"}
        response = await client.post(
            "/api/super-admin/campuses", json=body, headers=school.headers(school.super_admin)
        )
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_duplicate_admin_email_conflicts(
        self, client: AsyncClient, school, mock_email_service
    ) -> None:
        body = {**ONBOARD, "admin": {**ONBOARD["admin"], "email": "ada.admin@example.com"}}
        response = await client.post(
            "/api/super-admin/campuses", json=body, headers=school.headers(school.super_admin)
        )
        assert response.status_code == 409
        assert response.json()["detail"] == "Email already registered"

    @pytest.mark.asyncio
    async def test_weak_admin_password_rejected(
        self, client: AsyncClient, school, mock_email_service
    ) -> None:
        body = {**ONBOARD, "admin": {**ONBOARD["admin"], "password": "weakpassword"}}
        response = await client.post(
            "/api/super-admin/campuses", json=body, headers=school.headers(school.super_admin)
        )
        assert response.status_code == 400
        mock_email_service.send_template.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_campus_admin_cannot_onboard(self, client: AsyncClient, school, mock_email_service) -> None:
        response = await client.post("/api/super-admin/campuses", json=ONBOARD, headers=school.headers(school.admin))
        assert response.status_code == 403


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_list_and_search(self, client: AsyncClient, school) -> None:
        headers = school.headers(school.super_admin)
        response = await client.get("/api/super-admin/campuses", params={"search": "river"}, headers=headers)
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["campuses"][0]["id"] == school.campus.id

        response = await client.get("/api/super-admin/campuses", params={"search": "nowhere"}, headers=headers)
        assert response.json()["total"] == 0

    @pytest.mark.asyncio
    async def test_get_unknown_campus(self, client: AsyncClient, school) -> None:
        response = await client.get("/api/super-admin/campuses/missing", headers=school.headers(school.super_admin))
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_suspending_campus_locks_out_its_users(self, client: AsyncClient, school) -> None:
        response = await client.patch(
            f"/api/super-admin/campuses/{school.campus.id}",
            json={"is_active": False},
            headers=school.headers(school.super_admin),
        )
        assert response.status_code == 200
        assert response.json()["is_active"] is False

        response = await client.get("/api/auth/me", headers=school.headers(school.teacher))
        assert response.status_code == 403
        assert response.json()["detail"] == "Campus is inactive"

        # Platform staff are not tied to a campus
        response = await client.get("/api/auth/me", headers=school.headers(school.super_admin))
        assert response.status_code == 200


class TestAnalytics:
    @pytest.mark.asyncio
    async def test_platform_analytics(self, client: AsyncClient, school) -> None:
        response = await client.get("/api/super-admin/analytics", headers=school.headers(school.super_admin))
        assert response.status_code == 200
        data = response.json()
        assert data["campuses"] == {"total": 1, "active": 1}
        assert data["users_by_type"] == {"Admin": 1, "Teacher": 1, "Student": 2, "Parent": 1}
        assert data["total_users"] == 5
        assert data["total_classes"] == 1
        assert data["per_campus"][0]["users"] == 5

    @pytest.mark.asyncio
    async def test_school_health_without_activity(self, client: AsyncClient, school) -> None:
        response = await client.get("/api/super-admin/school-health", headers=school.headers(school.super_admin))
        assert response.status_code == 200
        [entry] = response.json()
        assert entry["students"] == 2
        assert entry["teachers"] == 1
        assert entry["activity_score"] == 0.0
        assert entry["status"] == "critical"

    @pytest.mark.asyncio
    async def test_analytics_requires_super_admin(self, client: AsyncClient, school) -> None:
        response = await client.get("/api/super-admin/analytics", headers=school.headers(school.admin))
        assert response.status_code == 403
