"""Authentication tests: tokens, passwords, login, lockout and /me."""

from unittest.mock import AsyncMock, MagicMock

import jwt
import pytest
from httpx import AsyncClient

from campus.auth.jwt import create_access_token, verify_token
from campus.auth.password import (
    PasswordStrengthError,
    hash_password,
    validate_password_strength,
    verify_password,
)
from campus.auth.service import check_account_lockout, increment_failed_login


class TestJwt:
    def test_access_token_carries_tenant_and_role(self) -> None:
        token = create_access_token("user-1", "campus-1", "Teacher")
        payload = verify_token(token)
        assert payload["sub"] == "user-1"
        assert payload["campus_id"] == "campus-1"
        assert payload["user_type"] == "Teacher"
        assert payload["type"] == "access"

    def test_wrong_token_type_rejected(self) -> None:
        token = create_access_token("user-1", None, "Super Admin")
        with pytest.raises(jwt.InvalidTokenError, match="Expected token type"):
            verify_token(token, expected_type="refresh")

    def test_garbage_token_rejected(self) -> None:
        with pytest.raises(jwt.InvalidTokenError):
            verify_token("not-a-jwt")


class TestPassword:
    def test_hash_and_verify(self) -> None:
        hashed = hash_password("Str0ngPass")
        assert hashed.startswith("$argon2id$")
        assert verify_password("Str0ngPass", hashed)
        assert not verify_password("wrong", hashed)

    def test_malformed_hash_is_false(self) -> None:
        assert verify_password("anything", "not-a-hash") is False

    @pytest.mark.parametrize(
        ("password", "message"),
        [
            ("", "empty"),
            ("Sh0rt", "between"),
            ("alllower1", "uppercase"),
            ("ALLUPPER1", "lowercase"),
            ("NoDigitsHere", "digit"),
        ],
    )
    def test_strength_rules(self, password: str, message: str) -> None:
        with pytest.raises(PasswordStrengthError, match=message):
            validate_password_strength(password)

    def test_strong_password_passes(self) -> None:
        validate_password_strength("Campus2026")


class TestLockout:
    @pytest.mark.asyncio
    async def test_no_redis_never_locks(self) -> None:
        assert await check_account_lockout(None, "user-1") is False
        assert await increment_failed_login(None, "user-1") == 0

    @pytest.mark.asyncio
    async def test_threshold_reached_locks(self) -> None:
        redis = MagicMock()
        redis.get = AsyncMock(return_value="10")
        assert await check_account_lockout(redis, "user-1") is True
        redis.get.assert_awaited_with("login_attempts:user-1")

    @pytest.mark.asyncio
    async def test_first_failure_sets_expiry(self) -> None:
        redis = MagicMock()
        redis.incr = AsyncMock(return_value=1)
        redis.expire = AsyncMock()
        assert await increment_failed_login(redis, "user-1") == 1
        redis.expire.assert_awaited_once_with("login_attempts:user-1", 15 * 60)


class TestLogin:
    @pytest.mark.asyncio
    async def test_login_success(self, client: AsyncClient, school) -> None:
        response = await client.post(
            "/api/auth/login", json={"email": "Tom.Teacher@Example.com", "password": "SecureP@ss1"}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["user"]["id"] == school.teacher.id
        assert verify_token(data["access_token"])["campus_id"] == school.campus.id

    @pytest.mark.asyncio
    async def test_wrong_password(self, client: AsyncClient, school) -> None:
        response = await client.post(
            "/api/auth/login", json={"email": "tom.teacher@example.com", "password": "Wrong1234"}
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password"

    @pytest.mark.asyncio
    async def test_unknown_email(self, client: AsyncClient, school) -> None:
        response = await client.post("/api/auth/login", json={"email": "nobody@example.com", "password": "x"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_deactivated_account(self, client: AsyncClient, db, school) -> None:
        school.student.is_active = False
        await db.commit()
        response = await client.post(
            "/api/auth/login", json={"email": "sam.student@example.com", "password": "SecureP@ss1"}
        )
        assert response.status_code == 403
        assert response.json()["detail"] == "Account is deactivated"

    @pytest.mark.asyncio
    async def test_inactive_campus_blocks_login(self, client: AsyncClient, db, school) -> None:
        school.campus.is_active = False
        await db.commit()
        response = await client.post(
            "/api/auth/login", json={"email": "ada.admin@example.com", "password": "SecureP@ss1"}
        )
        assert response.status_code == 403
        assert response.json()["detail"] == "Campus is inactive"

    @pytest.mark.asyncio
    async def test_super_admin_logs_in_without_campus(self, client: AsyncClient, school) -> None:
        response = await client.post(
            "/api/auth/login", json={"email": "root.superadmin@example.com", "password": "SecureP@ss1"}
        )
        assert response.status_code == 200
        assert response.json()["user"]["campus_id"] is None


class TestMe:
    @pytest.mark.asyncio
    async def test_me(self, client: AsyncClient, school) -> None:
        response = await client.get("/api/auth/me", headers=school.headers(school.parent))
        assert response.status_code == 200
        assert response.json()["email"] == "pat.parent@example.com"

    @pytest.mark.asyncio
    async def test_invalid_token(self, client: AsyncClient, school) -> None:
        response = await client.get("/api/auth/me", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_deleted_user_token_rejected(self, client: AsyncClient, db, school) -> None:
        school.parent.is_deleted = True
        await db.commit()
        response = await client.get("/api/auth/me", headers=school.headers(school.parent))
        assert response.status_code == 401
