"""Shared test fixtures.

Tests run against an in-memory SQLite database (one shared connection) with
Redis left uninitialized, so publishing, rate limiting and lockouts are
skipped.
"""

from __future__ import annotations

import os
import tempfile
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession


def _ensure_test_keys() -> None:
    """Generate an RSA key pair for RS256 tokens and point the settings at it."""
    if os.environ.get("CAMPUS_JWT_PRIVATE_KEY_PATH", "").startswith(tempfile.gettempdir()):
        return
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    tmpdir = tempfile.mkdtemp(prefix="campus_test_keys_")
    private_path = os.path.join(tmpdir, "jwt_private.pem")
    public_path = os.path.join(tmpdir, "jwt_public.pem")
    with open(private_path, "wb") as f:
        f.write(
            key.private_bytes(
                serialization.Encoding.PEM,
                serialization.PrivateFormat.PKCS8,
                serialization.NoEncryption(),
            )
        )
    with open(public_path, "wb") as f:
        f.write(
            key.public_key().public_bytes(
                serialization.Encoding.PEM,
                serialization.PublicFormat.SubjectPublicKeyInfo,
            )
        )
    os.environ["CAMPUS_JWT_PRIVATE_KEY_PATH"] = private_path
    os.environ["CAMPUS_JWT_PUBLIC_KEY_PATH"] = public_path


os.environ["CAMPUS_DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["CAMPUS_LOG_FORMAT"] = "console"
_ensure_test_keys()

from campus.auth.jwt import create_access_token, reset_keys  # noqa: E402
from campus.auth.password import hash_password  # noqa: E402
from campus.calls.getstream import reset_stream_client  # noqa: E402
from campus.config import get_settings  # noqa: E402
from campus.database import close_db, get_engine, get_session_factory, init_db  # noqa: E402
from campus.db.base import Base  # noqa: E402
from campus.db.models import Campus, Class, ClassMember, User  # noqa: E402

get_settings.cache_clear()
reset_keys()

TEST_PASSWORD = "SecureP@ss1"
_PASSWORD_HASH = hash_password(TEST_PASSWORD)


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[None, None]:
    """Fresh schema per test."""
    await init_db(get_settings().database_url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await close_db()
    reset_stream_client()


@pytest_asyncio.fixture
async def db(database: None) -> AsyncGenerator[AsyncSession, None]:
    """A direct session for arranging data and asserting on it."""
    async with get_session_factory()() as session:
        yield session


@pytest_asyncio.fixture
async def client(database: None) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client over the ASGI app (lifespan is not run)."""
    from campus.main import create_app

    transport = ASGITransport(app=create_app())
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.campus_id, user.user_type)}"}


async def make_user(
    db: AsyncSession,
    campus_id: str | None,
    user_type: str,
    first_name: str,
    *,
    email: str | None = None,
    class_id: str | None = None,
) -> User:
    user = User(
        campus_id=campus_id,
        user_type=user_type,
        email=email or f"{first_name.lower()}.{user_type.replace(' ', '').lower()}@example.com",
        password_hash=_PASSWORD_HASH,
        first_name=first_name,
        last_name="Tester",
        class_id=class_id,
    )
    db.add(user)
    await db.flush()
    return user


@dataclass
class School:
    campus: Campus
    admin: User
    teacher: User
    student: User
    other_student: User
    parent: User
    klass: Class
    super_admin: User

    def headers(self, user: User) -> dict[str, str]:
        return auth_headers(user)


@pytest_asyncio.fixture
async def school(db: AsyncSession) -> School:
    """One campus with a user of every role and a class holding both students."""
    campus = Campus(name="Riverside High", code="RIVER")
    db.add(campus)
    await db.flush()

    admin = await make_user(db, campus.id, "Admin", "Ada")
    teacher = await make_user(db, campus.id, "Teacher", "Tom")
    klass = Class(campus_id=campus.id, name="Grade 7A", academic_year="2026-2027", class_teacher_id=teacher.id)
    db.add(klass)
    await db.flush()
    student = await make_user(db, campus.id, "Student", "Sam", class_id=klass.id)
    other_student = await make_user(db, campus.id, "Student", "Sue", class_id=klass.id)
    parent = await make_user(db, campus.id, "Parent", "Pat")
    super_admin = await make_user(db, None, "Super Admin", "Root")

    db.add_all(
        [
            ClassMember(class_id=klass.id, user_id=teacher.id, role="teacher"),
            ClassMember(class_id=klass.id, user_id=student.id, role="student"),
            ClassMember(class_id=klass.id, user_id=other_student.id, role="student"),
        ]
    )
    await db.commit()
    return School(
        campus=campus,
        admin=admin,
        teacher=teacher,
        student=student,
        other_student=other_student,
        parent=parent,
        klass=klass,
        super_admin=super_admin,
    )


@pytest.fixture
def mock_email_service(monkeypatch):
    """Mock the email service to prevent actual email sending."""
    mock_service = MagicMock()
    mock_service.send_template = AsyncMock(return_value=True)
    mock_service.send_email = AsyncMock(return_value=True)

    monkeypatch.setattr("campus.campuses.router.get_email_service", lambda *a, **kw: mock_service)
    monkeypatch.setattr("campus.users.router.get_email_service", lambda *a, **kw: mock_service)
    return mock_service


@pytest.fixture
def user_factory(db: AsyncSession):
    """Create extra users on the shared session: ``await user_factory(campus_id, "Teacher", "Tia")``."""

    async def _make(campus_id: str | None, user_type: str, first_name: str, **kwargs) -> User:
        user = await make_user(db, campus_id, user_type, first_name, **kwargs)
        await db.commit()
        return user

    return _make
