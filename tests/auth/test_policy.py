"""Role policy tests."""

import pytest
from httpx import AsyncClient

from campus.auth.policy import POLICY, is_allowed


@pytest.mark.parametrize(
    ("role", "resource", "action", "allowed"),
    [
        ("Admin", "course", "create", True),
        ("Teacher", "course", "delete", False),
        ("Student", "submission", "create", True),
        ("Teacher", "submission", "create", False),
        ("Super Admin", "campus", "create", True),
        ("Admin", "campus", "create", False),
        ("Super Admin", "sync", "read", False),
        ("Parent", "attendance", "report", False),
        ("Student", "nonexistent", "read", False),
    ],
)
def test_policy_table(role, resource, action, allowed) -> None:
    assert is_allowed(role, resource, action) is allowed


def test_every_grant_names_known_roles() -> None:
    roles = {"Super Admin", "Admin", "Teacher", "Student", "Parent"}
    for granted in POLICY.values():
        assert granted <= roles


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("role", "expected"),
    [("admin", 201), ("teacher", 201), ("student", 403), ("parent", 403), ("super_admin", 403)],
)
async def test_course_creation_by_role(client: AsyncClient, school, role, expected) -> None:
    response = await client.post(
        "/api/course",
        json={"course_name": "Biology", "course_code": f"BIO-{role}"},
        headers=school.headers(getattr(school, role)),
    )
    assert response.status_code == expected
    if expected == 403:
        assert response.json()["detail"].endswith("cannot create course")
    else:
        assert response.json()["id"]
