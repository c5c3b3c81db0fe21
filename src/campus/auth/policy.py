"""Role-based access policy.

One table answers "may role R perform action A on resource K". Routers declare
their requirement with ``require_permission(resource, action)``; services never
branch on ``user_type`` for authorization. Ownership and membership checks
(e.g. "is this user in the room") stay in the services because they depend
on data, not on the role.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from fastapi import Depends

from campus.auth.dependencies import get_current_user
from campus.db.models import User
from campus.exceptions import AccessDeniedError

SUPER_ADMIN = "Super Admin"
ADMIN = "Admin"
TEACHER = "Teacher"
STUDENT = "Student"
PARENT = "Parent"

STAFF = frozenset({ADMIN, TEACHER})
CAMPUS_MEMBERS = frozenset({ADMIN, TEACHER, STUDENT, PARENT})
EVERYONE = CAMPUS_MEMBERS | {SUPER_ADMIN}

POLICY: dict[tuple[str, str], frozenset[str]] = {
    # Platform
    ("campus", "create"): frozenset({SUPER_ADMIN}),
    ("campus", "read"): frozenset({SUPER_ADMIN}),
    ("campus", "update"): frozenset({SUPER_ADMIN}),
    ("analytics", "read"): frozenset({SUPER_ADMIN}),
    # People
    ("user", "create"): frozenset({ADMIN}),
    ("user", "read"): STAFF,
    ("user", "update"): frozenset({ADMIN}),
    ("user", "delete"): frozenset({ADMIN}),
    # Classes
    ("class", "create"): frozenset({ADMIN}),
    ("class", "read"): CAMPUS_MEMBERS,
    ("class", "update"): frozenset({ADMIN}),
    ("class", "delete"): frozenset({ADMIN}),
    ("class", "manage_students"): STAFF,
    # Courses
    ("course", "create"): STAFF,
    ("course", "read"): CAMPUS_MEMBERS,
    ("course", "update"): STAFF,
    ("course", "delete"): frozenset({ADMIN}),
    ("enrollment", "create"): frozenset({ADMIN, TEACHER, STUDENT}),
    ("enrollment", "read"): STAFF,
    ("enrollment", "read_own"): frozenset({STUDENT}),
    ("enrollment", "update"): STAFF,
    ("progress", "create"): frozenset({STUDENT}),
    ("progress", "read"): frozenset({ADMIN, TEACHER, STUDENT}),
    # Attendance
    ("attendance", "create"): STAFF,
    ("attendance", "update"): STAFF,
    ("attendance", "read"): CAMPUS_MEMBERS,
    ("attendance", "report"): STAFF,
    # Assignments
    ("assignment", "create"): STAFF,
    ("assignment", "read"): CAMPUS_MEMBERS,
    ("assignment", "update"): STAFF,
    ("assignment", "delete"): STAFF,
    ("submission", "create"): frozenset({STUDENT}),
    ("submission", "read"): STAFF,
    ("submission", "grade"): STAFF,
    # Chat & sync
    ("chat", "create_room"): CAMPUS_MEMBERS,
    ("chat", "read"): CAMPUS_MEMBERS,
    ("chat", "send"): CAMPUS_MEMBERS,
    ("chat", "manage_members"): CAMPUS_MEMBERS,
    ("media", "upload"): CAMPUS_MEMBERS,
    ("device", "manage"): CAMPUS_MEMBERS,
    ("sync", "read"): CAMPUS_MEMBERS,
    # Calls
    ("call", "create"): CAMPUS_MEMBERS,
    ("call", "read"): CAMPUS_MEMBERS,
    ("call", "update"): CAMPUS_MEMBERS,
    # Personal
    ("reminder", "manage"): CAMPUS_MEMBERS,
    ("notification", "read"): EVERYONE,
}


def is_allowed(role: str, resource: str, action: str) -> bool:
    """Unknown (resource, action) pairs are denied."""
    return role in POLICY.get((resource, action), frozenset())


def check_permission(user: User, resource: str, action: str) -> None:
    if not is_allowed(user.user_type, resource, action):
        msg = f"{user.user_type} cannot {action} {resource}"
        raise AccessDeniedError(msg)


def require_permission(resource: str, action: str) -> Callable[..., Awaitable[User]]:
    """FastAPI dependency factory: authenticate, then check the policy table.

    Usage::

        @router.post("")
        async def create(user: User = Depends(require_permission("course", "create"))): ...
    """

    async def _dependency(user: User = Depends(get_current_user)) -> User:  # noqa: B008
        check_permission(user, resource, action)
        return user

    return _dependency
