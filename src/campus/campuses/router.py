"""Super-admin router: /api/super-admin/*."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from campus.auth.policy import require_permission
from campus.auth.schemas import UserResponse
from campus.campuses.schemas import (
    AnalyticsResponse,
    CampusCreateRequest,
    CampusListResponse,
    CampusOnboardResponse,
    CampusResponse,
    CampusUpdateRequest,
    SchoolHealthEntry,
)
from campus.campuses.service import (
    get_campus,
    list_campuses,
    onboard_campus,
    platform_analytics,
    school_health,
    update_campus,
)
from campus.config import get_settings
from campus.database import get_session
from campus.db.models import User
from campus.email.service import get_email_service

logger = structlog.get_logger()

router = APIRouter(prefix="/api/super-admin", tags=["Super Admin"])


@router.post("/campuses", response_model=CampusOnboardResponse, status_code=201)
async def create_campus(
    body: CampusCreateRequest,
    _user: User = Depends(require_permission("campus", "create")),
    db: AsyncSession = Depends(get_session),
) -> CampusOnboardResponse:
    """Onboard a campus with its first admin, then send the welcome email (best effort)."""
    campus, admin = await onboard_campus(
        db,
        name=body.name,
        code=body.code,
        contact_email=body.contact_email,
        phone=body.phone,
        address=body.address,
        admin_email=body.admin.email,
        admin_password=body.admin.password,
        admin_first_name=body.admin.first_name,
        admin_last_name=body.admin.last_name,
    )
    await db.commit()

    sent = await get_email_service().send_template(
        admin.email,
        "campus_welcome",
        {
            "campus_name": campus.name,
            "admin_name": admin.full_name,
            "admin_email": admin.email,
            "login_url": f"{get_settings().frontend_base_url}/login",
        },
    )
    if not sent:
        logger.warning("campus_welcome_email_not_sent", campus_id=campus.id)

    return CampusOnboardResponse(
        campus=CampusResponse.model_validate(campus),
        admin=UserResponse.model_validate(admin),
        welcome_email_sent=sent,
    )


@router.get("/campuses", response_model=CampusListResponse)
async def get_campuses(
    is_active: bool | None = Query(None),
    search: str | None = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    _user: User = Depends(require_permission("campus", "read")),
    db: AsyncSession = Depends(get_session),
) -> CampusListResponse:
    campuses, total = await list_campuses(db, is_active=is_active, search=search, page=page, per_page=per_page)
    return CampusListResponse(
        campuses=[CampusResponse.model_validate(c) for c in campuses],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/campuses/{campus_id}", response_model=CampusResponse)
async def get_one_campus(
    campus_id: str,
    _user: User = Depends(require_permission("campus", "read")),
    db: AsyncSession = Depends(get_session),
) -> CampusResponse:
    return CampusResponse.model_validate(await get_campus(db, campus_id))


@router.patch("/campuses/{campus_id}", response_model=CampusResponse)
async def patch_campus(
    campus_id: str,
    body: CampusUpdateRequest,
    _user: User = Depends(require_permission("campus", "update")),
    db: AsyncSession = Depends(get_session),
) -> CampusResponse:
    campus = await update_campus(db, campus_id, body.model_dump(exclude_unset=True))
    await db.commit()
    return CampusResponse.model_validate(campus)


@router.get("/analytics", response_model=AnalyticsResponse)
async def analytics(
    _user: User = Depends(require_permission("analytics", "read")),
    db: AsyncSession = Depends(get_session),
) -> AnalyticsResponse:
    return AnalyticsResponse(**await platform_analytics(db))


@router.get("/school-health", response_model=list[SchoolHealthEntry])
async def health_report(
    _user: User = Depends(require_permission("analytics", "read")),
    db: AsyncSession = Depends(get_session),
) -> list[SchoolHealthEntry]:
    return [SchoolHealthEntry(**row) for row in await school_health(db)]
