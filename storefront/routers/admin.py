"""Admin routes. Every route goes through the single require_admin dependency."""

import logging

import jwt
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.db.session import get_db
from storefront.schemas.auth import AuthUser, UserListing
from storefront.schemas.coaching import (
    AdminSessionCreate,
    CoachingServiceCreate,
    CoachingServiceOut,
    CoachingSessionOut,
    PlanCreate,
    PlanOut,
    SessionUpdate,
)
from storefront.schemas.courses import (
    CourseContent,
    CourseCreate,
    CourseDelete,
    CourseSummary,
    TemplateResult,
    TemplateSummary,
)
from storefront.services import admin_service, coaching_service, course_service, user_service
from storefront.services.auth_service import extract_token, require_admin

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])


# --- Coaching ---


@router.post("/coaching/create-service", response_model=CoachingServiceOut, status_code=201)
async def create_service(data: CoachingServiceCreate, db: AsyncSession = Depends(get_db)):
    return await coaching_service.create_service(db, data)


@router.delete("/coaching/delete-service")
async def delete_service(id: str = Query(min_length=1), db: AsyncSession = Depends(get_db)):
    await coaching_service.delete_service(db, id)
    return {"success": True}


@router.post("/coaching/create-plan", response_model=PlanOut, status_code=201)
async def create_plan(data: PlanCreate, db: AsyncSession = Depends(get_db)):
    return await coaching_service.create_plan(db, data)


@router.post("/coaching/create", response_model=CoachingSessionOut, status_code=201)
async def create_session(data: AdminSessionCreate, db: AsyncSession = Depends(get_db)):
    return await coaching_service.admin_create_session(db, data)


@router.get("/coaching/sessions", response_model=list[CoachingSessionOut])
async def all_sessions(db: AsyncSession = Depends(get_db)):
    return await coaching_service.list_all_sessions(db)


@router.patch("/coaching/sessions/{session_id}", response_model=CoachingSessionOut)
async def update_session(session_id: str, data: SessionUpdate, db: AsyncSession = Depends(get_db)):
    return await coaching_service.update_session(db, session_id, data)


@router.delete("/coaching/sessions/{session_id}")
async def delete_session(session_id: str, db: AsyncSession = Depends(get_db)):
    await coaching_service.delete_session(db, session_id)
    return {"success": True}


# --- Courses ---


@router.get("/course-templates", response_model=list[TemplateSummary])
async def course_templates():
    return course_service.list_templates()


@router.get("/courses", response_model=list[CourseSummary])
async def courses(db: AsyncSession = Depends(get_db)):
    return await course_service.list_courses(db)


@router.post("/courses", response_model=CourseContent, status_code=201)
async def create_course(data: CourseCreate, db: AsyncSession = Depends(get_db)):
    return await course_service.create_course(db, data)


@router.get("/courses/{course_id}", response_model=CourseContent)
async def course_detail(course_id: str, db: AsyncSession = Depends(get_db)):
    return await course_service.get_course(db, course_id)


@router.post("/courses/from-template/{key}", response_model=TemplateResult, status_code=201)
async def create_from_template(key: str, db: AsyncSession = Depends(get_db)):
    return await course_service.create_course_from_template(db, key)


@router.post("/create-courses")
async def create_courses(db: AsyncSession = Depends(get_db)):
    results = await course_service.create_all_templates(db)
    return {"success": True, "data": [r.model_dump(exclude_none=True) for r in results]}


@router.delete("/courses/delete")
async def delete_course(data: CourseDelete, db: AsyncSession = Depends(get_db)):
    await course_service.delete_course(db, data.course_id, data.product_id)
    return {"success": True}


# --- Users and diagnostics ---


@router.get("/users", response_model=list[UserListing])
async def users():
    return await user_service.list_users()


@router.get("/debug-role")
async def debug_role(
    request: Request,
    user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Where the caller's admin role comes from: token claims and profile row."""
    profile = await user_service.get_profile(db, user.id)
    token = extract_token(request)
    claims = jwt.decode(token, options={"verify_signature": False}) if token else {}
    return {
        "user_id": user.id,
        "email": user.email,
        "app_metadata": user.app_metadata,
        "user_metadata": user.user_metadata,
        "claim_role": user.claim_role,
        "profile_role": profile.role if profile else None,
        "token_role": claims.get("role"),
    }


@router.get("/stats")
async def stats(db: AsyncSession = Depends(get_db)):
    return await admin_service.get_stats(db)


@router.get("/purchases/recent")
async def recent_purchases(db: AsyncSession = Depends(get_db)):
    purchases = await admin_service.recent_purchases(db)
    return [
        {
            "id": p.id,
            "user_id": p.user_id,
            "product_id": p.product_id,
            "product_title": p.product.title if p.product else None,
            "amount": p.amount,
            "status": p.status,
            "test_mode": p.test_mode,
            "created_at": p.created_at,
        }
        for p in purchases
    ]
