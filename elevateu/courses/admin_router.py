from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from elevateu.auth.guard import AccountContext, get_current_admin
from elevateu.core.database import get_db
from elevateu.core.logger import api_logger
from elevateu.core.rate_limiting import limit
from elevateu.core.utils import success, page_params, page_meta, search_regex
from elevateu.courses import database as courses_db
from elevateu.courses.models import (
    AssignCategory, CourseReview, CourseStatus, CourseStatusChange, ReviewAction, StatusAction,
)
from elevateu.notifications.models import NotificationType
from elevateu.notifications.service import create_notification

router = APIRouter(tags=["Admin - Courses"])


async def _require_course(db: AsyncIOMotorDatabase, course_id: str) -> dict:
    course = await courses_db.get_course(db, course_id)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    return course


@router.get("/pending-request")
@limit("read")
async def load_pending_requests(
    request: Request,
    page: int = 1,
    limit: int = 10,
    admin: AccountContext = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    page, limit, skip = page_params(page, limit)
    courses, total = await courses_db.list_courses(
        db, {"status": CourseStatus.PENDING.value}, skip, limit, sort=[("publish_requested_at", 1)],
    )
    await courses_db.attach_names(db, courses)
    return success("Pending requests loaded", courses, pagination=page_meta(total, page, limit))


@router.post("/verify-course")
@limit("standard")
async def approve_or_reject_course(
    request: Request,
    payload: CourseReview,
    admin: AccountContext = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """Approve (publish) or reject (back to draft with a reason) a pending course"""
    course = await _require_course(db, payload.course_id)
    now = datetime.utcnow()

    if payload.action == ReviewAction.APPROVE:
        changes = {
            "status": CourseStatus.APPROVED.value,
            "is_published": True,
            "rejection_reason": None,
            "published_at": course.get("published_at") or now,
        }
        notification_type = NotificationType.COURSE_APPROVED
        message = f"Your course '{course['title']}' has been approved and published"
    else:
        changes = {
            "status": CourseStatus.DRAFT.value,
            "is_published": False,
            "rejection_reason": payload.reason.strip(),
        }
        notification_type = NotificationType.COURSE_REJECTED
        message = f"Your course '{course['title']}' was rejected: {payload.reason.strip()}"

    changes["reviewed_at"] = now
    changes["updated_at"] = now
    result = await db.courses.update_one(
        {"course_id": course["course_id"], "status": CourseStatus.PENDING.value},
        {"$set": changes},
    )
    if result.modified_count == 0:
        raise HTTPException(status_code=400, detail="Course is not waiting for review")

    await create_notification(db, course["tutor_id"], "tutor", notification_type, message, course["course_id"])
    api_logger.info("Course %s %sd by %s", course["course_id"], payload.action.value, admin.account_id)
    return success(f"Course {payload.action.value}d successfully", await courses_db.get_course(db, course["course_id"]))


@router.get("/view-courses")
@limit("read")
async def load_courses(
    request: Request,
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    status: Optional[CourseStatus] = None,
    admin: AccountContext = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    page, limit, skip = page_params(page, limit)
    query = {}
    if search:
        query["title"] = search_regex(search)
    if status:
        query["status"] = status.value

    courses, total = await courses_db.list_courses(db, query, skip, limit)
    await courses_db.attach_names(db, courses)
    return success("Courses loaded", courses, pagination=page_meta(total, page, limit))


@router.post("/assign-category")
@limit("standard")
async def assign_category(
    request: Request,
    payload: AssignCategory,
    admin: AccountContext = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    await _require_course(db, payload.course_id)
    await courses_db.ensure_category(db, payload.category_id)
    await db.courses.update_one(
        {"course_id": payload.course_id},
        {"$set": {"category_id": payload.category_id, "updated_at": datetime.utcnow()}},
    )
    return success("Category assigned", await courses_db.get_course(db, payload.course_id))


@router.post("/course-status")
@limit("standard")
async def allow_or_suspend_course(
    request: Request,
    payload: CourseStatusChange,
    admin: AccountContext = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """Suspend an approved course or allow a suspended one back"""
    course = await _require_course(db, payload.course_id)

    if payload.action == StatusAction.SUSPEND:
        expected, target, published = CourseStatus.APPROVED, CourseStatus.SUSPENDED, False
    else:
        expected, target, published = CourseStatus.SUSPENDED, CourseStatus.APPROVED, True

    result = await db.courses.update_one(
        {"course_id": course["course_id"], "status": expected.value},
        {"$set": {"status": target.value, "is_published": published, "updated_at": datetime.utcnow()}},
    )
    if result.modified_count == 0:
        raise HTTPException(status_code=400, detail=f"Only {expected.value} courses can be changed this way")

    return success(f"Course {target.value}", await courses_db.get_course(db, course["course_id"]))


@router.delete("/delete-course/{course_id}")
@limit("standard")
async def delete_course(
    request: Request,
    course_id: str,
    admin: AccountContext = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    course = await _require_course(db, course_id)
    await courses_db.delete_course(db, course)
    api_logger.info("Course %s deleted by admin %s", course_id, admin.account_id)
    return success("Course deleted successfully")
