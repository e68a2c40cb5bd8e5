from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from elevateu.auth.guard import AccountContext, get_current_tutor
from elevateu.core.database import get_db
from elevateu.core.logger import api_logger
from elevateu.core.rate_limiting import limit
from elevateu.core.utils import success, page_params, page_meta, search_regex
from elevateu.courses import database as courses_db
from elevateu.courses.models import CourseCreate, CourseUpdate, CourseRef, CourseStatus
from elevateu.notifications.models import NotificationType
from elevateu.notifications.service import notify_admins

router = APIRouter(tags=["Tutor - Courses"])


@router.post("/create-course", status_code=201)
@limit("standard")
async def create_course(
    request: Request,
    payload: CourseCreate,
    tutor: AccountContext = Depends(get_current_tutor),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """Create a draft course"""
    if await courses_db.title_exists(db, payload.title):
        raise HTTPException(status_code=409, detail="A course with this title already exists")
    await courses_db.ensure_category(db, payload.category_id)

    course = await courses_db.create_course(db, payload.dict(), tutor.account_id)
    api_logger.info("Course %s created by %s", course["course_id"], tutor.account_id)
    return success("Course created successfully", await courses_db.get_course(db, course["course_id"]))


@router.get("/courses")
@limit("read")
async def load_courses(
    request: Request,
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    status: Optional[CourseStatus] = None,
    tutor: AccountContext = Depends(get_current_tutor),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    page, limit, skip = page_params(page, limit)
    query = {"tutor_id": tutor.account_id}
    if search:
        query["title"] = search_regex(search)
    if status:
        query["status"] = status.value

    courses, total = await courses_db.list_courses(db, query, skip, limit)
    return success("Courses loaded", courses, pagination=page_meta(total, page, limit))


@router.get("/view-course/{course_id}")
@limit("read")
async def course_details(
    request: Request,
    course_id: str,
    tutor: AccountContext = Depends(get_current_tutor),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    course = await courses_db.get_tutor_course(db, course_id, tutor.account_id)
    await courses_db.attach_names(db, [course])
    return success("Course loaded", course)


@router.post("/update-course")
@limit("standard")
async def update_course(
    request: Request,
    payload: CourseUpdate,
    tutor: AccountContext = Depends(get_current_tutor),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    course = await courses_db.get_tutor_course(db, payload.course_id, tutor.account_id)
    changes = payload.dict(exclude_unset=True, exclude_none=True, exclude={"course_id"})
    if not changes:
        raise HTTPException(status_code=400, detail="No changes provided")

    updated = await courses_db.update_course(db, course, changes)
    return success("Course updated successfully", updated)


@router.post("/publish-course")
@limit("standard")
async def request_publish(
    request: Request,
    payload: CourseRef,
    tutor: AccountContext = Depends(get_current_tutor),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """
    Send a draft for admin review.

    Raises:
        403: Tutor profile not verified by an admin
        400: Wrong status, or the course is incomplete (errors listed)
    """
    if not tutor.profile.get("is_admin_verified"):
        raise HTTPException(status_code=403, detail="Your profile must be verified before publishing courses")

    course = await courses_db.get_tutor_course(db, payload.course_id, tutor.account_id)
    if course["status"] != CourseStatus.DRAFT.value:
        raise HTTPException(status_code=400, detail=f"Course is already {course['status']}")

    errors = courses_db.publish_errors(course)
    if errors:
        raise HTTPException(status_code=400, detail={"message": "Course is incomplete", "errors": errors})

    result = await db.courses.update_one(
        {"course_id": course["course_id"], "status": CourseStatus.DRAFT.value},
        {"$set": {
            "status": CourseStatus.PENDING.value,
            "rejection_reason": None,
            "publish_requested_at": datetime.utcnow(),
            "updated_at": datetime.utcnow(),
        }},
    )
    if result.modified_count == 0:
        raise HTTPException(status_code=409, detail="Course status changed, please reload")

    await notify_admins(
        db, NotificationType.PUBLISH_REQUEST,
        f"{tutor.display_name} requested to publish '{course['title']}'",
        reference_id=course["course_id"],
    )
    return success("Publish request sent for review", await courses_db.get_course(db, course["course_id"]))


@router.delete("/delete-course/{course_id}")
@limit("standard")
async def delete_course(
    request: Request,
    course_id: str,
    tutor: AccountContext = Depends(get_current_tutor),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    course = await courses_db.get_tutor_course(db, course_id, tutor.account_id)
    await courses_db.delete_course(db, course)
    return success("Course deleted successfully")


@router.get("/check-title")
@limit("read")
async def course_title_exists(
    request: Request,
    title: str,
    course_id: Optional[str] = None,
    tutor: AccountContext = Depends(get_current_tutor),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    exists = await courses_db.title_exists(db, title, course_id)
    return success("Title already exists" if exists else "Title available", {"exists": exists})
