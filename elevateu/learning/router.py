from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, validator

from elevateu.auth.guard import AccountContext, get_current_user
from elevateu.core.database import get_db
from elevateu.core.rate_limiting import limit
from elevateu.core.utils import success
from elevateu.coupons import pricing
from elevateu.courses import database as courses_db
from elevateu.courses.models import CourseRef
from elevateu.learning import service

router = APIRouter(tags=["User - Learning"])


class ProgressTracker(BaseModel):
    lesson_id: str


class LessonStatus(BaseModel):
    course_id: str
    lesson_id: Optional[str] = None
    module_id: Optional[str] = None
    completed: bool = True

    @validator("module_id", always=True)
    def lesson_or_module(cls, v, values):
        if not v and not values.get("lesson_id"):
            raise ValueError("lesson_id or module_id is required")
        return v


async def _enrolled_course(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> tuple:
    enrollment = await service.require_enrollment(db, user_id, course_id)
    course = await courses_db.get_course(db, course_id)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    return enrollment, course


@router.post("/enroll-course", status_code=201)
@limit("standard")
async def enroll_in_course(
    request: Request,
    payload: CourseRef,
    user: AccountContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """Free courses only; paid courses go through create-order"""
    course = await courses_db.get_public_course(db, payload.course_id)
    if await service.get_enrollment(db, user.account_id, course["course_id"]):
        raise HTTPException(status_code=409, detail="Already enrolled in this course")

    if pricing.calculate_price(course)["final_price"] > 0:
        raise HTTPException(status_code=402, detail="This course requires payment")

    enrollment, _ = await service.enroll_user(db, user.account_id, course)
    return success("Enrolled successfully", enrollment)


@router.get("/enrolled-courses")
@limit("read")
async def load_enrolled_courses(
    request: Request,
    user: AccountContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    enrollments = await db.enrolled_courses.find({"user_id": user.account_id}, {"_id": 0}).sort("enrolled_at", -1).to_list(length=None)
    courses = {}
    async for course in db.courses.find({"course_id": {"$in": [e["course_id"] for e in enrollments]}}, {"_id": 0, "modules": 0}):
        courses[course["course_id"]] = course
    await courses_db.attach_names(db, list(courses.values()))

    result = []
    for enrollment in enrollments:
        course = courses.get(enrollment["course_id"])
        if course:
            result.append({**enrollment, "course": course})
    return success("Enrolled courses loaded", result)


@router.get("/check-enrollment/{course_id}")
@limit("read")
async def is_course_enrolled(
    request: Request,
    course_id: str,
    user: AccountContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    enrolled = await service.get_enrollment(db, user.account_id, course_id) is not None
    return success("Enrollment checked", {"isEnrolled": enrolled})


@router.patch("/update-progress-tracker/{course_id}")
@limit("standard")
async def update_progress_tracker(
    request: Request,
    course_id: str,
    payload: ProgressTracker,
    user: AccountContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """Remember the lesson the user is currently on"""
    enrollment, course = await _enrolled_course(db, user.account_id, course_id)
    if not courses_db.find_lesson(course, payload.lesson_id):
        raise HTTPException(status_code=404, detail="Lesson not found")

    await db.enrolled_courses.update_one(
        {"enrollment_id": enrollment["enrollment_id"]},
        {"$set": {"current_lesson": payload.lesson_id}},
    )
    return success("Progress tracker updated", {"current_lesson": payload.lesson_id})


@router.get("/enrolled-course/course-details/{course_id}")
@limit("read")
async def enrolled_course_details(
    request: Request,
    course_id: str,
    user: AccountContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """Full course content, video urls included"""
    enrollment, course = await _enrolled_course(db, user.account_id, course_id)
    await courses_db.attach_names(db, [course])
    return success("Course loaded", {"course": course, "enrollment": enrollment})


@router.get("/enrolled-course/current-status/{course_id}")
@limit("read")
async def progress_status(
    request: Request,
    course_id: str,
    user: AccountContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    enrollment = await service.require_enrollment(db, user.account_id, course_id)
    fields = ("progress", "completed_lessons", "completed_modules", "current_lesson", "is_completed", "certificate")
    return success("Progress loaded", {field: enrollment.get(field) for field in fields})


@router.put("/enrolled-course/lesson-status")
@limit("standard")
async def change_lesson_or_module_status(
    request: Request,
    payload: LessonStatus,
    user: AccountContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """Mark a lesson (or every lesson of a module) complete or incomplete"""
    _, course = await _enrolled_course(db, user.account_id, payload.course_id)

    if payload.module_id:
        module = next((m for m in course.get("modules", []) if m["module_id"] == payload.module_id), None)
        if not module:
            raise HTTPException(status_code=404, detail="Module not found")
        lesson_ids: List[str] = [lesson["lesson_id"] for lesson in module.get("lessons", [])]
    else:
        if not courses_db.find_lesson(course, payload.lesson_id):
            raise HTTPException(status_code=404, detail="Lesson not found")
        lesson_ids = [payload.lesson_id]

    enrollment = await service.set_lesson_status(db, user.account_id, payload.course_id, lesson_ids, payload.completed)
    return success("Progress updated", enrollment)


@router.get("/lesson")
@limit("read")
async def load_selected_lesson(
    request: Request,
    course_id: str,
    lesson_id: str,
    user: AccountContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    enrollment, course = await _enrolled_course(db, user.account_id, course_id)
    found = courses_db.find_lesson(course, lesson_id)
    if not found:
        raise HTTPException(status_code=404, detail="Lesson not found")

    module, lesson = found
    return success("Lesson loaded", {
        **lesson,
        "module_id": module["module_id"],
        "module_title": module["title"],
        "is_completed": lesson_id in enrollment.get("completed_lessons", []),
    })


@router.put("/reset-progress/{course_id}")
@limit("standard")
async def reset_course_progress(
    request: Request,
    course_id: str,
    user: AccountContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return success("Course progress reset", await service.reset_progress(db, user.account_id, course_id))


@router.get("/certificates")
@limit("read")
async def load_certificates(
    request: Request,
    user: AccountContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return success("Certificates loaded", await service.list_certificates(db, user.account_id))
