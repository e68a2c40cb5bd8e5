"""
Enrollment and learning progress
"""

from datetime import datetime
from typing import List, Optional

from fastapi import HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from elevateu.core.logger import api_logger
from elevateu.core.utils import generate_id, round_money
from elevateu.courses import database as courses_db
from elevateu.notifications.models import NotificationType
from elevateu.notifications.service import create_notification


async def get_enrollment(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> Optional[dict]:
    return await db.enrolled_courses.find_one({"user_id": user_id, "course_id": course_id}, {"_id": 0})


async def require_enrollment(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> dict:
    enrollment = await get_enrollment(db, user_id, course_id)
    if not enrollment:
        raise HTTPException(status_code=403, detail="You are not enrolled in this course")
    return enrollment


async def enroll_user(db: AsyncIOMotorDatabase, user_id: str, course: dict,
                      order_id: Optional[str] = None, price_paid: float = 0.0) -> tuple:
    """
    Returns (enrollment, created). The unique (user_id, course_id) index makes a
    second enrollment a no-op.
    """
    now = datetime.utcnow()
    enrollment = {
        "enrollment_id": generate_id("ENR"),
        "user_id": user_id,
        "course_id": course["course_id"],
        "tutor_id": course.get("tutor_id"),
        "order_id": order_id,
        "price_paid": round_money(price_paid),
        "completed_lessons": [],
        "completed_modules": [],
        "progress": 0.0,
        "current_lesson": None,
        "is_completed": False,
        "completed_at": None,
        "certificate": None,
        "enrolled_at": now,
        "updated_at": now,
    }
    try:
        await db.enrolled_courses.insert_one(enrollment)
    except DuplicateKeyError:
        return await get_enrollment(db, user_id, course["course_id"]), False

    enrollment.pop("_id", None)
    await db.courses.update_one({"course_id": course["course_id"]}, {"$inc": {"enroll_count": 1}})
    await db.users.update_one({"user_id": user_id}, {"$pull": {"cart": course["course_id"]}})
    api_logger.info("User %s enrolled in %s", user_id, course["course_id"])
    return enrollment, True


def compute_progress(course: dict, completed_lessons: List[str]) -> dict:
    """Completed modules and percentage derived from the completed lesson ids"""
    all_lessons = courses_db.lesson_ids(course)
    valid = [lesson_id for lesson_id in completed_lessons if lesson_id in all_lessons]
    done = set(valid)

    completed_modules = [
        module["module_id"]
        for module in course.get("modules", [])
        if module.get("lessons") and all(lesson["lesson_id"] in done for lesson in module["lessons"])
    ]
    progress = round(len(done) / len(all_lessons) * 100, 2) if all_lessons else 0.0
    return {
        "completed_lessons": valid,
        "completed_modules": completed_modules,
        "progress": progress,
        "is_completed": bool(all_lessons) and len(done) == len(all_lessons),
    }


async def set_lesson_status(db: AsyncIOMotorDatabase, user_id: str, course_id: str,
                            lesson_ids: List[str], completed: bool) -> dict:
    """Mark lessons complete / incomplete and recompute module and course completion"""
    enrollment = await require_enrollment(db, user_id, course_id)
    course = await courses_db.get_course(db, course_id)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")

    completed_lessons = list(enrollment.get("completed_lessons", []))
    for lesson_id in lesson_ids:
        if completed and lesson_id not in completed_lessons:
            completed_lessons.append(lesson_id)
        elif not completed and lesson_id in completed_lessons:
            completed_lessons.remove(lesson_id)

    state = compute_progress(course, completed_lessons)
    now = datetime.utcnow()
    changes = dict(state, updated_at=now)

    just_completed = state["is_completed"] and not enrollment.get("is_completed")
    if just_completed:
        changes["completed_at"] = now
        if course.get("has_certification") and not enrollment.get("certificate"):
            changes["certificate"] = {"certificate_id": generate_id("CERT"), "issued_at": now}
    elif not state["is_completed"]:
        changes["completed_at"] = None

    await db.enrolled_courses.update_one({"enrollment_id": enrollment["enrollment_id"]}, {"$set": changes})

    if just_completed:
        await create_notification(
            db, user_id, "user", NotificationType.COURSE_COMPLETED,
            f"Congratulations! You completed '{course['title']}'", course_id,
        )
    return await get_enrollment(db, user_id, course_id)


async def reset_progress(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> dict:
    """Clear progress; an issued certificate is kept"""
    enrollment = await require_enrollment(db, user_id, course_id)
    await db.enrolled_courses.update_one(
        {"enrollment_id": enrollment["enrollment_id"]},
        {"$set": {
            "completed_lessons": [],
            "completed_modules": [],
            "progress": 0.0,
            "current_lesson": None,
            "is_completed": False,
            "completed_at": None,
            "updated_at": datetime.utcnow(),
        }},
    )
    return await get_enrollment(db, user_id, course_id)


async def list_certificates(db: AsyncIOMotorDatabase, user_id: str) -> List[dict]:
    enrollments = await db.enrolled_courses.find(
        {"user_id": user_id, "certificate": {"$ne": None}}, {"_id": 0},
    ).sort("completed_at", -1).to_list(length=None)

    courses = {}
    course_ids = [e["course_id"] for e in enrollments]
    async for course in db.courses.find({"course_id": {"$in": course_ids}}, {"_id": 0, "modules": 0}):
        courses[course["course_id"]] = course
    await courses_db.attach_names(db, list(courses.values()))

    certificates = []
    for enrollment in enrollments:
        course = courses.get(enrollment["course_id"], {})
        certificates.append({
            **enrollment["certificate"],
            "course_id": enrollment["course_id"],
            "course_title": course.get("title"),
            "tutor_name": course.get("tutor_name"),
            "completed_at": enrollment.get("completed_at"),
        })
    return certificates
