from datetime import datetime
from enum import Enum
from typing import List, Optional

from fastapi import HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase

from elevateu.core.utils import generate_id, search_regex
from elevateu.courses.models import CourseStatus


def _plain(value):
    return value.value if isinstance(value, Enum) else value


PUBLIC_COURSE_QUERY = {"status": CourseStatus.APPROVED.value, "is_published": True}

# ==================== CONTENT ====================

def build_modules(modules: List[dict]) -> List[dict]:
    """Assign ids to new modules / lessons, keep the ones already present"""
    built = []
    for module in modules or []:
        lessons = []
        for lesson in module.get("lessons") or []:
            lessons.append({
                "lesson_id": lesson.get("lesson_id") or generate_id("LSN"),
                "title": lesson["title"],
                "description": lesson.get("description"),
                "video_url": lesson.get("video_url"),
                "duration": lesson.get("duration"),
                "is_free": bool(lesson.get("is_free", False)),
            })
        built.append({
            "module_id": module.get("module_id") or generate_id("MOD"),
            "title": module["title"],
            "description": module.get("description"),
            "lessons": lessons,
        })
    return built


def lesson_ids(course: dict) -> List[str]:
    return [lesson["lesson_id"] for module in course.get("modules", []) for lesson in module.get("lessons", [])]


def find_lesson(course: dict, lesson_id: str) -> Optional[tuple]:
    """Returns (module, lesson) or None"""
    for module in course.get("modules", []):
        for lesson in module.get("lessons", []):
            if lesson["lesson_id"] == lesson_id:
                return module, lesson
    return None


def hide_locked_videos(course: dict) -> dict:
    """Catalog view: only free preview lessons keep their video url"""
    for module in course.get("modules", []):
        for lesson in module.get("lessons", []):
            if not lesson.get("is_free"):
                lesson["video_url"] = None
    return course


def publish_errors(course: dict) -> List[str]:
    """Completeness check run before a course can be sent for review"""
    errors = []
    if not (course.get("title") or "").strip():
        errors.append("Title is required")
    if not (course.get("description") or "").strip():
        errors.append("Description is required")
    if not course.get("category_id"):
        errors.append("Category is required")
    if course.get("price") is None or course.get("price") < 0:
        errors.append("Price must be zero or more")
    if not course.get("thumbnail"):
        errors.append("Thumbnail is required")

    modules = course.get("modules") or []
    if not modules:
        errors.append("At least one module is required")
    for index, module in enumerate(modules, start=1):
        lessons = module.get("lessons") or []
        if not lessons:
            errors.append(f"Module {index} must have at least one lesson")
        for lesson_index, lesson in enumerate(lessons, start=1):
            if not lesson.get("video_url"):
                errors.append(f"Module {index}, lesson {lesson_index} is missing a video")
    return errors

# ==================== COURSE CRUD ====================

async def create_course(db: AsyncIOMotorDatabase, data: dict, tutor_id: str) -> dict:
    now = datetime.utcnow()
    course = {
        "course_id": generate_id("CRS"),
        "title": data["title"],
        "description": data.get("description"),
        "tutor_id": tutor_id,
        "category_id": data.get("category_id"),
        "price": data.get("price", 0),
        "discount": data.get("discount", 0),
        "thumbnail": data.get("thumbnail"),
        "level": _plain(data.get("level")),
        "duration": data.get("duration"),
        "has_certification": data.get("has_certification", False),
        "modules": build_modules(data.get("modules", [])),
        "status": CourseStatus.DRAFT.value,
        "is_published": False,
        "rejection_reason": None,
        "enroll_count": 0,
        "rating": 0.0,
        "rating_count": 0,
        "published_at": None,
        "created_at": now,
        "updated_at": now,
    }
    await db.courses.insert_one(course)
    await db.tutors.update_one({"tutor_id": tutor_id}, {"$inc": {"course_count": 1}})
    return course


async def get_course(db: AsyncIOMotorDatabase, course_id: str) -> Optional[dict]:
    return await db.courses.find_one({"course_id": course_id}, {"_id": 0})


async def get_tutor_course(db: AsyncIOMotorDatabase, course_id: str, tutor_id: str) -> dict:
    course = await db.courses.find_one({"course_id": course_id, "tutor_id": tutor_id}, {"_id": 0})
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    return course


async def get_public_course(db: AsyncIOMotorDatabase, course_id: str) -> dict:
    course = await db.courses.find_one({"course_id": course_id, **PUBLIC_COURSE_QUERY}, {"_id": 0})
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    return course


async def title_exists(db: AsyncIOMotorDatabase, title: str, exclude_course_id: Optional[str] = None) -> bool:
    query = {"title": {"$regex": f"^{search_regex(title)['$regex']}$", "$options": "i"}}
    if exclude_course_id:
        query["course_id"] = {"$ne": exclude_course_id}
    return await db.courses.find_one(query, {"_id": 1}) is not None


async def ensure_category(db: AsyncIOMotorDatabase, category_id: Optional[str]):
    if category_id and not await db.categories.find_one({"category_id": category_id, "is_active": True}, {"_id": 1}):
        raise HTTPException(status_code=400, detail="Category not found or inactive")


async def update_course(db: AsyncIOMotorDatabase, course: dict, changes: dict) -> dict:
    """
    Apply tutor edits.

    Raises:
        400: Course is waiting for review
        409: Title already used
    """
    if course["status"] == CourseStatus.PENDING.value:
        raise HTTPException(status_code=400, detail="Course is under review and cannot be edited")

    if "title" in changes and await title_exists(db, changes["title"], course["course_id"]):
        raise HTTPException(status_code=409, detail="A course with this title already exists")

    if "category_id" in changes:
        await ensure_category(db, changes["category_id"])

    if changes.get("level") is not None:
        changes["level"] = _plain(changes["level"])

    if "modules" in changes:
        changes["modules"] = build_modules(changes["modules"])

    changes["updated_at"] = datetime.utcnow()
    await db.courses.update_one({"course_id": course["course_id"]}, {"$set": changes})
    return await get_course(db, course["course_id"])


async def count_enrollments(db: AsyncIOMotorDatabase, course_id: str) -> int:
    return await db.enrolled_courses.count_documents({"course_id": course_id})


async def delete_course(db: AsyncIOMotorDatabase, course: dict):
    """
    Raises:
        409: Students are enrolled
    """
    if await count_enrollments(db, course["course_id"]):
        raise HTTPException(status_code=409, detail="Course has enrolled students and cannot be deleted")

    await db.courses.delete_one({"course_id": course["course_id"]})
    await db.tutors.update_one({"tutor_id": course["tutor_id"]}, {"$inc": {"course_count": -1}})
    await db.applied_coupons.delete_many({"course_id": course["course_id"]})
    await db.users.update_many({}, {"$pull": {"bookmarks": course["course_id"], "cart": course["course_id"]}})

# ==================== LISTING ====================

async def list_courses(db: AsyncIOMotorDatabase, query: dict, skip: int, limit: int,
                       sort: Optional[list] = None) -> tuple:
    total = await db.courses.count_documents(query)
    cursor = db.courses.find(query, {"_id": 0}).sort(sort or [("created_at", -1)]).skip(skip).limit(limit)
    return await cursor.to_list(length=limit), total


async def attach_names(db: AsyncIOMotorDatabase, courses: List[dict]) -> List[dict]:
    """Add tutor_name / category_name for display"""
    tutor_ids = list({c["tutor_id"] for c in courses if c.get("tutor_id")})
    category_ids = list({c["category_id"] for c in courses if c.get("category_id")})

    tutors = {}
    async for tutor in db.tutors.find({"tutor_id": {"$in": tutor_ids}}, {"tutor_id": 1, "first_name": 1, "last_name": 1}):
        tutors[tutor["tutor_id"]] = " ".join(p for p in (tutor.get("first_name"), tutor.get("last_name")) if p)

    categories = {}
    async for category in db.categories.find({"category_id": {"$in": category_ids}}, {"category_id": 1, "name": 1}):
        categories[category["category_id"]] = category["name"]

    for course in courses:
        course["tutor_name"] = tutors.get(course.get("tutor_id"))
        course["category_name"] = categories.get(course.get("category_id"))
    return courses
