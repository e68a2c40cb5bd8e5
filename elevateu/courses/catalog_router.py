from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from elevateu.analytics import service as analytics
from elevateu.core.database import get_db
from elevateu.core.rate_limiting import limit
from elevateu.core.utils import success, page_params, page_meta, search_regex
from elevateu.courses import database as courses_db
from elevateu.courses.catalog import parse_filter, build_catalog_query

router = APIRouter(tags=["Catalog"])

CARD_FIELDS = {"_id": 0, "modules": 0}


@router.get("/load-categories")
@limit("public")
async def load_categories(request: Request, db: AsyncIOMotorDatabase = Depends(get_db)):
    categories = await db.categories.find({"is_active": True}, {"_id": 0, "name_key": 0}).sort("name", 1).to_list(length=None)
    return success("Categories loaded", categories)


@router.get("/courses")
@limit("public")
async def load_courses(
    request: Request,
    page: int = 1,
    limit: int = 12,
    filters: Optional[str] = Query(None, alias="filter"),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """Published courses; see elevateu.courses.catalog for the filter format"""
    page, limit, skip = page_params(page, limit)
    query, sort = build_catalog_query(parse_filter(filters))

    total = await db.courses.count_documents(query)
    courses = await db.courses.find(query, CARD_FIELDS).sort(sort).skip(skip).limit(limit).to_list(length=limit)
    await courses_db.attach_names(db, courses)
    return success("Courses loaded", courses, pagination=page_meta(total, page, limit))


@router.get("/top-categories")
@limit("public")
async def top_categories(request: Request, limit: int = 5, db: AsyncIOMotorDatabase = Depends(get_db)):
    return success("Top categories loaded", await analytics.best_selling_categories(db, limit))


@router.get("/top-courses")
@limit("public")
async def top_courses(request: Request, limit: int = 5, db: AsyncIOMotorDatabase = Depends(get_db)):
    return success("Top courses loaded", await analytics.best_selling_courses(db, limit))


@router.get("/courses/{course_id}")
@limit("public")
async def course_details(request: Request, course_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    course = await courses_db.get_public_course(db, course_id)
    courses_db.hide_locked_videos(course)
    await courses_db.attach_names(db, [course])
    return success("Course loaded", course)


@router.get("/course-titles")
@limit("public")
async def course_titles(request: Request, search: str = "", db: AsyncIOMotorDatabase = Depends(get_db)):
    """Autocomplete over published course titles"""
    query = dict(courses_db.PUBLIC_COURSE_QUERY)
    if search.strip():
        query["title"] = search_regex(search)
    titles = await db.courses.find(query, {"_id": 0, "course_id": 1, "title": 1}).sort("enroll_count", -1).limit(10).to_list(length=10)
    return success("Course titles loaded", titles)
