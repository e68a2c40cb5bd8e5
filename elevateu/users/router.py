from fastapi import APIRouter, Depends, HTTPException, Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from elevateu.auth.guard import AccountContext, get_current_user
from elevateu.core.database import get_db
from elevateu.core.rate_limiting import limit
from elevateu.core.utils import success
from elevateu.coupons import pricing
from elevateu.courses import database as courses_db
from elevateu.courses.models import CourseRef
from elevateu.learning.service import get_enrollment

router = APIRouter(tags=["User - Bookmarks & Cart"])


async def _list_of(db: AsyncIOMotorDatabase, user_id: str, field: str) -> list:
    user = await db.users.find_one({"user_id": user_id}, {field: 1})
    return (user or {}).get(field, [])


# ==================== BOOKMARKS ====================

@router.post("/bookmark-course")
@limit("standard")
async def bookmark_course(
    request: Request,
    payload: CourseRef,
    user: AccountContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    await courses_db.get_public_course(db, payload.course_id)
    await db.users.update_one({"user_id": user.account_id}, {"$addToSet": {"bookmarks": payload.course_id}})
    return success("Course bookmarked")


@router.get("/bookmark-course")
@limit("read")
async def load_bookmarked_courses(
    request: Request,
    user: AccountContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    bookmarks = await _list_of(db, user.account_id, "bookmarks")
    courses = await db.courses.find(
        {"course_id": {"$in": bookmarks}, **courses_db.PUBLIC_COURSE_QUERY}, {"_id": 0, "modules": 0},
    ).to_list(length=None)
    await courses_db.attach_names(db, courses)
    return success("Bookmarked courses loaded", courses)


@router.get("/isBookmarked-course/{course_id}")
@limit("read")
async def is_bookmarked(
    request: Request,
    course_id: str,
    user: AccountContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    bookmarks = await _list_of(db, user.account_id, "bookmarks")
    return success("Bookmark checked", {"isBookmarked": course_id in bookmarks})


@router.patch("/bookmark-course/{course_id}")
@limit("standard")
async def remove_bookmark(
    request: Request,
    course_id: str,
    user: AccountContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    await db.users.update_one({"user_id": user.account_id}, {"$pull": {"bookmarks": course_id}})
    return success("Bookmark removed")


# ==================== CART ====================

@router.post("/cart")
@limit("standard")
async def add_to_cart(
    request: Request,
    payload: CourseRef,
    user: AccountContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    await courses_db.get_public_course(db, payload.course_id)
    if await get_enrollment(db, user.account_id, payload.course_id):
        raise HTTPException(status_code=409, detail="Already enrolled in this course")

    await db.users.update_one({"user_id": user.account_id}, {"$addToSet": {"cart": payload.course_id}})
    return success("Course added to cart")


@router.get("/cart/{course_id}")
@limit("read")
async def cart_details(
    request: Request,
    course_id: str,
    user: AccountContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """Checkout summary for one course"""
    course = await courses_db.get_public_course(db, course_id)
    courses_db.hide_locked_videos(course)
    await courses_db.attach_names(db, [course])

    coupon = await pricing.applied_coupon(db, user.account_id, course_id)
    cart = await _list_of(db, user.account_id, "cart")
    return success("Cart details loaded", {
        "course": course,
        "pricing": await pricing.price_for_user(db, course, user.account_id),
        "applied_coupon": coupon["code"] if coupon else None,
        "in_cart": course_id in cart,
    })
