from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from elevateu.auth.guard import AccountContext, get_current_user
from elevateu.core.database import get_db
from elevateu.core.rate_limiting import limit
from elevateu.core.utils import success
from elevateu.coupons import pricing
from elevateu.coupons.schemas import ApplyCouponRequest
from elevateu.courses import database as courses_db

router = APIRouter(tags=["User - Coupons"])

COUPON_FIELDS = ("coupon_id", "code", "discount_type", "discount", "max_discount", "min_amount", "expires_at")


def _coupon_view(coupon: dict) -> dict:
    return {field: coupon.get(field) for field in COUPON_FIELDS}


@router.get("/get-pricing/{course_id}")
@limit("read")
async def get_pricing(
    request: Request,
    course_id: str,
    user: AccountContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    course = await courses_db.get_public_course(db, course_id)
    return success("Pricing loaded", await pricing.price_for_user(db, course, user.account_id))


@router.get("/get-applied-coupon/{course_id}")
@limit("read")
async def fetch_applied_coupon(
    request: Request,
    course_id: str,
    user: AccountContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    coupon = await pricing.applied_coupon(db, user.account_id, course_id)
    return success("Applied coupon loaded", _coupon_view(coupon) if coupon else None)


@router.post("/apply-coupon")
@limit("standard")
async def apply_coupon(
    request: Request,
    payload: ApplyCouponRequest,
    user: AccountContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """
    Validate the code against the course price and remember it for checkout.

    Raises:
        404: Course or coupon not found
        400: Coupon not usable (expired, exhausted, already used, minimum not met)
    """
    course = await courses_db.get_public_course(db, payload.course_id)
    base = pricing.calculate_price(course)
    if base["discounted_price"] <= 0:
        raise HTTPException(status_code=400, detail="Coupons cannot be applied to free courses")

    coupon = pricing.require_usable(await pricing.find_coupon(db, payload.code), user.account_id, base["discounted_price"])

    await db.applied_coupons.update_one(
        {"user_id": user.account_id, "course_id": course["course_id"]},
        {"$set": {"coupon_id": coupon["coupon_id"], "code": coupon["code"], "applied_at": datetime.utcnow()}},
        upsert=True,
    )
    return success("Coupon applied successfully", {
        "coupon": _coupon_view(coupon),
        "pricing": pricing.calculate_price(course, coupon),
    })


@router.delete("/remove-applied-coupon/{course_id}")
@limit("standard")
async def remove_applied_coupon(
    request: Request,
    course_id: str,
    user: AccountContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    result = await db.applied_coupons.delete_one({"user_id": user.account_id, "course_id": course_id})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="No coupon applied to this course")
    return success("Coupon removed")
