"""
Checkout pricing and coupon usage
All amounts are rupees rounded to 2 decimals.
"""

from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase

from elevateu.core.logger import payment_logger
from elevateu.core.utils import round_money
from elevateu.coupons.schemas import DiscountType

CLAIM_RETRIES = 5


def coupon_problem(coupon: dict, user_id: str, amount: float) -> Optional[str]:
    """Why `coupon` cannot be used by `user_id` on `amount`, or None if it can"""
    if not coupon.get("is_active", True):
        return "Coupon is not active"
    if coupon.get("expires_at") and coupon["expires_at"] <= datetime.utcnow():
        return "Coupon has expired"
    if coupon.get("usage_limit") and coupon.get("usage_count", 0) >= coupon["usage_limit"]:
        return "Coupon usage limit reached"
    if user_id in coupon.get("used_by", []):
        return "You have already used this coupon"
    if amount < coupon.get("min_amount", 0):
        return f"Minimum purchase amount for this coupon is {coupon['min_amount']}"
    return None


def coupon_discount(coupon: dict, amount: float) -> float:
    if coupon["discount_type"] == DiscountType.PERCENT.value:
        discount = amount * coupon["discount"] / 100
        if coupon.get("max_discount"):
            discount = min(discount, coupon["max_discount"])
    else:
        discount = coupon["discount"]
    return round_money(min(discount, amount))


def calculate_price(course: dict, coupon: Optional[dict] = None) -> dict:
    """
    Price breakdown for one course:
    course discount first, then the coupon on the discounted price.
    """
    original_price = round_money(course.get("price") or 0)
    course_discount = round_money(original_price * (course.get("discount") or 0) / 100)
    discounted_price = round_money(original_price - course_discount)

    discount = coupon_discount(coupon, discounted_price) if coupon else 0.0
    return {
        "original_price": original_price,
        "course_discount": course_discount,
        "discounted_price": discounted_price,
        "coupon_code": coupon["code"] if coupon else None,
        "coupon_discount": discount,
        "final_price": round_money(max(discounted_price - discount, 0)),
    }


async def find_coupon(db: AsyncIOMotorDatabase, code: str) -> Optional[dict]:
    return await db.coupons.find_one({"code": code.strip().upper()}, {"_id": 0})


async def applied_coupon(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> Optional[dict]:
    """The coupon the user applied to this course, if it is still usable"""
    applied = await db.applied_coupons.find_one({"user_id": user_id, "course_id": course_id}, {"_id": 0})
    if not applied:
        return None
    return await db.coupons.find_one({"coupon_id": applied["coupon_id"]}, {"_id": 0})


async def price_for_user(db: AsyncIOMotorDatabase, course: dict, user_id: str) -> dict:
    """Pricing with the user's applied coupon; an applied coupon that went stale is ignored"""
    base = calculate_price(course)
    coupon = await applied_coupon(db, user_id, course["course_id"])
    if coupon and coupon_problem(coupon, user_id, base["discounted_price"]) is None:
        return calculate_price(course, coupon)
    return base


async def claim_coupon(db: AsyncIOMotorDatabase, coupon_id: str, user_id: str) -> bool:
    """
    Record one use of the coupon by the user.
    Compare-and-swap on usage_count so the limit holds under concurrent checkouts.
    """
    for _ in range(CLAIM_RETRIES):
        coupon = await db.coupons.find_one({"coupon_id": coupon_id})
        if not coupon or user_id in coupon.get("used_by", []):
            return False
        count = coupon.get("usage_count", 0)
        if coupon.get("usage_limit") and count >= coupon["usage_limit"]:
            return False

        result = await db.coupons.update_one(
            {"coupon_id": coupon_id, "usage_count": count, "used_by": {"$ne": user_id}},
            {"$inc": {"usage_count": 1}, "$push": {"used_by": user_id}},
        )
        if result.modified_count:
            return True

    payment_logger.warning("Coupon %s claim for %s lost every retry", coupon_id, user_id)
    return False


def require_usable(coupon: Optional[dict], user_id: str, amount: float) -> dict:
    if not coupon:
        raise HTTPException(status_code=404, detail="Coupon not found")
    problem = coupon_problem(coupon, user_id, amount)
    if problem:
        raise HTTPException(status_code=400, detail=problem)
    return coupon
