from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from elevateu.auth.guard import AccountContext, get_current_admin
from elevateu.core.database import get_db
from elevateu.core.rate_limiting import limit
from elevateu.core.utils import generate_id, success, page_params, page_meta, search_regex
from elevateu.coupons.schemas import CouponCreate, CouponUpdate, DiscountType

router = APIRouter(tags=["Admin - Coupons"])

# null lifts the cap / limit
CLEARABLE_FIELDS = {"max_discount", "usage_limit"}


async def _require_coupon(db: AsyncIOMotorDatabase, coupon_id: str) -> dict:
    coupon = await db.coupons.find_one({"coupon_id": coupon_id}, {"_id": 0})
    if not coupon:
        raise HTTPException(status_code=404, detail="Coupon not found")
    return coupon


@router.post("/create-coupon", status_code=201)
@limit("standard")
async def create_coupon(
    request: Request,
    payload: CouponCreate,
    admin: AccountContext = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    now = datetime.utcnow()
    coupon = payload.dict()
    coupon.update({
        "coupon_id": generate_id("CPN"),
        "discount_type": payload.discount_type.value,
        "usage_count": 0,
        "used_by": [],
        "created_by": admin.account_id,
        "created_at": now,
        "updated_at": now,
    })

    if await db.coupons.find_one({"code": coupon["code"]}, {"_id": 1}):
        raise HTTPException(status_code=409, detail="Coupon code already exists")
    try:
        await db.coupons.insert_one(coupon)
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail="Coupon code already exists")

    return success("Coupon created successfully", await _require_coupon(db, coupon["coupon_id"]))


@router.get("/load-coupons")
@limit("read")
async def load_coupons(
    request: Request,
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    admin: AccountContext = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    page, limit, skip = page_params(page, limit)
    query = {"code": search_regex(search)} if search else {}
    total = await db.coupons.count_documents(query)
    coupons = await db.coupons.find(query, {"_id": 0, "used_by": 0}).sort([("created_at", -1), ("_id", -1)]).skip(skip).limit(limit).to_list(length=limit)
    return success("Coupons loaded", coupons, pagination=page_meta(total, page, limit))


@router.post("/update-coupon")
@limit("standard")
async def update_coupon(
    request: Request,
    payload: CouponUpdate,
    admin: AccountContext = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    coupon = await _require_coupon(db, payload.coupon_id)
    changes = {
        field: value for field, value in payload.dict(exclude_unset=True, exclude={"coupon_id"}).items()
        if value is not None or field in CLEARABLE_FIELDS
    }
    if not changes:
        raise HTTPException(status_code=400, detail="No changes provided")

    if changes.get("discount_type") is not None:
        changes["discount_type"] = DiscountType(changes["discount_type"]).value
    discount_type = changes.get("discount_type", coupon["discount_type"])
    discount = changes.get("discount", coupon["discount"])
    if discount_type == DiscountType.PERCENT.value and discount > 100:
        raise HTTPException(status_code=400, detail="Percent discount cannot exceed 100")

    if changes.get("usage_limit") is not None and changes["usage_limit"] < coupon.get("usage_count", 0):
        raise HTTPException(status_code=400, detail="Usage limit cannot be below current usage")

    if changes.get("code") and changes["code"] != coupon["code"]:
        if await db.coupons.find_one({"code": changes["code"]}, {"_id": 1}):
            raise HTTPException(status_code=409, detail="Coupon code already exists")

    changes["updated_at"] = datetime.utcnow()
    await db.coupons.update_one({"coupon_id": payload.coupon_id}, {"$set": changes})
    return success("Coupon updated successfully", await _require_coupon(db, payload.coupon_id))


@router.delete("/delete-coupon/{coupon_id}")
@limit("standard")
async def delete_coupon(
    request: Request,
    coupon_id: str,
    admin: AccountContext = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    await _require_coupon(db, coupon_id)
    await db.coupons.delete_one({"coupon_id": coupon_id})
    await db.applied_coupons.delete_many({"coupon_id": coupon_id})
    return success("Coupon deleted successfully")
