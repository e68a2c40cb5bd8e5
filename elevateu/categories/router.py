from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from elevateu.auth.guard import AccountContext, get_current_admin
from elevateu.categories.schemas import CategoryCreate, CategoryUpdate
from elevateu.core.database import get_db
from elevateu.core.rate_limiting import limit
from elevateu.core.utils import generate_id, success, page_params, page_meta, search_regex

router = APIRouter(tags=["Admin - Categories"])

PUBLIC_FIELDS = {"_id": 0, "name_key": 0}


def name_key(name: str) -> str:
    """Case-insensitive uniqueness key"""
    return name.strip().lower()


async def _require_category(db: AsyncIOMotorDatabase, category_id: str) -> dict:
    category = await db.categories.find_one({"category_id": category_id}, PUBLIC_FIELDS)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


@router.get("/categories")
@limit("read")
async def load_categories(
    request: Request,
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    admin: AccountContext = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    page, limit, skip = page_params(page, limit)
    query = {"name": search_regex(search)} if search else {}
    total = await db.categories.count_documents(query)
    categories = await db.categories.find(query, PUBLIC_FIELDS).sort([("created_at", -1), ("_id", -1)]).skip(skip).limit(limit).to_list(length=limit)

    for category in categories:
        category["course_count"] = await db.courses.count_documents({"category_id": category["category_id"]})
    return success("Categories loaded", categories, pagination=page_meta(total, page, limit))


@router.get("/category")
@limit("read")
async def load_category_details(
    request: Request,
    id: str,
    admin: AccountContext = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return success("Category loaded", await _require_category(db, id))


@router.post("/add-category", status_code=201)
@limit("standard")
async def add_category(
    request: Request,
    payload: CategoryCreate,
    admin: AccountContext = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    now = datetime.utcnow()
    category = {
        "category_id": generate_id("CAT"),
        "name": payload.name,
        "name_key": name_key(payload.name),
        "description": payload.description,
        "icon": payload.icon,
        "is_active": payload.is_active,
        "created_at": now,
        "updated_at": now,
    }
    if await db.categories.find_one({"name_key": category["name_key"]}, {"_id": 1}):
        raise HTTPException(status_code=409, detail="Category already exists")
    try:
        await db.categories.insert_one(category)
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail="Category already exists")

    return success("Category added successfully", await _require_category(db, category["category_id"]))


@router.post("/update-category")
@limit("standard")
async def update_category(
    request: Request,
    payload: CategoryUpdate,
    admin: AccountContext = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    await _require_category(db, payload.category_id)
    changes = payload.dict(exclude_unset=True, exclude_none=True, exclude={"category_id"})
    if not changes:
        raise HTTPException(status_code=400, detail="No changes provided")

    if changes.get("name"):
        key = name_key(changes["name"])
        clash = await db.categories.find_one({"name_key": key, "category_id": {"$ne": payload.category_id}}, {"_id": 1})
        if clash:
            raise HTTPException(status_code=409, detail="Category already exists")
        changes["name_key"] = key

    changes["updated_at"] = datetime.utcnow()
    await db.categories.update_one({"category_id": payload.category_id}, {"$set": changes})
    return success("Category updated successfully", await _require_category(db, payload.category_id))


@router.delete("/delete-category/{category_id}")
@limit("standard")
async def delete_category(
    request: Request,
    category_id: str,
    admin: AccountContext = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    await _require_category(db, category_id)
    in_use = await db.courses.count_documents({"category_id": category_id})
    if in_use:
        raise HTTPException(status_code=409, detail=f"Category is used by {in_use} course(s) and cannot be deleted")

    await db.categories.delete_one({"category_id": category_id})
    return success("Category deleted successfully")
