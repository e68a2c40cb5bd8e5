import re
import secrets
from datetime import datetime
from typing import Any, Optional

from elevateu.core.config import PAGINATION


def generate_id(prefix: str) -> str:
    """Generate unique ID with prefix"""
    return f"{prefix}_{secrets.token_hex(8).upper()}"


def utcnow() -> datetime:
    return datetime.utcnow()


def serialize_mongo(doc: Optional[dict]) -> Optional[dict]:
    """Drop Mongo's _id so the document is JSON friendly"""
    if doc is None:
        return None
    doc = dict(doc)
    doc.pop("_id", None)
    return doc


def serialize_many(docs: list) -> list:
    return [serialize_mongo(doc) for doc in docs]


def success(message: str = "Success", data: Any = None, **extra) -> dict:
    body = {"success": True, "message": message}
    if data is not None:
        body["data"] = data
    body.update(extra)
    return body


def page_params(page: Optional[int], limit: Optional[int]) -> tuple:
    """Clamp page / limit and return (page, limit, skip)"""
    page = page if page and page > 0 else PAGINATION["DEFAULT_PAGE"]
    limit = limit if limit and limit > 0 else PAGINATION["DEFAULT_LIMIT"]
    limit = min(limit, PAGINATION["MAX_LIMIT"])
    return page, limit, (page - 1) * limit


def page_meta(total: int, page: int, limit: int) -> dict:
    return {
        "total": total,
        "currentPage": page,
        "totalPages": (total + limit - 1) // limit if limit else 0,
    }


def search_regex(term: str) -> dict:
    """Case-insensitive contains match; user input is escaped"""
    return {"$regex": re.escape(term.strip()), "$options": "i"}


def round_money(value: float) -> float:
    return round(float(value), 2)


def full_name(doc: dict) -> str:
    return " ".join(part for part in (doc.get("first_name"), doc.get("last_name")) if part).strip()
