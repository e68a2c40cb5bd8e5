"""
Public catalog filters
The catalog accepts a JSON `filter` query parameter:
    {"search": "...", "category": "CAT_x" | ["CAT_x", ...], "rating": 4,
     "levels": ["Beginner"], "priceRange": [0, 500], "sort": "price-low"}
"""

import json
from typing import Optional

from fastapi import HTTPException

from elevateu.core.utils import search_regex
from elevateu.courses.database import PUBLIC_COURSE_QUERY

SORTS = {
    "newest": [("published_at", -1), ("created_at", -1)],
    "oldest": [("published_at", 1)],
    "price-low": [("price", 1)],
    "price-high": [("price", -1)],
    "popular": [("enroll_count", -1)],
    "rating": [("rating", -1)],
    "title-asc": [("title", 1)],
    "title-desc": [("title", -1)],
}


def parse_filter(raw: Optional[str]) -> dict:
    if not raw:
        return {}
    try:
        filters = json.loads(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid filter")
    if not isinstance(filters, dict):
        raise HTTPException(status_code=400, detail="Invalid filter")
    return filters


def _price_bounds(price_range) -> tuple:
    if isinstance(price_range, dict):
        return price_range.get("min"), price_range.get("max")
    if isinstance(price_range, (list, tuple)) and len(price_range) == 2:
        return price_range[0], price_range[1]
    raise HTTPException(status_code=400, detail="Invalid price range")


def build_catalog_query(filters: dict) -> tuple:
    """Returns (mongo query, sort keys)"""
    query = dict(PUBLIC_COURSE_QUERY)

    search = filters.get("search")
    if search and str(search).strip():
        query["title"] = search_regex(str(search))

    category = filters.get("category")
    if category and category != "all":
        query["category_id"] = {"$in": category} if isinstance(category, list) else category

    rating = filters.get("rating")
    if rating:
        try:
            query["rating"] = {"$gte": float(rating)}
        except (TypeError, ValueError):
            raise HTTPException(status_code=400, detail="Invalid rating filter")

    levels = filters.get("levels")
    if levels:
        query["level"] = {"$in": levels if isinstance(levels, list) else [levels]}

    price_range = filters.get("priceRange")
    if price_range:
        low, high = _price_bounds(price_range)
        bounds = {}
        if low is not None:
            bounds["$gte"] = float(low)
        if high is not None:
            bounds["$lte"] = float(high)
        if bounds:
            query["price"] = bounds

    sort = SORTS.get(filters.get("sort") or "newest", SORTS["newest"])
    return query, sort
