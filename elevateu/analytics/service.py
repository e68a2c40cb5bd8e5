"""
Sales analytics for the admin dashboard and the public landing page.
Aggregation happens in Python over small projections.
"""

from collections import defaultdict
from datetime import datetime, timedelta
from typing import List

from motor.motor_asyncio import AsyncIOMotorDatabase

from elevateu.core.config import PLATFORM_WALLET_OWNER
from elevateu.core.utils import round_money
from elevateu.courses.database import PUBLIC_COURSE_QUERY, attach_names

PERIODS = ("daily", "weekly", "monthly", "yearly")

MONTH_LABELS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


async def best_selling_courses(db: AsyncIOMotorDatabase, limit: int = 5) -> List[dict]:
    limit = max(1, min(limit or 5, 50))
    courses = await db.courses.find(
        {**PUBLIC_COURSE_QUERY, "enroll_count": {"$gt": 0}},
        {"_id": 0, "modules": 0},
    ).sort([("enroll_count", -1), ("rating", -1)]).limit(limit).to_list(length=limit)
    return await attach_names(db, courses)


async def best_selling_categories(db: AsyncIOMotorDatabase, limit: int = 5) -> List[dict]:
    """Categories ranked by the enrollments of their published courses"""
    limit = max(1, min(limit or 5, 50))
    totals = defaultdict(lambda: {"enroll_count": 0, "course_count": 0})
    async for course in db.courses.find(PUBLIC_COURSE_QUERY, {"category_id": 1, "enroll_count": 1}):
        if not course.get("category_id"):
            continue
        entry = totals[course["category_id"]]
        entry["enroll_count"] += course.get("enroll_count", 0)
        entry["course_count"] += 1

    categories = await db.categories.find(
        {"category_id": {"$in": list(totals)}}, {"_id": 0},
    ).to_list(length=None)
    for category in categories:
        category.update(totals[category["category_id"]])

    categories.sort(key=lambda c: (c["enroll_count"], c["course_count"]), reverse=True)
    return categories[:limit]


async def dashboard_totals(db: AsyncIOMotorDatabase) -> dict:
    revenue = 0.0
    paid_orders = 0
    async for order in db.orders.find({"payment_status": "success"}, {"price.final_price": 1}):
        revenue += order.get("price", {}).get("final_price", 0)
        paid_orders += 1

    platform_wallet = await db.wallets.find_one({"owner_id": PLATFORM_WALLET_OWNER}, {"balance": 1})

    return {
        "total_users": await db.users.count_documents({}),
        "total_tutors": await db.tutors.count_documents({}),
        "total_courses": await db.courses.count_documents({}),
        "published_courses": await db.courses.count_documents(PUBLIC_COURSE_QUERY),
        "pending_courses": await db.courses.count_documents({"status": "pending"}),
        "total_enrollments": await db.enrolled_courses.count_documents({}),
        "total_orders": paid_orders,
        "total_revenue": round_money(revenue),
        "platform_balance": round_money((platform_wallet or {}).get("balance", 0)),
        "pending_withdrawals": await db.withdrawal_requests.count_documents({"status": {"$in": ["pending", "processing"]}}),
        "pending_verifications": await db.tutors.count_documents({"verification_status": "pending"}),
    }


def _day_buckets(now: datetime, days: int) -> tuple:
    start = (now - timedelta(days=days - 1)).replace(hour=0, minute=0, second=0, microsecond=0)
    labels = [(start + timedelta(days=i)).strftime("%Y-%m-%d") for i in range(days)]
    return start, labels, lambda d: d.strftime("%Y-%m-%d")


def _buckets(period: str, now: datetime) -> tuple:
    """(start, labels, key function) for a chart period"""
    if period == "daily":
        start = (now - timedelta(hours=23)).replace(minute=0, second=0, microsecond=0)
        labels = [(start + timedelta(hours=i)).strftime("%Y-%m-%d %H:00") for i in range(24)]
        return start, labels, lambda d: d.strftime("%Y-%m-%d %H:00")

    if period == "weekly":
        return _day_buckets(now, 7)

    if period == "monthly":
        return _day_buckets(now, 30)

    months = []
    year, month = now.year, now.month
    for _ in range(12):
        months.append((year, month))
        year, month = (year, month - 1) if month > 1 else (year - 1, 12)
    months.reverse()
    start = datetime(months[0][0], months[0][1], 1)
    labels = [f"{MONTH_LABELS[m - 1]} {y}" for y, m in months]
    return start, labels, lambda d: f"{MONTH_LABELS[d.month - 1]} {d.year}"


async def revenue_chart(db: AsyncIOMotorDatabase, period: str = "monthly") -> List[dict]:
    """
    Revenue and platform commission per bucket:
        daily   - last 24 hours, per hour
        weekly  - last 7 days, per day
        monthly - last 30 days, per day
        yearly  - last 12 months, per month
    """
    start, labels, key = _buckets(period, datetime.utcnow())
    points = {label: {"label": label, "revenue": 0.0, "commission": 0.0, "orders": 0} for label in labels}

    async for order in db.orders.find(
        {"payment_status": "success", "paid_at": {"$gte": start}},
        {"paid_at": 1, "price.final_price": 1},
    ):
        point = points.get(key(order["paid_at"]))
        if point is None:
            continue
        point["revenue"] += order.get("price", {}).get("final_price", 0)
        point["orders"] += 1

    async for txn in db.transactions.find(
        {"owner_id": PLATFORM_WALLET_OWNER, "purpose": "commission", "created_at": {"$gte": start}},
        {"amount": 1, "created_at": 1},
    ):
        point = points.get(key(txn["created_at"]))
        if point is not None:
            point["commission"] += txn.get("amount", 0)

    for point in points.values():
        point["revenue"] = round_money(point["revenue"])
        point["commission"] = round_money(point["commission"])
    return [points[label] for label in labels]
