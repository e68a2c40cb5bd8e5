"""
Notification service
Persist one notification per recipient, then push it to any live socket.
"""

import asyncio
from datetime import timedelta
from typing import List, Optional

from fastapi.encoders import jsonable_encoder
from motor.motor_asyncio import AsyncIOMotorDatabase

from elevateu.core.config import NOTIFICATION_RETENTION_DAYS, NOTIFICATION_PURGE_INTERVAL_SECONDS
from elevateu.core.logger import socket_logger
from elevateu.core.utils import generate_id, utcnow, serialize_mongo
from elevateu.notifications.manager import manager
from elevateu.notifications.models import NotificationType


async def create_notification(
    db: AsyncIOMotorDatabase,
    recipient_id: str,
    recipient_role: str,
    notification_type: NotificationType,
    message: str,
    reference_id: Optional[str] = None,
) -> dict:
    doc = {
        "notification_id": generate_id("NTF"),
        "recipient_id": recipient_id,
        "recipient_role": recipient_role,
        "type": NotificationType(notification_type).value,
        "message": message,
        "reference_id": reference_id,
        "is_read": False,
        "read_at": None,
        "created_at": utcnow(),
    }
    await db.notifications.insert_one(doc)

    payload = jsonable_encoder(serialize_mongo(doc))
    await manager.send(recipient_role, recipient_id, {"event": "notification", "data": payload})
    return doc


async def notify_admins(
    db: AsyncIOMotorDatabase,
    notification_type: NotificationType,
    message: str,
    reference_id: Optional[str] = None,
) -> int:
    """Fan out to every active admin"""
    count = 0
    async for admin in db.admins.find({"is_blocked": {"$ne": True}}, {"admin_id": 1}):
        await create_notification(db, admin["admin_id"], "admin", notification_type, message, reference_id)
        count += 1
    return count


async def list_notifications(db: AsyncIOMotorDatabase, role: str, account_id: str,
                             unread_only: bool = False, limit: int = 50) -> List[dict]:
    query = {"recipient_id": account_id, "recipient_role": role}
    if unread_only:
        query["is_read"] = False
    cursor = db.notifications.find(query, {"_id": 0}).sort([("created_at", -1), ("_id", -1)]).limit(limit)
    return await cursor.to_list(length=limit)


async def mark_read(db: AsyncIOMotorDatabase, role: str, account_id: str,
                    notification_ids: Optional[List[str]] = None) -> int:
    """Mark the given notifications (or all when none given) as read"""
    query = {"recipient_id": account_id, "recipient_role": role, "is_read": False}
    if notification_ids:
        query["notification_id"] = {"$in": notification_ids}
    result = await db.notifications.update_many(query, {"$set": {"is_read": True, "read_at": utcnow()}})
    return result.modified_count


async def purge_read_notifications(db: AsyncIOMotorDatabase,
                                   retention_days: int = NOTIFICATION_RETENTION_DAYS) -> int:
    cutoff = utcnow() - timedelta(days=retention_days)
    result = await db.notifications.delete_many({"is_read": True, "read_at": {"$lt": cutoff}})
    if result.deleted_count:
        socket_logger.info("Purged %d read notifications", result.deleted_count)
    return result.deleted_count


async def purge_loop(get_database, interval_seconds: int = NOTIFICATION_PURGE_INTERVAL_SECONDS):
    """Background task started with the app; cancelled on shutdown"""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await purge_read_notifications(get_database())
        except asyncio.CancelledError:
            raise
        except Exception:
            socket_logger.exception("Notification purge failed")
