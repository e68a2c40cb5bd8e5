"""
MongoDB connection lifecycle and indexes
"""

from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from elevateu.core.config import MONGO_URL, MONGO_DB_NAME
from elevateu.core.logger import db_logger


class DatabaseManager:
    """Manages MongoDB connection lifecycle"""

    def __init__(self):
        self.client: Optional[AsyncIOMotorClient] = None
        self.db: Optional[AsyncIOMotorDatabase] = None

    def connect(self, url: str = MONGO_URL, db_name: str = MONGO_DB_NAME):
        """Initialize MongoDB connection"""
        self.client = AsyncIOMotorClient(
            url,
            serverSelectionTimeoutMS=30000,
            socketTimeoutMS=45000,
            maxPoolSize=10,
            retryWrites=True,
        )
        self.db = self.client[db_name]
        db_logger.info("MongoDB client created for database %s", db_name)

    def use(self, database: AsyncIOMotorDatabase):
        """Attach an already constructed database (tests, scripts)"""
        self.db = database

    def disconnect(self):
        """Close MongoDB connection"""
        if self.client:
            self.client.close()
            db_logger.info("MongoDB disconnected")
        self.client = None
        self.db = None

    async def ping(self) -> bool:
        if self.db is None:
            return False
        try:
            await self.db.command("ping")
            return True
        except PyMongoError as e:
            db_logger.warning("MongoDB ping failed: %s", e)
            return False

    def get_database(self) -> AsyncIOMotorDatabase:
        """Get database instance for dependency injection"""
        if self.db is None:
            raise RuntimeError("Database not initialized. Call connect() first.")
        return self.db


db_manager = DatabaseManager()


def get_db() -> AsyncIOMotorDatabase:
    """FastAPI dependency for database access"""
    return db_manager.get_database()


# ==================== INDEXES ====================

async def create_indexes(db: AsyncIOMotorDatabase):
    """Create MongoDB indexes for data integrity"""
    for collection, id_field in (("users", "user_id"), ("tutors", "tutor_id"), ("admins", "admin_id")):
        await db[collection].create_index(id_field, unique=True)
        await db[collection].create_index("email", unique=True)

    await db.courses.create_index("course_id", unique=True)
    await db.courses.create_index([("status", 1), ("is_published", 1)])
    await db.courses.create_index("tutor_id")
    await db.courses.create_index("category_id")

    await db.categories.create_index("category_id", unique=True)
    await db.categories.create_index("name_key", unique=True)

    await db.coupons.create_index("coupon_id", unique=True)
    await db.coupons.create_index("code", unique=True)
    await db.applied_coupons.create_index([("user_id", 1), ("course_id", 1)], unique=True)

    await db.orders.create_index("order_id", unique=True)
    await db.orders.create_index("razorpay_order_id", unique=True)
    await db.orders.create_index([("user_id", 1), ("created_at", -1)])

    await db.enrolled_courses.create_index("enrollment_id", unique=True)
    await db.enrolled_courses.create_index([("user_id", 1), ("course_id", 1)], unique=True)

    await db.wallets.create_index([("owner_id", 1), ("owner_role", 1)], unique=True)
    await db.transactions.create_index([("wallet_id", 1), ("created_at", -1)])
    await db.withdrawal_requests.create_index([("status", 1), ("created_at", -1)])

    await db.notifications.create_index([("recipient_id", 1), ("recipient_role", 1), ("created_at", -1)])
    await db.otps.create_index([("email", 1), ("role", 1), ("otp_type", 1)])
    await db.otps.create_index("expires_at", expireAfterSeconds=3600)

    db_logger.info("MongoDB indexes created")
