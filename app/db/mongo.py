import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from app.core.config import settings

logger = logging.getLogger(__name__)


class MongoDatabase:
    """MongoDB connection manager."""

    client: AsyncIOMotorClient = None
    db: AsyncIOMotorDatabase = None

mongodb = MongoDatabase()

async def connect_to_mongo():
    """Connect to MongoDB."""
    mongodb.client = AsyncIOMotorClient(settings.MONGODB_URL, tz_aware=True)
    mongodb.db = mongodb.client[settings.DATABASE_NAME]

    await create_indexes(mongodb.db)
    logger.info("Connected to MongoDB: %s", settings.DATABASE_NAME)

async def close_mongo_connection():
    """Disconnect from MongoDB."""
    if mongodb.client is not None:
        mongodb.client.close()
    logger.info("Disconnected from MongoDB")

async def create_indexes(db: AsyncIOMotorDatabase):
    """Create database indexes."""
    # Latest bill per group
    await db["bills"].create_index([("group_id", 1), ("created_at", -1)])

    # One obligation per payer per bill
    await db["bill_participants"].create_index(
        [("bill_id", 1), ("user_id", 1)], unique=True
    )
    await db["bill_participants"].create_index(
        [("group_id", 1), ("user_id", 1), ("paid_at", 1), ("created_at", -1)]
    )

    # Members
    await db["users"].create_index("user_id", unique=True)
    await db["groups"].create_index("group_id", unique=True)
    await db["group_members"].create_index(
        [("group_id", 1), ("user_id", 1)], unique=True
    )

    # Drafts expire on their own
    await db["bill_drafts"].create_index("expires_at", expireAfterSeconds=0)
    await db["bill_drafts"].create_index([("group_id", 1), ("user_id", 1)])

def get_db() -> AsyncIOMotorDatabase:
    """Get database instance."""
    return mongodb.db
