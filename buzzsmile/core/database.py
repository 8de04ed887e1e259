import logging

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING

from .config import settings

logger = logging.getLogger(__name__)


class MongoDB:
    client: AsyncIOMotorClient = None
    db = None


mongodb = MongoDB()


async def connect_to_mongo():
    mongodb.client = AsyncIOMotorClient(settings.MONGO_URI)
    mongodb.db = mongodb.client[settings.MONGO_DB]
    await ensure_indexes(mongodb.db)
    logger.info("Connected to MongoDB: %s", settings.MONGO_DB)


async def close_mongo_connection():
    if mongodb.client is not None:
        mongodb.client.close()
    mongodb.client = None
    mongodb.db = None
    logger.info("MongoDB connection closed")


async def ensure_indexes(db):
    await db["users"].create_index([("email", ASCENDING)], unique=True)
    await db["users"].create_index([("googleId", ASCENDING)], sparse=True)
    await db["users"].create_index([("createdAt", DESCENDING)])
    await db["videos"].create_index([("owner", ASCENDING), ("createdAt", DESCENDING)])
    await db["videos"].create_index([("status", ASCENDING)])
    await db["videos"].create_index([("owner", ASCENDING), ("status", ASCENDING)])


async def ping() -> bool:
    if mongodb.db is None:
        return False
    try:
        await mongodb.db.command("ping")
    except Exception:
        logger.warning("MongoDB ping failed", exc_info=True)
        return False
    return True
