"""MongoDB database connection and management."""

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING
from typing import Optional
from safetriage.config.settings import settings
import logging

logger = logging.getLogger(__name__)


class Database:
    """MongoDB database connection manager."""

    client: Optional[AsyncIOMotorClient] = None
    database: Optional[AsyncIOMotorDatabase] = None

    @classmethod
    async def connect_db(cls):
        """Connect to MongoDB and make sure the session indexes exist."""
        try:
            cls.client = AsyncIOMotorClient(settings.mongodb_uri, tz_aware=True)
            cls.database = cls.client[settings.mongodb_database]

            # Test connection
            await cls.client.admin.command("ping")
            logger.info(f"Connected to MongoDB: {settings.mongodb_database}")
        except Exception as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            raise

        await cls.ensure_indexes()

    @classmethod
    async def ensure_indexes(cls):
        """Create the session key and expiry indexes.

        The TTL index only backs up the application-level expiry: MongoDB
        removes documents on its own schedule, so reads still check
        ``expires_at`` themselves.
        """
        sessions = cls.get_collection(settings.mongodb_collection_sessions)
        await sessions.create_index([("session_id", ASCENDING)], unique=True)
        await sessions.create_index(
            [("expires_at", ASCENDING)], expireAfterSeconds=0
        )
        settings_collection = cls.get_collection(settings.mongodb_collection_settings)
        await settings_collection.create_index([("key", ASCENDING)], unique=True)
        logger.info("MongoDB indexes ensured")

    @classmethod
    async def close_db(cls):
        """Close MongoDB connection."""
        if cls.client:
            cls.client.close()
            cls.client = None
            cls.database = None
            logger.info("Closed MongoDB connection")

    @classmethod
    def get_database(cls) -> AsyncIOMotorDatabase:
        """Get database instance."""
        if cls.database is None:
            raise RuntimeError("Database not initialized. Call connect_db() first.")
        return cls.database

    @classmethod
    def get_collection(cls, collection_name: str):
        """Get a collection from the database."""
        db = cls.get_database()
        return db[collection_name]


# Convenience functions
async def get_sessions_collection():
    """Get triage_sessions collection."""
    return Database.get_collection(settings.mongodb_collection_sessions)


async def get_settings_collection():
    """Get admin_settings collection."""
    return Database.get_collection(settings.mongodb_collection_settings)
