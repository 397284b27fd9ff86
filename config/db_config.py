from motor.motor_asyncio import AsyncIOMotorClient
from urllib.parse import quote_plus
from typing import Optional
from config.basic_config import settings, Settings
from core.utils.logging_config import get_logger

logger = get_logger(__name__)

USERS = "users"
HOSTS = "hosts"
CALLS = "calls"
TRANSACTIONS = "transactions"
SYSTEM_CONFIG = "system_config"


def build_mongo_uri(config: Settings = settings) -> str:
    # Construct MongoDB URI using settings variables
    if config.MONGO_USER and config.MONGO_PASSWORD:
        username = quote_plus(config.MONGO_USER)
        password = quote_plus(config.MONGO_PASSWORD)
        return (
            f"mongodb://{username}:{password}@{config.MONGO_HOST}:{config.MONGO_PORT}"
            f"/{config.MONGO_DATABASE}?authSource=admin"
        )
    return f"mongodb://{config.MONGO_HOST}:{config.MONGO_PORT}"


class MongoDBClient:
    """
    Owns the Motor client for the lifetime of the application.
    Constructed explicitly and handed to the stores that need it.
    """

    def __init__(self, config: Settings = settings):
        self._config = config
        self._client: Optional[AsyncIOMotorClient] = None

    def connect(self) -> AsyncIOMotorClient:
        if self._client is None:
            self._client = AsyncIOMotorClient(
                build_mongo_uri(self._config),
                maxPoolSize=100,
                minPoolSize=10,
                maxIdleTimeMS=30000,  # Close connections after 30 seconds of inactivity
                serverSelectionTimeoutMS=5000,
                connectTimeoutMS=10000,
                retryWrites=True,
                retryReads=True,
            )
            logger.info("MongoDB client initialized for %s", self._config.MONGO_HOST)
        return self._client

    @property
    def client(self) -> AsyncIOMotorClient:
        if self._client is None:
            raise RuntimeError("MongoDB client is not connected")
        return self._client

    @property
    def database(self):
        return self.client[self._config.MONGO_DATABASE]

    async def ping(self) -> bool:
        """Test database connectivity"""
        try:
            await self.client.admin.command("ping")
            return True
        except Exception as e:
            logger.error("MongoDB connection test failed: %s", e)
            return False

    async def disconnect(self):
        """Close MongoDB connections properly"""
        if self._client:
            self._client.close()
            self._client = None
            logger.info("MongoDB connections closed")


async def create_indexes(db) -> bool:
    try:
        await db[CALLS].create_index("call_id")
        await db[CALLS].create_index([("user_id", 1), ("start_time", -1)])
        await db[TRANSACTIONS].create_index([("user_id", 1), ("created_at", -1)])
        await db[SYSTEM_CONFIG].create_index("key", unique=True)
        return True
    except Exception as e:
        logger.error("Error creating indexes: %s", e)
        return False
