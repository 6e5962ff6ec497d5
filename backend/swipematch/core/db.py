# swipematch/core/db.py

from typing import Optional
import logging

import redis.asyncio as redis
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError
from redis.exceptions import RedisError

from swipematch.core.config import MONGO_DB_NAME, MONGO_URI, REDIS_URI
from swipematch.core.kv import KeyValueStore, build_kv_store

logger = logging.getLogger(__name__)

SWIPE_INDEXES = [
    ([("actor_id", ASCENDING), ("target_id", ASCENDING)], {"unique": True, "name": "unique_actor_target"}),
    ([("actor_id", ASCENDING), ("acted_at", DESCENDING)], {"name": "actor_acted_at"}),
    ([("target_id", ASCENDING), ("action", ASCENDING)], {"name": "target_action"}),
    ([("actor_id", ASCENDING), ("is_match", ASCENDING)], {"name": "actor_is_match"}),
]

CONNECTION_INDEXES = [
    ([("pair_key", ASCENDING)], {"unique": True, "name": "unique_pair_key"}),
    ([("users", ASCENDING)], {"name": "users_index"}),
]


def _host_of(uri: str) -> str:
    return uri.split("@")[1].split("/")[0] if "@" in uri else uri


class Database:
    def __init__(self, mongo_client: Optional[AsyncIOMotorClient] = None,
                 redis_client: Optional[redis.Redis] = None,
                 kv: Optional[KeyValueStore] = None,
                 db_name: str = MONGO_DB_NAME):
        self.mongo_client = mongo_client if mongo_client is not None else AsyncIOMotorClient(MONGO_URI)
        self.mongo_db = self.mongo_client[db_name]

        if redis_client is None and REDIS_URI and kv is None:
            redis_client = redis.from_url(REDIS_URI, decode_responses=True)
        self.redis_client = redis_client
        self.kv = kv if kv is not None else build_kv_store(redis_client)

        logger.info("🔗 Database connections initialized:")
        logger.info(f"   🍃 MongoDB: {_host_of(MONGO_URI) if mongo_client is None else 'injected client'} / {db_name}")
        logger.info(f"   📦 Redis: {_host_of(REDIS_URI) if self.redis_client is not None else 'disabled'}")

    @property
    def swipe_actions(self):
        return self.mongo_db.swipe_actions

    @property
    def connections(self):
        return self.mongo_db.connections

    async def ensure_indexes(self):
        """Create the swipe and connection indexes.

        The unique (actor_id, target_id) index is what makes swipes
        idempotent; run ``python -m swipematch.maintenance dedupe`` first if
        creating it fails on existing duplicates.
        """
        for collection, specs in ((self.swipe_actions, SWIPE_INDEXES),
                                  (self.connections, CONNECTION_INDEXES)):
            for keys, options in specs:
                try:
                    await collection.create_index(keys, **options)
                    logger.info(f"   ✅ Index {collection.name}.{options['name']}")
                except PyMongoError as e:
                    logger.warning(f"⚠️  Index creation warning for {collection.name}.{options['name']}: {e}")

    async def status(self) -> dict:
        mongo_status = "connected"
        try:
            await self.mongo_db.command("ping")
        except PyMongoError as e:
            logger.warning(f"⚠️  MongoDB ping failed: {e}")
            mongo_status = "disconnected"

        redis_status = "disabled"
        if self.redis_client is not None:
            try:
                await self.redis_client.ping()
                redis_status = "connected"
            except RedisError as e:
                logger.warning(f"⚠️  Redis ping failed: {e}")
                redis_status = "disconnected"

        return {"mongodb_status": mongo_status, "redis_status": redis_status}


# Singleton instance
db = Database()


def get_database() -> Database:
    return db
