from datetime import datetime
from typing import Dict, Iterable, Optional
import logging

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from swipematch.core.errors import NotFoundError, StorageError
from swipematch.models.connection import Connection, pair_key
from swipematch.models.swipe import SwipeType, utcnow

logger = logging.getLogger(__name__)


class ConnectionService:
    """One accepted connection per matched pair, keyed on ``pair_key``."""

    def __init__(self, collection):
        self.collection = collection

    async def ensure_connection(self, user_a: str, user_b: str, initiated_by: str,
                                match_type: SwipeType, matched_at: datetime) -> str:
        key = pair_key(user_a, user_b)
        doc = {
            "users": sorted([user_a, user_b]),
            "status": "accepted",
            "type": SwipeType(match_type).value,
            "initiated_by": initiated_by,
            "matched_at": matched_at,
            "created_at": utcnow(),
            "toast_seen_by": [],
        }
        try:
            try:
                stored = await self.collection.find_one_and_update(
                    {"pair_key": key},
                    {"$setOnInsert": doc},
                    upsert=True,
                    return_document=ReturnDocument.AFTER,
                )
            except DuplicateKeyError:
                stored = await self.collection.find_one({"pair_key": key})
        except PyMongoError as e:
            logger.error(f"❌ Failed to create connection for {key}: {e}")
            raise StorageError("Failed to create connection") from e

        if stored is None:
            logger.error(f"❌ Connection for {key} missing after upsert")
            raise StorageError("Failed to create connection")
        logger.info(f"🤝 Connection {stored['_id']} ready for {key}")
        return str(stored["_id"])

    async def find_for_pair(self, user_a: str, user_b: str) -> Optional[Connection]:
        try:
            doc = await self.collection.find_one({"pair_key": pair_key(user_a, user_b)})
        except PyMongoError as e:
            logger.error(f"❌ Failed to read connection for {user_a}/{user_b}: {e}")
            raise StorageError("Failed to read connection") from e
        return Connection.model_validate(doc) if doc else None

    async def find_for_pairs(self, user_id: str, other_ids: Iterable[str]) -> Dict[str, Connection]:
        """Connections between ``user_id`` and each of ``other_ids``, keyed by the other user."""
        keys = [pair_key(user_id, other) for other in other_ids]
        if not keys:
            return {}
        try:
            docs = [doc async for doc in self.collection.find({"pair_key": {"$in": keys}})]
        except PyMongoError as e:
            logger.error(f"❌ Failed to read connections for {user_id}: {e}")
            raise StorageError("Failed to read connections") from e
        connections = [Connection.model_validate(doc) for doc in docs]
        return {c.other_user(user_id): c for c in connections}

    async def mark_toast_seen(self, user_id: str, other_id: str) -> Connection:
        key = pair_key(user_id, other_id)
        try:
            doc = await self.collection.find_one_and_update(
                {"pair_key": key, "users": user_id},
                {"$addToSet": {"toast_seen_by": user_id}},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            logger.error(f"❌ Failed to mark toast seen on {key}: {e}")
            raise StorageError("Failed to update connection") from e
        if doc is None:
            raise NotFoundError("Mutual match not found")
        return Connection.model_validate(doc)
