from datetime import datetime
from typing import List, Optional
import logging

from pydantic import BaseModel
from pymongo.errors import PyMongoError

from swipematch.core.errors import StorageError
from swipematch.core.kv import KeyValueStore
from swipematch.models.connection import pair_key
from swipematch.models.swipe import LIKE_ACTION_VALUES, SwipeAction, utcnow

logger = logging.getLogger(__name__)


class MatchResult(BaseModel):
    is_match: bool
    matched_at: Optional[datetime] = None


def match_lock_key(user_a: str, user_b: str) -> str:
    return f"match:{pair_key(user_a, user_b)}"


class MutualMatchDetector:
    """Turns two reciprocal likes into a matched pair.

    Both records get ``is_match=True`` and the same ``matched_at``. Writes for
    one pair are serialized through a lock in the key-value store and applied
    only to records still unmatched, then read back; a pair found
    inconsistent gets one repair pass before the failure is surfaced.
    """

    def __init__(self, collection, kv: KeyValueStore):
        self.collection = collection
        self.kv = kv

    @staticmethod
    def _pair_filter(user_a: str, user_b: str) -> dict:
        return {
            "$or": [
                {"actor_id": user_a, "target_id": user_b},
                {"actor_id": user_b, "target_id": user_a},
            ],
            "action": {"$in": LIKE_ACTION_VALUES},
        }

    @staticmethod
    def _pair_stamp(docs: List[dict]) -> Optional[datetime]:
        """The shared ``matched_at`` if both records agree, else None."""
        if len(docs) != 2 or not all(d.get("is_match") for d in docs):
            return None
        stamps = {d.get("matched_at") for d in docs}
        if len(stamps) != 1 or None in stamps:
            return None
        return stamps.pop()

    async def _read_pair(self, pair_filter: dict) -> List[dict]:
        return [doc async for doc in self.collection.find(pair_filter)]

    async def find_reverse(self, swipe: SwipeAction) -> Optional[SwipeAction]:
        try:
            doc = await self.collection.find_one({
                "actor_id": swipe.target_id,
                "target_id": swipe.actor_id,
                "action": {"$in": LIKE_ACTION_VALUES},
            })
        except PyMongoError as e:
            logger.error(f"❌ Reverse like lookup failed for {swipe.actor_id} -> {swipe.target_id}: {e}")
            raise StorageError("Failed to check for a mutual match") from e
        return SwipeAction.model_validate(doc) if doc else None

    async def _link_pair(self, user_a: str, user_b: str, matched_at: datetime) -> datetime:
        pair_filter = self._pair_filter(user_a, user_b)
        try:
            await self.collection.update_many(
                {**pair_filter, "is_match": False},
                {"$set": {"is_match": True, "matched_at": matched_at}},
            )
            docs = await self._read_pair(pair_filter)
            stamp = self._pair_stamp(docs)
            if stamp is not None:
                return stamp

            existing = [d["matched_at"] for d in docs if d.get("is_match") and d.get("matched_at")]
            canonical = min(existing) if existing else matched_at
            logger.warning(f"⚠️  Match pair {user_a} <-> {user_b} inconsistent, repairing to {canonical.isoformat()}")
            await self.collection.update_many(
                pair_filter,
                {"$set": {"is_match": True, "matched_at": canonical}},
            )
            docs = await self._read_pair(pair_filter)
            stamp = self._pair_stamp(docs)
        except PyMongoError as e:
            logger.error(
                f"❌ Match link {user_a} <-> {user_b} failed mid-write, pair needs reconciliation: {e}",
                exc_info=True,
            )
            raise StorageError("Failed to link mutual match") from e

        if stamp is None:
            logger.error(
                f"❌ Match pair {user_a} <-> {user_b} still inconsistent after repair "
                f"({len(docs)} like records found), needs reconciliation"
            )
            raise StorageError("Failed to link mutual match")
        return stamp

    async def detect_and_link_match(self, new_swipe: SwipeAction) -> MatchResult:
        if not new_swipe.action.is_like:
            return MatchResult(is_match=False)

        actor_id, target_id = new_swipe.actor_id, new_swipe.target_id
        async with self.kv.lock(match_lock_key(actor_id, target_id)):
            reverse = await self.find_reverse(new_swipe)
            if reverse is None:
                logger.info(f"💌 No reverse like yet for {actor_id[:8]}... -> {target_id[:8]}...")
                return MatchResult(is_match=False)

            # A reverse record already matched means another request linked the pair first
            proposed = reverse.matched_at if reverse.is_match and reverse.matched_at else utcnow()
            matched_at = await self._link_pair(actor_id, target_id, proposed)

        new_swipe.is_match = True
        new_swipe.matched_at = matched_at
        logger.info(f"💞 Mutual match between {actor_id[:8]}... and {target_id[:8]}... at {matched_at.isoformat()}")
        return MatchResult(is_match=True, matched_at=matched_at)

    async def relink(self, user_a: str, user_b: str) -> MatchResult:
        """Bring an existing pair of reciprocal likes to a consistent matched
        state. Used by the maintenance reconciliation."""
        async with self.kv.lock(match_lock_key(user_a, user_b)):
            pair_filter = self._pair_filter(user_a, user_b)
            try:
                docs = await self._read_pair(pair_filter)
            except PyMongoError as e:
                logger.error(f"❌ Failed to read match pair {user_a} <-> {user_b}: {e}")
                raise StorageError("Failed to read match pair") from e
            if len(docs) != 2:
                return MatchResult(is_match=False)

            stamp = self._pair_stamp(docs)
            if stamp is None:
                existing = [d["matched_at"] for d in docs if d.get("is_match") and d.get("matched_at")]
                stamp = await self._link_pair(user_a, user_b, min(existing) if existing else utcnow())
        return MatchResult(is_match=True, matched_at=stamp)
