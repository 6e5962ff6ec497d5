from datetime import date, datetime
from typing import List, Optional, Tuple, Union
import logging

from pydantic import BaseModel
from pymongo import DESCENDING
from pymongo.errors import PyMongoError

from swipematch.core.config import DAILY_LIKE_LIMIT, DAY_BOUNDARY_TZ
from swipematch.core.db import Database
from swipematch.core.errors import QuotaExceededError, StorageError, ValidationError
from swipematch.models.swipe import (
    LIKE_ACTION_VALUES,
    SwipeAction,
    SwipeMeta,
    SwipeType,
    utcnow,
    validate_swipe,
)
from swipematch.services.connections import ConnectionService
from swipematch.services.daily_quota import DailyQuotaGuard
from swipematch.services.mutual_match import MatchResult, MutualMatchDetector
from swipematch.services.swipe_recorder import SwipeRecorder
from swipematch.utils.pagination import normalize_page

logger = logging.getLogger(__name__)


class LikeResult(BaseModel):
    swipe: SwipeAction
    is_mutual_match: bool = False
    daily_like_count: int
    remaining_likes: int
    connection_id: Optional[str] = None
    matched_at: Optional[datetime] = None
    already_liked: bool = False


def quota_lock_key(actor_id: str) -> str:
    return f"quota:{actor_id}"


class MatchingService:
    """Like and pass flows plus the read side of the swipe collection."""

    def __init__(self, database: Database, daily_limit: int = DAILY_LIKE_LIMIT,
                 tz_name: str = DAY_BOUNDARY_TZ):
        self.kv = database.kv
        self.swipes = database.swipe_actions
        self.quota = DailyQuotaGuard(database.swipe_actions, daily_limit, tz_name)
        self.recorder = SwipeRecorder(database.swipe_actions)
        self.detector = MutualMatchDetector(database.swipe_actions, database.kv)
        self.connections = ConnectionService(database.connections)

    async def like(self, actor_id: str, target_id: str, action=SwipeType.LIKE,
                   meta: Optional[SwipeMeta] = None) -> LikeResult:
        """Quota check, record, then mutual-match detection.

        The quota count and the insert happen under a per-actor lock, so
        concurrent likes from one actor cannot overshoot the daily limit.
        """
        check = validate_swipe(actor_id, target_id, action)
        if not check.ok:
            raise ValidationError(check.reason, {"field": check.field})
        action = SwipeType(action)
        if not action.is_like:
            raise ValidationError("Invalid like type. Must be like or super_like", {"field": "type"})

        async with self.kv.lock(quota_lock_key(actor_id)):
            now = utcnow()
            count = await self.quota.get_daily_like_count(actor_id, now)
            logger.info(f"📊 Daily like count for {actor_id[:8]}...: {count}/{self.quota.daily_limit}")
            if count >= self.quota.daily_limit:
                logger.warning(f"🚫 {actor_id[:8]}... reached the daily like limit")
                raise QuotaExceededError(count, self.quota.daily_limit)

            swipe, created = await self.recorder.record_swipe(actor_id, target_id, action, meta, acted_at=now)

        if created:
            count += 1
        else:
            logger.info(f"ℹ️  {actor_id[:8]}... already swiped {target_id[:8]}... ({swipe.action.value})")

        match = MatchResult(is_match=swipe.is_match, matched_at=swipe.matched_at)
        if swipe.action.is_like and not swipe.is_match:
            # A repeated like retries a link that failed after the record was stored
            match = await self.detector.detect_and_link_match(swipe)

        connection_id = None
        if match.is_match:
            connection_id = await self.connections.ensure_connection(
                actor_id, target_id,
                initiated_by=actor_id,
                match_type=swipe.action,
                matched_at=match.matched_at,
            )

        return LikeResult(
            swipe=swipe,
            is_mutual_match=match.is_match,
            daily_like_count=count,
            remaining_likes=self.quota.remaining_likes(count),
            connection_id=connection_id,
            matched_at=match.matched_at,
            already_liked=not created,
        )

    async def pass_profile(self, actor_id: str, target_id: str,
                           meta: Optional[SwipeMeta] = None) -> Tuple[SwipeAction, bool]:
        return await self.recorder.record_swipe(actor_id, target_id, SwipeType.PASS, meta)

    async def daily_stats(self, actor_id: str, when: Union[date, datetime, None] = None) -> dict:
        count = await self.quota.get_daily_like_count(actor_id, when)
        return {
            "dailyLikeCount": count,
            "canLikeToday": count < self.quota.daily_limit,
            "remainingLikes": self.quota.remaining_likes(count),
            "dailyLimit": self.quota.daily_limit,
        }

    async def _page(self, query: dict, sort_field: str, page: int, limit: int) -> Tuple[List[SwipeAction], int, int, int]:
        page, limit, skip = normalize_page(page, limit)
        try:
            total = await self.swipes.count_documents(query)
            cursor = self.swipes.find(query, sort=[(sort_field, DESCENDING)], skip=skip, limit=limit)
            docs = [doc async for doc in cursor]
        except PyMongoError as e:
            logger.error(f"❌ Failed to list swipes for {query}: {e}")
            raise StorageError("Failed to list swipes") from e
        return [SwipeAction.model_validate(d) for d in docs], total, page, limit

    async def liked_profiles(self, actor_id: str, page: int = 1, limit: int = 20):
        """Like-class swipes issued by ``actor_id``, newest first."""
        swipes, total, page, limit = await self._page(
            {"actor_id": actor_id, "action": {"$in": LIKE_ACTION_VALUES}}, "acted_at", page, limit,
        )
        matched = [s.target_id for s in swipes if s.is_match]
        connections = await self.connections.find_for_pairs(actor_id, matched)
        items = []
        for s in swipes:
            connection = connections.get(s.target_id)
            items.append({
                "likeId": s.id,
                "targetId": s.target_id,
                "type": s.action.value,
                "likedAt": s.acted_at,
                "isMutualMatch": s.is_match,
                "matchedAt": s.matched_at,
                "connectionId": connection.id if connection else None,
            })
        return items, total, page, limit

    async def liked_by(self, user_id: str, page: int = 1, limit: int = 20):
        swipes, total, page, limit = await self._page(
            {"target_id": user_id, "action": {"$in": LIKE_ACTION_VALUES}}, "acted_at", page, limit,
        )
        items = [{
            "likeId": s.id,
            "actorId": s.actor_id,
            "type": s.action.value,
            "likedAt": s.acted_at,
            "isMutualMatch": s.is_match,
        } for s in swipes]
        return items, total, page, limit

    async def mutual_matches(self, user_id: str, page: int = 1, limit: int = 20):
        swipes, total, page, limit = await self._page(
            {"actor_id": user_id, "is_match": True}, "matched_at", page, limit,
        )
        connections = await self.connections.find_for_pairs(user_id, [s.target_id for s in swipes])
        items = []
        for s in swipes:
            connection = connections.get(s.target_id)
            items.append({
                "userId": s.target_id,
                "matchedAt": s.matched_at,
                "connectionId": connection.id if connection else None,
                "toastSeen": connection.toast_seen_map() if connection else None,
                "shouldShowToast": connection.should_show_toast(user_id) if connection else False,
            })
        return items, total, page, limit

    async def mark_toast_seen(self, user_id: str, target_id: str) -> str:
        if not target_id:
            raise ValidationError("Target user ID is required", {"field": "target_id"})
        connection = await self.connections.mark_toast_seen(user_id, target_id)
        logger.info(f"👀 Match toast seen by {user_id[:8]}... on connection {connection.id}")
        return connection.id
