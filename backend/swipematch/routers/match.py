from datetime import date
from typing import Optional
import logging
import time

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field

from swipematch.core.db import Database, get_database
from swipematch.core.errors import StorageError, SwipeMatchError
from swipematch.core.security import get_current_actor
from swipematch.models.swipe import SwipeMeta, SwipePlatform, SwipeSource
from swipematch.services.matching_service import MatchingService
from swipematch.services.rate_limit import rate_limit_dependency
from swipematch.utils.pagination import pagination_meta

router = APIRouter()
logger = logging.getLogger(__name__)

GENERIC_FAILURE = "Something went wrong. Please try again."


class SwipeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    target_id: Optional[str] = Field(None, alias="targetId")
    source: SwipeSource = SwipeSource.DISCOVERY
    platform: SwipePlatform = SwipePlatform.WEB

    def meta(self) -> SwipeMeta:
        return SwipeMeta(source=self.source, platform=self.platform)


class LikeRequest(SwipeRequest):
    type: str = "like"  # 'like' or 'super_like'


class ToastSeenRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    target_id: Optional[str] = Field(None, alias="targetId")


def get_matching_service(database: Database = Depends(get_database)) -> MatchingService:
    return MatchingService(database)


def _http_error(e: SwipeMatchError, action: str) -> HTTPException:
    if isinstance(e, StorageError):
        logger.error(f"💥 Storage failure during {action}: {e.message}")
        return HTTPException(status_code=e.status_code, detail={"error": GENERIC_FAILURE})
    return HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post("/like")
async def like_profile(
    request: LikeRequest,
    actor_id: str = Depends(get_current_actor),
    service: MatchingService = Depends(get_matching_service),
    _: None = rate_limit_dependency("match_like"),
):
    """Like (or super like) a profile; reports a mutual match when the other
    user already liked back."""
    try:
        start_time = time.time()
        logger.info(f"💕 Like request - actor: {actor_id[:12]}..., target: {(request.target_id or '')[:12]}..., type: {request.type}")

        result = await service.like(actor_id, request.target_id, request.type, request.meta())

        body = {
            "success": True,
            "swipeId": result.swipe.id,
            "isMutualMatch": result.is_mutual_match,
            "dailyLikeCount": result.daily_like_count,
            "remainingLikes": result.remaining_likes,
        }
        if result.connection_id:
            body["connectionId"] = result.connection_id
        if result.matched_at:
            body["matchedAt"] = result.matched_at
        if result.already_liked:
            body["alreadyLiked"] = True
            body["message"] = "Profile already liked"
        elif result.is_mutual_match:
            body["message"] = "It's a match!"
            # A fresh connection has no toast marked seen yet
            body["shouldShowToast"] = True
        else:
            body["message"] = "Like sent!"

        logger.info(f"⏱️  Like handled in {time.time() - start_time:.3f}s (match={result.is_mutual_match})")
        return body
    except SwipeMatchError as e:
        raise _http_error(e, "like")
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"💥 Error handling like: {e}")
        raise HTTPException(status_code=500, detail={"error": GENERIC_FAILURE})


@router.post("/pass")
async def pass_profile(
    request: SwipeRequest,
    actor_id: str = Depends(get_current_actor),
    service: MatchingService = Depends(get_matching_service),
    _: None = rate_limit_dependency("match_pass"),
):
    """Pass on a profile (swipe left). Never counted against the daily limit."""
    try:
        logger.info(f"👋 Pass request - actor: {actor_id[:12]}..., target: {(request.target_id or '')[:12]}...")
        swipe, created = await service.pass_profile(actor_id, request.target_id, request.meta())
        body = {"success": True, "swipeId": swipe.id, "message": "Profile passed"}
        if not created:
            body["alreadyPassed"] = True
        return body
    except SwipeMatchError as e:
        raise _http_error(e, "pass")
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"💥 Error handling pass: {e}")
        raise HTTPException(status_code=500, detail={"error": GENERIC_FAILURE})


@router.get("/stats")
async def daily_like_stats(
    day: Optional[date] = Query(None, alias="date"),
    actor_id: str = Depends(get_current_actor),
    service: MatchingService = Depends(get_matching_service),
):
    """Daily like statistics; ``date`` (YYYY-MM-DD) defaults to today."""
    try:
        stats = await service.daily_stats(actor_id, day)
        return {"success": True, **stats}
    except SwipeMatchError as e:
        raise _http_error(e, "stats")


@router.get("/liked")
async def liked_profiles(
    page: int = 1,
    limit: int = 20,
    actor_id: str = Depends(get_current_actor),
    service: MatchingService = Depends(get_matching_service),
):
    try:
        items, total, page, limit = await service.liked_profiles(actor_id, page, limit)
        return {
            "success": True,
            "likedProfiles": items,
            "mutualMatches": sum(1 for i in items if i["isMutualMatch"]),
            "pagination": pagination_meta(total, page, limit),
        }
    except SwipeMatchError as e:
        raise _http_error(e, "liked listing")


@router.get("/liked-by")
async def liked_by(
    page: int = 1,
    limit: int = 20,
    actor_id: str = Depends(get_current_actor),
    service: MatchingService = Depends(get_matching_service),
):
    try:
        items, total, page, limit = await service.liked_by(actor_id, page, limit)
        return {"success": True, "likedBy": items, "pagination": pagination_meta(total, page, limit)}
    except SwipeMatchError as e:
        raise _http_error(e, "liked-by listing")


@router.get("/matches")
async def mutual_matches(
    page: int = 1,
    limit: int = 20,
    actor_id: str = Depends(get_current_actor),
    service: MatchingService = Depends(get_matching_service),
):
    try:
        items, total, page, limit = await service.mutual_matches(actor_id, page, limit)
        return {"success": True, "matches": items, "pagination": pagination_meta(total, page, limit)}
    except SwipeMatchError as e:
        raise _http_error(e, "match listing")


@router.post("/mark-toast-seen")
async def mark_toast_seen(
    request: ToastSeenRequest,
    actor_id: str = Depends(get_current_actor),
    service: MatchingService = Depends(get_matching_service),
):
    try:
        connection_id = await service.mark_toast_seen(actor_id, request.target_id)
        return {"success": True, "connectionId": connection_id, "message": "Match toast marked as seen"}
    except SwipeMatchError as e:
        raise _http_error(e, "mark toast seen")
