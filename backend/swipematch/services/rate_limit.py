import logging
import time
from typing import Optional

from fastapi import Depends, HTTPException

from swipematch.core import config
from swipematch.core.db import Database, get_database
from swipematch.core.security import get_current_actor

logger = logging.getLogger(__name__)


async def check_rate_limit(database: Database, key: str, limit: int, window_seconds: int) -> int:
    """Fixed-window counter. Returns 0 when allowed, otherwise the seconds
    until the window resets."""
    now = time.time()
    window = int(now // window_seconds)
    count = await database.kv.incr(f"rl:{key}:{window}", window_seconds)
    if count <= limit:
        return 0
    return max(1, int((window + 1) * window_seconds - now))


def rate_limit_dependency(route_key: str, limit: Optional[int] = None,
                          window_seconds: Optional[int] = None):
    async def _dep(actor_id: str = Depends(get_current_actor),
                   database: Database = Depends(get_database)) -> None:
        max_requests = limit if limit is not None else config.RL_SWIPE_LIMIT
        window = window_seconds if window_seconds is not None else config.RL_WINDOW_SECONDS
        retry_after = await check_rate_limit(database, f"{route_key}:{actor_id}", max_requests, window)
        if retry_after:
            logger.warning(f"🚦 Rate limit hit on {route_key} for {actor_id[:8]}...")
            raise HTTPException(
                status_code=429,
                detail=f"Too many requests. Retry in {retry_after}s",
                headers={"Retry-After": str(retry_after)},
            )

    return Depends(_dep)
