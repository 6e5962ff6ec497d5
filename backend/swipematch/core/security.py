from datetime import datetime, timedelta, timezone
from typing import Any, Optional
import logging

import jwt
from fastapi import Header, HTTPException

from swipematch.core import config

logger = logging.getLogger(__name__)


def create_access_token(user_id: str, ttl_minutes: int = 60) -> str:
    if not config.JWT_SECRET:
        raise HTTPException(status_code=500, detail="JWT secret not configured")
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": user_id,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=ttl_minutes)).timestamp()),
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def get_current_actor(authorization: Optional[str] = Header(None)) -> str:
    """Resolve the acting user from the bearer token.

    The user id is read from ``sub``, falling back to the ``userId`` claim
    issued by the web frontend's session tokens.
    """
    if not authorization or not authorization.startswith("Bearer "):
        logger.warning("Missing or malformed Authorization header")
        raise HTTPException(status_code=401, detail="Unauthorized - No Bearer token")
    if not config.JWT_SECRET:
        raise HTTPException(status_code=500, detail="JWT secret not configured")

    token = authorization.split("Bearer ", 1)[1].strip()
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.warning("JWT token expired")
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid JWT token: %s", str(e))
        raise HTTPException(status_code=401, detail="Invalid token")

    actor_id = payload.get("sub") or payload.get("userId")
    if not actor_id:
        raise HTTPException(status_code=401, detail="Invalid token")
    return str(actor_id)
