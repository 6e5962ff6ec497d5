from datetime import timezone, tzinfo
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo
import os

from dotenv import load_dotenv

load_dotenv()

MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017")
MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "matrimony")
# Empty means no Redis: locks and counters fall back to the in-process store
REDIS_URI = os.getenv("REDIS_URI", "")

DAILY_LIKE_LIMIT = int(os.getenv("DAILY_LIKE_LIMIT", "5"))
# IANA zone used for the daily like window; empty uses the server's local zone
DAY_BOUNDARY_TZ = os.getenv("DAY_BOUNDARY_TZ", "")


@lru_cache(maxsize=None)
def resolve_tz(tz_name: str) -> Optional[tzinfo]:
    """Zone for a configured name; None stands for the server's local zone."""
    if not tz_name:
        return None
    if tz_name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(tz_name)


# An unknown zone name fails here, at import, rather than on every request
resolve_tz(DAY_BOUNDARY_TZ)

LOCK_TIMEOUT_SECONDS = float(os.getenv("LOCK_TIMEOUT_SECONDS", "10"))
LOCK_WAIT_SECONDS = float(os.getenv("LOCK_WAIT_SECONDS", "5"))

JWT_SECRET = os.getenv("JWT_SECRET", "")
JWT_ALGORITHM = "HS256"

RL_SWIPE_LIMIT = int(os.getenv("RL_SWIPE_LIMIT", "60"))
RL_WINDOW_SECONDS = int(os.getenv("RL_WINDOW_SECONDS", "60"))

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
PORT = int(os.getenv("PORT", "3000"))
