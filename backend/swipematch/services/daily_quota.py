from datetime import date, datetime, time, timezone
from typing import Tuple, Union
import logging

from pymongo.errors import PyMongoError

from swipematch.core.config import DAILY_LIKE_LIMIT, DAY_BOUNDARY_TZ, resolve_tz
from swipematch.core.errors import StorageError
from swipematch.models.swipe import LIKE_ACTION_VALUES, utcnow

logger = logging.getLogger(__name__)

END_OF_DAY = time(23, 59, 59, 999000)


class DailyQuotaGuard:
    """Counts like-class swipes per actor per calendar day.

    The counter is derived from ``swipe_actions`` rather than stored, so it
    can never drift from the records it counts. Passes are never counted and
    a super like costs the same as a like.
    """

    def __init__(self, collection, daily_limit: int = DAILY_LIKE_LIMIT,
                 tz_name: str = DAY_BOUNDARY_TZ):
        self.collection = collection
        self.daily_limit = daily_limit
        # None means the server's local zone
        self.tz = resolve_tz(tz_name)

    def _localize(self, moment: datetime) -> datetime:
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return moment.astimezone(self.tz) if self.tz else moment.astimezone()

    def _to_utc(self, day: date, at: time) -> datetime:
        if self.tz:
            local = datetime.combine(day, at, tzinfo=self.tz)
        else:
            local = datetime.combine(day, at).astimezone()
        return local.astimezone(timezone.utc).replace(tzinfo=None)

    def day_window(self, when: Union[date, datetime, None] = None) -> Tuple[datetime, datetime]:
        """Start and end (inclusive, millisecond precision) of the calendar
        day containing ``when``, as naive UTC datetimes.

        A ``datetime`` is read as UTC when naive; a plain ``date`` names the
        calendar day directly.
        """
        if when is None:
            when = utcnow()
        if isinstance(when, datetime):
            day = self._localize(when).date()
        else:
            day = when
        return self._to_utc(day, time.min), self._to_utc(day, END_OF_DAY)

    async def get_daily_like_count(self, actor_id: str, when: Union[date, datetime, None] = None) -> int:
        start, end = self.day_window(when)
        try:
            return await self.collection.count_documents({
                "actor_id": actor_id,
                "action": {"$in": LIKE_ACTION_VALUES},
                "acted_at": {"$gte": start, "$lte": end},
            })
        except PyMongoError as e:
            logger.error(f"❌ Failed to count daily likes for {actor_id}: {e}")
            raise StorageError("Failed to read daily like count") from e

    async def can_like_today(self, actor_id: str, when: Union[date, datetime, None] = None) -> bool:
        count = await self.get_daily_like_count(actor_id, when)
        return count < self.daily_limit

    def remaining_likes(self, count: int) -> int:
        return max(0, self.daily_limit - count)
