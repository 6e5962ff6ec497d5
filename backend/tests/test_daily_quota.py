import asyncio
import os
import time
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfoNotFoundError

import pytest

from swipematch.core.config import resolve_tz
from swipematch.services.daily_quota import DailyQuotaGuard


def _swipe(actor_id, target_id, action, acted_at):
    return {
        "actor_id": actor_id,
        "target_id": target_id,
        "action": action,
        "is_match": False,
        "acted_at": acted_at,
        "meta": {"source": "discovery", "platform": "web"},
    }


def test_day_window_utc():
    guard = DailyQuotaGuard(None, tz_name="UTC")
    start, end = guard.day_window(datetime(2024, 3, 10, 15, 30))
    assert start == datetime(2024, 3, 10, 0, 0, 0)
    assert end == datetime(2024, 3, 10, 23, 59, 59, 999000)


def test_day_window_for_plain_date():
    guard = DailyQuotaGuard(None, tz_name="UTC")
    assert guard.day_window(date(2024, 3, 10)) == guard.day_window(datetime(2024, 3, 10, 8, 0))


def test_day_window_follows_configured_zone():
    guard = DailyQuotaGuard(None, tz_name="Asia/Kolkata")
    # 20:00 UTC is already 01:30 on the next day in IST (+05:30)
    start, end = guard.day_window(datetime(2024, 3, 10, 20, 0))
    assert start == datetime(2024, 3, 10, 18, 30)
    assert end == datetime(2024, 3, 11, 18, 29, 59, 999000)


def test_daily_count_ignores_passes_other_days_and_other_actors(database):
    now = datetime(2024, 3, 10, 12, 0)
    docs = [
        _swipe("alice", "bob", "like", now),
        _swipe("alice", "carol", "super_like", now - timedelta(hours=2)),
        _swipe("alice", "dave", "pass", now),
        _swipe("alice", "erin", "like", now - timedelta(days=1)),
        _swipe("frank", "alice", "like", now),
    ]
    guard = DailyQuotaGuard(database.swipe_actions, daily_limit=5, tz_name="UTC")

    async def scenario():
        await database.swipe_actions.insert_many(docs)
        return await guard.get_daily_like_count("alice", now), await guard.can_like_today("alice", now)

    count, allowed = asyncio.run(scenario())
    assert count == 2
    assert allowed is True


def test_can_like_today_false_at_limit(database):
    now = datetime(2024, 3, 10, 12, 0)
    guard = DailyQuotaGuard(database.swipe_actions, daily_limit=2, tz_name="UTC")

    async def scenario():
        await database.swipe_actions.insert_many([
            _swipe("alice", "bob", "like", now),
            _swipe("alice", "carol", "like", now),
        ])
        return await guard.can_like_today("alice", now)

    assert asyncio.run(scenario()) is False


def test_remaining_likes_never_negative():
    guard = DailyQuotaGuard(None, daily_limit=5, tz_name="UTC")
    assert guard.remaining_likes(0) == 5
    assert guard.remaining_likes(3) == 2
    assert guard.remaining_likes(7) == 0


@pytest.fixture
def eastern_local_time():
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")
    previous = os.environ.get("TZ")
    # POSIX rule for US Eastern, so no tz database is needed
    os.environ["TZ"] = "EST5EDT,M3.2.0,M11.1.0"
    time.tzset()
    yield
    if previous is None:
        os.environ.pop("TZ", None)
    else:
        os.environ["TZ"] = previous
    time.tzset()


def test_day_window_defaults_to_server_local_zone(eastern_local_time):
    guard = DailyQuotaGuard(None, tz_name="")
    assert guard.tz is None

    # 03:00 UTC is still 22:00 the previous evening in EST (-05:00)
    start, end = guard.day_window(datetime(2024, 3, 9, 3, 0))
    assert start == datetime(2024, 3, 8, 5, 0)
    assert end == datetime(2024, 3, 9, 4, 59, 59, 999000)


def test_local_day_window_across_dst_change(eastern_local_time):
    guard = DailyQuotaGuard(None, tz_name="")
    # Clocks spring forward on 2024-03-10, so the local day is 23 hours long
    start, end = guard.day_window(date(2024, 3, 10))
    assert start == datetime(2024, 3, 10, 5, 0)
    assert end == datetime(2024, 3, 11, 3, 59, 59, 999000)


def test_zone_names_resolve_once():
    assert resolve_tz("") is None
    assert resolve_tz("utc") is timezone.utc
    assert resolve_tz("Asia/Kolkata") is resolve_tz("Asia/Kolkata")
    assert DailyQuotaGuard(None, tz_name="Asia/Kolkata").tz is resolve_tz("Asia/Kolkata")


def test_unknown_zone_name_rejected():
    with pytest.raises(ZoneInfoNotFoundError):
        resolve_tz("Not/AZone")
