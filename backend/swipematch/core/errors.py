from typing import Any, Optional


class SwipeMatchError(Exception):
    """Base class for errors raised by the matching core.

    ``status_code`` is the HTTP status the routers answer with; ``details``
    is merged into the error body.
    """

    status_code = 500

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_detail(self) -> dict[str, Any]:
        return {"error": self.message, **self.details}


class ValidationError(SwipeMatchError):
    status_code = 400


class NotFoundError(SwipeMatchError):
    status_code = 404


class ConflictError(SwipeMatchError):
    """The ordered (actor, target) pair already has a swipe record."""

    status_code = 409


class QuotaExceededError(SwipeMatchError):
    status_code = 429

    def __init__(self, daily_like_count: int, daily_limit: int):
        super().__init__(
            "Daily like limit reached. Try again tomorrow.",
            {
                "dailyLikeCount": daily_like_count,
                "remainingLikes": 0,
                "dailyLimit": daily_limit,
            },
        )
        self.daily_like_count = daily_like_count
        self.daily_limit = daily_limit


class StorageError(SwipeMatchError):
    status_code = 500


class LockUnavailableError(StorageError):
    pass
