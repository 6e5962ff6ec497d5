from datetime import datetime
from typing import List

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field

from swipematch.models.swipe import PyObjectId, SwipeType, utcnow


def pair_key(user_a: str, user_b: str) -> str:
    """Order-independent key for a pair of users."""
    low, high = sorted([user_a, user_b])
    return f"{low}:{high}"


class Connection(BaseModel):
    """Accepted relationship created when two users like each other."""

    model_config = ConfigDict(populate_by_name=True)

    id: PyObjectId = Field(default_factory=lambda: str(ObjectId()), alias="_id")
    users: List[str]
    pair_key: str
    status: str = "accepted"
    type: SwipeType = SwipeType.LIKE
    initiated_by: str
    matched_at: datetime
    created_at: datetime = Field(default_factory=utcnow)
    toast_seen_by: List[str] = Field(default_factory=list)

    def other_user(self, user_id: str) -> str:
        return next((u for u in self.users if u != user_id), user_id)

    def should_show_toast(self, user_id: str) -> bool:
        return user_id not in self.toast_seen_by

    def toast_seen_map(self) -> dict:
        return {u: u in self.toast_seen_by for u in self.users}
