from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, NamedTuple, Optional

from bson import ObjectId
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.functional_validators import AfterValidator


# Custom ObjectId validator
def validate_object_id(value: str) -> str:
    if not ObjectId.is_valid(value):
        raise ValueError("Invalid ObjectId")
    return value

PyObjectId = Annotated[str, BeforeValidator(str), AfterValidator(validate_object_id)]


def utcnow() -> datetime:
    """Naive UTC timestamp at the millisecond precision MongoDB stores."""
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


class SwipeType(str, Enum):
    LIKE = "like"
    SUPER_LIKE = "super_like"
    PASS = "pass"

    @property
    def is_like(self) -> bool:
        return self in LIKE_ACTIONS


LIKE_ACTIONS = (SwipeType.LIKE, SwipeType.SUPER_LIKE)
LIKE_ACTION_VALUES = [a.value for a in LIKE_ACTIONS]


class SwipeSource(str, Enum):
    DISCOVERY = "discovery"
    SEARCH = "search"
    RECOMMENDATION = "recommendation"


class SwipePlatform(str, Enum):
    WEB = "web"
    MOBILE = "mobile"
    DESKTOP = "desktop"


class SwipeMeta(BaseModel):
    source: SwipeSource = SwipeSource.DISCOVERY
    platform: SwipePlatform = SwipePlatform.WEB


class SwipeAction(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: PyObjectId = Field(default_factory=lambda: str(ObjectId()), alias="_id")
    actor_id: str
    target_id: str
    action: SwipeType
    is_match: bool = False
    acted_at: datetime = Field(default_factory=utcnow)
    matched_at: Optional[datetime] = None
    meta: SwipeMeta = Field(default_factory=SwipeMeta)

    def to_document(self) -> dict:
        """Fields written on insert; ``_id`` is left to the server."""
        doc = {
            "actor_id": self.actor_id,
            "target_id": self.target_id,
            "action": self.action.value,
            "is_match": self.is_match,
            "acted_at": self.acted_at,
            "meta": self.meta.model_dump(mode="json"),
        }
        if self.matched_at is not None:
            doc["matched_at"] = self.matched_at
        return doc

    @property
    def state(self) -> str:
        return "matched" if self.is_match else "unmatched"


class ValidationResult(NamedTuple):
    ok: bool
    reason: Optional[str] = None
    field: Optional[str] = None


def validate_swipe(actor_id: Optional[str], target_id: Optional[str], action) -> ValidationResult:
    """Check a swipe request before anything touches the store."""
    if not actor_id or not str(actor_id).strip():
        return ValidationResult(False, "Actor user ID is required", "actor_id")
    if not target_id or not str(target_id).strip():
        return ValidationResult(False, "Target user ID is required", "target_id")
    if actor_id == target_id:
        return ValidationResult(False, "Cannot swipe on your own profile", "target_id")
    try:
        SwipeType(action)
    except ValueError:
        return ValidationResult(False, "Invalid action. Must be like, super_like, or pass", "action")
    return ValidationResult(True)
