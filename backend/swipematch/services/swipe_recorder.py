from datetime import datetime
from typing import Optional, Tuple
import logging

from bson import ObjectId
from pymongo.errors import DuplicateKeyError, PyMongoError

from swipematch.core.errors import ConflictError, StorageError, ValidationError
from swipematch.models.swipe import SwipeAction, SwipeMeta, SwipeType, utcnow, validate_swipe

logger = logging.getLogger(__name__)


class SwipeRecorder:
    """Persists one directed swipe per ordered (actor, target) pair."""

    def __init__(self, collection):
        self.collection = collection

    async def get_swipe(self, actor_id: str, target_id: str) -> Optional[SwipeAction]:
        try:
            doc = await self.collection.find_one({"actor_id": actor_id, "target_id": target_id})
        except PyMongoError as e:
            logger.error(f"❌ Failed to read swipe {actor_id} -> {target_id}: {e}")
            raise StorageError("Failed to read swipe") from e
        return SwipeAction.model_validate(doc) if doc else None

    async def _insert(self, swipe: SwipeAction) -> Optional[ObjectId]:
        """Upsert keyed on the pair. Returns the new ``_id``, or None when a
        record for the pair already existed."""
        doc = swipe.to_document()
        key = {"actor_id": doc.pop("actor_id"), "target_id": doc.pop("target_id")}
        try:
            result = await self.collection.update_one(key, {"$setOnInsert": doc}, upsert=True)
        except DuplicateKeyError as e:
            # Two upserts raced past the filter; the unique index kept one
            raise ConflictError("You have already swiped on this user") from e
        except PyMongoError as e:
            logger.error(f"❌ Failed to save swipe {swipe.actor_id} -> {swipe.target_id} ({swipe.action.value}): {e}")
            raise StorageError("Failed to record swipe") from e
        return result.upserted_id

    async def record_swipe(self, actor_id: str, target_id: str, action,
                           meta: Optional[SwipeMeta] = None,
                           acted_at: Optional[datetime] = None) -> Tuple[SwipeAction, bool]:
        """Record ``actor_id``'s action on ``target_id``.

        Returns ``(swipe, created)``. When the pair already has a record the
        stored one is returned untouched with ``created=False``, whatever
        action was requested this time.
        """
        check = validate_swipe(actor_id, target_id, action)
        if not check.ok:
            logger.warning(f"🚫 Rejected swipe {actor_id} -> {target_id} ({action}): {check.reason}")
            raise ValidationError(check.reason, {"field": check.field})

        swipe = SwipeAction(
            actor_id=actor_id,
            target_id=target_id,
            action=SwipeType(action),
            acted_at=acted_at or utcnow(),
            meta=meta or SwipeMeta(),
        )

        logger.info(f"💾 Saving {swipe.action.value}: actor={actor_id[:8]}..., target={target_id[:8]}...")
        try:
            new_id = await self._insert(swipe)
        except ConflictError:
            logger.info(f"ℹ️  Concurrent swipe already stored for {actor_id} -> {target_id}")
            new_id = None

        if new_id is None:
            existing = await self.get_swipe(actor_id, target_id)
            if existing is None:
                logger.error(f"❌ Swipe {actor_id} -> {target_id} reported as existing but not found")
                raise StorageError("Failed to record swipe")
            logger.info(f"ℹ️  Already swiped ({existing.action.value}), keeping existing record")
            return existing, False

        swipe.id = str(new_id)
        logger.info(f"✅ New {swipe.action.value} saved (ID: {swipe.id[:8]}...)")
        return swipe, True
