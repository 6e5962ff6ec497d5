"""
Maintenance tasks for the swipe_actions collection.

    python -m swipematch.maintenance dedupe     # before the unique index exists
    python -m swipematch.maintenance reconcile  # repair half-matched pairs
"""

from itertools import groupby
from typing import List, Optional, Tuple
import argparse
import asyncio
import logging

from swipematch.core.db import Database
from swipematch.models.connection import pair_key
from swipematch.models.swipe import LIKE_ACTION_VALUES
from swipematch.services.connections import ConnectionService
from swipematch.services.mutual_match import MutualMatchDetector

logger = logging.getLogger(__name__)


def _keep_order(doc: dict):
    # Matched records first, then the earliest action
    return (not doc.get("is_match", False), doc.get("acted_at") is None, doc.get("acted_at"))


async def find_duplicate_pairs(collection) -> List[List[dict]]:
    """Groups of records sharing one (actor_id, target_id) pair."""
    cursor = collection.find(
        {},
        {"actor_id": 1, "target_id": 1, "is_match": 1, "acted_at": 1},
        sort=[("actor_id", 1), ("target_id", 1)],
    )
    docs = [doc async for doc in cursor]
    groups = []
    for _, items in groupby(docs, key=lambda d: (d.get("actor_id"), d.get("target_id"))):
        items = list(items)
        if len(items) > 1:
            groups.append(items)
    return groups


async def remove_duplicate_swipes(collection) -> int:
    """Keep one record per pair (the matched one, else the earliest) and
    delete the rest. Returns the number of deleted records."""
    print("🔍 Finding duplicate swipes...")
    duplicates = await find_duplicate_pairs(collection)
    print(f"📊 Found {len(duplicates)} duplicate groups")

    if not duplicates:
        print("✅ No duplicates found! Collection is clean.")
        return 0

    total_removed = 0
    for docs in duplicates:
        docs_sorted = sorted(docs, key=_keep_order)
        keep_id = docs_sorted[0]["_id"]
        delete_ids = [doc["_id"] for doc in docs_sorted[1:]]

        print(f"\n🔄 Processing: actor={docs[0]['actor_id'][:8]}..., target={docs[0]['target_id'][:8]}...")
        print(f"   Keeping: {keep_id}")
        print(f"   Deleting: {len(delete_ids)} extra records")

        result = await collection.delete_many({"_id": {"$in": delete_ids}})
        total_removed += result.deleted_count

    print(f"\n✨ Cleanup complete! Removed {total_removed} duplicates")
    return total_removed


def _is_like(doc: Optional[dict]) -> bool:
    return doc is not None and doc.get("action") in LIKE_ACTION_VALUES


def _needs_repair(doc: dict, reverse: Optional[dict]) -> bool:
    if doc.get("is_match"):
        return (reverse is None or not reverse.get("is_match")
                or reverse.get("matched_at") != doc.get("matched_at"))
    # Reciprocal likes left unlinked by a failed match write
    return _is_like(reverse)


async def find_half_matched_pairs(collection) -> List[Tuple[dict, Optional[dict]]]:
    """Like records whose pair is not consistently matched: a matched record
    with an unmatched or differently stamped reverse, or two reciprocal likes
    that were never linked."""
    pairs = []
    seen = set()
    async for doc in collection.find({"action": {"$in": LIKE_ACTION_VALUES}}):
        actor_id, target_id = doc["actor_id"], doc["target_id"]
        key = pair_key(actor_id, target_id)
        if key in seen:
            continue
        reverse = await collection.find_one({"actor_id": target_id, "target_id": actor_id})
        if _needs_repair(doc, reverse):
            seen.add(key)
            pairs.append((doc, reverse))
    return pairs


async def reconcile_matches(database: Database) -> dict:
    """Relink every inconsistent pair that has reciprocal likes and make sure
    it has a connection. Pairs whose reverse record is missing or a pass are
    reported, not changed."""
    detector = MutualMatchDetector(database.swipe_actions, database.kv)
    connections = ConnectionService(database.connections)
    pairs = await find_half_matched_pairs(database.swipe_actions)
    print(f"📊 Found {len(pairs)} inconsistent match pairs")

    repaired, orphaned = 0, 0
    for doc, reverse in pairs:
        actor_id, target_id = doc["actor_id"], doc["target_id"]
        if not _is_like(reverse):
            orphaned += 1
            logger.error(f"❌ {actor_id} -> {target_id} is matched without a reciprocal like")
            continue
        result = await detector.relink(actor_id, target_id)
        if result.is_match:
            # The later like is the one that completed the match
            closing = max([doc, reverse], key=lambda d: d["acted_at"])
            await connections.ensure_connection(
                actor_id, target_id,
                initiated_by=closing["actor_id"],
                match_type=closing["action"],
                matched_at=result.matched_at,
            )
            repaired += 1
            print(f"   ✅ Relinked {actor_id[:8]}... <-> {target_id[:8]}...")

    print(f"\n✨ Reconciliation complete! repaired={repaired}, orphaned={orphaned}")
    return {"repaired": repaired, "orphaned": orphaned}


async def _run(command: str):
    database = Database()
    try:
        if command == "dedupe":
            await remove_duplicate_swipes(database.swipe_actions)
        else:
            await reconcile_matches(database)
    finally:
        database.mongo_client.close()


def main(argv=None):
    parser = argparse.ArgumentParser(description="swipe_actions maintenance")
    parser.add_argument("command", choices=["dedupe", "reconcile"])
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    print("🧹 Swipe Match Maintenance")
    print("=" * 50)
    asyncio.run(_run(args.command))


if __name__ == "__main__":
    main()
