"""Remote activity sync and leaderboard client.

Pushes unsynced activity records to the remote server and keeps the
leaderboard up to date. With no sync_url configured every call is a no-op,
and failures never reach the player: local data stays put and is retried on
the next sync.
"""
import asyncio
import logging

import httpx
from sqlalchemy.exc import SQLAlchemyError

from dailypuzzle.db import settings
from dailypuzzle.generators import PuzzleValidationError, validate_date
from dailypuzzle.schemas import ActivityRecord

logger = logging.getLogger(__name__)


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=settings.sync_url,
        timeout=settings.sync_timeout,
        follow_redirects=True,
    )


def is_enabled() -> bool:
    return bool(settings.sync_url)


def _payload(uid: str, activity: ActivityRecord) -> dict:
    return {
        "uid": uid,
        "date": activity.date,
        "score": activity.score,
        "timeTaken": activity.time_taken,
        "difficulty": activity.difficulty,
        "solved": activity.solved,
        "attempts": activity.attempts,
        "puzzleSeed": activity.puzzle_seed,
    }


async def push_activity(client: httpx.AsyncClient, uid: str, activity: ActivityRecord) -> str:
    """Push one activity record; returns its date on success."""
    resp = await client.post("/sync-activity", json=_payload(uid, activity))
    resp.raise_for_status()
    return activity.date


async def bulk_sync(uid: str, activities: list[ActivityRecord]) -> list[str]:
    """Push records in parallel and return the dates that made it."""
    if not uid or not activities or not is_enabled():
        return []

    async with _client() as client:
        results = await asyncio.gather(
            *(push_activity(client, uid, a) for a in activities),
            return_exceptions=True,
        )

    synced = []
    for activity, result in zip(activities, results):
        if isinstance(result, Exception):
            logger.warning(f"Failed to sync activity for {activity.date}: {result}")
        else:
            synced.append(result)
    return synced


async def sync_activities(store, uid: str) -> list[str]:
    """Push every unsynced record for a signed-in player and mark them synced."""
    if not uid or not is_enabled():
        return []
    try:
        unsynced = await store.get_unsynced()
        if not unsynced:
            return []

        logger.info(f"Found {len(unsynced)} unsynced activities. Uploading...")
        synced = await bulk_sync(uid, unsynced)
        if synced:
            await store.mark_synced(synced)
            logger.info(f"Synced {len(synced)} activities")
        if len(synced) < len(unsynced):
            logger.warning(
                f"{len(unsynced) - len(synced)} activities failed to sync. Will retry next time."
            )
        return synced
    except (httpx.HTTPError, SQLAlchemyError) as e:
        logger.warning(f"Sync skipped: {e}")
        return []


async def update_leaderboard(uid: str, name: str, score: int) -> None:
    """Record a score; the server keeps the best one per player."""
    if not uid or not is_enabled():
        return
    async with _client() as client:
        resp = await client.post(
            "/save-score", json={"uid": uid, "name": name or "Anonymous", "score": score}
        )
        resp.raise_for_status()


async def fetch_leaderboard(top_n: int | None = None) -> list[dict]:
    """Top leaderboard entries, best first. Empty when sync is not configured."""
    if not is_enabled():
        return []
    top_n = top_n or settings.leaderboard_size
    async with _client() as client:
        resp = await client.get("/leaderboard")
        resp.raise_for_status()
        rows = resp.json()

    # Keep only each player's best entry
    best: dict[str, dict] = {}
    for row in rows:
        uid = row.get("uid")
        if uid and (uid not in best or row.get("score", 0) > best[uid].get("score", 0)):
            best[uid] = row
    return sorted(best.values(), key=lambda r: r.get("score", 0), reverse=True)[:top_n]


async def fetch_remote_activities(uid: str) -> list[dict]:
    if not uid or not is_enabled():
        return []
    async with _client() as client:
        resp = await client.get(f"/activity/{uid}")
        resp.raise_for_status()
        return resp.json()


async def restore_from_remote(store, uid: str) -> int:
    """Pull a player's history back into the local store.

    This is the recovery path after the destructive schema reset. Local
    records win: dates already present locally are left alone, and rows
    without a canonical YYYY-MM-DD date are skipped. Remote errors are
    raised to the caller, which keeps the restore pending.
    """
    restored = 0
    for row in await fetch_remote_activities(uid):
        try:
            date = validate_date(row.get("date"))
        except PuzzleValidationError as e:
            logger.warning(f"Skipping remote activity for {uid}: {e}")
            continue
        if await store.get_by_date(date):
            continue
        await store.upsert(
            date,
            uid=uid,
            score=row.get("score", 0),
            time_taken=row.get("timeTaken", row.get("time_taken", 0)),
            difficulty=row.get("difficulty") or "easy",
            solved=bool(row.get("solved", False)),
            attempts=row.get("attempts", 1),
            puzzle_seed=row.get("puzzleSeed", date),
            synced=1,
        )
        restored += 1
    logger.info(f"Restored {restored} activities for {uid}")
    return restored
