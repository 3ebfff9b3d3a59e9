"""Memo for the analytics snapshots.

The cache has no expiry and does not watch the database: whoever writes to
the activity store must call invalidate(). ActivityStore does this itself
when it is constructed with the cache.
"""
import logging
from datetime import date as Date

from dailypuzzle.insights import compute_insights
from dailypuzzle.retention import compute_retention
from dailypuzzle.schemas import InsightsSnapshot, RetentionSnapshot

logger = logging.getLogger(__name__)


class AnalyticsCache:
    def __init__(self):
        self._retention: RetentionSnapshot | None = None
        self._retention_day: Date | None = None
        self._insights: InsightsSnapshot | None = None

    def invalidate(self) -> None:
        self._retention = None
        self._retention_day = None
        self._insights = None

    async def retention(self, store, today: Date | None = None) -> RetentionSnapshot:
        today = today or Date.today()
        # Streaks are anchored on today, so a new day is a miss too
        if self._retention is None or self._retention_day != today:
            logger.info(f"Computing retention snapshot for {today}")
            self._retention = compute_retention(await store.get_all(), today)
            self._retention_day = today
        return self._retention

    async def insights(self, store) -> InsightsSnapshot:
        if self._insights is None:
            logger.info("Computing insights snapshot")
            self._insights = compute_insights(await store.get_all())
        return self._insights
