"""Activity and hint-usage stores over an async SQLAlchemy session.

Writes are upserts keyed by date, so concurrent writers converge on one
record per date. Every activity write invalidates the analytics cache the
store was built with.
"""
import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dailypuzzle.models import Activity, HintUsage
from dailypuzzle.schemas import ActivityRecord, HintUsageRecord

logger = logging.getLogger(__name__)

ACTIVITY_FIELDS = (
    "uid",
    "score",
    "time_taken",
    "difficulty",
    "solved",
    "attempts",
    "puzzle_seed",
    "synced",
    "created_at",
)


class ActivityStore:
    def __init__(self, session: AsyncSession, cache=None):
        self.session = session
        self.cache = cache

    def _written(self) -> None:
        if self.cache is not None:
            self.cache.invalidate()

    async def get_by_date(self, date: str) -> ActivityRecord | None:
        if not date:
            return None
        activity = await self.session.get(Activity, date)
        return ActivityRecord.model_validate(activity) if activity else None

    async def get_all(self) -> list[ActivityRecord]:
        """All activity, newest first."""
        result = await self.session.execute(select(Activity).order_by(Activity.date.desc()))
        return [ActivityRecord.model_validate(a) for a in result.scalars().all()]

    async def get_recent_solved(self, n: int = 7) -> list[ActivityRecord]:
        result = await self.session.execute(
            select(Activity)
            .where(Activity.solved.is_(True))
            .order_by(Activity.date.desc())
            .limit(n)
        )
        return [ActivityRecord.model_validate(a) for a in result.scalars().all()]

    async def get_unsynced(self) -> list[ActivityRecord]:
        result = await self.session.execute(
            select(Activity).where(Activity.synced == 0).order_by(Activity.date.desc())
        )
        return [ActivityRecord.model_validate(a) for a in result.scalars().all()]

    async def upsert(self, date: str, **fields) -> ActivityRecord:
        """Insert or merge the record for a date.

        Fields passed as None keep their stored value. created_at is never
        overwritten once set and synced is always stored as 0 or 1.
        """
        if not date or not isinstance(date, str):
            raise ValueError("Activity date must be a non-empty string")
        unknown = set(fields) - set(ACTIVITY_FIELDS)
        if unknown:
            raise ValueError(f"Unknown activity fields: {sorted(unknown)}")

        try:
            activity = await self._merge(date, fields)
            await self.session.commit()
        except IntegrityError:
            # Another writer inserted this date first; merge onto theirs
            await self.session.rollback()
            logger.info(f"Activity {date} created concurrently, merging")
            activity = await self._merge(date, fields)
            await self.session.commit()

        await self.session.refresh(activity)
        self._written()
        return ActivityRecord.model_validate(activity)

    async def _merge(self, date: str, fields: dict) -> Activity:
        activity = await self.session.get(Activity, date)
        if activity is None:
            activity = Activity(
                date=date,
                uid="",
                score=0,
                time_taken=0,
                difficulty="easy",
                solved=False,
                attempts=1,
                puzzle_seed=date,
                synced=0,
            )
            self.session.add(activity)
        elif "created_at" in fields:
            fields = {k: v for k, v in fields.items() if k != "created_at"}

        for key, value in fields.items():
            if value is None:
                continue
            if key == "synced":
                value = 1 if value else 0
            setattr(activity, key, value)

        activity.attempts = max(activity.attempts, 1)
        if not activity.solved:
            activity.score = 0
        return activity

    async def increment_attempts(self, date: str) -> ActivityRecord | None:
        """Bump the attempt counter; does nothing if the date has no record."""
        activity = await self.session.get(Activity, date) if date else None
        if activity is None:
            return None
        activity.attempts = (activity.attempts or 0) + 1
        activity.synced = 0
        await self.session.commit()
        await self.session.refresh(activity)
        self._written()
        return ActivityRecord.model_validate(activity)

    async def mark_synced(self, dates: list[str]) -> None:
        if not dates:
            return
        await self.session.execute(
            update(Activity).where(Activity.date.in_(dates)).values(synced=1)
        )
        await self.session.commit()
        self._written()


class HintUsageStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, date: str) -> HintUsageRecord | None:
        usage = await self.session.get(HintUsage, date)
        return HintUsageRecord.model_validate(usage) if usage else None

    async def put(self, record: HintUsageRecord) -> HintUsageRecord:
        """Store usage for a date; the count never goes down."""
        usage = await self.session.get(HintUsage, record.date)
        if usage is None:
            usage = HintUsage(date=record.date)
            self.session.add(usage)
            usage.hints_used = record.hints_used
        else:
            usage.hints_used = max(usage.hints_used, record.hints_used)
        usage.difficulty = record.difficulty
        usage.budget = record.budget
        await self.session.commit()
        await self.session.refresh(usage)
        return HintUsageRecord.model_validate(usage)
