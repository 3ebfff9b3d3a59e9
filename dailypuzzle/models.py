from datetime import datetime, timezone
from sqlalchemy import String, DateTime, Integer, Boolean
from sqlalchemy.orm import Mapped, mapped_column

from dailypuzzle.db import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Activity(Base):
    __tablename__ = "activities"

    date: Mapped[str] = mapped_column(String(10), primary_key=True)  # "YYYY-MM-DD"
    uid: Mapped[str] = mapped_column(String(128), nullable=False, default="", index=True)
    score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    time_taken: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # seconds
    difficulty: Mapped[str] = mapped_column(String(10), nullable=False, default="easy")
    solved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    puzzle_seed: Mapped[str] = mapped_column(String(10), nullable=False, default="")
    synced: Mapped[int] = mapped_column(Integer, nullable=False, default=0, index=True)  # 0/1
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


class HintUsage(Base):
    __tablename__ = "hint_usage"

    date: Mapped[str] = mapped_column(String(10), primary_key=True)
    difficulty: Mapped[str] = mapped_column(String(10), nullable=False)
    hints_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    budget: Mapped[int] = mapped_column(Integer, nullable=False, default=1)


class SchemaVersion(Base):
    __tablename__ = "schema_version"

    version: Mapped[int] = mapped_column(Integer, primary_key=True)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    applied_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
