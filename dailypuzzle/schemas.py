from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Difficulty = Literal["easy", "medium", "hard"]
PuzzleType = Literal["sequence", "matrix"]
Trend = Literal["improving", "stable", "declining"]


# Activity log
class ActivityRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: str  # "YYYY-MM-DD", primary key
    uid: str = ""
    score: int = 0  # 0 unless solved
    time_taken: int = 0  # seconds
    difficulty: str = "easy"
    solved: bool = False
    attempts: int = 1
    puzzle_seed: str = ""
    synced: int = 0  # 0/1, never a bool
    created_at: datetime | None = None


class HintUsageRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: str
    difficulty: str
    hints_used: int = 0
    budget: int = 1


# Puzzles
class Puzzle(BaseModel):
    type: PuzzleType
    date: str
    difficulty: Difficulty
    pattern_key: str  # internal only
    hint: str  # internal rule description
    sequence: list[int] | None = None
    answer: int | None = None
    grid: list[int | None] | None = None  # row-major, None = blank
    solution: list[int] | None = None

    def public(self) -> "PublicPuzzle":
        """Strip everything that would give the answer away."""
        return PublicPuzzle(
            type=self.type,
            date=self.date,
            difficulty=self.difficulty,
            sequence=self.sequence,
            grid=self.grid,
        )


class PublicPuzzle(BaseModel):
    type: PuzzleType
    date: str
    difficulty: Difficulty
    sequence: list[int] | None = None
    grid: list[int | None] | None = None


class DifficultyDecision(BaseModel):
    puzzle_type: PuzzleType
    difficulty: Difficulty
    performance_score: int
    trend: Trend
    reason: str


# Submissions and hints
class SubmitRequest(BaseModel):
    answer: int | None = None  # sequence puzzles
    grid: list[int | None] | None = None  # matrix puzzles, full 16-cell grid
    time_taken: int = Field(0, ge=0)


class SubmitResponse(BaseModel):
    date: str
    correct: bool
    attempts: int
    score: int | None = None
    errors: list[tuple[int, int]] = []  # (row, col) of wrong matrix cells


class HintRequest(BaseModel):
    user_answer: int | None = None
    grid: list[int | None] | None = None


class HintResponse(BaseModel):
    date: str
    level: int
    text: str | None  # None when the budget is exhausted
    hints_used: int
    budget: int
    remaining: int


# Retention analytics
class RetentionSummary(BaseModel):
    total_played: int
    current_streak: int
    longest_streak: int
    best_score: int
    avg_score: int
    avg_time: int


class WeeklyRetention(BaseModel):
    week_label: str  # "Feb 10"
    rate: float  # 0.0-1.0
    solved_days: int
    total_days: int = 7


class DayOfWeekBucket(BaseModel):
    day: int  # 0=Sun ... 6=Sat
    label: str
    count: int
    rate: float  # relative to the peak day


class ScoreTrendPoint(BaseModel):
    date: str
    score: int
    time_taken: int
    difficulty: str


class DifficultyDistribution(BaseModel):
    easy: int = 0
    medium: int = 0
    hard: int = 0


class HeatmapCell(BaseModel):
    date: str
    solved: bool
    score: int
    difficulty: str
    intensity: int  # 0-4


class RetentionSnapshot(BaseModel):
    summary: RetentionSummary
    weekly_retention: list[WeeklyRetention]
    dow_pattern: list[DayOfWeekBucket]
    score_trend: list[ScoreTrendPoint]
    diff_dist: DifficultyDistribution
    activity_map: dict[str, HeatmapCell]


# Insights analytics
class PerformancePoint(BaseModel):
    date: str
    score: int
    time_taken: int
    difficulty: str
    attempts: int
    rolling_avg: float | None  # None until the 7th session


class TimelinePoint(BaseModel):
    date: str
    difficulty_level: int  # easy=1, medium=2, hard=3
    difficulty: str


class ScatterPoint(BaseModel):
    date: str
    time_taken: int
    score: int
    difficulty: str


class AttemptsBreakdown(BaseModel):
    first: int
    second: int
    third_plus: int
    total: int
    first_pct: int
    second_pct: int
    third_plus_pct: int


class PersonalBest(BaseModel):
    best_score: int
    fastest_time: int
    clean_streak: int
    total_solved: int
    avg_score: int


class PerformanceSummary(BaseModel):
    current_difficulty: Difficulty
    trend: Trend
    performance_score: int
    pts_to_advance: int | None  # None at hard
    pts_at_risk: int | None  # None at easy
    reason: str


class InsightsSnapshot(BaseModel):
    is_empty: bool
    performance_trend: list[PerformancePoint]
    difficulty_timeline: list[TimelinePoint]
    speed_scatter_points: list[ScatterPoint]
    attempts_breakdown: dict[str, AttemptsBreakdown | None]
    personal_bests: dict[str, PersonalBest | None]
    performance_summary: PerformanceSummary | None


# Sync
class SyncResponse(BaseModel):
    synced: list[str]
    pending: int


class LeaderboardEntry(BaseModel):
    uid: str
    name: str
    score: int
