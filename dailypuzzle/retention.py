"""Retention analytics: is the player showing up?

All metrics are derived from the activity log snapshot passed in; `today`
only anchors the current streak, the weekly windows and the heatmap range.
"""
from datetime import date as Date, timedelta

from dailypuzzle.difficulty import round_half_up
from dailypuzzle.schemas import (
    ActivityRecord,
    DayOfWeekBucket,
    DifficultyDistribution,
    HeatmapCell,
    RetentionSnapshot,
    RetentionSummary,
    ScoreTrendPoint,
    WeeklyRetention,
)

DIFFICULTY_WEIGHT = {"easy": 1, "medium": 2, "hard": 3}
DOW_LABELS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")

WEEKS = 8
TREND_SIZE = 30
HEATMAP_DAYS = 365


def compute_intensity(entry: ActivityRecord | None) -> int:
    """Heatmap level 0-4 combining difficulty and score.

    easy: 1 or 2, medium: 2 or 3, hard: 3 or 4 depending on score >= 50.
    """
    if entry is None or not entry.solved:
        return 0
    weight = DIFFICULTY_WEIGHT.get(entry.difficulty, 1)
    return min(weight + (1 if entry.score >= 50 else 0), 4)


def longest_streak(solved_dates: list[str]) -> int:
    """Longest run of consecutive days; dates must be sorted ascending."""
    if not solved_dates:
        return 0
    longest = run = 1
    for prev, curr in zip(solved_dates, solved_dates[1:]):
        gap = (Date.fromisoformat(curr) - Date.fromisoformat(prev)).days
        run = run + 1 if gap == 1 else 1
        longest = max(longest, run)
    return longest


def current_streak(solved_dates: set[str], today: Date) -> int:
    """Consecutive solved days ending today, or yesterday if today is open."""
    yesterday = today - timedelta(days=1)
    if today.isoformat() in solved_dates:
        cursor = today
    elif yesterday.isoformat() in solved_dates:
        cursor = yesterday
    else:
        return 0

    streak = 0
    while cursor.isoformat() in solved_dates:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def weekly_retention(solved_dates: set[str], today: Date) -> list[WeeklyRetention]:
    """Trailing 7-day windows, oldest first, the last one ending today."""
    weeks = []
    for w in range(WEEKS - 1, -1, -1):
        start = today - timedelta(days=w * 7 + 6)
        solved_days = sum(
            1
            for d in range(7)
            if (start + timedelta(days=d)).isoformat() in solved_dates
        )
        weeks.append(
            WeeklyRetention(
                week_label=f"{start.strftime('%b')} {start.day}",
                rate=solved_days / 7,
                solved_days=solved_days,
            )
        )
    return weeks


def dow_pattern(solved: list[ActivityRecord]) -> list[DayOfWeekBucket]:
    counts = [0] * 7
    for a in solved:
        # weekday() is Mon=0; buckets are Sun=0
        counts[(Date.fromisoformat(a.date).weekday() + 1) % 7] += 1
    peak = max(max(counts), 1)
    return [
        DayOfWeekBucket(day=i, label=label, count=counts[i], rate=counts[i] / peak)
        for i, label in enumerate(DOW_LABELS)
    ]


def compute_retention(
    activities: list[ActivityRecord], today: Date | None = None
) -> RetentionSnapshot:
    """Build the retention snapshot from newest-first activity history."""
    today = today or Date.today()
    solved = [a for a in activities if a.solved]
    solved_dates_asc = sorted(a.date for a in solved)
    solved_set = set(solved_dates_asc)
    total = len(solved)

    summary = RetentionSummary(
        total_played=total,
        current_streak=current_streak(solved_set, today),
        longest_streak=longest_streak(solved_dates_asc),
        best_score=max((a.score for a in solved), default=0),
        avg_score=round_half_up(sum(a.score for a in solved) / total) if total else 0,
        avg_time=round_half_up(sum(a.time_taken for a in solved) / total) if total else 0,
    )

    recent_solved = solved[:TREND_SIZE]
    score_trend = [
        ScoreTrendPoint(
            date=a.date, score=a.score, time_taken=a.time_taken, difficulty=a.difficulty
        )
        for a in reversed(recent_solved)
    ]

    diff_dist = DifficultyDistribution()
    for a in recent_solved:
        if a.difficulty in DIFFICULTY_WEIGHT:
            setattr(diff_dist, a.difficulty, getattr(diff_dist, a.difficulty) + 1)

    heatmap_start = (today - timedelta(days=HEATMAP_DAYS - 1)).isoformat()
    activity_map = {
        a.date: HeatmapCell(
            date=a.date,
            solved=a.solved,
            score=a.score,
            difficulty=a.difficulty,
            intensity=compute_intensity(a),
        )
        for a in activities
        if heatmap_start <= a.date <= today.isoformat()
    }

    return RetentionSnapshot(
        summary=summary,
        weekly_retention=weekly_retention(solved_set, today),
        dow_pattern=dow_pattern(solved),
        score_trend=score_trend,
        diff_dist=diff_dist,
        activity_map=activity_map,
    )
