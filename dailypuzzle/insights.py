"""Performance insights: is the player improving?

Kept apart from retention.py, which answers "is the player showing up?".
"""
from dailypuzzle.difficulty import (
    THRESHOLD_DECREASE,
    THRESHOLD_INCREASE,
    TIERS,
    decide_difficulty,
    round_half_up,
)
from dailypuzzle.schemas import (
    ActivityRecord,
    AttemptsBreakdown,
    InsightsSnapshot,
    PerformancePoint,
    PerformanceSummary,
    PersonalBest,
    ScatterPoint,
    TimelinePoint,
)

DIFFICULTY_LEVEL = {"easy": 1, "medium": 2, "hard": 3}
RECENT_SESSIONS = 60
ROLLING_WINDOW = 7


def rolling_average(values: list[int], window: int = ROLLING_WINDOW) -> list[float | None]:
    """Trailing mean; None wherever the window is not full yet."""
    return [
        None if i < window - 1 else sum(values[i - window + 1 : i + 1]) / window
        for i in range(len(values))
    ]


def longest_clean_streak(sessions: list[ActivityRecord]) -> int:
    """Longest run of first-attempt solves in chronological sessions."""
    best = run = 0
    for s in sessions:
        if s.attempts == 1:
            run += 1
            best = max(best, run)
        else:
            run = 0
    return best


def _percent(part: int, total: int) -> int:
    return round_half_up(part / total * 100)


def attempts_breakdown(group: list[ActivityRecord]) -> AttemptsBreakdown | None:
    if not group:
        return None
    first = sum(1 for s in group if s.attempts <= 1)
    second = sum(1 for s in group if s.attempts == 2)
    third_plus = sum(1 for s in group if s.attempts >= 3)
    total = len(group)
    return AttemptsBreakdown(
        first=first,
        second=second,
        third_plus=third_plus,
        total=total,
        first_pct=_percent(first, total),
        second_pct=_percent(second, total),
        third_plus_pct=_percent(third_plus, total),
    )


def personal_best(chronological: list[ActivityRecord]) -> PersonalBest | None:
    if not chronological:
        return None
    return PersonalBest(
        best_score=max(s.score for s in chronological),
        fastest_time=min(s.time_taken for s in chronological),
        clean_streak=longest_clean_streak(chronological),
        total_solved=len(chronological),
        avg_score=round_half_up(
            sum(s.score for s in chronological) / len(chronological)
        ),
    )


def performance_summary(activities: list[ActivityRecord]) -> PerformanceSummary:
    """Where the adaptive engine currently stands and how far to the next move."""
    decision = decide_difficulty(activities)
    score = decision.performance_score
    return PerformanceSummary(
        current_difficulty=decision.difficulty,
        trend=decision.trend,
        performance_score=score,
        pts_to_advance=(
            max(0, THRESHOLD_INCREASE - score) if decision.difficulty != "hard" else None
        ),
        pts_at_risk=(
            max(0, score - THRESHOLD_DECREASE) if decision.difficulty != "easy" else None
        ),
        reason=decision.reason,
    )


def compute_insights(activities: list[ActivityRecord]) -> InsightsSnapshot:
    """Build the insights snapshot from newest-first activity history."""
    solved = [a for a in activities if a.solved]
    if not solved:
        return InsightsSnapshot(
            is_empty=True,
            performance_trend=[],
            difficulty_timeline=[],
            speed_scatter_points=[],
            attempts_breakdown=dict.fromkeys(TIERS),
            personal_bests=dict.fromkeys(TIERS),
            performance_summary=None,
        )

    chronological = solved[::-1]
    recent = solved[:RECENT_SESSIONS][::-1]
    rolling = rolling_average([s.score for s in recent])

    performance_trend = [
        PerformancePoint(
            date=s.date,
            score=s.score,
            time_taken=s.time_taken,
            difficulty=s.difficulty,
            attempts=s.attempts,
            rolling_avg=rolling[i],
        )
        for i, s in enumerate(recent)
    ]

    difficulty_timeline = [
        TimelinePoint(
            date=s.date,
            difficulty_level=DIFFICULTY_LEVEL.get(s.difficulty, 1),
            difficulty=s.difficulty,
        )
        for s in chronological
    ]

    speed_scatter_points = [
        ScatterPoint(
            date=s.date, time_taken=s.time_taken, score=s.score, difficulty=s.difficulty
        )
        for s in recent
    ]

    by_tier = {
        tier: [s for s in chronological if s.difficulty == tier] for tier in TIERS
    }

    return InsightsSnapshot(
        is_empty=False,
        performance_trend=performance_trend,
        difficulty_timeline=difficulty_timeline,
        speed_scatter_points=speed_scatter_points,
        attempts_breakdown={tier: attempts_breakdown(g) for tier, g in by_tier.items()},
        personal_bests={tier: personal_best(g) for tier, g in by_tier.items()},
        performance_summary=performance_summary(activities),
    )
