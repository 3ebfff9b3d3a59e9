"""Adaptive difficulty decisions.

A performance score (0-100) is computed over the last 7 activity records:

- solve rate:  solved / window * 40
- speed:       average solve time against the expected time for the current
               tier; at or under expected -> 40, at 2x expected -> 0, linear between
- clean solve: first-attempt solves / solved * 20

Score >= 75 moves up a tier, < 35 moves down, anything between holds. A clear
trend can move the tier early. Matrix puzzles are gated behind demonstrated
competence on sequences.

Given the same history the decision is always the same; nothing here reads the
clock.
"""
import logging
import math

from sqlalchemy.exc import SQLAlchemyError

from dailypuzzle.schemas import ActivityRecord, DifficultyDecision

logger = logging.getLogger(__name__)

TIERS = ("easy", "medium", "hard")

EXPECTED_SOLVE_TIME = {"easy": 60, "medium": 45, "hard": 30}

LOOKBACK = 7
THRESHOLD_INCREASE = 75
THRESHOLD_DECREASE = 35

DIFFICULTY_UP = {"easy": "medium", "medium": "hard", "hard": "hard"}
DIFFICULTY_DOWN = {"easy": "easy", "medium": "easy", "hard": "medium"}

COLD_START = DifficultyDecision(
    puzzle_type="sequence",
    difficulty="easy",
    performance_score=0,
    trend="stable",
    reason="No history found. Starting with easy sequence puzzle.",
)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values, unlike round()."""
    return math.floor(value + 0.5)


def dominant_difficulty(solved: list[ActivityRecord]) -> str:
    """Most common tier among solved records; ties go to the easier tier."""
    if not solved:
        return "easy"
    counts = dict.fromkeys(TIERS, 0)
    for activity in solved:
        if activity.difficulty in counts:
            counts[activity.difficulty] += 1
    return max(TIERS, key=lambda tier: counts[tier])


def speed_score(solved: list[ActivityRecord], difficulty: str) -> int:
    if not solved:
        return 20  # neutral for new players

    avg_time = sum(a.time_taken for a in solved) / len(solved)
    expected = EXPECTED_SOLVE_TIME.get(difficulty, 60)
    max_time = expected * 2

    if avg_time <= expected:
        return 40
    if avg_time >= max_time:
        return 0
    return round_half_up((max_time - avg_time) / expected * 40)


def clean_solve_score(solved: list[ActivityRecord]) -> int:
    if not solved:
        return 0
    clean = sum(1 for a in solved if a.attempts <= 1)
    return round_half_up(clean / len(solved) * 20)


def performance_score(window: list[ActivityRecord]) -> int:
    """Composite 0-100 score for a window of activity records."""
    if not window:
        return 0
    solved = [a for a in window if a.solved]
    solve_rate = round_half_up(len(solved) / len(window) * 40)
    return (
        solve_rate
        + speed_score(solved, dominant_difficulty(solved))
        + clean_solve_score(solved)
    )


def _quality(group: list[ActivityRecord]) -> float:
    total = 0.0
    for a in group:
        attempts = max(a.attempts, 1)
        elapsed = max(a.time_taken, 1)
        total += (a.score or 0) / (attempts * math.sqrt(elapsed))
    return total / len(group)


def compute_trend(solved: list[ActivityRecord]) -> str:
    """Compare the newer half of solved history against the older half.

    `solved` must be newest-first.
    """
    if len(solved) < 4:
        return "stable"

    mid = len(solved) // 2
    delta = _quality(solved[:mid]) - _quality(solved[mid:])

    if delta > 0.1:
        return "improving"
    if delta < -0.1:
        return "declining"
    return "stable"


def decide_puzzle_type(
    total_days: int, solved_count: int, score: int, difficulty: str
) -> str:
    if total_days < 3 or solved_count < 2:
        return "sequence"
    if score >= 50 and difficulty != "easy":
        return "matrix"
    return "sequence"


def decide_difficulty(activities: list[ActivityRecord]) -> DifficultyDecision:
    """Decide tomorrow's puzzle type and tier from newest-first history."""
    window = activities[:LOOKBACK]
    if not window:
        return COLD_START

    solved = [a for a in window if a.solved]
    current = dominant_difficulty(solved)
    score = performance_score(window)
    trend = compute_trend(solved)

    if score >= THRESHOLD_INCREASE:
        difficulty = DIFFICULTY_UP[current]
        reason = f"Score {score}/100 - strong performance. Increasing difficulty."
    elif score < THRESHOLD_DECREASE:
        difficulty = DIFFICULTY_DOWN[current]
        reason = f"Score {score}/100 - struggling. Decreasing difficulty."
    else:
        difficulty = current
        reason = f"Score {score}/100 - steady performance. Maintaining difficulty."

    # Already at the top or bottom tier there is nowhere to move early
    if (
        trend == "improving"
        and difficulty == current
        and score >= 60
        and DIFFICULTY_UP[current] != current
    ):
        difficulty = DIFFICULTY_UP[current]
        reason += " Upward trend detected - advancing early."
    if (
        trend == "declining"
        and difficulty == current
        and score <= 45
        and DIFFICULTY_DOWN[current] != current
    ):
        difficulty = DIFFICULTY_DOWN[current]
        reason += " Downward trend detected - stepping back early."

    return DifficultyDecision(
        puzzle_type=decide_puzzle_type(len(window), len(solved), score, difficulty),
        difficulty=difficulty,
        performance_score=score,
        trend=trend,
        reason=reason,
    )


async def get_adaptive_difficulty(store, before: str | None = None) -> DifficultyDecision:
    """Read the activity store and decide; an unreadable store means cold start.

    With `before`, only records dated strictly earlier are considered.
    """
    try:
        activities = await store.get_all()
    except SQLAlchemyError as e:
        logger.warning(f"Activity store unavailable, using cold start: {e}")
        return COLD_START
    if before:
        activities = [a for a in activities if a.date < before]
    return decide_difficulty(activities)
