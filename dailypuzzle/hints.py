"""Hint budget and hint text.

Budget: easy=3, medium=2, hard=1, +1 when recent accuracy is below 50%,
+1 for a full week of recent activity, never more than 4.

Levels unlock in order:
1. concept   - what kind of pattern it is (never the internal pattern key)
2. direction - which way the answer lies
3. proximity - warm/cold against the player's current guess
4. bracket   - a numeric window around the answer
"""
import logging

from sqlalchemy.exc import SQLAlchemyError

from dailypuzzle.schemas import ActivityRecord, HintUsageRecord

logger = logging.getLogger(__name__)

BASE_BUDGET = {"easy": 3, "medium": 2, "hard": 1}
MAX_HINTS = 4
BUDGET_WINDOW = 7
BRACKET_WIDTH = 15

CONCEPTS = {
    "arithmetic": "The numbers change by a fixed amount each step.",
    "geometric": "Each term is multiplied by a constant ratio.",
    "squares": "The terms are perfect squares of consecutive integers.",
    "fibonacci": "Each term is the sum of the two terms before it.",
    "alternating": "The signs alternate while the magnitude grows.",
    "polynomial": "The differences between terms themselves change - it's quadratic.",
    "multiplication": "Each cell is the product of its row and column factors.",
}

KEEP_GOING = "Keep going!"


def compute_hint_budget(difficulty: str, recent: list[ActivityRecord]) -> int:
    """Hints allowed today.

    `recent` is newest-first activity history; only the last 7 records count.
    """
    budget = BASE_BUDGET.get(difficulty, 1)
    window = recent[:BUDGET_WINDOW]

    if window:
        accuracy = sum(1 for a in window if a.solved) / len(window)
        if accuracy < 0.5:
            budget += 1
    if len({a.date for a in window}) >= BUDGET_WINDOW:
        budget += 1

    return min(budget, MAX_HINTS)


def _matrix_hint(level: int, correct_count: int, blank_count: int) -> str:
    if level == 1:
        return "Each row and column follows a consistent rule."
    if level == 2:
        return "Look at two adjacent visible cells in any row or column to find the step."
    if level == 3:
        if correct_count > 0:
            return f"Good progress - {correct_count} of {blank_count} cells are correct so far."
        return "None of your filled cells match yet - try checking the first row."
    if level == 4:
        return "Focus on the cell with the most visible neighbours for the clearest pattern."
    return KEEP_GOING


def get_hint_text(
    level: int,
    puzzle_type: str,
    pattern_key: str | None = None,
    user_answer: int | None = None,
    answer: int | None = None,
    correct_count: int = 0,
    blank_count: int = 0,
) -> str:
    """Text for a hint level. Pure lookup, no side effects."""
    if puzzle_type == "matrix":
        return _matrix_hint(level, correct_count, blank_count)

    if level == 1:
        return CONCEPTS.get(pattern_key, "Look for a pattern in how the numbers change.")
    if level == 2:
        if pattern_key == "alternating":
            return "The next term has the opposite sign from the previous one."
        if answer - (user_answer or 0) > 0:
            return "The next term is larger than your current answer."
        return "The next term is smaller than your current answer."
    if level == 3:
        if user_answer is None:
            return "Enter your best guess first to get a proximity hint."
        delta = abs(user_answer - answer)
        if delta == 0:
            return "Your answer is exactly right - hit submit!"
        if delta <= 5:
            return "Very warm - you're within 5 of the correct value."
        if delta <= 20:
            return "Warm - you're within 20 of the correct value."
        return "Cold - your answer is more than 20 away."
    if level == 4:
        return (
            f"The answer falls between {answer - BRACKET_WIDTH} "
            f"and {answer + BRACKET_WIDTH}."
        )
    return KEEP_GOING


async def get_hints_used(store, date: str) -> int:
    """Hints already used for a date; a missing or broken store counts as 0."""
    if store is None:
        return 0
    try:
        usage = await store.get(date)
    except SQLAlchemyError as e:
        logger.warning(f"Hint usage unavailable for {date}: {e}")
        return 0
    return usage.hints_used if usage else 0


async def use_hint(store, date: str, difficulty: str, budget: int) -> int:
    """Consume one hint for a date and return the new usage count.

    Usage never decreases and never passes the budget; asking beyond the
    budget changes nothing.
    """
    used = await get_hints_used(store, date)
    if used >= budget:
        return used
    if store is None:
        return used + 1
    try:
        await store.put(
            HintUsageRecord(
                date=date, difficulty=difficulty, hints_used=used + 1, budget=budget
            )
        )
    except SQLAlchemyError as e:
        logger.warning(f"Could not record hint usage for {date}: {e}")
    return used + 1
