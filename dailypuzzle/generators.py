"""Deterministic daily puzzle generators.

Given (date, difficulty) the generators always return the same puzzle. Every
parameter comes from the seeded derivation in seed.py, keyed by the date plus a
fixed salt.

Sequence families (five terms shown, sixth is the answer):
- easy:   arithmetic (a + i*d), geometric (a * r^i)
- medium: squares ((n+i)^2), fibonacci (t[i] = t[i-1] + t[i-2])
- hard:   alternating ((-1)^i * a * r^i), polynomial (a + b*n + c*n^2, n 1-based)

Matrix families (4x4, row-major):
- arithmetic:     base + r*rowStep + c*colStep
- multiplication: (r+rBase) * (c+cBase)
- polynomial:     base + r*rowStep + c*colStep + r*c*mixStep
"""
import logging
from datetime import date as Date, datetime

from dailypuzzle.difficulty import decide_difficulty
from dailypuzzle.schemas import ActivityRecord, Puzzle
from dailypuzzle.seed import hash_int, range_int

logger = logging.getLogger(__name__)

DIFFICULTIES = ("easy", "medium", "hard")
GRID_SIZE = 4

SEQUENCE_PATTERNS = {
    "easy": ("arithmetic", "geometric"),
    "medium": ("squares", "fibonacci"),
    "hard": ("alternating", "polynomial"),
}

MATRIX_PATTERNS = {
    "easy": ("arithmetic",),
    "medium": ("arithmetic", "multiplication"),
    "hard": ("multiplication", "polynomial"),
}

# Conservative so every puzzle stays uniquely solvable
BLANK_COUNT = {"easy": 3, "medium": 5, "hard": 7}

MIN_SCORE = 10
MAX_SCORE = 100


class PuzzleValidationError(ValueError):
    """Raised when a caller passes an illegal date or difficulty."""


def validate_date(value: str) -> str:
    """Check that value is a canonical YYYY-MM-DD calendar date."""
    try:
        parsed = datetime.strptime(value, "%Y-%m-%d")
    except (TypeError, ValueError):
        raise PuzzleValidationError(f"Invalid puzzle date: {value!r}") from None
    # strptime also accepts "2024-1-1"; the seed key must be canonical
    if parsed.strftime("%Y-%m-%d") != value:
        raise PuzzleValidationError(f"Puzzle date must be YYYY-MM-DD: {value!r}")
    return value


def validate_difficulty(value: str) -> str:
    if value not in DIFFICULTIES:
        raise PuzzleValidationError(f"Unknown difficulty: {value!r}")
    return value


def compute_score(time_taken: int) -> int:
    """Score for a solve: 100 minus elapsed seconds, floored at 10."""
    return max(MAX_SCORE - max(time_taken, 0), MIN_SCORE)


# Sequence puzzles


def _pick_sequence_pattern(date: str, difficulty: str) -> str:
    return SEQUENCE_PATTERNS[difficulty][hash_int(date + "seqpattern") % 2]


def _arithmetic(date: str, difficulty: str) -> tuple[list[int], str]:
    ranges = {
        "easy": ((1, 10), (2, 6)),
        "medium": ((5, 30), (4, 12)),
        "hard": ((10, 50), (7, 20)),
    }
    (base_lo, base_hi), (step_lo, step_hi) = ranges[difficulty]
    base = range_int(date + "arith_base", base_lo, base_hi)
    step = range_int(date + "arith_step", step_lo, step_hi)
    terms = [base + i * step for i in range(6)]
    return terms, f"Arithmetic sequence (+{step} each term)"


def _geometric(date: str, difficulty: str) -> tuple[list[int], str]:
    ranges = {
        "easy": ((1, 4), (2, 3)),
        "medium": ((1, 5), (2, 4)),
        "hard": ((2, 6), (3, 5)),
    }
    (base_lo, base_hi), (ratio_lo, ratio_hi) = ranges[difficulty]
    base = range_int(date + "geo_base", base_lo, base_hi)
    ratio = range_int(date + "geo_ratio", ratio_lo, ratio_hi)
    terms = [base * ratio**i for i in range(6)]
    return terms, f"Geometric sequence (x{ratio} each term)"


def _squares(date: str, difficulty: str) -> tuple[list[int], str]:
    start = range_int(date + "sq_start", 1, 8)
    terms = [(start + i) ** 2 for i in range(6)]
    return terms, f"Perfect squares starting from {start}^2"


def _fibonacci(date: str, difficulty: str) -> tuple[list[int], str]:
    terms = [range_int(date + "fib_a0", 1, 5), range_int(date + "fib_a1", 2, 8)]
    while len(terms) < 6:
        terms.append(terms[-1] + terms[-2])
    return terms, "Each term = sum of previous two (Fibonacci-style)"


def _alternating(date: str, difficulty: str) -> tuple[list[int], str]:
    base = range_int(date + "alt_base", 2, 5)
    ratio = range_int(date + "alt_ratio", 2, 3)
    terms = [(-1) ** i * base * ratio**i for i in range(6)]
    return terms, f"Alternating signs, geometric growth (x{ratio})"


def _polynomial(date: str, difficulty: str) -> tuple[list[int], str]:
    a = range_int(date + "poly_a", 1, 5)
    b = range_int(date + "poly_b", 1, 4)
    c = range_int(date + "poly_c", 1, 3)
    # n is 1-based so the first term is not just a
    terms = [a + b * n + c * n**2 for n in range(1, 7)]
    return terms, "Quadratic sequence (a + b*n + c*n^2)"


_SEQUENCE_BUILDERS = {
    "arithmetic": _arithmetic,
    "geometric": _geometric,
    "squares": _squares,
    "fibonacci": _fibonacci,
    "alternating": _alternating,
    "polynomial": _polynomial,
}


def generate_sequence_puzzle(date: str, difficulty: str) -> Puzzle:
    """Generate the sequence puzzle for a date and difficulty.

    Five terms are shown; the sixth term under the same rule is the answer.
    """
    validate_date(date)
    validate_difficulty(difficulty)

    pattern = _pick_sequence_pattern(date, difficulty)
    terms, hint = _SEQUENCE_BUILDERS[pattern](date, difficulty)

    return Puzzle(
        type="sequence",
        date=date,
        difficulty=difficulty,
        pattern_key=pattern,
        hint=hint,
        sequence=terms[:5],
        answer=terms[5],
    )


# Matrix puzzles


def _pick_matrix_pattern(date: str, difficulty: str) -> str:
    options = MATRIX_PATTERNS[difficulty]
    return options[hash_int(date + "matpattern") % len(options)]


def _build_grid(rule) -> list[int]:
    return [rule(r, c) for r in range(GRID_SIZE) for c in range(GRID_SIZE)]


def _arithmetic_grid(date: str) -> tuple[list[int], str]:
    base = range_int(date + "mat_base", 2, 10)
    row_step = range_int(date + "mat_rowstep", 2, 8)
    col_step = range_int(date + "mat_colstep", 1, 6)
    grid = _build_grid(lambda r, c: base + r * row_step + c * col_step)
    return grid, f"Row increases by {row_step}, column increases by {col_step}"


def _multiplication_grid(date: str) -> tuple[list[int], str]:
    r_base = range_int(date + "mul_rbase", 1, 5)
    c_base = range_int(date + "mul_cbase", 1, 5)
    grid = _build_grid(lambda r, c: (r + r_base) * (c + c_base))
    return grid, (
        f"Multiplication table: row factor {r_base}-{r_base + 3}, "
        f"column factor {c_base}-{c_base + 3}"
    )


def _polynomial_grid(date: str) -> tuple[list[int], str]:
    base = range_int(date + "poly_base", 1, 5)
    row_step = range_int(date + "poly_rs", 2, 5)
    col_step = range_int(date + "poly_cs", 1, 4)
    mix_step = range_int(date + "poly_mix", 1, 3)
    grid = _build_grid(
        lambda r, c: base + r * row_step + c * col_step + r * c * mix_step
    )
    return grid, (
        f"Each cell = base + row*{row_step} + col*{col_step} + row*col*{mix_step}"
    )


_MATRIX_BUILDERS = {
    "arithmetic": _arithmetic_grid,
    "multiplication": _multiplication_grid,
    "polynomial": _polynomial_grid,
}


def blank_cells(flat_grid: list[int], count: int, date: str) -> list[int | None]:
    """Blank up to `count` cells while keeping the grid uniquely solvable.

    Candidates are visited in a seeded order. A cell is blanked only if at
    least 2 other cells stay visible in both its row and its column, which is
    enough to pin down every rule family above. Running out of candidates
    before reaching `count` is allowed; the grid just keeps more clues.
    """
    cells = len(flat_grid)
    order = sorted(range(cells), key=lambda i: hash_int(f"{date}blank{i}"))
    blanked: set[int] = set()

    for idx in order:
        if len(blanked) >= count:
            break
        row, col = divmod(idx, GRID_SIZE)
        visible_in_row = sum(
            1
            for i in range(cells)
            if i // GRID_SIZE == row and i != idx and i not in blanked
        )
        visible_in_col = sum(
            1
            for i in range(cells)
            if i % GRID_SIZE == col and i != idx and i not in blanked
        )
        if visible_in_row >= 2 and visible_in_col >= 2:
            blanked.add(idx)

    if len(blanked) < count:
        logger.info(f"Only {len(blanked)} of {count} cells could be blanked for {date}")

    return [None if i in blanked else value for i, value in enumerate(flat_grid)]


def generate_matrix_puzzle(date: str, difficulty: str) -> Puzzle:
    """Generate the 4x4 matrix puzzle for a date and difficulty."""
    validate_date(date)
    validate_difficulty(difficulty)

    pattern = _pick_matrix_pattern(date, difficulty)
    solution, hint = _MATRIX_BUILDERS[pattern](date)
    grid = blank_cells(solution, BLANK_COUNT[difficulty], date)

    return Puzzle(
        type="matrix",
        date=date,
        difficulty=difficulty,
        pattern_key=pattern,
        hint=hint,
        grid=grid,
        solution=solution,
    )


def generate_puzzle(date: str, difficulty: str, puzzle_type: str) -> Puzzle:
    if puzzle_type == "sequence":
        return generate_sequence_puzzle(date, difficulty)
    if puzzle_type == "matrix":
        return generate_matrix_puzzle(date, difficulty)
    raise PuzzleValidationError(f"Unknown puzzle type: {puzzle_type!r}")


def generate_daily_puzzle(
    activities: list[ActivityRecord], date: str | None = None
) -> Puzzle:
    """Generate the adaptive puzzle for a day (default today).

    Asks the difficulty engine for the puzzle type and tier given the
    newest-first activity history, then builds that puzzle for `date`. Only
    records from before `date` are considered, so playing the day's puzzle
    does not change it.
    """
    day = validate_date(date or Date.today().isoformat())
    decision = decide_difficulty([a for a in activities if a.date < day])
    return generate_puzzle(day, decision.difficulty, decision.puzzle_type)


# Answer checking


def check_sequence_answer(puzzle: Puzzle, answer: int | None) -> bool:
    return answer is not None and answer == puzzle.answer


def check_matrix_answer(
    puzzle: Puzzle, filled: list[int | None]
) -> tuple[bool, list[tuple[int, int]]]:
    """Compare a filled grid against the solution.

    Returns (is_complete, errors) where errors holds (row, col) for every
    cell that is missing or wrong.
    """
    if len(filled) != len(puzzle.solution):
        raise PuzzleValidationError(
            f"Expected {len(puzzle.solution)} cells, got {len(filled)}"
        )
    errors = [
        divmod(i, GRID_SIZE)
        for i, (value, expected) in enumerate(zip(filled, puzzle.solution))
        if value != expected
    ]
    return not errors, errors


def count_correct_cells(puzzle: Puzzle, filled: list[int | None] | None) -> int:
    """Count blank cells the player has currently filled in correctly."""
    if not filled:
        return 0
    return sum(
        1
        for i, value in enumerate(puzzle.grid)
        if value is None and i < len(filled) and filled[i] == puzzle.solution[i]
    )
