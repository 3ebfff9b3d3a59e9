"""Print the puzzles generated for a run of dates, at every difficulty."""
import sys
from datetime import date, timedelta

from dailypuzzle.generators import DIFFICULTIES, GRID_SIZE, generate_puzzle


def show_grid(cells):
    for r in range(GRID_SIZE):
        row = cells[r * GRID_SIZE : (r + 1) * GRID_SIZE]
        print("  " + "".join(f"{'.' if c is None else c:>5}" for c in row))


def main():
    start = date.fromisoformat(sys.argv[1]) if len(sys.argv) > 1 else date.today()
    days = int(sys.argv[2]) if len(sys.argv) > 2 else 3

    for offset in range(days):
        day = (start + timedelta(days=offset)).isoformat()
        print(f"\n===== {day} =====")

        for difficulty in DIFFICULTIES:
            seq = generate_puzzle(day, difficulty, "sequence")
            print(f"\n[{difficulty}] sequence ({seq.pattern_key}): {seq.sequence} -> {seq.answer}")
            print(f"  {seq.hint}")

            mat = generate_puzzle(day, difficulty, "matrix")
            blanks = sum(1 for c in mat.grid if c is None)
            print(f"\n[{difficulty}] matrix ({mat.pattern_key}), {blanks} blanks")
            print(f"  {mat.hint}")
            show_grid(mat.grid)
            print("  solution:")
            show_grid(mat.solution)


if __name__ == "__main__":
    main()
