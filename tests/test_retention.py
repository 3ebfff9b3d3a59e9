"""Tests for retention analytics."""
from datetime import date, timedelta

from dailypuzzle.retention import (
    compute_intensity,
    compute_retention,
    current_streak,
    dow_pattern,
    longest_streak,
    weekly_retention,
)

# A Sunday
TODAY = date(2024, 3, 10)


def _ago(days: int) -> str:
    return (TODAY - timedelta(days=days)).isoformat()


class TestStreaks:
    """Tests for current and longest streaks."""

    def test_current_streak_through_today(self):
        """Test a streak ending today counts every day back."""
        assert current_streak({_ago(2), _ago(1), _ago(0)}, TODAY) == 3

    def test_current_streak_from_yesterday(self):
        """Test an unplayed today still counts a streak ending yesterday."""
        assert current_streak({_ago(1)}, TODAY) == 1
        assert current_streak({_ago(3), _ago(2), _ago(1)}, TODAY) == 3

    def test_current_streak_broken(self):
        """Test a gap before yesterday breaks the streak."""
        assert current_streak({_ago(3), _ago(2)}, TODAY) == 0
        assert current_streak(set(), TODAY) == 0

    def test_longest_streak(self):
        """Test the longest run is found across gaps."""
        dates = ["2024-01-01", "2024-01-02", "2024-01-03", "2024-01-05", "2024-01-06"]
        assert longest_streak(dates) == 3
        assert longest_streak([]) == 0
        assert longest_streak(["2024-01-01"]) == 1

    def test_longest_streak_across_month_end(self):
        """Test runs continue over a leap-day month end."""
        assert longest_streak(["2024-02-28", "2024-02-29", "2024-03-01"]) == 3


class TestIntensity:
    """Tests for heatmap intensity."""

    def test_levels(self, activity):
        """Test intensity combines tier weight with a score of 50 or more."""
        assert compute_intensity(activity(_ago(0), difficulty="easy", score=30)) == 1
        assert compute_intensity(activity(_ago(0), difficulty="easy", score=50)) == 2
        assert compute_intensity(activity(_ago(0), difficulty="medium", score=60)) == 3
        assert compute_intensity(activity(_ago(0), difficulty="hard", score=40)) == 3
        assert compute_intensity(activity(_ago(0), difficulty="hard", score=80)) == 4

    def test_unsolved_or_missing(self, activity):
        """Test unsolved and missing days have zero intensity."""
        assert compute_intensity(activity(_ago(0), solved=False)) == 0
        assert compute_intensity(None) == 0


class TestWeeklyAndDayOfWeek:
    """Tests for weekly windows and day-of-week buckets."""

    def test_weekly_windows(self):
        """Test eight trailing weeks, oldest first, labelled by start day."""
        weeks = weekly_retention({_ago(0), _ago(1), _ago(7)}, TODAY)
        assert len(weeks) == 8
        assert weeks[-1].week_label == "Mar 4"
        assert weeks[-1].solved_days == 2
        assert weeks[-1].rate == 2 / 7
        assert weeks[-2].week_label == "Feb 26"
        assert weeks[-2].solved_days == 1
        assert all(w.total_days == 7 for w in weeks)
        assert weeks[0].solved_days == 0

    def test_dow_buckets(self, activity):
        """Test solves are bucketed Sunday first, rated against the peak day."""
        solved = [activity(_ago(0)), activity(_ago(7)), activity(_ago(1))]
        buckets = dow_pattern(solved)
        assert [b.label for b in buckets] == ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
        assert buckets[0].count == 2
        assert buckets[0].rate == 1.0
        assert buckets[6].count == 1
        assert buckets[6].rate == 0.5
        assert buckets[3].rate == 0

    def test_dow_empty(self):
        """Test empty history gives seven zero buckets."""
        assert all(b.count == 0 and b.rate == 0 for b in dow_pattern([]))


class TestComputeRetention:
    """Tests for the full retention snapshot."""

    def test_empty_history(self):
        """Test empty history gives a complete zeroed snapshot."""
        snapshot = compute_retention([], today=TODAY)
        assert snapshot.summary.total_played == 0
        assert snapshot.summary.current_streak == 0
        assert snapshot.summary.longest_streak == 0
        assert snapshot.summary.avg_score == 0
        assert snapshot.summary.avg_time == 0
        assert len(snapshot.weekly_retention) == 8
        assert len(snapshot.dow_pattern) == 7
        assert snapshot.score_trend == []
        assert snapshot.activity_map == {}
        assert snapshot.diff_dist.easy == 0

    def test_summary(self, activity):
        """Test summary totals and rounded averages cover solved days only."""
        history = [
            activity(_ago(0), score=80, time_taken=20),
            activity(_ago(1), score=71, time_taken=29),
            activity(_ago(2), solved=False),
            activity(_ago(3), score=60, time_taken=40, difficulty="hard"),
        ]
        summary = compute_retention(history, today=TODAY).summary
        assert summary.total_played == 3
        assert summary.current_streak == 2
        assert summary.longest_streak == 2
        assert summary.best_score == 80
        # (80 + 71 + 60) / 3 = 70.33
        assert summary.avg_score == 70
        # (20 + 29 + 40) / 3 = 29.67
        assert summary.avg_time == 30

    def test_trend_and_distribution_use_last_thirty_solves(self, activity):
        """Test score trend and tier distribution cover the last 30 solves."""
        history = [
            activity(_ago(i), difficulty="hard" if i < 30 else "easy") for i in range(40)
        ]
        snapshot = compute_retention(history, today=TODAY)
        assert len(snapshot.score_trend) == 30
        assert snapshot.score_trend[0].date == _ago(29)
        assert snapshot.score_trend[-1].date == _ago(0)
        assert snapshot.diff_dist.hard == 30
        assert snapshot.diff_dist.easy == 0
        assert snapshot.summary.total_played == 40

    def test_activity_map(self, activity):
        """Test the heatmap covers the trailing year including unsolved days."""
        history = [
            activity(_ago(0), difficulty="hard", score=80),
            activity(_ago(1), solved=False),
            activity(_ago(400)),
        ]
        activity_map = compute_retention(history, today=TODAY).activity_map
        assert set(activity_map) == {_ago(0), _ago(1)}
        assert activity_map[_ago(0)].intensity == 4
        assert activity_map[_ago(1)].solved is False
        assert activity_map[_ago(1)].intensity == 0
