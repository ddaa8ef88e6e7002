"""
Unit Tests - Period Calculation
"""
from datetime import date, datetime, time

import pytest

from indicator_engine.indicators.periods import (
    Period,
    PeriodLabel,
    compute_periods,
    default_period_end,
    fetch_window,
)

from tests.factories import PERIOD_END


class TestPeriodLabel:
    """Tests for PeriodLabel"""

    def test_parse_accepts_label_and_selector_name(self):
        """Both "30d" and "medium" select the 30 day window"""
        assert PeriodLabel.parse("30d") is PeriodLabel.MEDIUM
        assert PeriodLabel.parse("medium") is PeriodLabel.MEDIUM
        assert PeriodLabel.parse(" SHORT ") is PeriodLabel.SHORT
        assert PeriodLabel.parse(PeriodLabel.LONG) is PeriodLabel.LONG

    def test_parse_rejects_unknown_label(self):
        """Unknown labels raise ValueError"""
        with pytest.raises(ValueError):
            PeriodLabel.parse("14d")

    def test_days(self):
        """Each label maps to its window length"""
        assert [label.days for label in PeriodLabel] == [7, 30, 90]


class TestComputePeriods:
    """Tests for compute_periods"""

    def test_medium_windows(self):
        """30 day windows are contiguous and disjoint"""
        current, comparison = compute_periods(PERIOD_END, "30d")

        assert current.start == date(2025, 3, 2)
        assert current.end == date(2025, 3, 31)
        assert comparison.start == date(2025, 1, 31)
        assert comparison.end == date(2025, 3, 1)
        assert current.length_days == comparison.length_days == 30

    def test_short_windows(self):
        """7 day windows end on the period end day"""
        current, comparison = compute_periods(PERIOD_END, PeriodLabel.SHORT)

        assert current.start == date(2025, 3, 25)
        assert comparison.start == date(2025, 3, 18)
        assert comparison.end == date(2025, 3, 24)

    def test_accepts_plain_date(self):
        """A date and the end-of-day datetime give the same windows"""
        assert compute_periods(date(2025, 3, 31), "7d") == compute_periods(PERIOD_END, "7d")

    def test_contains_is_inclusive(self):
        """Both bounds belong to the window"""
        current, comparison = compute_periods(PERIOD_END, "7d")

        assert current.contains(date(2025, 3, 25))
        assert current.contains(date(2025, 3, 31))
        assert not current.contains(date(2025, 3, 24))
        assert comparison.contains(date(2025, 3, 24))

    def test_fetch_window_covers_both_periods(self):
        """Source reads span the comparison start to the current end"""
        start, end = fetch_window(PERIOD_END, "30d")

        assert start == datetime(2025, 1, 31, 0, 0)
        assert end == datetime.combine(date(2025, 3, 31), time.max)

    def test_period_length_must_match_bounds(self):
        """A window whose length disagrees with its bounds is rejected"""
        with pytest.raises(ValueError):
            Period(
                start=date(2025, 3, 1),
                end=date(2025, 3, 7),
                length_days=30,
                label=PeriodLabel.SHORT,
            )


class TestDefaultPeriodEnd:
    """Tests for default_period_end"""

    def test_end_of_previous_day(self):
        """Defaults to the last instant of yesterday"""
        result = default_period_end(datetime(2025, 4, 1, 8, 30))

        assert result == datetime.combine(date(2025, 3, 31), time.max)

    def test_never_current_day(self):
        """Just after midnight still resolves to the previous day"""
        result = default_period_end(datetime(2025, 4, 1, 0, 0, 1))

        assert result.date() == date(2025, 3, 31)
