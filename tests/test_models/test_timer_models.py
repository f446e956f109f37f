"""Tests for activity timers."""

from datetime import date

import pytest
from pydantic import ValidationError

from models import IntervalTimer, MonthlyTimer


class TestMonthlyTimer:
    def test_due_in_listed_months(self):
        timer = MonthlyTimer(months=[3, 9])
        assert timer.activity_due(date(2025, 3, 1))
        assert not timer.activity_due(date(2025, 4, 1))

    def test_months_sorted_and_deduplicated(self):
        assert MonthlyTimer(months=[9, 3, 9]).months == [3, 9]

    def test_invalid_month_rejected(self):
        with pytest.raises(ValidationError):
            MonthlyTimer(months=[13])

    def test_empty_months_rejected(self):
        with pytest.raises(ValidationError):
            MonthlyTimer(months=[])


class TestIntervalTimer:
    def test_quarterly(self):
        timer = IntervalTimer(start=date(2025, 1, 1), interval_months=3)
        due = [m for m in range(1, 13) if timer.activity_due(date(2025, m, 1))]
        assert due == [1, 4, 7, 10]

    def test_not_due_before_start(self):
        timer = IntervalTimer(start=date(2025, 6, 1))
        assert not timer.activity_due(date(2025, 5, 1))
        assert timer.activity_due(date(2025, 6, 1))

    def test_not_due_after_end(self):
        timer = IntervalTimer(start=date(2025, 1, 1), end=date(2025, 6, 30))
        assert timer.activity_due(date(2025, 6, 1))
        assert not timer.activity_due(date(2025, 7, 1))

    def test_end_before_start_rejected(self):
        with pytest.raises(ValidationError):
            IntervalTimer(start=date(2025, 6, 1), end=date(2025, 1, 1))
