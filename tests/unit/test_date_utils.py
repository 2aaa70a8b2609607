"""Unit tests for date helpers"""

from datetime import date, datetime, timezone

from credit_engine.utils.date_utils import assessment_window, days_ago, subtract_months, whole_months_between


def test_subtract_months_clamps_to_month_end():
    assert subtract_months(date(2026, 3, 31), 1) == date(2026, 2, 28)
    assert subtract_months(date(2026, 1, 15), 2) == date(2025, 11, 15)


def test_whole_months_between():
    assert whole_months_between(date(2026, 1, 15), date(2026, 4, 14)) == 2
    assert whole_months_between(date(2026, 1, 15), date(2026, 4, 15)) == 3
    assert whole_months_between(date(2026, 1, 15), date(2026, 1, 20)) == 0


def test_assessment_window_starts_on_a_month_boundary():
    """Test twelve calendar months, the oldest one complete"""
    start, end = assessment_window(12, end=date(2026, 10, 19))

    assert start == date(2025, 11, 1)
    assert end == date(2026, 10, 19)


def test_days_ago():
    now = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
    assert days_ago(30, now) == datetime(2026, 9, 19, 12, 0, tzinfo=timezone.utc)
