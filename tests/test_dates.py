from datetime import date, datetime, timedelta, timezone

import pytest

from slack_cheers.dates import (
    InvalidDateError,
    next_occurrence,
    occurrence_in_year,
    validate_month_day,
    validate_year,
    years_since,
)


def test_next_occurrence_on_the_day_counts_as_today() -> None:
    day = date(2001, 1, 1)
    while day.year == 2001:
        assert next_occurrence(day, day.month, day.day) == day
        day += timedelta(days=1)


def test_next_occurrence_never_before_reference_and_within_a_year() -> None:
    references = [date(2023, 1, 1), date(2024, 2, 29), date(2024, 12, 31), date(2025, 7, 15)]
    for reference in references:
        for month in range(1, 13):
            for day in (1, 15, 28):
                result = next_occurrence(reference, month, day)
                assert result >= reference
                assert (result - reference).days <= 366


def test_next_occurrence_advances_one_year_when_passed() -> None:
    assert next_occurrence(date(2025, 6, 10), 3, 25) == date(2026, 3, 25)
    assert next_occurrence(date(2025, 6, 10), 6, 11) == date(2025, 6, 11)


def test_next_occurrence_truncates_datetime_reference() -> None:
    late_evening = datetime(2025, 3, 25, 23, 59, tzinfo=timezone.utc)
    assert next_occurrence(late_evening, 3, 25) == date(2025, 3, 25)


def test_leap_day_rolls_to_march_first_in_common_years() -> None:
    assert occurrence_in_year(2025, 2, 29) == date(2025, 3, 1)
    assert occurrence_in_year(2028, 2, 29) == date(2028, 2, 29)
    assert next_occurrence(date(2027, 3, 2), 2, 29) == date(2028, 2, 29)


def test_validate_month_day_uses_common_year() -> None:
    validate_month_day(12, 31)
    for month, day in ((2, 29), (2, 30), (4, 31), (13, 1), (0, 5), (5, 0), (1, 32)):
        with pytest.raises(InvalidDateError):
            validate_month_day(month, day)


def test_validate_year_bounds() -> None:
    validate_year(1900)
    validate_year(3000)
    with pytest.raises(InvalidDateError):
        validate_year(1899)
    with pytest.raises(InvalidDateError):
        validate_year(3001)


def test_years_since() -> None:
    assert years_since(date(2026, 1, 23), date(2024, 1, 23)) == 2
