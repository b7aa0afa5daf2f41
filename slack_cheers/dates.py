"""Calendar helpers for birthday and work-anniversary occurrences."""

from __future__ import annotations

from datetime import date, datetime

# Non-leap year used to sanity check a bare (month, day) pair.
REFERENCE_YEAR = 2001


class InvalidDateError(ValueError):
    pass


def is_leap_year(year: int) -> bool:
    return year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)


def validate_month_day(month: int, day: int) -> None:
    """Reject a (month, day) pair that is not a date in a non-leap year."""

    if month < 1 or month > 12:
        raise InvalidDateError(f"invalid month: {month}")
    if day < 1 or day > 31:
        raise InvalidDateError(f"invalid day: {day}")
    try:
        date(REFERENCE_YEAR, month, day)
    except ValueError as exc:
        raise InvalidDateError(f"invalid calendar date: {month:02d}-{day:02d}") from exc


def validate_year(year: int) -> None:
    if year < 1900 or year > 3000:
        raise InvalidDateError(f"invalid year: {year}")


def occurrence_in_year(year: int, month: int, day: int) -> date:
    # Feb 29 rolls over to Mar 1 in common years.
    if month == 2 and day == 29 and not is_leap_year(year):
        return date(year, 3, 1)
    return date(year, month, day)


def next_occurrence(reference: date | datetime, month: int, day: int) -> date:
    """Return the first (month, day) on or after ``reference``.

    A datetime reference is truncated to its calendar date, so an occurrence
    falling on the reference day itself is returned rather than skipped.
    """

    today = reference.date() if isinstance(reference, datetime) else reference
    candidate = occurrence_in_year(today.year, month, day)
    if candidate < today:
        candidate = occurrence_in_year(today.year + 1, month, day)
    return candidate


def years_since(occurrence: date, start: date) -> int:
    return occurrence.year - start.year


__all__ = [
    "REFERENCE_YEAR",
    "InvalidDateError",
    "is_leap_year",
    "validate_month_day",
    "validate_year",
    "occurrence_in_year",
    "next_occurrence",
    "years_since",
]
