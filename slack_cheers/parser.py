"""Parse free-text direct messages into birthday and hire-date updates.

Two grammars are tried in order:

* named dates, one per line: ``march 25`` sets the birthday and
  ``january 23, 2024`` sets the hire date (the year is what marks a hire date);
* the legacy keyword form: ``birthday: 14/06`` or ``hire_date: 2024-01-23``,
  or either date token on its own.

A grammar returns ``None`` when the text does not look like it at all, and
raises :class:`ParseError` when it does but the content is invalid. The first
grammar that returns a result wins.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional, Sequence

from .dates import InvalidDateError, validate_month_day, validate_year

NAMED_DATE_PATTERN = re.compile(
    r"^/?\s*([a-z]+)\.?\s+(\d{1,2})(?:\s*,\s*(\d{4}))?\s*$", re.IGNORECASE
)
BIRTHDAY_KEYWORD_PATTERN = re.compile(
    r"\bbirthday\b\s*[:=-]?\s*(\d{1,2})[/.-](\d{1,2})(?:[/.-](\d{4}))?", re.IGNORECASE
)
HIRE_KEYWORD_PATTERN = re.compile(
    r"\b(?:hire[_ ]?date|start[_ ]?date|work[_ ]?start)\b\s*[:=-]?\s*(\d{4}-\d{2}-\d{2})",
    re.IGNORECASE,
)
BARE_BIRTHDAY_PATTERN = re.compile(r"^\s*(\d{1,2})[/.-](\d{1,2})(?:[/.-](\d{4}))?\s*$")
BARE_HIRE_DATE_PATTERN = re.compile(r"^\s*(\d{4})-(\d{2})-(\d{2})\s*$")

MONTH_NAMES = {
    "jan": 1,
    "january": 1,
    "feb": 2,
    "february": 2,
    "mar": 3,
    "march": 3,
    "apr": 4,
    "april": 4,
    "may": 5,
    "jun": 6,
    "june": 6,
    "jul": 7,
    "july": 7,
    "aug": 8,
    "august": 8,
    "sep": 9,
    "sept": 9,
    "september": 9,
    "oct": 10,
    "october": 10,
    "nov": 11,
    "november": 11,
    "dec": 12,
    "december": 12,
}


class ParseError(ValueError):
    """Raised when a message cannot be turned into a profile update."""


@dataclass(slots=True)
class ParsedProfileInput:
    birthday_day: Optional[int] = None
    birthday_month: Optional[int] = None
    birthday_year: Optional[int] = None
    hire_date: Optional[date] = None

    @property
    def has_birthday(self) -> bool:
        return self.birthday_day is not None and self.birthday_month is not None

    @property
    def has_hire_date(self) -> bool:
        return self.hire_date is not None


Grammar = Callable[[str], Optional[ParsedProfileInput]]


def _check_birthday(day: int, month: int, year: Optional[int]) -> None:
    try:
        validate_month_day(month, day)
        if year is not None:
            validate_year(year)
    except InvalidDateError as exc:
        raise ParseError(f"invalid birthday ({exc})") from exc


def _build_hire_date(year: int, month: int, day: int) -> date:
    # A hire date carries its year, so Feb 29 is checked against that year.
    try:
        validate_year(year)
        return date(year, month, day)
    except ValueError as exc:
        raise ParseError(f"invalid hire date ({exc})") from exc


def parse_named_dates(text: str) -> Optional[ParsedProfileInput]:
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    matches = [NAMED_DATE_PATTERN.match(line) for line in lines]
    if not any(matches):
        return None
    if not all(matches):
        raise ParseError("invalid date line format (use march 25 or january 23, 2024)")

    parsed = ParsedProfileInput()
    for match in matches:
        month_raw, day_raw, year_raw = match.groups()
        month = MONTH_NAMES.get(month_raw.lower())
        if month is None:
            raise ParseError(f"invalid month name: {month_raw}")
        day = int(day_raw)

        if year_raw is None:
            if parsed.has_birthday:
                raise ParseError("multiple birthday lines provided")
            _check_birthday(day, month, None)
            parsed.birthday_day = day
            parsed.birthday_month = month
            continue

        if parsed.has_hire_date:
            raise ParseError("multiple hire date lines provided")
        parsed.hire_date = _build_hire_date(int(year_raw), month, day)

    return parsed


def parse_legacy(text: str) -> Optional[ParsedProfileInput]:
    parsed = ParsedProfileInput()

    match = BIRTHDAY_KEYWORD_PATTERN.search(text) or BARE_BIRTHDAY_PATTERN.match(text)
    if match:
        day_raw, month_raw, year_raw = match.groups()
        day, month = int(day_raw), int(month_raw)
        year = int(year_raw) if year_raw else None
        _check_birthday(day, month, year)
        parsed.birthday_day = day
        parsed.birthday_month = month
        parsed.birthday_year = year

    hire_match = HIRE_KEYWORD_PATTERN.search(text)
    hire_value = hire_match.group(1) if hire_match else None
    if hire_value is None and BARE_HIRE_DATE_PATTERN.match(text):
        hire_value = text.strip()
    if hire_value is not None:
        year_raw, month_raw, day_raw = hire_value.split("-")
        parsed.hire_date = _build_hire_date(int(year_raw), int(month_raw), int(day_raw))

    if not parsed.has_birthday and not parsed.has_hire_date:
        return None
    return parsed


GRAMMARS: Sequence[Grammar] = (parse_named_dates, parse_legacy)


def parse_profile_input(text: str) -> ParsedProfileInput:
    """Parse ``text`` or raise :class:`ParseError`; never returns an empty result."""

    clean = (text or "").strip()
    if clean:
        for grammar in GRAMMARS:
            parsed = grammar(clean)
            if parsed is not None:
                return parsed
    raise ParseError("no birthday or hire date found")


__all__ = [
    "MONTH_NAMES",
    "GRAMMARS",
    "ParseError",
    "ParsedProfileInput",
    "parse_named_dates",
    "parse_legacy",
    "parse_profile_input",
]
