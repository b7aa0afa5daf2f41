from datetime import date

import pytest

from slack_cheers.parser import ParseError, parse_legacy, parse_named_dates, parse_profile_input


def test_named_birthday_line() -> None:
    parsed = parse_profile_input("march 25")
    assert (parsed.birthday_month, parsed.birthday_day) == (3, 25)
    assert parsed.birthday_year is None
    assert parsed.hire_date is None


def test_named_hire_date_line() -> None:
    parsed = parse_profile_input("january 23, 2024")
    assert parsed.hire_date == date(2024, 1, 23)
    assert not parsed.has_birthday


def test_named_birthday_and_hire_date() -> None:
    parsed = parse_profile_input("march 25\njanuary 23, 2024")
    assert (parsed.birthday_month, parsed.birthday_day) == (3, 25)
    assert parsed.hire_date == date(2024, 1, 23)


def test_named_lines_in_any_order_with_abbreviations() -> None:
    parsed = parse_profile_input("  Jan. 23, 2024 \n\n /SEPT 9 ")
    assert parsed.hire_date == date(2024, 1, 23)
    assert (parsed.birthday_month, parsed.birthday_day) == (9, 9)


def test_multiple_birthday_lines_rejected() -> None:
    with pytest.raises(ParseError, match="multiple birthday lines provided"):
        parse_profile_input("/march 25\n/april 10")


def test_multiple_hire_date_lines_rejected() -> None:
    with pytest.raises(ParseError, match="multiple hire date lines provided"):
        parse_profile_input("march 1, 2020\napril 2, 2021")


def test_named_mode_rejects_stray_lines() -> None:
    with pytest.raises(ParseError, match="invalid date line format"):
        parse_profile_input("thanks!\nmarch 25")
    with pytest.raises(ParseError, match="invalid date line format"):
        parse_profile_input("march 25\nbirthday: 14/06")


def test_unknown_month_name() -> None:
    with pytest.raises(ParseError, match="invalid month name: smarch"):
        parse_profile_input("smarch 3")


def test_named_birthday_calendar_checks() -> None:
    for text in ("february 29", "february 30", "april 31", "march 0"):
        with pytest.raises(ParseError, match="invalid birthday"):
            parse_profile_input(text)


def test_named_hire_date_validates_year() -> None:
    with pytest.raises(ParseError, match="invalid hire date"):
        parse_profile_input("january 23, 1850")
    with pytest.raises(ParseError, match="invalid hire date"):
        parse_profile_input("february 29, 2023")
    assert parse_profile_input("february 29, 2024").hire_date == date(2024, 2, 29)


def test_legacy_birthday_keyword() -> None:
    parsed = parse_profile_input("birthday: 14/06")
    assert (parsed.birthday_month, parsed.birthday_day) == (6, 14)
    assert parsed.hire_date is None


def test_legacy_birthday_with_year_and_hire_keyword() -> None:
    parsed = parse_profile_input("birthday: 14.06.1990 hire_date: 2021-09-01")
    assert (parsed.birthday_day, parsed.birthday_month, parsed.birthday_year) == (14, 6, 1990)
    assert parsed.hire_date == date(2021, 9, 1)


def test_legacy_bare_tokens() -> None:
    assert parse_profile_input(" 01-12 ").birthday_month == 12
    assert parse_profile_input("2022-05-17").hire_date == date(2022, 5, 17)
    assert parse_profile_input("start date 2019-11-30").hire_date == date(2019, 11, 30)


def test_legacy_rejects_impossible_birthday() -> None:
    with pytest.raises(ParseError, match="invalid birthday"):
        parse_profile_input("birthday: 31/04")
    with pytest.raises(ParseError, match="invalid birthday"):
        parse_profile_input("29/02")


def test_nothing_recognized() -> None:
    for text in ("", "   ", "hello there", "see you tomorrow at 10"):
        with pytest.raises(ParseError, match="no birthday or hire date found"):
            parse_profile_input(text)


def test_grammars_return_none_when_not_applicable() -> None:
    assert parse_named_dates("birthday: 14/06") is None
    assert parse_legacy("march 25") is None
