"""Natural date parsing. "Today" is Wednesday 1 April 2026 throughout."""

from datetime import date

import pytest

from src.nlu.dates import parse_date

TODAY = date(2026, 4, 1)  # Wednesday


def _value(message):
    result = parse_date(message, TODAY)
    return result.value if result else None


def test_today_and_tomorrow():
    assert _value("today please") == date(2026, 4, 1)
    assert _value("Tomorrow at 2pm") == date(2026, 4, 2)


@pytest.mark.parametrize("message, expected", [
    ("friday", date(2026, 4, 3)),          # later this week
    ("on monday", date(2026, 4, 6)),       # next week
    ("wednesday", date(2026, 4, 8)),       # same weekday means next week
    ("next friday", date(2026, 4, 10)),    # "next" forces the following week
    ("next monday", date(2026, 4, 6)),     # already in the following week
])
def test_weekdays(message, expected):
    assert _value(message) == expected


def test_relative_offsets():
    assert _value("in 3 days") == date(2026, 4, 4)
    assert _value("in 2 weeks") == date(2026, 4, 15)
    assert _value("in a week") == date(2026, 4, 8)


@pytest.mark.parametrize("message, expected", [
    ("april 10", date(2026, 4, 10)),
    ("Dec 15th", date(2026, 12, 15)),
    ("15 december", date(2026, 12, 15)),
    ("the 3rd of may", date(2026, 5, 3)),
    ("dec 15, 2027", date(2027, 12, 15)),
])
def test_explicit_dates(message, expected):
    assert _value(message) == expected


def test_passed_date_rolls_to_next_year():
    assert _value("book for 2 jan") == date(2027, 1, 2)


def test_invalid_calendar_date_is_ignored():
    assert parse_date("feb 30", TODAY) is None


def test_display_format():
    result = parse_date("friday", TODAY)
    assert result.display == "Friday, Apr 3"
    assert result.iso == "2026-04-03"
    assert result.raw == "friday"


def test_no_date():
    assert parse_date("a haircut at 2pm", TODAY) is None


def test_today_wins_over_weekday():
    assert _value("today or friday") == TODAY
