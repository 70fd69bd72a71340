"""
Natural date parsing relative to an injected "today".

Priority: today/tomorrow, weekday names, "in N days/weeks", then explicit
month-day forms. The first rule that matches wins.
"""

import re
from datetime import date, timedelta

from src.domain.intent import DateMatch
from src.formatting import format_display_date
from src.nlu.keywords import MONTHS, WEEKDAYS

_IN_DAYS = re.compile(r"\bin\s+(\d+)\s*days?\b")
_IN_WEEKS = re.compile(r"\bin\s+(\d+)\s*weeks?\b")
_ONE_WEEK = re.compile(r"\bin\s+a\s+week\b")

_MONTH_NAME = rf"(?:{'|'.join(MONTHS)}|{'|'.join(m[:3] for m in MONTHS if m != 'may')})"

# "december 15", "dec 15th", "dec 15, 2026". The \b after the day stops
# "jan 2026" from reading as "jan 20".
_MONTH_DAY = re.compile(
    rf"\b(?P<month>{_MONTH_NAME})\.?\s+(?P<day>\d{{1,2}})(?:st|nd|rd|th)?\b(?:,?\s*(?P<year>\d{{4}}))?"
)
# "15 december", "15th dec 2026", "2 jan"
_DAY_MONTH = re.compile(
    rf"\b(?P<day>\d{{1,2}})(?:st|nd|rd|th)?\s+(?:of\s+)?(?P<month>{_MONTH_NAME})\b\.?(?:,?\s*(?P<year>\d{{4}}))?"
)


def _month_number(name: str) -> int:
    name = name.lower().rstrip(".")
    for index, month in enumerate(MONTHS, start=1):
        if name == month or name == month[:3]:
            return index
    raise ValueError(f"Unknown month: {name!r}")


def _match(raw: str, value: date) -> DateMatch:
    return DateMatch(raw=raw, value=value, display=format_display_date(value))


def _weekday(text: str, today: date) -> DateMatch | None:
    for index, day_name in enumerate(WEEKDAYS):
        m = re.search(rf"\b(next\s+)?{day_name}\b", text)
        if not m:
            continue
        days_ahead = index - today.weekday()
        if days_ahead <= 0 or m.group(1):
            days_ahead += 7
        return _match(m.group(0), today + timedelta(days=days_ahead))
    return None


def _explicit(text: str, today: date) -> DateMatch | None:
    for pattern in (_MONTH_DAY, _DAY_MONTH):
        m = pattern.search(text)
        if not m:
            continue
        month = _month_number(m.group("month"))
        day = int(m.group("day"))
        year = int(m.group("year")) if m.group("year") else today.year
        try:
            value = date(year, month, day)
        except ValueError:
            continue
        if not m.group("year") and value < today:
            try:
                value = value.replace(year=year + 1)
            except ValueError:  # Feb 29 with no leap year ahead
                continue
        return _match(m.group(0).strip(), value)
    return None


def parse_date(message: str, today: date) -> DateMatch | None:
    text = message.lower()

    if re.search(r"\btoday\b", text):
        return _match("today", today)
    if re.search(r"\btomorrow\b", text):
        return _match("tomorrow", today + timedelta(days=1))

    weekday = _weekday(text, today)
    if weekday:
        return weekday

    m = _IN_DAYS.search(text)
    if m:
        return _match(m.group(0), today + timedelta(days=int(m.group(1))))
    m = _IN_WEEKS.search(text)
    if m:
        return _match(m.group(0), today + timedelta(weeks=int(m.group(1))))
    m = _ONE_WEEK.search(text)
    if m:
        return _match(m.group(0), today + timedelta(weeks=1))

    return _explicit(text, today)
