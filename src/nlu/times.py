"""
Natural time parsing.

Strict on purpose: a number alone is never a time, so "2 Jan" or "in 3
days" yield nothing. A time needs an "at" prefix, an am/pm suffix or a
colon. Bare hours in the assume-PM window (1-7 by default) are read as
afternoon/evening, which is when the salon is open.
"""

import re

from src.domain.intent import TimeMatch, TimeRange
from src.formatting import format_time_12h
from src.nlu.keywords import TIME_PERIODS

ASSUME_PM_HOURS = (1, 7)

_AT_TIME = re.compile(r"\bat\s+(\d{1,2})(?::(\d{2}))?\s*(am|pm)?\b")
_AMPM_TIME = re.compile(r"\b(\d{1,2})(?::(\d{2}))?\s*(am|pm)\b")
_COLON_TIME = re.compile(r"\b(\d{1,2}):(\d{2})\b")
_NOON = re.compile(r"\b(noon|midday)\b")


def _resolve(
    raw: str,
    hours: int,
    minutes: int,
    period: str | None,
    assume_pm: tuple[int, int],
) -> TimeMatch | None:
    if period == "pm" and hours < 12:
        hours += 12
    elif period == "am" and hours == 12:
        hours = 0
    elif period is None and assume_pm[0] <= hours <= assume_pm[1]:
        hours += 12

    if hours > 23 or minutes > 59:
        return None
    value = f"{hours:02d}:{minutes:02d}"
    return TimeMatch(raw=raw, value=value, display=format_time_12h(value))


def parse_time(
    message: str,
    assume_pm: tuple[int, int] = ASSUME_PM_HOURS,
) -> TimeMatch | None:
    text = message.lower()

    for period, (start, end) in TIME_PERIODS.items():
        if re.search(rf"\b{period}\b", text):
            return TimeMatch(raw=period, range=TimeRange(start=start, end=end))

    for pattern in (_AT_TIME, _AMPM_TIME):
        m = pattern.search(text)
        if m:
            return _resolve(
                m.group(0).strip(), int(m.group(1)), int(m.group(2) or 0), m.group(3), assume_pm
            )

    m = _COLON_TIME.search(text)
    if m and int(m.group(1)) <= 23:
        return _resolve(m.group(0), int(m.group(1)), int(m.group(2)), None, assume_pm)

    m = _NOON.search(text)
    if m:
        return TimeMatch(raw=m.group(0), value="12:00", display=format_time_12h("12:00"))

    return None
