"""Display helpers shared by the parsers and the dialogue engine."""

from datetime import date


def to_minutes(hhmm: str) -> int:
    hours, minutes = hhmm.split(":")
    return int(hours) * 60 + int(minutes)


def from_minutes(total: int) -> str:
    return f"{total // 60:02d}:{total % 60:02d}"


def format_time_12h(hhmm: str) -> str:
    """'14:00' -> '2:00 PM', '00:30' -> '12:30 AM'."""
    hours, minutes = divmod(to_minutes(hhmm), 60)
    period = "PM" if hours >= 12 else "AM"
    display = hours - 12 if hours > 12 else (12 if hours == 0 else hours)
    return f"{display}:{minutes:02d} {period}"


def format_display_date(day: date) -> str:
    """date(2026, 4, 10) -> 'Friday, Apr 10'."""
    return f"{day:%A}, {day:%b} {day.day}"


def format_short_date(day: date) -> str:
    """date(2026, 4, 10) -> 'Fri, Apr 10'."""
    return f"{day:%a}, {day:%b} {day.day}"


def format_duration(minutes: int) -> str:
    hours, mins = divmod(minutes, 60)
    if hours and mins:
        return f"{hours}h {mins}min"
    if hours:
        return f"{hours} hour" if hours == 1 else f"{hours} hours"
    return f"{mins} minutes"


def booking_summary(context) -> str:
    """
    The "Your booking" block shown above prompts.

    Empty until a category is chosen.
    """
    if not context or not context.category_name:
        return ""
    lines = ["*Your booking:*"]
    service = context.category_name
    if context.price_note:
        service += f" ({context.price_note})"
    lines.append(f"Service: {service}")
    if context.date:
        lines.append(f"Date: {format_display_date(date.fromisoformat(context.date))}")
    if context.time:
        lines.append(f"Time: {format_time_12h(context.time)}")
    if context.stylist_id:
        stylist = "Any available stylist" if context.any_stylist else context.stylist_name or context.stylist_id
        lines.append(f"Stylist: {stylist}")
    return "\n".join(lines) + "\n\n"
