"""
parse_message: one customer message -> ParsedIntent.

Pure function over the message, the salon's roster and "today". The
catalogue and roster are passed in so the parser never does I/O.
"""

import logging
from datetime import date

from src.domain.intent import CategoryMatch, ParsedIntent
from src.domain.salon import ServiceCategory, Stylist
from src.nlu.categories import AMBIGUITY_MARGIN, format_price_note, match_category
from src.nlu.classifier import NEGATED_CONFIDENCE, detect_intent, has_negation
from src.nlu.dates import parse_date
from src.nlu.stylists import match_stylist
from src.nlu.times import ASSUME_PM_HOURS, parse_time

log = logging.getLogger(__name__)


def parse_message(
    message: str,
    categories: list[ServiceCategory],
    stylists: list[Stylist],
    today: date,
    ambiguity_margin: int = AMBIGUITY_MARGIN,
    assume_pm: tuple[int, int] = ASSUME_PM_HOURS,
) -> ParsedIntent:
    intent = detect_intent(message)
    negated = has_negation(message)
    categories_result = match_category(message, categories, margin=ambiguity_margin)

    category = None
    if categories_result.category:
        c = categories_result.category
        category = CategoryMatch(
            id=c.id,
            slug=c.slug,
            name=c.title,
            price_note=format_price_note(c),
            estimated_duration=c.estimated_duration,
        )

    parsed = ParsedIntent(
        type="unknown" if negated else intent.type,
        confidence=NEGATED_CONFIDENCE if negated else intent.confidence,
        original_message=message,
        category=category,
        date=parse_date(message, today),
        time=parse_time(message, assume_pm=assume_pm),
        stylist=match_stylist(message, stylists),
        ambiguous_categories=categories_result.ambiguous,
        has_negation=negated,
    )

    log.debug(
        "parsed intent=%s conf=%.2f kw=%r category=%s ambiguous=%d date=%s time=%s negation=%s",
        parsed.type, parsed.confidence, intent.keyword,
        category.slug if category else None, len(parsed.ambiguous_categories),
        parsed.date.iso if parsed.date else None,
        parsed.time.value or parsed.time.raw if parsed.time else None,
        negated,
    )
    return parsed
