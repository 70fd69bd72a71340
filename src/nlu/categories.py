"""
Category matcher.

Each category scores the length of its longest phrase found in the message
(default vocabulary for its slug, its own keywords, its title and short
title). One scoring category resolves; several resolve only when the best
is clearly more specific than the runner-up, otherwise the caller has to
ask which one was meant.
"""

from dataclasses import dataclass, field

from src.domain.salon import ServiceCategory
from src.nlu.classifier import contains_phrase
from src.nlu.keywords import CATEGORY_KEYWORDS

AMBIGUITY_MARGIN = 3


@dataclass
class CategoryResult:
    category: ServiceCategory | None = None
    ambiguous: list[ServiceCategory] = field(default_factory=list)


def category_phrases(category: ServiceCategory) -> list[str]:
    phrases = list(CATEGORY_KEYWORDS.get(category.slug, []))
    phrases.extend(category.keywords)
    phrases.append(category.title)
    if category.short_title:
        phrases.append(category.short_title)
    return phrases


def _longest_match(message: str, category: ServiceCategory) -> int:
    return max(
        (len(p) for p in category_phrases(category) if p and contains_phrase(message, p)),
        default=0,
    )


def match_category(
    message: str,
    categories: list[ServiceCategory],
    margin: int = AMBIGUITY_MARGIN,
) -> CategoryResult:
    scored: list[tuple[int, int, ServiceCategory]] = []
    for index, category in enumerate(categories):
        length = _longest_match(message, category)
        if length > 0:
            scored.append((length, index, category))

    if not scored:
        return CategoryResult()
    if len(scored) == 1:
        return CategoryResult(category=scored[0][2])

    # Longest first; catalogue order breaks ties so results never depend on dict order
    scored.sort(key=lambda s: (-s[0], s[1]))
    best, runner_up = scored[0], scored[1]
    if best[0] >= runner_up[0] + margin:
        return CategoryResult(category=best[2])
    return CategoryResult(ambiguous=[c for _, _, c in scored])


def format_price_note(category: ServiceCategory) -> str:
    if category.price_note:
        return category.price_note
    if category.price_range_min:
        return f"from ${category.price_range_min:g}"
    return ""
