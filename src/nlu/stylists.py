import re

from src.domain.intent import StylistMatch
from src.domain.salon import Stylist
from src.nlu.classifier import contains_phrase
from src.nlu.keywords import ANY_STYLIST_PHRASES

_WITH_NAME = re.compile(r"\b(?:with|by)\s+([a-z][a-z'-]*)")


def match_stylist(message: str, stylists: list[Stylist]) -> StylistMatch | None:
    """
    Resolve a stylist reference.

    Returns an any-stylist marker for "anyone"/"no preference", the only
    stylist when the roster has exactly one, a named match, or None when
    nothing was said (the dialogue may still ask).
    """
    text = message.lower()

    if any(contains_phrase(text, phrase) for phrase in ANY_STYLIST_PHRASES):
        return StylistMatch(any_stylist=True)

    if len(stylists) == 1:
        only = stylists[0]
        return StylistMatch(stylist_id=only.id, stylist_name=only.name, auto_assigned=True)

    m = _WITH_NAME.search(text)
    preferred = m.group(1) if m else None

    for stylist in stylists:
        full = stylist.name.lower()
        first = full.split()[0]
        if preferred in (full, first):
            return StylistMatch(stylist_id=stylist.id, stylist_name=stylist.name)
    for stylist in stylists:
        full = stylist.name.lower()
        if contains_phrase(text, full) or contains_phrase(text, full.split()[0]):
            return StylistMatch(stylist_id=stylist.id, stylist_name=stylist.name)

    return None
