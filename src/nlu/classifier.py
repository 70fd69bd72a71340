"""
Keyword intent classifier.

No LLM calls. Every keyword of every intent is tried; the longest matching
keyword decides the intent, so specific phrases win over generic words.
A negation phrase anywhere in the message overrides everything.
"""

import re
from functools import lru_cache

from src.domain.intent import IntentMatch
from src.nlu.keywords import INTENT_KEYWORDS, NEGATION_PHRASES

LONG_KEYWORD = 6
HIGH_CONFIDENCE = 0.9
LOW_CONFIDENCE = 0.7
NO_MATCH_CONFIDENCE = 0.3
NEGATED_CONFIDENCE = 0.2


@lru_cache(maxsize=None)
def phrase_pattern(phrase: str) -> re.Pattern:
    """Whole-phrase pattern: 'hi' must not match inside 'this'."""
    return re.compile(r"(?<!\w)" + re.escape(phrase.lower()) + r"(?!\w)")


def contains_phrase(text: str, phrase: str) -> bool:
    return phrase_pattern(phrase).search(text.lower()) is not None


def _normalise(message: str) -> str:
    # Curly apostrophes from phone keyboards
    return message.lower().replace("’", "'").strip()


def has_negation(message: str) -> bool:
    text = _normalise(message)
    return any(contains_phrase(text, phrase) for phrase in NEGATION_PHRASES)


def detect_intent(message: str) -> IntentMatch:
    text = _normalise(message)
    if has_negation(text):
        return IntentMatch(type="unknown", confidence=NEGATED_CONFIDENCE)

    best: IntentMatch | None = None
    for intent, keywords in INTENT_KEYWORDS.items():
        for keyword in keywords:
            if not contains_phrase(text, keyword):
                continue
            if best is None or len(keyword) > len(best.keyword):
                confidence = HIGH_CONFIDENCE if len(keyword) > LONG_KEYWORD else LOW_CONFIDENCE
                best = IntentMatch(type=intent, confidence=confidence, keyword=keyword)

    if best is None:
        return IntentMatch(type="unknown", confidence=NO_MATCH_CONFIDENCE)
    return best
