"""
ParsedIntent: what a single customer message says, as structured data.

Produced by src.nlu.parser.parse_message and thrown away at the end of the
turn. The dialogue engine only ever reasons about these fields, never the
raw text (except for ordinal / email / "back" handling).
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Literal

from src.domain.salon import ServiceCategory

IntentType = Literal[
    "book",
    "cancel",
    "reschedule",
    "view_appointments",
    "services",
    "hours",
    "help",
    "greeting",
    "confirmation",
    "unknown",
]


@dataclass
class IntentMatch:
    type: IntentType
    confidence: float   # 0.0–1.0
    keyword: str | None = None


@dataclass
class CategoryMatch:
    id: str
    slug: str
    name: str
    price_note: str
    estimated_duration: int | None = None


@dataclass
class DateMatch:
    raw: str          # e.g. "next friday"
    value: date
    display: str      # e.g. "Friday, Apr 10"

    @property
    def iso(self) -> str:
        return self.value.isoformat()


@dataclass
class TimeRange:
    start: str
    end: str


@dataclass
class TimeMatch:
    raw: str
    value: str | None = None     # "14:00"; None for a coarse period
    display: str | None = None   # "2:00 PM"
    range: TimeRange | None = None

    @property
    def is_exact(self) -> bool:
        return self.value is not None


@dataclass
class StylistMatch:
    stylist_id: str | None = None
    stylist_name: str | None = None
    any_stylist: bool = False
    auto_assigned: bool = False


@dataclass
class ParsedIntent:
    type: IntentType
    confidence: float
    original_message: str = ""
    category: CategoryMatch | None = None
    date: DateMatch | None = None
    time: TimeMatch | None = None
    stylist: StylistMatch | None = None
    ambiguous_categories: list[ServiceCategory] = field(default_factory=list)
    has_negation: bool = False

    @property
    def has_schedule(self) -> bool:
        return self.date is not None or (self.time is not None and self.time.is_exact)
