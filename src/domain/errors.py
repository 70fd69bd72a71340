"""
Error taxonomy for the booking conversation.

Every error here is a *domain* error: the dialogue engine catches it and
turns it into a user-facing message plus the next question to ask.
Anything else raised by a collaborator is treated as an infrastructure
failure and degrades to a generic apology.
"""

from dataclasses import dataclass, field
from datetime import date


class BookingError(Exception):
    """Base class for all handled booking errors."""


class ValidationError(BookingError):
    """The request itself is invalid (past date, outside opening hours...)."""


class PastDateError(ValidationError):

    def __init__(self, requested: date):
        super().__init__(f"{requested.isoformat()} is in the past")
        self.requested = requested


class OutsideBusinessHoursError(ValidationError):

    def __init__(self, requested: str, open_time: str, close_time: str, suggestion: str | None):
        super().__init__(f"{requested} is outside business hours ({open_time}-{close_time})")
        self.requested = requested
        self.open_time = open_time
        self.close_time = close_time
        self.suggestion = suggestion
        self.too_early = requested < open_time


class ConflictError(BookingError):
    """The slot exists but cannot be taken."""


@dataclass
class DayOpenings:
    """A later date that still has openings, with its first few slots."""
    day: date
    slots: list[str] = field(default_factory=list)


class SlotUnavailableError(ConflictError):

    def __init__(
        self,
        requested: str,
        alternatives: list[str] | None = None,
        next_openings: list[DayOpenings] | None = None,
    ):
        super().__init__(f"{requested} is not available")
        self.requested = requested
        self.alternatives = alternatives or []
        self.next_openings = next_openings or []


class InsufficientCapacityError(ConflictError):

    def __init__(self, requested: str, duration_minutes: int, alternatives: list[str] | None = None):
        super().__init__(
            f"not enough consecutive time from {requested} for {duration_minutes} minutes"
        )
        self.requested = requested
        self.duration_minutes = duration_minutes
        self.alternatives = alternatives or []


class NotFoundError(BookingError):
    """Unknown appointment, category or stylist."""


class IdentityRequired(BookingError):
    """The action needs an email address we do not have yet."""


class AmbiguousMatch(BookingError):

    def __init__(self, what: str, candidates: list):
        super().__init__(f"ambiguous {what}: {len(candidates)} candidates")
        self.what = what
        self.candidates = candidates


class InvalidContextError(ValueError):
    """A BookingContext violates one of its invariants."""
