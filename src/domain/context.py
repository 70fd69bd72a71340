"""
BookingContext: the durable state of one conversation.

One flat record per conversation key. The single ``awaiting_input``
attribute is the one outstanding question; the validating constructor
enforces the invariants so no code path can build an inconsistent context
by spreading partial updates around.
"""

from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from types import MappingProxyType
from typing import Any, Literal, Mapping

from src.domain.errors import InvalidContextError

AwaitingInput = Literal[
    "category", "date", "time", "stylist", "confirmation", "email", "appointment_select"
]
PendingAction = Literal["cancel", "reschedule", "view"]

AWAITING_INPUTS = (
    "category", "date", "time", "stylist", "confirmation", "email", "appointment_select"
)
PENDING_ACTIONS = ("cancel", "reschedule", "view")

ANY_STYLIST = "any"


@dataclass(frozen=True)
class ConversationKey:
    """Messaging channel + external user id."""

    channel: str
    user_id: str

    def __str__(self) -> str:
        return f"{self.channel}:{self.user_id}"


@dataclass(frozen=True)
class StepSnapshot:
    """An immutable copy of the context taken before a step changed it."""

    step: str
    context: Mapping[str, Any]
    timestamp: float

    def to_dict(self) -> dict:
        return {"step": self.step, "context": dict(self.context), "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StepSnapshot":
        return cls(
            step=data["step"],
            context=MappingProxyType(dict(data.get("context") or {})),
            timestamp=float(data.get("timestamp", 0.0)),
        )


@dataclass(frozen=True)
class BookingContext:
    category_id: str | None = None
    category_name: str | None = None
    price_note: str | None = None
    date: str | None = None          # YYYY-MM-DD
    time: str | None = None          # HH:MM
    stylist_id: str | None = None    # ANY_STYLIST for an explicit "anyone"
    stylist_name: str | None = None
    customer_name: str | None = None
    customer_email: str | None = None
    awaiting_input: AwaitingInput | None = None
    pending_action: PendingAction | None = None
    appointment_id: str | None = None
    new_date: str | None = None      # reschedule target
    new_time: str | None = None
    step_history: tuple[StepSnapshot, ...] = ()
    expires_at: datetime | None = field(default=None, compare=False)

    def __post_init__(self):
        if self.awaiting_input is not None and self.awaiting_input not in AWAITING_INPUTS:
            raise InvalidContextError(f"unknown awaiting_input {self.awaiting_input!r}")
        if self.pending_action is not None and self.pending_action not in PENDING_ACTIONS:
            raise InvalidContextError(f"unknown pending_action {self.pending_action!r}")
        if self.awaiting_input == "confirmation" and not (self.category_id or self.category_name):
            raise InvalidContextError("cannot await confirmation without a category")
        if not isinstance(self.step_history, tuple):
            object.__setattr__(self, "step_history", tuple(self.step_history))

    # -- derived state -------------------------------------------------------

    @property
    def has_category(self) -> bool:
        return bool(self.category_id or self.category_name)

    @property
    def is_active(self) -> bool:
        """True while a question is outstanding or an action is pending."""
        return self.awaiting_input is not None or self.pending_action is not None

    @property
    def any_stylist(self) -> bool:
        return self.stylist_id == ANY_STYLIST

    # -- merge-write ---------------------------------------------------------

    def merged(self, partial: Mapping[str, Any]) -> "BookingContext":
        """
        Return a new context with ``partial`` applied on top.

        An explicit None clears a field. Unknown keys are rejected.
        """
        known = _field_names()
        unknown = set(partial) - known
        if unknown:
            raise InvalidContextError(f"unknown context fields: {sorted(unknown)}")
        changes = dict(partial)
        if "step_history" in changes:
            changes["step_history"] = tuple(
                s if isinstance(s, StepSnapshot) else StepSnapshot.from_dict(s)
                for s in changes["step_history"] or ()
            )
        return replace(self, **changes)

    # -- serialisation -------------------------------------------------------

    def snapshot(self) -> dict:
        """Every field except the step stack and expiry, Nones included."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name not in ("step_history", "expires_at")
        }

    def to_dict(self) -> dict:
        """JSON-serialisable form for repositories (expiry is stored apart)."""
        data = self.snapshot()
        data["step_history"] = [s.to_dict() for s in self.step_history]
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], expires_at: datetime | None = None) -> "BookingContext":
        known = _field_names()
        values = {k: v for k, v in data.items() if k in known and k not in ("step_history", "expires_at")}
        history = tuple(StepSnapshot.from_dict(s) for s in data.get("step_history") or ())
        return cls(**values, step_history=history, expires_at=expires_at)


def _field_names() -> set[str]:
    return {f.name for f in fields(BookingContext)}
