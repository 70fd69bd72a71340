"""
Dialogue engine: one customer message in, one reply (or a deferral) out.

Rules are tried in a fixed order each turn:

  1. "back"                         -> pop the step history, re-ask
  2. negation during an active flow -> abort, clear the context
  3. awaiting appointment_select    -> resolve "1" / "2nd" / "first"
  4. awaiting email                 -> resume the pending cancel/reschedule/view
  5. awaiting confirmation + "yes"  -> execute (book / cancel / reschedule)
  6. reschedule with inline dates   -> Deferred (the LLM agent handles it)
  7. answers to the open question   -> slot filling (booking or reschedule)
  8. greeting / services / hours / help (stateless; a greeting that
     names a service, date or time is treated as 9)
  9. booking intent or a category   -> booking flow
 10. cancel / reschedule / view     -> identity lookup
 11. anything else                  -> re-ask the open question, or help

The engine never offers "reply yes" for a slot the availability engine has
not validated. Domain errors (src.domain.errors) are mapped to messages
here; anything else a collaborator raises is logged and answered with a
generic apology.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date, timedelta

from src.availability import AvailabilityEngine
from src.config import EngineSettings
from src.context_store import ContextStore
from src.domain.context import ANY_STYLIST, BookingContext, ConversationKey
from src.domain.errors import (
    AmbiguousMatch,
    BookingError,
    IdentityRequired,
    InsufficientCapacityError,
    OutsideBusinessHoursError,
    PastDateError,
    SlotUnavailableError,
)
from src.domain.intent import ParsedIntent
from src.domain.response import Button, Deferred, EngineReply, TurnOutcome
from src.domain.salon import Appointment, BookingRequest, SalonGateway, ServiceCategory, Stylist
from src.formatting import (
    booking_summary,
    format_display_date,
    format_duration,
    format_short_date,
    format_time_12h,
)
from src.nlu.categories import format_price_note
from src.nlu.classifier import contains_phrase
from src.nlu.keywords import BACK_PHRASES, ORDINALS
from src.nlu.parser import parse_message

log = logging.getLogger(__name__)

_EMAIL = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")
_NUMBER = re.compile(r"^\s*#?(\d{1,2})(?:st|nd|rd|th)?\s*[.!)]?\s*$")
_DECLINES = ("no", "nope", "n")

# "reschedule my haircut on 12 dec to 14 dec", "move it to next friday"
_INLINE_DATES = (
    re.compile(r"\d{1,2}\s*(jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)", re.IGNORECASE),
    re.compile(r"\bto\s+(next|this|tomorrow|mon|tue|wed|thu|fri|sat|sun|\d{1,2})", re.IGNORECASE),
)

BOOKING_STEPS = ("category", "date", "time", "stylist", "confirmation")
_APPOINTMENT_FIELDS = ("category_id", "category_name", "price_note", "date", "time", "stylist_id", "stylist_name")
SLOT_OFFER_LIMIT = 6

CONFIRM_BUTTONS = [Button("✅ Confirm", "yes"), Button("❌ Cancel", "never mind")]


@dataclass
class EngineConfig:
    salon: SalonGateway
    store: ContextStore
    availability: AvailabilityEngine
    settings: EngineSettings = field(default_factory=EngineSettings)


@dataclass
class _Turn:
    """Everything one handle_turn call works with."""
    key: ConversationKey
    message: str
    parsed: ParsedIntent
    context: BookingContext
    categories: list[ServiceCategory]
    stylists: list[Stylist]
    today: date
    identity: dict = field(default_factory=dict)

    @property
    def email(self) -> str | None:
        return self.identity.get("customer_email") or self.context.customer_email


def _time_button(hhmm: str) -> Button:
    label = format_time_12h(hhmm)
    return Button(label, "at " + label.replace(" ", "").lower())


def _date_button(day: date) -> Button:
    return Button(format_short_date(day), f"{day:%B} {day.day}")


def _bullets(items) -> str:
    return "\n".join(f"• {item}" for item in items)


def _slot_list(slots: list[str]) -> str:
    return _bullets(format_time_12h(s) for s in slots)


def _normalised(message: str) -> str:
    return message.lower().strip().strip(".!?").strip()


def is_back_request(message: str) -> bool:
    return _normalised(message) in BACK_PHRASES


def resolve_ordinal(message: str, count: int) -> int | None:
    """'2', '#2', '2nd', 'the second one' -> 1 (zero-based), or None."""
    text = message.lower()
    m = _NUMBER.match(text)
    if m:
        number = int(m.group(1))
    else:
        number = next((n for word, n in ORDINALS.items() if contains_phrase(text, word)), None)
    if number is None or not 1 <= number <= count:
        return None
    return number - 1


def has_inline_reschedule_dates(message: str) -> bool:
    return any(p.search(message) for p in _INLINE_DATES)


class DialogueEngine:
    """
    Deterministic booking conversation.

    Call handle_turn() once per customer message. The engine is stateless
    between calls; all conversation state lives in the ContextStore.
    """

    def __init__(self, config: EngineConfig):
        self._cfg = config
        self._salon = config.salon
        self._store = config.store
        self._availability = config.availability
        self._settings = config.settings

    # -- entry point ---------------------------------------------------------

    async def handle_turn(
        self,
        key: ConversationKey,
        message: str,
        customer_email: str | None = None,
        customer_name: str | None = None,
    ) -> TurnOutcome:
        try:
            outcome = await self._handle(key, message, customer_email, customer_name)
        except Exception:
            log.exception("key=%s turn failed, degrading to apology", key)
            return EngineReply(text=self._apology())

        if isinstance(outcome, Deferred):
            log.warning("key=%s deferred reason=%s message=%.60r", key, outcome.reason, message)
        else:
            summary = outcome.context_summary or {}
            log.info(
                "key=%s replied awaiting=%s pending=%s buttons=%d",
                key, summary.get("awaiting_input"), summary.get("pending_action"), len(outcome.buttons),
            )
        return outcome

    async def _handle(
        self,
        key: ConversationKey,
        message: str,
        customer_email: str | None,
        customer_name: str | None,
    ) -> TurnOutcome:
        stored = await self._store.get(key)
        categories = await self._salon.get_categories()
        stylists = await self._salon.get_stylists()
        today = self._availability.today()

        parsed = parse_message(
            message,
            categories,
            stylists,
            today,
            ambiguity_margin=self._settings.category_ambiguity_margin,
            assume_pm=self._settings.assume_pm_hours,
        )
        turn = _Turn(
            key=key,
            message=message,
            parsed=parsed,
            context=stored or BookingContext(),
            categories=categories,
            stylists=stylists,
            today=today,
        )
        m = _EMAIL.search(message)
        email = m.group(0) if m else customer_email
        if email:
            turn.identity["customer_email"] = email.lower()
        if customer_name:
            turn.identity["customer_name"] = customer_name

        ctx = turn.context
        log.debug(
            "key=%s intent=%s conf=%.2f awaiting=%s pending=%s",
            key, parsed.type, parsed.confidence, ctx.awaiting_input, ctx.pending_action,
        )

        # 1. back
        if is_back_request(message):
            return await self._go_back(turn)

        # 2. abort
        if ctx.is_active and (parsed.has_negation or _normalised(message) in _DECLINES):
            await self._clear(turn)
            return self._reply("No problem, I've stopped that. Is there anything else I can help you with?")

        # 3. which appointment
        if ctx.awaiting_input == "appointment_select":
            outcome = await self._on_appointment_select(turn)
            if outcome is not None:
                return outcome

        # 4. email for a pending action
        if ctx.awaiting_input == "email":
            if turn.email and "customer_email" in turn.identity:
                return await self._identity_action(turn, ctx.pending_action or "view")
            if parsed.type == "unknown":
                return self._reply(
                    "That doesn't look like an email address. "
                    "Please type the email you booked with (e.g. name@example.com).",
                    context=ctx,
                )

        # 5. execute
        if ctx.awaiting_input == "confirmation" and parsed.type == "confirmation":
            return await self._execute(turn)

        # 6. the LLM agent handles "move it from the 12th to the 14th"
        if parsed.type == "reschedule" and not ctx.appointment_id and has_inline_reschedule_dates(message):
            return Deferred(
                reason="reschedule_inline_dates",
                message=message,
                context_summary=ctx.snapshot() if stored else None,
            )

        # 7. answers to the open question
        if ctx.pending_action == "reschedule" and ctx.appointment_id and (parsed.has_schedule or parsed.time):
            return await self._reschedule_slot(turn)
        if ctx.awaiting_input in BOOKING_STEPS and ctx.pending_action is None and self._fills_booking(turn):
            return await self._book(turn)

        # 8. informational ("hi, can I get a haircut tomorrow" is a booking)
        if parsed.type == "greeting":
            if parsed.category or parsed.ambiguous_categories or parsed.has_schedule:
                return await self._book(turn)
            return self._greeting(categories)
        if parsed.type == "services":
            return self._services(categories)
        if parsed.type == "hours":
            return await self._hours(today)
        if parsed.type == "help":
            return self._reply(self._help_text())

        # 9. booking
        if parsed.type == "book" or (
            parsed.type not in ("cancel", "reschedule", "view_appointments", "confirmation")
            and (parsed.category or parsed.ambiguous_categories)
        ):
            return await self._book(turn)

        # 10. existing appointments
        if parsed.type == "reschedule" and ctx.pending_action == "reschedule" and ctx.appointment_id:
            return await self._reschedule_slot(turn)
        if parsed.type in ("cancel", "reschedule", "view_appointments"):
            action = "view" if parsed.type == "view_appointments" else parsed.type
            return await self._identity_action(turn, action)

        # 11. fallback
        if ctx.awaiting_input is not None:
            return await self._reask(turn, prefix="Sorry, I didn't quite catch that.\n\n")
        return self._reply("Sorry, I didn't quite catch that. " + self._help_text())

    def _fills_booking(self, turn: _Turn) -> bool:
        p = turn.parsed
        if p.category or p.ambiguous_categories or p.date or p.time:
            return True
        return turn.context.awaiting_input == "stylist" and p.stylist is not None

    # -- persistence helpers -------------------------------------------------

    async def _save(self, turn: _Turn, partial: dict) -> BookingContext:
        """Merge-write; a change of question records a step first so "back" can undo it."""
        new_awaiting = partial.get("awaiting_input", turn.context.awaiting_input)
        if new_awaiting != turn.context.awaiting_input:
            await self._store.push_step(turn.key, new_awaiting or "done")
        turn.context = await self._store.set(turn.key, {**turn.identity, **partial})
        return turn.context

    async def _clear(self, turn: _Turn) -> None:
        await self._store.clear(turn.key)
        turn.context = BookingContext()

    @staticmethod
    def _reply(text: str, buttons: list[Button] | None = None, context: BookingContext | None = None) -> EngineReply:
        return EngineReply(
            text=text,
            buttons=buttons or [],
            context_summary=context.snapshot() if context is not None else None,
        )

    def _apology(self) -> str:
        text = "Sorry, something went wrong on our side. Please try again in a moment"
        if self._settings.booking_url:
            text += f", or book online at {self._settings.booking_url}"
        return text + "."

    # -- informational branches ----------------------------------------------

    def _category_lines(self, categories: list[ServiceCategory]) -> str:
        lines = []
        for c in categories:
            note = format_price_note(c)
            lines.append(f"{c.title} ({note})" if note else c.title)
        return _bullets(lines)

    @staticmethod
    def _category_buttons(categories: list[ServiceCategory]) -> list[Button]:
        return [Button(c.title, c.title) for c in categories]

    def _greeting(self, categories: list[ServiceCategory]) -> EngineReply:
        text = (
            f"Hi there! 👋 Welcome to {self._settings.salon_name}.\n\n"
            "I'd be happy to help you book an appointment. "
            "What type of service are you looking for today?\n\n"
            f"We offer:\n{self._category_lines(categories)}"
        )
        return self._reply(text, self._category_buttons(categories))

    def _services(self, categories: list[ServiceCategory]) -> EngineReply:
        blocks = []
        for c in categories:
            block = f"*{c.title}*"
            note = format_price_note(c)
            if note:
                block += f"\n{note[0].upper()}{note[1:]}"
            if c.estimated_duration:
                block += f"\nAbout {format_duration(c.estimated_duration)}"
            blocks.append(block)
        text = "Here are our services:\n\n" + "\n\n".join(blocks) + "\n\nWould you like to book any of these?"
        return self._reply(text, self._category_buttons(categories))

    async def _hours(self, today: date) -> EngineReply:
        monday = today - timedelta(days=today.weekday())
        week = []
        for offset in range(7):
            day = monday + timedelta(days=offset)
            hours = await self._salon.get_business_hours(day)
            label = (
                f"{format_time_12h(hours.open_time)} - {format_time_12h(hours.close_time)}"
                if hours else "Closed"
            )
            week.append((f"{day:%A}", label))

        # Collapse runs of identical days: "Monday - Saturday: 10:00 AM - 7:00 PM"
        lines = []
        start = 0
        for i in range(1, len(week) + 1):
            if i == len(week) or week[i][1] != week[start][1]:
                first, last = week[start][0], week[i - 1][0]
                span = first if first == last else f"{first} - {last}"
                lines.append(f"{span}: {week[start][1]}")
                start = i

        text = "We're open:\n\n" + "\n".join(lines) + "\n\nWould you like to book an appointment?"
        return self._reply(text)

    def _help_text(self) -> str:
        return (
            "Here's what I can help you with:\n\n"
            "• *Book an appointment* - Just tell me what service and when\n"
            "• *View my appointments* - See your upcoming bookings\n"
            "• *Cancel or reschedule* - Change your existing bookings\n"
            "• *See services & prices* - Browse what we offer\n\n"
            "For example:\n"
            "\"Book a haircut for tomorrow at 2pm\"\n"
            "\"What services do you offer?\"\n"
            "\"Cancel my appointment\""
        )

    # -- back / re-ask -------------------------------------------------------

    async def _go_back(self, turn: _Turn) -> EngineReply:
        restored = await self._store.pop_step(turn.key)
        if restored is None:
            if turn.context.awaiting_input:
                return await self._reask(turn, prefix="There's nothing to go back to.\n\n")
            return self._reply("There's nothing to go back to. " + self._help_text())
        turn.context = restored
        log.info("key=%s went back to awaiting=%s", turn.key, restored.awaiting_input)
        if restored.awaiting_input is None:
            return self._reply("OK, let's start over. " + self._help_text(), context=restored)
        return await self._reask(turn, prefix="OK, let's go back.\n\n")

    async def _reask(self, turn: _Turn, prefix: str = "") -> EngineReply:
        ctx = turn.context
        step = ctx.awaiting_input

        if step == "category":
            return self._reply(
                prefix + "What type of service are you looking for?\n\n" + self._category_lines(turn.categories),
                self._category_buttons(turn.categories),
                ctx,
            )
        if step == "date":
            what = "reschedule to" if ctx.pending_action == "reschedule" else "come in"
            return self._reply(
                prefix + booking_summary(ctx) + f"When would you like to {what}? (e.g. \"tomorrow at 2pm\")",
                context=ctx,
            )
        if step == "time":
            target = ctx.new_date if ctx.pending_action == "reschedule" else ctx.date
            slots = []
            if target:
                slots = await self._availability.get_availability(
                    date.fromisoformat(target),
                    self._resource(ctx),
                    ctx.appointment_id if ctx.pending_action == "reschedule" else None,
                )
            text = prefix + booking_summary(ctx) + "What time works for you? (e.g. \"2pm\" or \"afternoon\")"
            if slots:
                text += f"\n\nOpen times:\n{_slot_list(slots[:SLOT_OFFER_LIMIT])}"
            return self._reply(text, [_time_button(s) for s in slots[:SLOT_OFFER_LIMIT]], ctx)
        if step == "stylist":
            return self._ask_stylist(turn, prefix)
        if step == "confirmation":
            if ctx.pending_action == "cancel":
                return self._reply(prefix + self._cancel_prompt(ctx), CONFIRM_BUTTONS, ctx)
            if ctx.pending_action == "reschedule":
                return self._reply(prefix + self._reschedule_prompt(ctx), CONFIRM_BUTTONS, ctx)
            return self._reply(prefix + self._booking_prompt(ctx), CONFIRM_BUTTONS, ctx)
        if step == "email":
            return self._reply(prefix + "Please provide the email address you booked with.", context=ctx)
        if step == "appointment_select":
            return self._reply(prefix + "Please reply with the number of the appointment.", context=ctx)
        return self._reply(prefix + self._help_text(), context=ctx)

    # -- booking flow --------------------------------------------------------

    def _category(self, turn: _Turn, category_id: str | None) -> ServiceCategory | None:
        return next((c for c in turn.categories if c.id == category_id), None)

    def _duration(self, turn: _Turn, category_id: str | None) -> int:
        category = self._category(turn, category_id)
        if category and category.estimated_duration:
            return category.estimated_duration
        return self._settings.default_service_minutes

    @staticmethod
    def _resource(ctx: BookingContext) -> str | None:
        if ctx.stylist_id and not ctx.any_stylist:
            return ctx.stylist_id
        return None

    async def _book(self, turn: _Turn) -> EngineReply:
        ctx, p = turn.context, turn.parsed

        partial: dict = {"pending_action": None, "appointment_id": None, "new_date": None, "new_time": None}
        if ctx.pending_action or ctx.appointment_id:
            # A new booking started mid cancel/reschedule: the selected appointment's fields don't carry over
            partial.update(dict.fromkeys(_APPOINTMENT_FIELDS), awaiting_input=None)
        if p.date:
            partial["date"] = p.date.iso
        if p.time and p.time.is_exact:
            partial["time"] = p.time.value
        if p.stylist and (p.stylist.any_stylist or p.stylist.stylist_id):
            partial["stylist_id"] = ANY_STYLIST if p.stylist.any_stylist else p.stylist.stylist_id
            partial["stylist_name"] = None if p.stylist.any_stylist else p.stylist.stylist_name

        if p.ambiguous_categories:
            await self._save(turn, {**partial, "awaiting_input": "category"})
            return self._reply(
                "We have a few options:\n\n"
                + self._category_lines(p.ambiguous_categories)
                + "\n\nWhich one are you interested in?",
                self._category_buttons(p.ambiguous_categories),
                turn.context,
            )

        if p.category:
            partial.update(
                category_id=p.category.id,
                category_name=p.category.name,
                price_note=p.category.price_note or None,
            )
        elif not ctx.merged(partial).has_category:
            await self._save(turn, {**partial, "awaiting_input": "category"})
            return self._reply(
                "I'd love to help you book an appointment! What type of service are you looking for?\n\n"
                f"We offer:\n{self._category_lines(turn.categories)}",
                self._category_buttons(turn.categories),
                turn.context,
            )

        merged = ctx.merged(partial)
        if not merged.date:
            await self._save(turn, {**partial, "awaiting_input": "date"})
            return self._reply(
                "📋 *Great choice:*\n" + booking_summary(turn.context)
                + "When would you like to come in? (e.g. \"tomorrow at 2pm\")",
                context=turn.context,
            )

        day = date.fromisoformat(merged.date)
        if not merged.time:
            return await self._offer_times(turn, partial, day, "date", "time")

        duration = self._duration(turn, merged.category_id)
        try:
            await self._availability.validate_slot(day, merged.time, duration, self._resource(merged))
        except BookingError as exc:
            return await self._validation_failure(
                turn, exc, partial, day, merged.time, merged.category_name, duration, "date", "time"
            )

        if (
            self._settings.prompt_for_stylist
            and not merged.stylist_id
            and len(turn.stylists) > 1
        ):
            await self._save(turn, {**partial, "awaiting_input": "stylist"})
            return self._ask_stylist(turn)

        await self._save(turn, {**partial, "awaiting_input": "confirmation"})
        return self._reply(self._booking_prompt(turn.context), CONFIRM_BUTTONS, turn.context)

    async def _offer_times(
        self,
        turn: _Turn,
        partial: dict,
        day: date,
        date_field: str,
        time_field: str,
        resource_id: str | None = None,
        exclude_appointment_id: str | None = None,
    ) -> EngineReply:
        """Ask for a time on a known date, listing what is open (within a period if one was named)."""
        p = turn.parsed
        if date_field == "date" and resource_id is None:
            resource_id = self._resource(turn.context.merged(partial))

        if day < turn.today:
            return await self._validation_failure(
                turn, PastDateError(day), partial, day, None, None, 0, date_field, time_field
            )

        slots = await self._availability.get_availability(day, resource_id, exclude_appointment_id)
        if not slots:
            openings = await self._availability.find_next_openings(day, resource_id, exclude_appointment_id)
            return await self._validation_failure(
                turn, SlotUnavailableError("", next_openings=openings),
                partial, day, None, None, 0, date_field, time_field,
            )

        display = format_display_date(day)
        if p.time and p.time.range:
            period = p.time.raw
            in_range = [s for s in slots if p.time.range.start <= s < p.time.range.end]
            if in_range:
                offered = in_range[:SLOT_OFFER_LIMIT]
                intro = f"Here are the open times on {display} in the {period}:"
            else:
                offered = slots[:SLOT_OFFER_LIMIT]
                intro = f"We have no openings in the {period} on {display}. Other times that day:"
        else:
            offered = slots[:SLOT_OFFER_LIMIT]
            intro = f"Open times on {display}:"

        await self._save(turn, {**partial, time_field: None, "awaiting_input": "time"})
        text = (
            ("📋 *Almost there:*\n" + booking_summary(turn.context) if date_field == "date" else "")
            + f"{intro}\n{_slot_list(offered)}\n\nWhat time works for you? (e.g. \"2pm\")"
        )
        return self._reply(text, [_time_button(s) for s in offered], turn.context)

    async def _validation_failure(
        self,
        turn: _Turn,
        exc: BookingError,
        partial: dict,
        day: date,
        time: str | None,
        service_name: str | None,
        duration: int,
        date_field: str,
        time_field: str,
    ) -> EngineReply:
        """Turn a validation error into the message and the question to ask next."""
        display = format_display_date(day)
        ask_time = {**partial, date_field: day.isoformat(), time_field: None, "awaiting_input": "time"}
        ask_date = {**partial, date_field: None, time_field: None, "awaiting_input": "date"}
        buttons: list[Button] = []

        if isinstance(exc, PastDateError):
            update = ask_date
            text = (
                f"❌ *Sorry, {display} is in the past.*\n\n"
                "Please choose a date from today onwards. When would you like to book?"
            )
        elif isinstance(exc, OutsideBusinessHoursError):
            update = ask_time
            requested = format_time_12h(exc.requested)
            if exc.too_early:
                hint = (
                    f"We open at {format_time_12h(exc.open_time)}. "
                    f"Would you like to book at {format_time_12h(exc.suggestion)} instead?"
                )
            else:
                hint = f"We close at {format_time_12h(exc.close_time)}. Would you like to book earlier in the day?"
            if exc.suggestion:
                buttons = [_time_button(exc.suggestion)]
            text = (
                f"❌ *Sorry, {requested} is outside our business hours.*\n\n{hint}\n\n"
                f"Our hours on {display}: "
                f"{format_time_12h(exc.open_time)} - {format_time_12h(exc.close_time)}"
            )
        elif isinstance(exc, SlotUnavailableError) and exc.alternatives:
            update = ask_time
            buttons = [_time_button(s) for s in exc.alternatives]
            text = (
                f"❌ *Sorry, {format_time_12h(exc.requested)} is not available on {display}.*\n\n"
                f"📅 *Available times on {display}:*\n{_slot_list(exc.alternatives)}\n\n"
                "Would you like one of these times instead?"
            )
        elif isinstance(exc, SlotUnavailableError) and exc.next_openings:
            update = ask_date
            buttons = [_date_button(o.day) for o in exc.next_openings]
            lines = [
                f"{format_display_date(o.day)} (slots: {', '.join(format_time_12h(s) for s in o.slots)})"
                for o in exc.next_openings
            ]
            text = (
                f"❌ *Sorry, {display} is fully booked.*\n\n"
                f"📅 *Next available dates:*\n{_bullets(lines)}\n\n"
                "Would you like to book on one of these dates?"
            )
        elif isinstance(exc, SlotUnavailableError):
            update = ask_date
            text = (
                "❌ *Sorry, no availability found in the next week.*\n\n"
                f"Please try a later date or give us a call at {self._settings.salon_phone}."
            )
        elif isinstance(exc, InsufficientCapacityError):
            takes = f"💡 *{service_name or 'This service'} typically takes {format_duration(duration)}.*\n\n"
            if exc.alternatives:
                update = ask_time
                buttons = [_time_button(s) for s in exc.alternatives]
                text = (
                    takes
                    + f"Starting at {format_time_12h(exc.requested)}, we won't have enough time "
                    "before our next booking or closing.\n\n"
                    f"📅 *Times with enough availability:*\n{_slot_list(exc.alternatives)}\n\n"
                    "Would any of these work for you?"
                )
            else:
                update = ask_date
                text = (
                    takes
                    + f"Unfortunately, {display} doesn't have enough consecutive availability.\n\n"
                    "Would you like to try a different date?"
                )
        else:
            raise exc

        log.info(
            "key=%s validation failed %s day=%s time=%s",
            turn.key, type(exc).__name__, day.isoformat(), time,
        )
        await self._save(turn, update)
        return self._reply(text, buttons, turn.context)

    def _ask_stylist(self, turn: _Turn, prefix: str = "") -> EngineReply:
        buttons = [Button(s.name, f"with {s.name}") for s in turn.stylists]
        buttons.append(Button("Any stylist", "any stylist"))
        names = _bullets(s.name for s in turn.stylists)
        return self._reply(
            prefix + booking_summary(turn.context)
            + f"Do you have a preferred stylist?\n\n{names}\n\nOr say \"anyone\" for the first available.",
            buttons,
            turn.context,
        )

    def _booking_prompt(self, ctx: BookingContext) -> str:
        text = (
            "📋 *Ready to Book:*\n" + booking_summary(ctx)
            + "👉 *Reply 'yes' to confirm*\n(Final price will be confirmed at the salon)"
        )
        if not ctx.stylist_id:
            text += "\n_(Stylist assigned based on availability)_"
        return text

    # -- execution -----------------------------------------------------------

    async def _execute(self, turn: _Turn) -> EngineReply:
        ctx = turn.context
        try:
            if ctx.pending_action == "cancel":
                text = await self._execute_cancel(ctx)
            elif ctx.pending_action == "reschedule":
                text = await self._execute_reschedule(ctx)
            else:
                text = await self._execute_booking(turn)
        except BookingError as exc:
            log.info("key=%s action=%s failed: %s", turn.key, ctx.pending_action or "book", exc)
            reply = await self._reask(turn)
            reply.text += f"\n\n⚠️ Sorry, that didn't go through: {exc}."
            return reply

        await self._clear(turn)
        log.info("key=%s action=%s completed", turn.key, ctx.pending_action or "book")
        return self._reply(text)

    async def _execute_booking(self, turn: _Turn) -> str:
        ctx = turn.context
        email = turn.email or ""
        request = BookingRequest(
            customer_name=turn.identity.get("customer_name") or ctx.customer_name or "Guest",
            customer_email=email,
            category_id=ctx.category_id,
            date=ctx.date,
            time=ctx.time,
            estimated_duration=self._duration(turn, ctx.category_id),
            stylist_id=self._resource(ctx),
            notes=[] if email else ["Booked via chat without an email address"],
        )
        appt = await self._salon.create_appointment(request)
        stylist = f" with {appt.stylist_name}" if appt.stylist_name else ""
        return (
            "✅ *Booking confirmed!*\n\n"
            f"{appt.category_title}{stylist}\n"
            f"📅 {format_display_date(date.fromisoformat(appt.date))} at {format_time_12h(appt.time)}\n\n"
            "See you then! Say \"my appointments\" any time to check your bookings."
        )

    async def _execute_cancel(self, ctx: BookingContext) -> str:
        await self._salon.cancel_appointment(ctx.appointment_id)
        return (
            "✅ *Appointment Cancelled*\n\n"
            "Your appointment has been cancelled successfully.\n\n"
            "Would you like to book a new appointment?"
        )

    async def _execute_reschedule(self, ctx: BookingContext) -> str:
        appt = await self._salon.reschedule_appointment(ctx.appointment_id, ctx.new_date, ctx.new_time)
        return (
            "✅ *Appointment Rescheduled*\n\n"
            f"{appt.category_title}\n"
            f"📅 New time: {format_display_date(date.fromisoformat(appt.date))} "
            f"at {format_time_12h(appt.time)}\n\n"
            "See you then!"
        )

    # -- existing appointments -----------------------------------------------

    async def _upcoming(self, turn: _Turn) -> list[Appointment]:
        if not turn.email:
            raise IdentityRequired("an email address is needed to find appointments")
        found = await self._salon.find_appointments_by_identity(turn.email)
        now = self._availability.local_now()
        today, current = now.date().isoformat(), f"{now:%H:%M}"
        return [a for a in found if a.date > today or (a.date == today and a.time > current)]

    @staticmethod
    def _pick(appointments: list[Appointment]) -> Appointment:
        if len(appointments) > 1:
            raise AmbiguousMatch("appointment", appointments)
        return appointments[0]

    @staticmethod
    def _appointment_line(appt: Appointment) -> str:
        when = f"{format_display_date(date.fromisoformat(appt.date))} at {format_time_12h(appt.time)}"
        stylist = f" with {appt.stylist_name}" if appt.stylist_name else ""
        return f"{appt.category_title or 'Appointment'}{stylist}, {when}"

    async def _identity_action(self, turn: _Turn, action: str) -> EngineReply:
        verb = {"cancel": "cancel", "reschedule": "reschedule", "view": "view"}[action]
        try:
            upcoming = await self._upcoming(turn)
        except IdentityRequired:
            await self._save(turn, {"pending_action": action, "appointment_id": None, "awaiting_input": "email"})
            noun = "your appointments" if action == "view" else "an appointment"
            return self._reply(
                f"To {verb} {noun}, please provide your email address.", context=turn.context
            )

        if not upcoming:
            await self._save(turn, {"pending_action": None, "awaiting_input": None, "appointment_id": None})
            if action == "view":
                text = "📅 You don't have any upcoming appointments.\n\nWould you like to book one?"
            else:
                text = f"You don't have any upcoming appointments to {verb}."
            return self._reply(text, context=turn.context)

        if action == "view":
            await self._save(turn, {"pending_action": None, "awaiting_input": None})
            listing = "\n".join(
                f"{i}. {self._appointment_line(a)}" for i, a in enumerate(upcoming, start=1)
            )
            return self._reply(
                f"📅 *Your Upcoming Appointments:*\n\n{listing}\n\n"
                "To cancel or reschedule, just let me know.",
                context=turn.context,
            )

        try:
            appt = self._pick(upcoming)
        except AmbiguousMatch as exc:
            await self._save(turn, {"pending_action": action, "appointment_id": None, "awaiting_input": "appointment_select"})
            listing = "\n".join(
                f"{i}. {self._appointment_line(a)}" for i, a in enumerate(exc.candidates, start=1)
            )
            return self._reply(
                f"Which appointment would you like to {verb}?\n\n{listing}\n\nReply with the number.",
                [Button(str(i), str(i)) for i in range(1, len(exc.candidates) + 1)],
                turn.context,
            )
        return await self._act_on(turn, action, appt)

    async def _on_appointment_select(self, turn: _Turn) -> EngineReply | None:
        """None when the message is not an answer (the caller tries the other rules)."""
        action = turn.context.pending_action or "view"
        upcoming = await self._upcoming(turn) if turn.email else []
        index = resolve_ordinal(turn.message, len(upcoming))
        if index is None:
            if turn.parsed.type not in ("unknown", "confirmation"):
                return None
            if not upcoming:
                await self._clear(turn)
                return self._reply("Sorry, I couldn't find your appointments anymore. " + self._help_text())
            return self._reply(
                f"Please enter a valid number between 1 and {len(upcoming)}.", context=turn.context
            )
        return await self._act_on(turn, action, upcoming[index])

    async def _act_on(self, turn: _Turn, action: str, appt: Appointment) -> EngineReply:
        selected = {
            "pending_action": action,
            "appointment_id": appt.id,
            "category_id": appt.category_id,
            "category_name": appt.category_title,
            "price_note": None,
            "date": appt.date,
            "time": appt.time,
            "stylist_id": appt.stylist_id,
            "stylist_name": appt.stylist_name,
            "new_date": None,
            "new_time": None,
        }
        if action == "cancel":
            await self._save(turn, {**selected, "awaiting_input": "confirmation"})
            return self._reply(self._cancel_prompt(turn.context), CONFIRM_BUTTONS, turn.context)

        if turn.parsed.has_schedule:
            turn.context = turn.context.merged(selected)
            return await self._reschedule_slot(turn)
        await self._save(turn, {**selected, "awaiting_input": "date"})
        return self._reply(
            "📅 *Reschedule Appointment*\n\n"
            f"{self._appointment_line(appt)}\n\n"
            "When would you like to reschedule to? (e.g. \"next Tuesday at 3pm\")",
            context=turn.context,
        )

    def _cancel_prompt(self, ctx: BookingContext) -> str:
        when = f"{format_display_date(date.fromisoformat(ctx.date))} at {format_time_12h(ctx.time)}"
        return (
            "🗑️ *Cancel Appointment?*\n\n"
            f"{ctx.category_name or 'Appointment'}\n📅 {when}\n\n"
            "👉 Reply 'yes' to confirm cancellation"
        )

    def _reschedule_prompt(self, ctx: BookingContext) -> str:
        old = f"{format_display_date(date.fromisoformat(ctx.date))} at {format_time_12h(ctx.time)}"
        new = f"{format_display_date(date.fromisoformat(ctx.new_date))} at {format_time_12h(ctx.new_time)}"
        return (
            "📅 *Reschedule Appointment?*\n\n"
            f"{ctx.category_name or 'Appointment'}\n"
            f"From: {old}\nTo: {new}\n\n"
            "👉 Reply 'yes' to confirm"
        )

    async def _reschedule_slot(self, turn: _Turn) -> EngineReply:
        ctx, p = turn.context, turn.parsed
        appt = await self._salon.get_appointment(ctx.appointment_id)
        if appt is None:
            await self._clear(turn)
            log.info("key=%s appointment=%s vanished during reschedule", turn.key, ctx.appointment_id)
            return self._reply(
                "Sorry, I couldn't find that appointment anymore. "
                "Say \"my appointments\" to see what's booked."
            )

        partial: dict = {"pending_action": "reschedule"}
        for name in ("appointment_id", "category_id", "category_name", "date", "time", "stylist_id", "stylist_name"):
            partial[name] = getattr(ctx, name)
        if p.date:
            partial["new_date"] = p.date.iso
        if p.time and p.time.is_exact:
            partial["new_time"] = p.time.value

        new_date = partial.get("new_date", ctx.new_date)
        new_time = partial.get("new_time", ctx.new_time)
        if not new_date:
            await self._save(turn, {**partial, "awaiting_input": "date"})
            return self._reply(
                "Which day would you like to move it to? (e.g. \"next Tuesday at 3pm\")", context=turn.context
            )

        day = date.fromisoformat(new_date)
        if not new_time:
            return await self._offer_times(
                turn, partial, day, "new_date", "new_time",
                resource_id=appt.stylist_id, exclude_appointment_id=appt.id,
            )

        try:
            await self._availability.validate_slot(
                day, new_time, appt.duration, appt.stylist_id, exclude_appointment_id=appt.id
            )
        except BookingError as exc:
            return await self._validation_failure(
                turn, exc, partial, day, new_time, appt.category_title, appt.duration, "new_date", "new_time"
            )

        await self._save(turn, {**partial, "new_date": new_date, "new_time": new_time, "awaiting_input": "confirmation"})
        return self._reply(self._reschedule_prompt(turn.context), CONFIRM_BUTTONS, turn.context)
