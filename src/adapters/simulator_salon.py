"""
In-memory salon backend for tests and local runs.

Holds a small catalogue, a stylist roster, weekly opening hours, bookings
and admin-blocked slots. Test helpers (add_appointment, block_slot,
close_day, fail_with) let a test shape the day before a conversation runs.
"""

import itertools
from datetime import date

from src.domain.errors import NotFoundError, SlotUnavailableError, ValidationError
from src.domain.salon import (
    Appointment,
    BookingRequest,
    BusinessHours,
    SalonGateway,
    ServiceCategory,
    Stylist,
)
from src.formatting import from_minutes, to_minutes

DEFAULT_CATEGORIES = [
    ServiceCategory(
        id="cat-haircut", slug="haircut", title="Haircut", short_title="Cut",
        price_note="from $28", price_range_min=28, estimated_duration=45,
    ),
    ServiceCategory(
        id="cat-colour", slug="hair-colouring", title="Hair Colouring", short_title="Colour",
        price_range_min=88, estimated_duration=120,
    ),
    ServiceCategory(
        id="cat-keratin", slug="keratin-treatment", title="Keratin Treatment",
        short_title="Keratin", price_note="from $150", price_range_min=150,
        estimated_duration=90, keywords=("treatment",),
    ),
    ServiceCategory(
        id="cat-perm", slug="perm", title="Perm", price_note="from $120",
        price_range_min=120, estimated_duration=120,
    ),
    ServiceCategory(
        id="cat-scalp", slug="scalp-therapy", title="Scalp Therapy", short_title="Scalp",
        price_note="from $60", price_range_min=60, estimated_duration=60,
        keywords=("treatment",),
    ),
]

DEFAULT_STYLISTS = [
    Stylist(id="sty-aisha", name="Aisha Rahman"),
    Stylist(id="sty-ben", name="Ben Carter"),
]

# Monday=0 ... Sunday=6; None = closed
DEFAULT_WEEKLY_HOURS: dict[int, BusinessHours | None] = {
    **{d: BusinessHours("10:00", "19:00") for d in range(6)},
    6: None,
}


class InMemorySalonGateway(SalonGateway):

    def __init__(
        self,
        categories: list[ServiceCategory] | None = None,
        stylists: list[Stylist] | None = None,
        weekly_hours: dict[int, BusinessHours | None] | None = None,
        slot_minutes: int = 30,
    ):
        self.categories = list(DEFAULT_CATEGORIES if categories is None else categories)
        self.stylists = list(DEFAULT_STYLISTS if stylists is None else stylists)
        self.weekly_hours = dict(DEFAULT_WEEKLY_HOURS if weekly_hours is None else weekly_hours)
        self.slot_minutes = slot_minutes
        self.appointments: dict[str, Appointment] = {}
        self.blocked: dict[str, set[str]] = {}
        self.closed_dates: set[str] = set()
        self.cancelled: list[str] = []
        self._ids = itertools.count(1)
        self._failure: Exception | None = None

    # -- test helpers --------------------------------------------------------

    def fail_with(self, exc: Exception | None) -> None:
        """Every subsequent call raises ``exc`` (None to recover)."""
        self._failure = exc

    def add_appointment(
        self,
        day: date,
        time: str,
        duration: int,
        category_id: str = "cat-haircut",
        customer_email: str = "someone@example.com",
        customer_name: str = "Someone",
        stylist_id: str | None = None,
    ) -> Appointment:
        category = self._category(category_id)
        stylist = self._stylist(stylist_id) if stylist_id else None
        appt = Appointment(
            id=f"appt-{next(self._ids)}",
            category_id=category.id,
            category_title=category.title,
            date=day.isoformat(),
            time=time,
            duration=duration,
            stylist_id=stylist.id if stylist else None,
            stylist_name=stylist.name if stylist else None,
            customer_name=customer_name,
            customer_email=customer_email,
        )
        self.appointments[appt.id] = appt
        return appt

    def block_slot(self, day: date, time: str) -> None:
        self.blocked.setdefault(day.isoformat(), set()).add(time)

    def close_day(self, day: date) -> None:
        self.closed_dates.add(day.isoformat())

    def _check(self) -> None:
        if self._failure is not None:
            raise self._failure

    def _category(self, category_id: str) -> ServiceCategory:
        for c in self.categories:
            if c.id == category_id:
                return c
        raise NotFoundError(f"unknown category {category_id!r}")

    def _stylist(self, stylist_id: str) -> Stylist:
        for s in self.stylists:
            if s.id == stylist_id:
                return s
        raise NotFoundError(f"unknown stylist {stylist_id!r}")

    def _occupied(self, day: str, stylist_id: str | None, exclude: str | None = None) -> set[str]:
        taken = set()
        for appt in self.appointments.values():
            if appt.date != day or appt.id == exclude:
                continue
            if stylist_id and appt.stylist_id not in (None, stylist_id):
                continue
            start = to_minutes(appt.time)
            for i in range(-(-appt.duration // self.slot_minutes)):
                taken.add(from_minutes(start + i * self.slot_minutes))
        return taken

    def _ensure_free(
        self, day: str, time: str, duration: int, stylist_id: str | None, exclude: str | None = None
    ) -> None:
        hours = self.weekly_hours.get(date.fromisoformat(day).weekday())
        if hours is None or day in self.closed_dates:
            raise ValidationError(f"the salon is closed on {day}")
        taken = self._occupied(day, stylist_id, exclude) | self.blocked.get(day, set())
        start = to_minutes(time)
        for i in range(-(-duration // self.slot_minutes)):
            slot = from_minutes(start + i * self.slot_minutes)
            if slot in taken or slot >= hours.close_time:
                raise SlotUnavailableError(time)

    # -- catalogue -----------------------------------------------------------

    async def get_categories(self) -> list[ServiceCategory]:
        self._check()
        return list(self.categories)

    async def get_stylists(self) -> list[Stylist]:
        self._check()
        return list(self.stylists)

    # -- availability inputs -------------------------------------------------

    async def get_business_hours(self, day: date) -> BusinessHours | None:
        self._check()
        if day.isoformat() in self.closed_dates:
            return None
        return self.weekly_hours.get(day.weekday())

    async def get_appointments_on(self, day: date) -> list[Appointment]:
        self._check()
        iso = day.isoformat()
        return [a for a in self.appointments.values() if a.date == iso]

    async def get_blocked_slots(self, day: date) -> set[str]:
        self._check()
        return set(self.blocked.get(day.isoformat(), set()))

    # -- booking executor ----------------------------------------------------

    async def find_appointments_by_identity(self, email: str) -> list[Appointment]:
        self._check()
        wanted = email.strip().lower()
        found = [a for a in self.appointments.values() if a.customer_email.lower() == wanted]
        return sorted(found, key=lambda a: (a.date, a.time))

    async def get_appointment(self, appointment_id: str) -> Appointment | None:
        self._check()
        return self.appointments.get(appointment_id)

    async def create_appointment(self, request: BookingRequest) -> Appointment:
        self._check()
        category = self._category(request.category_id)
        stylist = self._stylist(request.stylist_id) if request.stylist_id else None
        self._ensure_free(request.date, request.time, request.estimated_duration, request.stylist_id)
        appt = Appointment(
            id=f"appt-{next(self._ids)}",
            category_id=category.id,
            category_title=category.title,
            date=request.date,
            time=request.time,
            duration=request.estimated_duration,
            stylist_id=stylist.id if stylist else None,
            stylist_name=stylist.name if stylist else None,
            customer_name=request.customer_name,
            customer_email=request.customer_email,
        )
        self.appointments[appt.id] = appt
        return appt

    async def cancel_appointment(self, appointment_id: str) -> None:
        self._check()
        if self.appointments.pop(appointment_id, None) is None:
            raise NotFoundError(f"unknown appointment {appointment_id!r}")
        self.cancelled.append(appointment_id)

    async def reschedule_appointment(
        self, appointment_id: str, new_date: str, new_time: str
    ) -> Appointment:
        self._check()
        appt = self.appointments.get(appointment_id)
        if appt is None:
            raise NotFoundError(f"unknown appointment {appointment_id!r}")
        self._ensure_free(new_date, new_time, appt.duration, appt.stylist_id, exclude=appt.id)
        appt.date = new_date
        appt.time = new_time
        return appt
