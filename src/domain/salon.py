from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date


@dataclass
class ServiceCategory:
    """A bookable service grouping (Haircut, Keratin Treatment...)."""

    id: str
    slug: str
    title: str
    short_title: str | None = None
    price_note: str | None = None        # e.g. "from $28"
    price_range_min: float | None = None
    estimated_duration: int | None = None  # minutes
    keywords: tuple[str, ...] = ()         # extra phrases on top of the default vocabulary


@dataclass
class Stylist:
    id: str
    name: str


@dataclass
class BusinessHours:
    """Opening window for one day, both ends as HH:MM."""

    open_time: str
    close_time: str


@dataclass
class Appointment:
    id: str
    category_id: str
    category_title: str
    date: str            # ISO date YYYY-MM-DD
    time: str            # HH:MM
    duration: int        # minutes
    stylist_id: str | None = None
    stylist_name: str | None = None
    customer_name: str = ""
    customer_email: str = ""


@dataclass
class BookingRequest:
    """What the engine hands to the booking executor."""

    customer_name: str
    customer_email: str
    category_id: str
    date: str
    time: str
    estimated_duration: int
    stylist_id: str | None = None
    source: str = "CHAT"
    notes: list[str] = field(default_factory=list)


class SalonGateway(ABC):
    """
    Port: everything the engine needs from the salon's booking system.

    Covers both collaborators the conversation depends on: the raw data the
    availability engine works from (hours, bookings, blocked slots) and the
    booking executor (create / cancel / reschedule). The engine never talks
    to a database directly.
    """

    # -- catalogue -----------------------------------------------------------

    @abstractmethod
    async def get_categories(self) -> list[ServiceCategory]:
        """Bookable categories, in display order."""
        ...

    @abstractmethod
    async def get_stylists(self) -> list[Stylist]:
        """Active stylists (bookable resources)."""
        ...

    # -- availability inputs -------------------------------------------------

    @abstractmethod
    async def get_business_hours(self, day: date) -> BusinessHours | None:
        """Opening window for that date, or None when the salon is closed."""
        ...

    @abstractmethod
    async def get_appointments_on(self, day: date) -> list[Appointment]:
        """All live appointments on that date."""
        ...

    @abstractmethod
    async def get_blocked_slots(self, day: date) -> set[str]:
        """Slot start times (HH:MM) blocked by an admin on that date."""
        ...

    # -- booking executor ----------------------------------------------------

    @abstractmethod
    async def find_appointments_by_identity(self, email: str) -> list[Appointment]:
        """Upcoming appointments for a customer, soonest first."""
        ...

    @abstractmethod
    async def get_appointment(self, appointment_id: str) -> Appointment | None:
        ...

    @abstractmethod
    async def create_appointment(self, request: BookingRequest) -> Appointment:
        """
        Book an appointment.

        Raises ConflictError when the slots were taken in the meantime and
        ValidationError when the request is malformed.
        """
        ...

    @abstractmethod
    async def cancel_appointment(self, appointment_id: str) -> None:
        """Raises NotFoundError for an unknown id."""
        ...

    @abstractmethod
    async def reschedule_appointment(
        self, appointment_id: str, new_date: str, new_time: str
    ) -> Appointment:
        """Move an appointment. Raises NotFoundError or ConflictError."""
        ...
