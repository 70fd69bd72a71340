"""
Availability engine.

Turns the salon's raw scheduling data (opening hours, live bookings,
admin-blocked slots) into free start times on a fixed grid, and validates a
requested start time before the dialogue is allowed to offer confirmation.

Validation runs four checks in order and stops at the first failure:

  1. past date                -> PastDateError
  2. outside opening hours    -> OutsideBusinessHoursError (+ boundary suggestion)
  3. start slot not free      -> SlotUnavailableError (+ nearest slots / later days)
  4. not enough consecutive   -> InsufficientCapacityError (+ viable starts)
     free slots for the duration
"""

import logging
import math
from datetime import date, datetime, timedelta

from src.clock import Clock, system_clock
from src.config import EngineSettings
from src.domain.errors import (
    DayOpenings,
    InsufficientCapacityError,
    OutsideBusinessHoursError,
    PastDateError,
    SlotUnavailableError,
)
from src.domain.salon import Appointment, BusinessHours, SalonGateway
from src.formatting import from_minutes, to_minutes

log = logging.getLogger(__name__)

NEAREST_ALTERNATIVES = 5
CAPACITY_ALTERNATIVES = 3
LOOKAHEAD_DAYS = 7
NEXT_OPENING_DAYS = 3
SLOTS_PER_OPENING_DAY = 3


def slots_needed(duration_minutes: int, slot_minutes: int = 30) -> int:
    return max(1, math.ceil(duration_minutes / slot_minutes))


def generate_grid(hours: BusinessHours, slot_minutes: int = 30) -> list[str]:
    """Every slot start from opening up to (not including) closing."""
    start, end = to_minutes(hours.open_time), to_minutes(hours.close_time)
    return [from_minutes(m) for m in range(start, end, slot_minutes)]


def occupied_slots(appointments: list[Appointment], slot_minutes: int = 30) -> set[str]:
    """Grid slots covered by bookings: ceil(duration / slot) slots from each start."""
    taken = set()
    for appt in appointments:
        start = to_minutes(appt.time)
        for i in range(slots_needed(appt.duration, slot_minutes)):
            taken.add(from_minutes(start + i * slot_minutes))
    return taken


def nearest(slots: list[str], target: str, limit: int) -> list[str]:
    """Up to ``limit`` slots closest to ``target``; earlier slot first on a tie."""
    t = to_minutes(target)
    return sorted(slots, key=lambda s: (abs(to_minutes(s) - t), to_minutes(s)))[:limit]


class AvailabilityEngine:

    def __init__(
        self,
        gateway: SalonGateway,
        settings: EngineSettings | None = None,
        clock: Clock = system_clock,
    ):
        self._gateway = gateway
        self._settings = settings or EngineSettings()
        self._clock = clock

    @property
    def slot_minutes(self) -> int:
        return self._settings.slot_minutes

    def local_now(self) -> datetime:
        return self._clock().astimezone(self._settings.tz)

    def today(self) -> date:
        return self.local_now().date()

    async def get_availability(
        self,
        day: date,
        resource_id: str | None = None,
        exclude_appointment_id: str | None = None,
    ) -> list[str]:
        """
        Free slot start times on ``day``, sorted.

        With ``resource_id`` only that stylist's bookings and unassigned
        bookings count against the grid. ``exclude_appointment_id`` ignores
        one booking (the one being rescheduled).
        """
        hours = await self._gateway.get_business_hours(day)
        if hours is None:
            return []

        grid = generate_grid(hours, self.slot_minutes)
        appointments = [
            a for a in await self._gateway.get_appointments_on(day)
            if a.id != exclude_appointment_id
            and (resource_id is None or a.stylist_id in (None, resource_id))
        ]
        taken = occupied_slots(appointments, self.slot_minutes)
        blocked = await self._gateway.get_blocked_slots(day)

        free = [s for s in grid if s not in taken and s not in blocked]

        now = self.local_now()
        if day == now.date():
            current = now.hour * 60 + now.minute
            free = [s for s in free if to_minutes(s) > current]

        log.debug(
            "availability day=%s resource=%s grid=%d taken=%d blocked=%d free=%d",
            day, resource_id, len(grid), len(taken), len(blocked), len(free),
        )
        return free

    async def find_next_openings(
        self,
        after: date,
        resource_id: str | None = None,
        exclude_appointment_id: str | None = None,
        days: int = LOOKAHEAD_DAYS,
        limit: int = NEXT_OPENING_DAYS,
    ) -> list[DayOpenings]:
        """The first ``limit`` days within ``days`` after ``after`` that still have openings."""
        openings = []
        for offset in range(1, days + 1):
            day = after + timedelta(days=offset)
            slots = await self.get_availability(day, resource_id, exclude_appointment_id)
            if slots:
                openings.append(DayOpenings(day=day, slots=slots[:SLOTS_PER_OPENING_DAY]))
                if len(openings) >= limit:
                    break
        return openings

    async def validate_slot(
        self,
        day: date,
        time: str,
        duration_minutes: int,
        resource_id: str | None = None,
        exclude_appointment_id: str | None = None,
    ) -> None:
        """Raise the first validation failure for this request; return None when bookable."""
        if day < self.today():
            raise PastDateError(day)

        hours = await self._gateway.get_business_hours(day)
        if hours is not None:
            grid = generate_grid(hours, self.slot_minutes)
            if time < hours.open_time:
                raise OutsideBusinessHoursError(time, hours.open_time, hours.close_time, hours.open_time)
            if time >= hours.close_time:
                raise OutsideBusinessHoursError(
                    time, hours.open_time, hours.close_time, grid[-1] if grid else None
                )

        available = await self.get_availability(day, resource_id, exclude_appointment_id)

        if time not in available:
            if available:
                raise SlotUnavailableError(time, alternatives=nearest(available, time, NEAREST_ALTERNATIVES))
            raise SlotUnavailableError(
                time,
                next_openings=await self.find_next_openings(day, resource_id, exclude_appointment_id),
            )

        free = set(available)
        needed = slots_needed(duration_minutes, self.slot_minutes)

        def fits(start: str) -> bool:
            m = to_minutes(start)
            return all(from_minutes(m + i * self.slot_minutes) in free for i in range(needed))

        if not fits(time):
            viable = [s for s in available if fits(s)]
            raise InsufficientCapacityError(
                time, duration_minutes, nearest(viable, time, CAPACITY_ALTERNATIVES)
            )

        log.debug("slot ok day=%s time=%s duration=%d resource=%s", day, time, duration_minutes, resource_id)
