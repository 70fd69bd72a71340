"""
Availability engine against the salon simulator.

Clock: Wednesday 2026-04-01 10:00 UTC. Salon hours 10:00-19:00 Mon-Sat,
closed on Sunday.
"""

from datetime import date, datetime, timezone

import pytest

from src.adapters.simulator_salon import InMemorySalonGateway
from src.availability import AvailabilityEngine, generate_grid, occupied_slots, slots_needed
from src.clock import FixedClock
from src.config import EngineSettings
from src.domain.errors import (
    InsufficientCapacityError,
    OutsideBusinessHoursError,
    PastDateError,
    SlotUnavailableError,
)
from src.domain.salon import Appointment, BusinessHours

TODAY = date(2026, 4, 1)        # Wednesday
THURSDAY = date(2026, 4, 2)
SATURDAY = date(2026, 4, 4)
SUNDAY = date(2026, 4, 5)

FULL_DAY = generate_grid(BusinessHours("10:00", "19:00"))


@pytest.fixture
def clock():
    return FixedClock(datetime(2026, 4, 1, 10, 0, tzinfo=timezone.utc))


@pytest.fixture
def salon():
    return InMemorySalonGateway()


@pytest.fixture
def engine(salon, clock):
    return AvailabilityEngine(salon, EngineSettings(), clock)


# ---------------------------------------------------------------------------
# grid helpers
# ---------------------------------------------------------------------------


def test_grid_is_half_hourly_and_excludes_closing():
    assert FULL_DAY[0] == "10:00"
    assert FULL_DAY[-1] == "18:30"
    assert len(FULL_DAY) == 18


def test_slots_needed_rounds_up():
    assert slots_needed(30) == 1
    assert slots_needed(45) == 2
    assert slots_needed(90) == 3


def test_booking_occupies_consecutive_slots():
    appt = Appointment(id="a", category_id="c", category_title="C", date="2026-04-02", time="14:00", duration=45)
    assert occupied_slots([appt]) == {"14:00", "14:30"}


# ---------------------------------------------------------------------------
# get_availability
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_open_day_has_full_grid(engine):
    assert await engine.get_availability(THURSDAY) == FULL_DAY


@pytest.mark.asyncio
async def test_closed_day_has_no_slots(engine, salon):
    assert await engine.get_availability(SUNDAY) == []
    salon.close_day(THURSDAY)
    assert await engine.get_availability(THURSDAY) == []


@pytest.mark.asyncio
async def test_bookings_and_blocks_are_removed(engine, salon):
    salon.add_appointment(THURSDAY, "11:00", 90)
    salon.block_slot(THURSDAY, "16:00")
    slots = await engine.get_availability(THURSDAY)
    assert {"11:00", "11:30", "12:00", "16:00"}.isdisjoint(slots)
    assert "12:30" in slots
    assert slots == sorted(slots)


@pytest.mark.asyncio
async def test_never_returns_past_slots_today(engine, clock):
    clock.now = datetime(2026, 4, 1, 14, 0, tzinfo=timezone.utc)
    slots = await engine.get_availability(TODAY)
    assert slots[0] == "14:30"
    assert all(s > "14:00" for s in slots)


@pytest.mark.asyncio
async def test_today_uses_salon_timezone(salon):
    # 23:30 UTC on Tuesday is already Wednesday 07:30 in Singapore
    clock = FixedClock(datetime(2026, 3, 31, 23, 30, tzinfo=timezone.utc))
    engine = AvailabilityEngine(salon, EngineSettings(timezone="Asia/Singapore"), clock)
    assert engine.today() == TODAY
    assert await engine.get_availability(TODAY) == FULL_DAY


@pytest.mark.asyncio
async def test_resource_only_counts_its_own_and_unassigned_bookings(engine, salon):
    salon.add_appointment(THURSDAY, "10:00", 30, stylist_id="sty-aisha")
    salon.add_appointment(THURSDAY, "11:00", 30, stylist_id="sty-ben")
    salon.add_appointment(THURSDAY, "12:00", 30)

    ben = await engine.get_availability(THURSDAY, resource_id="sty-ben")
    assert "10:00" in ben
    assert "11:00" not in ben
    assert "12:00" not in ben


@pytest.mark.asyncio
async def test_excluded_appointment_frees_its_slots(engine, salon):
    appt = salon.add_appointment(THURSDAY, "15:00", 60)
    slots = await engine.get_availability(THURSDAY, exclude_appointment_id=appt.id)
    assert "15:00" in slots and "15:30" in slots


# ---------------------------------------------------------------------------
# validate_slot: the four stages
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_valid_slot_passes(engine):
    await engine.validate_slot(THURSDAY, "14:00", 45)


@pytest.mark.asyncio
async def test_past_date(engine):
    with pytest.raises(PastDateError):
        await engine.validate_slot(date(2026, 3, 31), "14:00", 45)


@pytest.mark.asyncio
async def test_before_opening_suggests_opening_time(engine):
    with pytest.raises(OutsideBusinessHoursError) as exc_info:
        await engine.validate_slot(THURSDAY, "08:00", 45)
    assert exc_info.value.too_early
    assert exc_info.value.suggestion == "10:00"


@pytest.mark.asyncio
async def test_at_closing_suggests_last_slot(engine):
    with pytest.raises(OutsideBusinessHoursError) as exc_info:
        await engine.validate_slot(THURSDAY, "19:00", 30)
    assert not exc_info.value.too_early
    assert exc_info.value.suggestion == "18:30"


@pytest.mark.asyncio
async def test_taken_slot_offers_five_nearest(engine, salon):
    salon.add_appointment(THURSDAY, "14:00", 60)
    with pytest.raises(SlotUnavailableError) as exc_info:
        await engine.validate_slot(THURSDAY, "14:00", 30)
    # By distance; the earlier slot first on a tie
    assert exc_info.value.alternatives == ["13:30", "13:00", "15:00", "12:30", "15:30"]


@pytest.mark.asyncio
async def test_off_grid_time_is_unavailable(engine):
    with pytest.raises(SlotUnavailableError) as exc_info:
        await engine.validate_slot(THURSDAY, "14:15", 30)
    assert exc_info.value.alternatives[:2] == ["14:00", "14:30"]


@pytest.mark.asyncio
async def test_full_day_offers_next_days_with_openings(engine, salon):
    salon.add_appointment(THURSDAY, "10:00", 9 * 60)
    salon.close_day(date(2026, 4, 3))
    with pytest.raises(SlotUnavailableError) as exc_info:
        await engine.validate_slot(THURSDAY, "14:00", 30)

    openings = exc_info.value.next_openings
    assert exc_info.value.alternatives == []
    assert [o.day for o in openings] == [SATURDAY, date(2026, 4, 6), date(2026, 4, 7)]
    assert openings[0].slots == ["10:00", "10:30", "11:00"]


@pytest.mark.asyncio
async def test_closed_day_is_unavailable_with_next_openings(engine):
    with pytest.raises(SlotUnavailableError) as exc_info:
        await engine.validate_slot(SUNDAY, "14:00", 30)
    assert exc_info.value.next_openings[0].day == date(2026, 4, 6)


@pytest.mark.asyncio
async def test_insufficient_consecutive_capacity(engine, salon):
    # Keratin (90 min) at 17:30 needs 17:30, 18:00 and 18:30; 18:30 is booked
    salon.add_appointment(THURSDAY, "10:00", 7 * 60 + 30)   # 10:00-17:30
    salon.add_appointment(THURSDAY, "18:30", 30)
    with pytest.raises(InsufficientCapacityError) as exc_info:
        await engine.validate_slot(THURSDAY, "17:30", 90)
    assert exc_info.value.alternatives == []


@pytest.mark.asyncio
async def test_insufficient_capacity_offers_viable_starts(engine, salon):
    salon.add_appointment(THURSDAY, "10:00", 5 * 60)        # 10:00-15:00
    salon.add_appointment(THURSDAY, "18:30", 30)
    with pytest.raises(InsufficientCapacityError) as exc_info:
        await engine.validate_slot(THURSDAY, "17:30", 90)
    # Only starts whose 90-minute run stays clear of 18:30
    assert exc_info.value.alternatives == ["17:00", "16:30", "16:00"]


@pytest.mark.asyncio
async def test_duration_running_past_closing_is_rejected(engine):
    with pytest.raises(InsufficientCapacityError):
        await engine.validate_slot(THURSDAY, "18:30", 60)
