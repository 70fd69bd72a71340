"""
ContextStore: merge-write, lazy expiry, read cache and the step stack.

Runs against both repositories; time only moves when the test moves it.
"""

from datetime import datetime, timedelta, timezone

import pytest

from src.adapters.memory_session import InMemorySessionRepository
from src.adapters.sqlite_session import SqliteSessionRepository
from src.clock import FixedClock
from src.context_store import ContextStore
from src.domain.context import BookingContext, ConversationKey
from src.domain.errors import InvalidContextError

KEY = ConversationKey("telegram", "42")


@pytest.fixture
def clock():
    return FixedClock(datetime(2026, 4, 1, 10, 0, tzinfo=timezone.utc))


@pytest.fixture
def repo():
    return InMemorySessionRepository()


@pytest.fixture
def store(repo, clock):
    return ContextStore(repo, clock=clock, ttl=timedelta(minutes=30), cache_ttl=timedelta(seconds=30))


# ---------------------------------------------------------------------------
# get / set / clear
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_missing_context_is_none(store):
    assert await store.get(KEY) is None


@pytest.mark.asyncio
async def test_set_creates_then_merges(store):
    await store.set(KEY, {"category_id": "cat-haircut", "category_name": "Haircut"})
    await store.set(KEY, {"date": "2026-04-02"})

    ctx = await store.get(KEY)
    assert ctx.category_id == "cat-haircut"
    assert ctx.date == "2026-04-02"


@pytest.mark.asyncio
async def test_explicit_none_clears_a_field(store):
    await store.set(KEY, {"date": "2026-04-02", "time": "14:00"})
    await store.set(KEY, {"time": None})
    ctx = await store.get(KEY)
    assert ctx.date == "2026-04-02"
    assert ctx.time is None


@pytest.mark.asyncio
async def test_unknown_field_is_rejected(store):
    with pytest.raises(InvalidContextError):
        await store.set(KEY, {"colour": "blue"})


@pytest.mark.asyncio
async def test_invariant_violation_is_rejected(store):
    with pytest.raises(InvalidContextError):
        await store.set(KEY, {"awaiting_input": "confirmation"})
    with pytest.raises(InvalidContextError):
        await store.set(KEY, {"awaiting_input": "shoe_size"})
    assert await store.get(KEY) is None


@pytest.mark.asyncio
async def test_clear(store):
    await store.set(KEY, {"date": "2026-04-02"})
    await store.clear(KEY)
    assert await store.get(KEY) is None


@pytest.mark.asyncio
async def test_keys_are_isolated(store):
    await store.set(KEY, {"date": "2026-04-02"})
    assert await store.get(ConversationKey("whatsapp", "42")) is None


# ---------------------------------------------------------------------------
# expiry
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_expires_after_ttl(store, clock):
    await store.set(KEY, {"date": "2026-04-02"})
    clock.advance(minutes=29, seconds=59)
    assert await store.get(KEY) is not None
    clock.advance(seconds=1)
    assert await store.get(KEY) is None


@pytest.mark.asyncio
async def test_each_write_refreshes_expiry(store, clock):
    await store.set(KEY, {"date": "2026-04-02"})
    clock.advance(minutes=20)
    await store.set(KEY, {"time": "14:00"})
    clock.advance(minutes=20)
    ctx = await store.get(KEY)
    assert ctx is not None
    assert ctx.expires_at == clock.now + timedelta(minutes=10)


@pytest.mark.asyncio
async def test_expired_context_is_not_merged_into(store, clock):
    await store.set(KEY, {"date": "2026-04-02"})
    clock.advance(minutes=31)
    ctx = await store.set(KEY, {"time": "14:00"})
    assert ctx.date is None
    assert ctx.time == "14:00"


@pytest.mark.asyncio
async def test_purge_expired(store, repo, clock):
    await store.set(KEY, {"date": "2026-04-02"})
    await store.set(ConversationKey("telegram", "7"), {"date": "2026-04-03"})
    clock.advance(minutes=31)
    assert await store.purge_expired() == 2
    assert await repo.load(str(KEY)) is None


# ---------------------------------------------------------------------------
# read cache
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_reads_are_cached(store, repo):
    await store.set(KEY, {"date": "2026-04-02"})
    loads = repo.loads
    await store.get(KEY)
    await store.get(KEY)
    assert repo.loads == loads


@pytest.mark.asyncio
async def test_cache_entry_lapses(store, repo, clock):
    await store.set(KEY, {"date": "2026-04-02"})
    clock.advance(seconds=31)
    loads = repo.loads
    assert (await store.get(KEY)).date == "2026-04-02"
    assert repo.loads == loads + 1


@pytest.mark.asyncio
async def test_writes_go_through_to_repository(store, repo):
    await store.set(KEY, {"date": "2026-04-02"})
    await store.set(KEY, {"time": "14:00"})
    stored = await repo.load(str(KEY))
    assert stored.context["time"] == "14:00"
    assert repo.saves == 2


@pytest.mark.asyncio
async def test_cached_entry_honours_expiry(repo, clock):
    # Cache longer than the TTL: the cached context still expires on time
    store = ContextStore(repo, clock=clock, ttl=timedelta(seconds=10), cache_ttl=timedelta(minutes=5))
    await store.set(KEY, {"date": "2026-04-02"})
    clock.advance(seconds=11)
    assert await store.get(KEY) is None


# ---------------------------------------------------------------------------
# step history
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_push_pop_restores_exact_prior_context(store):
    await store.set(KEY, {"category_id": "cat-perm", "category_name": "Perm", "awaiting_input": "date"})
    before = await store.get(KEY)

    await store.push_step(KEY, "time")
    await store.set(KEY, {"date": "2026-04-02", "awaiting_input": "time"})

    restored = await store.pop_step(KEY)
    assert restored.snapshot() == before.snapshot()
    assert restored.date is None
    assert restored.awaiting_input == "date"
    assert restored.step_history == ()


@pytest.mark.asyncio
async def test_pop_on_empty_history_returns_none(store):
    assert await store.pop_step(KEY) is None
    await store.set(KEY, {"date": "2026-04-02"})
    assert await store.pop_step(KEY) is None


@pytest.mark.asyncio
async def test_history_is_bounded(repo, clock):
    store = ContextStore(repo, clock=clock, max_history=3)
    for i in range(5):
        await store.set(KEY, {"time": f"1{i}:00"})
        await store.push_step(KEY, f"step-{i}")
    ctx = await store.get(KEY)
    assert [s.step for s in ctx.step_history] == ["step-2", "step-3", "step-4"]


@pytest.mark.asyncio
async def test_snapshots_are_immutable(store):
    await store.set(KEY, {"date": "2026-04-02"})
    ctx = await store.push_step(KEY, "time")
    with pytest.raises(TypeError):
        ctx.step_history[0].context["date"] = "2030-01-01"


@pytest.mark.asyncio
async def test_snapshot_timestamp_comes_from_the_clock(store, clock):
    await store.set(KEY, {"date": "2026-04-02"})
    clock.advance(minutes=5)
    ctx = await store.push_step(KEY, "time")
    assert ctx.step_history[-1].timestamp == clock.now.timestamp()


@pytest.mark.asyncio
async def test_clear_step_history(store):
    await store.set(KEY, {"date": "2026-04-02"})
    await store.push_step(KEY, "time")
    await store.clear_step_history(KEY)
    assert (await store.get(KEY)).step_history == ()
    assert (await store.get(KEY)).date == "2026-04-02"


@pytest.mark.asyncio
async def test_step_history_survives_sqlite(clock):
    store = ContextStore(SqliteSessionRepository(":memory:"), clock=clock, cache_ttl=timedelta(0))
    await store.set(KEY, {"category_id": "cat-perm", "category_name": "Perm", "awaiting_input": "date"})
    await store.push_step(KEY, "time")
    await store.set(KEY, {"date": "2026-04-02", "awaiting_input": "time"})

    restored = await store.pop_step(KEY)
    assert restored.awaiting_input == "date"
    assert restored.date is None


def test_context_round_trips_through_dict():
    ctx = BookingContext(category_id="c", category_name="Perm", awaiting_input="confirmation")
    assert BookingContext.from_dict(ctx.to_dict()) == ctx
