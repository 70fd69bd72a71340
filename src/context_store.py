"""
ContextStore: merge-write access to conversation contexts.

Sits between the dialogue engine and a SessionRepository:

  get(key)        -> BookingContext | None (None when missing or expired)
  set(key, part)  -> read-merge-write; refreshes the expiry
  clear(key)      -> delete

A short-lived same-process read cache sits in front of the repository.
Writes always go through to the repository and refresh the cache; a cached
entry is dropped as soon as its own context has expired.

Expiry is lazy: it is checked on read against the injected clock, nothing
runs in the background. Two concurrent turns on one key can race on set()
(last write wins); one turn per key at a time is assumed.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from types import MappingProxyType
from typing import Any, Mapping

from src.clock import Clock, system_clock
from src.domain.context import BookingContext, StepSnapshot
from src.domain.session import SessionRepository

log = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(minutes=30)
DEFAULT_CACHE_TTL = timedelta(seconds=30)
DEFAULT_MAX_HISTORY = 10


@dataclass
class _CacheEntry:
    context: BookingContext
    cached_until: datetime


class ContextStore:

    def __init__(
        self,
        repository: SessionRepository,
        clock: Clock = system_clock,
        ttl: timedelta = DEFAULT_TTL,
        cache_ttl: timedelta = DEFAULT_CACHE_TTL,
        max_history: int = DEFAULT_MAX_HISTORY,
    ):
        self._repo = repository
        self._clock = clock
        self._ttl = ttl
        self._cache_ttl = cache_ttl
        self._max_history = max_history
        self._cache: dict[str, _CacheEntry] = {}

    # -- basic access --------------------------------------------------------

    async def get(self, key) -> BookingContext | None:
        k = str(key)
        now = self._clock()

        entry = self._cache.get(k)
        if entry is not None:
            if entry.cached_until > now and entry.context.expires_at > now:
                return entry.context
            del self._cache[k]

        stored = await self._repo.load(k)
        if stored is None:
            return None
        if stored.expires_at <= now:
            log.debug("key=%s context expired at %s", k, stored.expires_at.isoformat())
            return None

        context = BookingContext.from_dict(stored.context, expires_at=stored.expires_at)
        self._cache[k] = _CacheEntry(context, now + self._cache_ttl)
        return context

    async def set(self, key, partial: Mapping[str, Any]) -> BookingContext:
        """Merge ``partial`` into the stored context (or a fresh one) and persist it."""
        k = str(key)
        current = await self.get(k) or BookingContext()
        now = self._clock()
        updated = current.merged({**partial, "expires_at": now + self._ttl})

        await self._repo.save(k, updated.to_dict(), updated.expires_at, now)
        self._cache[k] = _CacheEntry(updated, now + self._cache_ttl)

        log.debug(
            "key=%s set fields=%s awaiting=%s pending=%s",
            k, sorted(partial), updated.awaiting_input, updated.pending_action,
        )
        return updated

    async def clear(self, key) -> None:
        k = str(key)
        self._cache.pop(k, None)
        await self._repo.delete(k)
        log.debug("key=%s cleared", k)

    async def purge_expired(self) -> int:
        now = self._clock()
        self._cache = {
            k: e for k, e in self._cache.items() if e.context.expires_at > now
        }
        count = await self._repo.purge_expired(now)
        if count:
            log.info("purged %d expired conversation(s)", count)
        return count

    # -- step history ("back") -----------------------------------------------

    async def push_step(self, key, step: str) -> BookingContext:
        """Record the current context before ``step`` changes it."""
        current = await self.get(key) or BookingContext()
        snapshot = StepSnapshot(
            step=step,
            context=MappingProxyType(current.snapshot()),
            timestamp=self._clock().timestamp(),
        )
        history = (current.step_history + (snapshot,))[-self._max_history:]
        return await self.set(key, {"step_history": history})

    async def pop_step(self, key) -> BookingContext | None:
        """
        Restore the context as it was before the most recent step.

        Every field is restored exactly, Nones included; the popped entry
        leaves the stack. Returns None when there is nothing to go back to.
        """
        current = await self.get(key)
        if current is None or not current.step_history:
            return None
        *rest, last = current.step_history
        restored = {**dict(last.context), "step_history": tuple(rest)}
        return await self.set(key, restored)

    async def clear_step_history(self, key) -> None:
        if await self.get(key) is not None:
            await self.set(key, {"step_history": ()})
