"""
Provider Selection

Decides which adapter of a capability family is active and for how long
that decision is trusted.

- SelectionCache: per-key record of the chosen provider and its validity window
- SingleFlight: one in-progress call per key, shared by every waiter
- ProviderSelector: cold-start optimism, health-checked revalidation,
  detached background correction
"""

import asyncio
import functools
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Set, TypeVar

from .base import (
    ProviderAdapter,
    ProviderFamily,
    ProviderNotConfiguredError,
    describe_error,
)
from .health import ProviderHealthMonitor

from utils.logger import logger

T = TypeVar("T")

DEFAULT_CACHE_TTL = 60 * 60.0           # 1 hour
DEFAULT_INITIAL_CACHE_TTL = 10 * 60.0   # 10 minutes for the optimistic cold-start pick
DEFAULT_BACKGROUND_CHECK_DELAY = 5.0


@dataclass
class SelectionEntry:
    """The provider currently trusted for one selection key"""
    provider: str
    chosen_at: float
    valid_until: float
    revalidation_in_flight: bool = False

    def __post_init__(self):
        if self.valid_until <= self.chosen_at:
            raise ValueError(
                f"Selection for {self.provider} must be valid after it was chosen "
                f"(chosen_at={self.chosen_at}, valid_until={self.valid_until})"
            )

    def is_valid(self, now: float) -> bool:
        return now < self.valid_until

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "chosen_at": self.chosen_at,
            "valid_until": self.valid_until,
            "revalidation_in_flight": self.revalidation_in_flight,
        }


class SelectionCache:
    """
    Selection entries keyed by family (or family + ordering).

    Owned by whoever builds the selectors; nothing here is module-global,
    so independent caches can coexist (tests, multiple facades).
    """

    def __init__(self):
        self._entries: Dict[str, SelectionEntry] = {}

    def get(self, key: str) -> Optional[SelectionEntry]:
        return self._entries.get(key)

    def set(self, key: str, provider: str, chosen_at: float, ttl: float) -> SelectionEntry:
        entry = SelectionEntry(
            provider=provider,
            chosen_at=chosen_at,
            valid_until=chosen_at + ttl,
        )
        self._entries[key] = entry
        return entry

    def set_in_flight(self, key: str, in_flight: bool) -> None:
        entry = self._entries.get(key)
        if entry is not None:
            entry.revalidation_in_flight = in_flight

    def clear(self, key: Optional[str] = None) -> None:
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        return {key: entry.to_dict() for key, entry in self._entries.items()}

    def __len__(self) -> int:
        return len(self._entries)


class SingleFlight:
    """
    Coalesces concurrent calls for the same key into one task.

    Waiters are shielded: cancelling one waiter abandons its wait
    but leaves the shared call running for the others.
    """

    def __init__(self):
        self._calls: Dict[str, asyncio.Task] = {}

    def in_flight(self, key: str) -> bool:
        task = self._calls.get(key)
        return task is not None and not task.done()

    async def do(self, key: str, func: Callable[[], Awaitable[T]]) -> T:
        task = self._calls.get(key)
        if task is None:
            task = asyncio.ensure_future(func())
            self._calls[key] = task
            task.add_done_callback(functools.partial(self._forget, key))
        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._calls.get(key) is task:
            del self._calls[key]
        if not task.cancelled():
            # Waiters may all have gone away; mark the outcome as retrieved
            task.exception()

    def cancel(self, key: Optional[str] = None) -> None:
        keys = list(self._calls) if key is None else [key]
        for k in keys:
            task = self._calls.pop(k, None)
            if task is not None:
                task.cancel()


class ProviderSelector:
    """
    Chooses the active provider for one selection key.

    Adapters are given in priority order; unconfigured ones are ignored.
    The selector never returns "no provider" once at least one adapter is
    configured: the lowest-priority provider is the unconditional last resort.
    """

    def __init__(
        self,
        key: str,
        family: ProviderFamily,
        adapters: Sequence[ProviderAdapter],
        cache: SelectionCache,
        cache_ttl: float = DEFAULT_CACHE_TTL,
        initial_cache_ttl: float = DEFAULT_INITIAL_CACHE_TTL,
        background_check_delay: float = DEFAULT_BACKGROUND_CHECK_DELAY,
        health_monitor: Optional[ProviderHealthMonitor] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if cache_ttl <= 0 or initial_cache_ttl <= 0:
            raise ValueError("Selection TTLs must be positive")

        self.key = key
        self.family = family
        self.cache = cache
        self.cache_ttl = cache_ttl
        self.initial_cache_ttl = initial_cache_ttl
        self.background_check_delay = background_check_delay
        self.health_monitor = health_monitor
        self._clock = clock

        self._adapters: "OrderedDict[str, ProviderAdapter]" = OrderedDict(
            (adapter.provider_id, adapter) for adapter in adapters if adapter.is_configured
        )
        self._flight = SingleFlight()
        self._background_tasks: Set[asyncio.Task] = set()

    @property
    def provider_ids(self) -> List[str]:
        """Configured providers, highest priority first"""
        return list(self._adapters)

    @property
    def current_entry(self) -> Optional[SelectionEntry]:
        return self.cache.get(self.key)

    @property
    def revalidation_in_flight(self) -> bool:
        return self._flight.in_flight(self.key)

    def get_adapter(self, provider_id: str) -> ProviderAdapter:
        """
        Raises:
            ProviderNotConfiguredError: If the provider is not configured here
        """
        try:
            return self._adapters[provider_id]
        except KeyError:
            raise ProviderNotConfiguredError(
                self.family.value,
                f"{self.family.value} provider not configured: {provider_id}",
            )

    def next_after(self, provider_id: str) -> Optional[str]:
        """The next-lower-priority provider, or None for the last resort"""
        ids = self.provider_ids
        if provider_id not in ids:
            return None
        index = ids.index(provider_id)
        return ids[index + 1] if index + 1 < len(ids) else None

    async def select_provider(self) -> str:
        """
        Return the provider that should serve the next call.

        Raises:
            ProviderNotConfiguredError: If no adapter is configured
        """
        ids = self.provider_ids
        if not ids:
            raise ProviderNotConfiguredError(self.family.value)

        now = self._clock()
        entry = self.cache.get(self.key)

        if entry is not None and entry.is_valid(now):
            return entry.provider

        if entry is None:
            if len(ids) == 1:
                logger.info(f"Using {ids[0]} as {self.key} provider (only one configured)")
                self.cache.set(self.key, ids[0], now, self.cache_ttl)
                return ids[0]

            logger.info(f"Initial {self.key} provider selection: trying {ids[0]} without health check")
            self.cache.set(self.key, ids[0], now, self.initial_cache_ttl)
            self._schedule_background_check()
            return ids[0]

        return await self.revalidate()

    async def revalidate(self) -> str:
        """Run (or join) the health-check pass for this key"""
        return await self._flight.do(self.key, self._run_health_checks)

    async def _run_health_checks(self) -> str:
        ids = self.provider_ids
        if not ids:
            raise ProviderNotConfiguredError(self.family.value)

        self.cache.set_in_flight(self.key, True)
        try:
            chosen = ids[-1]
            for provider_id in ids[:-1]:
                if await self._is_healthy(provider_id):
                    chosen = provider_id
                    break
                logger.warning(f"{provider_id} is unhealthy, trying next {self.key} provider")

            previous = self.cache.get(self.key)
            if previous is None or previous.provider != chosen:
                logger.info(f"Selected {chosen} as {self.key} provider")
            self.cache.set(self.key, chosen, self._clock(), self.cache_ttl)
            return chosen
        finally:
            self.cache.set_in_flight(self.key, False)

    async def _is_healthy(self, provider_id: str) -> bool:
        adapter = self._adapters[provider_id]
        error = None
        try:
            healthy = await adapter.health_check()
            if not healthy:
                error = "health check reported unhealthy"
        except Exception as e:
            healthy = False
            error = describe_error(e)
            logger.warning(f"Health check for {provider_id} failed: {error}")

        if self.health_monitor is not None:
            self.health_monitor.record_check(provider_id, healthy, error)
        return healthy

    def mark_provider(self, provider_id: str) -> None:
        """Point the cache at a provider for a full validity window"""
        self.get_adapter(provider_id)
        logger.info(f"Switching {self.key} provider to {provider_id}")
        self.cache.set(self.key, provider_id, self._clock(), self.cache_ttl)

    def _schedule_background_check(self) -> None:
        task = asyncio.ensure_future(self._background_check())
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _background_check(self) -> None:
        """Correct an optimistic pick without blocking the request that made it"""
        try:
            await asyncio.sleep(self.background_check_delay)
            chosen = await self.revalidate()
            logger.debug(f"Background check confirmed {chosen} for {self.key}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Background health check for {self.key} failed: {e}")

    @property
    def pending_background_checks(self) -> int:
        return len(self._background_tasks)

    def clear(self) -> None:
        """Forget the cached choice and drop scheduled background checks"""
        self.cache.clear(self.key)
        for task in list(self._background_tasks):
            task.cancel()

    async def aclose(self) -> None:
        """Cancel everything this selector started"""
        tasks = list(self._background_tasks)
        for task in tasks:
            task.cancel()
        self._flight.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
