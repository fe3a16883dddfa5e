"""
Fallback Coordinator

Wraps one capability call against the selected provider and retries it
once against the next-lower-priority provider when it fails. A successful
fallback rewrites the selection cache so later calls skip the provider
that just failed until the entry expires.
"""

import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from .base import (
    AllProvidersFailedError,
    CapabilityCallFailedError,
    ProviderAdapter,
    ProviderNotConfiguredError,
    describe_error,
)
from .health import ProviderHealthMonitor
from .selection import ProviderSelector

from utils.logger import logger

T = TypeVar("T")

CapabilityCall = Callable[[ProviderAdapter], Awaitable[T]]


@dataclass
class ProviderResult(Generic[T]):
    """Result of a capability call tagged with the provider that produced it"""
    value: T
    provider: str
    fallback_used: bool = False


class FallbackCoordinator:
    """Runs capability calls with single-step fallback"""

    def __init__(self, health_monitor: Optional[ProviderHealthMonitor] = None):
        self.health_monitor = health_monitor

    async def invoke(
        self,
        selector: ProviderSelector,
        operation: str,
        call: CapabilityCall,
        preferred: Optional[str] = None,
    ) -> ProviderResult:
        """
        Execute ``call`` against the selected provider, falling back once.

        A preferred provider that is not configured counts as a failed
        first attempt: the first configured provider serves the call.

        Args:
            selector: Selector owning the family's providers and cache entry
            operation: Name used in logs and errors (e.g. "translate")
            call: Coroutine function receiving the adapter to use
            preferred: Explicit provider override; bypasses (and never
                rewrites) the selection cache

        Returns:
            ProviderResult with the value and the provider actually used

        Raises:
            CapabilityCallFailedError: The only eligible provider failed
            AllProvidersFailedError: Selected and fallback provider both failed
            ProviderNotConfiguredError: The family has no configured provider
        """
        if preferred is not None and preferred not in selector.provider_ids:
            return await self._skip_unconfigured(selector, operation, call, preferred)

        if preferred is not None:
            provider_id = preferred
        else:
            provider_id = await selector.select_provider()

        try:
            value = await self._attempt(selector, provider_id, call)
            return ProviderResult(value=value, provider=provider_id)
        except Exception as primary_error:
            fallback_id = selector.next_after(provider_id)
            if fallback_id is None:
                logger.error(f"{operation} failed with {provider_id}: {describe_error(primary_error)}")
                if isinstance(primary_error, CapabilityCallFailedError):
                    raise
                raise CapabilityCallFailedError(
                    provider_id, operation, describe_error(primary_error)
                ) from primary_error

            logger.warning(
                f"{operation} failed with {provider_id}, trying fallback {fallback_id}: "
                f"{describe_error(primary_error)}"
            )
            value = await self._attempt_fallback(
                selector, operation, call, provider_id, primary_error, fallback_id
            )

            if preferred is None and getattr(primary_error, "affects_selection", True):
                selector.mark_provider(fallback_id)

            return ProviderResult(value=value, provider=fallback_id, fallback_used=True)

    async def _skip_unconfigured(
        self,
        selector: ProviderSelector,
        operation: str,
        call: CapabilityCall,
        preferred: str,
    ) -> ProviderResult:
        """Requested provider is not configured: go straight to the first configured one"""
        ids = selector.provider_ids
        if not ids:
            raise ProviderNotConfiguredError(selector.family.value)

        skipped = ProviderNotConfiguredError(
            selector.family.value,
            f"{selector.family.value} provider not configured: {preferred}",
        )
        logger.warning(f"{operation} requested {preferred}, which is not configured; using {ids[0]}")
        value = await self._attempt_fallback(selector, operation, call, preferred, skipped, ids[0])
        return ProviderResult(value=value, provider=ids[0], fallback_used=True)

    async def _attempt_fallback(
        self,
        selector: ProviderSelector,
        operation: str,
        call: CapabilityCall,
        provider_id: str,
        primary_error: Exception,
        fallback_id: str,
    ):
        try:
            return await self._attempt(selector, fallback_id, call)
        except Exception as fallback_error:
            logger.error(
                f"Both {selector.family.value} providers failed for {operation}: "
                f"{provider_id}: {describe_error(primary_error)}; "
                f"{fallback_id}: {describe_error(fallback_error)}"
            )
            raise AllProvidersFailedError(
                selector.family.value,
                operation,
                [(provider_id, primary_error), (fallback_id, fallback_error)],
            ) from fallback_error

    async def _attempt(
        self,
        selector: ProviderSelector,
        provider_id: str,
        call: CapabilityCall,
    ):
        adapter = selector.get_adapter(provider_id)
        start_time = time.perf_counter()

        try:
            value = await call(adapter)
        except Exception as e:
            if self.health_monitor is not None and getattr(e, "affects_selection", True):
                self.health_monitor.record_failure(provider_id, describe_error(e))
            raise

        if self.health_monitor is not None:
            latency_ms = (time.perf_counter() - start_time) * 1000
            self.health_monitor.record_success(provider_id, latency_ms)
        return value
