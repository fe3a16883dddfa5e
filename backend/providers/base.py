"""
Provider Base Classes

Abstract adapter interface and typed errors shared by every
capability family (translation, speech synthesis).
"""

import asyncio
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Awaitable, Dict, List, Optional, Sequence, Tuple, TypeVar

T = TypeVar("T")

DEFAULT_CALL_TIMEOUT = 30.0
DEFAULT_HEALTH_CHECK_TIMEOUT = 5.0


class ProviderFamily(str, Enum):
    """Groups of interchangeable providers"""
    TRANSLATION = "translation"
    SPEECH = "speech"


def describe_error(error: BaseException) -> str:
    """Readable message for an exception, even when str() is empty"""
    message = str(error)
    return message if message else error.__class__.__name__


class ProviderError(Exception):
    """Base class for all provider resolution errors"""
    pass


class ProviderNotConfiguredError(ProviderError):
    """Raised when a family has no usable adapter at all"""

    def __init__(self, family: str, detail: Optional[str] = None):
        self.family = family
        super().__init__(detail or f"No {family} provider is configured")


class ProviderUnhealthyError(ProviderError):
    """Raised when a health check fails; only used to steer selection"""

    def __init__(self, provider: str, detail: str):
        self.provider = provider
        self.detail = detail
        super().__init__(f"{provider} is unhealthy: {detail}")


class CapabilityCallFailedError(ProviderError):
    """A single adapter call raised an error or timed out"""

    # Whether this failure says something about the provider itself.
    # Request-specific failures must not steer the selection cache.
    affects_selection = True

    def __init__(self, provider: str, operation: str, detail: str):
        self.provider = provider
        self.operation = operation
        self.detail = detail
        super().__init__(f"{provider} {operation} failed: {detail}")


class VoiceNotFoundError(CapabilityCallFailedError):
    """The voice matching cascade found nothing to use"""

    affects_selection = False

    def __init__(self, provider: str, language: str):
        self.language = language
        super().__init__(
            provider,
            "voice selection",
            f"no suitable voice found for language: {language}",
        )


class AllProvidersFailedError(ProviderError):
    """Both the selected and the fallback provider failed for one request"""

    def __init__(
        self,
        family: str,
        operation: str,
        failures: Sequence[Tuple[str, BaseException]],
    ):
        self.family = family
        self.operation = operation
        self.failures: List[Tuple[str, BaseException]] = list(failures)
        reasons = ". ".join(
            f"{provider}: {describe_error(error)}" for provider, error in self.failures
        )
        super().__init__(f"All {family} providers failed ({operation}). {reasons}")

    @property
    def providers(self) -> List[str]:
        return [provider for provider, _ in self.failures]


class SynthesisFailedError(AllProvidersFailedError):
    """
    A voice was resolved but synthesis failed on every engine.

    The message leads with the originally selected engine's error;
    all failures remain available on ``failures``.
    """

    def __init__(self, failures: Sequence[Tuple[str, BaseException]]):
        super().__init__(ProviderFamily.SPEECH.value, "synthesize", failures)
        provider, error = self.failures[0]
        self.original_provider = provider
        self.original_error = error
        self.args = (
            f"Speech synthesis failed with {provider}: {describe_error(error)}",
        )


class ProviderAdapter(ABC):
    """
    Abstract base class for provider adapters.

    An adapter wraps exactly one backend. It only holds connection
    configuration; selection state lives in the selector.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize adapter with optional configuration.

        Args:
            config: Provider-specific configuration (URLs, keys, timeouts)
        """
        self.config = config or {}
        self.timeout = float(self.config.get("timeout", DEFAULT_CALL_TIMEOUT))
        self.health_check_timeout = float(
            self.config.get("health_check_timeout", DEFAULT_HEALTH_CHECK_TIMEOUT)
        )

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Stable identifier used in the selection cache"""
        pass

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Human-readable provider name"""
        pass

    @property
    @abstractmethod
    def family(self) -> ProviderFamily:
        """Capability family served by this adapter"""
        pass

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """Whether credentials/URLs for this backend are present"""
        pass

    @abstractmethod
    async def _check_health(self) -> bool:
        """Lightweight backend call deciding whether the provider is usable"""
        pass

    async def health_check(self) -> bool:
        """
        Run the health check bounded by the health-check timeout.

        Raises:
            ProviderUnhealthyError: If the check timed out
        """
        try:
            return await asyncio.wait_for(
                self._check_health(), timeout=self.health_check_timeout
            )
        except asyncio.TimeoutError:
            raise ProviderUnhealthyError(
                self.provider_id,
                f"health check timed out after {self.health_check_timeout}s",
            )

    async def _bounded(
        self,
        operation: str,
        call: Awaitable[T],
        timeout: Optional[float] = None,
    ) -> T:
        """
        Await a backend call under the adapter timeout.

        Timeouts surface as CapabilityCallFailedError so fallback
        treats them like any other failure.
        """
        limit = timeout if timeout is not None else self.timeout
        try:
            return await asyncio.wait_for(call, timeout=limit)
        except asyncio.TimeoutError:
            raise CapabilityCallFailedError(
                self.provider_id, operation, f"timed out after {limit}s"
            )

    def get_status(self) -> Dict[str, Any]:
        """Get provider status for diagnostics"""
        return {
            "provider": self.provider_id,
            "name": self.display_name,
            "family": self.family.value,
            "configured": self.is_configured,
        }

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.provider_id}>"
