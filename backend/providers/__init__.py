"""
Provider Resolution Core

Shared machinery for picking and using one of several interchangeable
backends:
- Adapter interface and typed errors
- Selection cache with single-flight revalidation
- Single-step fallback between providers
- Health tracking for diagnostics
"""

from .base import (
    ProviderAdapter,
    ProviderFamily,
    ProviderError,
    ProviderNotConfiguredError,
    ProviderUnhealthyError,
    CapabilityCallFailedError,
    AllProvidersFailedError,
    VoiceNotFoundError,
    SynthesisFailedError,
    describe_error,
)
from .selection import (
    SelectionEntry,
    SelectionCache,
    SingleFlight,
    ProviderSelector,
)
from .fallback import (
    FallbackCoordinator,
    ProviderResult,
)
from .health import (
    ProviderHealth,
    ProviderHealthMonitor,
)

__all__ = [
    # Base classes
    "ProviderAdapter",
    "ProviderFamily",
    # Errors
    "ProviderError",
    "ProviderNotConfiguredError",
    "ProviderUnhealthyError",
    "CapabilityCallFailedError",
    "AllProvidersFailedError",
    "VoiceNotFoundError",
    "SynthesisFailedError",
    "describe_error",
    # Selection
    "SelectionEntry",
    "SelectionCache",
    "SingleFlight",
    "ProviderSelector",
    # Fallback
    "FallbackCoordinator",
    "ProviderResult",
    # Health
    "ProviderHealth",
    "ProviderHealthMonitor",
]
