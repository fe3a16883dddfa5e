"""
TTS Engine Registry

Holds the configured synthesis engines and decides which one a
language should try first.

Engine Selection:
- An explicit per-request engine always wins
- Languages in the Kokoro affinity table (ja, ko, zh by default) prefer Kokoro
- Everything else prefers Piper
- The other engine is the fallback
"""

from typing import Optional, Dict, List, Any, Iterable, Sequence

from backend.providers.base import ProviderFamily, ProviderNotConfiguredError
from backend.providers.language import primary_subtag

from .base import TTSProvider, TTSProviderType

from utils.logger import logger


DEFAULT_KOKORO_LANGUAGES = ("ja", "ko", "zh")

# Values of the per-request engine option that mean "use affinity"
AUTO_ENGINE_VALUES = ("", "auto")


def parse_engine(value: Optional[str]) -> Optional[TTSProviderType]:
    """
    Turn a per-request engine option into a provider type.

    Returns:
        The requested engine, or None when affinity should decide

    Raises:
        ValueError: For an unknown engine name
    """
    if isinstance(value, TTSProviderType):
        return value
    normalized = (value or "").strip().lower()
    if normalized in AUTO_ENGINE_VALUES:
        return None
    try:
        return TTSProviderType(normalized)
    except ValueError:
        raise ValueError(
            f"Unknown TTS provider: {value!r} "
            f"(expected one of: auto, {', '.join(t.value for t in TTSProviderType)})"
        )


def ordering_key(order: Sequence[TTSProviderType]) -> str:
    """Selection-cache key for one engine ordering"""
    return f"{ProviderFamily.SPEECH.value}:{order[0].value}-first"


class TTSEngineRegistry:
    """
    Registry for TTS engines.

    Manages engine instances and the language affinity table.
    """

    # Engine priority when affinity does not apply
    DEFAULT_ORDER = (TTSProviderType.PIPER, TTSProviderType.KOKORO)

    def __init__(self, kokoro_languages: Iterable[str] = DEFAULT_KOKORO_LANGUAGES):
        self._providers: Dict[TTSProviderType, TTSProvider] = {}
        self.kokoro_languages = {code.strip().lower() for code in kokoro_languages}

    def register(self, provider: TTSProvider) -> None:
        """Register an engine"""
        self._providers[provider.provider_type] = provider
        logger.debug(
            f"Registered TTS provider: {provider.provider_type.value} "
            f"(configured={provider.is_configured})"
        )

    def get(self, provider_type: TTSProviderType) -> TTSProvider:
        """
        Get a registered engine.

        Raises:
            ProviderNotConfiguredError: If the engine is not registered
        """
        if provider_type not in self._providers:
            raise ProviderNotConfiguredError(
                ProviderFamily.SPEECH.value,
                f"TTS provider not registered: {provider_type.value}",
            )
        return self._providers[provider_type]

    def get_all_providers(self) -> Dict[str, TTSProvider]:
        """Get all registered engines"""
        return {k.value: v for k, v in self._providers.items()}

    def configured_providers(self) -> List[TTSProvider]:
        return [p for p in self._providers.values() if p.is_configured]

    def prefers_kokoro(self, language_tag: str) -> bool:
        return primary_subtag(language_tag).lower() in self.kokoro_languages

    def select_engine_for_language(
        self,
        language_tag: str,
        preferred: Optional[str] = None,
    ) -> TTSProviderType:
        """Engine to try first for a language"""
        engine = parse_engine(preferred)
        if engine is not None:
            return engine
        if self.prefers_kokoro(language_tag):
            return TTSProviderType.KOKORO
        return TTSProviderType.PIPER

    def engine_order(
        self,
        language_tag: str,
        preferred: Optional[str] = None,
    ) -> List[TTSProviderType]:
        """All engines, the one to try first leading"""
        first = self.select_engine_for_language(language_tag, preferred)
        return [first] + [t for t in self.DEFAULT_ORDER if t != first]

    def orderings(self) -> List[List[TTSProviderType]]:
        """Every engine ordering a request can resolve to"""
        return [
            [first] + [t for t in self.DEFAULT_ORDER if t != first]
            for first in self.DEFAULT_ORDER
        ]

    def adapters_in_order(self, order: Sequence[TTSProviderType]) -> List[TTSProvider]:
        return [self._providers[t] for t in order if t in self._providers]

    def get_all_status(self) -> List[Dict[str, Any]]:
        """Get status of all engines"""
        return [provider.get_status() for provider in self._providers.values()]
