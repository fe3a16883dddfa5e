"""
Capability Facade

Single entry point for application code that needs translation,
language detection or speech synthesis. Callers never pick a backend:
the facade resolves one through the selectors, falls back when it
fails, and reports which provider served the request.

Selection keys:
- ``translation``: DeepL (when configured), then LibreTranslate
- ``detection``: LibreTranslate only
- ``speech:piper-first`` / ``speech:kokoro-first``: one per engine ordering
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from backend.providers import (
    AllProvidersFailedError,
    CapabilityCallFailedError,
    FallbackCoordinator,
    ProviderAdapter,
    ProviderFamily,
    ProviderHealthMonitor,
    ProviderNotConfiguredError,
    ProviderResult,
    ProviderSelector,
    SelectionCache,
    SynthesisFailedError,
    VoiceNotFoundError,
    describe_error,
)
from backend.translation_providers import (
    DeepLProvider,
    DetectionResult,
    LanguageInfo,
    LibreTranslateProvider,
)
from backend.tts_providers import (
    KokoroTTSProvider,
    MatchTier,
    PiperTTSProvider,
    SynthesisOptions,
    SynthesisResult,
    TTSEngineRegistry,
    TTSProvider,
    TTSProviderType,
    TTSVoice,
    VoiceCatalogCache,
    match_voice,
    ordering_key,
    parse_engine,
)
from backend.providers.language import normalize_tag

from utils.logger import logger


TRANSLATION_KEY = "translation"
DETECTION_KEY = "detection"


@dataclass
class VoiceSelection:
    """The engine and voice a synthesis request would use"""
    provider: str
    voice_id: str
    tier: Optional[MatchTier] = None


@dataclass
class AutoDetectTranslation:
    """Translation of text whose source language was detected first"""
    text: str
    detected: DetectionResult
    provider: str
    fallback_used: bool = False


def _require_text(text: str) -> None:
    if not text or not text.strip():
        raise ValueError("Text is required")


def _attempted(error: AllProvidersFailedError) -> List[Tuple[str, BaseException]]:
    """Failures of providers that were actually called"""
    return [
        (provider, err) for provider, err in error.failures
        if not isinstance(err, ProviderNotConfiguredError)
    ]


def _missing_voice(error: AllProvidersFailedError, tag: str) -> Optional[VoiceNotFoundError]:
    """A VoiceNotFoundError when no engine that was tried had a voice"""
    attempted = _attempted(error)
    if attempted and all(isinstance(err, VoiceNotFoundError) for _, err in attempted):
        return VoiceNotFoundError(attempted[0][0], tag)
    return None


class CapabilityFacade:
    """
    Translation and speech synthesis over interchangeable providers.

    All caches are owned by the instance; two facades never share
    selection state or voice catalogs.
    """

    def __init__(
        self,
        translation_providers: List[ProviderAdapter],
        tts_registry: TTSEngineRegistry,
        selection_cache: Optional[SelectionCache] = None,
        voice_catalogs: Optional[VoiceCatalogCache] = None,
        health_monitor: Optional[ProviderHealthMonitor] = None,
        selector_options: Optional[Dict[str, Any]] = None,
    ):
        """
        Args:
            translation_providers: Translation adapters, highest priority first
            tts_registry: Registry holding the synthesis engines
            selection_cache: Cache shared by every selector of this facade
            voice_catalogs: Per-engine voice catalogs
            health_monitor: Collects per-provider success/failure counters
            selector_options: Extra ProviderSelector arguments (TTLs,
                background delay, clock)
        """
        self.selection_cache = selection_cache or SelectionCache()
        self.voice_catalogs = voice_catalogs or VoiceCatalogCache()
        self.health_monitor = health_monitor or ProviderHealthMonitor()
        self.tts_registry = tts_registry
        self.coordinator = FallbackCoordinator(self.health_monitor)

        options = dict(selector_options or {})
        self._translation_providers = list(translation_providers)

        self.translation_selector = ProviderSelector(
            TRANSLATION_KEY,
            ProviderFamily.TRANSLATION,
            self._translation_providers,
            self.selection_cache,
            health_monitor=self.health_monitor,
            **options,
        )
        self.detection_selector = ProviderSelector(
            DETECTION_KEY,
            ProviderFamily.TRANSLATION,
            [p for p in self._translation_providers if getattr(p, "supports_detection", False)],
            self.selection_cache,
            health_monitor=self.health_monitor,
            **options,
        )
        self.speech_selectors: Dict[TTSProviderType, ProviderSelector] = {}
        for order in tts_registry.orderings():
            self.speech_selectors[order[0]] = ProviderSelector(
                ordering_key(order),
                ProviderFamily.SPEECH,
                tts_registry.adapters_in_order(order),
                self.selection_cache,
                health_monitor=self.health_monitor,
                **options,
            )

    @property
    def selectors(self) -> List[ProviderSelector]:
        return [
            self.translation_selector,
            self.detection_selector,
            *self.speech_selectors.values(),
        ]

    # ========================================================================
    # Translation
    # ========================================================================

    async def translate_text(
        self,
        text: str,
        target_lang: str,
        source_lang: Optional[str] = None,
    ) -> str:
        """Translate text with the active translation provider"""
        result = await self.translate_text_with_provider(text, target_lang, source_lang)
        return result.value

    async def translate_text_with_provider(
        self,
        text: str,
        target_lang: str,
        source_lang: Optional[str] = None,
        provider: Optional[str] = None,
    ) -> ProviderResult:
        """
        Translate text and report which provider served the request.

        Args:
            text: Text to translate
            target_lang: Target language tag
            source_lang: Source language tag, or None to let the provider detect it
            provider: Force a translation provider ("deepl", "libretranslate");
                an unconfigured one falls through to the configured provider

        Raises:
            ValueError: If text is empty
            ProviderNotConfiguredError: If no translation provider is configured
            CapabilityCallFailedError: If the only eligible provider failed
            AllProvidersFailedError: If both providers failed
        """
        _require_text(text)
        target = normalize_tag(target_lang)
        source = normalize_tag(source_lang) if source_lang else None

        result = await self.coordinator.invoke(
            self.translation_selector,
            "translate",
            lambda adapter: adapter.translate(text, target, source),
            preferred=provider,
        )
        logger.debug(
            f"Translated {len(text)} chars to {target} with {result.provider}"
            + (" (fallback)" if result.fallback_used else "")
        )
        return result

    def _require_detection(self) -> None:
        if not self.detection_selector.provider_ids:
            raise ProviderNotConfiguredError(
                ProviderFamily.TRANSLATION.value,
                "Language detection requires LibreTranslate, which is not configured",
            )

    async def detect_language(self, text: str) -> DetectionResult:
        """
        Detect the language of a text. Only LibreTranslate offers detection.

        Raises:
            ValueError: If text is empty
            ProviderNotConfiguredError: If LibreTranslate is not configured
            CapabilityCallFailedError: If the detection call failed
        """
        _require_text(text)
        self._require_detection()
        result = await self.coordinator.invoke(
            self.detection_selector,
            "detect",
            lambda adapter: adapter.detect_language(text),
        )
        return result.value

    async def translate_with_auto_detect(
        self,
        text: str,
        target_lang: str,
    ) -> AutoDetectTranslation:
        """Detect the source language, then translate from it"""
        detected = await self.detect_language(text)
        logger.debug(
            f"Detected {detected.language} (confidence {detected.confidence}) "
            f"before translating to {target_lang}"
        )
        result = await self.translate_text_with_provider(
            text, target_lang, source_lang=detected.language
        )
        return AutoDetectTranslation(
            text=result.value,
            detected=detected,
            provider=result.provider,
            fallback_used=result.fallback_used,
        )

    async def get_supported_languages(self) -> List[LanguageInfo]:
        """Languages known to LibreTranslate"""
        self._require_detection()
        result = await self.coordinator.invoke(
            self.detection_selector,
            "languages",
            lambda adapter: adapter.get_languages(),
        )
        return result.value

    # ========================================================================
    # Speech synthesis
    # ========================================================================

    def _speech_selector(self, language_tag: str, provider: Optional[str]) -> ProviderSelector:
        order = self.tts_registry.engine_order(language_tag, provider)
        return self.speech_selectors[order[0]]

    async def _resolve_voice(
        self,
        adapter: TTSProvider,
        language_tag: str,
        requested_voice: Optional[str] = None,
    ) -> VoiceSelection:
        catalog = await self.voice_catalogs.get(adapter.provider_id, adapter.list_voices)

        if requested_voice and any(v.id == requested_voice for v in catalog):
            return VoiceSelection(adapter.provider_id, requested_voice)

        match = match_voice(catalog, language_tag)
        if match is None:
            raise VoiceNotFoundError(adapter.provider_id, language_tag)

        logger.debug(
            f"Voice for {language_tag} on {adapter.provider_id}: "
            f"{match.voice_id} ({match.tier.value})"
        )
        return VoiceSelection(adapter.provider_id, match.voice_id, match.tier)

    async def _invoke_speech(self, language_tag: str, provider: Optional[str], operation: str, call):
        selector = self._speech_selector(language_tag, provider)
        # An explicit engine is used directly without touching the cache
        engine = parse_engine(provider)
        preferred = engine.value if engine is not None else None
        return await self.coordinator.invoke(selector, operation, call, preferred=preferred)

    async def select_voice(
        self,
        language_tag: str,
        provider: Optional[str] = None,
    ) -> VoiceSelection:
        """
        Preview the engine and voice a synthesis request would use.

        Raises:
            VoiceNotFoundError: If no engine has a voice at all
        """
        tag = normalize_tag(language_tag)
        try:
            result = await self._invoke_speech(
                tag, provider, "voice selection",
                lambda adapter: self._resolve_voice(adapter, tag),
            )
        except AllProvidersFailedError as e:
            missing = _missing_voice(e, tag)
            if missing is not None:
                raise missing from e
            raise
        return result.value

    async def synthesize_speech(
        self,
        text: str,
        language_tag: str,
        options: Optional[SynthesisOptions] = None,
    ) -> SynthesisResult:
        """
        Synthesize speech for a language, picking engine and voice.

        Args:
            text: Text to speak
            language_tag: Language of the text (e.g. 'de_DE', 'ja')
            options: Engine override, explicit voice, engine tuning

        Raises:
            ValueError: If text is empty or the engine override is unknown
            ProviderNotConfiguredError: If no engine is configured
            VoiceNotFoundError: If no engine had a voice to use
            SynthesisFailedError: If a voice was found but synthesis failed
                on every engine; leads with the first engine's error
        """
        _require_text(text)
        options = options or SynthesisOptions()
        tag = normalize_tag(language_tag)

        async def synthesize(adapter: TTSProvider) -> SynthesisResult:
            voice = await self._resolve_voice(adapter, tag, options.voice)
            result = await adapter.synthesize(text, voice.voice_id, options)
            result.metadata.setdefault("language", tag)
            if voice.tier is not None:
                result.metadata.setdefault("voice_match", voice.tier.value)
            return result

        try:
            result = await self._invoke_speech(tag, options.provider, "synthesize", synthesize)
        except AllProvidersFailedError as e:
            missing = _missing_voice(e, tag)
            if missing is not None:
                raise missing from e
            raise SynthesisFailedError(e.failures) from e
        except VoiceNotFoundError:
            raise
        except CapabilityCallFailedError as e:
            raise SynthesisFailedError([(e.provider, e)]) from e

        logger.info(
            f"Synthesized {result.value.length} bytes with {result.provider} "
            f"voice {result.value.voice_id}"
        )
        return result.value

    async def get_all_voices(self) -> Dict[str, List[TTSVoice]]:
        """Every configured engine's catalog; a failing engine contributes []"""
        voices: Dict[str, List[TTSVoice]] = {}
        for adapter in self.tts_registry.configured_providers():
            try:
                voices[adapter.provider_id] = await self.voice_catalogs.get(
                    adapter.provider_id, adapter.list_voices
                )
            except CapabilityCallFailedError as e:
                logger.warning(f"Could not list voices for {adapter.provider_id}: {e}")
                voices[adapter.provider_id] = []
        return voices

    # ========================================================================
    # Diagnostics and lifecycle
    # ========================================================================

    def _family_status(
        self,
        statuses: List[Dict[str, Any]],
        selectors: List[ProviderSelector],
        selections: Dict[str, Dict[str, Any]],
    ) -> Dict[str, Any]:
        for status in statuses:
            if status["configured"]:
                status["healthy"] = self.health_monitor.get_health(status["provider"]).is_healthy
            else:
                status["healthy"] = None

        family_selections = {selector.key: selections.get(selector.key) for selector in selectors}
        primary = family_selections.get(selectors[0].key) if selectors else None

        return {
            "configured": any(status["configured"] for status in statuses),
            "active_provider": primary["provider"] if primary else None,
            "providers": statuses,
            "selections": family_selections,
        }

    def get_health_status(self) -> Dict[str, Any]:
        """
        Configuration, cached choices and health counters per family.

        ``healthy`` is None for a configured provider that has not been
        checked or called yet; use ``check_health()`` for a live answer.
        """
        selections = self.selection_cache.snapshot()
        return {
            ProviderFamily.TRANSLATION.value: self._family_status(
                [provider.get_status() for provider in self._translation_providers],
                [self.translation_selector, self.detection_selector],
                selections,
            ),
            ProviderFamily.SPEECH.value: self._family_status(
                self.tts_registry.get_all_status(),
                list(self.speech_selectors.values()),
                selections,
            ),
            "health": self.health_monitor.get_all_health(),
            "voice_catalogs": {
                provider.provider_id: len(self.voice_catalogs.peek(provider.provider_id) or [])
                for provider in self.tts_registry.configured_providers()
                if provider.provider_id in self.voice_catalogs
            },
        }

    async def check_health(self) -> Dict[str, Any]:
        """Run the bounded health check of every configured provider, then report"""
        adapters: List[ProviderAdapter] = [
            provider for provider in self._translation_providers if provider.is_configured
        ]
        adapters.extend(self.tts_registry.configured_providers())

        outcomes = await asyncio.gather(
            *(adapter.health_check() for adapter in adapters),
            return_exceptions=True,
        )
        for adapter, outcome in zip(adapters, outcomes):
            if isinstance(outcome, Exception):
                logger.warning(f"Health check for {adapter.provider_id} failed: {describe_error(outcome)}")
                self.health_monitor.record_check(adapter.provider_id, False, describe_error(outcome))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                healthy = bool(outcome)
                self.health_monitor.record_check(
                    adapter.provider_id,
                    healthy,
                    None if healthy else "health check reported unhealthy",
                )
        return self.get_health_status()

    def clear_caches(self) -> None:
        """Forget every provider choice and voice catalog"""
        for selector in self.selectors:
            selector.clear()
        self.selection_cache.clear()
        self.voice_catalogs.clear()
        logger.info("Cleared provider selection and voice catalog caches")

    async def aclose(self) -> None:
        """Cancel background checks started by this facade"""
        for selector in self.selectors:
            await selector.aclose()


def create_capability_facade(settings=None, **kwargs) -> CapabilityFacade:
    """
    Build a facade from application settings.

    Args:
        settings: A config.Settings instance (defaults to the global one)
        **kwargs: Passed to CapabilityFacade (caches, health monitor)
    """
    if settings is None:
        from config import settings

    health_timeout = settings.PROVIDER_HEALTH_CHECK_TIMEOUT_SECONDS

    translation_providers = [
        DeepLProvider({
            "api_key": settings.DEEPL_API_KEY,
            "api_url": settings.get_deepl_api_url(),
            "timeout": settings.TRANSLATION_TIMEOUT_SECONDS,
            "health_check_timeout": health_timeout,
        }),
        LibreTranslateProvider({
            "api_url": settings.LIBRETRANSLATE_API,
            "api_key": settings.LIBRETRANSLATE_API_KEY,
            "timeout": settings.TRANSLATION_TIMEOUT_SECONDS,
            "health_check_timeout": health_timeout,
        }),
    ]

    tts_config = {
        "timeout": settings.TTS_TIMEOUT_SECONDS,
        "health_check_timeout": health_timeout,
        "fetch_attempts": settings.VOICE_CATALOG_FETCH_ATTEMPTS,
    }
    registry = TTSEngineRegistry(kokoro_languages=settings.KOKORO_PREFERRED_LANGUAGES)
    registry.register(PiperTTSProvider({**tts_config, "api_url": settings.PIPER_API}))
    registry.register(KokoroTTSProvider({**tts_config, "api_url": settings.KOKORO_API}))

    kwargs.setdefault("selector_options", {
        "cache_ttl": settings.PROVIDER_CACHE_TTL_SECONDS,
        "initial_cache_ttl": settings.PROVIDER_INITIAL_CACHE_TTL_SECONDS,
        "background_check_delay": settings.PROVIDER_BACKGROUND_CHECK_DELAY_SECONDS,
    })

    logger.info(f"Provider configuration: {settings.get_provider_info()}")
    return CapabilityFacade(translation_providers, registry, **kwargs)
