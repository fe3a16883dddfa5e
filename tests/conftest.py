#!/usr/bin/env python3
"""
Pytest Configuration and Shared Fixtures

Provides fake providers, a controllable clock and facade builders
shared by all tests.
"""

import pytest
import asyncio
import sys
import os
from typing import Any, Dict, List, Optional, Sequence, Tuple

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from backend.providers import (
    CapabilityCallFailedError,
    ProviderHealthMonitor,
    ProviderSelector,
    ProviderFamily,
    SelectionCache,
)
from backend.translation_providers.base import (
    DetectionResult,
    LanguageInfo,
    TranslationProvider,
    TranslationProviderType,
)
from backend.tts_providers.base import (
    SynthesisOptions,
    SynthesisResult,
    TTSProvider,
    TTSProviderType,
    TTSVoice,
)
from backend.tts_providers.registry import TTSEngineRegistry
from backend.capability_facade import CapabilityFacade


# ============================================================================
# ASYNCIO CONFIGURATION
# ============================================================================
# Note: pytest-asyncio is configured with asyncio_mode = "auto" in pyproject.toml
# The event loop is automatically managed per-function by default


async def drain_background(selector: ProviderSelector, limit: int = 1000) -> None:
    """Let the selector's detached checks run to completion"""
    for _ in range(limit):
        if not selector.pending_background_checks:
            return
        await asyncio.sleep(0.001)
    raise AssertionError("background checks did not finish")


# ============================================================================
# FAKE CLOCK
# ============================================================================

class FakeClock:
    """Monotonic clock under test control"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


# ============================================================================
# FAKE PROVIDERS
# ============================================================================

class FakeTranslationProvider(TranslationProvider):
    """
    In-memory translation provider.

    ``healthy`` may be a bool or an exception to raise from the health check.
    ``error`` is raised from every capability call while set.
    """

    def __init__(
        self,
        provider_type: TranslationProviderType,
        configured: bool = True,
        healthy: Any = True,
        error: Optional[BaseException] = None,
        detection: bool = False,
        check_delay: float = 0.0,
        config: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(config)
        self._type = provider_type
        self.configured = configured
        self.healthy = healthy
        self.error = error
        self.detection = detection
        self.check_delay = check_delay
        self.check_gate: Optional[asyncio.Event] = None
        self.call_gate: Optional[asyncio.Event] = None
        self.health_checks = 0
        self.calls: List[Tuple[str, ...]] = []

    @property
    def provider_type(self) -> TranslationProviderType:
        return self._type

    @property
    def display_name(self) -> str:
        return f"Fake {self._type.value}"

    @property
    def is_configured(self) -> bool:
        return self.configured

    @property
    def supports_detection(self) -> bool:
        return self.detection

    async def _check_health(self) -> bool:
        self.health_checks += 1
        if self.check_gate is not None:
            await self.check_gate.wait()
        if self.check_delay:
            await asyncio.sleep(self.check_delay)
        if isinstance(self.healthy, BaseException):
            raise self.healthy
        return self.healthy

    async def _call(self, *call: str) -> None:
        self.calls.append(call)
        if self.call_gate is not None:
            await self.call_gate.wait()
        if self.error is not None:
            raise self.error

    async def translate(self, text, target_lang, source_lang=None):
        await self._call("translate", text, target_lang, source_lang)
        return f"[{self.provider_id}:{target_lang}] {text}"

    async def detect_language(self, text):
        await self._call("detect", text)
        return DetectionResult(language="de", confidence=92.0)

    async def get_languages(self):
        await self._call("languages")
        return [LanguageInfo(code="de", name="German"), LanguageInfo(code="en", name="English")]


def failure(provider: str, detail: str = "503 Service Unavailable") -> CapabilityCallFailedError:
    return CapabilityCallFailedError(provider, "translate", detail)


class FakeTTSProvider(TTSProvider):
    """In-memory synthesis engine with a literal voice catalog"""

    def __init__(
        self,
        provider_type: TTSProviderType,
        voices: Sequence[Tuple[str, str]] = (),
        configured: bool = True,
        synthesis_error: Optional[BaseException] = None,
        catalog_error: Optional[BaseException] = None,
        catalog_delay: float = 0.0,
    ):
        super().__init__({"api_url": "http://fake" if configured else None})
        self._type = provider_type
        self.voices = [
            TTSVoice.from_tag(voice_id, tag, provider_type.value)
            for voice_id, tag in voices
        ]
        self.synthesis_error = synthesis_error
        self.catalog_error = catalog_error
        self.catalog_delay = catalog_delay
        self.catalog_fetches = 0
        self.synthesized: List[Tuple[str, str]] = []

    @property
    def provider_type(self) -> TTSProviderType:
        return self._type

    @property
    def display_name(self) -> str:
        return f"Fake {self._type.value}"

    async def list_voices(self):
        self.catalog_fetches += 1
        if self.catalog_delay:
            await asyncio.sleep(self.catalog_delay)
        if self.catalog_error is not None:
            raise self.catalog_error
        return list(self.voices)

    async def synthesize(self, text, voice_id, options: Optional[SynthesisOptions] = None):
        self.synthesized.append((text, voice_id))
        if self.synthesis_error is not None:
            raise self.synthesis_error
        return SynthesisResult(
            audio_bytes=b"RIFF" + text.encode("utf-8"),
            content_type="audio/wav",
            provider=self.provider_id,
            voice_id=voice_id,
        )


PIPER_VOICES = [
    ("de_DE-thorsten-medium", "de_DE"),
    ("en_GB-alan-medium", "en_GB"),
    ("en_US-lessac-medium", "en_US"),
    ("fr_FR-siwis-medium", "fr_FR"),
]

KOKORO_VOICES = [
    ("af_heart", "en_US"),
    ("jf_alpha", "ja_JP"),
    ("zf_xiaobei", "zh_CN"),
]


@pytest.fixture
def deepl():
    return FakeTranslationProvider(TranslationProviderType.DEEPL)


@pytest.fixture
def libre():
    return FakeTranslationProvider(TranslationProviderType.LIBRETRANSLATE, detection=True)


@pytest.fixture
def piper():
    return FakeTTSProvider(TTSProviderType.PIPER, PIPER_VOICES)


@pytest.fixture
def kokoro():
    return FakeTTSProvider(TTSProviderType.KOKORO, KOKORO_VOICES)


# ============================================================================
# SELECTOR / FACADE FACTORIES
# ============================================================================

@pytest.fixture
def health_monitor():
    return ProviderHealthMonitor()


@pytest.fixture
async def make_selector(clock, health_monitor):
    """Build selectors over a shared cache; background checks are cancelled on teardown"""
    cache = SelectionCache()
    created: List[ProviderSelector] = []

    def factory(adapters, key="translation", family=ProviderFamily.TRANSLATION, **kwargs):
        kwargs.setdefault("cache_ttl", 3600.0)
        kwargs.setdefault("initial_cache_ttl", 600.0)
        kwargs.setdefault("background_check_delay", 3600.0)
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("health_monitor", health_monitor)
        selector = ProviderSelector(key, family, adapters, cache, **kwargs)
        created.append(selector)
        return selector

    factory.cache = cache
    yield factory

    for selector in created:
        await selector.aclose()


@pytest.fixture
async def make_facade(clock):
    """Build facades from fake providers; background checks are cancelled on teardown"""
    created: List[CapabilityFacade] = []

    def factory(translation=(), tts=(), kokoro_languages=("ja", "ko", "zh"), **selector_options):
        selector_options.setdefault("cache_ttl", 3600.0)
        selector_options.setdefault("initial_cache_ttl", 600.0)
        selector_options.setdefault("background_check_delay", 3600.0)
        selector_options.setdefault("clock", clock)

        registry = TTSEngineRegistry(kokoro_languages=kokoro_languages)
        for engine in tts:
            registry.register(engine)

        facade = CapabilityFacade(
            list(translation),
            registry,
            selector_options=selector_options,
        )
        created.append(facade)
        return facade

    yield factory

    for facade in created:
        await facade.aclose()


# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================

def pytest_configure(config):
    """Configure pytest markers"""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (start local HTTP servers)"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (may take several seconds)"
    )


def pytest_collection_modifyitems(config, items):
    """Modify test collection based on markers"""
    # Check if we should skip integration tests
    if config.getoption("--skip-integration", default=False):
        skip_integration = pytest.mark.skip(reason="--skip-integration option provided")
        for item in items:
            if "integration" in item.keywords:
                item.add_marker(skip_integration)


def pytest_addoption(parser):
    """Add custom command line options"""
    parser.addoption(
        "--skip-integration",
        action="store_true",
        default=False,
        help="Skip integration tests"
    )
