"""
TTS Providers Package

Multi-engine TTS architecture supporting:
- Piper (self-hosted) - default engine for most languages
- Kokoro (self-hosted, OpenAI-compatible) - preferred for ja/ko/zh

Engine Selection:
- An explicit per-request engine always wins
- Otherwise language affinity picks the engine to try first
- The other engine is the fallback
"""

from .base import (
    TTSProvider,
    TTSProviderType,
    TTSVoice,
    SynthesisOptions,
    SynthesisResult,
)
from .piper_provider import PiperTTSProvider
from .kokoro_provider import KokoroTTSProvider, parse_kokoro_voice
from .registry import (
    TTSEngineRegistry,
    parse_engine,
    ordering_key,
)
from .voice_catalog import (
    MatchTier,
    VoiceMatch,
    VoiceCatalogCache,
    match_voice,
    best_voice,
)

__all__ = [
    # Base classes
    "TTSProvider",
    "TTSProviderType",
    "TTSVoice",
    "SynthesisOptions",
    "SynthesisResult",
    # Engines
    "PiperTTSProvider",
    "KokoroTTSProvider",
    "parse_kokoro_voice",
    # Registry
    "TTSEngineRegistry",
    "parse_engine",
    "ordering_key",
    # Voice catalog
    "MatchTier",
    "VoiceMatch",
    "VoiceCatalogCache",
    "match_voice",
    "best_voice",
]
