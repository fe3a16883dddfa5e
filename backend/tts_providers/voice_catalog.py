"""
Voice Catalog

Picks the best voice for a language tag from an engine's catalog and
keeps one catalog per engine for the lifetime of the process.

Matching cascade (each tier only runs if the previous found nothing):
1. Exact tag match (``de_DE`` == ``de_DE``)
2. Language family match (``de``)
3. Tiers 1-2 rerun for ``en_US``, then ``en``, unless English was requested
4. First voice in the catalog
"""

from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from backend.providers.language import is_english, normalize_tag, primary_subtag
from backend.providers.selection import SingleFlight

from .base import TTSVoice

from utils.logger import logger


ENGLISH_FALLBACK_TAGS = ("en_US", "en")


class MatchTier(str, Enum):
    """How a voice was matched to the requested language"""
    EXACT = "exact"
    FAMILY = "family"
    ENGLISH_FALLBACK = "english_fallback"
    FIRST_AVAILABLE = "first_available"


@dataclass
class VoiceMatch:
    voice: TTSVoice
    tier: MatchTier

    @property
    def voice_id(self) -> str:
        return self.voice.id


def _find_exact(catalog: Sequence[TTSVoice], tag: str) -> Optional[TTSVoice]:
    for voice in catalog:
        if voice.language == tag:
            return voice
    return None


def _find_family(catalog: Sequence[TTSVoice], family: str) -> Optional[TTSVoice]:
    for voice in catalog:
        if voice.family == family:
            return voice
    return None


def _find_language(catalog: Sequence[TTSVoice], tag: str) -> Optional[VoiceMatch]:
    voice = _find_exact(catalog, tag)
    if voice is not None:
        return VoiceMatch(voice, MatchTier.EXACT)
    voice = _find_family(catalog, primary_subtag(tag))
    if voice is not None:
        return VoiceMatch(voice, MatchTier.FAMILY)
    return None


def match_voice(catalog: Sequence[TTSVoice], language_tag: str) -> Optional[VoiceMatch]:
    """
    Run the matching cascade over a catalog.

    Pure and deterministic: the same catalog and tag always give the
    same voice. Returns None only for an empty catalog.
    """
    tag = normalize_tag(language_tag)

    match = _find_language(catalog, tag) if tag else None
    if match is not None:
        return match

    if not is_english(tag):
        for fallback_tag in ENGLISH_FALLBACK_TAGS:
            match = _find_language(catalog, fallback_tag)
            if match is not None:
                logger.debug(f"Using English fallback voice {match.voice_id} for {language_tag!r}")
                return VoiceMatch(match.voice, MatchTier.ENGLISH_FALLBACK)

    if catalog:
        # Last resort; may be a voice in an unrelated language
        logger.debug(f"Using first available voice {catalog[0].id} for {language_tag!r}")
        return VoiceMatch(catalog[0], MatchTier.FIRST_AVAILABLE)

    return None


def best_voice(catalog: Sequence[TTSVoice], language_tag: str) -> Optional[str]:
    """Voice id for a language tag, or None if the catalog is empty"""
    match = match_voice(catalog, language_tag)
    return match.voice_id if match is not None else None


class VoiceCatalogCache:
    """
    One voice catalog per engine, fetched on first use.

    Concurrent first requests share a single fetch. Failed fetches are
    not cached, so the next request tries again. Entries never expire;
    ``clear()`` is the only way to force a re-fetch.
    """

    def __init__(self):
        self._catalogs: Dict[str, List[TTSVoice]] = {}
        self._flight = SingleFlight()

    async def get(
        self,
        provider: str,
        fetch: Callable[[], Awaitable[List[TTSVoice]]],
    ) -> List[TTSVoice]:
        catalog = self._catalogs.get(provider)
        if catalog is not None:
            return catalog
        return await self._flight.do(provider, lambda: self._load(provider, fetch))

    async def _load(
        self,
        provider: str,
        fetch: Callable[[], Awaitable[List[TTSVoice]]],
    ) -> List[TTSVoice]:
        voices = list(await fetch())
        self._catalogs[provider] = voices
        logger.debug(f"Cached {len(voices)} voices for {provider}")
        return voices

    def peek(self, provider: str) -> Optional[List[TTSVoice]]:
        return self._catalogs.get(provider)

    def clear(self, provider: Optional[str] = None) -> None:
        if provider is None:
            self._catalogs.clear()
        else:
            self._catalogs.pop(provider, None)

    def __contains__(self, provider: str) -> bool:
        return provider in self._catalogs
