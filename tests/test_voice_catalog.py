#!/usr/bin/env python3
"""
Voice Catalog Tests

Tests for the voice matching cascade and the per-engine catalog cache.
Catalogs are literal lists so every expectation is deterministic.
"""

import pytest
import asyncio

from backend.providers import CapabilityCallFailedError
from backend.tts_providers.base import TTSVoice
from backend.tts_providers.voice_catalog import (
    MatchTier,
    VoiceCatalogCache,
    best_voice,
    match_voice,
)


def catalog(*entries):
    return [TTSVoice.from_tag(voice_id, tag, "piper") for voice_id, tag in entries]


GERMAN_FIRST = catalog(
    ("de_DE-thorsten", "de_DE"),
    ("de_AT-hans", "de_AT"),
    ("en_GB-alan", "en_GB"),
    ("en_US-lessac", "en_US"),
    ("fr_FR-siwis", "fr_FR"),
)


# ============================================================================
# MATCHING CASCADE
# ============================================================================

class TestMatchVoice:
    """Tests for match_voice / best_voice"""

    def test_exact_match(self):
        match = match_voice(GERMAN_FIRST, "de_AT")
        assert match.voice_id == "de_AT-hans"
        assert match.tier == MatchTier.EXACT

    def test_hyphenated_tag_is_normalized(self):
        assert best_voice(GERMAN_FIRST, "de-AT") == "de_AT-hans"

    def test_family_match_takes_first_in_order(self):
        match = match_voice(GERMAN_FIRST, "de_CH")
        assert match.voice_id == "de_DE-thorsten"
        assert match.tier == MatchTier.FAMILY

    def test_bare_family_tag(self):
        assert best_voice(GERMAN_FIRST, "fr") == "fr_FR-siwis"

    def test_english_fallback_prefers_en_us(self):
        match = match_voice(GERMAN_FIRST, "pt_BR")
        assert match.voice_id == "en_US-lessac"
        assert match.tier == MatchTier.ENGLISH_FALLBACK

    def test_english_fallback_uses_any_english_variant(self):
        voices = catalog(("de_DE-thorsten", "de_DE"), ("en_GB-alan", "en_GB"))
        match = match_voice(voices, "pt")
        assert match.voice_id == "en_GB-alan"
        assert match.tier == MatchTier.ENGLISH_FALLBACK

    def test_english_fallback_family_before_bare_en(self):
        voices = catalog(("en_GB-alan", "en_GB"), ("en-bare", "en"))
        match = match_voice(voices, "de_DE")
        assert match.voice_id == "en_GB-alan"
        assert match.tier == MatchTier.ENGLISH_FALLBACK

    def test_english_request_uses_family_not_fallback(self):
        voices = catalog(("de_DE-thorsten", "de_DE"), ("en_GB-alan", "en_GB"))
        match = match_voice(voices, "en_US")
        assert match.voice_id == "en_GB-alan"
        assert match.tier == MatchTier.FAMILY

    def test_first_available_as_last_resort(self):
        voices = catalog(("de_DE-thorsten", "de_DE"), ("fr_FR-siwis", "fr_FR"))
        match = match_voice(voices, "ja")
        assert match.voice_id == "de_DE-thorsten"
        assert match.tier == MatchTier.FIRST_AVAILABLE

    def test_english_request_without_english_voices(self):
        voices = catalog(("de_DE-thorsten", "de_DE"))
        match = match_voice(voices, "en")
        assert match.voice_id == "de_DE-thorsten"
        assert match.tier == MatchTier.FIRST_AVAILABLE

    def test_empty_catalog(self):
        assert match_voice([], "de") is None
        assert best_voice([], "de") is None

    def test_deterministic(self):
        first = [best_voice(GERMAN_FIRST, tag) for tag in ("de", "en", "ja", "fr_CA")]
        second = [best_voice(list(GERMAN_FIRST), tag) for tag in ("de", "en", "ja", "fr_CA")]
        assert first == second == [
            "de_DE-thorsten",
            "en_GB-alan",
            "en_US-lessac",
            "fr_FR-siwis",
        ]


# ============================================================================
# CATALOG CACHE
# ============================================================================

class TestVoiceCatalogCache:
    """Tests for VoiceCatalogCache"""

    async def test_concurrent_first_use_fetches_once(self):
        cache = VoiceCatalogCache()
        fetches = 0

        async def fetch():
            nonlocal fetches
            fetches += 1
            await asyncio.sleep(0.01)
            return list(GERMAN_FIRST)

        results = await asyncio.gather(*(cache.get("piper", fetch) for _ in range(10)))

        assert fetches == 1
        assert all(result == GERMAN_FIRST for result in results)
        assert "piper" in cache

    async def test_catalog_kept_until_cleared(self):
        cache = VoiceCatalogCache()
        fetches = 0

        async def fetch():
            nonlocal fetches
            fetches += 1
            return list(GERMAN_FIRST)

        await cache.get("piper", fetch)
        await cache.get("piper", fetch)
        assert fetches == 1

        cache.clear()
        await cache.get("piper", fetch)
        assert fetches == 2

    async def test_failed_fetch_not_cached(self):
        cache = VoiceCatalogCache()
        outcomes = [CapabilityCallFailedError("kokoro", "list voices", "connection refused"), GERMAN_FIRST]

        async def fetch():
            outcome = outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        with pytest.raises(CapabilityCallFailedError):
            await cache.get("kokoro", fetch)
        assert "kokoro" not in cache

        assert await cache.get("kokoro", fetch) == GERMAN_FIRST

    async def test_providers_cached_separately(self):
        cache = VoiceCatalogCache()

        async def piper_voices():
            return catalog(("de_DE-thorsten", "de_DE"))

        async def kokoro_voices():
            return catalog(("jf_alpha", "ja_JP"))

        await cache.get("piper", piper_voices)
        await cache.get("kokoro", kokoro_voices)
        cache.clear("piper")

        assert cache.peek("piper") is None
        assert cache.peek("kokoro")[0].id == "jf_alpha"
