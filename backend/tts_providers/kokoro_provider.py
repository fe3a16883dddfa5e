"""
Kokoro TTS Provider

Self-hosted Kokoro server with an OpenAI-compatible speech API.
Voice ids encode language and gender in their prefix
(``af_heart`` = American English, female).
"""

from typing import Optional, List, Dict, Any

import aiohttp

from backend.providers.base import CapabilityCallFailedError
from backend.providers.http import send_request, wrap_transport_error

from .base import (
    TTSProvider,
    TTSProviderType,
    TTSVoice,
    SynthesisOptions,
    SynthesisResult,
)

from utils.logger import logger


# Language tag for each voice-id prefix letter
KOKORO_LANGUAGE_PREFIXES = {
    "a": "en_US",
    "b": "en_GB",
    "z": "zh_CN",
    "j": "ja_JP",
    "h": "hi_IN",
    "e": "es_ES",
    "p": "pt_BR",
    "f": "fr_FR",
    "i": "it_IT",
}

KOKORO_GENDERS = {
    "f": "Female",
    "m": "Male",
}


def parse_kokoro_voice(voice_id: str, provider: str = TTSProviderType.KOKORO.value) -> TTSVoice:
    """
    Derive language and gender from a Kokoro voice id.

    Ids with an unknown prefix keep an empty language so they only
    match as a last resort.
    """
    prefix, _, _ = voice_id.partition("_")
    tag = KOKORO_LANGUAGE_PREFIXES.get(prefix[:1], "") if len(prefix) == 2 else ""
    gender = KOKORO_GENDERS.get(prefix[1:2]) if len(prefix) == 2 else None
    return TTSVoice.from_tag(voice_id, tag, provider, gender=gender, name=voice_id)


class KokoroTTSProvider(TTSProvider):
    """Kokoro HTTP server adapter"""

    @property
    def provider_type(self) -> TTSProviderType:
        return TTSProviderType.KOKORO

    @property
    def display_name(self) -> str:
        return "Kokoro TTS"

    async def list_voices(self) -> List[TTSVoice]:
        """Get available voices in the order the server reports them"""
        data = await self._fetch_catalog_json(f"{self.api_url}/v1/audio/voices")
        raw_voices = data.get("voices") if isinstance(data, dict) else None
        if not isinstance(raw_voices, list):
            raise CapabilityCallFailedError(
                self.provider_id, "list voices", "unexpected voice list format"
            )

        voices = [parse_kokoro_voice(voice_id, self.provider_id) for voice_id in raw_voices]
        logger.debug(f"Kokoro reported {len(voices)} voices")
        return voices

    async def synthesize(
        self,
        text: str,
        voice_id: str,
        options: Optional[SynthesisOptions] = None,
    ) -> SynthesisResult:
        """Generate audio in the requested format with the given voice"""
        options = options or SynthesisOptions()
        payload: Dict[str, Any] = {
            "model": options.model,
            "input": text.strip(),
            "voice": voice_id,
            "response_format": options.response_format,
            "speed": options.speed,
            "volume_multiplier": options.volume_multiplier,
        }

        try:
            response = await self._bounded(
                "synthesize",
                send_request(
                    "POST",
                    f"{self.api_url}/v1/audio/speech",
                    self.provider_id,
                    "synthesize",
                    json=payload,
                ),
            )
        except CapabilityCallFailedError:
            raise
        except aiohttp.ClientError as e:
            raise wrap_transport_error(self.provider_id, "synthesize", e)

        return SynthesisResult(
            audio_bytes=response.body,
            content_type=response.content_type or "audio/wav",
            provider=self.provider_id,
            voice_id=voice_id,
            metadata={"response_format": options.response_format},
        )
