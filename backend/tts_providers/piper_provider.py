"""
Piper TTS Provider

Self-hosted Piper HTTP server. The server exposes its installed voice
models as a dict keyed by voice id, each carrying language metadata.
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


class PiperTTSProvider(TTSProvider):
    """Piper HTTP server adapter"""

    @property
    def provider_type(self) -> TTSProviderType:
        return TTSProviderType.PIPER

    @property
    def display_name(self) -> str:
        return "Piper TTS"

    async def list_voices(self) -> List[TTSVoice]:
        """Get installed voices in the order the server reports them"""
        raw_voices = await self._fetch_catalog_json(f"{self.api_url}/voices")
        if not isinstance(raw_voices, dict):
            raise CapabilityCallFailedError(
                self.provider_id, "list voices", "unexpected voice list format"
            )

        voices = []
        for voice_id, info in raw_voices.items():
            language = (info or {}).get("language") or {}
            code = language.get("code")
            if not code:
                logger.debug(f"Skipping Piper voice without language code: {voice_id}")
                continue

            voice = TTSVoice.from_tag(
                voice_id,
                code,
                self.provider_id,
                name=language.get("name_english"),
                extra={
                    "quality": (info.get("audio") or {}).get("quality"),
                    "dataset": info.get("dataset"),
                },
            )
            # Piper reports the family explicitly; trust it over the tag
            if language.get("family"):
                voice.family = language["family"]
            voices.append(voice)

        logger.debug(f"Piper reported {len(voices)} voices")
        return voices

    async def synthesize(
        self,
        text: str,
        voice_id: str,
        options: Optional[SynthesisOptions] = None,
    ) -> SynthesisResult:
        """Generate WAV audio with the given voice"""
        options = options or SynthesisOptions()
        payload: Dict[str, Any] = {
            "text": text.strip(),
            "voice": voice_id,
            "noise_scale": options.noise_scale,
            "length_scale": options.length_scale,
            "noise_w": options.noise_w,
        }

        try:
            response = await self._bounded(
                "synthesize",
                send_request(
                    "POST",
                    self.api_url,
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
            content_type="audio/wav",
            provider=self.provider_id,
            voice_id=voice_id,
        )
