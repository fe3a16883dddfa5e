"""
TTS Provider Base Classes

Abstract base class and data structures for TTS providers.
All providers must implement this interface.
"""

import asyncio
import json
from abc import abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, Any

import aiohttp
from tenacity import (
    AsyncRetrying,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from backend.providers.base import CapabilityCallFailedError, ProviderAdapter, ProviderFamily
from backend.providers.http import send_request, wrap_transport_error
from backend.providers.language import normalize_tag, primary_subtag, region_subtag

from utils.logger import logger


# Transport failures worth another attempt when fetching a catalog
RETRYABLE_ERRORS = (
    aiohttp.ServerTimeoutError,
    aiohttp.ClientConnectorError,
    aiohttp.ServerDisconnectedError,
    asyncio.TimeoutError,
    ConnectionError,
)


class TTSProviderType(str, Enum):
    """Supported TTS provider types"""
    PIPER = "piper"             # Piper TTS (self-hosted HTTP server)
    KOKORO = "kokoro"           # Kokoro TTS (OpenAI-compatible HTTP server)


@dataclass
class TTSVoice:
    """Voice information"""
    id: str                     # Unique voice identifier
    language: str               # Full tag (e.g., 'en_US')
    family: str                 # Primary subtag (e.g., 'en')
    provider: str               # Provider type
    region: Optional[str] = None
    gender: Optional[str] = None
    name: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_tag(cls, voice_id: str, tag: str, provider: str, **kwargs) -> "TTSVoice":
        """Build a voice whose family and region are derived from its tag"""
        tag = normalize_tag(tag)
        return cls(
            id=voice_id,
            language=tag,
            family=primary_subtag(tag),
            region=region_subtag(tag),
            provider=provider,
            **kwargs,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "language": self.language,
            "family": self.family,
            "region": self.region,
            "gender": self.gender,
            "name": self.name,
            "provider": self.provider,
        }


@dataclass
class SynthesisOptions:
    """
    Per-request synthesis options.

    ``provider`` forces an engine ("piper", "kokoro"); None or "auto" uses
    language affinity. ``voice`` is used verbatim when the serving engine
    lists it. The remaining fields are engine-specific.
    """
    provider: Optional[str] = None
    voice: Optional[str] = None
    # Piper
    noise_scale: float = 0.667
    length_scale: float = 1.0
    noise_w: float = 0.8
    # Kokoro
    model: str = "kokoro"
    response_format: str = "wav"
    speed: float = 1.0
    volume_multiplier: float = 1.0


@dataclass
class SynthesisResult:
    """Result of TTS generation"""
    audio_bytes: bytes
    content_type: str = "audio/wav"
    provider: str = ""
    voice_id: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def length(self) -> int:
        return len(self.audio_bytes)


class TTSProvider(ProviderAdapter):
    """
    Abstract base class for TTS providers.

    All TTS providers must implement this interface to be usable
    in the multi-provider TTS system.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)
        api_url = self.config.get("api_url") or ""
        self.api_url: str = api_url.strip().rstrip("/")
        self.fetch_attempts = int(self.config.get("fetch_attempts", 3))
        self.retry_wait = float(self.config.get("retry_wait", 1.0))

    @property
    def is_configured(self) -> bool:
        return bool(self.api_url)

    @property
    @abstractmethod
    def provider_type(self) -> TTSProviderType:
        """Return the provider type"""
        pass

    @property
    def provider_id(self) -> str:
        return self.provider_type.value

    @property
    def family(self) -> ProviderFamily:
        return ProviderFamily.SPEECH

    @abstractmethod
    async def list_voices(self) -> List[TTSVoice]:
        """
        Fetch the engine's voice catalog.

        Returns:
            Voices in the order the engine reports them
        """
        pass

    @abstractmethod
    async def synthesize(
        self,
        text: str,
        voice_id: str,
        options: Optional[SynthesisOptions] = None,
    ) -> SynthesisResult:
        """
        Generate audio from text.

        Args:
            text: Text to synthesize
            voice_id: Voice identifier from this engine's catalog
            options: Engine-specific tuning

        Returns:
            SynthesisResult with the audio bytes and content type
        """
        pass

    async def _fetch_catalog_json(self, url: str) -> Any:
        """
        GET a voice catalog, retrying transient connection failures.

        Raises:
            CapabilityCallFailedError: Once retries are exhausted, or on a
                non-2xx status or unparseable body
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.fetch_attempts),
            wait=wait_exponential(
                multiplier=self.retry_wait, min=self.retry_wait, max=10 * self.retry_wait
            ),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        logger.debug(
                            f"Retrying {self.display_name} voice fetch "
                            f"(attempt {attempt.retry_state.attempt_number})"
                        )
                    response = await send_request(
                        "GET", url, self.provider_id, "list voices", timeout=self.timeout
                    )
            return json.loads(response.body)
        except CapabilityCallFailedError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, ConnectionError, ValueError) as e:
            raise wrap_transport_error(self.provider_id, "list voices", e)

    async def _check_health(self) -> bool:
        """An engine that can list its voices is considered usable"""
        await self._bounded(
            "health check", self.list_voices(), timeout=self.health_check_timeout
        )
        return True
