"""
LibreTranslate Provider

Self-hosted translation engine. Also the only engine offering
language detection and the full list of supported languages.
"""

import json
from typing import Any, Dict, List, Optional

import aiohttp

from backend.providers.base import CapabilityCallFailedError
from backend.providers.http import send_request, wrap_transport_error
from backend.providers.language import normalize_tag, primary_subtag

from .base import DetectionResult, LanguageInfo, TranslationProvider, TranslationProviderType

from utils.logger import logger


class LibreTranslateProvider(TranslationProvider):
    """LibreTranslate REST API adapter"""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)
        api_url = self.config.get("api_url") or ""
        self.api_url: str = api_url.strip().rstrip("/")
        self.api_key: Optional[str] = self.config.get("api_key")

    @property
    def provider_type(self) -> TranslationProviderType:
        return TranslationProviderType.LIBRETRANSLATE

    @property
    def display_name(self) -> str:
        return "LibreTranslate"

    @property
    def is_configured(self) -> bool:
        return bool(self.api_url)

    @property
    def supports_detection(self) -> bool:
        return True

    def _with_key(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if self.api_key:
            payload["api_key"] = self.api_key
        return payload

    @staticmethod
    def _to_code(tag: str) -> str:
        # LibreTranslate codes are bare except Chinese variants
        normalized = normalize_tag(tag)
        if normalized in ("zh_TW", "zh_HK", "zh_Hant"):
            return "zt"
        return primary_subtag(normalized).lower()

    async def translate(
        self,
        text: str,
        target_lang: str,
        source_lang: Optional[str] = None,
    ) -> str:
        """Translate text using LibreTranslate"""
        payload = self._with_key({
            "q": text,
            "source": self._to_code(source_lang) if source_lang else "auto",
            "target": self._to_code(target_lang),
            "format": "text",
        })

        try:
            response = await self._bounded(
                "translate",
                send_request(
                    "POST",
                    f"{self.api_url}/translate",
                    self.provider_id,
                    "translate",
                    json=payload,
                ),
            )
            return json.loads(response.body)["translatedText"]
        except CapabilityCallFailedError:
            raise
        except (aiohttp.ClientError, ValueError, KeyError) as e:
            raise wrap_transport_error(self.provider_id, "translate", e)

    async def detect_language(self, text: str) -> DetectionResult:
        """Detect the language of the given text"""
        try:
            response = await self._bounded(
                "detect",
                send_request(
                    "POST",
                    f"{self.api_url}/detect",
                    self.provider_id,
                    "detect",
                    json=self._with_key({"q": text}),
                ),
            )
            data = json.loads(response.body)
            # An array of candidates, best first
            detection = data[0] if isinstance(data, list) else data
            return DetectionResult(
                language=detection["language"],
                confidence=float(detection["confidence"]),
            )
        except CapabilityCallFailedError:
            raise
        except (aiohttp.ClientError, ValueError, KeyError, IndexError, TypeError) as e:
            raise wrap_transport_error(self.provider_id, "detect", e)

    async def get_languages(self) -> List[LanguageInfo]:
        """Get list of supported languages"""
        try:
            response = await self._bounded(
                "languages",
                send_request(
                    "GET",
                    f"{self.api_url}/languages",
                    self.provider_id,
                    "languages",
                ),
            )
            return [
                LanguageInfo(code=item["code"], name=item["name"])
                for item in json.loads(response.body)
            ]
        except CapabilityCallFailedError:
            raise
        except (aiohttp.ClientError, ValueError, KeyError) as e:
            raise wrap_transport_error(self.provider_id, "languages", e)

    async def _check_health(self) -> bool:
        try:
            await self._bounded(
                "health check",
                send_request(
                    "GET",
                    f"{self.api_url}/languages",
                    self.provider_id,
                    "health check",
                ),
                timeout=self.health_check_timeout,
            )
            return True
        except (CapabilityCallFailedError, aiohttp.ClientError) as e:
            logger.warning(f"LibreTranslate health check failed: {e}")
            return False
