"""
DeepL Provider

Premium translation engine (paid API).
DeepL has no language detection endpoint; detection always goes to
the self-hosted engine.
"""

import json
from typing import Any, Dict, List, Optional

import aiohttp

from backend.providers.base import CapabilityCallFailedError
from backend.providers.http import send_request, wrap_transport_error
from backend.providers.language import to_deepl_code

from .base import LanguageInfo, TranslationProvider, TranslationProviderType

from utils.logger import logger


class DeepLProvider(TranslationProvider):
    """DeepL REST API adapter"""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)
        self.api_key: Optional[str] = self.config.get("api_key")
        self.api_url: str = (self.config.get("api_url") or "https://api.deepl.com").rstrip("/")

    @property
    def provider_type(self) -> TranslationProviderType:
        return TranslationProviderType.DEEPL

    @property
    def display_name(self) -> str:
        return "DeepL"

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    @property
    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"DeepL-Auth-Key {self.api_key}"}

    async def translate(
        self,
        text: str,
        target_lang: str,
        source_lang: Optional[str] = None,
    ) -> str:
        """Translate text using the DeepL API"""
        payload: Dict[str, Any] = {
            "text": [text],
            "target_lang": to_deepl_code(target_lang, is_target=True),
        }
        if source_lang:
            payload["source_lang"] = to_deepl_code(source_lang, is_target=False)

        logger.debug(
            f"DeepL translation: {source_lang or 'auto'} -> {target_lang} "
            f"(mapped: {payload.get('source_lang', 'auto')} -> {payload['target_lang']})"
        )

        try:
            response = await self._bounded(
                "translate",
                send_request(
                    "POST",
                    f"{self.api_url}/v2/translate",
                    self.provider_id,
                    "translate",
                    json=payload,
                    headers=self._headers,
                ),
            )
            data = json.loads(response.body)
            return data["translations"][0]["text"]
        except CapabilityCallFailedError:
            raise
        except (aiohttp.ClientError, ValueError, KeyError, IndexError) as e:
            raise wrap_transport_error(self.provider_id, "translate", e)

    async def get_usage(self) -> Dict[str, Any]:
        """Get DeepL usage information (character count and limit)"""
        try:
            response = await self._bounded(
                "usage",
                send_request(
                    "GET",
                    f"{self.api_url}/v2/usage",
                    self.provider_id,
                    "usage",
                    headers=self._headers,
                ),
                timeout=self.health_check_timeout,
            )
            return json.loads(response.body)
        except CapabilityCallFailedError:
            raise
        except (aiohttp.ClientError, ValueError) as e:
            raise wrap_transport_error(self.provider_id, "usage", e)

    async def _check_health(self) -> bool:
        """The usage endpoint validates the key without spending characters"""
        try:
            await self.get_usage()
            return True
        except CapabilityCallFailedError as e:
            logger.warning(f"DeepL health check failed: {e}")
            return False

    async def get_languages(self) -> List[LanguageInfo]:
        """Get supported target languages"""
        try:
            response = await self._bounded(
                "languages",
                send_request(
                    "GET",
                    f"{self.api_url}/v2/languages",
                    self.provider_id,
                    "languages",
                    params={"type": "target"},
                    headers=self._headers,
                ),
            )
            return [
                LanguageInfo(code=item["language"], name=item["name"])
                for item in json.loads(response.body)
            ]
        except CapabilityCallFailedError:
            raise
        except (aiohttp.ClientError, ValueError, KeyError) as e:
            raise wrap_transport_error(self.provider_id, "languages", e)
