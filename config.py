"""Configuration management using Pydantic settings"""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


DEEPL_FREE_API_URL = "https://api-free.deepl.com"
DEEPL_PRO_API_URL = "https://api.deepl.com"


def _is_set(value: Optional[str]) -> bool:
    return bool(value and value.strip())


class Settings(BaseSettings):
    """Application settings"""

    # Translation providers
    # DeepL is the premium engine, LibreTranslate the self-hosted one
    DEEPL_API_KEY: Optional[str] = None
    DEEPL_API_URL: Optional[str] = None
    LIBRETRANSLATE_API: Optional[str] = None
    LIBRETRANSLATE_API_KEY: Optional[str] = None

    # Speech synthesis engines
    PIPER_API: Optional[str] = None
    KOKORO_API: Optional[str] = None

    # Provider selection cache
    PROVIDER_CACHE_TTL_SECONDS: float = Field(default=3600.0, gt=0)
    PROVIDER_INITIAL_CACHE_TTL_SECONDS: float = Field(default=600.0, gt=0)
    PROVIDER_BACKGROUND_CHECK_DELAY_SECONDS: float = Field(default=5.0, ge=0)

    # Timeouts applied at the adapter boundary
    PROVIDER_HEALTH_CHECK_TIMEOUT_SECONDS: float = Field(default=5.0, gt=0)
    TRANSLATION_TIMEOUT_SECONDS: float = Field(default=30.0, gt=0)
    TTS_TIMEOUT_SECONDS: float = Field(default=60.0, gt=0)

    # Voice catalogs
    VOICE_CATALOG_FETCH_ATTEMPTS: int = Field(default=3, ge=1)

    # Languages (primary subtag) that prefer Kokoro over Piper
    KOKORO_PREFERRED_LANGUAGES: List[str] = ["ja", "ko", "zh"]

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def deepl_configured(self) -> bool:
        return _is_set(self.DEEPL_API_KEY)

    @property
    def libretranslate_configured(self) -> bool:
        return _is_set(self.LIBRETRANSLATE_API)

    @property
    def piper_configured(self) -> bool:
        return _is_set(self.PIPER_API)

    @property
    def kokoro_configured(self) -> bool:
        return _is_set(self.KOKORO_API)

    def get_deepl_api_url(self) -> str:
        """
        Resolve the DeepL endpoint.

        Free-tier keys carry a ``:fx`` suffix and must use the free API host.
        """
        if _is_set(self.DEEPL_API_URL):
            return self.DEEPL_API_URL.rstrip("/")
        if self.DEEPL_API_KEY and self.DEEPL_API_KEY.strip().endswith(":fx"):
            return DEEPL_FREE_API_URL
        return DEEPL_PRO_API_URL

    def get_provider_info(self) -> dict:
        """Which backends are configured, for diagnostics"""
        return {
            "deepl": self.deepl_configured,
            "libretranslate": self.libretranslate_configured,
            "piper": self.piper_configured,
            "kokoro": self.kokoro_configured,
        }


# Global settings instance
settings = Settings()
