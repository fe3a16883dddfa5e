"""
Translation Provider Base Classes

Abstract base class and data structures for translation providers.
"""

from abc import abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from backend.providers.base import ProviderAdapter, ProviderFamily


class TranslationProviderType(str, Enum):
    """Supported translation provider types, highest priority first"""
    DEEPL = "deepl"                     # Premium engine (paid API)
    LIBRETRANSLATE = "libretranslate"   # Self-hosted engine


@dataclass
class DetectionResult:
    """Language detection outcome"""
    language: str
    confidence: float


@dataclass
class LanguageInfo:
    """A language a provider can translate"""
    code: str
    name: str


class TranslationProvider(ProviderAdapter):
    """
    Abstract base class for translation providers.

    Detection is optional: providers that cannot detect languages keep the
    default implementation, which raises NotImplementedError.
    """

    @property
    @abstractmethod
    def provider_type(self) -> TranslationProviderType:
        """Return the provider type"""
        pass

    @property
    def provider_id(self) -> str:
        return self.provider_type.value

    @property
    def family(self) -> ProviderFamily:
        return ProviderFamily.TRANSLATION

    @property
    def supports_detection(self) -> bool:
        return False

    @abstractmethod
    async def translate(
        self,
        text: str,
        target_lang: str,
        source_lang: Optional[str] = None,
    ) -> str:
        """
        Translate text.

        Args:
            text: Text to translate
            target_lang: Target language tag (e.g., 'es', 'en_GB')
            source_lang: Source language tag, or None to auto-detect

        Returns:
            Translated text
        """
        pass

    async def detect_language(self, text: str) -> DetectionResult:
        raise NotImplementedError(
            f"{self.display_name} does not support language detection"
        )

    async def get_languages(self) -> List[LanguageInfo]:
        raise NotImplementedError(
            f"{self.display_name} does not list supported languages"
        )

    def get_status(self):
        status = super().get_status()
        status["supports_detection"] = self.supports_detection
        return status
