"""
Translation Providers Package

- DeepL (premium, paid API) - preferred when configured
- LibreTranslate (self-hosted) - fallback for translation, sole engine
  for language detection
"""

from .base import (
    TranslationProvider,
    TranslationProviderType,
    DetectionResult,
    LanguageInfo,
)
from .deepl_provider import DeepLProvider
from .libretranslate_provider import LibreTranslateProvider

__all__ = [
    "TranslationProvider",
    "TranslationProviderType",
    "DetectionResult",
    "LanguageInfo",
    "DeepLProvider",
    "LibreTranslateProvider",
]
