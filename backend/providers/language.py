"""
Language tag helpers.

Tags follow the ``language[_REGION]`` shape (``en``, ``en_US``, ``zh_CN``).
"""

from typing import Optional

TAG_SEPARATOR = "_"

ENGLISH_FAMILY = "en"

# DeepL rejects bare codes for targets with regional variants
DEEPL_TARGET_DEFAULTS = {
    "EN": "EN-US",
    "PT": "PT-BR",
    "ZH": "ZH-HANS",
}

# Regional targets DeepL accepts as-is
DEEPL_REGIONAL_TARGETS = {"EN-US", "EN-GB", "PT-BR", "PT-PT", "ZH-HANS", "ZH-HANT"}


def normalize_tag(tag: str) -> str:
    """Trim a tag and use ``_`` as the region separator (``en-US`` -> ``en_US``)"""
    return (tag or "").strip().replace("-", TAG_SEPARATOR)


def primary_subtag(tag: str) -> str:
    """Language family of a tag: everything before the first separator"""
    return normalize_tag(tag).split(TAG_SEPARATOR, 1)[0]


def region_subtag(tag: str) -> Optional[str]:
    parts = normalize_tag(tag).split(TAG_SEPARATOR, 1)
    return parts[1] if len(parts) > 1 and parts[1] else None


def is_english(tag: str) -> bool:
    return primary_subtag(tag).lower() == ENGLISH_FAMILY


def to_deepl_code(tag: str, is_target: bool) -> str:
    """
    Map an application language tag to a DeepL language code.

    Source languages are always bare (``ES``); targets keep a supported
    region (``EN-GB``) and otherwise get DeepL's default variant.
    """
    family = primary_subtag(tag).upper()
    if not is_target:
        return family

    region = region_subtag(tag)
    if region:
        regional = f"{family}-{region.upper()}"
        if regional in DEEPL_REGIONAL_TARGETS:
            return regional
        if family == "ZH" and region.upper() in ("CN", "SG"):
            return "ZH-HANS"
        if family == "ZH" and region.upper() in ("TW", "HK"):
            return "ZH-HANT"

    return DEEPL_TARGET_DEFAULTS.get(family, family)
