# -*- coding: utf-8 -*-
"""
User-facing text catalog.
No hardcoded UI strings in handler logic.

Resolution:
- Unknown language -> DEFAULT_LANGUAGE
- Missing key -> the key itself (never crash)
"""

import logging

from . import en

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "en"

LANGUAGES = {
    "en": en.LANG,
}


def get_text(language: str, key: str, **kwargs) -> str:
    """
    Get text for key in the given language.

    Args:
        language: Language code
        key: Dot-separated key (e.g. verify.success)
        **kwargs: Format placeholders

    Returns:
        Formatted string. Never raises for a missing key.
    """
    lang_dict = LANGUAGES.get(language, LANGUAGES[DEFAULT_LANGUAGE])
    text = lang_dict.get(key)

    if text is None:
        logger.error("I18N missing key: %s", key)
        return key

    if kwargs:
        return text.format(**kwargs)
    return text


__all__ = ["get_text", "LANGUAGES", "DEFAULT_LANGUAGE"]
