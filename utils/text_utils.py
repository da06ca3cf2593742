"""
Text utilities for marketplace listing titles.

Marketplace exports mix full-width and half-width characters, decorative
brackets and inconsistent spacing. Titles are normalized before any
comparison or learned-mapping lookup.
"""

import re
import unicodedata
from typing import Optional

_BRACKETS = re.compile(r"[【】\[\]()（）「」『』〔〕<>＜＞]")
_WHITESPACE = re.compile(r"\s+")


def normalize_title(title: Optional[str]) -> str:
    """
    Normalize a listing title or product name for comparison.

    - "【Widget A】 (Set)" → "widget a set"
    - "ＷＩＤＧＥＴ　Ａ" → "widget a"
    - "   " → ""

    Args:
        title: Raw title (may contain full-width characters, brackets)

    Returns:
        Lowercase NFKC string with brackets turned into spaces and
        whitespace collapsed. Empty string for empty input.
    """
    if not title:
        return ""

    normalized = unicodedata.normalize("NFKC", title)
    normalized = normalized.lower()
    normalized = _BRACKETS.sub(" ", normalized)
    return _WHITESPACE.sub(" ", normalized).strip()


def clean_title(title: Optional[str], max_length: int = 500) -> str:
    """
    Clean a title for storage (preserves case and brackets).

    Strips surrounding whitespace and truncates to max_length.
    """
    if not title:
        return ""

    title = title.strip()
    if len(title) > max_length:
        title = title[:max_length]
    return title


def normalize_label(label: Optional[str]) -> str:
    """NFKC, uppercase, trim. Used for channel labels."""
    if not label:
        return ""
    return unicodedata.normalize("NFKC", label).upper().strip()
