"""
Mountain name normalization.

Produces the comparison key used by the matcher and the stable identity
hasher. The key is not stored; it is recomputed whenever two names have to be
compared.

    >>> normalize("Takao-san (alt. Takaosan)")
    'takao'
    >>> normalize("御嶽山（木曽御嶽）")
    '御岳'
    >>> normalize("立山連峰")
    '立山'
"""

from __future__ import annotations

import re
import unicodedata
from typing import List, Optional

# Parenthetical aliases, e.g. "利尻山（利尻富士）"
_BRACKETED_RE = re.compile(r"[（(【\[].*?[）)】\]]")
_STRAY_BRACKETS_RE = re.compile(r"[（()）【】\[\]]")
_WHITESPACE_RE = re.compile(r"[\s　]+")
_PUNCTUATION_RE = re.compile(r"[・･·\-‐−–—ー、,。.．：:゛゜'’]")

# Input-method variants folded to one form
CHAR_UNIFICATION = {
    "ヶ": "ケ",
    "ヵ": "カ",
    "嶽": "岳",
    "峯": "峰",
}

# Generic topographic words removed from the ends of a name
GENERIC_SUFFIXES = (
    "連峰", "連山", "山脈", "岳", "山", "峰", "嶺",
    "mountains", "mountain", "peak", "dake", "take", "yama", "san", "zan",
)
GENERIC_PREFIXES = ("mount", "mt")

# Generic words are never stripped below this many characters
MIN_STEM_LENGTH = 2

_SUFFIX_RUN_RE = re.compile(
    "(?:" + "|".join(re.escape(s) for s in GENERIC_SUFFIXES) + ")+"
)
_PREFIX_RUN_RE = re.compile(
    "(?:" + "|".join(re.escape(p) for p in GENERIC_PREFIXES) + ")+"
)

# Raw-name swaps used to build query variants
_VARIANT_SWAPS = (
    ("ヶ", "ケ"),
    ("ケ", "ヶ"),
    ("嶽", "岳"),
    ("岳", "嶽"),
    ("御嶽山", "御岳山"),
    ("御岳山", "御嶽山"),
)


def _strip_generic_suffix(s: str) -> str:
    """Drop the longest trailing run of generic words that leaves a stem."""
    for stem_len in range(MIN_STEM_LENGTH, len(s)):
        if _SUFFIX_RUN_RE.fullmatch(s, stem_len):
            return s[:stem_len]
    return s


def _strip_generic_prefix(s: str) -> str:
    """Drop the longest leading run of generic words that leaves a stem."""
    for prefix_len in range(len(s) - MIN_STEM_LENGTH, 0, -1):
        if _PREFIX_RUN_RE.fullmatch(s, 0, prefix_len):
            return s[prefix_len:]
    return s


def normalize(raw_name: Optional[str]) -> str:
    """Canonicalize a free-text mountain name into a comparison key.

    Generic words are removed in one pass, as the longest run that still
    leaves MIN_STEM_LENGTH characters. That makes "立山" and "立山連峰" agree
    and keeps the function idempotent.

    Args:
        raw_name: Display name as found in the CSV or the catalog

    Returns:
        Normalized key, or "" for empty input.
    """
    if not raw_name:
        return ""

    s = unicodedata.normalize("NFKC", str(raw_name)).lower()

    s = _BRACKETED_RE.sub("", s)
    s = _STRAY_BRACKETS_RE.sub("", s)
    s = _WHITESPACE_RE.sub("", s)

    for variant, canonical in CHAR_UNIFICATION.items():
        s = s.replace(variant, canonical)

    s = _PUNCTUATION_RE.sub("", s)

    s = _strip_generic_prefix(s)
    s = _strip_generic_suffix(s)

    return s


def strip_parens(name: Optional[str]) -> str:
    """Remove parenthetical aliases but keep the name otherwise untouched."""
    return _BRACKETED_RE.sub("", str(name or "")).strip()


def char_variants(name: Optional[str]) -> List[str]:
    """Spelling variants of a raw name, original first.

    Only the substitutions that commonly differ between data sources are
    generated (ヶ/ケ, 嶽/岳 and the 御嶽山/御岳山 pair).
    """
    if not name:
        return []

    variants = [name]
    for old, new in _VARIANT_SWAPS:
        candidate = name.replace(old, new)
        if candidate and candidate not in variants:
            variants.append(candidate)
    return variants


def _katakana_to_hiragana(s: str) -> str:
    return "".join(
        chr(ord(ch) - 0x60) if "ァ" <= ch <= "ヶ" else ch
        for ch in s
    )


def normalize_kana(reading: Optional[str]) -> str:
    """Normalize a phonetic reading for containment comparison."""
    if not reading:
        return ""
    s = unicodedata.normalize("NFKC", str(reading))
    s = _WHITESPACE_RE.sub("", s)
    s = _katakana_to_hiragana(s)
    return s.replace("・", "").lower()
