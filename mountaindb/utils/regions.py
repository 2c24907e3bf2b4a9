"""
Prefecture (region) tokenization for mountain records.

The `pref` field of a mountain is free text: "長野県", "長野・岐阜",
"Tokyo-to", "JP-13", "山梨県|静岡県" and full street addresses all occur.
This module reduces such text to a set of canonical full-form prefecture
names and compares two region descriptions as sets.

Usage:
    from mountaindb.utils.regions import tokenize, regions_match

    tokenize("長野・岐阜")             # frozenset({'長野県', '岐阜県'})
    regions_match("Tokyo", "東京都")   # True
"""

import logging
import re
import unicodedata
from functools import lru_cache
from typing import Dict, FrozenSet, Iterable, Optional

import pycountry

logger = logging.getLogger(__name__)

# ISO 3166-2 code -> (full form, Hepburn romanization)
PREFECTURES: Dict[str, tuple] = {
    "JP-01": ("北海道", "hokkaido"),
    "JP-02": ("青森県", "aomori"),
    "JP-03": ("岩手県", "iwate"),
    "JP-04": ("宮城県", "miyagi"),
    "JP-05": ("秋田県", "akita"),
    "JP-06": ("山形県", "yamagata"),
    "JP-07": ("福島県", "fukushima"),
    "JP-08": ("茨城県", "ibaraki"),
    "JP-09": ("栃木県", "tochigi"),
    "JP-10": ("群馬県", "gunma"),
    "JP-11": ("埼玉県", "saitama"),
    "JP-12": ("千葉県", "chiba"),
    "JP-13": ("東京都", "tokyo"),
    "JP-14": ("神奈川県", "kanagawa"),
    "JP-15": ("新潟県", "niigata"),
    "JP-16": ("富山県", "toyama"),
    "JP-17": ("石川県", "ishikawa"),
    "JP-18": ("福井県", "fukui"),
    "JP-19": ("山梨県", "yamanashi"),
    "JP-20": ("長野県", "nagano"),
    "JP-21": ("岐阜県", "gifu"),
    "JP-22": ("静岡県", "shizuoka"),
    "JP-23": ("愛知県", "aichi"),
    "JP-24": ("三重県", "mie"),
    "JP-25": ("滋賀県", "shiga"),
    "JP-26": ("京都府", "kyoto"),
    "JP-27": ("大阪府", "osaka"),
    "JP-28": ("兵庫県", "hyogo"),
    "JP-29": ("奈良県", "nara"),
    "JP-30": ("和歌山県", "wakayama"),
    "JP-31": ("鳥取県", "tottori"),
    "JP-32": ("島根県", "shimane"),
    "JP-33": ("岡山県", "okayama"),
    "JP-34": ("広島県", "hiroshima"),
    "JP-35": ("山口県", "yamaguchi"),
    "JP-36": ("徳島県", "tokushima"),
    "JP-37": ("香川県", "kagawa"),
    "JP-38": ("愛媛県", "ehime"),
    "JP-39": ("高知県", "kochi"),
    "JP-40": ("福岡県", "fukuoka"),
    "JP-41": ("佐賀県", "saga"),
    "JP-42": ("長崎県", "nagasaki"),
    "JP-43": ("熊本県", "kumamoto"),
    "JP-44": ("大分県", "oita"),
    "JP-45": ("宮崎県", "miyazaki"),
    "JP-46": ("鹿児島県", "kagoshima"),
    "JP-47": ("沖縄県", "okinawa"),
}

FULL_FORMS = tuple(full for full, _ in PREFECTURES.values())

# Separator characters seen in the catalog, folded to "|" before splitting
DELIMITERS = "|,、/／・･·，;；"
REGION_SEPARATOR = "・"

_DELIMITER_RE = re.compile("[" + re.escape(DELIMITERS) + r"\s　]+")
_ISO_CODE_RE = re.compile(r"^jp-?(\d{1,2})$")
_ROMAN_SUFFIX_RE = re.compile(r"(?:[\s\-]+(?:to|do|fu|ken))+$")
_ROMAN_NOISE_RE = re.compile(r"\b(?:prefecture|metropolis|pref)\b\.?")


def short_form(token: str) -> str:
    """Short form of a full prefecture name ("東京都" -> "東京").

    北海道 has no administrative suffix to remove and is returned as is.
    """
    if token == "北海道":
        return token
    if token and token[-1] in "都府県":
        return token[:-1]
    return token


SHORT_TO_FULL = {short_form(full): full for full in FULL_FORMS}

# A short form followed by anything else is a place name, e.g. 奈良田 in 山梨県
MUNICIPAL_SUFFIXES = "市町村郡"


def _fold_latin(text: str) -> str:
    """Lowercase and strip diacritics ("Tôkyô" -> "tokyo")."""
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.lower().strip()


@lru_cache(maxsize=1)
def romanized_aliases() -> Dict[str, str]:
    """Map of romanized prefecture names to full forms.

    Hepburn names from PREFECTURES are complemented with the subdivision names
    shipped by pycountry, which use a different romanization for several
    prefectures (e.g. "Hukuoka", "Sizuoka").
    """
    aliases = {roman: full for full, roman in PREFECTURES.values()}

    for subdivision in pycountry.subdivisions:
        if subdivision.country_code != "JP":
            continue
        entry = PREFECTURES.get(subdivision.code)
        if not entry:
            continue
        alias = _fold_latin(_ROMAN_SUFFIX_RE.sub("", subdivision.name))
        aliases.setdefault(alias, entry[0])

    logger.debug(f"Loaded {len(aliases)} romanized prefecture aliases")
    return aliases


def _match_fragment(fragment: str) -> FrozenSet[str]:
    nfkc = unicodedata.normalize("NFKC", fragment)

    found = {full for full in FULL_FORMS if full in nfkc}
    if found:
        return frozenset(found)

    for short, full in SHORT_TO_FULL.items():
        if nfkc == short or (nfkc.startswith(short) and nfkc[len(short)] in MUNICIPAL_SUFFIXES):
            return frozenset([full])

    latin = _fold_latin(nfkc)

    code_match = _ISO_CODE_RE.match(latin)
    if code_match:
        entry = PREFECTURES.get(f"JP-{int(code_match.group(1)):02d}")
        return frozenset([entry[0]]) if entry else frozenset()

    latin = _ROMAN_NOISE_RE.sub("", latin).strip(" -.")
    latin = _ROMAN_SUFFIX_RE.sub("", latin)
    full = romanized_aliases().get(latin)
    return frozenset([full]) if full else frozenset()


def tokenize(raw_region: Optional[str]) -> FrozenSet[str]:
    """Parse free-text region into canonical full-form prefecture tokens.

    Args:
        raw_region: Region text as stored or as read from CSV

    Returns:
        Set of full-form prefecture names; empty when nothing is recognized
    """
    if not raw_region:
        return frozenset()

    text = _DELIMITER_RE.sub("|", str(raw_region))
    tokens = set()
    for fragment in text.split("|"):
        if fragment:
            tokens |= _match_fragment(fragment)
    return frozenset(tokens)


def regions_match(incoming_region: Optional[str], corpus_region: Optional[str]) -> bool:
    """Check whether two region descriptions are consistent.

    Token sets match when one is a subset of the other, so a record listed
    under "長野県" is consistent with one listed under "長野・岐阜". As a last
    resort the raw corpus text is searched for one of the incoming tokens.
    Unknown (empty) token sets never match by subset.
    """
    incoming = tokenize(incoming_region)
    corpus = tokenize(corpus_region)

    if incoming and corpus and (incoming <= corpus or corpus <= incoming):
        return True

    raw = str(corpus_region or "")
    return any(token in raw for token in incoming)


def canonical_join(tokens: Iterable[str]) -> str:
    """Sorted tokens joined with the canonical separator."""
    return REGION_SEPARATOR.join(sorted(set(tokens)))


def normalize_region_text(raw_region: Optional[str]) -> str:
    """Fallback key for region text with no recognized prefecture."""
    if not raw_region:
        return ""
    text = unicodedata.normalize("NFKC", str(raw_region)).lower()
    return _DELIMITER_RE.sub("", text)


def region_key(raw_region: Optional[str]) -> str:
    """Canonical join of the region tokens, or the normalized raw text."""
    tokens = tokenize(raw_region)
    if tokens:
        return canonical_join(tokens)
    return normalize_region_text(raw_region)
