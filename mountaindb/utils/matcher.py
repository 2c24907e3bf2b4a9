"""Candidate matching of incoming mountain records against the corpus.

The matcher runs a cascade of strategies, most specific first, and stops at
the first stage that produces a hit:

0. explicit_id  - the incoming row names a document id that exists
1. stable_id    - the derived stable id exists in the corpus; legacy twins
                  with the same normalized name and a consistent region
                  make it MULTIPLE
2. name_region  - name variants (spelling variants, prefecture-prefixed
                  names) matched by raw or normalized name, filtered by
                  region consistency; `unique_name` accepts a single raw hit
                  when the region cannot be used
3. kana         - phonetic reading contained either way, single hit only
4. containment  - normalized name contained either way, tie-broken by exact
                  raw name (`exact_name`); disabled in strict mode

Example Usage:
    >>> from mountaindb.utils.matcher import CandidateMatcher
    >>> matcher = CandidateMatcher(strict=True)
    >>> result = matcher.find_candidates(record, overlay)
    >>> result.kind, result.strategy, result.ids
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from mountaindb.utils.name_normalizer import (
    char_variants,
    normalize,
    normalize_kana,
    strip_parens,
)
from mountaindb.utils.records import MountainRecord
from mountaindb.utils.regions import regions_match, short_form, tokenize
from mountaindb.utils.stable_id import stable_id_for

logger = logging.getLogger(__name__)

# Firestore "in" queries accept at most 10 values
MAX_NAME_VARIANTS = 10


class MatchKind(Enum):
    STABLE = "stable"
    UNIQUE = "unique"
    MULTIPLE = "multiple"
    NONE = "none"


@dataclass(frozen=True)
class MatchResult:
    """Classification of an incoming record against the corpus."""
    kind: MatchKind
    records: Tuple[MountainRecord, ...] = ()
    strategy: Optional[str] = None

    @property
    def ids(self) -> List[str]:
        return [r.id for r in self.records]

    @classmethod
    def none(cls) -> "MatchResult":
        return cls(MatchKind.NONE)


def name_variants(record: MountainRecord) -> List[str]:
    """Raw-name variants used for the exact-name stage, capped at 10.

    Order: the name as given, the name without parenthetical aliases, its
    character variants, then the name prefixed by each prefecture's short
    and full form ("長野槍ヶ岳", "長野県槍ヶ岳").
    """
    base = strip_parens(record.name)
    candidates = [record.name, base] + char_variants(base)

    for token in sorted(tokenize(record.pref)):
        candidates.append(f"{short_form(token)}{base}")
        candidates.append(f"{token}{base}")

    variants = []
    for candidate in candidates:
        if candidate and candidate not in variants:
            variants.append(candidate)
    return variants[:MAX_NAME_VARIANTS]


class CandidateMatcher:
    """Cascading matcher over a corpus overlay.

    The corpus only needs `get(record_id)` and iteration over
    `MountainRecord` objects in a stable order (see CorpusOverlay).
    """

    def __init__(self, strict: bool = False, allow_unique_name: bool = False):
        """
        Args:
            strict: Disable the normalized-name containment fallback
            allow_unique_name: Accept a single name hit whose region disagrees
        """
        self.strict = strict
        self.allow_unique_name = allow_unique_name

    def find_candidates(self, incoming: MountainRecord, corpus) -> MatchResult:
        for stage in (
            self._match_explicit_id,
            self._match_stable_id,
            self._match_name_region,
            self._match_kana,
            self._match_containment,
        ):
            result = stage(incoming, corpus)
            if result is not None:
                logger.debug(
                    f"{incoming.name!r}: {result.kind.value} via {result.strategy} "
                    f"-> {result.ids}"
                )
                return result

        logger.debug(f"{incoming.name!r}: no candidates")
        return MatchResult.none()

    def _match_explicit_id(self, incoming, corpus) -> Optional[MatchResult]:
        if not incoming.id:
            return None
        existing = corpus.get(incoming.id)
        if existing is None:
            return None
        return MatchResult(MatchKind.STABLE, (existing,), "explicit_id")

    def _match_stable_id(self, incoming, corpus) -> Optional[MatchResult]:
        existing = corpus.get(stable_id_for(incoming.name, incoming.pref))
        if existing is None:
            return None

        # Legacy twins not yet migrated onto the stable id
        key = normalize(incoming.name)
        twins = [
            record for record in corpus
            if record.id != existing.id
            and normalize(record.name) == key
            and regions_match(incoming.pref, record.pref)
        ]
        if twins:
            return MatchResult(MatchKind.MULTIPLE, (existing, *twins), "stable_id")
        return MatchResult(MatchKind.STABLE, (existing,), "stable_id")

    def _match_name_region(self, incoming, corpus) -> Optional[MatchResult]:
        variants = name_variants(incoming)
        raw_names = set(variants)
        normalized_names = {normalize(v) for v in variants} - {""}

        raw_hits = [
            record for record in corpus
            if record.name in raw_names or normalize(record.name) in normalized_names
        ]
        if not raw_hits:
            return None

        hits = [r for r in raw_hits if regions_match(incoming.pref, r.pref)]
        if len(hits) == 1:
            return MatchResult(MatchKind.UNIQUE, tuple(hits), "name_region")
        if len(hits) > 1:
            return MatchResult(MatchKind.MULTIPLE, tuple(hits), "name_region")

        if len(raw_hits) == 1 and (not incoming.pref.strip() or self.allow_unique_name):
            return MatchResult(MatchKind.UNIQUE, tuple(raw_hits), "unique_name")
        return None

    def _match_kana(self, incoming, corpus) -> Optional[MatchResult]:
        reading = normalize_kana(incoming.name_kana)
        if not reading:
            return None

        hits = []
        for record in corpus:
            other = normalize_kana(record.name_kana)
            if other and (reading in other or other in reading):
                hits.append(record)

        if len(hits) == 1:
            return MatchResult(MatchKind.UNIQUE, tuple(hits), "kana")
        return None

    def _match_containment(self, incoming, corpus) -> Optional[MatchResult]:
        if self.strict:
            return None

        key = normalize(incoming.name)
        if not key:
            return None

        hits = []
        for record in corpus:
            other = normalize(record.name)
            if other and (key in other or other in key):
                hits.append(record)

        if not hits:
            return None
        if len(hits) == 1:
            return MatchResult(MatchKind.UNIQUE, tuple(hits), "containment")

        exact = [r for r in hits if r.name == incoming.name]
        if len(exact) == 1:
            return MatchResult(MatchKind.UNIQUE, tuple(exact), "exact_name")
        return MatchResult(MatchKind.MULTIPLE, tuple(hits), "containment")
