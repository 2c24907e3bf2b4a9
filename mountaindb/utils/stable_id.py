"""
Deterministic record identifiers.

A stable id is the SHA-1 hex digest of the normalized name and the canonical
region join, so the same mountain gets the same document id no matter which
import or operator produced it:

    stable_id("takao", "東京都")  ==  sha1("takao__東京都").hexdigest()

Collisions between distinct mountains that normalize identically are not
detected.
"""

import hashlib
from typing import Optional

from mountaindb.utils.name_normalizer import normalize
from mountaindb.utils.regions import region_key

ID_SEPARATOR = "__"


def stable_id(normalized_name: str, canonical_region_join: str) -> str:
    """Hash an already-normalized (name, region) pair."""
    key = f"{normalized_name}{ID_SEPARATOR}{canonical_region_join}"
    return hashlib.sha1(key.encode("utf-8")).hexdigest()


def stable_id_for(name: Optional[str], region: Optional[str]) -> str:
    """Stable id for a raw display name and raw region text.

    Region text without a recognized prefecture contributes its normalized
    raw form, so unknown regions still separate otherwise equal names.
    """
    return stable_id(normalize(name), region_key(region))
