"""Tag set cleanup."""

import logging
from typing import Any, Dict, Iterable, List, Mapping

from mountaindb.utils.records import split_list

logger = logging.getLogger(__name__)

HYAKUMEIZAN = "日本百名山"
NIHYAKUMEIZAN = "日本二百名山"
SANBYAKUMEIZAN = "日本三百名山"

# tag -> tags it supersedes on the same record
DEFAULT_EXCLUSIVE: Mapping[str, tuple] = {
    HYAKUMEIZAN: (NIHYAKUMEIZAN,),
}


def clean_tags(tags: Any, exclusive: Mapping[str, Iterable[str]] = DEFAULT_EXCLUSIVE) -> List[str]:
    """Normalize a tag value to a duplicate-free list.

    Pipe-joined strings are split and superseded tags are dropped, e.g. a
    mountain on the 日本百名山 list is not also tagged 日本二百名山.
    """
    cleaned = split_list(tags)
    dropped = set()
    for tag, superseded in exclusive.items():
        if tag in cleaned:
            dropped.update(superseded)
    return [t for t in cleaned if t not in dropped]


def tag_fix_patches(
    documents: Iterable[Dict[str, Any]],
    exclusive: Mapping[str, Iterable[str]] = DEFAULT_EXCLUSIVE,
) -> Dict[str, Dict[str, List[str]]]:
    """Patches for stored documents whose `tags` differ from the cleaned form.

    Works on raw documents (as returned by RecordStore.iter_all) so that
    pipe-joined strings and duplicate entries are visible.

    Returns:
        document id -> {"tags": cleaned list}
    """
    patches = {}
    for doc in documents:
        raw = doc.get("tags")
        if raw is None:
            continue
        cleaned = clean_tags(raw, exclusive)
        if cleaned != raw:
            logger.debug(f"{doc['id']}: {raw!r} -> {cleaned!r}")
            patches[doc["id"]] = {"tags": cleaned}
    return patches
