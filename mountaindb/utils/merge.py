"""
Merge resolution for matched mountain records.

Turns a MatchResult into one action and computes non-destructive patches:

- Scalars are filled only when the existing value is empty, zero, false or
  of the wrong type (text coordinates).
- Set-like fields are unioned; pipe-joined strings are split on the way.
- Trailheads are merged by name or near-equal coordinates, gap-filling only.
  Stored trailheads of any other shape are left alone and reported.

A patch never clears a non-empty existing field.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Tuple

from mountaindb.utils.matcher import MatchKind, MatchResult
from mountaindb.utils.records import (
    NUMERIC_FIELDS,
    SET_FIELDS,
    MountainRecord,
    is_attachment_list,
    is_empty,
    is_numeric,
    split_list,
)
from mountaindb.utils.stable_id import stable_id_for

logger = logging.getLogger(__name__)

# Degrees; about 11 m at Japanese latitudes
ATTACHMENT_TOLERANCE = 1e-4

COORDINATE_FIELDS = ("lat", "lng")


@dataclass
class Create:
    record_id: str
    patch: Dict[str, Any]


@dataclass
class Update:
    target_id: str
    patch: Dict[str, Any]


@dataclass
class UpdateMultiple:
    """Same merge rules applied to every target; one patch per target."""
    target_ids: Tuple[str, ...]
    patches: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @property
    def is_noop(self) -> bool:
        return not any(self.patches.values())


@dataclass
class FlagAmbiguous:
    candidate_ids: Tuple[str, ...]
    strategy: str = ""


@dataclass
class FlagUnresolved:
    reason: str


def union_list(existing: Any, incoming: Any) -> List[Any]:
    """Duplicate-free union, existing order first."""
    merged = split_list(existing)
    for item in split_list(incoming):
        if item not in merged:
            merged.append(item)
    return merged


def _same_place(a: Dict[str, Any], b: Dict[str, Any], tolerance: float) -> bool:
    if a.get("name") and a.get("name") == b.get("name"):
        return True
    coords = (a.get("lat"), a.get("lng"), b.get("lat"), b.get("lng"))
    if not all(is_numeric(c) for c in coords):
        return False
    return (
        abs(coords[0] - coords[2]) <= tolerance
        and abs(coords[1] - coords[3]) <= tolerance
    )


def merge_attachments(
    existing: Iterable[Dict[str, Any]],
    incoming: Iterable[Dict[str, Any]],
    tolerance: float = ATTACHMENT_TOLERANCE,
) -> Tuple[List[Dict[str, Any]], bool]:
    """Merge trailhead sub-records.

    Args:
        existing: Trailheads already on the record
        incoming: Trailheads to add
        tolerance: Max lat/lng difference in degrees for a coordinate match

    Returns:
        (merged list, changed flag). Existing entries keep their non-empty
        values; matching incoming entries only fill gaps.
    """
    merged = [dict(t) for t in existing or []]
    changed = False

    for new in incoming or []:
        target = next((t for t in merged if _same_place(t, new, tolerance)), None)
        if target is None:
            merged.append(dict(new))
            changed = True
            continue
        for key, value in new.items():
            if not is_empty(value) and is_empty(target.get(key)):
                target[key] = value
                changed = True

    return merged, changed


def _needs_fill(key: str, current: Any) -> bool:
    if key in NUMERIC_FIELDS and current is not None and not is_numeric(current):
        return True
    return is_empty(current)


def compute_patch(existing: MountainRecord, incoming: MountainRecord) -> Dict[str, Any]:
    """Fields to write onto `existing` so it absorbs `incoming`.

    Returns:
        Patch dict (empty when the existing record already has everything)
    """
    current = existing.to_document()
    patch: Dict[str, Any] = {}

    for key, value in incoming.to_document().items():
        if key in SET_FIELDS:
            merged = union_list(current.get(key), value)
            if merged != current.get(key):
                patch[key] = merged
        elif key == "trailheads":
            if existing.has_malformed_trailheads or not is_attachment_list(value):
                continue
            merged, changed = merge_attachments(current.get(key, []), value)
            if changed:
                patch[key] = merged
        elif not is_empty(value) and _needs_fill(key, current.get(key)):
            patch[key] = value

    return patch


def coordinate_defects(existing: MountainRecord, incoming: MountainRecord) -> List[Dict[str, Any]]:
    """Text-typed coordinates on `existing` that `incoming` cannot repair."""
    defects = []
    for key in COORDINATE_FIELDS:
        value = getattr(existing, key)
        if value is None or is_numeric(value):
            continue
        if is_numeric(getattr(incoming, key)):
            continue
        defects.append({
            "id": existing.id,
            "name": existing.name,
            "field": key,
            "value": value,
            "kind": "TypeMismatch",
        })
    return defects


def attachment_defects(existing: MountainRecord) -> List[Dict[str, Any]]:
    """Stored `trailheads` on `existing` that are not a list of objects."""
    if not existing.has_malformed_trailheads:
        return []
    return [{
        "id": existing.id,
        "name": existing.name,
        "field": "trailheads",
        "value": existing.extra["trailheads"],
        "kind": "TypeMismatch",
    }]


def new_opaque_id() -> str:
    """Random 20-character id in the style of Firestore auto ids."""
    return uuid.uuid4().hex[:20]


class MergeResolver:
    """Decide what to do with an incoming record given its match result."""

    def __init__(self, durable_ids: bool = False, create_missing: bool = True):
        """
        Args:
            durable_ids: Use the stable id as document id on create
            create_missing: Create unmatched records (False for tagging runs)
        """
        self.durable_ids = durable_ids
        self.create_missing = create_missing

    def resolve(self, incoming: MountainRecord, match: MatchResult, corpus=None):
        if match.kind in (MatchKind.STABLE, MatchKind.UNIQUE):
            target = match.records[0]
            return Update(target.id, compute_patch(target, incoming))

        if match.kind == MatchKind.MULTIPLE:
            if match.strategy in ("stable_id", "name_region"):
                return UpdateMultiple(
                    tuple(match.ids),
                    {r.id: compute_patch(r, incoming) for r in match.records},
                )
            return FlagAmbiguous(tuple(match.ids), match.strategy or "")

        if not self.create_missing:
            return FlagUnresolved("no matching record")

        if self.durable_ids:
            record_id = stable_id_for(incoming.name, incoming.pref)
        else:
            record_id = new_opaque_id()

        return Create(record_id, incoming.to_document())
