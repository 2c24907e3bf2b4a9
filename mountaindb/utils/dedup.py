"""
Explicit duplicate removal for the mountains collection.

This is the only code path that deletes documents. It is never triggered by
matching; an operator runs it (mountaindb-dedupe) on groups found by
find_duplicate_groups or taken from the ambiguous section of a
reconciliation report.

Two records are duplicates when they share the duplicate key
(normalized name, region key), i.e. the pair the stable id is derived from.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Tuple

from mountaindb.utils.errors import StoreError
from mountaindb.utils.merge import compute_patch, union_list
from mountaindb.utils.name_normalizer import normalize
from mountaindb.utils.records import MountainRecord, is_empty, is_numeric
from mountaindb.utils.regions import region_key
from mountaindb.utils.report import ReconciliationReport
from mountaindb.utils.stable_id import stable_id_for
from mountaindb.utils.store import RecordStore

logger = logging.getLogger(__name__)


@dataclass
class DuplicatePlan:
    """Keep one record, fold the others into it, delete the others."""
    keeper_id: str
    remove_ids: List[str]
    patch: Dict[str, Any] = field(default_factory=dict)
    name: str = ""


def duplicate_key(record: MountainRecord) -> Tuple[str, str]:
    return normalize(record.name), region_key(record.pref)


def score_completeness(record: MountainRecord) -> float:
    """
    Score a record by data completeness to decide which duplicate to keep.

    Args:
        record: Mountain record

    Returns:
        Completeness score (higher is better)
    """
    score = 0.0

    # Numeric coordinates matter most
    if is_numeric(record.lat) and is_numeric(record.lng) and record.lat and record.lng:
        score += 10

    score += len(record.trailheads) * 3
    score += len(record.tags) * 2

    if record.name_kana:
        score += 2
    if record.pref:
        score += 2

    score += sum(1 for v in record.extra.values() if not is_empty(v))

    return score


def select_keeper(records: List[MountainRecord]) -> Tuple[MountainRecord, List[MountainRecord]]:
    """
    Pick the record to keep: stable id first, then completeness, then id.

    Returns:
        Tuple of (keeper, list_of_duplicates)
    """
    if not records:
        raise ValueError("Cannot select keeper from empty group")

    def rank(record):
        on_stable = record.id == stable_id_for(record.name, record.pref)
        return (not on_stable, -score_completeness(record), record.id)

    ordered = sorted(records, key=rank)
    return ordered[0], ordered[1:]


def find_duplicate_groups(corpus: Iterable[MountainRecord]) -> List[List[MountainRecord]]:
    """Group records sharing the duplicate key; singletons are dropped."""
    groups = defaultdict(list)
    for record in corpus:
        key = duplicate_key(record)
        if not key[0]:
            continue
        groups[key].append(record)
    return [g for g in groups.values() if len(g) > 1]


def groups_from_report(report: ReconciliationReport, corpus) -> List[List[MountainRecord]]:
    """Turn ambiguous report samples into duplicate groups.

    Candidates of one ambiguous row are grouped by duplicate key; only
    candidates that really share a key form a group, so three "朝日岳" in
    three prefectures stay untouched.
    """
    groups = []
    seen = set()
    for outcome in report.samples("ambiguous"):
        records = [corpus.get(i) for i in outcome.target_ids]
        for group in find_duplicate_groups(r for r in records if r is not None):
            ids = frozenset(r.id for r in group)
            if ids not in seen:
                seen.add(ids)
                groups.append(group)
    return groups


def plan_duplicate_removal(groups: Iterable[List[MountainRecord]]) -> List[DuplicatePlan]:
    """Build keeper patches for each duplicate group.

    The keeper absorbs every duplicate with the non-destructive merge rules,
    and the removed ids (plus their own legacy ids) go into `legacy_ids`.
    """
    plans = []
    for group in groups:
        keeper, duplicates = select_keeper(group)
        if not duplicates:
            continue

        merged = keeper
        patch: Dict[str, Any] = {}
        legacy_ids = list(keeper.legacy_ids)

        for other in duplicates:
            step = compute_patch(merged, other)
            patch.update(step)
            doc = merged.to_document()
            doc.update(step)
            merged = MountainRecord.from_document(keeper.id, doc)
            legacy_ids = union_list(legacy_ids, other.legacy_ids + [other.id])

        if legacy_ids != keeper.legacy_ids:
            patch["legacy_ids"] = legacy_ids

        plans.append(DuplicatePlan(
            keeper_id=keeper.id,
            remove_ids=[d.id for d in duplicates],
            patch=patch,
            name=keeper.name,
        ))
    return plans


def apply_duplicate_removal(
    store: RecordStore,
    plans: Iterable[DuplicatePlan],
    dry_run: bool = True,
) -> Dict[str, int]:
    """Write keeper patches, then delete the duplicates.

    A plan whose keeper write fails deletes nothing.

    Returns:
        Counts: kept, deleted, failed
    """
    stats = {"kept": 0, "deleted": 0, "failed": 0}

    for plan in plans:
        logger.info(
            f"{plan.name}: keep {plan.keeper_id}, remove {plan.remove_ids} "
            f"(patch {sorted(plan.patch)})"
        )
        if dry_run:
            stats["kept"] += 1
            stats["deleted"] += len(plan.remove_ids)
            continue

        try:
            if plan.patch:
                store.upsert(plan.keeper_id, plan.patch)
            stats["kept"] += 1
            for record_id in plan.remove_ids:
                store.delete(record_id)
                stats["deleted"] += 1
        except StoreError as e:
            logger.error(f"Duplicate removal failed for {plan.keeper_id}: {e}")
            stats["failed"] += 1

    return stats
