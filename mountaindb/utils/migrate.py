"""
Migration of legacy (auto-generated) document ids to stable ids.

For every record whose id differs from stable_id_for(name, pref):

1. If a document with the stable id exists, the legacy record is merged into
   it with the usual non-destructive rules.
2. Otherwise the stable document is created from the legacy data.
3. The legacy id is added to `legacy_ids` on the stable document.
4. With delete_legacy, the legacy document is removed afterwards.

Running it twice is harmless: the second run finds every record already on
its stable id.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence, Tuple

from mountaindb.utils.errors import StoreError
from mountaindb.utils.merge import compute_patch, union_list
from mountaindb.utils.records import MountainRecord
from mountaindb.utils.stable_id import stable_id_for
from mountaindb.utils.store import RecordStore

logger = logging.getLogger(__name__)


@dataclass
class MigrationStats:
    scanned: int = 0
    already_stable: int = 0
    created: int = 0
    merged: int = 0
    deleted: int = 0
    failed: int = 0
    moves: List[Tuple[str, str]] = field(default_factory=list)


def select_documents(store: RecordStore, tags: Sequence[str] = ()) -> List[Dict]:
    """All documents, or those carrying any of `tags` (deduplicated by id)."""
    if not tags:
        return list(store.iter_all())

    seen = {}
    for tag in tags:
        for doc in store.array_contains("tags", tag):
            seen.setdefault(doc["id"], doc)
    return list(seen.values())


def _records(docs: Iterable[Dict]) -> List[MountainRecord]:
    records = []
    for doc in docs:
        doc = dict(doc)
        records.append(MountainRecord.from_document(doc.pop("id"), doc))
    return records


def migrate_to_stable_ids(
    store: RecordStore,
    tags: Sequence[str] = (),
    dry_run: bool = True,
    delete_legacy: bool = False,
) -> MigrationStats:
    """Move records onto stable ids.

    Args:
        store: Record store
        tags: Only migrate records carrying one of these tags
        dry_run: Log the plan without writing
        delete_legacy: Delete the legacy document after a successful move

    Returns:
        MigrationStats with counts and the (legacy_id, stable_id) moves
    """
    stats = MigrationStats()
    # stable documents as they stand after this pass's writes
    targets: Dict[str, MountainRecord] = {}

    for record in _records(select_documents(store, tags)):
        stats.scanned += 1
        new_id = stable_id_for(record.name, record.pref)
        if record.id == new_id:
            stats.already_stable += 1
            continue

        try:
            if new_id not in targets:
                existing = store.get(new_id)
                if existing:
                    targets.update({r.id: r for r in _records([existing])})

            target = targets.get(new_id)
            legacy_ids = union_list(record.legacy_ids, [record.id])

            if target is None:
                doc = record.to_document()
                doc["legacy_ids"] = legacy_ids
                logger.info(f"{record.id} -> {new_id} (create) {record.name}")
                if not dry_run:
                    store.create(doc, record_id=new_id)
                targets[new_id] = MountainRecord.from_document(new_id, doc)
                stats.created += 1
            else:
                patch = compute_patch(target, record)
                merged_ids = union_list(target.legacy_ids, legacy_ids)
                if merged_ids != target.legacy_ids:
                    patch["legacy_ids"] = merged_ids
                logger.info(f"{record.id} -> {new_id} (merge {sorted(patch)}) {record.name}")
                if patch and not dry_run:
                    store.upsert(new_id, patch)
                doc = target.to_document()
                doc.update(patch)
                targets[new_id] = MountainRecord.from_document(new_id, doc)
                stats.merged += 1

            stats.moves.append((record.id, new_id))

            if delete_legacy:
                if not dry_run:
                    store.delete(record.id)
                stats.deleted += 1
        except StoreError as e:
            logger.error(f"Failed to migrate {record.id} ({record.name}): {e}")
            stats.failed += 1

    return stats


def verify_stable_ids(store: RecordStore, tags: Sequence[str] = ()) -> Tuple[int, int, List[str]]:
    """Count records already on their stable id.

    Returns:
        (on_stable, total, ids_not_on_stable)
    """
    off = []
    records = _records(select_documents(store, tags))
    for record in records:
        if record.id != stable_id_for(record.name, record.pref):
            off.append(record.id)
    return len(records) - len(off), len(records), off
