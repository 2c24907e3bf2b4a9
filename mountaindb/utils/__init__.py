"""Utilities for the mountains catalog.

This package provides:
- Name normalization and prefecture tokenization
- Stable (hash-derived) record ids
- Candidate matching and non-destructive merging
- Reconciliation passes with report
- Record stores (memory, JSON directory, Firestore)
- Maintenance operations (id migration, coordinates, tags, duplicates, OSM)

The Firestore store is not imported here; use
mountaindb.utils.firestore_store directly.
"""

from .errors import CorpusUnavailableError, MalformedRecordError, StoreError
from .matcher import CandidateMatcher, MatchKind, MatchResult
from .merge import (
    Create,
    FlagAmbiguous,
    FlagUnresolved,
    MergeResolver,
    Update,
    UpdateMultiple,
    compute_patch,
    merge_attachments,
)
from .name_normalizer import normalize, normalize_kana
from .reconcile import Reconciler
from .records import MountainRecord
from .regions import canonical_join, regions_match, tokenize
from .report import ReconciliationReport, RecordOutcome
from .stable_id import stable_id, stable_id_for
from .store import CorpusOverlay, JsonRecordStore, MemoryRecordStore, RecordStore

__all__ = [
    'CorpusUnavailableError',
    'MalformedRecordError',
    'StoreError',
    'CandidateMatcher',
    'MatchKind',
    'MatchResult',
    'Create',
    'FlagAmbiguous',
    'FlagUnresolved',
    'MergeResolver',
    'Update',
    'UpdateMultiple',
    'compute_patch',
    'merge_attachments',
    'normalize',
    'normalize_kana',
    'Reconciler',
    'MountainRecord',
    'canonical_join',
    'regions_match',
    'tokenize',
    'ReconciliationReport',
    'RecordOutcome',
    'stable_id',
    'stable_id_for',
    'CorpusOverlay',
    'JsonRecordStore',
    'MemoryRecordStore',
    'RecordStore',
]
