"""
One reconciliation pass: match, merge and (optionally) write a batch.

Rows are processed strictly in input order against a CorpusOverlay, so a
mountain created by row 3 is found by row 40 even in dry-run mode. Store
errors are counted per row and never stop the batch; only an unreadable
corpus aborts (CorpusUnavailableError from CorpusOverlay.load).

Usage:
    from mountaindb.utils.reconcile import Reconciler

    reconciler = Reconciler(store, dry_run=False)
    report = reconciler.run(rows)
    report.log_summary()
"""

import logging
from dataclasses import replace
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from mountaindb.utils.errors import MalformedRecordError, StoreError
from mountaindb.utils.matcher import CandidateMatcher
from mountaindb.utils.merge import (
    Create,
    FlagAmbiguous,
    FlagUnresolved,
    MergeResolver,
    Update,
    UpdateMultiple,
    attachment_defects,
    coordinate_defects,
)
from mountaindb.utils.records import MountainRecord
from mountaindb.utils.report import RecordOutcome, ReconciliationReport
from mountaindb.utils.store import CorpusOverlay, RecordStore

logger = logging.getLogger(__name__)

Row = Union[MountainRecord, Mapping[str, Any]]


class Reconciler:
    """Runs the matcher and resolver over incoming rows.

    Args:
        store: Record store to read the corpus from and write to
        matcher: CandidateMatcher (default: non-strict)
        resolver: MergeResolver (default: opaque ids, create missing)
        report: Report to accumulate into (default: new report)
        dry_run: Compute and report actions without writing
        append_tags: Tags added to every incoming row
    """

    def __init__(
        self,
        store: RecordStore,
        matcher: Optional[CandidateMatcher] = None,
        resolver: Optional[MergeResolver] = None,
        report: Optional[ReconciliationReport] = None,
        dry_run: bool = True,
        append_tags: Sequence[str] = (),
    ):
        self.store = store
        self.matcher = matcher or CandidateMatcher()
        self.resolver = resolver or MergeResolver()
        self.report = report or ReconciliationReport()
        self.dry_run = dry_run
        self.append_tags = list(append_tags)
        self.overlay: Optional[CorpusOverlay] = None

    def run(self, rows: Iterable[Row]) -> ReconciliationReport:
        if self.overlay is None:
            self.overlay = CorpusOverlay.load(self.store)

        mode = "DRY RUN" if self.dry_run else "WRITE"
        logger.info(f"Reconciling against {len(self.overlay)} records ({mode})")

        for index, row in enumerate(rows, start=1):
            self.process(index, row)

        return self.report

    def _to_record(self, row: Row) -> MountainRecord:
        if isinstance(row, MountainRecord):
            if not (row.name or "").strip():
                raise MalformedRecordError("Record has no name")
            if self.append_tags:
                return replace(row, tags=list(dict.fromkeys(list(row.tags) + self.append_tags)))
            return row
        return MountainRecord.from_row(row, append_tags=self.append_tags)

    def process(self, index: int, row: Row) -> None:
        """Reconcile one row and record its outcome."""
        try:
            record = self._to_record(row)
        except MalformedRecordError as e:
            logger.warning(f"Row {index}: skipped malformed row ({e})")
            self.report.record("malformed", RecordOutcome(row=index, name="", detail=str(e)))
            return

        outcome = RecordOutcome(row=index, name=record.name, pref=record.pref)

        match = self.matcher.find_candidates(record, self.overlay)
        action = self.resolver.resolve(record, match, self.overlay)
        outcome.extra["strategy"] = match.strategy or ""

        for target in match.records:
            for defect in coordinate_defects(target, record) + attachment_defects(target):
                logger.warning(
                    f"{target.id} ({target.name}): {defect['field']} has the wrong type "
                    f"{defect['value']!r}"
                )
                self.report.add_defect(defect)

        try:
            category = self._apply(action, outcome)
        except StoreError as e:
            logger.error(f"Row {index} ({record.name}): store error: {e}")
            outcome.detail = str(e)
            category = "failed"

        self.report.record(category, outcome)

    def _apply(self, action, outcome: RecordOutcome) -> str:
        if isinstance(action, Create):
            outcome.target_ids = (action.record_id,)
            outcome.patch_fields = tuple(action.patch)
            if not self.dry_run:
                self.store.create(action.patch, record_id=action.record_id)
            self.overlay.add(action.record_id, action.patch)
            logger.info(f"Row {outcome.row}: create {action.record_id} {outcome.name}")
            return "created"

        if isinstance(action, Update):
            outcome.target_ids = (action.target_id,)
            if not action.patch:
                logger.debug(f"Row {outcome.row}: {action.target_id} already up to date")
                return "skipped_duplicate"
            outcome.patch_fields = tuple(action.patch)
            if not self.dry_run:
                self.store.upsert(action.target_id, action.patch)
            self.overlay.apply(action.target_id, action.patch)
            logger.info(
                f"Row {outcome.row}: update {action.target_id} "
                f"({', '.join(action.patch)})"
            )
            return "updated"

        if isinstance(action, UpdateMultiple):
            outcome.target_ids = action.target_ids
            if action.is_noop:
                return "skipped_duplicate"
            fields = set()
            for target_id in action.target_ids:
                patch = action.patches.get(target_id)
                if not patch:
                    continue
                fields.update(patch)
                if not self.dry_run:
                    self.store.upsert(target_id, patch)
                self.overlay.apply(target_id, patch)
            outcome.patch_fields = tuple(sorted(fields))
            outcome.detail = f"applied to {len(action.target_ids)} records"
            logger.info(
                f"Row {outcome.row}: update {len(action.target_ids)} records "
                f"{list(action.target_ids)}"
            )
            return "updated"

        if isinstance(action, FlagAmbiguous):
            outcome.target_ids = action.candidate_ids
            outcome.detail = f"{len(action.candidate_ids)} candidates via {action.strategy}"
            logger.warning(
                f"Row {outcome.row}: ambiguous {outcome.name} -> {list(action.candidate_ids)}"
            )
            return "ambiguous"

        if isinstance(action, FlagUnresolved):
            outcome.detail = action.reason
            logger.info(f"Row {outcome.row}: not found {outcome.name} ({outcome.pref})")
            return "not_found"

        raise TypeError(f"Unknown action: {action!r}")
