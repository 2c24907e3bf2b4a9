#!/usr/bin/env python3
"""
Remove duplicate mountains (explicit, operator-invoked).

Records sharing normalized name and prefecture are grouped; per group the
record on its stable id (or the most complete one) is kept, absorbs the
others non-destructively and lists their ids in `legacy_ids`. The others are
deleted.

Usage:
    # Dry run (no changes) - always do this first
    mountaindb-dedupe

    # Actually deduplicate
    mountaindb-dedupe --write

    # Only groups that an import run reported as ambiguous
    mountaindb-import data/list.csv --no-create --report reports/run.csv
    mountaindb-dedupe --from-report-csv reports/run.csv --write
"""

import argparse
import logging
import sys
from pathlib import Path

import pandas as pd

from mountaindb.utils.config import (
    add_store_arguments,
    open_store,
    settings_from_args,
    setup_logging,
)
from mountaindb.utils.dedup import (
    apply_duplicate_removal,
    find_duplicate_groups,
    groups_from_report,
    plan_duplicate_removal,
    score_completeness,
)
from mountaindb.utils.errors import CorpusUnavailableError
from mountaindb.utils.report import RecordOutcome, ReconciliationReport
from mountaindb.utils.store import CorpusOverlay

logger = logging.getLogger(__name__)


def report_from_csv(path: Path) -> ReconciliationReport:
    """Rebuild the ambiguous section of a report written by write_csv."""
    df = pd.read_csv(path, dtype=str, keep_default_na=False, encoding="utf-8-sig")
    ambiguous = df[df["category"] == "ambiguous"]
    report = ReconciliationReport(sample_limit=max(len(ambiguous), 1))
    for _, row in ambiguous.iterrows():
        report.record("ambiguous", RecordOutcome(
            row=int(float(row.get("row") or 0)),
            name=row.get("name", ""),
            pref=row.get("pref", ""),
            target_ids=[i for i in row.get("target_ids", "").split("|") if i],
        ))
    return report


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Deduplicate mountains")
    parser.add_argument('--from-report-csv', type=Path,
                        help='Only consider ambiguous groups from this report CSV')
    add_store_arguments(parser)
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    mode = "DRY RUN" if not args.write else "LIVE"
    logger.info(f"=== Deduplication {mode} ===")

    store = open_store(settings_from_args(args))
    try:
        corpus = CorpusOverlay.load(store)
    except CorpusUnavailableError as e:
        logger.error(str(e))
        return 1

    if args.from_report_csv:
        groups = groups_from_report(report_from_csv(args.from_report_csv), corpus)
    else:
        groups = find_duplicate_groups(corpus)
    logger.info(f"Found {len(groups)} duplicate groups")

    for i, group in enumerate(groups, 1):
        logger.info(f"Group {i} ({len(group)} records):")
        for record in group:
            logger.info(f"  [{score_completeness(record):.1f}] {record.id}: {record.name} ({record.pref})")

    plans = plan_duplicate_removal(groups)
    stats = apply_duplicate_removal(store, plans, dry_run=not args.write)

    logger.info(
        f"Total: {stats['kept']} kept, {stats['deleted']} removed, {stats['failed']} failed"
    )
    if not args.write:
        logger.info("*** DRY RUN - No changes made ***")
        logger.info("Run with --write to actually deduplicate")
    return 1 if stats['failed'] else 0


if __name__ == '__main__':
    sys.exit(main())
