#!/usr/bin/env python3
"""
Import (or tag) mountains from a CSV with deduplication.

Every row is matched against the existing collection; matched records get a
non-destructive merge patch, unmatched rows become new records. With
--no-create the run only tags/updates existing mountains (list tagging).

Usage:
    # Dry run (no changes) - always do this first
    mountaindb-import data/mountains.csv

    # Import with stable ids for new records
    mountaindb-import data/mountains.csv --durable-ids --write

    # Tag the 日本百名山 list onto existing records only
    mountaindb-import data/hyakumeizan.csv --append-tag 日本百名山 --no-create --strict --write
"""

import argparse
import logging
import sys
from pathlib import Path

from mountaindb.utils.config import (
    add_store_arguments,
    open_store,
    settings_from_args,
    setup_logging,
)
from mountaindb.utils.csv_loader import read_rows
from mountaindb.utils.errors import CorpusUnavailableError
from mountaindb.utils.matcher import CandidateMatcher
from mountaindb.utils.merge import MergeResolver
from mountaindb.utils.reconcile import Reconciler
from mountaindb.utils.report import ReconciliationReport

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Import mountains from CSV with deduplication")
    parser.add_argument('csv', type=Path, help='Input CSV file')
    parser.add_argument('--append-tag', action='append', default=[], metavar='TAG',
                        help='Tag added to every row (repeatable)')
    parser.add_argument('--strict', action='store_true',
                        help='Disable the name-containment fallback match')
    parser.add_argument('--allow-unique-name-match', action='store_true',
                        help='Accept a single name match even if the prefecture disagrees')
    parser.add_argument('--durable-ids', action='store_true',
                        help='Use stable ids for newly created records')
    parser.add_argument('--no-create', action='store_true',
                        help='Never create records; report unmatched rows as not found')
    parser.add_argument('--report', type=Path, help='Write report samples to this CSV')
    return add_store_arguments(parser)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    settings = settings_from_args(args)
    dry_run = not args.write
    logger.info(f"=== Mountain import {'DRY RUN' if dry_run else 'LIVE'} ===")

    rows = read_rows(args.csv)
    reconciler = Reconciler(
        open_store(settings),
        matcher=CandidateMatcher(
            strict=args.strict,
            allow_unique_name=args.allow_unique_name_match,
        ),
        resolver=MergeResolver(
            durable_ids=args.durable_ids,
            create_missing=not args.no_create,
        ),
        report=ReconciliationReport(sample_limit=settings.sample_limit),
        dry_run=dry_run,
        append_tags=args.append_tag,
    )

    try:
        report = reconciler.run(rows)
    except CorpusUnavailableError as e:
        logger.error(str(e))
        return 1

    report.log_summary(logger)
    if args.report:
        report.write_csv(args.report)

    if dry_run:
        logger.info("*** DRY RUN - No changes made ***")
        logger.info("Run with --write to apply")
    return 0


if __name__ == '__main__':
    sys.exit(main())
