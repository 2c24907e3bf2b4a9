#!/usr/bin/env python3
"""
Import trailheads from CSV onto existing mountains.

One CSV line per trailhead, columns:
    mountain_id (optional), mountain_name, pref,
    trailhead_name, lat, lng, access, parking, toilet, notes

Trailheads are attached to the matched mountain; an existing trailhead with
the same name or near-equal coordinates only gets its gaps filled. Mountains
are never created by this tool.

Usage:
    mountaindb-trailheads data/trailheads.csv
    mountaindb-trailheads data/trailheads.csv --write
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
from mountaindb.utils.csv_loader import read_rows, trailhead_rows
from mountaindb.utils.errors import CorpusUnavailableError
from mountaindb.utils.matcher import CandidateMatcher
from mountaindb.utils.merge import MergeResolver
from mountaindb.utils.reconcile import Reconciler
from mountaindb.utils.report import ReconciliationReport

logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Attach trailheads from CSV to mountains")
    parser.add_argument('csv', type=Path, help='Trailhead CSV file')
    parser.add_argument('--report', type=Path, help='Write report samples to this CSV')
    add_store_arguments(parser)
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    settings = settings_from_args(args)
    dry_run = not args.write

    rows = trailhead_rows(read_rows(args.csv))
    logger.info(f"{len(rows)} mountains referenced")

    reconciler = Reconciler(
        open_store(settings),
        matcher=CandidateMatcher(strict=True),
        resolver=MergeResolver(create_missing=False),
        report=ReconciliationReport(sample_limit=settings.sample_limit),
        dry_run=dry_run,
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
    return 0


if __name__ == '__main__':
    sys.exit(main())
