#!/usr/bin/env python3
"""
Find and repair coordinate defects.

Text coordinates that parse as numbers are rewritten as numbers; everything
else (missing, zero, unparseable, outside Japan) is exported for manual
review.

Usage:
    mountaindb-fix-coords --export reports/bad_coords.csv
    mountaindb-fix-coords --write
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
from mountaindb.utils.coords import (
    coordinate_fix_patches,
    export_defects,
    find_coordinate_defects,
)
from mountaindb.utils.errors import CorpusUnavailableError, StoreError
from mountaindb.utils.store import CorpusOverlay

logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Repair text-typed coordinates")
    parser.add_argument('--export', type=Path, help='Write remaining defects to this CSV')
    add_store_arguments(parser)
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    store = open_store(settings_from_args(args))
    try:
        corpus = CorpusOverlay.load(store)
    except CorpusUnavailableError as e:
        logger.error(str(e))
        return 1

    patches = coordinate_fix_patches(corpus)
    logger.info(f"{len(patches)} records with numeric text coordinates")

    failed = 0
    for record_id, patch in patches.items():
        logger.info(f"  {record_id}: {patch}")
        try:
            if args.write:
                store.upsert(record_id, patch)
            corpus.apply(record_id, patch)
        except StoreError as e:
            logger.error(f"  {record_id}: {e}")
            failed += 1

    defects = find_coordinate_defects(corpus)
    logger.info(f"{len(defects)} records still need manual coordinates")
    if args.export:
        export_defects(defects, args.export)

    if not args.write:
        logger.info("*** DRY RUN - No changes made ***")
    return 1 if failed else 0


if __name__ == '__main__':
    sys.exit(main())
