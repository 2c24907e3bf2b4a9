#!/usr/bin/env python3
"""
Normalize stored tags.

Splits pipe-joined tag strings, removes duplicates and drops 日本二百名山
from mountains that are also on the 日本百名山 list.

Usage:
    mountaindb-fix-tags
    mountaindb-fix-tags --write
"""

import argparse
import logging
import sys

from mountaindb.utils.config import (
    add_store_arguments,
    open_store,
    settings_from_args,
    setup_logging,
)
from mountaindb.utils.errors import StoreError
from mountaindb.utils.tags import tag_fix_patches

logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Normalize mountain tags")
    add_store_arguments(parser)
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    store = open_store(settings_from_args(args))
    try:
        patches = tag_fix_patches(store.iter_all())
    except StoreError as e:
        logger.error(f"Cannot read records: {e}")
        return 1

    logger.info(f"{len(patches)} records with tags to fix")
    failed = 0
    for record_id, patch in patches.items():
        logger.info(f"  {record_id}: {patch['tags']}")
        if not args.write:
            continue
        try:
            store.upsert(record_id, patch)
        except StoreError as e:
            logger.error(f"  {record_id}: {e}")
            failed += 1

    if not args.write:
        logger.info("*** DRY RUN - No changes made ***")
    return 1 if failed else 0


if __name__ == '__main__':
    sys.exit(main())
