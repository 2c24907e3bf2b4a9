#!/usr/bin/env python3
"""
Move mountains with legacy document ids onto stable ids.

Usage:
    # Preview the moves for one list
    mountaindb-migrate-ids --tag 日本百名山

    # Migrate and delete the legacy documents
    mountaindb-migrate-ids --tag 日本百名山 --delete-legacy --write

    # Only count how many records are already on stable ids
    mountaindb-migrate-ids --verify
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
from mountaindb.utils.migrate import migrate_to_stable_ids, verify_stable_ids

logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Migrate mountains to stable ids")
    parser.add_argument('--tag', action='append', default=[],
                        help='Only records carrying this tag (repeatable)')
    parser.add_argument('--delete-legacy', action='store_true',
                        help='Delete legacy documents after moving them')
    parser.add_argument('--verify', action='store_true',
                        help='Only report how many records are on stable ids')
    add_store_arguments(parser)
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    store = open_store(settings_from_args(args))

    try:
        if args.verify:
            on_stable, total, off = verify_stable_ids(store, args.tag)
            logger.info(f"{on_stable}/{total} records on stable ids")
            for record_id in off[:20]:
                logger.info(f"  not stable: {record_id}")
            return 0

        stats = migrate_to_stable_ids(
            store,
            tags=args.tag,
            dry_run=not args.write,
            delete_legacy=args.delete_legacy,
        )
    except StoreError as e:
        logger.error(f"Cannot read records: {e}")
        return 1

    logger.info(
        f"Scanned {stats.scanned}: {stats.already_stable} already stable, "
        f"{stats.created} created, {stats.merged} merged, "
        f"{stats.deleted} legacy deleted, {stats.failed} failed"
    )
    if not args.write:
        logger.info("*** DRY RUN - No changes made ***")
    return 1 if stats.failed else 0


if __name__ == '__main__':
    sys.exit(main())
