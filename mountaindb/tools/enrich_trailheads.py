#!/usr/bin/env python3
"""
Add trailheads from OpenStreetMap to mountains.

For each mountain with numeric coordinates, trailheads tagged in OSM within
--radius metres are merged into `trailheads` (toilet/parking details from
nearby amenities). Mountains without tagged trailheads get the nearest
parking lot instead.

Usage:
    mountaindb-enrich-osm --tag 日本百名山 --limit 10
    mountaindb-enrich-osm --tag 日本百名山 --write
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
from mountaindb.utils.errors import CorpusUnavailableError, StoreError
from mountaindb.utils.merge import merge_attachments
from mountaindb.utils.overpass import TRAILHEAD_RADIUS_M, OverpassClient, osm_trailheads
from mountaindb.utils.store import CorpusOverlay

logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Enrich trailheads from OSM")
    parser.add_argument('--tag', help='Only mountains carrying this tag')
    parser.add_argument('--radius', type=int, default=TRAILHEAD_RADIUS_M,
                        help=f'Search radius in metres (default: {TRAILHEAD_RADIUS_M})')
    parser.add_argument('--limit', type=int, help='Stop after this many mountains')
    parser.add_argument('--skip-existing', action='store_true',
                        help='Skip mountains that already have trailheads')
    add_store_arguments(parser)
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    store = open_store(settings_from_args(args))
    try:
        corpus = CorpusOverlay.load(store)
    except CorpusUnavailableError as e:
        logger.error(str(e))
        return 1

    client = OverpassClient()
    stats = {"scanned": 0, "updated": 0, "unchanged": 0, "failed": 0}

    for record in corpus:
        if args.tag and args.tag not in record.tags:
            continue
        if args.skip_existing and record.trailheads:
            continue
        if record.has_malformed_trailheads:
            logger.warning(f"{record.id} ({record.name}): skipped, trailheads has the wrong type")
            continue
        if args.limit and stats["scanned"] >= args.limit:
            break
        stats["scanned"] += 1

        found = osm_trailheads(client, record, radius_m=args.radius)
        merged, changed = merge_attachments(record.trailheads, found)
        if not changed:
            stats["unchanged"] += 1
            continue

        logger.info(f"{record.id} ({record.name}): {len(record.trailheads)} -> {len(merged)} trailheads")
        try:
            if args.write:
                store.upsert(record.id, {"trailheads": merged})
            stats["updated"] += 1
        except StoreError as e:
            logger.error(f"{record.id}: {e}")
            stats["failed"] += 1

    logger.info(
        f"Scanned {stats['scanned']}: {stats['updated']} updated, "
        f"{stats['unchanged']} unchanged, {stats['failed']} failed"
    )
    if not args.write:
        logger.info("*** DRY RUN - No changes made ***")
    return 1 if stats["failed"] else 0


if __name__ == '__main__':
    sys.exit(main())
