"""
Runtime configuration shared by the command-line tools.

Settings come from environment variables, optionally loaded from a .env file
in the working directory:

    MOUNTAINDB_STORE          json | firestore | memory   (default: json)
    MOUNTAINDB_DATA_DIR       JSON store directory        (default: data/mountains)
    MOUNTAINDB_COLLECTION     Firestore collection        (default: mountains)
    FIRESTORE_PROJECT_ID      Firestore project
    GOOGLE_APPLICATION_CREDENTIALS  service account file (read by the client)
    MOUNTAINDB_SAMPLE_LIMIT   report samples per category (default: 20)
    OVERPASS_URLS             comma-separated Overpass endpoints
"""

import argparse
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from mountaindb.utils.store import JsonRecordStore, MemoryRecordStore, RecordStore

logger = logging.getLogger(__name__)

STORE_BACKENDS = ("json", "firestore", "memory")


@dataclass
class Settings:
    store: str = "json"
    data_dir: Path = Path("data/mountains")
    collection: str = "mountains"
    project: Optional[str] = None
    sample_limit: int = 20


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """Build Settings from the environment (and .env, if present)."""
    load_dotenv(env_file)

    sample_limit = os.getenv("MOUNTAINDB_SAMPLE_LIMIT", "20")
    try:
        sample_limit = int(sample_limit)
    except ValueError:
        logger.warning(f"Ignoring invalid MOUNTAINDB_SAMPLE_LIMIT={sample_limit!r}")
        sample_limit = 20

    return Settings(
        store=os.getenv("MOUNTAINDB_STORE", "json").strip().lower(),
        data_dir=Path(os.getenv("MOUNTAINDB_DATA_DIR", "data/mountains")),
        collection=os.getenv("MOUNTAINDB_COLLECTION", "mountains"),
        project=os.getenv("FIRESTORE_PROJECT_ID") or None,
        sample_limit=sample_limit,
    )


def add_store_arguments(parser: argparse.ArgumentParser) -> argparse.ArgumentParser:
    """Store, mode and logging options common to every tool."""
    parser.add_argument('--store', choices=STORE_BACKENDS,
                        help='Record store backend (default: $MOUNTAINDB_STORE or json)')
    parser.add_argument('--data-dir', type=Path,
                        help='JSON store directory (default: $MOUNTAINDB_DATA_DIR)')
    parser.add_argument('--collection',
                        help='Firestore collection (default: $MOUNTAINDB_COLLECTION)')
    parser.add_argument('--project', help='Firestore project id')
    parser.add_argument('--write', action='store_true',
                        help='Apply changes (default is a dry run)')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Debug logging')
    return parser


def settings_from_args(args: argparse.Namespace, settings: Optional[Settings] = None) -> Settings:
    """Command-line options override environment settings."""
    settings = settings or load_settings()
    if getattr(args, 'store', None):
        settings.store = args.store
    if getattr(args, 'data_dir', None):
        settings.data_dir = args.data_dir
    if getattr(args, 'collection', None):
        settings.collection = args.collection
    if getattr(args, 'project', None):
        settings.project = args.project
    return settings


def open_store(settings: Settings) -> RecordStore:
    """Instantiate the configured record store."""
    if settings.store == "json":
        logger.info(f"Using JSON store at {settings.data_dir}")
        return JsonRecordStore(settings.data_dir)
    if settings.store == "memory":
        logger.info("Using in-memory store (nothing is persisted)")
        return MemoryRecordStore()
    if settings.store == "firestore":
        # Firestore client libraries load on demand
        from mountaindb.utils.firestore_store import FirestoreRecordStore
        logger.info(f"Using Firestore collection {settings.collection}")
        return FirestoreRecordStore(collection=settings.collection, project=settings.project)
    raise ValueError(f"Unknown store backend: {settings.store!r} (expected one of {STORE_BACKENDS})")


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(levelname)s: %(message)s'
    )
