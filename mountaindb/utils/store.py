"""
Record stores for the mountains collection.

All stores speak plain document dicts. Documents returned by a store carry
their document id under the "id" key; documents passed to a store never need
it.

Stores:
    MemoryRecordStore  - dict-backed, for tests and dry experiments
    JsonRecordStore    - one <id>.json file per mountain in a directory
    FirestoreRecordStore (firestore_store.py) - the production collection

Usage:
    from mountaindb.utils.store import CorpusOverlay, JsonRecordStore

    store = JsonRecordStore(Path("data/mountains"))
    overlay = CorpusOverlay.load(store)
    for record in overlay:
        print(record.id, record.name)
"""

import copy
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional

from mountaindb.utils.errors import CorpusUnavailableError, StoreError
from mountaindb.utils.merge import new_opaque_id
from mountaindb.utils.records import MountainRecord

logger = logging.getLogger(__name__)


class RecordStore(ABC):
    """Document store interface used by the reconciliation pass and tools."""

    @abstractmethod
    def get(self, record_id: str) -> Optional[Dict[str, Any]]:
        """Point lookup; None when the document does not exist."""

    @abstractmethod
    def query(self, field: str, value: Any) -> List[Dict[str, Any]]:
        """Documents whose `field` equals `value`."""

    @abstractmethod
    def array_contains(self, field: str, value: Any) -> List[Dict[str, Any]]:
        """Documents whose list-valued `field` contains `value`."""

    @abstractmethod
    def upsert(self, record_id: str, fields: Dict[str, Any]) -> None:
        """Write only the supplied fields, creating the document if needed."""

    @abstractmethod
    def create(self, fields: Dict[str, Any], record_id: Optional[str] = None) -> str:
        """Create a document and return its id."""

    @abstractmethod
    def iter_all(self) -> Iterator[Dict[str, Any]]:
        """Every document in the collection."""

    @abstractmethod
    def delete(self, record_id: str) -> None:
        """Hard delete. Only the duplicate-removal operation calls this."""


def _contains(value: Any, item: Any) -> bool:
    return isinstance(value, list) and item in value


class MemoryRecordStore(RecordStore):
    """In-memory store keeping insertion order."""

    def __init__(self, documents: Iterable[Dict[str, Any]] = ()):
        self._docs: Dict[str, Dict[str, Any]] = {}
        for doc in documents:
            doc = dict(doc)
            record_id = doc.pop("id", None) or new_opaque_id()
            self._docs[record_id] = doc

    def _with_id(self, record_id: str) -> Dict[str, Any]:
        return {"id": record_id, **copy.deepcopy(self._docs[record_id])}

    def get(self, record_id):
        if record_id not in self._docs:
            return None
        return self._with_id(record_id)

    def query(self, field, value):
        return [self._with_id(i) for i, d in self._docs.items() if d.get(field) == value]

    def array_contains(self, field, value):
        return [self._with_id(i) for i, d in self._docs.items() if _contains(d.get(field), value)]

    def upsert(self, record_id, fields):
        self._docs.setdefault(record_id, {}).update(copy.deepcopy(fields))

    def create(self, fields, record_id=None):
        record_id = record_id or new_opaque_id()
        if record_id in self._docs:
            raise StoreError(f"Document already exists: {record_id}")
        self._docs[record_id] = copy.deepcopy(fields)
        return record_id

    def iter_all(self):
        for record_id in list(self._docs):
            yield self._with_id(record_id)

    def delete(self, record_id):
        self._docs.pop(record_id, None)

    def __len__(self):
        return len(self._docs)


class JsonRecordStore(RecordStore):
    """Directory of JSON documents, one file per mountain.

    Args:
        data_dir: Directory holding <id>.json files (created on first write)
        indent: JSON indentation
    """

    def __init__(self, data_dir: Path, indent: int = 2):
        self.data_dir = Path(data_dir)
        self.indent = indent

    def _path(self, record_id: str) -> Path:
        if not record_id or "/" in record_id or record_id.startswith("."):
            raise StoreError(f"Invalid document id: {record_id!r}")
        return self.data_dir / f"{record_id}.json"

    def _load(self, path: Path) -> Dict[str, Any]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                doc = json.load(f)
        except json.JSONDecodeError as e:
            raise StoreError(f"JSON parse error in {path}: {e}") from e
        except OSError as e:
            raise StoreError(f"Error loading {path}: {e}") from e
        doc.pop("id", None)
        return {"id": path.stem, **doc}

    def _save(self, record_id: str, doc: Dict[str, Any]) -> None:
        path = self._path(record_id)
        save_data = {k: v for k, v in doc.items() if k != "id"}
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(save_data, f, indent=self.indent, ensure_ascii=False)
        except (OSError, TypeError) as e:
            raise StoreError(f"Error saving {path}: {e}") from e

    def get(self, record_id):
        path = self._path(record_id)
        if not path.exists():
            return None
        return self._load(path)

    def query(self, field, value):
        return [doc for doc in self.iter_all() if doc.get(field) == value]

    def array_contains(self, field, value):
        return [doc for doc in self.iter_all() if _contains(doc.get(field), value)]

    def upsert(self, record_id, fields):
        doc = self.get(record_id) or {}
        doc.update(fields)
        self._save(record_id, doc)

    def create(self, fields, record_id=None):
        record_id = record_id or new_opaque_id()
        if self._path(record_id).exists():
            raise StoreError(f"Document already exists: {record_id}")
        self._save(record_id, fields)
        return record_id

    def iter_all(self):
        """Yield every readable document; unreadable files are logged and skipped."""
        if not self.data_dir.exists():
            logger.warning(f"No data directory at {self.data_dir}; starting empty")
            return
        if not self.data_dir.is_dir():
            raise StoreError(f"Not a directory: {self.data_dir}")

        for path in sorted(self.data_dir.glob("*.json")):
            try:
                yield self._load(path)
            except StoreError as e:
                logger.error(str(e))

    def delete(self, record_id):
        try:
            self._path(record_id).unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StoreError(f"Error deleting {record_id}: {e}") from e


class CorpusOverlay:
    """Corpus snapshot plus the writes of the current pass.

    Both dry-run and write passes update the overlay so a row can match a
    record created or patched earlier in the same batch. Iteration follows
    insertion order, which keeps matching deterministic.
    """

    def __init__(self, documents: Iterable[Dict[str, Any]] = ()):
        self._records: Dict[str, MountainRecord] = {}
        for doc in documents:
            doc = dict(doc)
            record_id = doc.pop("id")
            self._records[record_id] = MountainRecord.from_document(record_id, doc)

    @classmethod
    def load(cls, store: RecordStore) -> "CorpusOverlay":
        """Read the full corpus from `store`.

        Raises:
            CorpusUnavailableError: If the store cannot be read
        """
        try:
            overlay = cls(store.iter_all())
        except StoreError as e:
            raise CorpusUnavailableError(f"Cannot load corpus: {e}") from e
        logger.info(f"Loaded {len(overlay)} existing records")
        return overlay

    def get(self, record_id: str) -> Optional[MountainRecord]:
        return self._records.get(record_id)

    def __contains__(self, record_id) -> bool:
        return record_id in self._records

    def __iter__(self) -> Iterator[MountainRecord]:
        return iter(list(self._records.values()))

    def __len__(self) -> int:
        return len(self._records)

    def add(self, record_id: str, fields: Dict[str, Any]) -> MountainRecord:
        record = MountainRecord.from_document(record_id, fields)
        self._records[record_id] = record
        return record

    def apply(self, record_id: str, patch: Dict[str, Any]) -> MountainRecord:
        """Merge `patch` into the overlay copy of a record."""
        current = self._records.get(record_id)
        doc = current.to_document() if current else {}
        doc.update(patch)
        record = MountainRecord.from_document(record_id, doc)
        self._records[record_id] = record
        return record

    def remove(self, record_id: str) -> None:
        self._records.pop(record_id, None)
