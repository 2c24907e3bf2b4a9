"""
Firestore-backed record store for the `mountains` collection.

Requires google-cloud-firestore and application default credentials (or
GOOGLE_APPLICATION_CREDENTIALS pointing at a service account file).

Usage:
    from mountaindb.utils.firestore_store import FirestoreRecordStore

    store = FirestoreRecordStore(collection="mountains", project="my-project")
    doc = store.get("1f0c...")
"""

import logging
from typing import Any, Dict, Iterator, List, Optional

from google.api_core import exceptions as gcloud_exceptions
from google.cloud import firestore

from mountaindb.utils.errors import StoreError
from mountaindb.utils.store import RecordStore

logger = logging.getLogger(__name__)

DEFAULT_COLLECTION = "mountains"


def _snapshot_to_dict(snapshot) -> Dict[str, Any]:
    data = snapshot.to_dict() or {}
    data.pop("id", None)
    return {"id": snapshot.id, **data}


class FirestoreRecordStore(RecordStore):
    """RecordStore over one Firestore collection.

    Every google.api_core error is re-raised as StoreError so the
    reconciliation pass can count it against the row being processed.
    """

    def __init__(
        self,
        collection: str = DEFAULT_COLLECTION,
        project: Optional[str] = None,
        client=None,
    ):
        """
        Args:
            collection: Collection name
            project: GCP project id (ignored when `client` is given)
            client: Preconfigured firestore.Client, mainly for tests
        """
        self.client = client or firestore.Client(project=project)
        self.collection_name = collection
        self.collection = self.client.collection(collection)

    def _call(self, fn, label: str):
        try:
            return fn()
        except gcloud_exceptions.GoogleAPICallError as e:
            raise StoreError(f"Firestore {label} failed: {e}") from e
        except gcloud_exceptions.RetryError as e:
            raise StoreError(f"Firestore {label} gave up retrying: {e}") from e

    def get(self, record_id: str) -> Optional[Dict[str, Any]]:
        snapshot = self._call(
            lambda: self.collection.document(record_id).get(),
            label=f"{self.collection_name}/{record_id} get",
        )
        if not snapshot.exists:
            return None
        return _snapshot_to_dict(snapshot)

    def query(self, field: str, value: Any) -> List[Dict[str, Any]]:
        docs = self._call(
            lambda: list(self.collection.where(field, "==", value).stream()),
            label=f"query {field}=={value!r}",
        )
        return [_snapshot_to_dict(d) for d in docs]

    def array_contains(self, field: str, value: Any) -> List[Dict[str, Any]]:
        docs = self._call(
            lambda: list(self.collection.where(field, "array_contains", value).stream()),
            label=f"query {field} array_contains {value!r}",
        )
        return [_snapshot_to_dict(d) for d in docs]

    def upsert(self, record_id: str, fields: Dict[str, Any]) -> None:
        self._call(
            lambda: self.collection.document(record_id).set(fields, merge=True),
            label=f"{self.collection_name}/{record_id} set",
        )

    def create(self, fields: Dict[str, Any], record_id: Optional[str] = None) -> str:
        ref = self.collection.document(record_id) if record_id else self.collection.document()
        self._call(lambda: ref.create(fields), label=f"{self.collection_name}/{ref.id} create")
        return ref.id

    def iter_all(self) -> Iterator[Dict[str, Any]]:
        docs = self._call(
            lambda: list(self.collection.stream()),
            label=f"{self.collection_name} full stream",
        )
        for snapshot in docs:
            yield _snapshot_to_dict(snapshot)

    def delete(self, record_id: str) -> None:
        self._call(
            lambda: self.collection.document(record_id).delete(),
            label=f"{self.collection_name}/{record_id} delete",
        )
