from __future__ import annotations

import copy
import logging
from typing import Any, Dict, Iterable, List, Optional

import firebase_admin
from firebase_admin import credentials, firestore

from comex.config import SHIPMENTS_COLLECTION, USERS_COLLECTION, Settings
from comex.data import SHIPMENT_COLUMNS
from comex.errors import StoreError

logger = logging.getLogger(__name__)

# Firestore rejects batches above 500 writes.
BATCH_LIMIT = 500
DEFAULT_ROLE = "COMEX"

# Documents keep the camelCase keys the shared collection already uses.
DOCUMENT_KEYS = {snake: camel for camel, snake in SHIPMENT_COLUMNS.items()}


def document_id(bl_awb: object) -> str:
    return str(bl_awb).strip().replace("/", "-")


def to_document(record: Dict[str, Any]) -> Dict[str, Any]:
    return {DOCUMENT_KEYS.get(k, k): v for k, v in record.items() if k != "id" and v is not None}


def default_profile(uid: str, *, name: Optional[str] = None, email: Optional[str] = None) -> Dict[str, Any]:
    return {"id": uid, "name": name or "New User", "username": email or "", "role": DEFAULT_ROLE}


def firestore_client(credentials_path: Optional[str] = None):
    """Return a Firestore client, initialising the default firebase app once."""
    try:
        firebase_admin.get_app()
    except ValueError:
        if credentials_path:
            cred = credentials.Certificate(credentials_path)
            firebase_admin.initialize_app(cred)
        else:
            firebase_admin.initialize_app()
    return firestore.client()


class ShipmentStore:
    """Shipment collection backed by Firestore."""

    def __init__(self, db, collection: str = SHIPMENTS_COLLECTION, users_collection: str = USERS_COLLECTION):
        self.db = db
        self.collection = collection
        self.users_collection = users_collection

    @property
    def cache_key(self) -> str:
        return f"firestore:{self.collection}"

    def fetch_all(self) -> List[Dict[str, Any]]:
        try:
            docs = self.db.collection(self.collection).stream()
            records = [{**(doc.to_dict() or {}), "id": doc.id} for doc in docs]
        except Exception as exc:
            logger.exception("Fetching %s failed", self.collection)
            raise StoreError("Failed to load shipment data.") from exc
        logger.info("Fetched %d documents from %s", len(records), self.collection)
        return records

    def upsert(self, records: Iterable[Dict[str, Any]]) -> int:
        """Merge-write each record keyed by its sanitized BL/AWB.

        Writes are committed in chunks of ``BATCH_LIMIT``; a failure in a later
        chunk leaves the earlier chunks committed.
        """
        written = 0
        pending = 0
        try:
            batch = self.db.batch()
            for record in records:
                ref = self.db.collection(self.collection).document(document_id(record["bl_awb"]))
                batch.set(ref, to_document(record), merge=True)
                pending += 1
                if pending >= BATCH_LIMIT:
                    batch.commit()
                    written += pending
                    batch = self.db.batch()
                    pending = 0
            if pending:
                batch.commit()
                written += pending
        except Exception as exc:
            logger.exception("Upsert into %s failed after %d writes", self.collection, written)
            raise StoreError("Failed to save shipments.") from exc
        return written

    def get_user_profile(self, uid: str, *, name: Optional[str] = None, email: Optional[str] = None) -> Dict[str, Any]:
        try:
            snap = self.db.collection(self.users_collection).document(uid).get()
        except Exception as exc:
            logger.exception("Profile lookup for %s failed", uid)
            raise StoreError("Failed to load user profile.") from exc
        if snap.exists:
            return {"id": uid, **(snap.to_dict() or {})}
        return default_profile(uid, name=name, email=email)


class MemoryStore:
    """In-process store with the ShipmentStore interface."""

    def __init__(self, records: Optional[Iterable[Dict[str, Any]]] = None, users: Optional[Dict[str, Dict[str, Any]]] = None):
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.users: Dict[str, Dict[str, Any]] = dict(users or {})
        if records:
            self.upsert(records)

    @property
    def cache_key(self) -> str:
        return f"memory:{id(self)}"

    def fetch_all(self) -> List[Dict[str, Any]]:
        return [{**copy.deepcopy(doc), "id": doc_id} for doc_id, doc in self.documents.items()]

    def upsert(self, records: Iterable[Dict[str, Any]]) -> int:
        written = 0
        for record in records:
            doc_id = document_id(record["bl_awb"])
            self.documents.setdefault(doc_id, {}).update(to_document(record))
            written += 1
        return written

    def get_user_profile(self, uid: str, *, name: Optional[str] = None, email: Optional[str] = None) -> Dict[str, Any]:
        if uid in self.users:
            return {"id": uid, **self.users[uid]}
        return default_profile(uid, name=name, email=email)


def make_store(settings: Settings):
    if settings.backend == "memory":
        return MemoryStore()
    db = firestore_client(settings.credentials_path)
    return ShipmentStore(db, settings.shipments_collection, settings.users_collection)
