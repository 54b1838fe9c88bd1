"""
Unit Tests for comex/store.py and the load/upload helpers in comex/data.py
Run: pytest tests/test_store.py -v
"""
from unittest.mock import Mock, patch

import pytest

from comex.config import load_settings
from comex.data import load_dashboard_data, upload_shipments
from comex.errors import StoreError
from comex.store import (
    BATCH_LIMIT,
    DEFAULT_ROLE,
    MemoryStore,
    ShipmentStore,
    document_id,
    make_store,
    to_document,
)


class TestDocuments:

    def test_document_id_replaces_slashes(self):
        assert document_id("MSCU/123/4") == "MSCU-123-4"
        assert document_id(" BL-1 ") == "BL-1"

    def test_to_document_uses_collection_keys(self):
        doc = to_document({"id": "x", "bl_awb": "BL-1", "actual_eta": "2024-01-01", "delivery_authorized_date": None})
        assert doc == {"blAwb": "BL-1", "actualEta": "2024-01-01"}


# ============================================================
# FIRESTORE-BACKED STORE
# ============================================================

class TestShipmentStore:

    def test_fetch_all(self, mock_db, mock_firestore_doc):
        mock_db.collection.return_value.stream.return_value = [
            mock_firestore_doc("BL-1", {"blAwb": "BL-1", "status": "IN TRANSIT"}),
            mock_firestore_doc("BL-2", {"blAwb": "BL-2"}),
        ]
        store = ShipmentStore(mock_db)
        records = store.fetch_all()
        mock_db.collection.assert_called_with("shipments")
        assert records[0] == {"blAwb": "BL-1", "status": "IN TRANSIT", "id": "BL-1"}
        assert len(records) == 2

    def test_fetch_failure_raises_store_error(self, mock_db):
        mock_db.collection.return_value.stream.side_effect = RuntimeError("unavailable")
        with pytest.raises(StoreError):
            ShipmentStore(mock_db).fetch_all()

    def test_upsert_merges_by_document_id(self, mock_db):
        batch = Mock()
        mock_db.batch.return_value = batch
        written = ShipmentStore(mock_db).upsert([{"bl_awb": "MSCU/1", "status": "IN TRANSIT"}])
        assert written == 1
        mock_db.collection.return_value.document.assert_called_with("MSCU-1")
        _, kwargs = batch.set.call_args
        assert kwargs == {"merge": True}
        assert batch.set.call_args[0][1] == {"blAwb": "MSCU/1", "status": "IN TRANSIT"}
        batch.commit.assert_called_once()

    def test_upsert_commits_in_chunks(self, mock_db):
        batch = Mock()
        mock_db.batch.return_value = batch
        records = [{"bl_awb": f"BL-{i}"} for i in range(BATCH_LIMIT + 1)]
        assert ShipmentStore(mock_db).upsert(records) == BATCH_LIMIT + 1
        assert batch.commit.call_count == 2

    def test_upsert_failure_raises_store_error(self, mock_db):
        batch = Mock()
        batch.commit.side_effect = RuntimeError("permission denied")
        mock_db.batch.return_value = batch
        with pytest.raises(StoreError):
            ShipmentStore(mock_db).upsert([{"bl_awb": "BL-1"}])

    def test_user_profile(self, mock_db):
        snap = Mock(exists=True)
        snap.to_dict.return_value = {"name": "Ana", "role": "ADMIN"}
        mock_db.collection.return_value.document.return_value.get.return_value = snap
        profile = ShipmentStore(mock_db).get_user_profile("u1")
        mock_db.collection.assert_called_with("users")
        assert profile == {"id": "u1", "name": "Ana", "role": "ADMIN"}

    def test_user_profile_fallback(self, mock_db):
        mock_db.collection.return_value.document.return_value.get.return_value = Mock(exists=False)
        profile = ShipmentStore(mock_db).get_user_profile("u2", name=None, email="a@b.com")
        assert profile["role"] == DEFAULT_ROLE
        assert profile["username"] == "a@b.com"


# ============================================================
# IN-MEMORY STORE AND LOADING
# ============================================================

class TestMemoryStore:

    def test_upsert_merges(self):
        store = MemoryStore([{"bl_awb": "BL-1", "status": "IN TRANSIT", "incoterm": "CIF"}])
        store.upsert([{"bl_awb": "BL-1", "status": "AT THE PORT"}])
        [record] = store.fetch_all()
        assert record == {"blAwb": "BL-1", "status": "AT THE PORT", "incoterm": "CIF", "id": "BL-1"}

    def test_make_store_memory_backend(self):
        assert isinstance(make_store(load_settings({"SHIPMENTS_BACKEND": "memory"})), MemoryStore)

    def test_make_store_firestore_backend(self):
        with patch("comex.store.firestore_client") as client:
            store = make_store(load_settings({"SHIPMENTS_COLLECTION": "imports"}))
        assert isinstance(store, ShipmentStore)
        assert store.collection == "imports"
        client.assert_called_once_with(None)


class TestLoadDashboardData:

    def test_loads_once(self, memory_store):
        first = load_dashboard_data(memory_store)
        memory_store.upsert([{"bl_awb": "BL-999"}])
        assert load_dashboard_data(memory_store) is first
        assert len(load_dashboard_data(memory_store, refresh=True)["shipments"]) == 6

    def test_years(self, memory_store):
        ctx = load_dashboard_data(memory_store)
        assert ctx["eta_years"] == [2023, 2024]
        assert ctx["di_years"] == [2024]

    def test_upload_refetches(self, memory_store):
        load_dashboard_data(memory_store)
        ctx = upload_shipments(memory_store, [{"bl_awb": "BL-006", "status": "IN TRANSIT"}])
        assert "BL-006" in ctx["shipments"]["bl_awb"].tolist()

    def test_failed_fetch_keeps_previous_data(self, memory_store):
        first = load_dashboard_data(memory_store)
        memory_store.fetch_all = Mock(side_effect=StoreError("Failed to load shipment data."))
        with pytest.raises(StoreError):
            load_dashboard_data(memory_store, refresh=True)
        assert load_dashboard_data(memory_store) is first
