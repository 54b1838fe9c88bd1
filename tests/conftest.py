"""
Pytest Configuration and Shared Fixtures
"""
import pytest
from unittest.mock import Mock

from comex.data import clear_loaded, shipment_frame
from comex.store import MemoryStore


# ============================================================
# MOCK FIRESTORE
# ============================================================

@pytest.fixture
def mock_db():
    """Create a mock Firestore database"""
    db = Mock()
    return db


@pytest.fixture
def mock_firestore_doc():
    """Create a mock Firestore document"""
    def _create(doc_id, data):
        doc = Mock()
        doc.id = doc_id
        doc.to_dict.return_value = data
        return doc
    return _create


# ============================================================
# SAMPLE SHIPMENTS
# ============================================================

@pytest.fixture
def sample_records():
    """Five shipments across the lifecycle; BL-001 and BL-002 share DI-1"""
    return [
        {
            "bl_awb": "BL-001",
            "po_sap": "4500001",
            "description": "Steel coils",
            "type_of_cargo": "Raw Material",
            "shipment_type": "FCL",
            "fcl": 2,
            "incoterm": "CIF",
            "status": "IN TRANSIT",
            "bonded_warehouse": "Tecon Salvador",
            "actual_etd": "2024-06-20",
            "actual_eta": "2024-07-10",
            "cargo_presence_date": "2024-07-11",
            "di_registration_date": "2024-07-12",
            "delivery_authorized_date": "2024-07-15",
            "first_truck_delivery": "2024-07-16",
            "last_truck_delivery": "2024-07-18",
            "nf_issue_date": "2024-07-17",
            "invoice_value": 1000,
            "invoice_currency": "USD",
            "parametrization": "Green",
            "di": "DI-1",
            "unique_di": "No",
            "approved_draft_di": "OK",
            "technician_responsible_brazil": "ana souza",
        },
        {
            "bl_awb": "BL-002",
            "description": "Bearings",
            "type_of_cargo": "Spare Parts",
            "shipment_type": "LCL",
            "fcl": 0,
            "lcl": 3,
            "incoterm": "FOB",
            "status": "CARGO READY",
            "bonded_warehouse": "TECA",
            "actual_etd": "2024-07-01",
            "actual_eta": "2024-07-21",
            "cargo_presence_date": "2024-07-21",
            "di_registration_date": "2024-07-22",
            "delivery_authorized_date": "2024-07-24",
            "invoice_value": 500,
            "parametrization": "Green",
            "di": "DI-1",
            "unique_di": "No",
            "technician_responsible_brazil": "Ana Souza",
        },
        {
            "bl_awb": "BL-003",
            "po_sap": "4500003",
            "description": "Copper wire",
            "type_of_cargo": "Raw Material",
            "shipment_type": "FCL/LCL",
            "incoterm": "DAP",
            "status": "CARGO DELIVERED",
            "bonded_warehouse": "Clia Empório",
            "actual_etd": "2024-08-01",
            "actual_eta": "2024-08-05",
            "cargo_presence_date": "2024-08-05",
            "di_registration_date": "2024-08-06",
            "delivery_authorized_date": "2024-08-09",
            "first_truck_delivery": "2024-08-10",
            "last_truck_delivery": "2024-08-04",
            "nf_issue_date": "2024-08-11",
            "invoice_value": 2000,
            "parametrization": "Red",
            "di": "DI-2",
            "unique_di": "Yes",
            "approved_draft_di": "ok",
            "technician_responsible_brazil": "Bruno Lima",
        },
        {
            "bl_awb": "BL-004",
            "description": "Valves",
            "type_of_cargo": "Spare Parts",
            "shipment_type": "AIR",
            "incoterm": "CIF",
            "status": "DOCUMENT REVIEW",
            "actual_eta": "2023-12-01",
            "invoice_value": 300,
        },
        {
            "bl_awb": "BL-005",
            "description": "Resin",
            "type_of_cargo": "Raw Material",
            "status": "ORDER PLACED",
            "invoice_value": 100,
        },
    ]


@pytest.fixture
def shipments(sample_records):
    """Canonical shipment frame built from the sample records"""
    return shipment_frame(sample_records)


@pytest.fixture
def memory_store(sample_records):
    """In-process store seeded with the sample records"""
    clear_loaded()
    store = MemoryStore(sample_records, users={"u1": {"name": "Ana Souza", "role": "ADMIN"}})
    yield store
    clear_loaded()
