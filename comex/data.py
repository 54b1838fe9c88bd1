from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

import pandas as pd

from comex.text import clean_text, normalize_terminal_name, title_case  # noqa: F401
from comex.filters import (
    BrokerageFilters,
    KpiFilters,
    apply_brokerage_filter,
    apply_date_filter,
    normalize_brokerage_filters,
    normalize_kpi_filters,
    available_years,
)

logger = logging.getLogger(__name__)

# ---------------- Lifecycle statuses ----------------
ORDER_PLACED = "ORDER PLACED"
SHIPMENT_CONFIRMED = "SHIPMENT CONFIRMED"
DOCUMENT_REVIEW = "DOCUMENT REVIEW"
IN_TRANSIT = "IN TRANSIT"
AT_THE_PORT = "AT THE PORT"
DI_REGISTERED = "DI REGISTERED"
CARGO_READY = "CARGO READY"
CARGO_CLEARED = "CARGO CLEARED"
CARGO_DELIVERED = "CARGO DELIVERED"
EMPTY_RETURNED = "VAZIAS"

IMPORT_STATUSES = [
    ORDER_PLACED,
    SHIPMENT_CONFIRMED,
    DOCUMENT_REVIEW,
    IN_TRANSIT,
    AT_THE_PORT,
    DI_REGISTERED,
    CARGO_READY,
    CARGO_CLEARED,
    CARGO_DELIVERED,
    EMPTY_RETURNED,
]

# Legacy status folded into its successor for every status grouping.
STATUS_ALIASES = {CARGO_READY: AT_THE_PORT}

FCL_MODES = ("FCL", "FCL/LCL")
TRANSPORT_MODALS = ["FCL", "LCL", "FCL/LCL", "AIR", "RO-RO", "GP"]
INCOTERMS = ["FOB", "CIF", "DAP", "FCA"]
CHANNELS = ["Green", "Yellow", "Red"]

# ---------------- Colours ----------------
FALLBACK_COLOR = "#6b7280"

STATUS_COLORS = {
    IN_TRANSIT: "#3b82f6",
    AT_THE_PORT: "#f97316",
    DI_REGISTERED: "#facc15",
    CARGO_CLEARED: "#10b981",
    CARGO_DELIVERED: "#14b8a6",
}
TERMINAL_COLOR_MAP = {
    "Intermaritima": "#28a745",
    "TPC": "#38bdf8",
    "TECON": "#f43f5e",
    "CLIA Empório": "#f59e0b",
    "N/A": "#6b7280",
    "TECA": "#a78bfa",
}
INCOTERM_COLORS = {"CIF": "#8b5cf6", "FOB": "#3b82f6", "DAP": "#ec4899", "FCA": "#6db7ff", "EXW": "#dc3545"}
CHANNEL_COLORS = {"Green": "#10b981", "Yellow": "#facc15", "Red": "#ef4444"}
MODAL_COLORS = {
    "FCL": "#007bff",
    "LCL": "#28a745",
    "FCL/LCL": "#6f42c1",
    "Unknown": "#6db7ff",
    "AIR": "#17a2b8",
    "RO-RO": "#fd7e14",
    "GP": "#adb5bd",
}

# ---------------- Calendar ----------------
MONTH_LABELS = [
    "Janeiro",
    "Fevereiro",
    "Março",
    "Abril",
    "Maio",
    "Junho",
    "Julho",
    "Agosto",
    "Setembro",
    "Outubro",
    "Novembro",
    "Dezembro",
]
MONTH_SHORT = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
# Cargo volume chart covers the second half of the calendar year only.
FISCAL_SLICE_START = 6

# ---------------- Store columns ----------------
SHIPMENT_COLUMNS = {
    "blAwb": "bl_awb",
    "poSap": "po_sap",
    "invoice": "invoice",
    "description": "description",
    "typeOfCargo": "type_of_cargo",
    "costCenter": "cost_center",
    "shipmentType": "shipment_type",
    "fcl": "fcl",
    "lcl": "lcl",
    "incoterm": "incoterm",
    "status": "status",
    "bondedWarehouse": "bonded_warehouse",
    "actualEtd": "actual_etd",
    "actualEta": "actual_eta",
    "cargoPresenceDate": "cargo_presence_date",
    "diRegistrationDate": "di_registration_date",
    "greenChannelOrDeliveryAuthorizedDate": "delivery_authorized_date",
    "firstTruckDelivery": "first_truck_delivery",
    "lastTruckDelivery": "last_truck_delivery",
    "nfIssueDate": "nf_issue_date",
    "invoiceCurrency": "invoice_currency",
    "invoiceValue": "invoice_value",
    "parametrization": "parametrization",
    "di": "di",
    "uniqueDi": "unique_di",
    "approvedDraftDi": "approved_draft_di",
    "technicianResponsibleBrazil": "technician_responsible_brazil",
    "observation": "observation",
}
SHIPMENT_FIELDS = ["id"] + list(dict.fromkeys(SHIPMENT_COLUMNS.values()))
DATE_COLUMNS = [
    "actual_etd",
    "actual_eta",
    "cargo_presence_date",
    "di_registration_date",
    "delivery_authorized_date",
    "first_truck_delivery",
    "last_truck_delivery",
    "nf_issue_date",
]
NUMERIC_COLUMNS = ["fcl", "lcl", "invoice_value"]
TEXT_COLUMNS = [c for c in SHIPMENT_FIELDS if c not in NUMERIC_COLUMNS]


def numericize(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce")
    return df


def coerce_text(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            df[col] = df[col].map(clean_text).astype(object)
    return df


def round_half_up(value: object, ndigits: int = 0) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    q = Decimal(10) ** -ndigits
    return float(Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP))


def container_count(shipment_type: object, fcl: object, default: float = 1) -> float:
    if clean_text(shipment_type) not in FCL_MODES:
        return 0
    value = pd.to_numeric(pd.Series([fcl]), errors="coerce").iloc[0]
    if pd.isna(value) or value == 0:
        return default
    return float(value)


def container_counts(df: pd.DataFrame, default: float = 1) -> pd.Series:
    """Per-row container contribution; zero unless the shipment mode is FCL or FCL/LCL."""
    if df.empty:
        return pd.Series(dtype=float, index=df.index)
    is_fcl = df["shipment_type"].isin(FCL_MODES)
    fcl = pd.to_numeric(df["fcl"], errors="coerce").fillna(0).astype(float)
    fcl = fcl.where(fcl != 0, float(default))
    return fcl.where(is_fcl, 0.0)


def color_for(key: object, mapping: Mapping[str, str]) -> str:
    if key in mapping:
        return mapping[key]  # type: ignore[index]
    logger.warning("No colour mapped for %r, using fallback", key)
    return FALLBACK_COLOR


def check_color_map(labels: Iterable[str], mapping: Mapping[str, str]) -> List[str]:
    missing = [label for label in labels if label not in mapping]
    if missing:
        logger.warning("Colour map is missing %s", ", ".join(missing))
    return missing


def frame_records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """JSON-safe list of row dicts (NaN/NA -> None)."""
    if df is None or df.empty:
        return []
    return df.astype(object).where(df.notna(), None).to_dict(orient="records")


def shipment_frame(records: Iterable[Mapping[str, Any]]) -> pd.DataFrame:
    df = pd.DataFrame(list(records))
    df = df.rename(columns={k: v for k, v in SHIPMENT_COLUMNS.items() if k != v and k in df.columns})
    df = df.loc[:, ~df.columns.duplicated()]
    for col in SHIPMENT_FIELDS:
        if col not in df.columns:
            df[col] = None
    df = df[SHIPMENT_FIELDS].copy()
    df = numericize(df, NUMERIC_COLUMNS)
    df = coerce_text(df, TEXT_COLUMNS)
    return df.reset_index(drop=True)


# ---------------- Public API (Streamlit parity + FastAPI use) ----------------
_loaded: Dict[str, Dict[str, object]] = {}


def load_dashboard_data(store, *, refresh: bool = False) -> Dict[str, object]:
    """Fetch the full collection once per store and keep it in memory.

    A failed fetch raises ``StoreError`` and leaves any previously loaded
    data in place.
    """
    key = store.cache_key
    if refresh or key not in _loaded:
        shipments = shipment_frame(store.fetch_all())
        _loaded[key] = {
            "shipments": shipments,
            "eta_years": available_years(shipments, "actual_eta"),
            "di_years": available_years(shipments, "di_registration_date"),
        }
        logger.info("Loaded %d shipments from %s", len(shipments), key)
    return _loaded[key]


def clear_loaded() -> None:
    _loaded.clear()


def upload_shipments(store, records: List[Dict[str, Any]]) -> Dict[str, object]:
    """Commit an import batch, then re-fetch the whole collection."""
    written = store.upsert(records)
    logger.info("Upserted %d shipments", written)
    return load_dashboard_data(store, refresh=True)


def prepare_context(
    kpi_filters: dict | KpiFilters,
    data_ctx: Dict[str, object],
    brokerage_filters: dict | BrokerageFilters | None = None,
) -> Dict[str, object]:
    shipments: pd.DataFrame = data_ctx.get("shipments", pd.DataFrame())
    if shipments is None or shipments.empty:
        shipments = shipment_frame([])

    kpi = (
        kpi_filters
        if isinstance(kpi_filters, KpiFilters)
        else normalize_kpi_filters(kpi_filters or {}, available_years=data_ctx.get("eta_years") or [])
    )
    brokerage = (
        brokerage_filters
        if isinstance(brokerage_filters, BrokerageFilters)
        else normalize_brokerage_filters(brokerage_filters or {})
    )

    eta_filtered = apply_date_filter(shipments, kpi, "actual_eta")
    di_filtered = apply_date_filter(shipments, kpi, "di_registration_date")

    return {
        "filters": kpi,
        "brokerage_filters": brokerage,
        "shipments": shipments,
        "transit_shipments": eta_filtered,
        "operation_shipments": eta_filtered,
        "performance_shipments": di_filtered,
        "brokerage_shipments": apply_brokerage_filter(shipments, brokerage),
    }


def draft_approved(df: pd.DataFrame) -> pd.Series:
    """True where the draft DI has been signed off ("OK", any case)."""
    if df.empty:
        return pd.Series(dtype=bool, index=df.index)
    return df["approved_draft_di"].map(lambda v: (clean_text(v) or "").upper() == "OK").astype(bool)
