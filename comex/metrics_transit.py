from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List

import pandas as pd

from comex.buckets import Bucket, group_counts, monthly_stack, payload
from comex.charts import doughnut_arcs, doughnut_chart, stack_scale, stacked_bar_chart, to_vega_spec
from comex.data import (
    AT_THE_PORT,
    DOCUMENT_REVIEW,
    IN_TRANSIT,
    STATUS_ALIASES,
    TERMINAL_COLOR_MAP,
    container_counts,
    draft_approved,
    normalize_terminal_name,
)
from comex.filters import KpiFilters
from comex.text import clean_text

INCOTERM_LABELS = ["CIF", "FOB", "DAP"]
INCOTERM_COLORS = {"CIF": "#8b5cf6", "FOB": "#3b82f6", "DAP": "#ec4899"}

STATUS_LABELS = [DOCUMENT_REVIEW, IN_TRANSIT, AT_THE_PORT]
STATUS_DISPLAY = {DOCUMENT_REVIEW: "Doc Review", IN_TRANSIT: "In Transit", AT_THE_PORT: "At Port"}
STATUS_COLORS = {"Doc Review": "#f97316", "In Transit": "#3b82f6", "At Port": "#ef4444"}

SAP_PO_COLORS = {"OK": "#10b981", "Pending": "#ef4444"}
DOC_STATUS_COLORS = {"Approved": "#10b981", "Not Approved": "#ef4444"}


def transit_buckets(df: pd.DataFrame) -> Dict[str, List[Bucket]]:
    has_po = df["po_sap"].map(lambda v: "OK" if clean_text(v) else "Pending") if not df.empty else df["po_sap"]
    doc_status = draft_approved(df).map({True: "Approved", False: "Not Approved"})
    return {
        "incoterm": group_counts(df, "incoterm", INCOTERM_LABELS, colors=INCOTERM_COLORS),
        "status": group_counts(
            df, "status", STATUS_LABELS, aliases=STATUS_ALIASES, colors=STATUS_COLORS, display=STATUS_DISPLAY
        ),
        "sap_po": group_counts(df, has_po, ["OK", "Pending"], colors=SAP_PO_COLORS),
        "doc_status": group_counts(df, doc_status, ["Approved", "Not Approved"], colors=DOC_STATUS_COLORS),
    }


def cargo_volume(df: pd.DataFrame) -> Dict[str, Any]:
    """FCL containers per normalized terminal over the July-December slice, by ETA month."""
    terminals = df["bonded_warehouse"].map(normalize_terminal_name)
    return monthly_stack(df, "actual_eta", terminals, container_counts(df, default=0), colors=TERMINAL_COLOR_MAP)


def compute_cargos_in_transit(filters: KpiFilters, ctx: Dict[str, Any], *, include_members: bool = True) -> Dict[str, Any]:
    df: pd.DataFrame = ctx.get("transit_shipments", pd.DataFrame())
    buckets = transit_buckets(df)
    stack = cargo_volume(df)

    return {
        "filters": asdict(filters),
        "count": int(len(df)),
        "buckets": {name: payload(items, include_members) for name, items in buckets.items()},
        "arcs": {name: doughnut_arcs(items) for name, items in buckets.items()},
        "cargo_volume": {
            "labels": stack["labels"],
            "series": [s.to_dict(include_members) for s in stack["series"]],
            "scale": stack_scale(stack["series"]),
        },
        "charts": {
            "incoterm": to_vega_spec(doughnut_chart(buckets["incoterm"], title="Shipments")),
            "status": to_vega_spec(doughnut_chart(buckets["status"], title="Shipment Status")),
            "sap_po": to_vega_spec(doughnut_chart(buckets["sap_po"], title="SAP PO Status")),
            "doc_status": to_vega_spec(doughnut_chart(buckets["doc_status"], title="Document Status")),
            "cargo_volume": to_vega_spec(stacked_bar_chart(stack, title="Cargo Volume")),
        },
    }
