from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Dict, List, Optional

import pandas as pd

from comex.buckets import Bucket, bucket_total, group_counts, payload
from comex.charts import doughnut_arcs, doughnut_chart, to_vega_spec
from comex.data import (
    AT_THE_PORT,
    CARGO_DELIVERED,
    DI_REGISTERED,
    DOCUMENT_REVIEW,
    IN_TRANSIT,
    ORDER_PLACED,
    STATUS_ALIASES,
    draft_approved,
    round_half_up,
)
from comex.dates import to_datetime_series

RECENT_DAYS = 30

# Segment key doubles as the Imports status filter the segment navigates to.
STATUS_SEGMENTS = [ORDER_PLACED, IN_TRANSIT, AT_THE_PORT, CARGO_DELIVERED]
SEGMENT_LABELS = {
    ORDER_PLACED: "Order Placed",
    IN_TRANSIT: "In Transit",
    AT_THE_PORT: "At Port",
    CARGO_DELIVERED: "Delivered",
}
SEGMENT_COLORS = {"Order Placed": "#6c757d", "In Transit": "#3b82f6", "At Port": "#ef4444", "Delivered": "#10b981"}


def status_segments(df: pd.DataFrame) -> List[Bucket]:
    return group_counts(
        df,
        "status",
        STATUS_SEGMENTS,
        aliases=STATUS_ALIASES,
        colors=SEGMENT_COLORS,
        display=SEGMENT_LABELS,
    )


def segment_navigation(bucket: Bucket) -> Dict[str, Any]:
    """Navigation action for a clicked status segment."""
    return {"type": "navigate", "page": "Imports", "state": {"status_filter": bucket.key or "All"}}


def dashboard_kpis(df: pd.DataFrame, today: date) -> Dict[str, Any]:
    if df.empty:
        return {"total_value": 0, "on_time_pct": 0, "in_transit": 0, "total_shipments": 0}

    eta = to_datetime_series(df["actual_eta"])
    last_truck = to_datetime_series(df["last_truck_delivery"])
    cutoff = pd.Timestamp(today - timedelta(days=RECENT_DAYS))
    recent = eta > cutoff
    total_value = float(pd.to_numeric(df.loc[recent, "invoice_value"], errors="coerce").fillna(0).sum())

    delivered = df["status"] == CARGO_DELIVERED
    on_time = delivered & eta.notna() & last_truck.notna() & (last_truck <= eta)
    delivered_count = int(delivered.sum())
    on_time_pct = round_half_up(on_time.sum() / delivered_count * 100) if delivered_count else 0

    return {
        "total_value": total_value,
        "on_time_pct": int(on_time_pct or 0),
        "in_transit": int((df["status"] == IN_TRANSIT).sum()),
        "total_shipments": int(len(df)),
    }


def action_items(df: pd.DataFrame, today: date) -> Dict[str, int]:
    if df.empty:
        return {"arriving_today": 0, "docs_pending": 0}
    eta = to_datetime_series(df["actual_eta"])
    arriving = eta.dt.date == today
    pending = (df["status"] == DOCUMENT_REVIEW) | ((df["status"] == DI_REGISTERED) & ~draft_approved(df))
    return {"arriving_today": int(arriving.sum()), "docs_pending": int(pending.sum())}


def compute_dashboard(ctx: Dict[str, Any], *, today: Optional[date] = None, include_members: bool = True) -> Dict[str, Any]:
    """Landing page: headline KPIs, action items and the shipment status doughnut over all shipments."""
    today = today or date.today()
    df: pd.DataFrame = ctx.get("shipments", pd.DataFrame())
    segments = status_segments(df)

    return {
        "kpis": dashboard_kpis(df, today),
        "action_items": action_items(df, today),
        "status": {
            "total": bucket_total(segments),
            "buckets": payload(segments, include_members),
            "arcs": doughnut_arcs(segments, size=220, stroke_width=25),
            "navigation": {b.label: segment_navigation(b) for b in segments},
        },
        "charts": {"status": to_vega_spec(doughnut_chart(segments, title="Shipment Status", size=220))},
    }
