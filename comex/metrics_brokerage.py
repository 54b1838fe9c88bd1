from __future__ import annotations

from dataclasses import asdict
from datetime import date
from typing import Any, Dict, List, Optional

import pandas as pd

from comex.buckets import Bucket, group_counts, group_mean_days, group_open, payload
from comex.charts import bar_chart, doughnut_arcs, doughnut_chart, to_vega_spec
from comex.data import CHANNELS, INCOTERMS, MODAL_COLORS, TRANSPORT_MODALS, round_half_up
from comex.dates import days_between_series
from comex.filters import BrokerageFilters, analyst_options, available_years, cargo_options
from comex.text import clean_text, title_case

INCOTERM_COLORS = {"FOB": "#007bff", "CIF": "#28a745", "DAP": "#ffc107", "FCA": "#6db7ff", "EXW": "#dc3545"}
CHANNEL_COLORS = {"Green": "#28a745", "Yellow": "#ffc107", "Red": "#dc3545"}


def brokerage_kpis(df: pd.DataFrame) -> Dict[str, Any]:
    if df.empty:
        return {"total_dis": 0, "total_value": 0.0, "avg_clearance_days": 0.0, "dis_per_analyst": 0.0}

    total_dis = int(df["di"].map(clean_text).dropna().nunique())
    total_value = float(pd.to_numeric(df["invoice_value"], errors="coerce").fillna(0).sum())
    clearance = days_between_series(df["cargo_presence_date"], df["delivery_authorized_date"]).dropna()
    avg_clearance = round_half_up(clearance.mean(), 1) if not clearance.empty else 0.0
    analysts = len({a for a in df["technician_responsible_brazil"].map(title_case) if a})
    per_analyst = total_dis / analysts if analysts else total_dis

    return {
        "total_dis": total_dis,
        "total_value": total_value,
        "avg_clearance_days": avg_clearance,
        "dis_per_analyst": round_half_up(per_analyst, 1),
    }


def brokerage_buckets(df: pd.DataFrame) -> Dict[str, List[Bucket]]:
    return {
        "transport_modal": group_open(df, "shipment_type", seed=TRANSPORT_MODALS, missing="Unknown", colors=MODAL_COLORS),
        "transit_by_incoterm": group_mean_days(
            df, "incoterm", "actual_etd", "actual_eta", seed=INCOTERMS, colors=INCOTERM_COLORS
        ),
        "di_channel": group_counts(df, "parametrization", CHANNELS, colors=CHANNEL_COLORS, unique_col="di"),
    }


def brokerage_options(shipments: pd.DataFrame, *, current_year: Optional[int] = None) -> Dict[str, List[Any]]:
    current_year = current_year or date.today().year
    years = sorted(set(available_years(shipments, "di_registration_date")) | {current_year}, reverse=True)
    return {
        "years": years,
        "months": list(range(12)),
        "analysts": analyst_options(shipments),
        "cargos": cargo_options(shipments),
    }


def compute_brokerage(filters: BrokerageFilters, ctx: Dict[str, Any], *, include_members: bool = True) -> Dict[str, Any]:
    df: pd.DataFrame = ctx.get("brokerage_shipments", pd.DataFrame())
    shipments: pd.DataFrame = ctx.get("shipments", pd.DataFrame())
    buckets = brokerage_buckets(df)

    return {
        "filters": asdict(filters),
        "options": brokerage_options(shipments),
        "count": int(len(df)),
        "kpis": brokerage_kpis(df),
        "buckets": {name: payload(items, include_members) for name, items in buckets.items()},
        "arcs": {"di_channel": doughnut_arcs(buckets["di_channel"], size=150, stroke_width=15)},
        "charts": {
            "transport_modal": to_vega_spec(bar_chart(buckets["transport_modal"], title="Volume by Transport Modal")),
            "transit_by_incoterm": to_vega_spec(
                bar_chart(buckets["transit_by_incoterm"], title="Avg. Transit Time by Incoterm")
            ),
            "di_channel": to_vega_spec(doughnut_chart(buckets["di_channel"], title="DI Channel Parameterization", size=150)),
        },
    }
