from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, NamedTuple

import pandas as pd

from comex.buckets import Bucket, MonthlySeries, group_counts, group_unique, monthly_mean_days, monthly_unique, payload
from comex.charts import doughnut_arcs, doughnut_chart, line_chart, monthly_bar_chart, to_vega_spec
from comex.data import CHANNEL_COLORS, CHANNELS
from comex.filters import KpiFilters

DATE_FIELD = "di_registration_date"

INCOTERM_LABELS = ["DAP", "CIF", "FOB"]
INCOTERM_COLORS = {"DAP": "#a855f7", "CIF": "#3b82f6", "FOB": "#10b981"}


class LeadTime(NamedTuple):
    name: str
    title: str
    start: str
    end: str
    goal: int
    color: str


LEAD_TIMES = [
    LeadTime("clearance", "Clearance Time", "cargo_presence_date", "delivery_authorized_date", 5, "#06b6d4"),
    LeadTime("delivery", "Delivery Time", "delivery_authorized_date", "first_truck_delivery", 3, "#10b981"),
    LeadTime("operation", "Operation Time", "actual_eta", "delivery_authorized_date", 8, "#3b82f6"),
    LeadTime("nf", "NF Issue Time", "delivery_authorized_date", "nf_issue_date", 6, "#a855f7"),
]


def performance_buckets(df: pd.DataFrame) -> Dict[str, List[Bucket]]:
    return {
        "incoterm": group_counts(df, "incoterm", INCOTERM_LABELS, colors=INCOTERM_COLORS),
        "di_parametrization": group_unique(df, "parametrization", CHANNELS, "di", colors=CHANNEL_COLORS),
    }


def lead_time_series(df: pd.DataFrame) -> Dict[str, MonthlySeries]:
    """Monthly mean lead times by DI registration month; rows flagged as unique DI are left out."""
    base = df.loc[df["unique_di"] != "Yes"] if not df.empty else df
    return {
        lt.name: monthly_mean_days(base, DATE_FIELD, lt.start, lt.end, label=lt.title, goal=lt.goal)
        for lt in LEAD_TIMES
    }


def compute_performance(filters: KpiFilters, ctx: Dict[str, Any], *, include_members: bool = True) -> Dict[str, Any]:
    df: pd.DataFrame = ctx.get("performance_shipments", pd.DataFrame())
    buckets = performance_buckets(df)
    dis = monthly_unique(df, DATE_FIELD, "di", label="DIs")
    series = lead_time_series(df)

    charts = {
        "incoterm": to_vega_spec(doughnut_chart(buckets["incoterm"], title="Incoterm")),
        "di_parametrization": to_vega_spec(doughnut_chart(buckets["di_parametrization"], title="DI Parameterization")),
        "dis_per_month": to_vega_spec(monthly_bar_chart(dis, title="DIs Registers")),
    }
    for lt in LEAD_TIMES:
        title = f"{lt.title} (Goal: {lt.goal} days)"
        charts[lt.name] = to_vega_spec(line_chart(series[lt.name], title=title, color=lt.color))

    return {
        "filters": asdict(filters),
        "count": int(len(df)),
        "buckets": {name: payload(items, include_members) for name, items in buckets.items()},
        "arcs": {name: doughnut_arcs(items) for name, items in buckets.items()},
        "dis_per_month": dis.to_dict(include_members),
        "lead_times": {name: s.to_dict(include_members) for name, s in series.items()},
        "charts": charts,
    }
