from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List

import pandas as pd

from comex.buckets import Bucket, group_counts, group_open, group_sums, payload
from comex.charts import bar_chart, doughnut_arcs, doughnut_chart, to_vega_spec
from comex.data import (
    AT_THE_PORT,
    CARGO_CLEARED,
    CARGO_DELIVERED,
    DI_REGISTERED,
    IN_TRANSIT,
    STATUS_ALIASES,
    STATUS_COLORS,
    TERMINAL_COLOR_MAP,
    container_counts,
    normalize_terminal_name,
    round_half_up,
)
from comex.filters import KpiFilters

OPERATION_STATUSES = [IN_TRANSIT, AT_THE_PORT, DI_REGISTERED, CARGO_CLEARED, CARGO_DELIVERED]


def operation_buckets(df: pd.DataFrame) -> Dict[str, List[Bucket]]:
    containers = container_counts(df, default=1)
    terminals = df["bonded_warehouse"].map(normalize_terminal_name)

    by_containers = group_sums(
        df, "status", OPERATION_STATUSES, containers, aliases=STATUS_ALIASES, colors=STATUS_COLORS
    )
    for b in by_containers:
        b.value = int(round_half_up(b.value) or 0)

    return {
        "status_by_bls": group_counts(df, "status", OPERATION_STATUSES, aliases=STATUS_ALIASES, colors=STATUS_COLORS),
        "status_by_containers": by_containers,
        "cargo_value": group_open(df, terminals, "invoice_value", exclude=("N/A",), colors=TERMINAL_COLOR_MAP),
        "container_volume": group_open(df, terminals, containers, exclude=("N/A",), colors=TERMINAL_COLOR_MAP),
    }


def compute_operation_status(filters: KpiFilters, ctx: Dict[str, Any], *, include_members: bool = True) -> Dict[str, Any]:
    df: pd.DataFrame = ctx.get("operation_shipments", pd.DataFrame())
    buckets = operation_buckets(df)

    return {
        "filters": asdict(filters),
        "count": int(len(df)),
        "buckets": {name: payload(items, include_members) for name, items in buckets.items()},
        "arcs": {
            "status_by_bls": doughnut_arcs(buckets["status_by_bls"]),
            "status_by_containers": doughnut_arcs(buckets["status_by_containers"]),
        },
        "charts": {
            "status_by_bls": to_vega_spec(doughnut_chart(buckets["status_by_bls"], title="Shipment Status (by BLs)")),
            "status_by_containers": to_vega_spec(
                doughnut_chart(buckets["status_by_containers"], title="Shipment Status (by Containers)")
            ),
            "cargo_value": to_vega_spec(bar_chart(buckets["cargo_value"], title="Cargo Value", value_format="$,.2f")),
            "container_volume": to_vega_spec(bar_chart(buckets["container_volume"], title="Container Volume")),
        },
    }
