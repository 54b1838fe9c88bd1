from __future__ import annotations

from typing import Any, Dict, Optional

import pandas as pd

from comex.data import IMPORT_STATUSES, frame_records
from comex.filters import ALL

SEARCH_COLUMNS = ["bl_awb", "description", "type_of_cargo"]
TABLE_COLUMNS = ["bl_awb", "po_sap", "status", "type_of_cargo", "actual_eta", "invoice_value", "invoice_currency"]


def filter_imports(df: pd.DataFrame, search: str = "", status: Optional[str] = ALL) -> pd.DataFrame:
    """Case-insensitive substring search over BL/AWB, description and cargo type, plus an exact status match."""
    if df.empty:
        return df.copy()
    mask = pd.Series(True, index=df.index)
    term = (search or "").strip().lower()
    if term:
        hit = pd.Series(False, index=df.index)
        for col in SEARCH_COLUMNS:
            hit |= df[col].fillna("").astype(str).str.lower().str.contains(term, regex=False)
        mask &= hit
    if status and status != ALL:
        mask &= df["status"] == status
    return df.loc[mask].copy()


def compute_imports(ctx: Dict[str, Any], *, search: str = "", status: Optional[str] = ALL) -> Dict[str, Any]:
    df: pd.DataFrame = ctx.get("shipments", pd.DataFrame())
    rows = filter_imports(df, search, status)
    return {
        "filters": {"search": search or "", "status": status or ALL},
        "status_options": [ALL] + IMPORT_STATUSES,
        "count": int(len(rows)),
        "columns": TABLE_COLUMNS,
        "rows": frame_records(rows),
    }
