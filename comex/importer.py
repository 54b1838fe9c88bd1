from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass
from pathlib import PurePath
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from comex.dates import _is_missing, parse_date_from_excel
from comex.errors import SpreadsheetParseError
from comex.text import clean_text

logger = logging.getLogger(__name__)

ENGINES = {".xlsx": "openpyxl", ".xlsm": "openpyxl", ".xls": "xlrd"}
PARSE_ERROR_MESSAGE = "Failed to process the Excel file. Please check the format."


def _text(value: object) -> Optional[str]:
    return clean_text(value)


def _number(value: object) -> float:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value
    parsed = pd.to_numeric(pd.Series([str(value).strip().replace(",", "")]), errors="coerce").iloc[0]
    return 0 if pd.isna(parsed) else float(parsed)


@dataclass(frozen=True)
class HeaderRule:
    patterns: Tuple[str, ...]
    field: str
    transform: Callable[[object], Any] = _text
    excludes: Tuple[str, ...] = ()

    def matches(self, key: str) -> bool:
        if any(ex in key for ex in self.excludes):
            return False
        return any(p in key for p in self.patterns)


# Consulted in order for every header; a header feeds every rule it matches.
HEADER_RULES: List[HeaderRule] = [
    HeaderRule(("bl", "billoflading"), "bl_awb", excludes=("responsible",)),
    HeaderRule(("description",), "description"),
    HeaderRule(("description", "cargo"), "type_of_cargo", excludes=("cargopresence", "cargoready")),
    HeaderRule(("costcenter",), "cost_center"),
    HeaderRule(("status",), "status"),
    HeaderRule(("eta",), "actual_eta", parse_date_from_excel),
    HeaderRule(("etd",), "actual_etd", parse_date_from_excel),
    HeaderRule(("incoterm",), "incoterm"),
    HeaderRule(("posap", "po/sap"), "po_sap"),
    HeaderRule(("approveddraftdi",), "approved_draft_di"),
    HeaderRule(("bondedwarehouse",), "bonded_warehouse"),
    HeaderRule(("fcl",), "fcl", _number, excludes=("fcl/lcl",)),
    HeaderRule(("lcl",), "lcl", _number, excludes=("fcl",)),
    HeaderRule(("invoicevalue",), "invoice_value", _number),
    HeaderRule(("invoicecurrency", "currency"), "invoice_currency"),
    HeaderRule(("invoice",), "invoice", excludes=("value", "currency")),
    HeaderRule(("parametrization",), "parametrization"),
    HeaderRule(("cargopresence",), "cargo_presence_date", parse_date_from_excel),
    HeaderRule(("diregistration",), "di_registration_date", parse_date_from_excel),
    HeaderRule(("greenchannel", "deliveryauthorized"), "delivery_authorized_date", parse_date_from_excel),
    HeaderRule(("firsttruck",), "first_truck_delivery", parse_date_from_excel),
    HeaderRule(("lasttruck",), "last_truck_delivery", parse_date_from_excel),
    HeaderRule(("nfissue",), "nf_issue_date", parse_date_from_excel),
    HeaderRule(
        ("di",),
        "di",
        excludes=("registration", "draft", "cif", "unique", "additional", "param", "condition"),
    ),
    HeaderRule(("uniquedi",), "unique_di"),
    HeaderRule(("shipmenttype", "modal", "transportmode"), "shipment_type", excludes=("intermodal",)),
    HeaderRule(("technicianresponsible", "analyst"), "technician_responsible_brazil"),
    HeaderRule(("observation", "remarks"), "observation"),
    HeaderRule(("typeofcargo",), "type_of_cargo"),
]


def header_key(header: object) -> str:
    return re.sub(r"\s+", "", str(header)).lower()


def rules_for(header: object) -> List[HeaderRule]:
    if _is_missing(header):
        return []
    key = header_key(header)
    return [rule for rule in HEADER_RULES if rule.matches(key)]


def map_row(row: Sequence[object], header_rules: Sequence[List[HeaderRule]]) -> Dict[str, Any]:
    record: Dict[str, Any] = {}
    for i, rules in enumerate(header_rules):
        if not rules or i >= len(row):
            continue
        value = row[i]
        if _is_missing(value):
            continue
        for rule in rules:
            record[rule.field] = rule.transform(value)
    return record


def map_rows(rows: Sequence[Sequence[object]]) -> List[Dict[str, Any]]:
    """Map a header-first cell grid onto shipment records.

    Rows without a BL/AWB after mapping are dropped.
    """
    if not rows:
        return []
    header_rules = [rules_for(h) for h in rows[0]]
    records: List[Dict[str, Any]] = []
    dropped = 0
    for row in rows[1:]:
        record = map_row(row or [], header_rules)
        bl = clean_text(record.get("bl_awb"))
        if not bl:
            dropped += 1
            continue
        record["bl_awb"] = bl
        records.append(record)
    if dropped:
        logger.warning("Dropped %d spreadsheet rows without a BL/AWB", dropped)
    return records


def read_workbook(content: bytes, filename: str) -> List[List[object]]:
    """First sheet of an .xlsx/.xls workbook as a 2-D cell list (blanks -> None)."""
    suffix = PurePath(filename or "").suffix.lower()
    engine = ENGINES.get(suffix)
    if engine is None:
        raise SpreadsheetParseError(f"Unsupported file type {suffix or filename!r}; upload .xlsx or .xls")
    df = pd.read_excel(io.BytesIO(content), sheet_name=0, header=None, engine=engine, dtype=object)
    return df.astype(object).where(df.notna(), None).values.tolist()


def parse_upload(content: bytes, filename: str) -> List[Dict[str, Any]]:
    try:
        rows = read_workbook(content, filename)
        records = map_rows(rows)
    except SpreadsheetParseError:
        raise
    except Exception as exc:
        logger.exception("Reading %s failed", filename)
        raise SpreadsheetParseError(PARSE_ERROR_MESSAGE) from exc
    logger.info("Parsed %d shipments from %s", len(records), filename)
    return records
