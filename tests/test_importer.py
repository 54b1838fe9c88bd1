"""
Unit Tests for comex/importer.py
Run: pytest tests/test_importer.py -v
"""
import io

import pandas as pd
import pytest

from comex.errors import SpreadsheetParseError
from comex.importer import PARSE_ERROR_MESSAGE, header_key, map_rows, parse_upload, rules_for

HEADERS = [
    "BL/AWB",
    "Description",
    "Status",
    "ETA",
    "FCL",
    "Invoice Value",
    "DI",
    "DI Registration Date",
    "Unique DI",
    "Bonded Warehouse",
]


def _fields(header):
    return [rule.field for rule in rules_for(header)]


# ============================================================
# HEADER MATCHING
# ============================================================

class TestHeaderRules:

    def test_key_strips_whitespace(self):
        assert header_key(" Invoice  Value ") == "invoicevalue"

    def test_description_feeds_two_fields(self):
        assert _fields("Description") == ["description", "type_of_cargo"]

    def test_di_excludes_related_columns(self):
        assert _fields("DI") == ["di"]
        assert _fields("DI Registration Date") == ["di_registration_date"]
        assert _fields("Unique DI") == ["unique_di"]
        assert _fields("Approved Draft DI") == ["approved_draft_di"]

    def test_invoice_columns(self):
        assert _fields("Invoice Value") == ["invoice_value"]
        assert _fields("Invoice Currency") == ["invoice_currency"]
        assert _fields("Invoice") == ["invoice"]

    def test_fcl_lcl(self):
        assert _fields("FCL") == ["fcl"]
        assert _fields("LCL") == ["lcl"]

    def test_cargo_presence_is_a_date_not_a_cargo(self):
        assert _fields("Cargo Presence Date") == ["cargo_presence_date"]

    def test_unknown_and_blank_headers(self):
        assert rules_for("Comments from supplier") == []
        assert rules_for(None) == []


# ============================================================
# ROW MAPPING
# ============================================================

class TestMapRows:

    def test_full_row(self):
        rows = [
            HEADERS,
            ["BL-9", "Steel coils", "IN TRANSIT", 45000, "2", "1,234.50", "123", "15/03/2023", "Yes", "Tecon"],
        ]
        record = map_rows(rows)[0]
        assert record["bl_awb"] == "BL-9"
        assert record["description"] == "Steel coils"
        assert record["type_of_cargo"] == "Steel coils"
        assert record["actual_eta"] == "2023-03-15"
        assert record["fcl"] == 2
        assert record["invoice_value"] == 1234.5
        assert record["di"] == "123"
        assert record["di_registration_date"] == "2023-03-15"
        assert record["unique_di"] == "Yes"

    def test_bl_only_row_kept(self):
        records = map_rows([HEADERS, ["BL-10"]])
        assert records == [{"bl_awb": "BL-10"}]

    def test_blank_cells_left_undefined(self):
        records = map_rows([HEADERS, ["BL-11", None, "", None, None, None, None, None, None, None]])
        assert records == [{"bl_awb": "BL-11"}]

    def test_row_without_bl_dropped(self, caplog):
        records = map_rows([HEADERS, [None, "No BL here", "IN TRANSIT"], ["BL-12"]])
        assert [r["bl_awb"] for r in records] == ["BL-12"]
        assert "Dropped 1" in caplog.text

    def test_later_column_wins(self):
        rows = [["Description", "Type of Cargo", "BL"], ["Steel coils", "Raw Material", "BL-13"]]
        record = map_rows(rows)[0]
        assert record["description"] == "Steel coils"
        assert record["type_of_cargo"] == "Raw Material"

    def test_numeric_bl_kept_as_text(self):
        records = map_rows([["BL"], [123456.0]])
        assert records[0]["bl_awb"] == "123456"

    def test_bad_number_becomes_zero(self):
        records = map_rows([["BL", "Invoice Value"], ["BL-14", "n/a"]])
        assert records[0]["invoice_value"] == 0

    def test_empty_sheet(self):
        assert map_rows([]) == []
        assert map_rows([HEADERS]) == []


# ============================================================
# WORKBOOK UPLOAD
# ============================================================

class TestParseUpload:

    def test_xlsx_round_trip(self):
        frame = pd.DataFrame(
            [["BL-20", "IN TRANSIT", "10/07/2024"], [None, "AT THE PORT", None]],
            columns=["BL/AWB", "Status", "ETA"],
        )
        buf = io.BytesIO()
        frame.to_excel(buf, index=False, engine="openpyxl")
        records = parse_upload(buf.getvalue(), "shipments.xlsx")
        assert records == [{"bl_awb": "BL-20", "status": "IN TRANSIT", "actual_eta": "2024-07-10"}]

    def test_unsupported_extension(self):
        with pytest.raises(SpreadsheetParseError):
            parse_upload(b"a,b\n1,2\n", "shipments.csv")

    def test_corrupt_workbook(self):
        with pytest.raises(SpreadsheetParseError) as exc_info:
            parse_upload(b"definitely not a workbook", "shipments.xlsx")
        assert str(exc_info.value) == PARSE_ERROR_MESSAGE
