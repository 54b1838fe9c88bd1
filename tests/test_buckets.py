"""
Unit Tests for comex/buckets.py and the frame helpers in comex/data.py
Run: pytest tests/test_buckets.py -v
"""
import logging

import pandas as pd

from comex.buckets import (
    Bucket,
    bucket_total,
    drill_down,
    group_counts,
    group_mean_days,
    group_open,
    group_sums,
    group_unique,
    monthly_mean_days,
    monthly_stack,
    month_drill_down,
    monthly_unique,
    payload,
    sort_for_display,
)
from comex.data import (
    CHANNELS,
    FALLBACK_COLOR,
    STATUS_ALIASES,
    STATUS_COLORS,
    color_for,
    container_count,
    container_counts,
    round_half_up,
    shipment_frame,
)
from comex.dates import days_between_series
from comex.metrics_operation import OPERATION_STATUSES


# ============================================================
# FRAME HELPERS
# ============================================================

class TestShipmentFrame:

    def test_renames_document_keys(self):
        df = shipment_frame([{"blAwb": "BL-1", "actualEta": "2024-01-01", "invoiceValue": "12.5", "fcl": None}])
        assert df.loc[0, "bl_awb"] == "BL-1"
        assert df.loc[0, "actual_eta"] == "2024-01-01"
        assert df.loc[0, "invoice_value"] == 12.5
        assert pd.isna(df.loc[0, "fcl"])

    def test_missing_columns_filled(self):
        df = shipment_frame([])
        assert df.empty
        assert "technician_responsible_brazil" in df.columns


class TestContainers:

    def test_lcl_contributes_nothing(self):
        assert container_count("LCL", 4) == 0
        assert container_count("AIR", 4) == 0

    def test_fcl_default_when_missing(self):
        assert container_count("FCL", None) == 1
        assert container_count("FCL/LCL", 0, default=0) == 0
        assert container_count("FCL", 3) == 3

    def test_vectorized(self, shipments):
        counts = container_counts(shipments, default=1)
        assert counts.tolist() == [2.0, 0.0, 1.0, 0.0, 0.0]


class TestColors:

    def test_fallback_logs_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="comex.data"):
            assert color_for("SOMETHING NEW", STATUS_COLORS) == FALLBACK_COLOR
        assert "SOMETHING NEW" in caplog.text

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3.0
        assert round_half_up(3.65, 1) == 3.7
        assert round_half_up(None) is None


# ============================================================
# GROUPING
# ============================================================

class TestGroupCounts:

    def test_alias_folding_and_totals(self, shipments):
        buckets = group_counts(shipments, "status", OPERATION_STATUSES, aliases=STATUS_ALIASES)
        values = {b.label: b.value for b in buckets}
        assert values == {"IN TRANSIT": 1, "AT THE PORT": 1, "DI REGISTERED": 0, "CARGO CLEARED": 0, "CARGO DELIVERED": 1}
        known = shipments["status"].map(lambda s: STATUS_ALIASES.get(s, s)).isin(OPERATION_STATUSES).sum()
        assert bucket_total(buckets) == known

    def test_declared_order(self, shipments):
        buckets = group_counts(shipments, "status", OPERATION_STATUSES, aliases=STATUS_ALIASES)
        assert [b.label for b in buckets] == OPERATION_STATUSES

    def test_members(self, shipments):
        buckets = group_counts(shipments, "status", OPERATION_STATUSES, aliases=STATUS_ALIASES)
        assert drill_down(buckets, "AT THE PORT")["bl_awb"].tolist() == ["BL-002"]

    def test_empty_frame(self):
        buckets = group_counts(shipment_frame([]), "status", OPERATION_STATUSES)
        assert [b.value for b in buckets] == [0] * len(OPERATION_STATUSES)


class TestDiUniqueness:

    def test_unique_vs_shipment_count(self, shipments):
        unique = {b.label: b.value for b in group_unique(shipments, "parametrization", CHANNELS, "di")}
        counts = {b.label: b.value for b in group_counts(shipments, "parametrization", CHANNELS)}
        assert unique["Green"] == 1
        assert counts["Green"] == 2

    def test_secondary_unique_count(self, shipments):
        buckets = group_counts(shipments, "parametrization", CHANNELS, unique_col="di")
        green = buckets[0]
        assert (green.value, green.secondary_value) == (2, 1)


class TestOtherGroupings:

    def test_sums(self, shipments):
        buckets = group_sums(shipments, "status", OPERATION_STATUSES, container_counts(shipments), aliases=STATUS_ALIASES)
        values = {b.label: b.value for b in buckets}
        assert values["IN TRANSIT"] == 2
        assert values["AT THE PORT"] == 0
        assert values["CARGO DELIVERED"] == 1

    def test_open_with_seed_and_missing(self, shipments):
        buckets = group_open(shipments, "shipment_type", seed=["FCL", "RO-RO"], missing="Unknown")
        assert [b.label for b in buckets] == ["FCL", "LCL", "FCL/LCL", "AIR", "Unknown", "RO-RO"]
        assert buckets[-1].value == 0

    def test_open_exclude(self, shipments):
        buckets = group_open(shipments, "bonded_warehouse", "invoice_value", exclude=("TECA",))
        assert "TECA" not in [b.label for b in buckets]

    def test_mean_days(self, shipments):
        buckets = group_mean_days(shipments, "incoterm", "actual_etd", "actual_eta", seed=["FCA"])
        values = {b.label: b.value for b in buckets}
        assert values == {"CIF": 20, "FOB": 20, "DAP": 4, "FCA": 0}


# ============================================================
# MONTHLY SERIES
# ============================================================

class TestMonthly:

    def test_mean_days_rounds_half_up(self, shipments):
        series = monthly_mean_days(
            shipments, "di_registration_date", "cargo_presence_date", "delivery_authorized_date", goal=5
        )
        assert len(series.values) == 12
        assert series.values[6] == 4  # (4 + 3) / 2
        assert series.values[7] == 4
        assert series.values[0] == 0
        assert series.goal == 5

    def test_month_members_are_the_averaged_rows(self, shipments):
        series = monthly_mean_days(
            shipments, "di_registration_date", "cargo_presence_date", "delivery_authorized_date"
        )
        july = month_drill_down(series, "Julho")
        assert july["bl_awb"].tolist() == ["BL-001", "BL-002"]
        days = days_between_series(july["cargo_presence_date"], july["delivery_authorized_date"])
        assert round_half_up(days.mean()) == series.values[6]
        assert month_drill_down(series, "Janeiro").empty
        assert month_drill_down(series, "Jul").empty

    def test_month_members_skip_rows_without_both_dates(self, shipments):
        series = monthly_mean_days(shipments, "di_registration_date", "delivery_authorized_date", "first_truck_delivery")
        assert month_drill_down(series, "Julho")["bl_awb"].tolist() == ["BL-001"]

    def test_unique_month_members(self, shipments):
        series = monthly_unique(shipments, "di_registration_date", "di")
        assert month_drill_down(series, "Julho")["bl_awb"].tolist() == ["BL-001"]

    def test_unique_per_month(self, shipments):
        series = monthly_unique(shipments, "di_registration_date", "di")
        assert series.values[6] == 1
        assert series.values[7] == 1
        assert sum(series.values) == 2

    def test_stack_covers_second_half(self, shipments):
        stack = monthly_stack(shipments, "actual_eta", "bonded_warehouse", container_counts(shipments, default=0))
        assert stack["months"] == [6, 7, 8, 9, 10, 11]
        assert stack["labels"][0] == "Julho"
        for s in stack["series"]:
            assert len(s.values) == 6
        by_label = {s.label: s.values for s in stack["series"]}
        assert by_label["Tecon Salvador"] == [2, 0, 0, 0, 0, 0]


# ============================================================
# DISPLAY
# ============================================================

class TestDisplay:

    def test_sort_drops_zero(self):
        buckets = [Bucket("a", 1), Bucket("b", 0), Bucket("c", 5)]
        assert [b.label for b in sort_for_display(buckets)] == ["c", "a"]
        assert bucket_total(buckets) == 6

    def test_payload(self, shipments):
        buckets = group_counts(shipments, "incoterm", ["CIF"])
        out = payload(buckets)
        assert out[0]["count"] == 2
        assert [row["bl_awb"] for row in out[0]["shipments"]] == ["BL-001", "BL-004"]
        assert "shipments" not in payload(buckets, include_members=False)[0]
