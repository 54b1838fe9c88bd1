"""
Unit Tests for comex/state.py
Run: pytest tests/test_state.py -v
"""
import pytest

from comex.filters import ALL
from comex.state import AppState, Selection, reduce


class TestNavigation:

    def test_navigate_with_page_state(self):
        state = reduce(AppState(), {"type": "navigate", "page": "Imports", "state": {"status_filter": "IN TRANSIT"}})
        assert state.page == "Imports"
        assert state.page_state == {"status_filter": "IN TRANSIT"}

    def test_unknown_page(self):
        with pytest.raises(ValueError):
            reduce(AppState(), {"type": "navigate", "page": "Settings"})

    def test_tabs(self):
        state = reduce(AppState(), {"type": "set_tab", "tab": "Performance"})
        assert state.kpi_tab == "Performance"
        with pytest.raises(ValueError):
            reduce(state, {"type": "set_tab", "tab": "Finance"})


class TestFilters:

    def test_year_and_month(self):
        state = reduce(AppState(), {"type": "set_kpi_filter", "name": "year", "value": "2024"})
        state = reduce(state, {"type": "set_kpi_filter", "name": "month", "value": 13})
        assert state.kpi_filters.year == 2024
        assert state.kpi_filters.month == ALL

    def test_toggle_cargo(self):
        state = reduce(AppState(), {"type": "toggle_cargo", "cargo": "Raw Material"})
        state = reduce(state, {"type": "toggle_cargo", "cargo": "Spare Parts"})
        assert state.kpi_filters.cargo_types == ["Raw Material", "Spare Parts"]
        state = reduce(state, {"type": "toggle_cargo", "cargo": "Raw Material"})
        assert state.kpi_filters.cargo_types == ["Spare Parts"]
        assert reduce(state, {"type": "clear_cargo"}).kpi_filters.cargo_types == []

    def test_brokerage_filters(self):
        state = reduce(AppState(), {"type": "set_brokerage_filter", "name": "analyst", "value": "Ana Souza"})
        state = reduce(state, {"type": "set_brokerage_filter", "name": "cargo", "value": ""})
        assert state.brokerage_filters.analyst == "Ana Souza"
        assert state.brokerage_filters.cargo == ALL

    def test_unknown_filter(self):
        with pytest.raises(ValueError):
            reduce(AppState(), {"type": "set_kpi_filter", "name": "analyst", "value": "x"})


class TestSelection:

    def test_select_and_clear(self):
        state = reduce(AppState(), {"type": "select_bucket", "chart": "status", "label": "In Transit"})
        assert state.selection == Selection("status", "In Transit")
        assert state.selection.title == "Shipments for: In Transit"
        assert reduce(state, {"type": "clear_selection"}).selection is None

    def test_filter_change_clears_selection(self):
        state = reduce(AppState(), {"type": "select_bucket", "chart": "status", "label": "In Transit"})
        state = reduce(state, {"type": "set_kpi_filter", "name": "year", "value": 2024})
        assert state.selection is None

    def test_state_is_not_mutated(self):
        before = AppState()
        reduce(before, {"type": "toggle_cargo", "cargo": "Raw Material"})
        assert before.kpi_filters.cargo_types == []

    def test_unknown_action(self):
        with pytest.raises(ValueError):
            reduce(AppState(), {"type": "explode"})
