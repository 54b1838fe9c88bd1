from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional

from comex.filters import ALL, BrokerageFilters, KpiFilters, as_month, as_year

PAGES = ("Dashboard", "Imports", "KPIs", "Brokerage")
KPI_TABS = ("Cargos in Transit", "Performance", "Operation Status")


@dataclass(frozen=True)
class Selection:
    chart: str
    label: str

    @property
    def title(self) -> str:
        return f"Shipments for: {self.label}"


@dataclass(frozen=True)
class AppState:
    page: str = "Dashboard"
    page_state: Dict[str, Any] = field(default_factory=dict)
    kpi_tab: str = KPI_TABS[0]
    kpi_filters: KpiFilters = field(default_factory=KpiFilters)
    brokerage_filters: BrokerageFilters = field(default_factory=BrokerageFilters)
    selection: Optional[Selection] = None


def _year_or_all(value: object) -> Any:
    year = as_year(value)
    return ALL if year is None else year


def reduce(state: AppState, action: Mapping[str, Any]) -> AppState:
    """Return the state that results from ``action``; ``state`` is never mutated."""
    kind = action.get("type")

    if kind == "navigate":
        page = action.get("page")
        if page not in PAGES:
            raise ValueError(f"Unknown page: {page!r}")
        return replace(state, page=page, page_state=dict(action.get("state") or {}), selection=None)

    if kind == "set_tab":
        tab = action.get("tab")
        if tab not in KPI_TABS:
            raise ValueError(f"Unknown KPI tab: {tab!r}")
        return replace(state, kpi_tab=tab, selection=None)

    if kind == "set_kpi_filter":
        name, value = action.get("name"), action.get("value")
        if name == "year":
            filters = replace(state.kpi_filters, year=_year_or_all(value))
        elif name == "month":
            filters = replace(state.kpi_filters, month=as_month(value))
        elif name == "cargo_types":
            filters = replace(state.kpi_filters, cargo_types=[str(v) for v in (value or [])])
        else:
            raise ValueError(f"Unknown KPI filter: {name!r}")
        return replace(state, kpi_filters=filters, selection=None)

    if kind == "toggle_cargo":
        cargo = str(action.get("cargo"))
        current = list(state.kpi_filters.cargo_types)
        if cargo in current:
            current.remove(cargo)
        else:
            current.append(cargo)
        return replace(state, kpi_filters=replace(state.kpi_filters, cargo_types=current), selection=None)

    if kind == "clear_cargo":
        return replace(state, kpi_filters=replace(state.kpi_filters, cargo_types=[]), selection=None)

    if kind == "set_brokerage_filter":
        name, value = action.get("name"), action.get("value")
        if name == "year":
            filters = replace(state.brokerage_filters, year=_year_or_all(value))
        elif name == "month":
            filters = replace(state.brokerage_filters, month=as_month(value))
        elif name in ("analyst", "cargo"):
            filters = replace(state.brokerage_filters, **{name: str(value) if value else ALL})
        else:
            raise ValueError(f"Unknown brokerage filter: {name!r}")
        return replace(state, brokerage_filters=filters, selection=None)

    if kind == "select_bucket":
        return replace(state, selection=Selection(chart=str(action.get("chart", "")), label=str(action.get("label"))))

    if kind == "clear_selection":
        return replace(state, selection=None)

    raise ValueError(f"Unknown action: {kind!r}")
