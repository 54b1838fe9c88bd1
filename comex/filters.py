from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional, Union

import pandas as pd

from comex.dates import to_datetime_series
from comex.text import clean_text, title_case

ALL = "All"

# Reference date each view filters on.
DATE_FIELD_BY_VIEW: Dict[str, str] = {
    "cargos_in_transit": "actual_eta",
    "operation_status": "actual_eta",
    "performance": "di_registration_date",
    "brokerage": "di_registration_date",
}

YearChoice = Union[int, str]
MonthChoice = Union[int, str]


@dataclass(frozen=True)
class KpiFilters:
    cargo_types: List[str] = field(default_factory=list)
    year: YearChoice = ALL
    month: MonthChoice = ALL


@dataclass(frozen=True)
class BrokerageFilters:
    year: YearChoice = ALL
    month: MonthChoice = ALL
    analyst: str = ALL
    cargo: str = ALL


def _is_all(value: object) -> bool:
    return isinstance(value, str) and value.strip().lower() == ALL.lower()


def as_year(value: object) -> Optional[YearChoice]:
    if value is None or value == "":
        return None
    if _is_all(value):
        return ALL
    try:
        return int(value)
    except Exception:
        return None


def as_month(value: object) -> MonthChoice:
    if value is None or value == "" or _is_all(value):
        return ALL
    try:
        month = int(value)
    except Exception:
        return ALL
    return month if 0 <= month <= 11 else ALL


def _as_str_list(values: Optional[Iterable[object]]) -> List[str]:
    if not values:
        return []
    if isinstance(values, str):
        values = [values]
    out: List[str] = []
    for v in values:
        s = clean_text(v)
        if s and s not in out:
            out.append(s)
    return out


def normalize_kpi_filters(
    raw: dict,
    *,
    available_years: Optional[List[int]] = None,
    today: Optional[date] = None,
) -> KpiFilters:
    today = today or date.today()
    available_years = sorted(available_years or [])

    year = as_year(raw.get("year"))
    if year is None:
        year = available_years[-1] if available_years else today.year

    return KpiFilters(
        cargo_types=_as_str_list(raw.get("cargo_types")),
        year=year,
        month=as_month(raw.get("month")),
    )


def normalize_brokerage_filters(raw: dict, *, current_year: Optional[int] = None) -> BrokerageFilters:
    year = as_year(raw.get("year"))
    if year is None:
        year = current_year or date.today().year

    analyst = clean_text(raw.get("analyst")) or ALL
    cargo = clean_text(raw.get("cargo")) or ALL
    return BrokerageFilters(
        year=year,
        month=as_month(raw.get("month")),
        analyst=ALL if _is_all(analyst) else title_case(analyst),
        cargo=ALL if _is_all(cargo) else cargo,
    )


def _date_mask(df: pd.DataFrame, date_field: str, year: YearChoice, month: MonthChoice) -> pd.Series:
    dates = to_datetime_series(df[date_field])
    mask = dates.notna()
    if year != ALL:
        mask &= dates.dt.year == int(year)
    if month != ALL:
        mask &= dates.dt.month == int(month) + 1
    return mask.fillna(False).astype(bool)


def apply_date_filter(df: pd.DataFrame, filters: KpiFilters, date_field: str) -> pd.DataFrame:
    """Rows whose cargo type is selected and whose reference date falls in the year/month.

    Rows without a parseable reference date are always excluded.
    """
    if df.empty:
        return df.copy()
    mask = _date_mask(df, date_field, filters.year, filters.month)
    if filters.cargo_types:
        mask &= df["type_of_cargo"].isin(filters.cargo_types)
    return df.loc[mask].copy()


def apply_brokerage_filter(df: pd.DataFrame, filters: BrokerageFilters) -> pd.DataFrame:
    if df.empty:
        return df.copy()
    mask = _date_mask(df, DATE_FIELD_BY_VIEW["brokerage"], filters.year, filters.month)
    if filters.analyst != ALL:
        mask &= df["technician_responsible_brazil"].map(title_case) == filters.analyst
    if filters.cargo != ALL:
        mask &= df["type_of_cargo"] == filters.cargo
    return df.loc[mask].copy()


def available_years(df: pd.DataFrame, date_field: str) -> List[int]:
    if df.empty or date_field not in df.columns:
        return []
    years = to_datetime_series(df[date_field]).dt.year.dropna().astype(int)
    return sorted(set(years.tolist()))


def cargo_options(df: pd.DataFrame) -> List[str]:
    if df.empty:
        return []
    return sorted({s for s in df["type_of_cargo"].map(clean_text) if s})


def analyst_options(df: pd.DataFrame) -> List[str]:
    if df.empty:
        return []
    return sorted({s for s in df["technician_responsible_brazil"].map(title_case) if s})
