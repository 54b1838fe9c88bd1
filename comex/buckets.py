from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import pandas as pd

from comex.data import FALLBACK_COLOR, FISCAL_SLICE_START, MONTH_LABELS, color_for, frame_records, round_half_up
from comex.dates import days_between_series, to_datetime_series
from comex.text import clean_text

KeySpec = Union[str, pd.Series]
ValueSpec = Union[str, pd.Series, None]


@dataclass
class Bucket:
    label: str
    value: float = 0
    members: pd.DataFrame = field(default_factory=pd.DataFrame)
    color: str = FALLBACK_COLOR
    secondary_value: Optional[float] = None
    key: Optional[str] = None

    @property
    def count(self) -> int:
        return int(len(self.members))

    def to_dict(self, include_members: bool = True) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "label": self.label,
            "key": self.key if self.key is not None else self.label,
            "value": self.value,
            "count": self.count,
            "color": self.color,
        }
        if self.secondary_value is not None:
            out["secondary_value"] = self.secondary_value
        if include_members:
            out["shipments"] = frame_records(self.members)
        return out


@dataclass
class StackSeries:
    label: str
    values: List[float]
    members: List[pd.DataFrame]
    color: str = FALLBACK_COLOR

    def to_dict(self, include_members: bool = True) -> Dict[str, Any]:
        out: Dict[str, Any] = {"label": self.label, "data": self.values, "color": self.color}
        if include_members:
            out["shipments"] = [frame_records(m) for m in self.members]
        return out


@dataclass
class MonthlySeries:
    labels: List[str]
    values: List[float]
    members: List[pd.DataFrame]
    label: str = ""
    goal: Optional[float] = None

    def to_dict(self, include_members: bool = True) -> Dict[str, Any]:
        out: Dict[str, Any] = {"label": self.label, "labels": self.labels, "data": self.values, "goal": self.goal}
        if include_members:
            out["shipments"] = [frame_records(m) for m in self.members]
        return out


def _number(value: float) -> float:
    value = float(value)
    return int(value) if value.is_integer() else value


def bucket_keys(df: pd.DataFrame, key: KeySpec, aliases: Optional[Mapping[str, str]] = None) -> pd.Series:
    """Per-row bucket key (cleaned text, legacy aliases folded)."""
    if isinstance(key, pd.Series):
        keys = key.reindex(df.index)
    else:
        keys = df[key] if key in df.columns else pd.Series(None, index=df.index, dtype=object)
    keys = keys.map(clean_text).astype(object)
    if aliases:
        keys = keys.map(lambda k: aliases.get(k, k) if k is not None else None)
    return keys


def _values(df: pd.DataFrame, value: ValueSpec) -> pd.Series:
    if value is None:
        return pd.Series(1.0, index=df.index)
    if isinstance(value, pd.Series):
        series = value.reindex(df.index)
    else:
        series = df[value]
    return pd.to_numeric(series, errors="coerce").fillna(0).astype(float)


def _make(
    label: str,
    value: float,
    members: pd.DataFrame,
    colors: Optional[Mapping[str, str]],
    display: Optional[Mapping[str, str]],
    secondary: Optional[float] = None,
) -> Bucket:
    shown = (display or {}).get(label, label)
    return Bucket(
        label=shown,
        value=_number(value),
        members=members,
        color=color_for(shown, colors) if colors is not None else FALLBACK_COLOR,
        secondary_value=secondary,
        key=label,
    )


def group_counts(
    df: pd.DataFrame,
    key: KeySpec,
    labels: Sequence[str],
    *,
    aliases: Optional[Mapping[str, str]] = None,
    colors: Optional[Mapping[str, str]] = None,
    display: Optional[Mapping[str, str]] = None,
    unique_col: Optional[str] = None,
) -> List[Bucket]:
    """Row counts per pre-declared bucket; keys outside ``labels`` are ignored.

    ``unique_col`` adds a secondary distinct count (e.g. DI numbers per channel).
    """
    keys = bucket_keys(df, key, aliases)
    out: List[Bucket] = []
    for label in labels:
        members = df.loc[keys == label]
        secondary = None
        if unique_col is not None:
            secondary = int(members[unique_col].map(clean_text).dropna().nunique())
        out.append(_make(label, len(members), members, colors, display, secondary))
    return out


def group_sums(
    df: pd.DataFrame,
    key: KeySpec,
    labels: Sequence[str],
    value: ValueSpec,
    *,
    aliases: Optional[Mapping[str, str]] = None,
    colors: Optional[Mapping[str, str]] = None,
    display: Optional[Mapping[str, str]] = None,
) -> List[Bucket]:
    keys = bucket_keys(df, key, aliases)
    values = _values(df, value)
    out: List[Bucket] = []
    for label in labels:
        mask = keys == label
        out.append(_make(label, values[mask].sum(), df.loc[mask], colors, display))
    return out


def group_unique(
    df: pd.DataFrame,
    key: KeySpec,
    labels: Sequence[str],
    unique_col: str,
    *,
    colors: Optional[Mapping[str, str]] = None,
    display: Optional[Mapping[str, str]] = None,
) -> List[Bucket]:
    """Distinct ``unique_col`` values per bucket; members are the first row seen for each value."""
    keys = bucket_keys(df, key)
    uniques = df[unique_col].map(clean_text) if not df.empty else pd.Series(dtype=object)
    out: List[Bucket] = []
    for label in labels:
        mask = (keys == label) & uniques.notna()
        members = df.loc[mask]
        members = members.loc[~uniques[mask].duplicated()]
        out.append(_make(label, len(members), members, colors, display))
    return out


def group_open(
    df: pd.DataFrame,
    key: KeySpec,
    value: ValueSpec = None,
    *,
    seed: Iterable[str] = (),
    exclude: Iterable[str] = (),
    missing: Optional[str] = None,
    colors: Optional[Mapping[str, str]] = None,
) -> List[Bucket]:
    """Buckets discovered from the data (first-seen order), then any unseen seed labels."""
    keys = bucket_keys(df, key)
    if missing is not None:
        keys = keys.fillna(missing)
    excluded = set(exclude)
    labels: List[str] = []
    for k in keys.dropna().tolist():
        if k not in labels and k not in excluded:
            labels.append(k)
    for s in seed:
        if s not in labels and s not in excluded:
            labels.append(s)
    values = _values(df, value)
    out: List[Bucket] = []
    for label in labels:
        mask = keys == label
        out.append(_make(label, values[mask].sum(), df.loc[mask], colors, None))
    return out


def group_mean_days(
    df: pd.DataFrame,
    key: KeySpec,
    start: str,
    end: str,
    *,
    seed: Iterable[str] = (),
    colors: Optional[Mapping[str, str]] = None,
) -> List[Bucket]:
    """Mean day-difference per bucket, rounded; pairs with a missing endpoint are left out."""
    keys = bucket_keys(df, key)
    days = days_between_series(df[start], df[end]) if not df.empty else pd.Series(dtype=float)
    valid = keys.notna() & days.notna()
    labels: List[str] = []
    for k in keys[valid].tolist():
        if k not in labels:
            labels.append(k)
    for s in seed:
        if s not in labels:
            labels.append(s)
    out: List[Bucket] = []
    for label in labels:
        mask = valid & (keys == label)
        mean = days[mask].mean() if mask.any() else 0
        out.append(_make(label, round_half_up(mean) or 0, df.loc[mask], colors, None))
    return out


def _month_index(df: pd.DataFrame, date_field: str) -> pd.Series:
    if df.empty:
        return pd.Series(dtype=float, index=df.index)
    return to_datetime_series(df[date_field]).dt.month - 1


def monthly_mean_days(
    df: pd.DataFrame,
    date_field: str,
    start: str,
    end: str,
    *,
    label: str = "",
    goal: Optional[float] = None,
) -> MonthlySeries:
    """Twelve monthly points: rounded mean day-difference, 0 where a month has no pairs."""
    months = _month_index(df, date_field)
    days = days_between_series(df[start], df[end]) if not df.empty else pd.Series(dtype=float)
    values: List[float] = []
    members: List[pd.DataFrame] = []
    for m in range(12):
        mask = (months == m) & days.notna()
        mean = days[mask].mean() if mask.any() else 0
        values.append(_number(round_half_up(mean) or 0))
        members.append(df.loc[mask])
    return MonthlySeries(labels=list(MONTH_LABELS), values=values, members=members, label=label, goal=goal)


def monthly_unique(df: pd.DataFrame, date_field: str, unique_col: str, *, label: str = "") -> MonthlySeries:
    """Twelve monthly points: distinct ``unique_col`` values registered in each month."""
    months = _month_index(df, date_field)
    uniques = df[unique_col].map(clean_text) if not df.empty else pd.Series(dtype=object)
    values: List[float] = []
    members: List[pd.DataFrame] = []
    for m in range(12):
        mask = (months == m) & uniques.notna()
        sub = df.loc[mask]
        sub = sub.loc[~uniques[mask].duplicated()]
        values.append(len(sub))
        members.append(sub)
    return MonthlySeries(labels=list(MONTH_LABELS), values=values, members=members, label=label)


def monthly_stack(
    df: pd.DataFrame,
    date_field: str,
    stack_key: KeySpec,
    value: ValueSpec,
    *,
    months: Optional[Sequence[int]] = None,
    colors: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    """Stacked monthly series over a month slice (default: the fiscal slice, months 6-11).

    Every stack key seen in the slice gets a series, sorted by name; only
    positive contributions are counted and kept as members.
    """
    months = list(months if months is not None else range(FISCAL_SLICE_START, 12))
    month_idx = _month_index(df, date_field)
    keys = bucket_keys(df, stack_key)
    values = _values(df, value)

    in_slice = month_idx.isin(months) & keys.notna()
    stack_labels = sorted(set(keys[in_slice].tolist()))
    series: List[StackSeries] = []
    for stack in stack_labels:
        data: List[float] = []
        members: List[pd.DataFrame] = []
        for m in months:
            mask = in_slice & (keys == stack) & (month_idx == m) & (values > 0)
            data.append(_number(values[mask].sum()))
            members.append(df.loc[mask])
        color = color_for(stack, colors) if colors is not None else FALLBACK_COLOR
        series.append(StackSeries(label=stack, values=data, members=members, color=color))
    return {"labels": [MONTH_LABELS[m] for m in months], "months": months, "series": series}


def sort_for_display(buckets: Iterable[Bucket]) -> List[Bucket]:
    """Descending by value with zero-value buckets dropped (legend order)."""
    return sorted((b for b in buckets if b.value), key=lambda b: b.value, reverse=True)


def bucket_total(buckets: Iterable[Bucket]) -> float:
    return _number(sum(float(b.value) for b in buckets))


def drill_down(buckets: Iterable[Bucket], label: str) -> pd.DataFrame:
    """Member rows behind a clicked bucket (matched on display label or key)."""
    for b in buckets:
        if b.label == label or b.key == label:
            return b.members
    return pd.DataFrame()


def month_drill_down(series: MonthlySeries, label: str) -> pd.DataFrame:
    """Rows behind one monthly point (matched on month label)."""
    if label not in series.labels:
        return pd.DataFrame()
    return series.members[series.labels.index(label)]


def payload(buckets: Iterable[Bucket], include_members: bool = True) -> List[Dict[str, Any]]:
    return [b.to_dict(include_members=include_members) for b in buckets]
