from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

import altair as alt
import pandas as pd

from comex.buckets import Bucket, MonthlySeries, StackSeries, bucket_total, sort_for_display

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


# ---------------- Geometry ----------------
def doughnut_arcs(buckets: Iterable[Bucket], size: float = 120, stroke_width: float = 15) -> Dict[str, Any]:
    """Stroke-dash geometry for a ring of circle segments.

    Arcs follow descending value with zero buckets dropped; each arc length is
    its share of the total circumference and starts where the previous ended.
    """
    buckets = list(buckets)
    total = bucket_total(buckets)
    radius = size / 2 - stroke_width
    circumference = 2 * math.pi * radius

    arcs: List[Dict[str, Any]] = []
    offset = 0.0
    for b in sort_for_display(buckets):
        share = (b.value / total) if total > 0 else 0
        length = circumference * share
        arcs.append(
            {
                "label": b.label,
                "key": b.key,
                "value": b.value,
                "color": b.color,
                "share": share,
                "percent": int(round(share * 100)),
                "length": length,
                "offset": offset,
                "dasharray": f"{length} {circumference}",
                "dashoffset": -offset,
            }
        )
        offset += length
    return {"total": total, "radius": radius, "circumference": circumference, "arcs": arcs}


@dataclass(frozen=True)
class ZoomWindow:
    """Inclusive [start, end] index window over a series of ``length`` points."""

    start: int
    end: int
    length: int

    @classmethod
    def full(cls, length: int) -> "ZoomWindow":
        return cls(0, max(length - 1, 0), length)

    @property
    def span(self) -> int:
        return self.end - self.start

    def zoom_in(self) -> "ZoomWindow":
        span = self.span
        if span < 2:
            return self
        center = self.start + span // 2
        new_range = max(2, math.ceil(span / 1.5))
        new_start = max(0, center - new_range // 2)
        new_end = min(self.length - 1, new_start + new_range - 1)
        return ZoomWindow(new_start, new_end, self.length)

    def zoom_out(self) -> "ZoomWindow":
        span = self.span
        if span >= self.length - 1:
            return self
        center = self.start + span // 2
        new_range = min(self.length, math.floor(span * 1.5) + 1)
        new_start = max(0, center - new_range // 2)
        new_end = min(self.length - 1, new_start + new_range - 1)
        if new_end - new_start + 1 < new_range:
            new_start = max(0, new_end - new_range + 1)
        return ZoomWindow(new_start, new_end, self.length)

    def reset(self) -> "ZoomWindow":
        return ZoomWindow.full(self.length)

    def slice(self, values: Sequence[Any]) -> List[Any]:
        return list(values[self.start : self.end + 1])


def line_domain(values: Iterable[float], goal: Optional[float] = None) -> float:
    """Upper bound of the y axis: 10% above the larger of the data and the goal, 10 when flat."""
    top = max([float(v) for v in values] + [float(goal or 0)])
    return top * 1.1 or 10


def stack_scale(series: Iterable[StackSeries]) -> Dict[str, Any]:
    series = list(series)
    if not series:
        return {"totals": [], "max": 10}
    totals = [sum(vals) for vals in zip(*(s.values for s in series))]
    top = max(totals) if totals else 0
    return {"totals": totals, "max": top * 1.1 or 10}


# ---------------- Altair builders ----------------
def _bucket_frame(buckets: Iterable[Bucket]) -> pd.DataFrame:
    rows = [{"label": b.label, "value": b.value, "color": b.color, "count": b.count} for b in buckets]
    return pd.DataFrame(rows, columns=["label", "value", "color", "count"])


def doughnut_chart(buckets: Iterable[Bucket], title: str = "", size: int = 160) -> alt.Chart:
    frame = _bucket_frame(sort_for_display(buckets))
    total = frame["value"].sum() if not frame.empty else 0
    frame["share"] = frame["value"] / total if total else 0
    return (
        alt.Chart(frame)
        .mark_arc(innerRadius=size * 0.32)
        .encode(
            theta=alt.Theta("value:Q", stack=True),
            color=alt.Color("label:N", scale=alt.Scale(domain=frame["label"].tolist(), range=frame["color"].tolist()), legend=alt.Legend(title=None)),
            order=alt.Order("value:Q", sort="descending"),
            tooltip=["label", alt.Tooltip("value:Q", format=","), alt.Tooltip("share:Q", format=".0%")],
        )
        .properties(title=title, width=size, height=size)
    )


def bar_chart(buckets: Iterable[Bucket], title: str = "", value_format: str = ",") -> alt.Chart:
    frame = _bucket_frame(sort_for_display(buckets))
    return (
        alt.Chart(frame)
        .mark_bar()
        .encode(
            y=alt.Y("label:N", sort="-x", title=None),
            x=alt.X("value:Q", title=None, axis=alt.Axis(format="~s", grid=False)),
            color=alt.Color("color:N", scale=None),
            tooltip=["label", alt.Tooltip("value:Q", format=value_format), "count"],
        )
        .properties(title=title, height=max(80, 28 * len(frame)))
    )


def line_chart(series: MonthlySeries, window: Optional[ZoomWindow] = None, title: str = "", color: str = "#06b6d4") -> alt.Chart:
    window = window or ZoomWindow.full(len(series.values))
    values = window.slice(series.values)
    frame = pd.DataFrame(
        {
            "month": window.slice(series.labels),
            "order": list(range(window.start, window.start + len(values))),
            "value": values,
        }
    )
    y_max = line_domain(frame["value"].tolist(), series.goal)
    line = (
        alt.Chart(frame)
        .mark_line(point={"filled": True, "size": 60}, color=color)
        .encode(
            x=alt.X("month:N", sort=alt.SortField("order"), title=None, axis=alt.Axis(labelAngle=0, grid=False)),
            y=alt.Y("value:Q", title="Days", scale=alt.Scale(domain=[0, y_max]), axis=alt.Axis(gridDash=[4, 4], domain=False, ticks=False)),
            tooltip=["month", alt.Tooltip("value:Q", format=",")],
        )
    )
    layers: List[alt.Chart] = [line]
    if series.goal is not None:
        goal = pd.DataFrame({"goal": [series.goal]})
        layers.append(alt.Chart(goal).mark_rule(color="gray", strokeDash=[4, 4]).encode(y="goal:Q"))
    return alt.layer(*layers).properties(title=title, height=220)


def monthly_bar_chart(series: MonthlySeries, title: str = "", color: str = "#3b82f6") -> alt.Chart:
    frame = pd.DataFrame({"month": series.labels, "order": range(len(series.labels)), "value": series.values})
    return (
        alt.Chart(frame)
        .mark_bar(color=color)
        .encode(
            x=alt.X("month:N", sort=alt.SortField("order"), title=None, axis=alt.Axis(labelAngle=-45)),
            y=alt.Y("value:Q", title=None),
            tooltip=["month", "value"],
        )
        .properties(title=title, height=220)
    )


def stacked_bar_chart(stack: Dict[str, Any], title: str = "") -> alt.Chart:
    labels: List[str] = stack["labels"]
    rows = []
    for s in stack["series"]:
        for i, value in enumerate(s.values):
            rows.append({"month": labels[i], "order": i, "terminal": s.label, "value": value, "color": s.color})
    frame = pd.DataFrame(rows, columns=["month", "order", "terminal", "value", "color"])
    domain = [s.label for s in stack["series"]]
    palette = [s.color for s in stack["series"]]
    return (
        alt.Chart(frame)
        .mark_bar()
        .encode(
            x=alt.X("month:N", sort=alt.SortField("order"), title=None, axis=alt.Axis(labelAngle=0)),
            y=alt.Y("sum(value):Q", title="Containers", scale=alt.Scale(domain=[0, stack_scale(stack["series"])["max"]])),
            color=alt.Color("terminal:N", scale=alt.Scale(domain=domain, range=palette), legend=alt.Legend(title=None)),
            tooltip=["month", "terminal", "value"],
        )
        .properties(title=title, height=260)
    )
