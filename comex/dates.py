from __future__ import annotations

import math
import re
from datetime import date, datetime, timedelta
from numbers import Real
from typing import Optional

import numpy as np
import pandas as pd

# Spreadsheet serial day 25569 is 1970-01-01.
EXCEL_EPOCH_OFFSET = 25569
UNIX_EPOCH = date(1970, 1, 1)

_DMY_RE = re.compile(r"^(\d{1,2})[/.\-](\d{1,2})[/.\-](\d{1,4})$")


def _is_missing(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def parse_date(value: object) -> Optional[pd.Timestamp]:
    """Parse a stored date value into a naive Timestamp, or None when it is absent or invalid."""
    if _is_missing(value):
        return None
    if not isinstance(value, (str, date, datetime, np.datetime64)):
        return None
    ts = pd.to_datetime(value, errors="coerce", utc=True)
    if ts is None or pd.isna(ts):
        return None
    return ts.tz_localize(None)


def to_datetime_series(series: pd.Series) -> pd.Series:
    if series.empty:
        return pd.Series(pd.NaT, index=series.index, dtype="datetime64[ns]")
    text = series.astype(object).where(series.notna(), None)
    parsed = pd.to_datetime(text, errors="coerce", utc=True, format="mixed")
    return parsed.dt.tz_localize(None)


def calculate_days_between(start: object, end: object) -> Optional[int]:
    start_ts = parse_date(start)
    end_ts = parse_date(end)
    if start_ts is None or end_ts is None:
        return None
    diff = abs(end_ts - start_ts)
    return int(math.ceil(diff / pd.Timedelta(days=1)))


def days_between_series(start: pd.Series, end: pd.Series) -> pd.Series:
    """Vectorized calculate_days_between; NaN where either endpoint is missing."""
    diff = (to_datetime_series(end) - to_datetime_series(start)).abs()
    return np.ceil(diff / pd.Timedelta(days=1))


def excel_serial_to_date(serial: object) -> Optional[date]:
    if isinstance(serial, bool) or not isinstance(serial, Real):
        return None
    if math.isnan(serial) or math.isinf(serial):
        return None
    try:
        return UNIX_EPOCH + timedelta(days=math.floor(serial - EXCEL_EPOCH_OFFSET))
    except OverflowError:
        return None


def _expand_year(year: int) -> int:
    if year < 100:
        return 1900 + year if year > 50 else 2000 + year
    return year


def parse_date_from_excel(value: object) -> str:
    """Normalize a spreadsheet date cell to an ISO date string.

    Accepts serial numbers, day-first ``d/m/y`` style strings (``/``, ``.`` or
    ``-`` separated), native date cells and any other string pandas can parse.
    Anything unusable becomes ``""``.
    """
    if _is_missing(value) or isinstance(value, bool):
        return ""
    if isinstance(value, np.datetime64):
        value = pd.Timestamp(value)
    if isinstance(value, (pd.Timestamp, datetime)):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Real):
        parsed = excel_serial_to_date(value)
        return parsed.isoformat() if parsed else ""
    if not isinstance(value, str):
        return ""

    text = value.strip()
    match = _DMY_RE.match(text)
    if match:
        day, month, year = (int(part) for part in match.groups())
        try:
            return date(_expand_year(year), month, day).isoformat()
        except ValueError:
            return ""

    parsed_ts = pd.to_datetime(text, errors="coerce")
    if parsed_ts is None or pd.isna(parsed_ts):
        return ""
    return parsed_ts.date().isoformat()
