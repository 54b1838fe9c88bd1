from __future__ import annotations

import re
import unicodedata
from typing import Optional

import pandas as pd

_NULL_STRINGS = {"nan", "none", "null", "<na>", "nat"}


def clean_text(value: object) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, float):
        if pd.isna(value):
            return None
        if value.is_integer():
            return str(int(value))
    s = str(value).strip()
    if not s or s.lower() in _NULL_STRINGS:
        return None
    return s


def strip_accents(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def title_case(value: object) -> str:
    s = clean_text(value)
    if not s:
        return ""
    return re.sub(r"\w\S*", lambda m: m.group(0)[0].upper() + m.group(0)[1:].lower(), s)


def normalize_terminal_name(name: object) -> str:
    """Map a free-text bonded warehouse name onto its canonical terminal alias."""
    text = clean_text(name)
    if not text:
        return "N/A"
    lowered = strip_accents(text.lower())

    if "tecon" in lowered:
        return "TECON"
    if "teca" in lowered:
        return "TECA"
    if "clia" in lowered and "emporio" in lowered:
        return "CLIA Empório"
    if "intermaritima" in lowered:
        return "Intermaritima"
    if "tpc" in lowered:
        return "TPC"
    return text
