from __future__ import annotations

from typing import List, Optional, Union

from pydantic import BaseModel, Field


class KpiFiltersModel(BaseModel):
    cargo_types: List[str] = Field(default_factory=list)
    year: Optional[Union[int, str]] = None
    month: Optional[Union[int, str]] = None


class BrokerageFiltersModel(BaseModel):
    year: Optional[Union[int, str]] = None
    month: Optional[Union[int, str]] = None
    analyst: str = "All"
    cargo: str = "All"


class UploadResponse(BaseModel):
    processed: int
    total_shipments: int
    message: str


class MetaFiltersResponse(BaseModel):
    eta_years: List[int]
    di_years: List[int]
    cargos: List[str]
    analysts: List[str]
    statuses: List[str]
    months: List[str]
