from __future__ import annotations

import logging
import math
from functools import lru_cache
from typing import Optional

import numpy as np
import pandas as pd
from fastapi import Depends, FastAPI, File, Query, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from comex_api.schemas import BrokerageFiltersModel, KpiFiltersModel, MetaFiltersResponse, UploadResponse
from comex.config import load_settings
from comex.data import IMPORT_STATUSES, MONTH_SHORT, load_dashboard_data, prepare_context, upload_shipments
from comex.errors import SpreadsheetParseError
from comex.filters import ALL, analyst_options, cargo_options
from comex.importer import parse_upload
from comex.metrics_brokerage import compute_brokerage
from comex.metrics_dashboard import compute_dashboard
from comex.metrics_imports import compute_imports, filter_imports
from comex.metrics_operation import compute_operation_status
from comex.metrics_performance import compute_performance
from comex.metrics_transit import compute_cargos_in_transit
from comex.store import make_store

settings = load_settings()

app = FastAPI(title="Comex Shipments API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache(maxsize=1)
def get_store():
    return make_store(settings)


def _error(exc: Exception, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                type(pd.NaT): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        )
    )


def _context(store, kpi: Optional[KpiFiltersModel] = None, brokerage: Optional[BrokerageFiltersModel] = None):
    data_ctx = load_dashboard_data(store)
    return prepare_context(
        kpi.model_dump() if kpi else {},
        data_ctx,
        brokerage.model_dump() if brokerage else {},
    )


@app.get("/meta/filters", response_model=MetaFiltersResponse)
def meta_filters(store=Depends(get_store)):
    try:
        data_ctx = load_dashboard_data(store)
        shipments: pd.DataFrame = data_ctx["shipments"]
        return _json(
            {
                "eta_years": sorted(data_ctx.get("eta_years") or [], reverse=True),
                "di_years": sorted(data_ctx.get("di_years") or [], reverse=True),
                "cargos": cargo_options(shipments),
                "analysts": analyst_options(shipments),
                "statuses": IMPORT_STATUSES,
                "months": MONTH_SHORT,
            }
        )
    except Exception as exc:
        logger.exception("meta_filters failed")
        return _error(exc)


@app.get("/dashboard")
def dashboard(include_members: bool = Query(default=True), store=Depends(get_store)):
    try:
        ctx = _context(store)
        return _json(compute_dashboard(ctx, include_members=include_members))
    except Exception as exc:
        logger.exception("dashboard failed")
        return _error(exc)


@app.get("/imports")
def imports(search: str = Query(default=""), status: str = Query(default=ALL), store=Depends(get_store)):
    try:
        ctx = _context(store)
        return _json(compute_imports(ctx, search=search, status=status))
    except Exception as exc:
        logger.exception("imports failed")
        return _error(exc)


@app.post("/kpis/cargos-in-transit")
def cargos_in_transit(
    filters: KpiFiltersModel,
    include_members: bool = Query(default=True),
    store=Depends(get_store),
):
    try:
        ctx = _context(store, kpi=filters)
        return _json(compute_cargos_in_transit(ctx["filters"], ctx, include_members=include_members))
    except Exception as exc:
        logger.exception("cargos_in_transit failed")
        return _error(exc)


@app.post("/kpis/performance")
def performance(
    filters: KpiFiltersModel,
    include_members: bool = Query(default=True),
    store=Depends(get_store),
):
    try:
        ctx = _context(store, kpi=filters)
        return _json(compute_performance(ctx["filters"], ctx, include_members=include_members))
    except Exception as exc:
        logger.exception("performance failed")
        return _error(exc)


@app.post("/kpis/operation-status")
def operation_status(
    filters: KpiFiltersModel,
    include_members: bool = Query(default=True),
    store=Depends(get_store),
):
    try:
        ctx = _context(store, kpi=filters)
        return _json(compute_operation_status(ctx["filters"], ctx, include_members=include_members))
    except Exception as exc:
        logger.exception("operation_status failed")
        return _error(exc)


@app.post("/brokerage")
def brokerage(
    filters: BrokerageFiltersModel,
    include_members: bool = Query(default=True),
    store=Depends(get_store),
):
    try:
        ctx = _context(store, brokerage=filters)
        return _json(compute_brokerage(ctx["brokerage_filters"], ctx, include_members=include_members))
    except Exception as exc:
        logger.exception("brokerage failed")
        return _error(exc)


@app.post("/upload", response_model=UploadResponse)
async def upload(file: UploadFile = File(...), store=Depends(get_store)):
    try:
        content = await file.read()
        records = parse_upload(content, file.filename or "")
    except SpreadsheetParseError as exc:
        logger.warning("upload rejected: %s", exc)
        return _error(exc, status_code=400)
    try:
        data_ctx = upload_shipments(store, records)
        return _json(
            {
                "processed": len(records),
                "total_shipments": int(len(data_ctx["shipments"])),
                "message": f"{len(records)} shipments processed successfully!",
            }
        )
    except Exception as exc:
        logger.exception("upload failed")
        return _error(exc)


@app.post("/refresh")
def refresh(store=Depends(get_store)):
    try:
        data_ctx = load_dashboard_data(store, refresh=True)
        return _json({"total_shipments": int(len(data_ctx["shipments"]))})
    except Exception as exc:
        logger.exception("refresh failed")
        return _error(exc)


def _csv(export_df: Optional[pd.DataFrame], filename: str) -> Response:
    if export_df is None or not hasattr(export_df, "to_csv"):
        export_df = pd.DataFrame()
    csv_bytes = export_df.to_csv(index=False).encode("utf-8")
    return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": f"attachment; filename={filename}"})


@app.post("/export/brokerage")
def export_brokerage(filters: BrokerageFiltersModel, store=Depends(get_store)):
    ctx = _context(store, brokerage=filters)
    return _csv(ctx.get("brokerage_shipments"), "brokerage.csv")


@app.post("/export/{page}")
def export_page(
    page: str,
    filters: KpiFiltersModel,
    search: str = Query(default=""),
    status: str = Query(default=ALL),
    store=Depends(get_store),
):
    ctx = _context(store, kpi=filters)

    filename = f"{page}.csv"
    if page == "imports":
        export_df = filter_imports(ctx["shipments"], search, status)
    elif page in {"cargos-in-transit", "transit"}:
        export_df = ctx.get("transit_shipments")
        filename = "cargos-in-transit.csv"
    elif page == "performance":
        export_df = ctx.get("performance_shipments")
    elif page in {"operation-status", "operation"}:
        export_df = ctx.get("operation_shipments")
        filename = "operation-status.csv"
    else:
        export_df = pd.DataFrame()

    return _csv(export_df, filename)
