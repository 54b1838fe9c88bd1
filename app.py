import logging
import os
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import altair as alt
import pandas as pd
import streamlit as st

from comex.auth import AuthClient
from comex.buckets import Bucket, MonthlySeries, drill_down, month_drill_down, monthly_unique, sort_for_display
from comex.charts import ZoomWindow, bar_chart, doughnut_chart, line_chart, monthly_bar_chart, stacked_bar_chart
from comex.config import ENV_KEYS, load_settings
from comex.data import IMPORT_STATUSES, MONTH_SHORT, load_dashboard_data, prepare_context, shipment_frame, upload_shipments
from comex.errors import AuthError, SpreadsheetParseError, StoreError
from comex.filters import ALL, analyst_options, available_years, cargo_options
from comex.importer import parse_upload
from comex.metrics_brokerage import brokerage_buckets, brokerage_kpis, brokerage_options
from comex.metrics_dashboard import action_items, dashboard_kpis, segment_navigation, status_segments
from comex.metrics_imports import TABLE_COLUMNS, filter_imports
from comex.metrics_operation import operation_buckets
from comex.metrics_performance import LEAD_TIMES, lead_time_series, performance_buckets
from comex.metrics_transit import cargo_volume, transit_buckets
from comex.state import KPI_TABS, PAGES, AppState, reduce
from comex.store import default_profile, make_store

alt.data_transformers.disable_max_rows()
logger = logging.getLogger("comex.app")
NO_SELECTION = "(none)"


def get_secret(key: str) -> Optional[str]:
    v = os.environ.get(key)
    if v:
        return v
    try:
        return st.secrets.get(key)  # type: ignore[attr-defined]
    except Exception:
        return None


settings = load_settings({k: v for k in ENV_KEYS if (v := get_secret(k))})
logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .app-top-bar {padding: 6px 0 4px;border-bottom: 1px solid #e5e7eb;margin-bottom: 10px;}
        .app-top-bar .breadcrumb {color: #6b7280;font-size: 0.9rem;margin-bottom: 2px;}
        .app-top-bar .page-title {font-size: 1.4rem;font-weight: 700;color: #111827;}
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-header {display: flex;justify-content: space-between;align-items: center;margin-bottom: 8px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(
        f"""
        <div class="card">
          <div class="card-header"><div class="card-title">{title}</div></div>
        """,
        unsafe_allow_html=True,
    )
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def format_filter_summary(chips: List[str]) -> str:
    return "".join([f"<span class='chip'>{txt}</span>" for txt in chips])


def render_page_header(title: str, breadcrumb: str, filter_summary_html: str = "", export_df: Optional[pd.DataFrame] = None, export_name: str = "export.csv"):
    inject_base_styles()
    c1, c2 = st.columns([8, 2])
    with c1:
        st.markdown(
            f"<div class='app-top-bar'><div class='breadcrumb'>{breadcrumb}</div><div class='page-title'>{title}</div></div>",
            unsafe_allow_html=True,
        )
    with c2:
        btn_cols = st.columns(2)
        if btn_cols[0].button("Refresh", key=f"refresh-{title}"):
            refresh_data()
            st.rerun()
        if export_df is not None and not export_df.empty:
            btn_cols[1].download_button(
                "Export CSV",
                data=export_df.to_csv(index=False).encode("utf-8"),
                file_name=export_name,
                mime="text/csv",
            )
    if filter_summary_html:
        st.markdown(f"<div class='chip-row'>{filter_summary_html}</div>", unsafe_allow_html=True)


def members_table(df: pd.DataFrame) -> pd.DataFrame:
    if df is None or df.empty:
        return pd.DataFrame(columns=TABLE_COLUMNS)
    return df[TABLE_COLUMNS]


def render_drill_down(name: str, buckets: List[Bucket]):
    """Pick a bucket and list the shipments behind it."""
    options = [b.label for b in sort_for_display(buckets)]
    if not options:
        return
    choice = st.selectbox("Show shipments for", [NO_SELECTION] + options, key=f"drill-{name}")
    if choice != NO_SELECTION:
        dispatch({"type": "select_bucket", "chart": name, "label": choice})
        st.caption(f"Shipments for: {choice}")
        st.dataframe(members_table(drill_down(buckets, choice)), hide_index=True, use_container_width=True)


def render_month_drill_down(name: str, series: MonthlySeries, window: Optional[ZoomWindow] = None):
    """Pick a month on a monthly chart and list the shipments behind that point."""
    labels = window.slice(series.labels) if window else series.labels
    options = [label for label in labels if series.values[series.labels.index(label)]]
    if not options:
        return
    choice = st.selectbox("Show shipments for month", [NO_SELECTION] + options, key=f"drill-month-{name}")
    if choice != NO_SELECTION:
        dispatch({"type": "select_bucket", "chart": name, "label": choice})
        st.caption(f"Shipments for: {choice}")
        st.dataframe(members_table(month_drill_down(series, choice)), hide_index=True, use_container_width=True)


def dispatch(action: Dict[str, Any]):
    st.session_state["app_state"] = reduce(st.session_state["app_state"], action)


def render_zoom_controls(name: str, length: int) -> ZoomWindow:
    key = f"zoom-{name}"
    window: ZoomWindow = st.session_state.get(key) or ZoomWindow.full(length)
    c1, c2, c3 = st.columns(3)
    if c1.button("Zoom in", key=f"{key}-in"):
        window = window.zoom_in()
    if c2.button("Zoom out", key=f"{key}-out"):
        window = window.zoom_out()
    if c3.button("Reset", key=f"{key}-reset"):
        window = window.reset()
    st.session_state[key] = window
    return window


# ---------- Session ----------
@st.cache_resource
def get_store():
    return make_store(settings)


def refresh_data():
    try:
        load_dashboard_data(get_store(), refresh=True)
    except StoreError as exc:
        st.session_state["data_error"] = str(exc)


st.set_page_config(page_title="Comex Navigator", layout="wide")
inject_base_styles()

if "app_state" not in st.session_state:
    st.session_state["app_state"] = AppState()
if "auth" not in st.session_state:
    st.session_state["auth"] = AuthClient(settings.firebase_api_key, store=get_store())
auth: AuthClient = st.session_state["auth"]
store = get_store()


def render_login_page():
    st.title("Navigator")
    st.caption("International Trade Division")
    with st.form("login"):
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Login")
    if submitted:
        try:
            auth.sign_in(email, password)
            st.rerun()
        except AuthError as exc:
            st.error(str(exc))


local_session = settings.backend == "memory" and not settings.firebase_api_key
if not local_session and not auth.is_authenticated:
    render_login_page()
    st.stop()

try:
    profile = default_profile("local", name="Local User") if local_session else auth.profile()
except (AuthError, StoreError) as exc:
    logger.warning("Profile lookup failed: %s", exc)
    profile = default_profile(auth.current_user.uid if auth.current_user else "unknown")

# ----- Data -----
data_error = st.session_state.pop("data_error", "")
try:
    data_ctx = load_dashboard_data(store)
except StoreError as exc:
    data_error = str(exc)
    data_ctx = {"shipments": shipment_frame([]), "eta_years": [], "di_years": []}
shipments: pd.DataFrame = data_ctx["shipments"]

# ----- Sidebar: navigation + filters -----
app_state: AppState = st.session_state["app_state"]
with st.sidebar:
    st.markdown(f"**{profile.get('name') or profile.get('username') or 'User'}**  \n{profile.get('role', '')}")
    if not local_session and st.button("Sign out"):
        auth.sign_out()
        st.rerun()
    st.markdown("---")
    st.markdown("### Navigate")
    nav_choice = st.radio(
        "Navigate", list(PAGES), index=PAGES.index(app_state.page), key=f"nav-{app_state.page}", label_visibility="collapsed"
    )
    if nav_choice != app_state.page:
        dispatch({"type": "navigate", "page": nav_choice})
        app_state = st.session_state["app_state"]

if data_error:
    st.error(data_error)


# ---------- Pages ----------
def render_dashboard_page():
    render_page_header("Dashboard", "Home / Dashboard")
    today = pd.Timestamp.today().date()
    kpis = dashboard_kpis(shipments, today)
    actions = action_items(shipments, today)

    cols = st.columns(4)
    cols[0].metric("Active Imports", kpis["in_transit"])
    cols[1].metric("Customs Pending", actions["docs_pending"])
    cols[2].metric("Arriving Today", actions["arriving_today"])
    cols[3].metric("Total Value (30d)", f"${kpis['total_value']:,.0f}")
    cols = st.columns(2)
    cols[0].metric("On-time Delivery", f"{kpis['on_time_pct']}%")
    cols[1].metric("Total Shipments", kpis["total_shipments"])

    segments = status_segments(shipments)
    with card("Shipment Status"):
        st.altair_chart(doughnut_chart(segments, size=220), use_container_width=True)
        options = [b.label for b in sort_for_display(segments)]
        if options:
            c1, c2 = st.columns([3, 1])
            choice = c1.selectbox("Open in Imports", options, key="dashboard-segment")
            if c2.button("Go"):
                bucket = next(b for b in segments if b.label == choice)
                dispatch(segment_navigation(bucket))
                st.rerun()


def render_upload_section():
    with st.expander("Upload Shipments", expanded=False):
        uploaded = st.file_uploader("Excel file (.xlsx, .xls)", type=["xlsx", "xls"])
        if uploaded is not None and st.button("Upload"):
            try:
                records = parse_upload(uploaded.getvalue(), uploaded.name)
            except SpreadsheetParseError as exc:
                st.error(str(exc))
                return
            try:
                upload_shipments(store, records)
            except StoreError as exc:
                st.error(str(exc))
                return
            st.success(f"{len(records)} shipments processed successfully!")


def render_imports_page():
    status_default = app_state.page_state.get("status_filter", ALL)
    statuses = [ALL] + IMPORT_STATUSES
    c1, c2 = st.columns([3, 2])
    search = c1.text_input("Search by BL, description or cargo", "")
    status = c2.selectbox(
        "Status",
        statuses,
        index=statuses.index(status_default) if status_default in statuses else 0,
        key=f"status-{status_default}",
    )
    rows = filter_imports(shipments, search, status)
    chips = [f"Status: {status}"] + ([f"Search: {search}"] if search else [])
    render_page_header("Imports", "Home / Imports", format_filter_summary(chips), export_df=rows, export_name="imports.csv")
    render_upload_section()
    st.caption(f"{len(rows)} records found")
    if rows.empty:
        st.info("No shipments found")
    else:
        st.dataframe(members_table(rows), hide_index=True, use_container_width=True)


def render_kpi_filters(date_field: str):
    if "kpi_year_seeded" not in st.session_state:
        st.session_state["kpi_year_seeded"] = True
        latest = data_ctx.get("eta_years") or [pd.Timestamp.today().year]
        dispatch({"type": "set_kpi_filter", "name": "year", "value": max(latest)})
    f = st.session_state["app_state"].kpi_filters
    years = sorted(available_years(shipments, date_field), reverse=True)
    year_options: List[Any] = [ALL] + years
    if f.year not in year_options:
        year_options.append(f.year)
    month_options: List[Any] = [ALL] + list(range(12))
    with st.sidebar:
        st.markdown("---")
        st.markdown("### KPI filters")
        year = st.selectbox("Year", year_options, index=year_options.index(f.year))
        month = st.selectbox(
            "Month", month_options, index=month_options.index(f.month), format_func=lambda m: m if m == ALL else MONTH_SHORT[m]
        )
        cargo_types = st.multiselect("Cargo", cargo_options(shipments), default=[c for c in f.cargo_types if c in cargo_options(shipments)])
    if year != f.year:
        dispatch({"type": "set_kpi_filter", "name": "year", "value": year})
    if month != f.month:
        dispatch({"type": "set_kpi_filter", "name": "month", "value": month})
    if cargo_types != f.cargo_types:
        dispatch({"type": "set_kpi_filter", "name": "cargo_types", "value": cargo_types})
    f = st.session_state["app_state"].kpi_filters
    month_chip = "Month: All" if f.month == ALL else f"Month: {MONTH_SHORT[f.month]}"
    cargo_chip = "Cargo: All" if not f.cargo_types else f"Cargo: {', '.join(f.cargo_types)}"
    return format_filter_summary([f"Year: {f.year}", month_chip, cargo_chip])


def render_kpis_page():
    tab = st.radio("View", list(KPI_TABS), index=KPI_TABS.index(app_state.kpi_tab), horizontal=True)
    if tab != app_state.kpi_tab:
        dispatch({"type": "set_tab", "tab": tab})
    date_field = "di_registration_date" if tab == "Performance" else "actual_eta"
    summary = render_kpi_filters(date_field)
    ctx = prepare_context(st.session_state["app_state"].kpi_filters, data_ctx)

    if tab == "Cargos in Transit":
        df = ctx["transit_shipments"]
        render_page_header("Cargos in Transit", "Home / KPIs / Cargos in Transit", summary, export_df=df, export_name="cargos-in-transit.csv")
        buckets = transit_buckets(df)
        cols = st.columns(4)
        titles = {"incoterm": "Shipments", "status": "Shipment Status", "sap_po": "SAP PO Status", "doc_status": "Document Status"}
        for col, (name, title) in zip(cols, titles.items()):
            with col:
                with card(title):
                    st.altair_chart(doughnut_chart(buckets[name]), use_container_width=True)
        stack = cargo_volume(df)
        with card("Cargo Volume"):
            st.altair_chart(stacked_bar_chart(stack), use_container_width=True)
            labels = [f"{month} / {s.label}" for s in stack["series"] for month in stack["labels"]]
            choice = st.selectbox("Show shipments for", [NO_SELECTION] + labels, key="drill-cargo-volume")
            if choice != NO_SELECTION:
                month, terminal = choice.split(" / ", 1)
                series = next(s for s in stack["series"] if s.label == terminal)
                st.dataframe(members_table(series.members[stack["labels"].index(month)]), hide_index=True, use_container_width=True)
        render_drill_down("transit", [b for items in buckets.values() for b in items])

    elif tab == "Performance":
        df = ctx["performance_shipments"]
        render_page_header("Performance", "Home / KPIs / Performance", summary, export_df=df, export_name="performance.csv")
        buckets = performance_buckets(df)
        dis = monthly_unique(df, "di_registration_date", "di", label="DIs")
        cols = st.columns(3)
        with cols[0]:
            with card("Incoterm"):
                st.altair_chart(doughnut_chart(buckets["incoterm"]), use_container_width=True)
        with cols[1]:
            with card("DIs Registers"):
                st.altair_chart(monthly_bar_chart(dis), use_container_width=True)
                render_month_drill_down("dis_per_month", dis)
        with cols[2]:
            with card("DI Parameterization"):
                st.altair_chart(doughnut_chart(buckets["di_parametrization"]), use_container_width=True)
        series = lead_time_series(df)
        cols = st.columns(2)
        for i, lt in enumerate(LEAD_TIMES):
            with cols[i % 2]:
                with card(f"{lt.title} (Goal: {lt.goal} days)"):
                    window = render_zoom_controls(lt.name, len(series[lt.name].labels))
                    st.altair_chart(line_chart(series[lt.name], window, color=lt.color), use_container_width=True)
                    render_month_drill_down(lt.name, series[lt.name], window)
        render_drill_down("performance", buckets["incoterm"] + buckets["di_parametrization"])

    else:
        df = ctx["operation_shipments"]
        render_page_header("Operation Status", "Home / KPIs / Operation Status", summary, export_df=df, export_name="operation-status.csv")
        buckets = operation_buckets(df)
        cols = st.columns(2)
        with cols[0]:
            with card("Shipment Status (by BLs)"):
                st.altair_chart(doughnut_chart(buckets["status_by_bls"]), use_container_width=True)
            with card("Shipment Status (by Containers)"):
                st.altair_chart(doughnut_chart(buckets["status_by_containers"]), use_container_width=True)
        with cols[1]:
            with card("Cargo Value"):
                st.altair_chart(bar_chart(buckets["cargo_value"], value_format="$,.2f"), use_container_width=True)
            with card("Container Volume"):
                st.altair_chart(bar_chart(buckets["container_volume"]), use_container_width=True)
        render_drill_down("operation", buckets["status_by_bls"] + buckets["cargo_value"])


def render_brokerage_page():
    options = brokerage_options(shipments)
    f = app_state.brokerage_filters
    if f.year == ALL and "brokerage_year_seeded" not in st.session_state:
        st.session_state["brokerage_year_seeded"] = True
        dispatch({"type": "set_brokerage_filter", "name": "year", "value": options["years"][0] if options["years"] else ALL})
        f = st.session_state["app_state"].brokerage_filters

    year_options: List[Any] = [ALL] + options["years"]
    month_options: List[Any] = [ALL] + options["months"]
    analyst_list = [ALL] + analyst_options(shipments)
    cargo_list = [ALL] + cargo_options(shipments)
    cols = st.columns(4)
    year = cols[0].selectbox("Year", year_options, index=year_options.index(f.year) if f.year in year_options else 0)
    month = cols[1].selectbox("Month", month_options, index=month_options.index(f.month), format_func=lambda m: m if m == ALL else MONTH_SHORT[m])
    analyst = cols[2].selectbox("Analyst", analyst_list, index=analyst_list.index(f.analyst) if f.analyst in analyst_list else 0)
    cargo = cols[3].selectbox("Cargo", cargo_list, index=cargo_list.index(f.cargo) if f.cargo in cargo_list else 0)
    for name, value, current in (("year", year, f.year), ("month", month, f.month), ("analyst", analyst, f.analyst), ("cargo", cargo, f.cargo)):
        if value != current:
            dispatch({"type": "set_brokerage_filter", "name": name, "value": value})

    ctx = prepare_context(app_state.kpi_filters, data_ctx, st.session_state["app_state"].brokerage_filters)
    df = ctx["brokerage_shipments"]
    f = ctx["brokerage_filters"]
    chips = [f"Year: {f.year}", f"Month: {f.month if f.month == ALL else MONTH_SHORT[f.month]}", f"Analyst: {f.analyst}", f"Cargo: {f.cargo}"]
    render_page_header("Brokerage KPIs", "Home / Brokerage", format_filter_summary(chips), export_df=df, export_name="brokerage.csv")

    kpis = brokerage_kpis(df)
    cols = st.columns(4)
    cols[0].metric("Total DIs Registered", kpis["total_dis"])
    cols[1].metric("Total Value", f"${kpis['total_value']:,.0f}")
    cols[2].metric("DIs per Analyst", f"{kpis['dis_per_analyst']:.1f}")
    cols[3].metric("Avg. Clearance Time", f"{kpis['avg_clearance_days']:.1f} days")

    buckets = brokerage_buckets(df)
    with card("Volume by Transport Modal"):
        st.altair_chart(bar_chart(buckets["transport_modal"]), use_container_width=True)
    with card("Avg. Transit Time by Incoterm"):
        st.altair_chart(bar_chart(buckets["transit_by_incoterm"]), use_container_width=True)
    with card("DI Channel Parameterization"):
        st.altair_chart(doughnut_chart(buckets["di_channel"], size=150), use_container_width=True)
        st.caption(" · ".join(f"{b.label}: {b.value} shipments / {b.secondary_value} DIs" for b in buckets["di_channel"]))
    render_drill_down("brokerage", buckets["transport_modal"] + buckets["transit_by_incoterm"] + buckets["di_channel"])


current_page = st.session_state["app_state"].page
if current_page == "Dashboard":
    render_dashboard_page()
elif current_page == "Imports":
    render_imports_page()
elif current_page == "KPIs":
    render_kpis_page()
else:
    render_brokerage_page()
