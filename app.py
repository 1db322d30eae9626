import os
import time
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import httpx
import pandas as pd
import streamlit as st

from dashcore.chart_helpers import chart_value_format
from dashcore.coerce import format_decimal, safe_format_date, safe_str
from dashcore.compartment import FaultCompartment, Placeholder
from dashcore.errors import error_message

API_URL = os.environ.get("DASHBOARD_API_URL", "http://localhost:8000")

SECTION_TITLES = {
    "stats": "School Overview",
    "charts": "Activity Charts",
    "activities": "Recent Activity",
    "financial": "Financial Summary",
    "tenants": "Revenue by Tenant",
}


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-header {display: flex;justify-content: space-between;align-items: center;margin-bottom: 8px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;}
        .card-actions {font-size: 0.85rem;color: #6b7280;}
        .placeholder {color: #6b7280;font-style: italic;padding: 24px 0;text-align: center;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str, actions: Optional[str] = None):
    container = st.container()
    container.markdown(
        f"""
        <div class="card">
          <div class="card-header">
            <div class="card-title">{title}</div>
            <div class="card-actions">{actions or ""}</div>
          </div>
        """,
        unsafe_allow_html=True,
    )
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


# ---------- API access ----------
def api_call(method: str, path: str) -> Any:
    response = httpx.request(method, f"{API_URL}{path}", timeout=30.0)
    response.raise_for_status()
    return response.json()


def compartment_for(section_id: str) -> FaultCompartment:
    compartments: Dict[str, FaultCompartment] = st.session_state.setdefault("_compartments", {})
    if section_id not in compartments:
        compartments[section_id] = FaultCompartment(section_id)
    return compartments[section_id]


def render_placeholder(placeholder: Dict[str, Any]):
    text = placeholder.get("message") or ("Loading…" if placeholder.get("kind") == "loading" else "No data")
    st.markdown(f"<div class='placeholder'>{text}</div>", unsafe_allow_html=True)


# ---------- section bodies ----------
def render_stats(view_model: Dict[str, Any]):
    if not view_model:
        st.info("No figures reported.")
        return
    items = list(view_model.items())
    for start in range(0, len(items), 4):
        cols = st.columns(4)
        for col, (name, value) in zip(cols, items[start:start + 4]):
            col.metric(name, format_decimal(value, 0) if float(value).is_integer() else chart_value_format(value))


def render_charts(section_id: str):
    payload = api_call("GET", f"/sections/{section_id}/charts")
    charts: List[Dict[str, Any]] = payload.get("charts", [])
    if not charts:
        st.info("No charts available.")
        return
    cols = st.columns(2)
    for index, chart in enumerate(charts):
        with cols[index % 2]:
            if chart.get("spec"):
                st.vega_lite_chart(chart["spec"], use_container_width=True)
            else:
                render_placeholder(chart.get("placeholder") or {})


def render_activities(view_model: Dict[str, Any]):
    items = view_model.get("items", [])
    if not items:
        st.info("No recent activity.")
        return
    for item in items:
        when = safe_format_date(item.get("timestamp"), "long")
        st.markdown(f"**{safe_str(item.get('title'), 'Activity')}**  \n{safe_str(item.get('description'))}  \n_{when}_")


def render_table(view_model: Dict[str, Any]):
    rows = view_model.get("rows", [])
    if not rows:
        st.info("No rows.")
        return
    st.dataframe(pd.DataFrame(rows), hide_index=True, use_container_width=True)
    st.caption(f"{view_model.get('total_count', len(rows))} rows in total")


def render_section_body(snapshot: Dict[str, Any]):
    view_model = snapshot.get("view_model") or {}
    kind = snapshot.get("kind")
    if kind == "stats":
        render_stats(view_model)
    elif kind == "chartList":
        render_charts(snapshot["id"])
    elif kind == "activityList":
        render_activities(view_model)
    elif kind == "tableRows":
        render_table(view_model)
    else:
        st.json(view_model)


def render_section(snapshot: Dict[str, Any]):
    section_id = snapshot["id"]
    failure = snapshot.get("failure") or {}
    updated = safe_format_date(snapshot["updated_at"] * 1000, "long") if snapshot.get("updated_at") else ""
    with card(SECTION_TITLES.get(section_id, section_id), f"Updated {updated}" if updated else snapshot.get("status")):
        if snapshot.get("show_error"):
            st.warning(failure.get("last_message") or "Request failed")
            c1, c2, _ = st.columns([1, 1, 6])
            if c1.button("Retry", key=f"retry-{section_id}"):
                api_call("POST", f"/sections/{section_id}/retry")
                compartment_for(section_id).reset()
                st.rerun()
            if c2.button("Dismiss", key=f"dismiss-{section_id}"):
                api_call("POST", f"/sections/{section_id}/dismiss")
                st.rerun()

        if snapshot.get("placeholder") is not None:
            render_placeholder(snapshot["placeholder"])
            return

        compartment = compartment_for(section_id)
        outcome = compartment.render(lambda: render_section_body(snapshot))
        if isinstance(outcome, Placeholder):
            render_placeholder(outcome.to_dict())
            if st.button("Try again", key=f"reset-{section_id}"):
                compartment.reset()
                st.rerun()


# ---------- UI setup ----------
st.set_page_config(page_title="School Dashboard", layout="wide")
inject_base_styles()
st.title("School Dashboard")
st.caption("Each section loads, refreshes and fails on its own.")

with st.sidebar:
    st.markdown("### Dashboard")
    auto_refresh = st.checkbox("Auto refresh", value=True)
    refresh_seconds = st.slider("Refresh every (s)", min_value=5, max_value=120, value=30, step=5)
    if st.button("Refresh"):
        st.rerun()
    if st.button("Retry chart engine"):
        api_call("POST", "/charts/engine/retry")
        st.rerun()

try:
    dashboard = api_call("GET", "/dashboard")
except httpx.HTTPError as exc:
    st.error(f"Dashboard API unreachable: {error_message(exc)}")
    st.stop()

if dashboard.get("chart_engine") == "unavailable":
    st.sidebar.warning("Chart failed to load")

for section in dashboard.get("sections", []):
    render_section(section)

if auto_refresh:
    time.sleep(refresh_seconds)
    st.rerun()
