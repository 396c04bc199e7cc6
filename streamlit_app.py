from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
import streamlit as st

from config import AppConfig, build_gateway, configure_logging, load_config
from models.schema import get_schema
from models.state import AddPeriod, AddRow, DeleteRow, ModelSnapshot, SyncWithFunnel
from models.validation_report import format_report, generate_validation_report
from store.debounce import DebouncedWriter, session_writer
from store.gateway import PersistenceGateway
from store.sync import dispatch, load_snapshot
from ui.dashboard_data import (
    CHAINED_FIELDS, SECTIONS, DashboardSnapshot, build_snapshot, chained_edits, disabled_columns,
    frame_edits, records_frame, section_totals,
)
from ui.workbook import workbook_bytes

logger = logging.getLogger(__name__)


st.set_page_config(
    page_title="SaaS Financial Model",
    page_icon="F",
    layout="wide",
    initial_sidebar_state="expanded",
)


THEMES: Dict[str, Dict[str, str]] = {
    "light": {
        "bg": "#F4F7FB",
        "surface": "#FFFFFF",
        "surface_alt": "#EEF3F9",
        "text": "#101828",
        "text_muted": "#475467",
        "border": "#D4DCE7",
        "primary": "#165DFF",
        "success": "#117A37",
        "warning": "#B54708",
        "critical": "#B42318",
        "grid": "#DFE6F0",
    },
    "dark": {
        "bg": "#061529",
        "surface": "#0E223E",
        "surface_alt": "#132A4A",
        "text": "#E7EEF8",
        "text_muted": "#A3B4CC",
        "border": "#2A4265",
        "primary": "#4A9EFF",
        "success": "#2FC277",
        "warning": "#F0A646",
        "critical": "#FF6B6B",
        "grid": "#2D4469",
    },
}

NAVIGATION = ["Summary"] + list(SECTIONS) + ["Data Room"]


# -----------------------------------------------------------------------------
# Resources
# -----------------------------------------------------------------------------

@st.cache_resource
def _config() -> AppConfig:
    config = load_config()
    configure_logging(config)
    return config


@st.cache_resource
def _gateway(backend: str, data_dir: str) -> PersistenceGateway:
    return build_gateway(AppConfig(backend=backend, data_dir=data_dir))


# -----------------------------------------------------------------------------
# Formatting and theme
# -----------------------------------------------------------------------------

def _fmt_currency(value: float, currency: str) -> str:
    return f"{currency}{value:,.2f}"


def _fmt_pct(value: float) -> str:
    return f"{value:.1f}%"


def _apply_theme(theme: str) -> None:
    t = THEMES[theme]
    st.markdown(
        f"""
<style>
    :root {{
        --bg: {t['bg']};
        --surface: {t['surface']};
        --text: {t['text']};
        --text-muted: {t['text_muted']};
        --border: {t['border']};
        --primary: {t['primary']};
        --success: {t['success']};
        --warning: {t['warning']};
        --critical: {t['critical']};
    }}
    .stApp {{ background: var(--bg); color: var(--text); }}
    [data-testid="stSidebar"] {{ background: var(--surface); border-right: 1px solid var(--border); }}
    .fm-kpi {{
        background: var(--surface);
        border: 1px solid var(--border);
        border-radius: 12px;
        padding: 14px 16px;
    }}
    .fm-kpi-title {{ font-size: 12px; color: var(--text-muted); text-transform: uppercase; }}
    .fm-kpi-value {{ font-size: 24px; font-weight: 700; color: var(--text); }}
    .fm-kpi-delta {{ font-size: 12px; }}
</style>
""",
        unsafe_allow_html=True,
    )


def _chart_palette(theme: str) -> List[str]:
    if theme == "dark":
        return ["#4A9EFF", "#2FC277", "#F0A646", "#FF6B6B", "#79D3FF", "#C7A7FF"]
    return ["#165DFF", "#1F9F5A", "#C68A00", "#D64545", "#0F766E", "#7C3AED"]


def _style_figure(fig, theme: str, height: int = 320):
    t = THEMES[theme]
    fig.update_layout(
        height=height,
        margin=dict(l=14, r=14, t=18, b=14),
        paper_bgcolor=t["surface"],
        plot_bgcolor=t["surface_alt"],
        font=dict(color=t["text"]),
        legend=dict(bgcolor="rgba(0,0,0,0)", font=dict(color=t["text"])),
    )
    fig.update_xaxes(showgrid=True, gridcolor=t["grid"], zerolinecolor=t["grid"])
    fig.update_yaxes(showgrid=True, gridcolor=t["grid"], zerolinecolor=t["grid"])
    return fig


def _kpi_tile(title: str, value: str, delta: str, tone: str = "neutral") -> None:
    tone_color = {
        "good": "var(--success)",
        "warn": "var(--warning)",
        "bad": "var(--critical)",
        "neutral": "var(--text-muted)",
    }
    st.markdown(
        f"""
<div class="fm-kpi">
  <div class="fm-kpi-title">{title}</div>
  <div class="fm-kpi-value">{value}</div>
  <div class="fm-kpi-delta" style="color:{tone_color.get(tone, tone_color['neutral'])};">{delta}</div>
</div>
""",
        unsafe_allow_html=True,
    )


# -----------------------------------------------------------------------------
# Session and actions
# -----------------------------------------------------------------------------

def _fail(message: str, exc: Exception) -> None:
    logger.error(f"{message}: {type(exc).__name__}: {exc}")
    st.session_state["error"] = f"{message}: {exc}"


def _reload(gateway: PersistenceGateway, writer: DebouncedWriter, owner_id: str) -> None:
    try:
        writer.flush()
        st.session_state["snapshot"] = load_snapshot(gateway, owner_id)
        st.session_state.pop("error", None)
    except Exception as exc:
        _fail("Failed to load your model", exc)


def _run_actions(gateway: PersistenceGateway, writer: DebouncedWriter, actions: Iterable) -> None:
    snapshot: ModelSnapshot = st.session_state["snapshot"]
    try:
        for action in actions:
            snapshot = dispatch(gateway, snapshot, action, writer).snapshot
    except Exception as exc:
        _fail("Saving your change failed", exc)
    st.session_state["snapshot"] = snapshot
    st.session_state["editor_version"] = st.session_state.get("editor_version", 0) + 1
    st.rerun()


def _sign_in(writer: DebouncedWriter) -> Optional[str]:
    owner_id = st.session_state.get("owner_id")
    with st.sidebar:
        if owner_id:
            st.markdown(f"Signed in as **{owner_id}**")
            if st.button("Sign out"):
                try:
                    writer.flush()
                except Exception as exc:
                    _fail("Saving pending changes failed", exc)
                else:
                    for key in ("owner_id", "snapshot", "error", "writer"):
                        st.session_state.pop(key, None)
                    st.rerun()
            return owner_id

    st.markdown("## Sign in")
    with st.form("sign_in"):
        name = st.text_input("Owner id", placeholder="you@company.com")
        submitted = st.form_submit_button("Open model")
    if submitted and name.strip():
        st.session_state["owner_id"] = name.strip()
        st.rerun()
    return None


# -----------------------------------------------------------------------------
# Renderers
# -----------------------------------------------------------------------------

def _render_table(kind: str, snapshot: ModelSnapshot, dashboard: DashboardSnapshot,
                  gateway: PersistenceGateway, writer: DebouncedWriter) -> None:
    schema = get_schema(kind)
    records = snapshot.records(kind)
    st.markdown(f"#### {schema.title}")

    version = st.session_state.get("editor_version", 0)
    edited = st.data_editor(
        records_frame(kind, records),
        disabled=disabled_columns(kind),
        num_rows="fixed",
        hide_index=True,
        width="stretch",
        key=f"editor_{kind}_{version}",
    )
    if kind in CHAINED_FIELDS:
        st.caption("Existing subscribers can only be set for the first month; later months start from the previous ending.")
    actions = frame_edits(kind, records, edited)
    locked = chained_edits(kind, records, edited)
    if locked:
        st.session_state["notice"] = (
            f"Existing subscribers for {', '.join(locked)} follow the previous month's ending and were not changed."
        )
    if actions or locked:
        _run_actions(gateway, writer, actions)

    totals = section_totals(kind, dashboard.totals)
    if totals:
        cols = st.columns(len(totals))
        for col, (label, value) in zip(cols, totals):
            col.metric(label, f"{value:,.2f}" if isinstance(value, float) else f"{value:,}")

    add_col, pick_col, delete_col = st.columns([1, 3, 1])
    with add_col:
        if st.button("Add row", key=f"add_{kind}"):
            _run_actions(gateway, writer, [AddRow(kind)])
    if records:
        labels = {record.id: schema.display_name(record) for record in records}
        with pick_col:
            target = st.selectbox(
                "Row to delete",
                list(labels),
                format_func=lambda record_id: labels[record_id],
                key=f"pick_{kind}",
                label_visibility="collapsed",
            )
        with delete_col:
            if st.button("Delete row", key=f"delete_{kind}"):
                _run_actions(gateway, writer, [DeleteRow(kind, target)])


def _render_summary(dashboard: DashboardSnapshot, config: AppConfig, theme: str) -> None:
    s = dashboard.totals.summary
    currency = config.currency
    kpi_cols = st.columns(4)
    with kpi_cols[0]:
        _kpi_tile("Monthly Revenue", _fmt_currency(s.total_revenue, currency),
                  f"{_fmt_currency(s.annual_revenue, currency)} / year", "neutral")
    with kpi_cols[1]:
        _kpi_tile("Monthly Costs", _fmt_currency(s.total_costs, currency),
                  f"{_fmt_currency(s.annual_costs, currency)} / year", "neutral")
    with kpi_cols[2]:
        _kpi_tile("Gross Margin", _fmt_pct(s.gross_margin_pct), "Revenue after COGS",
                  "good" if s.gross_margin_pct >= 70 else "warn")
    with kpi_cols[3]:
        _kpi_tile("Monthly Net Income", _fmt_currency(s.monthly_net_income, currency),
                  f"{_fmt_currency(s.annual_net_income, currency)} / year",
                  "good" if s.monthly_net_income >= 0 else "bad")

    left, right = st.columns([2, 1], gap="large")
    with left:
        st.markdown("#### Monthly Cost Breakdown")
        fig = px.pie(dashboard.cost_breakdown, names="category", values="monthly", hole=0.58,
                     color_discrete_sequence=_chart_palette(theme))
        st.plotly_chart(_style_figure(fig, theme, height=340), width="stretch")
    with right:
        st.markdown("#### Headline Figures")
        st.dataframe(dashboard.summary, width="stretch", hide_index=True)

    st.markdown("#### Health Signals")
    st.dataframe(dashboard.signals, width="stretch", hide_index=True)


def _render_section_charts(section: str, dashboard: DashboardSnapshot, snapshot: ModelSnapshot, theme: str) -> None:
    palette = _chart_palette(theme)
    if section == "Marketing" and snapshot.marketing_channels:
        frame = pd.DataFrame(
            [{"channel": c.name, "leads": c.leads_generated} for c in snapshot.marketing_channels]
        )
        fig = px.bar(frame, x="channel", y="leads", color_discrete_sequence=palette)
        st.plotly_chart(_style_figure(fig, theme, height=280), width="stretch")
    elif section == "Funnel":
        stages = dashboard.funnel_stages
        fig = go.Figure(go.Funnel(y=stages["stage"], x=stages["count"], marker=dict(color=palette[0])))
        st.plotly_chart(_style_figure(fig, theme, height=280), width="stretch")
    elif section == "Subscribers" and not dashboard.subscriber_trend.empty:
        trend = dashboard.subscriber_trend
        fig = go.Figure()
        fig.add_trace(go.Bar(x=trend["month"], y=trend["new_deals"], name="New deals", marker_color=palette[1]))
        fig.add_trace(go.Bar(x=trend["month"], y=-trend["churned"], name="Churned", marker_color=palette[3]))
        fig.add_trace(
            go.Scatter(x=trend["month"], y=trend["ending"], mode="lines+markers", name="Ending subscribers",
                       line=dict(color=palette[0], width=3))
        )
        fig.update_layout(barmode="relative")
        st.plotly_chart(_style_figure(fig, theme, height=320), width="stretch")
    elif section == "Revenue" and snapshot.subscriptions:
        frame = pd.DataFrame([{"tier": s.tier, "mrr": s.mrr} for s in snapshot.subscriptions])
        fig = px.bar(frame, x="tier", y="mrr", color_discrete_sequence=palette)
        st.plotly_chart(_style_figure(fig, theme, height=280), width="stretch")
    elif section == "Financing" and snapshot.funding_rounds:
        frame = pd.DataFrame(
            [{"round": r.round_name, "valuation_post": r.valuation_post} for r in snapshot.funding_rounds]
        )
        fig = px.line(frame, x="round", y="valuation_post", markers=True, color_discrete_sequence=palette)
        st.plotly_chart(_style_figure(fig, theme, height=280), width="stretch")


def _render_section(section: str, snapshot: ModelSnapshot, dashboard: DashboardSnapshot,
                    gateway: PersistenceGateway, writer: DebouncedWriter, theme: str) -> None:
    if section == "Subscribers":
        c1, c2, _ = st.columns([1, 1, 3])
        with c1:
            if st.button("Sync with funnel"):
                _run_actions(gateway, writer, [SyncWithFunnel()])
        with c2:
            if st.button("Add month"):
                _run_actions(gateway, writer, [AddPeriod()])

    for kind in SECTIONS[section]:
        _render_table(kind, snapshot, dashboard, gateway, writer)
    _render_section_charts(section, dashboard, snapshot, theme)


def _render_data_room(snapshot: ModelSnapshot, dashboard: DashboardSnapshot) -> None:
    kinds = [kind for kinds in SECTIONS.values() for kind in kinds]
    tabs = st.tabs([get_schema(kind).title for kind in kinds] + ["Validation"])
    for tab, kind in zip(tabs, kinds):
        with tab:
            table = dashboard.tables[kind]
            st.dataframe(table, width="stretch", hide_index=True)
            st.download_button(
                f"Download {kind} CSV",
                table.to_csv(index=False),
                file_name=f"finmodel_{kind}.csv",
                mime="text/csv",
                key=f"csv_{kind}",
            )
    with tabs[-1]:
        st.code(format_report(generate_validation_report(snapshot)), language="text")

    st.download_button(
        "Download Excel workbook",
        workbook_bytes(snapshot),
        file_name="finmodel.xlsx",
        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )


def main() -> None:
    config = _config()
    gateway = _gateway(config.backend, str(config.data_dir))
    writer = session_writer(st.session_state, config.debounce_seconds)

    with st.sidebar:
        st.markdown("## SaaS Financial Model")
        section = st.radio("Navigation", NAVIGATION, index=0)
        dark_mode = st.toggle("Dark mode", value=False)

    theme = "dark" if dark_mode else "light"
    _apply_theme(theme)

    owner_id = _sign_in(writer)
    if not owner_id:
        return

    with st.sidebar:
        if st.button("Save now"):
            try:
                writer.flush()
            except Exception as exc:
                _fail("Saving pending changes failed", exc)
        if st.button("Reload from storage"):
            _reload(gateway, writer, owner_id)

    for exc in writer.pop_failures():
        _fail("A background save failed", exc)

    if "snapshot" not in st.session_state and "error" not in st.session_state:
        _reload(gateway, writer, owner_id)

    if st.session_state.get("error"):
        st.error(st.session_state["error"])
        st.info("Use `Reload from storage` in the sidebar to continue from the last saved state.")
        return

    snapshot: ModelSnapshot = st.session_state["snapshot"]
    try:
        dashboard = build_snapshot(snapshot)
    except Exception as exc:
        _fail("Failed to build dashboard", exc)
        st.error(st.session_state["error"])
        return

    notice = st.session_state.pop("notice", None)
    if notice:
        st.warning(notice)

    st.markdown(f"## {section}")
    if section == "Summary":
        _render_summary(dashboard, config, theme)
    elif section == "Data Room":
        _render_data_room(snapshot, dashboard)
    else:
        _render_section(section, snapshot, dashboard, gateway, writer, theme)


if __name__ == "__main__":
    main()
