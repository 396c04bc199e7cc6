"""Transform a model snapshot into dashboard tables, totals and chart frames."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

import pandas as pd

from models.schema import ACTIVE_SUBSCRIBERS, ENTITY_KINDS, REF, get_schema
from models.state import EditField, ModelSnapshot
from models.subscribers import churn_rate
from models.summary import ModelTotals, calculate_model_totals

SECTIONS: Dict[str, Tuple[str, ...]] = {
    "Marketing": ("marketing_channels", "marketing_team"),
    "Funnel": ("funnel_conversions",),
    "Subscribers": ("active_subscribers",),
    "Revenue": ("subscriptions", "cogs"),
    "Expenses": ("departments", "operating_expenses"),
    "Financing": ("funding_rounds",),
}


# kind -> fields taken from the previous row (editable on the first row only)
CHAINED_FIELDS: Dict[str, Tuple[str, ...]] = {
    ACTIVE_SUBSCRIBERS: ("existing_subs",),
}


@dataclass
class DashboardSnapshot:
    totals: ModelTotals
    tables: Dict[str, pd.DataFrame] = field(default_factory=dict)
    summary: pd.DataFrame = field(default_factory=pd.DataFrame)
    cost_breakdown: pd.DataFrame = field(default_factory=pd.DataFrame)
    subscriber_trend: pd.DataFrame = field(default_factory=pd.DataFrame)
    funnel_stages: pd.DataFrame = field(default_factory=pd.DataFrame)
    signals: pd.DataFrame = field(default_factory=pd.DataFrame)


def table_columns(kind: str) -> List[str]:
    return [spec.label for spec in get_schema(kind).fields if spec.kind != REF]


def disabled_columns(kind: str) -> List[str]:
    """Header labels of derived columns (read-only in the editor)."""
    return [spec.label for spec in get_schema(kind).derived_fields]


def records_frame(kind: str, records: Sequence) -> pd.DataFrame:
    """One row per record, indexed by record id, columns by header label."""
    schema = get_schema(kind)
    rows = [schema.to_display(record) for record in records]
    index = pd.Index([record.id for record in records], name="id")
    return pd.DataFrame(rows, index=index, columns=table_columns(kind))


def is_chained(kind: str, attr: str, index: int) -> bool:
    """Cells carried from the previous row; only the first row is editable."""
    return index > 0 and attr in CHAINED_FIELDS.get(kind, ())


def _changed_cells(kind: str, records: Sequence, edited: pd.DataFrame):
    schema = get_schema(kind)
    for index, record in enumerate(records):
        if record.id not in edited.index:
            continue
        row = edited.loc[record.id]
        for spec in schema.editable_fields:
            if spec.label not in edited.columns:
                continue
            raw = row[spec.label]
            if spec.coerce(raw) != getattr(record, spec.attr):
                yield index, record, spec, raw


def frame_edits(kind: str, records: Sequence, edited: pd.DataFrame) -> List[EditField]:
    """
    Diff an edited table against the records it was built from.

    Only editable cells whose coerced value differs produce an action; rows
    missing from the frame, derived columns and chained cells are ignored.
    """
    return [
        EditField(kind, record.id, spec.attr, raw)
        for index, record, spec, raw in _changed_cells(kind, records, edited)
        if not is_chained(kind, spec.attr, index)
    ]


def chained_edits(kind: str, records: Sequence, edited: pd.DataFrame) -> List[str]:
    """Display names of rows whose chained cell was changed in the table."""
    schema = get_schema(kind)
    return [
        schema.display_name(record)
        for index, record, spec, _ in _changed_cells(kind, records, edited)
        if is_chained(kind, spec.attr, index)
    ]


def section_totals(kind: str, totals: ModelTotals) -> List[Tuple[str, float]]:
    """Totals row(s) shown under a section table."""
    if kind == "marketing_channels":
        m = totals.marketing
        return [
            ("Total Budget", m.total_budget),
            ("Total Leads", m.total_leads),
            ("Avg Cost per Lead", m.avg_cost_per_lead),
        ]
    if kind == "marketing_team":
        m = totals.marketing
        return [("Total FTE", m.total_fte), ("Team Cost", m.team_cost)]
    if kind == "funnel_conversions":
        f = totals.funnel
        return [
            ("Total MQLs", f.total_mql),
            ("Total SQLs", f.total_sql),
            ("Total Deals", f.total_deals),
            ("Avg MQL → SQL Rate", f.avg_mql_to_sql_rate),
            ("Avg SQL → Deal Rate", f.avg_sql_to_deal_rate),
            ("Annual Deals", f.annual_deals),
        ]
    if kind == "active_subscribers":
        s = totals.subscribers
        rows = [
            ("Total New Deals", s.monthly_new_deals),
            ("Total Churned", s.monthly_churned),
            ("Annual New Deals", s.annual_new_deals),
            ("Annual Churned", s.annual_churned),
            ("Latest Ending", s.latest_ending_subs),
        ]
        if s.rolling is not None:
            rows.append(("3-Month Avg Churn %", s.rolling.churn_rate))
            rows.append(("3-Month Avg New Deals", s.rolling.new_deals))
        return rows
    if kind == "subscriptions":
        r = totals.revenue
        return [("MRR", r.mrr), ("ARR", r.arr), ("Subscribers", r.subscribers), ("ARPU", r.arpu)]
    if kind == "cogs":
        r = totals.revenue
        return [("Total COGS", r.cogs), ("Annual COGS", r.annual_cogs), ("Gross Margin %", r.gross_margin_pct)]
    if kind == "departments":
        e = totals.expenses
        return [("Total FTE", e.total_fte), ("Payroll", e.payroll), ("Annual Payroll", e.annual_payroll)]
    if kind == "operating_expenses":
        e = totals.expenses
        return [("Total OpEx", e.opex), ("Annual OpEx", e.annual_opex)]
    if kind == "funding_rounds":
        f = totals.financing
        return [
            ("Total Raised", f.total_raised),
            ("Total Equity Sold %", f.total_equity_sold),
            ("Latest Valuation", f.latest_valuation),
            ("Remaining Equity %", f.remaining_equity),
        ]
    get_schema(kind)
    return []


def _summary_frame(totals: ModelTotals) -> pd.DataFrame:
    s = totals.summary
    rows = [
        {"metric": "Total Revenue", "monthly": s.total_revenue, "annual": s.annual_revenue},
        {"metric": "Total Costs", "monthly": s.total_costs, "annual": s.annual_costs},
        {"metric": "Net Income", "monthly": s.monthly_net_income, "annual": s.annual_net_income},
    ]
    return pd.DataFrame(rows, columns=["metric", "monthly", "annual"])


def _cost_breakdown(totals: ModelTotals) -> pd.DataFrame:
    labels = {
        "marketing": "Marketing",
        "payroll": "Payroll",
        "cogs": "COGS",
        "opex": "Operating Expenses",
    }
    rows = [
        {"category": labels[key], "monthly": value}
        for key, value in totals.summary.section_totals.items()
    ]
    data = pd.DataFrame(rows, columns=["category", "monthly"])
    total = float(data["monthly"].sum()) if not data.empty else 0.0
    data["share_pct"] = data["monthly"].apply(lambda value: (float(value) / total * 100.0) if total else 0.0)
    return data


def _subscriber_trend(snapshot: ModelSnapshot) -> pd.DataFrame:
    rows = [
        {
            "month": p.month,
            "existing": p.existing_subs,
            "new_deals": p.new_deals,
            "churned": p.churned_subs,
            "ending": p.ending_subs,
            "churn_rate_pct": churn_rate(p),
        }
        for p in snapshot.active_subscribers
    ]
    return pd.DataFrame(
        rows, columns=["month", "existing", "new_deals", "churned", "ending", "churn_rate_pct"]
    )


def _funnel_stages(totals: ModelTotals) -> pd.DataFrame:
    f = totals.funnel
    return pd.DataFrame(
        [
            {"stage": "MQL", "count": f.total_mql},
            {"stage": "SQL", "count": f.total_sql},
            {"stage": "Deal", "count": f.total_deals},
        ]
    )


def _build_signals(totals: ModelTotals) -> pd.DataFrame:
    rows = []
    s = totals.summary

    net = s.monthly_net_income
    rows.append(
        {
            "signal": "Monthly net income",
            "level": "Low" if net >= 0 else ("Medium" if net > -0.25 * s.total_costs else "High"),
            "detail": f"Net income is {net:,.2f} per month ({s.annual_net_income:,.2f} per year).",
        }
    )

    margin = s.gross_margin_pct
    rows.append(
        {
            "signal": "Gross margin",
            "level": "Low" if margin >= 70 else ("Medium" if margin >= 50 else "High"),
            "detail": f"Gross margin is {margin:.1f}% of revenue.",
        }
    )

    rolling = totals.subscribers.rolling
    if rolling is not None:
        rows.append(
            {
                "signal": "Subscriber churn",
                "level": "Low" if rolling.churn_rate < 5 else ("Medium" if rolling.churn_rate < 10 else "High"),
                "detail": f"3-month average churn is {rolling.churn_rate:.1f}%.",
            }
        )

    remaining = totals.financing.remaining_equity
    rows.append(
        {
            "signal": "Founder equity",
            "level": "Low" if remaining >= 60 else ("Medium" if remaining >= 40 else "High"),
            "detail": f"{remaining:.1f}% equity remains after {totals.financing.total_equity_sold:.1f}% sold.",
        }
    )

    return pd.DataFrame(rows, columns=["signal", "level", "detail"])


def build_snapshot(snapshot: ModelSnapshot) -> DashboardSnapshot:
    totals = calculate_model_totals(snapshot)
    return DashboardSnapshot(
        totals=totals,
        tables={kind: records_frame(kind, snapshot.records(kind)) for kind in ENTITY_KINDS},
        summary=_summary_frame(totals),
        cost_breakdown=_cost_breakdown(totals),
        subscriber_trend=_subscriber_trend(snapshot),
        funnel_stages=_funnel_stages(totals),
        signals=_build_signals(totals),
    )
