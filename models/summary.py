# =============================================================================
# SAAS FINMODEL - FINANCIAL SUMMARY
# =============================================================================
# Stateless fold over the current snapshot, recomputed on every change.
#
# FORMULAS:
# Total_revenue  = SUM(subscription.mrr)
# Total_costs    = SUM(channel.budget) + SUM(department.monthly_total)
#                  + SUM(cogs.monthly_cost) + SUM(opex.monthly_cost)
# Annual_*       = Monthly_* * 12
# Gross_margin % = (Total_revenue - SUM(cogs)) / Total_revenue * 100, 0 if no revenue
# Net_income     = Total_revenue - Total_costs
# =============================================================================

from dataclasses import dataclass, field
from typing import Dict

from .expenses import ExpenseTotals, calculate_expense_totals
from .financing import FinancingTotals, calculate_financing_totals
from .funnel import FunnelTotals, calculate_funnel_totals
from .marketing import MarketingTotals, calculate_marketing_totals
from .parsing import round_money, safe_pct
from .revenue import RevenueTotals, calculate_revenue_totals
from .subscribers import SubscriberTotals, calculate_subscriber_totals


@dataclass
class FinancialSummary:
    """Headline monthly and annual figures."""
    total_revenue: float = 0.0
    total_costs: float = 0.0
    annual_revenue: float = 0.0
    annual_costs: float = 0.0
    gross_margin_pct: float = 0.0
    monthly_net_income: float = 0.0
    annual_net_income: float = 0.0
    section_totals: Dict[str, float] = field(default_factory=dict)


@dataclass
class ModelTotals:
    """Summary plus every section's own totals."""
    summary: FinancialSummary
    marketing: MarketingTotals
    funnel: FunnelTotals
    subscribers: SubscriberTotals
    revenue: RevenueTotals
    expenses: ExpenseTotals
    financing: FinancingTotals


def calculate_financial_summary(
    subscriptions=(),
    marketing_channels=(),
    departments=(),
    cogs=(),
    operating_expenses=()
) -> FinancialSummary:
    """Headline figures from the five contributing collections."""
    marketing = sum(c.monthly_budget for c in marketing_channels)
    payroll = sum(d.monthly_total for d in departments)
    cogs_cost = sum(c.monthly_cost for c in cogs)
    opex = sum(e.monthly_cost for e in operating_expenses)

    summary = FinancialSummary()
    summary.total_revenue = round_money(sum(s.mrr for s in subscriptions))
    summary.total_costs = round_money(marketing + payroll + cogs_cost + opex)
    summary.annual_revenue = round_money(summary.total_revenue * 12)
    summary.annual_costs = round_money(summary.total_costs * 12)
    summary.gross_margin_pct = safe_pct(summary.total_revenue - cogs_cost, summary.total_revenue)
    summary.monthly_net_income = round_money(summary.total_revenue - summary.total_costs)
    summary.annual_net_income = round_money(summary.annual_revenue - summary.annual_costs)
    summary.section_totals = {
        "marketing": round_money(marketing),
        "payroll": round_money(payroll),
        "cogs": round_money(cogs_cost),
        "opex": round_money(opex),
    }
    return summary


def summarize_snapshot(snapshot) -> FinancialSummary:
    return calculate_financial_summary(
        subscriptions=snapshot.subscriptions,
        marketing_channels=snapshot.marketing_channels,
        departments=snapshot.departments,
        cogs=snapshot.cogs,
        operating_expenses=snapshot.operating_expenses,
    )


def calculate_model_totals(snapshot) -> ModelTotals:
    """Every section's totals for one snapshot."""
    return ModelTotals(
        summary=summarize_snapshot(snapshot),
        marketing=calculate_marketing_totals(snapshot.marketing_channels, snapshot.marketing_team),
        funnel=calculate_funnel_totals(snapshot.funnel_conversions),
        subscribers=calculate_subscriber_totals(snapshot.active_subscribers),
        revenue=calculate_revenue_totals(snapshot.subscriptions, snapshot.cogs),
        expenses=calculate_expense_totals(snapshot.departments, snapshot.operating_expenses),
        financing=calculate_financing_totals(snapshot.funding_rounds),
    )
