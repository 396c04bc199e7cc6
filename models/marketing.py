# =============================================================================
# SAAS FINMODEL - MARKETING ENGINE
# =============================================================================
# Marketing channels (budget -> leads) and the marketing team (payroll).
#
# FORMULAS:
# Leads[c]        = floor(Monthly_budget[c] / Cost_per_lead[c]), 0 if CPL <= 0
# Monthly_total[e] = round(Salary_per_fte[e] / 12 * FTE[e], 2)
# =============================================================================

from dataclasses import dataclass, replace
from typing import Iterable, List

from .parsing import floor_count, round_money


@dataclass(frozen=True)
class MarketingChannel:
    """A paid or organic acquisition channel."""
    id: str = ""
    owner_id: str = ""
    name: str = ""
    monthly_budget: float = 0.0
    cost_per_lead: float = 0.0
    leads_generated: int = 0  # derived
    notes: str = ""


@dataclass(frozen=True)
class Employee:
    """A marketing team role."""
    id: str = ""
    owner_id: str = ""
    role: str = ""
    fte: float = 0.0
    salary_per_fte: float = 0.0  # annual
    monthly_total: float = 0.0  # derived


@dataclass
class MarketingTotals:
    total_budget: float = 0.0
    total_leads: int = 0
    avg_cost_per_lead: float = 0.0
    team_cost: float = 0.0
    total_fte: float = 0.0


def calculate_leads(monthly_budget: float, cost_per_lead: float) -> int:
    """Leads bought by a monthly budget at a given cost per lead."""
    if cost_per_lead <= 0:
        return 0
    return floor_count(monthly_budget / cost_per_lead)


def calculate_employee_monthly_total(salary_per_fte: float, fte: float) -> float:
    return round_money(salary_per_fte / 12 * fte)


def derive_channel(channel: MarketingChannel) -> MarketingChannel:
    return replace(
        channel,
        leads_generated=calculate_leads(channel.monthly_budget, channel.cost_per_lead),
    )


def derive_employee(employee: Employee) -> Employee:
    return replace(
        employee,
        monthly_total=calculate_employee_monthly_total(employee.salary_per_fte, employee.fte),
    )


def calculate_marketing_totals(
    channels: Iterable[MarketingChannel],
    team: Iterable[Employee] = ()
) -> MarketingTotals:
    """Aggregate channel budgets, leads and team cost."""
    channels = list(channels)
    team = list(team)

    totals = MarketingTotals()
    totals.total_budget = sum(c.monthly_budget for c in channels)
    totals.total_leads = sum(c.leads_generated for c in channels)
    if totals.total_leads > 0:
        totals.avg_cost_per_lead = round_money(totals.total_budget / totals.total_leads)
    totals.team_cost = round_money(sum(e.monthly_total for e in team))
    totals.total_fte = sum(e.fte for e in team)
    return totals


def validate_marketing(
    channels: Iterable[MarketingChannel],
    team: Iterable[Employee] = ()
) -> List[str]:
    """Check stored derived values and sign constraints."""
    errors = []

    for channel in channels:
        expected = calculate_leads(channel.monthly_budget, channel.cost_per_lead)
        if channel.leads_generated != expected:
            errors.append(
                f"Stale leads_generated for channel {channel.name!r}: "
                f"{channel.leads_generated} != {expected}"
            )
        if channel.monthly_budget < 0:
            errors.append(f"Negative monthly_budget for channel {channel.name!r}: {channel.monthly_budget}")

    for employee in team:
        expected = calculate_employee_monthly_total(employee.salary_per_fte, employee.fte)
        if abs(employee.monthly_total - expected) > 0.005:
            errors.append(
                f"Stale monthly_total for role {employee.role!r}: "
                f"{employee.monthly_total} != {expected}"
            )

    return errors
