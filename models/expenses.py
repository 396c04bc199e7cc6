# =============================================================================
# SAAS FINMODEL - EXPENSES ENGINE
# =============================================================================
# Departments (payroll with overhead) and operating expenses.
#
# FORMULAS:
# Monthly_total[d] = round(Salary[d] / 12 * FTE[d] * (1 + Additional_costs_pct[d] / 100), 2)
# OpEx lines are leaf records (monthly_cost as entered).
# =============================================================================

from dataclasses import dataclass, replace
from typing import Iterable, List

from .parsing import round_money


@dataclass(frozen=True)
class Department:
    """A department's headcount and loaded payroll."""
    id: str = ""
    owner_id: str = ""
    name: str = ""
    fte: float = 0.0
    salary: float = 0.0  # annual, per FTE
    additional_costs_pct: float = 0.0  # employer overhead on top of salary
    monthly_total: float = 0.0  # derived


@dataclass(frozen=True)
class OperatingExpense:
    """A non-payroll operating expense line (leaf record)."""
    id: str = ""
    owner_id: str = ""
    category: str = ""
    monthly_cost: float = 0.0
    notes: str = ""


@dataclass
class ExpenseTotals:
    payroll: float = 0.0
    opex: float = 0.0
    total_fte: float = 0.0
    annual_payroll: float = 0.0
    annual_opex: float = 0.0


def calculate_department_monthly_total(
    salary: float,
    fte: float,
    additional_costs_pct: float
) -> float:
    return round_money(salary / 12 * fte * (1 + additional_costs_pct / 100))


def derive_department(department: Department) -> Department:
    return replace(
        department,
        monthly_total=calculate_department_monthly_total(
            department.salary, department.fte, department.additional_costs_pct
        ),
    )


def calculate_expense_totals(
    departments: Iterable[Department],
    operating_expenses: Iterable[OperatingExpense] = ()
) -> ExpenseTotals:
    departments = list(departments)
    operating_expenses = list(operating_expenses)

    totals = ExpenseTotals()
    totals.payroll = round_money(sum(d.monthly_total for d in departments))
    totals.opex = round_money(sum(e.monthly_cost for e in operating_expenses))
    totals.total_fte = sum(d.fte for d in departments)
    totals.annual_payroll = round_money(totals.payroll * 12)
    totals.annual_opex = round_money(totals.opex * 12)
    return totals


def validate_expenses(
    departments: Iterable[Department],
    operating_expenses: Iterable[OperatingExpense] = ()
) -> List[str]:
    errors = []

    for department in departments:
        expected = calculate_department_monthly_total(
            department.salary, department.fte, department.additional_costs_pct
        )
        if abs(department.monthly_total - expected) > 0.005:
            errors.append(
                f"Stale monthly_total for department {department.name!r}: "
                f"{department.monthly_total} != {expected}"
            )
        if department.fte < 0:
            errors.append(f"Negative FTE for department {department.name!r}: {department.fte}")

    for expense in operating_expenses:
        if expense.monthly_cost < 0:
            errors.append(f"Negative OpEx for {expense.category!r}: {expense.monthly_cost}")

    return errors
