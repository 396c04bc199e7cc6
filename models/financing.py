# =============================================================================
# SAAS FINMODEL - FINANCING ENGINE
# =============================================================================
# Equity funding rounds.
#
# FORMULAS:
# Valuation_post[r] = Valuation_pre[r] + Amount_raised[r]
# Remaining equity  = 100 - SUM_r(Equity_sold[r])
# =============================================================================

from dataclasses import dataclass, replace
from typing import Iterable, List

from .parsing import round_money


@dataclass(frozen=True)
class FundingRound:
    """An equity round (pre-seed, seed, series A, ...)."""
    id: str = ""
    owner_id: str = ""
    round_name: str = ""
    amount_raised: float = 0.0
    valuation_pre: float = 0.0
    equity_sold: float = 0.0  # percent
    close_date: str = ""  # free text, e.g. "Q3 2025"
    valuation_post: float = 0.0  # derived


@dataclass
class FinancingTotals:
    total_raised: float = 0.0
    total_equity_sold: float = 0.0
    latest_valuation: float = 0.0
    remaining_equity: float = 100.0


def calculate_post_money(valuation_pre: float, amount_raised: float) -> float:
    return round_money(valuation_pre + amount_raised)


def derive_round(funding_round: FundingRound) -> FundingRound:
    return replace(
        funding_round,
        valuation_post=calculate_post_money(funding_round.valuation_pre, funding_round.amount_raised),
    )


def calculate_financing_totals(rounds: Iterable[FundingRound]) -> FinancingTotals:
    """Latest valuation is the post-money of the last round in sequence."""
    rounds = list(rounds)

    totals = FinancingTotals()
    totals.total_raised = round_money(sum(r.amount_raised for r in rounds))
    totals.total_equity_sold = round(sum(r.equity_sold for r in rounds), 4)
    totals.latest_valuation = rounds[-1].valuation_post if rounds else 0.0
    totals.remaining_equity = round(100.0 - totals.total_equity_sold, 1)
    return totals


def validate_financing(rounds: Iterable[FundingRound]) -> List[str]:
    errors = []
    total_sold = 0.0

    for funding_round in rounds:
        label = funding_round.round_name or funding_round.id
        expected = calculate_post_money(funding_round.valuation_pre, funding_round.amount_raised)
        if abs(funding_round.valuation_post - expected) > 0.005:
            errors.append(f"Stale valuation_post for round {label!r}: {funding_round.valuation_post} != {expected}")
        if funding_round.equity_sold < 0 or funding_round.equity_sold > 100:
            errors.append(f"equity_sold out of range for round {label!r}: {funding_round.equity_sold}")
        total_sold += funding_round.equity_sold

    if total_sold > 100:
        errors.append(f"Total equity sold exceeds 100%: {total_sold}")

    return errors
