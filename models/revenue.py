# =============================================================================
# SAAS FINMODEL - REVENUE ENGINE
# =============================================================================
# Subscription tiers (price x subscribers) and cost of goods sold.
#
# FORMULAS:
# MRR[t]         = round(Monthly_price[t] * Subscribers[t], 2)
# ARR            = SUM_t(MRR[t]) * 12
# Gross_margin % = (MRR - COGS) / MRR * 100, 0 if MRR = 0
# ARPU           = MRR / Subscribers, 0 if no subscribers
# =============================================================================

from dataclasses import dataclass, replace
from typing import Iterable, List

from .parsing import round_money, safe_pct


@dataclass(frozen=True)
class Subscription:
    """A pricing tier and its paying subscribers."""
    id: str = ""
    owner_id: str = ""
    tier: str = ""
    monthly_price: float = 0.0
    subscriber_count: int = 0
    mrr: float = 0.0  # derived


@dataclass(frozen=True)
class Cogs:
    """A cost of goods sold line (leaf record, nothing derived)."""
    id: str = ""
    owner_id: str = ""
    category: str = ""
    monthly_cost: float = 0.0
    notes: str = ""


@dataclass
class RevenueTotals:
    mrr: float = 0.0
    arr: float = 0.0
    subscribers: int = 0
    arpu: float = 0.0
    cogs: float = 0.0
    annual_cogs: float = 0.0
    gross_margin_pct: float = 0.0


def calculate_mrr(monthly_price: float, subscriber_count: int) -> float:
    return round_money(monthly_price * subscriber_count)


def derive_subscription(subscription: Subscription) -> Subscription:
    return replace(
        subscription,
        mrr=calculate_mrr(subscription.monthly_price, subscription.subscriber_count),
    )


def calculate_revenue_totals(
    subscriptions: Iterable[Subscription],
    cogs: Iterable[Cogs] = ()
) -> RevenueTotals:
    """Aggregate MRR, ARPU and gross margin."""
    subscriptions = list(subscriptions)
    cogs = list(cogs)

    totals = RevenueTotals()
    totals.mrr = round_money(sum(s.mrr for s in subscriptions))
    totals.arr = round_money(totals.mrr * 12)
    totals.subscribers = sum(s.subscriber_count for s in subscriptions)
    if totals.subscribers:
        totals.arpu = round_money(totals.mrr / totals.subscribers)
    totals.cogs = round_money(sum(c.monthly_cost for c in cogs))
    totals.annual_cogs = round_money(totals.cogs * 12)
    totals.gross_margin_pct = round(safe_pct(totals.mrr - totals.cogs, totals.mrr), 1)
    return totals


def validate_revenue(
    subscriptions: Iterable[Subscription],
    cogs: Iterable[Cogs] = ()
) -> List[str]:
    """Check stored MRR values and non-negative prices/costs."""
    errors = []

    for subscription in subscriptions:
        expected = calculate_mrr(subscription.monthly_price, subscription.subscriber_count)
        if abs(subscription.mrr - expected) > 0.005:
            errors.append(f"Stale mrr for tier {subscription.tier!r}: {subscription.mrr} != {expected}")
        if subscription.monthly_price < 0:
            errors.append(f"Negative monthly_price for tier {subscription.tier!r}: {subscription.monthly_price}")

    for line in cogs:
        if line.monthly_cost < 0:
            errors.append(f"Negative COGS for {line.category!r}: {line.monthly_cost}")

    return errors
