# =============================================================================
# SAAS FINMODEL - ACTIVE SUBSCRIBER ROLL-FORWARD
# =============================================================================
# Ordered monthly periods of existing, new and churned subscribers.
#
# FORMULAS:
# Ending[i]   = Existing[i] + New_deals[i] - Churned[i]
# Existing[i] = Ending[i-1]                       for i > 0
#
# KEY PRINCIPLE: an edit to period i is folded forward over every later
# period immediately, so the chain invariant holds after every edit.
# =============================================================================

from dataclasses import dataclass, replace
from typing import Iterable, List, Optional, Sequence, Tuple

from .parsing import safe_pct

MONTHS = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]

ROLLING_WINDOW = 3


@dataclass(frozen=True)
class ActiveSubscriberPeriod:
    """One period of the subscriber roll-forward."""
    id: str = ""
    owner_id: str = ""
    position: int = 0
    month: str = ""
    existing_subs: int = 0
    new_deals: int = 0
    churned_subs: int = 0
    ending_subs: int = 0  # derived


@dataclass
class RollingMetrics:
    """Averages over the last ROLLING_WINDOW periods."""
    churn_rate: float = 0.0
    new_deals: float = 0.0


@dataclass
class SubscriberTotals:
    monthly_new_deals: int = 0
    monthly_churned: int = 0
    annual_new_deals: int = 0
    annual_churned: int = 0
    latest_ending_subs: int = 0
    rolling: Optional[RollingMetrics] = None


def calculate_ending_subs(existing_subs: int, new_deals: int, churned_subs: int) -> int:
    return existing_subs + new_deals - churned_subs


def derive_period(period: ActiveSubscriberPeriod) -> ActiveSubscriberPeriod:
    return replace(
        period,
        ending_subs=calculate_ending_subs(period.existing_subs, period.new_deals, period.churned_subs),
    )


def order_periods(periods: Iterable[ActiveSubscriberPeriod]) -> List[ActiveSubscriberPeriod]:
    """Sort by position (stable for equal positions)."""
    return sorted(periods, key=lambda p: p.position)


def renumber_periods(periods: Sequence[ActiveSubscriberPeriod]) -> List[ActiveSubscriberPeriod]:
    return [p if p.position == i else replace(p, position=i) for i, p in enumerate(periods)]


def cascade(
    periods: Sequence[ActiveSubscriberPeriod],
    start: int = 0
) -> Tuple[ActiveSubscriberPeriod, ...]:
    """
    Re-derive periods from `start` to the end of the sequence.

    Period `start` keeps its own existing_subs only when it is the first
    period; otherwise it is chained to its predecessor like every later one.
    """
    result = list(periods)
    if not result:
        return ()
    start = max(0, min(start, len(result) - 1))

    for i in range(start, len(result)):
        period = result[i]
        if i > 0:
            period = replace(period, existing_subs=result[i - 1].ending_subs)
        result[i] = derive_period(period)

    return tuple(result)


def churn_rate(period: ActiveSubscriberPeriod) -> float:
    """Churned as a percent of existing subscribers, 0 when none existed."""
    return safe_pct(period.churned_subs, period.existing_subs)


def rolling_metrics(
    periods: Sequence[ActiveSubscriberPeriod],
    window: int = ROLLING_WINDOW
) -> Optional[RollingMetrics]:
    """Average churn rate and new deals over the trailing window."""
    if len(periods) < window:
        return None
    tail = list(periods)[-window:]
    return RollingMetrics(
        churn_rate=round(sum(churn_rate(p) for p in tail) / window, 1),
        new_deals=round(sum(p.new_deals for p in tail) / window, 1),
    )


def next_month_name(month: str) -> str:
    """Calendar month after `month`, wrapping December to January."""
    try:
        index = MONTHS.index(month.strip().capitalize())
    except ValueError:
        return MONTHS[0]
    return MONTHS[(index + 1) % 12]


def build_next_period(
    periods: Sequence[ActiveSubscriberPeriod],
    owner_id: str,
    period_id: str
) -> ActiveSubscriberPeriod:
    """Append-ready period continuing the sequence with the last new-deal pace."""
    if not periods:
        return derive_period(
            ActiveSubscriberPeriod(id=period_id, owner_id=owner_id, position=0, month=MONTHS[0])
        )
    last = periods[-1]
    return derive_period(
        ActiveSubscriberPeriod(
            id=period_id,
            owner_id=owner_id,
            position=last.position + 1,
            month=next_month_name(last.month),
            existing_subs=last.ending_subs,
            new_deals=last.new_deals,
            churned_subs=0,
        )
    )


def sync_with_funnel(
    periods: Sequence[ActiveSubscriberPeriod],
    total_deals: int
) -> Tuple[ActiveSubscriberPeriod, ...]:
    """
    Feed the funnel's total deals into every period.

    The first period restarts from zero existing subscribers; churn is kept.
    """
    if not periods:
        return ()
    updated = [replace(p, new_deals=total_deals) for p in periods]
    updated[0] = replace(updated[0], existing_subs=0)
    return cascade(updated, 0)


def calculate_subscriber_totals(periods: Sequence[ActiveSubscriberPeriod]) -> SubscriberTotals:
    periods = list(periods)
    totals = SubscriberTotals()
    totals.monthly_new_deals = sum(p.new_deals for p in periods)
    totals.monthly_churned = sum(p.churned_subs for p in periods)
    totals.annual_new_deals = totals.monthly_new_deals * 12
    totals.annual_churned = totals.monthly_churned * 12
    totals.latest_ending_subs = periods[-1].ending_subs if periods else 0
    totals.rolling = rolling_metrics(periods)
    return totals


def validate_periods(periods: Sequence[ActiveSubscriberPeriod]) -> List[str]:
    """Check the ending formula and the chain invariant across periods."""
    errors = []
    ordered = order_periods(periods)

    for i, period in enumerate(ordered):
        expected = calculate_ending_subs(period.existing_subs, period.new_deals, period.churned_subs)
        if period.ending_subs != expected:
            errors.append(
                f"Stale ending_subs in period {i} ({period.month}): {period.ending_subs} != {expected}"
            )
        if i > 0 and period.existing_subs != ordered[i - 1].ending_subs:
            errors.append(
                f"Broken roll-forward at period {i} ({period.month}): existing_subs "
                f"{period.existing_subs} != previous ending_subs {ordered[i - 1].ending_subs}"
            )
        if period.ending_subs < 0:
            errors.append(f"Negative ending_subs in period {i} ({period.month}): {period.ending_subs}")

    return errors
