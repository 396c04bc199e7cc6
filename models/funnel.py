# =============================================================================
# SAAS FINMODEL - FUNNEL ENGINE
# =============================================================================
# MQL -> SQL -> Deal conversion per marketing channel.
#
# FORMULAS:
# SQL[c]   = floor(MQL[c] * MQL_to_SQL_rate[c] / 100)
# Deals[c] = floor(SQL[c] * SQL_to_Deal_rate[c] / 100)
#
# KEY PRINCIPLE: counts are floored so fractional conversions never overcount
# =============================================================================

from dataclasses import dataclass, replace
from typing import Iterable, List

from .parsing import floor_share, safe_pct

DEFAULT_MQL_TO_SQL_RATE = 40.0
DEFAULT_SQL_TO_DEAL_RATE = 35.0


@dataclass(frozen=True)
class FunnelConversion:
    """Funnel conversion row for one channel."""
    id: str = ""
    owner_id: str = ""
    channel_id: str = ""  # MarketingChannel.id this row follows
    channel: str = ""
    mql: int = 0
    mql_to_sql_rate: float = DEFAULT_MQL_TO_SQL_RATE  # percent
    sql: int = 0  # derived
    sql_to_deal_rate: float = DEFAULT_SQL_TO_DEAL_RATE  # percent
    deals: int = 0  # derived


@dataclass
class FunnelTotals:
    total_mql: int = 0
    total_sql: int = 0
    total_deals: int = 0
    avg_mql_to_sql_rate: float = 0.0
    avg_sql_to_deal_rate: float = 0.0
    annual_mql: int = 0
    annual_sql: int = 0
    annual_deals: int = 0


def calculate_sql(mql: int, mql_to_sql_rate: float) -> int:
    return floor_share(mql, mql_to_sql_rate)


def calculate_deals(sql: int, sql_to_deal_rate: float) -> int:
    return floor_share(sql, sql_to_deal_rate)


def derive_conversion(conversion: FunnelConversion) -> FunnelConversion:
    sql = calculate_sql(conversion.mql, conversion.mql_to_sql_rate)
    deals = calculate_deals(sql, conversion.sql_to_deal_rate)
    return replace(conversion, sql=sql, deals=deals)


def link_to_channel(conversion: FunnelConversion, channel) -> FunnelConversion:
    """Follow a channel's name and lead count, then re-derive."""
    return derive_conversion(
        replace(
            conversion,
            channel_id=channel.id,
            channel=channel.name,
            mql=channel.leads_generated,
        )
    )


def conversion_for_channel(channel, conversion_id: str) -> FunnelConversion:
    """New funnel row for a channel using the default conversion rates."""
    return link_to_channel(
        FunnelConversion(id=conversion_id, owner_id=channel.owner_id),
        channel,
    )


def calculate_funnel_totals(conversions: Iterable[FunnelConversion]) -> FunnelTotals:
    """Aggregate funnel counts and effective conversion rates."""
    conversions = list(conversions)

    totals = FunnelTotals()
    totals.total_mql = sum(c.mql for c in conversions)
    totals.total_sql = sum(c.sql for c in conversions)
    totals.total_deals = sum(c.deals for c in conversions)
    totals.avg_mql_to_sql_rate = round(safe_pct(totals.total_sql, totals.total_mql), 1)
    totals.avg_sql_to_deal_rate = round(safe_pct(totals.total_deals, totals.total_sql), 1)
    totals.annual_mql = totals.total_mql * 12
    totals.annual_sql = totals.total_sql * 12
    totals.annual_deals = totals.total_deals * 12
    return totals


def validate_funnel(conversions: Iterable[FunnelConversion]) -> List[str]:
    """Check stored derived counts and rate bounds."""
    errors = []

    for conversion in conversions:
        label = conversion.channel or conversion.id
        for rate_name in ("mql_to_sql_rate", "sql_to_deal_rate"):
            rate = getattr(conversion, rate_name)
            if rate < 0 or rate > 100:
                errors.append(f"{rate_name} out of range for {label!r}: {rate}")

        expected = derive_conversion(conversion)
        if (conversion.sql, conversion.deals) != (expected.sql, expected.deals):
            errors.append(
                f"Stale funnel counts for {label!r}: "
                f"sql={conversion.sql}, deals={conversion.deals} "
                f"(expected sql={expected.sql}, deals={expected.deals})"
            )

    return errors
