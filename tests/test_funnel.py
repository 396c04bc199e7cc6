# =============================================================================
# SAAS FINMODEL - FUNNEL ENGINE TESTS
# =============================================================================

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models.funnel import (
    FunnelConversion, DEFAULT_MQL_TO_SQL_RATE, DEFAULT_SQL_TO_DEAL_RATE,
    calculate_sql, calculate_deals, derive_conversion,
    link_to_channel, conversion_for_channel,
    calculate_funnel_totals, validate_funnel
)
from models.marketing import MarketingChannel, derive_channel


class TestConversion:
    """Tests for sql = floor(mql * r1 / 100), deals = floor(sql * r2 / 100)."""

    def test_default_rates(self):
        conversion = derive_conversion(FunnelConversion(id="f", channel="Inbound", mql=200))
        assert conversion.sql == 80
        assert conversion.deals == 28

    def test_floor(self):
        assert calculate_sql(33, 40) == 13
        assert calculate_deals(13, 35) == 4

    def test_rate_bounds(self):
        assert calculate_sql(100, 0) == 0
        assert calculate_sql(100, 100) == 100

    def test_decimal_rates(self):
        """Rates are applied as entered: 14.1% of 1000 MQLs is 141 SQLs."""
        assert calculate_sql(1000, 14.1) == 141
        assert calculate_deals(1000, 0.7) == 7
        assert calculate_sql(100, 29) == 29


class TestChannelLink:
    """Tests for funnel rows following their channel."""

    def test_link_copies_name_and_leads(self):
        channel = derive_channel(MarketingChannel(id="c1", owner_id="o", name="Email",
                                                  monthly_budget=1000, cost_per_lead=10))
        conversion = link_to_channel(FunnelConversion(id="f1", owner_id="o", mql=5), channel)
        assert conversion.channel_id == "c1"
        assert conversion.channel == "Email"
        assert conversion.mql == 100
        assert conversion.sql == 40
        assert conversion.deals == 14

    def test_new_row_uses_default_rates(self):
        channel = derive_channel(MarketingChannel(id="c1", owner_id="o", name="Email",
                                                  monthly_budget=1000, cost_per_lead=10))
        conversion = conversion_for_channel(channel, "f9")
        assert conversion.id == "f9"
        assert conversion.owner_id == "o"
        assert conversion.mql_to_sql_rate == DEFAULT_MQL_TO_SQL_RATE
        assert conversion.sql_to_deal_rate == DEFAULT_SQL_TO_DEAL_RATE


class TestFunnelTotals:
    def test_totals(self):
        rows = [
            derive_conversion(FunnelConversion(id="a", mql=200)),
            derive_conversion(FunnelConversion(id="b", mql=100)),
        ]
        totals = calculate_funnel_totals(rows)
        assert totals.total_mql == 300
        assert totals.total_sql == 120
        assert totals.total_deals == 42
        assert totals.avg_mql_to_sql_rate == 40.0
        assert totals.avg_sql_to_deal_rate == 35.0
        assert totals.annual_deals == 504

    def test_empty(self):
        totals = calculate_funnel_totals([])
        assert totals.avg_mql_to_sql_rate == 0.0


class TestValidation:
    def test_out_of_range_rate(self):
        row = derive_conversion(FunnelConversion(id="a", channel="X", mql=100, mql_to_sql_rate=150))
        errors = validate_funnel([row])
        assert any("out of range" in e for e in errors)

    def test_stale_counts(self):
        row = FunnelConversion(id="a", channel="X", mql=100, sql=1, deals=1)
        assert any("Stale funnel counts" in e for e in validate_funnel([row]))
