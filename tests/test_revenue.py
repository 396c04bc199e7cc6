# =============================================================================
# SAAS FINMODEL - REVENUE ENGINE TESTS
# =============================================================================

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models.revenue import (
    Subscription, Cogs,
    calculate_mrr, derive_subscription,
    calculate_revenue_totals, validate_revenue
)


def _tier(tier, price, count):
    return derive_subscription(Subscription(id=tier, owner_id="o", tier=tier,
                                            monthly_price=price, subscriber_count=count))


class TestMRR:
    """Tests for mrr = price * subscribers."""

    def test_mrr(self):
        assert calculate_mrr(8, 3000) == 24000.0

    def test_fractional_price(self):
        assert calculate_mrr(9.99, 3) == 29.97

    def test_free_tier(self):
        assert _tier("Free", 0, 5000).mrr == 0.0


class TestRevenueTotals:
    """Tests for revenue aggregation."""

    def test_totals(self):
        tiers = [_tier("Free", 0, 5000), _tier("Basic", 8, 3000),
                 _tier("Advanced", 20, 2000), _tier("Premium", 50, 500)]
        cogs = [Cogs(id="c", category="Hosting", monthly_cost=9670)]
        totals = calculate_revenue_totals(tiers, cogs)
        assert totals.mrr == 89000.0
        assert totals.arr == 1068000.0
        assert totals.subscribers == 10500
        assert totals.arpu == 8.48
        assert totals.cogs == 9670.0
        assert totals.annual_cogs == 116040.0
        assert totals.gross_margin_pct == 89.1

    def test_no_revenue(self):
        """Gross margin and ARPU are 0 when there is nothing to divide by."""
        totals = calculate_revenue_totals([], [Cogs(id="c", monthly_cost=100)])
        assert totals.gross_margin_pct == 0.0
        assert totals.arpu == 0.0


class TestValidation:
    def test_stale_mrr(self):
        stale = Subscription(id="b", tier="Basic", monthly_price=8, subscriber_count=10, mrr=1)
        assert any("Stale mrr" in e for e in validate_revenue([stale]))

    def test_negative_cogs(self):
        assert validate_revenue([], [Cogs(id="c", category="X", monthly_cost=-1)])
