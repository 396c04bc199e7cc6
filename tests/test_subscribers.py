# =============================================================================
# SAAS FINMODEL - SUBSCRIBER ROLL-FORWARD TESTS
# =============================================================================

import pytest
import sys
import os
from dataclasses import replace

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models.subscribers import (
    ActiveSubscriberPeriod, MONTHS,
    calculate_ending_subs, cascade, churn_rate, rolling_metrics,
    next_month_name, build_next_period, sync_with_funnel,
    calculate_subscriber_totals, validate_periods, renumber_periods
)


class TestCascade:
    """Tests for the period chain invariant."""

    def test_ending_formula(self):
        assert calculate_ending_subs(100, 200, 10) == 290

    def test_sample_chain(self, sample_periods):
        assert [p.ending_subs for p in sample_periods] == [100, 290, 575]
        assert validate_periods(sample_periods) == []

    def test_churn_edit_cascades(self, sample_periods):
        """Churn of 20 in the first month flows through every later month."""
        periods = list(sample_periods)
        periods[0] = replace(periods[0], churned_subs=20)
        result = cascade(periods, 0)
        assert [p.ending_subs for p in result] == [80, 270, 555]
        assert [p.existing_subs for p in result] == [0, 80, 270]

    def test_later_existing_is_rechained(self, sample_periods):
        """A manual existing_subs on a later period is replaced by the chain."""
        periods = list(sample_periods)
        periods[2] = replace(periods[2], existing_subs=9999)
        result = cascade(periods, 2)
        assert result[2].existing_subs == 290
        assert result[2].ending_subs == 575

    def test_first_period_keeps_existing(self, sample_periods):
        periods = list(sample_periods)
        periods[0] = replace(periods[0], existing_subs=50)
        result = cascade(periods, 0)
        assert result[0].ending_subs == 150
        assert result[2].ending_subs == 625

    def test_start_out_of_range_is_clamped(self, sample_periods):
        assert cascade(sample_periods, 99) == tuple(sample_periods)
        assert cascade([], 0) == ()


class TestChurnMetrics:
    def test_churn_rate(self, sample_periods):
        assert churn_rate(sample_periods[0]) == 0.0
        assert churn_rate(sample_periods[1]) == 10.0

    def test_rolling_metrics(self, sample_periods):
        rolling = rolling_metrics(sample_periods)
        assert rolling.new_deals == 200.0
        # (0 + 10 + 15/290*100) / 3
        assert rolling.churn_rate == 5.1

    def test_rolling_needs_three_periods(self, sample_periods):
        assert rolling_metrics(sample_periods[:2]) is None


class TestAddMonth:
    def test_next_month_wraps(self):
        assert next_month_name("May") == "June"
        assert next_month_name("December") == "January"
        assert next_month_name("not a month") == MONTHS[0]

    def test_build_next_period(self, sample_periods, owner_id):
        period = build_next_period(sample_periods, owner_id, "p3")
        assert period.month == "June"
        assert period.position == 3
        assert period.existing_subs == 575
        assert period.new_deals == 300
        assert period.churned_subs == 0
        assert period.ending_subs == 875

    def test_first_period(self, owner_id):
        period = build_next_period([], owner_id, "p0")
        assert period.position == 0
        assert period.month == "January"
        assert period.ending_subs == 0


class TestSyncWithFunnel:
    def test_sync(self, sample_periods):
        """Every month gets the funnel deals; month one restarts from zero."""
        result = sync_with_funnel(sample_periods, 84)
        assert [p.new_deals for p in result] == [84, 84, 84]
        assert result[0].existing_subs == 0
        assert [p.churned_subs for p in result] == [0, 10, 15]
        assert [p.ending_subs for p in result] == [84, 158, 227]
        assert [p.id for p in result] == ["p0", "p1", "p2"]

    def test_sync_empty(self):
        assert sync_with_funnel([], 10) == ()


class TestTotalsAndValidation:
    def test_totals(self, sample_periods):
        totals = calculate_subscriber_totals(sample_periods)
        assert totals.monthly_new_deals == 600
        assert totals.monthly_churned == 25
        assert totals.annual_new_deals == 7200
        assert totals.latest_ending_subs == 575

    def test_broken_chain_flagged(self, sample_periods):
        periods = list(sample_periods)
        periods[1] = replace(periods[1], existing_subs=1, ending_subs=191)
        errors = validate_periods(periods)
        assert any("Broken roll-forward" in e for e in errors)

    def test_renumber(self, sample_periods):
        periods = renumber_periods([sample_periods[0], sample_periods[2]])
        assert [p.position for p in periods] == [0, 1]
