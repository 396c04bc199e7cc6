# =============================================================================
# SAAS FINMODEL - RECOMPUTATION EVALUATOR TESTS
# =============================================================================

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models.recompute import apply_edit, apply_period_edit, derive, is_consistent
from models.marketing import MarketingChannel
from models.schema import (
    ENTITY_KINDS, MARKETING_CHANNELS, SUBSCRIPTIONS, DEPARTMENTS, ACTIVE_SUBSCRIBERS
)
from models.subscribers import validate_periods


class TestApplyEdit:
    """Tests for field edit -> consistent record."""

    def test_channel_budget(self):
        channel = derive(MARKETING_CHANNELS, MarketingChannel(id="c", name="Inbound",
                                                              monthly_budget=5000, cost_per_lead=25))
        assert channel.leads_generated == 200
        edited = apply_edit(MARKETING_CHANNELS, channel, "cost_per_lead", "50")
        assert edited.cost_per_lead == 50.0
        assert edited.leads_generated == 100

    def test_edit_by_label_with_decoration(self, default_records):
        tier = default_records[SUBSCRIPTIONS][1]
        edited = apply_edit(SUBSCRIPTIONS, tier, "Monthly Price", "£10")
        assert edited.mrr == 30000.0

    def test_unparsable_becomes_zero(self, default_records):
        department = default_records[DEPARTMENTS][0]
        edited = apply_edit(DEPARTMENTS, department, "fte", "lots")
        assert edited.fte == 0.0
        assert edited.monthly_total == 0.0

    def test_derived_field_not_editable(self, default_records):
        """Writing to a derived field leaves the record at its derived value."""
        channel = default_records[MARKETING_CHANNELS][0]
        assert apply_edit(MARKETING_CHANNELS, channel, "leads_generated", "9999") == channel

    def test_unknown_field(self, default_records):
        with pytest.raises(ValueError):
            apply_edit(MARKETING_CHANNELS, default_records[MARKETING_CHANNELS][0], "colour", "red")

    def test_input_not_mutated(self, default_records):
        channel = default_records[MARKETING_CHANNELS][0]
        apply_edit(MARKETING_CHANNELS, channel, "monthly_budget", "1")
        assert channel.monthly_budget == 5000


class TestIdempotence:
    def test_derive_twice(self, default_records):
        for kind in ENTITY_KINDS:
            for record in default_records[kind]:
                once = derive(kind, record)
                assert derive(kind, once) == once
                assert is_consistent(kind, record)


class TestPeriodEdit:
    def test_edit_cascades(self, sample_periods):
        result = apply_period_edit(sample_periods, 0, "churned_subs", "20")
        assert [p.ending_subs for p in result] == [80, 270, 555]
        assert validate_periods(result) == []

    def test_edit_middle_period(self, sample_periods):
        result = apply_period_edit(sample_periods, 1, "New Deals", "250")
        assert [p.ending_subs for p in result] == [100, 340, 625]

    def test_existing_on_later_period_is_overridden(self, sample_periods):
        result = apply_period_edit(sample_periods, 2, "existing_subs", "1")
        assert result[2].existing_subs == 290

    def test_index_out_of_range(self, sample_periods):
        with pytest.raises(IndexError):
            apply_period_edit(sample_periods, 3, "new_deals", "1")
