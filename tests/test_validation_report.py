# =============================================================================
# SAAS FINMODEL - VALIDATION REPORT TESTS
# =============================================================================

import pytest
import sys
import os
from dataclasses import replace

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models.schema import MARKETING_CHANNELS, FUNNEL_CONVERSIONS, SUBSCRIPTIONS
from models.validation_report import (
    generate_validation_report, validate_snapshot, format_report,
    check_ownership, check_identifiers, check_funnel_links
)


class TestReport:
    """Tests for the invariant report."""

    def test_default_model_passes(self, snapshot):
        report = generate_validation_report(snapshot)
        assert report.overall_passed
        assert report.total_failed == 0
        assert report.owner_id == "owner-1"
        assert set(report.section_checks) == {
            "Marketing", "Funnel", "Subscribers", "Revenue", "Expenses", "Financing"
        }

    def test_stale_value_fails(self, snapshot):
        tiers = list(snapshot.subscriptions)
        tiers[0] = replace(tiers[0], mrr=123.0)
        broken = snapshot.with_records(SUBSCRIPTIONS, tiers)
        report = generate_validation_report(broken)
        assert not report.overall_passed
        assert any(e.startswith("derived_mrr") for e in report.errors)

    def test_format(self, snapshot):
        text = format_report(generate_validation_report(snapshot))
        assert "VALIDATION REPORT" in text
        assert "OVERALL: PASSED" in text


class TestIntegrityChecks:
    def test_foreign_owner(self, snapshot):
        channels = list(snapshot.marketing_channels)
        channels[0] = replace(channels[0], owner_id="intruder")
        errors = check_ownership(snapshot.with_records(MARKETING_CHANNELS, channels))
        assert len(errors) == 1
        assert "intruder" in errors[0]

    def test_duplicate_ids(self, snapshot):
        channels = list(snapshot.marketing_channels)
        channels[1] = replace(channels[1], id=channels[0].id)
        errors = check_identifiers(snapshot.with_records(MARKETING_CHANNELS, channels))
        assert any("Duplicate" in e for e in errors)

    def test_stale_funnel_link(self, snapshot):
        rows = list(snapshot.funnel_conversions)
        rows[0] = replace(rows[0], mql=1)
        errors = check_funnel_links(snapshot.with_records(FUNNEL_CONVERSIONS, rows))
        assert len(errors) == 1

    def test_missing_channel(self, snapshot):
        rows = list(snapshot.funnel_conversions)
        rows[0] = replace(rows[0], channel_id="gone")
        assert validate_snapshot(snapshot.with_records(FUNNEL_CONVERSIONS, rows))
