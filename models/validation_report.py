# =============================================================================
# SAAS FINMODEL - VALIDATION REPORT GENERATOR
# =============================================================================
# Checks a snapshot against the model invariants:
# - every derived value equals its formula at rest
# - the subscriber roll-forward chain is unbroken
# - every record belongs to the snapshot owner and ids are unique
# - linked funnel rows follow their channel
# =============================================================================

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List

from .expenses import validate_expenses
from .financing import validate_financing
from .funnel import validate_funnel
from .marketing import validate_marketing
from .revenue import validate_revenue
from .schema import ENTITY_KINDS, get_schema
from .subscribers import validate_periods


@dataclass
class CheckResult:
    """Result of a single check."""
    name: str
    passed: bool
    message: str = ""


@dataclass
class ValidationReport:
    """Complete validation report for one owner."""
    timestamp: str = ""
    owner_id: str = ""

    section_checks: Dict[str, List[CheckResult]] = field(default_factory=dict)
    integrity_checks: List[CheckResult] = field(default_factory=list)

    total_passed: int = 0
    total_failed: int = 0
    overall_passed: bool = False

    errors: List[str] = field(default_factory=list)


def _as_check(name: str, errors: List[str]) -> CheckResult:
    if errors:
        return CheckResult(name, False, "; ".join(errors[:3]))
    return CheckResult(name, True)


def check_ownership(snapshot) -> List[str]:
    """Every record must belong to the snapshot owner."""
    errors = []
    for kind in ENTITY_KINDS:
        for record in snapshot.records(kind):
            if record.owner_id != snapshot.owner_id:
                errors.append(
                    f"{kind} record {record.id!r} belongs to {record.owner_id!r}, "
                    f"not {snapshot.owner_id!r}"
                )
    return errors


def check_identifiers(snapshot) -> List[str]:
    """Surrogate ids must be present and unique within each kind."""
    errors = []
    for kind in ENTITY_KINDS:
        seen = set()
        for record in snapshot.records(kind):
            if not record.id:
                errors.append(f"{kind} record {get_schema(kind).display_name(record)!r} has no id")
            elif record.id in seen:
                errors.append(f"Duplicate {kind} id {record.id!r}")
            seen.add(record.id)
    return errors


def check_funnel_links(snapshot) -> List[str]:
    """Linked funnel rows carry their channel's name and lead count."""
    errors = []
    channels = {c.id: c for c in snapshot.marketing_channels}
    for conversion in snapshot.funnel_conversions:
        if not conversion.channel_id:
            continue
        channel = channels.get(conversion.channel_id)
        if channel is None:
            errors.append(f"Funnel row {conversion.channel!r} links to a missing channel")
        elif conversion.mql != channel.leads_generated:
            errors.append(
                f"Funnel row {conversion.channel!r} has mql {conversion.mql}, "
                f"channel generates {channel.leads_generated} leads"
            )
    return errors


def generate_validation_report(snapshot) -> ValidationReport:
    report = ValidationReport(
        timestamp=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        owner_id=snapshot.owner_id,
    )

    report.section_checks["Marketing"] = [
        _as_check("derived_leads_and_payroll",
                  validate_marketing(snapshot.marketing_channels, snapshot.marketing_team)),
    ]
    report.section_checks["Funnel"] = [
        _as_check("derived_sql_and_deals", validate_funnel(snapshot.funnel_conversions)),
        _as_check("channel_links", check_funnel_links(snapshot)),
    ]
    report.section_checks["Subscribers"] = [
        _as_check("roll_forward_chain", validate_periods(snapshot.active_subscribers)),
    ]
    report.section_checks["Revenue"] = [
        _as_check("derived_mrr", validate_revenue(snapshot.subscriptions, snapshot.cogs)),
    ]
    report.section_checks["Expenses"] = [
        _as_check("derived_payroll",
                  validate_expenses(snapshot.departments, snapshot.operating_expenses)),
    ]
    report.section_checks["Financing"] = [
        _as_check("derived_post_money", validate_financing(snapshot.funding_rounds)),
    ]

    report.integrity_checks.append(_as_check("ownership", check_ownership(snapshot)))
    report.integrity_checks.append(_as_check("unique_ids", check_identifiers(snapshot)))

    all_checks = []
    for checks in report.section_checks.values():
        all_checks.extend(checks)
    all_checks.extend(report.integrity_checks)

    report.total_passed = sum(1 for c in all_checks if c.passed)
    report.total_failed = sum(1 for c in all_checks if not c.passed)
    report.overall_passed = report.total_failed == 0
    report.errors = [f"{c.name}: {c.message}" for c in all_checks if not c.passed]

    return report


def validate_snapshot(snapshot) -> List[str]:
    """Flat list of invariant violations (empty when consistent)."""
    return generate_validation_report(snapshot).errors


def format_report(report: ValidationReport) -> str:
    """Format validation report as text."""
    lines = [
        "=" * 60,
        "VALIDATION REPORT",
        "=" * 60,
        f"Date: {report.timestamp}",
        f"Owner: {report.owner_id}",
        "",
        "SECTION CHECKS",
        "-" * 40
    ]

    for section, checks in report.section_checks.items():
        passed = sum(1 for c in checks if c.passed)
        total = len(checks)
        status = "PASSED" if passed == total else "FAILED"
        lines.append(f"{section}: {passed}/{total} {status}")

    lines.extend(["", "INTEGRITY", "-" * 40])
    for check in report.integrity_checks:
        lines.append(f"{check.name}: {'PASSED' if check.passed else 'FAILED'}")

    if report.errors:
        lines.extend(["", "FAILURES", "-" * 40])
        lines.extend(f"  - {error}" for error in report.errors)

    lines.extend([
        "",
        "=" * 60,
        f"OVERALL: {'PASSED' if report.overall_passed else 'FAILED'}",
        f"Total: {report.total_passed} passed, {report.total_failed} failed",
        "=" * 60
    ])

    return "\n".join(lines)


# =============================================================================
# END OF VALIDATION REPORT GENERATOR
# =============================================================================
