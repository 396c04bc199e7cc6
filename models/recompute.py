# =============================================================================
# SAAS FINMODEL - RECOMPUTATION EVALUATOR
# =============================================================================
# Field editor shared by every section:
#   (record, edited field, raw text) -> new, fully consistent record
#
# KEY PRINCIPLES:
# - One derive function per entity kind, no per-section copies
# - Pure: no persistence, no mutation of the input record
# - Parse failures coerce to 0, they never raise
# - Derived fields are not editable; naming one just re-derives the record
# - derive(derive(r)) == derive(r)
# =============================================================================

from dataclasses import replace
from typing import Callable, Dict, Sequence, Tuple

from .expenses import derive_department
from .financing import derive_round
from .funnel import derive_conversion
from .marketing import derive_channel, derive_employee
from .revenue import derive_subscription
from .schema import (
    ACTIVE_SUBSCRIBERS, COGS, DEPARTMENTS, FUNDING_ROUNDS, FUNNEL_CONVERSIONS,
    MARKETING_CHANNELS, MARKETING_TEAM, OPERATING_EXPENSES, SUBSCRIPTIONS,
    FieldSpec, get_schema,
)
from .subscribers import ActiveSubscriberPeriod, cascade, derive_period


def _leaf(record):
    return record


DERIVERS: Dict[str, Callable] = {
    MARKETING_CHANNELS: derive_channel,
    MARKETING_TEAM: derive_employee,
    FUNNEL_CONVERSIONS: derive_conversion,
    SUBSCRIPTIONS: derive_subscription,
    ACTIVE_SUBSCRIBERS: derive_period,
    COGS: _leaf,
    DEPARTMENTS: derive_department,
    OPERATING_EXPENSES: _leaf,
    FUNDING_ROUNDS: derive_round,
}


def derive(kind: str, record):
    """Recompute every derived field of a record from its inputs."""
    get_schema(kind)
    return DERIVERS[kind](record)


def resolve_field(kind: str, field: str) -> FieldSpec:
    spec = get_schema(kind).resolve(field)
    if spec is None:
        raise ValueError(f"Unknown field {field!r} for {kind}")
    return spec


def apply_edit(kind: str, record, field: str, raw_value):
    """
    Set one field from raw cell input and re-derive the record.

    Raises ValueError only for an unknown kind or field name; the value
    itself never causes a failure.
    """
    spec = resolve_field(kind, field)
    if not spec.editable:
        return derive(kind, record)
    value = spec.coerce(raw_value)
    return derive(kind, replace(record, **{spec.attr: value}))


def apply_period_edit(
    periods: Sequence[ActiveSubscriberPeriod],
    index: int,
    field: str,
    raw_value
) -> Tuple[ActiveSubscriberPeriod, ...]:
    """
    Edit period `index` and fold the change forward over later periods.

    existing_subs is only taken from the edit for the first period; later
    periods always inherit their predecessor's ending_subs.
    """
    if index < 0 or index >= len(periods):
        raise IndexError(f"Period index {index} out of range (0..{len(periods) - 1})")
    updated = list(periods)
    updated[index] = apply_edit(ACTIVE_SUBSCRIBERS, updated[index], field, raw_value)
    return cascade(updated, index)


def is_consistent(kind: str, record) -> bool:
    """True when no derived field is stale."""
    return derive(kind, record) == record
