# =============================================================================
# SAAS FINMODEL - MODEL STATE
# =============================================================================
# Immutable per-owner snapshot plus a pure reducer:
#
#   reduce(snapshot, action) -> ReduceResult(snapshot, effects)
#
# Actions: EditField, AddRow, DeleteRow, AddPeriod, SyncWithFunnel
# Effects: Upsert, Delete, ReplaceAll  (executed later by store.sync)
#
# KEY PRINCIPLES:
# - Records are targeted by surrogate id, never by name/role/tier
# - Channel edits propagate to the linked funnel row
# - Period edits cascade forward over the rest of the sequence
# - The reducer never performs I/O
# =============================================================================

from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional, Tuple, Union

from .defaults import new_row
from .errors import OwnershipError, RecordNotFoundError
from .funnel import conversion_for_channel, link_to_channel
from .recompute import apply_edit, apply_period_edit
from .schema import (
    ACTIVE_SUBSCRIBERS, ENTITY_KINDS, FUNNEL_CONVERSIONS, MARKETING_CHANNELS,
    get_schema, new_record_id,
)
from .subscribers import (
    build_next_period, cascade, order_periods, renumber_periods, sync_with_funnel,
)


@dataclass(frozen=True)
class ModelSnapshot:
    """All records of one owner, one tuple per entity kind."""
    owner_id: str
    marketing_channels: Tuple = ()
    marketing_team: Tuple = ()
    funnel_conversions: Tuple = ()
    subscriptions: Tuple = ()
    active_subscribers: Tuple = ()
    cogs: Tuple = ()
    departments: Tuple = ()
    operating_expenses: Tuple = ()
    funding_rounds: Tuple = ()

    def records(self, kind: str) -> Tuple:
        get_schema(kind)
        return getattr(self, kind)

    def with_records(self, kind: str, records) -> "ModelSnapshot":
        records = tuple(records)
        if get_schema(kind).ordered:
            records = tuple(order_periods(records))
        return replace(self, **{kind: records})

    def find(self, kind: str, record_id: str):
        for record in self.records(kind):
            if record.id == record_id:
                return record
        raise RecordNotFoundError(kind, record_id)

    def index_of(self, kind: str, record_id: str) -> int:
        for i, record in enumerate(self.records(kind)):
            if record.id == record_id:
                return i
        raise RecordNotFoundError(kind, record_id)

    def counts(self) -> Dict[str, int]:
        return {kind: len(self.records(kind)) for kind in ENTITY_KINDS}

    @classmethod
    def from_records(cls, owner_id: str, records: Dict[str, List]) -> "ModelSnapshot":
        snapshot = cls(owner_id=owner_id)
        for kind, items in records.items():
            snapshot = snapshot.with_records(kind, items)
        return snapshot


# -----------------------------------------------------------------------------
# Actions
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class EditField:
    kind: str
    record_id: str
    field: str
    value: object


@dataclass(frozen=True)
class AddRow:
    kind: str
    values: Optional[Dict] = None


@dataclass(frozen=True)
class DeleteRow:
    kind: str
    record_id: str


@dataclass(frozen=True)
class AddPeriod:
    pass


@dataclass(frozen=True)
class SyncWithFunnel:
    pass


Action = Union[EditField, AddRow, DeleteRow, AddPeriod, SyncWithFunnel]


# -----------------------------------------------------------------------------
# Effects
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class Upsert:
    kind: str
    record: object


@dataclass(frozen=True)
class Delete:
    kind: str
    record_id: str


@dataclass(frozen=True)
class ReplaceAll:
    kind: str
    records: Tuple


Effect = Union[Upsert, Delete, ReplaceAll]


@dataclass
class ReduceResult:
    snapshot: ModelSnapshot
    effects: List[Effect] = field(default_factory=list)


# -----------------------------------------------------------------------------
# Reducer
# -----------------------------------------------------------------------------

def _changed(before, after) -> List:
    """Records of `after` that differ from the same position in `before`."""
    changed = []
    for i, record in enumerate(after):
        if i >= len(before) or before[i] != record:
            changed.append(record)
    return changed


def _propagate_channel(snapshot: ModelSnapshot, channel) -> Tuple[ModelSnapshot, List[Effect]]:
    effects: List[Effect] = []
    conversions = []
    for conversion in snapshot.funnel_conversions:
        if conversion.channel_id == channel.id:
            linked = link_to_channel(conversion, channel)
            if linked != conversion:
                effects.append(Upsert(FUNNEL_CONVERSIONS, linked))
            conversions.append(linked)
        else:
            conversions.append(conversion)
    return snapshot.with_records(FUNNEL_CONVERSIONS, conversions), effects


def _reduce_edit(snapshot: ModelSnapshot, action: EditField) -> ReduceResult:
    kind = action.kind
    records = list(snapshot.records(kind))
    index = snapshot.index_of(kind, action.record_id)

    if kind == ACTIVE_SUBSCRIBERS:
        updated = apply_period_edit(records, index, action.field, action.value)
        effects: List[Effect] = [Upsert(kind, r) for r in _changed(records, updated)]
        return ReduceResult(snapshot.with_records(kind, updated), effects)

    before = records[index]
    after = apply_edit(kind, before, action.field, action.value)
    if after == before:
        return ReduceResult(snapshot)

    records[index] = after
    snapshot = snapshot.with_records(kind, records)
    effects = [Upsert(kind, after)]

    if kind == MARKETING_CHANNELS:
        snapshot, funnel_effects = _propagate_channel(snapshot, after)
        effects.extend(funnel_effects)

    return ReduceResult(snapshot, effects)


def _reduce_add(
    snapshot: ModelSnapshot,
    action: AddRow,
    id_factory: Callable[[], str]
) -> ReduceResult:
    kind = action.kind
    if kind == ACTIVE_SUBSCRIBERS:
        return _reduce_add_period(snapshot, id_factory)

    record = new_row(kind, snapshot.owner_id, id_factory(), action.values)
    snapshot = snapshot.with_records(kind, snapshot.records(kind) + (record,))
    effects: List[Effect] = [Upsert(kind, record)]

    if kind == MARKETING_CHANNELS:
        conversion = conversion_for_channel(record, id_factory())
        snapshot = snapshot.with_records(
            FUNNEL_CONVERSIONS, snapshot.funnel_conversions + (conversion,)
        )
        effects.append(Upsert(FUNNEL_CONVERSIONS, conversion))

    return ReduceResult(snapshot, effects)


def _reduce_add_period(snapshot: ModelSnapshot, id_factory: Callable[[], str]) -> ReduceResult:
    periods = snapshot.active_subscribers
    period = build_next_period(periods, snapshot.owner_id, id_factory())
    snapshot = snapshot.with_records(ACTIVE_SUBSCRIBERS, periods + (period,))
    return ReduceResult(snapshot, [Upsert(ACTIVE_SUBSCRIBERS, period)])


def _reduce_delete(snapshot: ModelSnapshot, action: DeleteRow) -> ReduceResult:
    kind = action.kind
    index = snapshot.index_of(kind, action.record_id)
    records = list(snapshot.records(kind))
    del records[index]
    effects: List[Effect] = [Delete(kind, action.record_id)]

    if kind == ACTIVE_SUBSCRIBERS:
        before = records
        records = list(cascade(renumber_periods(records), index))
        effects.extend(Upsert(kind, r) for r in _changed(before, records))

    snapshot = snapshot.with_records(kind, records)

    if kind == MARKETING_CHANNELS:
        kept = []
        for conversion in snapshot.funnel_conversions:
            if conversion.channel_id == action.record_id:
                effects.append(Delete(FUNNEL_CONVERSIONS, conversion.id))
            else:
                kept.append(conversion)
        snapshot = snapshot.with_records(FUNNEL_CONVERSIONS, kept)

    return ReduceResult(snapshot, effects)


def _reduce_sync(snapshot: ModelSnapshot) -> ReduceResult:
    total_deals = sum(c.deals for c in snapshot.funnel_conversions)
    periods = sync_with_funnel(snapshot.active_subscribers, total_deals)
    snapshot = snapshot.with_records(ACTIVE_SUBSCRIBERS, periods)
    return ReduceResult(snapshot, [ReplaceAll(ACTIVE_SUBSCRIBERS, snapshot.active_subscribers)])


def reduce(
    snapshot: ModelSnapshot,
    action: Action,
    id_factory: Callable[[], str] = new_record_id
) -> ReduceResult:
    """
    Apply one user action to a snapshot.

    Returns the new snapshot and the persistence effects that bring the
    store in line with it, in the order they should be executed.
    """
    if not snapshot.owner_id:
        raise OwnershipError("No owner is signed in")

    if isinstance(action, EditField):
        return _reduce_edit(snapshot, action)
    if isinstance(action, AddRow):
        return _reduce_add(snapshot, action, id_factory)
    if isinstance(action, DeleteRow):
        return _reduce_delete(snapshot, action)
    if isinstance(action, AddPeriod):
        return _reduce_add_period(snapshot, id_factory)
    if isinstance(action, SyncWithFunnel):
        return _reduce_sync(snapshot)
    raise TypeError(f"Unsupported action: {action!r}")


def reduce_all(
    snapshot: ModelSnapshot,
    actions,
    id_factory: Callable[[], str] = new_record_id
) -> ReduceResult:
    """Fold several actions, concatenating their effects."""
    result = ReduceResult(snapshot)
    for action in actions:
        step = reduce(result.snapshot, action, id_factory)
        result = ReduceResult(step.snapshot, result.effects + step.effects)
    return result
