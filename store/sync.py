# =============================================================================
# SAAS FINMODEL - EFFECT EXECUTION
# =============================================================================
# Runs the persistence effects produced by models.state.reduce against a
# gateway, one write per record, in order.
#
# KEY PRINCIPLES:
# - No batching and no rollback: a failure part-way leaves earlier writes
#   committed and raises SyncError with the committed count
# - Upserts may be routed through a DebouncedWriter; any other effect
#   flushes pending upserts first so writes keep their order
# =============================================================================

import logging
from typing import Callable, Iterable, List, Optional, Sequence

from models.errors import SyncError
from models.state import (
    Delete, Effect, ModelSnapshot, ReduceResult, ReplaceAll, Upsert, reduce,
)

from .debounce import DebouncedWriter
from .gateway import PersistenceGateway

logger = logging.getLogger(__name__)

Write = Callable[[], object]


def _run_writes(kind: str, writes: Sequence[Write]) -> int:
    committed = 0
    for write in writes:
        try:
            write()
        except Exception as exc:
            logger.error(f"Write {committed + 1}/{len(writes)} of {kind} failed: {exc}")
            raise SyncError(kind, committed, len(writes), exc) from exc
        committed += 1
    return committed


def _replace_writes(
    gateway: PersistenceGateway,
    owner_id: str,
    kind: str,
    records: Sequence
) -> List[Write]:
    keep = {record.id for record in records}
    writes: List[Write] = []
    for existing in gateway.list_by_owner(kind, owner_id):
        if existing.id not in keep:
            writes.append(lambda rid=existing.id: gateway.delete_by_key(kind, owner_id, rid))
    for record in records:
        writes.append(lambda r=record: gateway.upsert(kind, r))
    return writes


def replace_all(
    gateway: PersistenceGateway,
    owner_id: str,
    kind: str,
    records: Sequence
) -> int:
    """
    Make the stored collection equal to `records`.

    Rows missing from `records` are deleted, then every record is upserted.
    Returns the number of writes issued.
    """
    return _run_writes(kind, _replace_writes(gateway, owner_id, kind, records))


def _effect_writes(gateway: PersistenceGateway, owner_id: str, effect: Effect) -> List[Write]:
    if isinstance(effect, Upsert):
        return [lambda: gateway.upsert(effect.kind, effect.record)]
    if isinstance(effect, Delete):
        return [lambda: gateway.delete_by_key(effect.kind, owner_id, effect.record_id)]
    if isinstance(effect, ReplaceAll):
        return _replace_writes(gateway, owner_id, effect.kind, effect.records)
    raise TypeError(f"Unsupported effect: {effect!r}")


def apply_effects(
    gateway: PersistenceGateway,
    owner_id: str,
    effects: Iterable[Effect],
    writer: Optional[DebouncedWriter] = None
) -> int:
    """Execute effects in order; returns the number of writes issued or queued."""
    effects = list(effects)
    count = 0
    for effect in effects:
        if writer is not None and isinstance(effect, Upsert):
            writer.submit(
                (effect.kind, effect.record.id),
                lambda e=effect: gateway.upsert(e.kind, e.record),
            )
            count += 1
            continue
        if writer is not None:
            writer.flush()
        count += _run_writes(effect.kind, _effect_writes(gateway, owner_id, effect))
    return count


def load_snapshot(
    gateway: PersistenceGateway,
    owner_id: str,
    seed: bool = True
) -> ModelSnapshot:
    """Read the owner's model, seeding the defaults on first use."""
    if seed:
        gateway.seed_defaults(owner_id)
    return ModelSnapshot.from_records(owner_id, gateway.load_all(owner_id))


def dispatch(
    gateway: PersistenceGateway,
    snapshot: ModelSnapshot,
    action,
    writer: Optional[DebouncedWriter] = None,
    id_factory: Optional[Callable[[], str]] = None
) -> ReduceResult:
    """Reduce one action, then persist its effects."""
    if id_factory is None:
        result = reduce(snapshot, action)
    else:
        result = reduce(snapshot, action, id_factory)
    apply_effects(gateway, snapshot.owner_id, result.effects, writer)
    return result
