# =============================================================================
# SAAS FINMODEL - PERSISTENCE GATEWAY
# =============================================================================
# Owner-scoped boundary between the model and a storage backend.
#
# Operations:
#   list_by_owner(kind, owner_id)              -> records ordered for display
#   upsert(kind, record)                       -> idempotent write keyed by id
#   delete_by_key(kind, owner_id, record_id)   -> True if a row was removed
#   seed_defaults(owner_id)                    -> True if the seed was written
#
# KEY PRINCIPLES:
# - Every row is stored under its owner; reads never cross owners
# - Rows are (de)serialised through models.schema only
# - seed_defaults writes every kind at once or nothing at all
# =============================================================================

import copy
import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, Dict, List

from models.defaults import build_default_records
from models.errors import GatewayError, OwnershipError
from models.schema import (
    ENTITY_KINDS, get_schema, new_record_id, records_to_rows, rows_to_records,
)
from models.subscribers import order_periods

logger = logging.getLogger(__name__)

# kind -> list of storage rows
Document = Dict[str, List[Dict]]


def _require_owner(owner_id: str) -> str:
    if not owner_id:
        raise OwnershipError("No owner is signed in")
    return owner_id


class PersistenceGateway(ABC):
    """Abstract storage backend consumed by the dashboard and the CLI."""

    @abstractmethod
    def list_by_owner(self, kind: str, owner_id: str) -> List:
        """All records of one kind belonging to `owner_id`."""
        pass

    @abstractmethod
    def upsert(self, kind: str, record):
        """Insert or replace the row with the record's id."""
        pass

    @abstractmethod
    def delete_by_key(self, kind: str, owner_id: str, record_id: str) -> bool:
        pass

    @abstractmethod
    def seed_defaults(self, owner_id: str) -> bool:
        """Write the default model if, and only if, the owner has no rows yet."""
        pass

    def load_all(self, owner_id: str) -> Dict[str, List]:
        return {kind: self.list_by_owner(kind, owner_id) for kind in ENTITY_KINDS}

    def has_records(self, owner_id: str) -> bool:
        return any(self.list_by_owner(kind, owner_id) for kind in ENTITY_KINDS)


class DocumentGateway(PersistenceGateway):
    """
    Gateway over one document per owner.

    Subclasses only decide where a document lives; row handling, ownership
    checks and the all-or-nothing seed are shared.
    """

    def __init__(self, id_factory: Callable[[], str] = new_record_id):
        self._id_factory = id_factory
        self._lock = threading.RLock()

    @abstractmethod
    def _load_document(self, owner_id: str) -> Document:
        pass

    @abstractmethod
    def _save_document(self, owner_id: str, document: Document) -> None:
        pass

    def list_by_owner(self, kind: str, owner_id: str) -> List:
        schema = get_schema(kind)
        _require_owner(owner_id)
        with self._lock:
            rows = self._load_document(owner_id).get(kind, [])
            records = rows_to_records(kind, rows)
        if schema.ordered:
            records = order_periods(records)
        return records

    def upsert(self, kind: str, record):
        schema = get_schema(kind)
        owner_id = _require_owner(record.owner_id)
        if not record.id:
            raise GatewayError(f"Cannot store a {kind} record without an id")

        row = schema.to_row(record)
        with self._lock:
            document = self._load_document(owner_id)
            rows = document.setdefault(kind, [])
            for i, existing in enumerate(rows):
                if existing.get("id") == record.id:
                    rows[i] = row
                    break
            else:
                rows.append(row)
            self._save_document(owner_id, document)
        logger.debug(f"Upserted {kind} {record.id} for owner {owner_id}")
        return record

    def delete_by_key(self, kind: str, owner_id: str, record_id: str) -> bool:
        get_schema(kind)
        _require_owner(owner_id)
        with self._lock:
            document = self._load_document(owner_id)
            rows = document.get(kind, [])
            kept = [row for row in rows if row.get("id") != record_id]
            if len(kept) == len(rows):
                return False
            document[kind] = kept
            self._save_document(owner_id, document)
        logger.debug(f"Deleted {kind} {record_id} for owner {owner_id}")
        return True

    def seed_defaults(self, owner_id: str) -> bool:
        _require_owner(owner_id)
        with self._lock:
            document = self._load_document(owner_id)
            if any(document.get(kind) for kind in ENTITY_KINDS):
                return False
            records = build_default_records(owner_id, self._id_factory)
            seeded = {kind: records_to_rows(kind, records[kind]) for kind in ENTITY_KINDS}
            self._save_document(owner_id, seeded)
        logger.info(f"Seeded default model for owner {owner_id}")
        return True


class InMemoryGateway(DocumentGateway):
    """Process-local backend; documents live in a dict keyed by owner."""

    def __init__(self, id_factory: Callable[[], str] = new_record_id):
        super().__init__(id_factory)
        self._documents: Dict[str, Document] = {}

    def _load_document(self, owner_id: str) -> Document:
        return copy.deepcopy(self._documents.get(owner_id, {}))

    def _save_document(self, owner_id: str, document: Document) -> None:
        self._documents[owner_id] = copy.deepcopy(document)

    def owners(self) -> List[str]:
        with self._lock:
            return sorted(self._documents)
