"""Error taxonomy shared by the reducer, the gateways and the dashboard."""


class FinModelError(Exception):
    """Base class for all model and persistence failures."""


class GatewayError(FinModelError):
    """A persistence call failed (backend unreachable, unreadable data, ...)."""


class RecordNotFoundError(GatewayError, LookupError):
    def __init__(self, kind: str, record_id: str):
        super().__init__(f"No {kind} record with id {record_id!r}")
        self.kind = kind
        self.record_id = record_id


class OwnershipError(FinModelError):
    """No signed-in owner, or a write targeting another owner's data."""


class SyncError(GatewayError):
    """A sequential bulk write failed part-way; earlier writes stay committed."""

    def __init__(self, kind: str, committed: int, total: int, cause: Exception):
        super().__init__(
            f"Bulk write of {kind} failed after {committed}/{total} records: {cause}"
        )
        self.kind = kind
        self.committed = committed
        self.total = total
        self.cause = cause
