# =============================================================================
# SAAS FINMODEL - EFFECT EXECUTION TESTS
# =============================================================================

import pytest
import sys
import os
import threading
import time

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models.errors import GatewayError, SyncError
from models.schema import ACTIVE_SUBSCRIBERS, FUNNEL_CONVERSIONS, MARKETING_CHANNELS, SUBSCRIPTIONS
from models.state import AddPeriod, DeleteRow, EditField, SyncWithFunnel, reduce
from models.validation_report import validate_snapshot
from store.debounce import DebouncedWriter
from store.gateway import InMemoryGateway
from store.sync import apply_effects, dispatch, load_snapshot, replace_all


class FailingGateway(InMemoryGateway):
    """Fails on the n-th upsert after being armed."""

    def __init__(self, fail_on: int):
        super().__init__()
        self.fail_on = fail_on
        self.armed = False
        self.upserts = 0

    def upsert(self, kind, record):
        if self.armed:
            self.upserts += 1
            if self.upserts == self.fail_on:
                raise GatewayError("backend unavailable")
        return super().upsert(kind, record)


class SlowGateway(InMemoryGateway):
    """Upserts take `delay` seconds; `upsert_started` is set when one begins."""

    def __init__(self, delay: float):
        super().__init__()
        self.delay = delay
        self.upsert_started = threading.Event()

    def upsert(self, kind, record):
        self.upsert_started.set()
        time.sleep(self.delay)
        return super().upsert(kind, record)


class TestLoadSnapshot:
    def test_first_load_seeds(self, memory_gateway):
        snapshot = load_snapshot(memory_gateway, "alice")
        assert len(snapshot.marketing_channels) == 4
        assert validate_snapshot(snapshot) == []

    def test_no_seed(self, memory_gateway):
        snapshot = load_snapshot(memory_gateway, "alice", seed=False)
        assert snapshot.marketing_channels == ()


class TestDispatch:
    """Tests for reduce-then-persist."""

    def test_store_matches_snapshot(self, memory_gateway):
        snapshot = load_snapshot(memory_gateway, "alice")
        inbound = snapshot.marketing_channels[0]
        result = dispatch(memory_gateway, snapshot,
                          EditField(MARKETING_CHANNELS, inbound.id, "cost_per_lead", "50"))
        assert load_snapshot(memory_gateway, "alice") == result.snapshot

    def test_delete_and_add_period(self, memory_gateway):
        snapshot = load_snapshot(memory_gateway, "alice")
        snapshot = dispatch(memory_gateway, snapshot,
                            DeleteRow(MARKETING_CHANNELS, snapshot.marketing_channels[0].id)).snapshot
        snapshot = dispatch(memory_gateway, snapshot, AddPeriod()).snapshot
        stored = load_snapshot(memory_gateway, "alice")
        assert stored == snapshot
        assert len(stored.funnel_conversions) == 3
        assert len(stored.active_subscribers) == 4

    def test_sync_with_funnel_persists(self, memory_gateway):
        snapshot = load_snapshot(memory_gateway, "alice")
        result = dispatch(memory_gateway, snapshot, SyncWithFunnel())
        stored = memory_gateway.list_by_owner(ACTIVE_SUBSCRIBERS, "alice")
        assert [p.new_deals for p in stored] == [84, 84, 84]
        assert tuple(stored) == result.snapshot.active_subscribers


class TestReplaceAll:
    def test_stale_rows_removed(self, memory_gateway):
        snapshot = load_snapshot(memory_gateway, "alice")
        keep = snapshot.funnel_conversions[:2]
        writes = replace_all(memory_gateway, "alice", FUNNEL_CONVERSIONS, keep)
        assert writes == 4
        assert memory_gateway.list_by_owner(FUNNEL_CONVERSIONS, "alice") == list(keep)

    def test_partial_failure_reports_committed(self):
        """A failure mid-way leaves earlier writes in place and says how many."""
        gateway = FailingGateway(fail_on=2)
        snapshot = load_snapshot(gateway, "alice")
        gateway.armed = True
        with pytest.raises(SyncError) as info:
            dispatch(gateway, snapshot, SyncWithFunnel())
        assert info.value.committed == 1
        assert info.value.total == 3
        stored = gateway.list_by_owner(ACTIVE_SUBSCRIBERS, "alice")
        assert stored[0].new_deals == 84
        assert stored[1].new_deals == 200


class TestDebouncedEffects:
    def test_upserts_queued_until_flush(self, memory_gateway):
        snapshot = load_snapshot(memory_gateway, "alice")
        writer = DebouncedWriter(delay=60)
        tier = snapshot.subscriptions[1]
        for price in ("9", "10", "11"):
            snapshot = dispatch(memory_gateway, snapshot,
                                EditField("subscriptions", tier.id, "monthly_price", price), writer).snapshot
        assert writer.pending == 1
        assert memory_gateway.list_by_owner("subscriptions", "alice")[1].monthly_price == 8
        assert writer.flush() == 1
        assert memory_gateway.list_by_owner("subscriptions", "alice")[1].monthly_price == 11
        writer.cancel()

    def test_other_effects_flush_first(self, memory_gateway):
        snapshot = load_snapshot(memory_gateway, "alice")
        writer = DebouncedWriter(delay=60)
        first = snapshot.active_subscribers[0]
        snapshot = dispatch(memory_gateway, snapshot,
                            EditField(ACTIVE_SUBSCRIBERS, first.id, "churned_subs", "5"), writer).snapshot
        assert writer.pending == 3
        result = reduce(snapshot, SyncWithFunnel())
        count = apply_effects(memory_gateway, "alice", result.effects, writer)
        assert writer.pending == 0
        assert count == 3
        stored = memory_gateway.list_by_owner(ACTIVE_SUBSCRIBERS, "alice")
        assert tuple(stored) == result.snapshot.active_subscribers
        writer.cancel()

    def test_delete_waits_for_running_upsert(self):
        """A delete issued while a debounced upsert is mid-write lands after it."""
        gateway = SlowGateway(delay=0.3)
        snapshot = load_snapshot(gateway, "alice")
        writer = DebouncedWriter(delay=0.01)
        tier = snapshot.subscriptions[1]

        snapshot = dispatch(gateway, snapshot,
                            EditField(SUBSCRIPTIONS, tier.id, "monthly_price", "9"), writer).snapshot
        assert gateway.upsert_started.wait(timeout=5)
        dispatch(gateway, snapshot, DeleteRow(SUBSCRIPTIONS, tier.id), writer)

        ids = [t.id for t in gateway.list_by_owner(SUBSCRIPTIONS, "alice")]
        assert tier.id not in ids
        assert writer.pop_failures() == []

    def test_reload_sees_running_upsert(self):
        gateway = SlowGateway(delay=0.3)
        snapshot = load_snapshot(gateway, "alice")
        writer = DebouncedWriter(delay=0.01)
        tier = snapshot.subscriptions[1]

        dispatch(gateway, snapshot, EditField(SUBSCRIPTIONS, tier.id, "monthly_price", "9"), writer)
        assert gateway.upsert_started.wait(timeout=5)
        writer.flush()
        assert load_snapshot(gateway, "alice").subscriptions[1].monthly_price == 9
