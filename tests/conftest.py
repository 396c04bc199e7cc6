# =============================================================================
# SAAS FINMODEL - PYTEST CONFIGURATION
# =============================================================================
# Shared fixtures and configuration for all tests.
# =============================================================================

import pytest
import sys
import os
from itertools import count
from pathlib import Path

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


class SequentialIds:
    """Deterministic stand-in for uuid-based record ids."""

    def __init__(self, prefix: str = "id"):
        self.prefix = prefix
        self._counter = count(1)

    def __call__(self) -> str:
        return f"{self.prefix}{next(self._counter):04d}"


@pytest.fixture
def project_root():
    """Get project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def owner_id():
    return "owner-1"


@pytest.fixture
def id_factory():
    return SequentialIds()


@pytest.fixture
def default_records(owner_id, id_factory):
    """Default seed model, keyed by entity kind."""
    from models.defaults import build_default_records
    return build_default_records(owner_id, id_factory)


@pytest.fixture
def snapshot(owner_id, default_records):
    """Snapshot of the default seed model."""
    from models.state import ModelSnapshot
    return ModelSnapshot.from_records(owner_id, default_records)


@pytest.fixture
def memory_gateway():
    from store.gateway import InMemoryGateway
    return InMemoryGateway(SequentialIds("seed"))


@pytest.fixture
def yaml_gateway(tmp_path):
    from store.yaml_gateway import YamlFileGateway
    return YamlFileGateway(tmp_path / "data", SequentialIds("seed"))


@pytest.fixture
def sample_periods(owner_id):
    """Three-month roll-forward: ending 100, 290, 575."""
    from models.subscribers import ActiveSubscriberPeriod, cascade
    periods = [
        ActiveSubscriberPeriod(id="p0", owner_id=owner_id, position=0, month="March",
                               existing_subs=0, new_deals=100, churned_subs=0),
        ActiveSubscriberPeriod(id="p1", owner_id=owner_id, position=1, month="April",
                               existing_subs=100, new_deals=200, churned_subs=10),
        ActiveSubscriberPeriod(id="p2", owner_id=owner_id, position=2, month="May",
                               existing_subs=290, new_deals=300, churned_subs=15),
    ]
    return cascade(periods, 0)
