"""Shared test fixtures for the Life Index test suite."""

import pytest
import fakeredis
from datetime import date, datetime, timezone

from lifeindex.engine.record_store import store_record
from lifeindex.models.snapshot import LifeIndexSnapshot, SphereStats
from lifeindex.models.sphere import SphereKey, get_by_key


# ── Redis ────────────────────────────────────────────────────────────────

@pytest.fixture
def r():
    """Fresh fakeredis instance per test (decode_responses=True like production)."""
    return fakeredis.FakeRedis(decode_responses=True)


# ── Time Freezing ───────────────────────────────────────────────────────

@pytest.fixture
def frozen_now():
    """Fixed 'now' for deterministic collection: Wednesday 2026-02-18, noon UTC."""
    return datetime(2026, 2, 18, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def today(frozen_now):
    return frozen_now.date()


# ── Factories ───────────────────────────────────────────────────────────

@pytest.fixture
def sphere_id():
    """Resolve a sphere key to its id."""
    def _lookup(key: SphereKey) -> int:
        return get_by_key(key).id
    return _lookup


@pytest.fixture
def make_stats():
    """Factory fixture for SphereStats with every count at zero.

    Usage:
        stats = make_stats(completed_tasks=3, total_tasks=5)
    """
    def _factory(sphere: SphereKey = SphereKey.BODY, **overrides):
        return SphereStats(sphere_id=get_by_key(sphere).id, **overrides)
    return _factory


@pytest.fixture
def make_snapshot():
    def _factory(day: date, life_index: int = 50, user_id: str = "u1", **overrides):
        defaults = {
            "user_id": user_id,
            "recorded_at": day,
            "life_index": life_index,
            "personal_energy": life_index,
            "external_success": life_index,
            "mindfulness_level": 0,
            "sphere_indices": {k.value: life_index for k in SphereKey},
        }
        defaults.update(overrides)
        return LifeIndexSnapshot(**defaults)
    return _factory


@pytest.fixture
def seed(r):
    """Store a list of records into the fake Redis."""
    def _seed(*records):
        for record in records:
            store_record(record, r)
        return records
    return _seed
