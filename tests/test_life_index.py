"""Pipeline tests: collect -> calculate -> aggregate -> persist -> history."""

from datetime import timedelta
from unittest.mock import patch

import pytest
import redis

from lifeindex.engine import history_store
from lifeindex.engine.balance import Tilt
from lifeindex.engine.life_index import (
    calculate_sphere_index,
    fetch_life_index_data,
    fetch_sphere_stats,
    history_trend,
    query_history,
)
from lifeindex.engine.trend import Direction
from lifeindex.models.records import Habit, TaskRecord, TimeEntry
from lifeindex.models.sphere import SphereKey


def _active_body(user_id="u1"):
    """Scenario A: 10/10 habit-days this week, 5/5 tasks, 120 minutes.

    Ten Monday-only habits all done on Monday 2026-02-16, so the week is
    complete and no streak runs into Wednesday.
    """
    records = [
        Habit(habit_id=f"h{i}", user_id=user_id, sphere_id=1, target_days=[0],
              completed_dates=["2026-02-16"])
        for i in range(10)
    ]
    records.append(TimeEntry(entry_id="e1", user_id=user_id, sphere_id=1, duration=7200,
                             created_at="2026-02-01T09:00:00+00:00"))
    records += [
        TaskRecord(task_id=f"t{i}", user_id=user_id, sphere_id=1, completed=True)
        for i in range(5)
    ]
    return records


# ═══════════════════════════════════════════════════════════════════════════
# fetch_life_index_data
# ═══════════════════════════════════════════════════════════════════════════


class TestFetchLifeIndex:
    @pytest.mark.asyncio
    async def test_new_user_is_all_zero(self, r, frozen_now):
        data = await fetch_life_index_data("nobody", r, now=frozen_now)
        assert data.life_index == 0
        assert data.personal_energy == 0
        assert data.external_success == 0
        assert data.balance.tilt == Tilt.BALANCED
        assert len(data.sphere_indices) == 8
        assert all(s.index == 0 for s in data.sphere_indices)

    @pytest.mark.asyncio
    async def test_scenario_a_end_to_end(self, r, seed, frozen_now):
        seed(*_active_body())
        data = await fetch_life_index_data("u1", r, now=frozen_now)
        body = next(s for s in data.sphere_indices if s.sphere_key == "body")
        assert body.index == 65
        # Only one personal sphere is active
        assert data.personal_energy == 16   # 65 / 4 = 16.25
        assert data.external_success == 0
        assert data.life_index == 8         # 65 / 8 = 8.125
        assert data.balance.tilt == Tilt.PERSONAL

    @pytest.mark.asyncio
    async def test_persists_todays_snapshot(self, r, seed, frozen_now):
        seed(*_active_body())
        data = await fetch_life_index_data("u1", r, now=frozen_now)
        assert data.persisted is True
        rows = history_store.query("u1", r=r)
        assert len(rows) == 1
        assert rows[0].recorded_at == frozen_now.date()
        assert rows[0].life_index == data.life_index
        assert rows[0].sphere_indices["body"] == 65

    @pytest.mark.asyncio
    async def test_same_day_recompute_overwrites(self, r, seed, frozen_now):
        await fetch_life_index_data("u1", r, now=frozen_now)
        seed(*_active_body())
        await fetch_life_index_data("u1", r, now=frozen_now + timedelta(hours=3))
        rows = history_store.query("u1", r=r)
        assert len(rows) == 1
        assert rows[0].sphere_indices["body"] == 65

    @pytest.mark.asyncio
    async def test_persist_disabled(self, r, frozen_now):
        data = await fetch_life_index_data("u1", r, now=frozen_now, persist=False)
        assert data.persisted is False
        assert history_store.query("u1", r=r) == []

    @pytest.mark.asyncio
    async def test_save_failure_still_returns_result(self, r, seed, frozen_now):
        seed(*_active_body())
        with patch.object(history_store, "save", return_value=False):
            data = await fetch_life_index_data("u1", r, now=frozen_now)
        assert data.persisted is False
        assert data.life_index == 8

    @pytest.mark.asyncio
    async def test_balance_status_failure_is_not_fatal(self, r, frozen_now):
        with patch("lifeindex.engine.life_index.calculate", return_value=40), \
                patch.object(history_store, "last_balance_level", side_effect=redis.ConnectionError("down")):
            data = await fetch_life_index_data("u1", r, now=frozen_now)
        assert data.persisted is True

    @pytest.mark.asyncio
    async def test_to_dict_shape(self, r, frozen_now):
        data = await fetch_life_index_data("u1", r, now=frozen_now, persist=False)
        d = data.to_dict()
        assert d["user_id"] == "u1"
        assert d["recorded_at"] == "2026-02-18"
        assert {"life_index", "personal_energy", "external_success", "mindfulness_level", "tilt"} <= set(d)
        assert d["degraded_domains"] == {}
        assert len(d["sphere_indices"]) == 8


class TestBalanceStatusTracking:
    @pytest.mark.asyncio
    async def test_records_level_once_all_spheres_clear_minimum(self, r, frozen_now):
        with patch("lifeindex.engine.life_index.calculate", return_value=40):
            await fetch_life_index_data("u1", r, now=frozen_now)
            await fetch_life_index_data("u1", r, now=frozen_now + timedelta(days=1))
        history = history_store.balance_status_history("u1", r=r)
        assert [e.level for e in history] == ["topFocus"]
        assert history[0].all_spheres_above_minimum

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["[]", "null", "{broken"])
    async def test_corrupt_status_log_does_not_block_result(self, r, frozen_now, raw):
        r.lpush(history_store.balance_status_key("u1"), raw)
        with patch("lifeindex.engine.life_index.calculate", return_value=40):
            data = await fetch_life_index_data("u1", r, now=frozen_now)
        assert data.life_index == 40
        assert data.persisted is True
        assert [e.level for e in history_store.balance_status_history("u1", r=r)] == ["topFocus"]

    @pytest.mark.asyncio
    async def test_status_tracking_error_is_logged_not_raised(self, r, frozen_now, caplog):
        with patch("lifeindex.engine.life_index.calculate", return_value=40), \
                patch.object(history_store, "last_balance_level", side_effect=AttributeError("bad row")):
            data = await fetch_life_index_data("u1", r, now=frozen_now)
        assert data.persisted is True
        assert "bad row" in caplog.text

    @pytest.mark.asyncio
    async def test_no_status_entry_without_saved_snapshot(self, r, frozen_now):
        with patch("lifeindex.engine.life_index.calculate", return_value=40), \
                patch.object(history_store, "save", return_value=False):
            data = await fetch_life_index_data("u1", r, now=frozen_now)
        assert data.persisted is False
        assert history_store.balance_status_history("u1", r=r) == []

    @pytest.mark.asyncio
    async def test_nothing_recorded_below_minimum(self, r, frozen_now):
        await fetch_life_index_data("u1", r, now=frozen_now)
        assert history_store.balance_status_history("u1", r=r) == []


class TestSingleSphere:
    @pytest.mark.asyncio
    async def test_fetch_and_calculate(self, r, seed, frozen_now):
        seed(*_active_body())
        stats = await fetch_sphere_stats("u1", 1, r, now=frozen_now)
        assert stats.completed_tasks == 5
        assert stats.habit_expected == 10
        assert stats.habit_completed == 10
        assert stats.time_minutes == 120
        assert calculate_sphere_index(stats) == 65


# ═══════════════════════════════════════════════════════════════════════════
# History
# ═══════════════════════════════════════════════════════════════════════════


class TestHistory:
    def test_month_returns_daily_points(self, r, make_snapshot, today):
        for offset, value in enumerate([60, 50, 40, 30, 20, 10]):
            history_store.save(make_snapshot(today - timedelta(days=offset), value), r)
        points = query_history("u1", "month", r=r, today=today)
        assert [p.value for p in points] == [10, 20, 30, 40, 50, 60]
        assert history_trend("u1", "month", r=r, today=today).direction == Direction.UP

    def test_year_returns_monthly_points(self, r, make_snapshot, today):
        history_store.save(make_snapshot(today - timedelta(days=40), 30), r)
        history_store.save(make_snapshot(today, 70), r)
        points = query_history("u1", "year", r=r, today=today)
        assert [p.value for p in points] == [30, 70]

    def test_sphere_field(self, r, make_snapshot, today):
        history_store.save(make_snapshot(today, 50, sphere_indices={k.value: 5 for k in SphereKey}), r)
        assert [p.value for p in query_history("u1", field_name="spirit", r=r, today=today)] == [5]

    def test_invalid_period(self, r):
        with pytest.raises(ValueError, match="period"):
            query_history("u1", "decade", r=r)

    def test_no_history_is_flat(self, r, today):
        assert query_history("u1", r=r, today=today) == []
        assert history_trend("u1", r=r, today=today).direction == Direction.FLAT

    def test_redis_failure_returns_empty(self, r, today):
        with patch.object(r, "hgetall", side_effect=redis.ConnectionError("down")):
            assert query_history("u1", r=r, today=today) == []
