"""Tests for the Stats Collector: domain queries and concurrent fan-out."""

import asyncio
import time
from datetime import timedelta
from typing import get_type_hints

import pytest

from lifeindex.engine import stats_collector
from lifeindex.engine.stats_collector import DOMAIN_QUERIES, collect
from lifeindex.models.records import (
    ContactLink,
    Domain,
    Goal,
    GoalStatus,
    Habit,
    TaskRecord,
    TimeEntry,
    Transaction,
    TransactionType,
)
from lifeindex.models.snapshot import SphereStats
from lifeindex.models.sphere import SphereNotFound


BODY = 1
FINANCE = 6
FRIENDS = 8


# ═══════════════════════════════════════════════════════════════════════════
# Goals and tasks
# ═══════════════════════════════════════════════════════════════════════════


class TestGoalsAndTasks:
    @pytest.mark.asyncio
    async def test_goal_counts_skip_archived(self, r, seed, frozen_now):
        seed(
            Goal(goal_id="g1", user_id="u1", sphere_id=BODY),
            Goal(goal_id="g2", user_id="u1", sphere_id=BODY, status=GoalStatus.COMPLETED),
            Goal(goal_id="g3", user_id="u1", sphere_id=BODY, status=GoalStatus.PAUSED),
            Goal(goal_id="g4", user_id="u1", sphere_id=BODY, archived_at="2026-01-01T00:00:00+00:00"),
        )
        stats = await collect("u1", BODY, r, now=frozen_now)
        assert stats.active_goals == 1
        assert stats.completed_goals == 1

    @pytest.mark.asyncio
    async def test_tasks_via_goal_and_direct(self, r, seed, frozen_now):
        seed(
            Goal(goal_id="g1", user_id="u1", sphere_id=BODY),
            TaskRecord(task_id="t1", user_id="u1", goal_id="g1", completed=True),
            TaskRecord(task_id="t2", user_id="u1", goal_id="g1"),
            TaskRecord(task_id="t3", user_id="u1", sphere_id=BODY, completed=True),
        )
        stats = await collect("u1", BODY, r, now=frozen_now)
        assert stats.total_tasks == 3
        assert stats.completed_tasks == 2

    @pytest.mark.asyncio
    async def test_task_with_goal_not_double_counted(self, r, seed, frozen_now):
        seed(
            Goal(goal_id="g1", user_id="u1", sphere_id=BODY),
            TaskRecord(task_id="t1", user_id="u1", goal_id="g1", sphere_id=BODY),
        )
        stats = await collect("u1", BODY, r, now=frozen_now)
        assert stats.total_tasks == 1

    @pytest.mark.asyncio
    async def test_archived_goal_hides_its_tasks(self, r, seed, frozen_now):
        seed(
            Goal(goal_id="g1", user_id="u1", sphere_id=BODY, archived_at="2026-02-01T00:00:00"),
            TaskRecord(task_id="t1", user_id="u1", goal_id="g1", completed=True),
        )
        stats = await collect("u1", BODY, r, now=frozen_now)
        assert stats.total_tasks == 0

    @pytest.mark.asyncio
    async def test_archived_and_postponed_tasks_excluded(self, r, seed, frozen_now):
        seed(
            TaskRecord(task_id="t1", user_id="u1", sphere_id=BODY),
            TaskRecord(task_id="t2", user_id="u1", sphere_id=BODY, archived_at="2026-02-10T08:00:00"),
            TaskRecord(task_id="t3", user_id="u1", sphere_id=BODY, postponed_until="2026-02-25"),
            TaskRecord(task_id="t4", user_id="u1", sphere_id=BODY, postponed_until="2026-02-18"),
        )
        stats = await collect("u1", BODY, r, now=frozen_now)
        assert stats.total_tasks == 2   # t1 and t4 (postponed to today counts)


# ═══════════════════════════════════════════════════════════════════════════
# Habits
# ═══════════════════════════════════════════════════════════════════════════


class TestHabits:
    @pytest.mark.asyncio
    async def test_weekly_completion_and_streak(self, r, seed, frozen_now):
        # frozen_now is Wednesday; the week started Monday 2026-02-16
        seed(Habit(
            habit_id="h1", user_id="u1", sphere_id=BODY,
            completed_dates=["2026-02-13", "2026-02-14", "2026-02-15", "2026-02-16", "2026-02-17"],
        ))
        stats = await collect("u1", BODY, r, now=frozen_now)
        assert stats.total_habits == 1
        assert stats.habit_expected == 7
        assert stats.habit_completed == 2
        assert stats.habit_streak == 5    # today still open, counted from yesterday

    @pytest.mark.asyncio
    async def test_target_days_cap(self, r, seed, frozen_now):
        seed(Habit(
            habit_id="h1", user_id="u1", sphere_id=BODY, target_days=[0, 2],
            completed_dates=["2026-02-16", "2026-02-17", "2026-02-18"],
        ))
        stats = await collect("u1", BODY, r, now=frozen_now)
        assert stats.habit_expected == 2
        assert stats.habit_completed == 2
        assert stats.habit_completion_rate == 100.0

    @pytest.mark.asyncio
    async def test_broken_streak(self, r, seed, frozen_now):
        seed(Habit(
            habit_id="h1", user_id="u1", sphere_id=BODY,
            completed_dates=["2026-02-14", "2026-02-15", "2026-02-18"],
        ))
        stats = await collect("u1", BODY, r, now=frozen_now)
        assert stats.habit_streak == 1

    @pytest.mark.asyncio
    async def test_archived_habit_ignored(self, r, seed, frozen_now):
        seed(Habit(habit_id="h1", user_id="u1", sphere_id=BODY,
                   completed_dates=["2026-02-18"], archived_at="2026-02-17T00:00:00"))
        stats = await collect("u1", BODY, r, now=frozen_now)
        assert stats.total_habits == 0
        assert stats.habit_expected == 0


# ═══════════════════════════════════════════════════════════════════════════
# Time, money, contacts, activity
# ═══════════════════════════════════════════════════════════════════════════


class TestOtherDomains:
    @pytest.mark.asyncio
    async def test_time_entries_in_minutes(self, r, seed, frozen_now):
        old = (frozen_now - timedelta(days=10)).isoformat()
        seed(
            TimeEntry(entry_id="e1", user_id="u1", sphere_id=BODY, duration=3600, created_at=old),
            TimeEntry(entry_id="e2", user_id="u1", sphere_id=BODY, duration=1850, created_at=old),
        )
        stats = await collect("u1", BODY, r, now=frozen_now)
        assert stats.time_minutes == 91   # 5450s ~ 90.8 min
        assert stats.has_recent_activity is False

    @pytest.mark.asyncio
    async def test_recent_activity(self, r, seed, frozen_now):
        recent = (frozen_now - timedelta(hours=3)).isoformat()
        seed(TimeEntry(entry_id="e1", user_id="u1", sphere_id=BODY, duration=60, created_at=recent))
        stats = await collect("u1", BODY, r, now=frozen_now)
        assert stats.has_recent_activity is True

    @pytest.mark.asyncio
    async def test_transactions(self, r, seed, frozen_now):
        old = (frozen_now - timedelta(days=5)).isoformat()
        seed(
            Transaction(transaction_id="x1", user_id="u1", sphere_id=FINANCE, amount=1200,
                        type=TransactionType.INCOME, created_at=old),
            Transaction(transaction_id="x2", user_id="u1", sphere_id=FINANCE, amount=300,
                        type=TransactionType.EXPENSE, created_at=old),
        )
        stats = await collect("u1", FINANCE, r, now=frozen_now)
        assert stats.total_income == 1200
        assert stats.total_expense == 300
        assert stats.net_flow == 900

    @pytest.mark.asyncio
    async def test_distinct_contacts(self, r, seed, frozen_now):
        seed(
            ContactLink(link_id="l1", user_id="u1", contact_id="c1", sphere_id=FRIENDS),
            ContactLink(link_id="l2", user_id="u1", contact_id="c1", sphere_id=FRIENDS),
            ContactLink(link_id="l3", user_id="u1", contact_id="c2", sphere_id=FRIENDS),
        )
        stats = await collect("u1", FRIENDS, r, now=frozen_now)
        assert stats.contacts == 2

    @pytest.mark.asyncio
    async def test_empty_sphere_is_all_zero(self, r, frozen_now):
        stats = await collect("u1", BODY, r, now=frozen_now)
        assert stats.is_empty
        assert stats.degraded_domains == []


# ═══════════════════════════════════════════════════════════════════════════
# Fan-out and degradation
# ═══════════════════════════════════════════════════════════════════════════


class TestFanOut:
    @pytest.mark.asyncio
    async def test_unknown_sphere_raises(self, r):
        with pytest.raises(SphereNotFound):
            await collect("u1", 99, r)

    @pytest.mark.asyncio
    async def test_failing_domain_degrades_to_zero(self, r, seed, frozen_now):
        seed(TaskRecord(task_id="t1", user_id="u1", sphere_id=BODY, completed=True))

        def broken(*args):
            raise RuntimeError("habit store down")

        queries = {**DOMAIN_QUERIES, Domain.HABITS: broken}
        stats = await collect("u1", BODY, r, now=frozen_now, queries=queries)
        assert stats.degraded_domains == [Domain.HABITS]
        assert stats.habit_expected == 0
        assert stats.completed_tasks == 1

    @pytest.mark.asyncio
    async def test_empty_query_set_runs_nothing(self, r, seed, frozen_now):
        seed(TaskRecord(task_id="t1", user_id="u1", sphere_id=BODY, completed=True))
        stats = await collect("u1", BODY, r, now=frozen_now, queries={})
        assert stats.completed_tasks == 0
        assert stats.is_empty
        assert stats.degraded_domains == []

    @pytest.mark.asyncio
    async def test_degraded_domains_are_names(self, r, frozen_now):
        def broken(*args):
            raise RuntimeError("down")

        stats = await collect("u1", BODY, r, now=frozen_now, queries={Domain.GOALS: broken})
        assert stats.degraded_domains == ["goals"]
        assert get_type_hints(SphereStats)["degraded_domains"] == list[str]

    @pytest.mark.asyncio
    async def test_slow_domain_times_out(self, r, frozen_now):
        def slow(*args):
            time.sleep(0.5)
            return {"time_minutes": 999}

        queries = {**DOMAIN_QUERIES, Domain.TIME_ENTRIES: slow}
        stats = await collect("u1", BODY, r, now=frozen_now, timeout=0.05, queries=queries)
        assert Domain.TIME_ENTRIES in stats.degraded_domains
        assert stats.time_minutes == 0

    @pytest.mark.asyncio
    async def test_queries_run_concurrently(self, r, frozen_now):
        def sleepy(*args):
            time.sleep(0.2)
            return {}

        queries = {name: sleepy for name in DOMAIN_QUERIES}
        loop = asyncio.get_running_loop()
        started = loop.time()
        stats = await collect("u1", BODY, r, now=frozen_now, queries=queries)
        assert loop.time() - started < 0.2 * len(queries)
        assert stats.degraded_domains == []

    @pytest.mark.asyncio
    async def test_degradation_is_logged(self, r, frozen_now, caplog):
        def broken(*args):
            raise RuntimeError("boom")

        with caplog.at_level("WARNING", logger=stats_collector.__name__):
            await collect("u1", BODY, r, now=frozen_now, queries={Domain.GOALS: broken})
        assert "boom" in caplog.text
