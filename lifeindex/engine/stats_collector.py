"""Stats Collector — gathers raw per-sphere activity from the record stores.

For one (user, sphere) pair six domain queries run concurrently:

  goals, tasks, habits, time_entries, transactions, contacts

Each query runs in a worker thread under its own timeout. A query that
fails or times out contributes zeros and is listed in
``SphereStats.degraded_domains``; the others are unaffected.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional

import redis

from lifeindex.config.settings import DOMAIN_QUERY_TIMEOUT, RECENT_ACTIVITY_HOURS, REDIS_URL
from lifeindex.engine.record_store import get_goal_tasks, get_sphere_records
from lifeindex.models.records import Domain, GoalStatus, TransactionType
from lifeindex.models.snapshot import SphereStats
from lifeindex.models.sphere import get_by_id

logger = logging.getLogger(__name__)

ALL_WEEKDAYS = list(range(7))


def _get_redis() -> redis.Redis:
    return redis.Redis.from_url(REDIS_URL, decode_responses=True)


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        ts = datetime.fromisoformat(value)
    except (ValueError, TypeError):
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def _parse_day(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except (ValueError, TypeError):
        return None


def _is_postponed(postponed_until: Optional[str], today: date) -> bool:
    day = _parse_day(postponed_until)
    return day is not None and day > today


# ── Domain queries (sync, run in worker threads) ────────────────────────


def query_goals(user_id: str, sphere_id: int, r: redis.Redis, today: date, now: datetime) -> dict:
    goals = [g for g in get_sphere_records(Domain.GOALS, user_id, sphere_id, r) if not g.archived_at]
    return {
        "active_goals": sum(1 for g in goals if g.status == GoalStatus.ACTIVE),
        "completed_goals": sum(1 for g in goals if g.status == GoalStatus.COMPLETED),
    }


def query_tasks(user_id: str, sphere_id: int, r: redis.Redis, today: date, now: datetime) -> dict:
    """Tasks of the sphere's goals plus goal-less tasks assigned to the sphere."""
    tasks = {}
    for goal in get_sphere_records(Domain.GOALS, user_id, sphere_id, r):
        if goal.archived_at:
            continue
        for task in get_goal_tasks(user_id, goal.goal_id, r):
            tasks[task.task_id] = task
    for task in get_sphere_records(Domain.TASKS, user_id, sphere_id, r):
        if task.goal_id is None:
            tasks[task.task_id] = task

    relevant = [
        t for t in tasks.values()
        if not t.archived_at and not _is_postponed(t.postponed_until, today)
    ]
    return {
        "total_tasks": len(relevant),
        "completed_tasks": sum(1 for t in relevant if t.completed),
    }


def _current_streak(completed: set[date], today: date) -> int:
    """Consecutive completed days ending today, or yesterday if today is still open."""
    day = today if today in completed else today - timedelta(days=1)
    streak = 0
    while day in completed:
        streak += 1
        day -= timedelta(days=1)
    return streak


def query_habits(user_id: str, sphere_id: int, r: redis.Redis, today: date, now: datetime) -> dict:
    habits = [h for h in get_sphere_records(Domain.HABITS, user_id, sphere_id, r) if not h.archived_at]
    week_start = today - timedelta(days=today.weekday())  # Monday
    week_end = week_start + timedelta(days=6)

    expected = 0
    done = 0
    streak = 0
    for habit in habits:
        target = len(habit.target_days or ALL_WEEKDAYS)
        completed = {d for d in (_parse_day(s) for s in habit.completed_dates) if d is not None}
        weekly = sum(1 for d in completed if week_start <= d <= week_end)
        expected += target
        done += min(weekly, target)
        streak = max(streak, _current_streak(completed, today))

    return {
        "total_habits": len(habits),
        "habit_expected": expected,
        "habit_completed": done,
        "habit_streak": streak,
    }


def _is_recent(created_at: Optional[str], now: datetime) -> bool:
    ts = _parse_ts(created_at)
    return ts is not None and ts >= now - timedelta(hours=RECENT_ACTIVITY_HOURS)


def query_time_entries(user_id: str, sphere_id: int, r: redis.Redis, today: date, now: datetime) -> dict:
    entries = get_sphere_records(Domain.TIME_ENTRIES, user_id, sphere_id, r)
    seconds = sum(max(e.duration or 0, 0) for e in entries)
    return {
        "time_minutes": round(seconds / 60),
        "has_recent_activity": any(_is_recent(e.created_at, now) for e in entries),
    }


def query_transactions(user_id: str, sphere_id: int, r: redis.Redis, today: date, now: datetime) -> dict:
    txs = get_sphere_records(Domain.TRANSACTIONS, user_id, sphere_id, r)
    return {
        "total_income": sum(abs(t.amount) for t in txs if t.type == TransactionType.INCOME),
        "total_expense": sum(abs(t.amount) for t in txs if t.type == TransactionType.EXPENSE),
        "has_recent_activity": any(_is_recent(t.created_at, now) for t in txs),
    }


def query_contacts(user_id: str, sphere_id: int, r: redis.Redis, today: date, now: datetime) -> dict:
    links = get_sphere_records(Domain.CONTACTS, user_id, sphere_id, r)
    return {"contacts": len({link.contact_id or link.link_id for link in links})}


DOMAIN_QUERIES: dict[str, Callable[..., dict]] = {
    Domain.GOALS: query_goals,
    Domain.TASKS: query_tasks,
    Domain.HABITS: query_habits,
    Domain.TIME_ENTRIES: query_time_entries,
    Domain.TRANSACTIONS: query_transactions,
    Domain.CONTACTS: query_contacts,
}


# ── Fan-out ─────────────────────────────────────────────────────────────


async def _run_domain(
    name: str,
    query: Callable[..., dict],
    user_id: str,
    sphere_id: int,
    r: redis.Redis,
    today: date,
    now: datetime,
    timeout: float,
) -> tuple[str, Optional[dict]]:
    try:
        result = await asyncio.wait_for(
            asyncio.to_thread(query, user_id, sphere_id, r, today, now),
            timeout=timeout,
        )
        return name, result
    except asyncio.TimeoutError:
        logger.warning("Stats query %s timed out for sphere %s (%.1fs)", name, sphere_id, timeout)
    except Exception as exc:
        logger.warning("Stats query %s failed for sphere %s: %s", name, sphere_id, exc)
    return name, None


async def collect(
    user_id: str,
    sphere_id: int,
    r: redis.Redis | None = None,
    today: date | None = None,
    now: datetime | None = None,
    timeout: float = DOMAIN_QUERY_TIMEOUT,
    queries: dict[str, Callable[..., dict]] | None = None,
) -> SphereStats:
    """Collect a complete SphereStats for one sphere.

    Raises SphereNotFound for an unknown sphere id. Domain failures never
    raise; they degrade to zero contributions.
    """
    get_by_id(sphere_id)
    r = r or _get_redis()
    now = now or datetime.now(timezone.utc)
    today = today or now.date()
    if queries is None:
        queries = DOMAIN_QUERIES

    results = await asyncio.gather(*(
        _run_domain(name, query, user_id, sphere_id, r, today, now, timeout)
        for name, query in queries.items()
    ))

    stats = SphereStats(sphere_id=sphere_id)
    for name, partial in results:
        if partial is None:
            stats.degraded_domains.append(name)
            continue
        for key, value in partial.items():
            if key == "has_recent_activity":
                stats.has_recent_activity = stats.has_recent_activity or bool(value)
            else:
                setattr(stats, key, value)

    if stats.degraded_domains:
        logger.info(
            f"Sphere {sphere_id} stats degraded for user {user_id}: "
            f"{', '.join(stats.degraded_domains)}"
        )
    return stats
