"""Seed Redis with a demo user's activity and a back-filled history.

Run: python -m lifeindex.scripts.seed_demo
"""

from __future__ import annotations

import asyncio
import logging
import random
from datetime import date, datetime, timedelta, timezone

import redis

from lifeindex.config.settings import LOG_LEVEL, REDIS_URL
from lifeindex.engine import history_store
from lifeindex.engine.index_calculator import round_half_up
from lifeindex.engine.life_index import fetch_life_index_data
from lifeindex.engine.record_store import clear_user_records, store_record
from lifeindex.models.records import (
    ContactLink,
    Goal,
    GoalStatus,
    Habit,
    TaskRecord,
    TimeEntry,
    Transaction,
    TransactionType,
)
from lifeindex.models.snapshot import LifeIndexSnapshot
from lifeindex.models.sphere import SphereKey, get_by_key, list_spheres

log = logging.getLogger("seed_demo")

DEMO_USER = "demo-user"
HISTORY_DAYS = 60


def _days_back(today: date, n: int) -> list[str]:
    return [(today - timedelta(days=i)).isoformat() for i in range(n)]


def seed_records(r: redis.Redis, user_id: str = DEMO_USER, today: date | None = None) -> int:
    """Write a plausible spread of records across all spheres. Returns count."""
    today = today or date.today()
    now = datetime.now(timezone.utc)
    body = get_by_key(SphereKey.BODY).id
    mind = get_by_key(SphereKey.MIND).id
    spirit = get_by_key(SphereKey.SPIRIT).id
    leisure = get_by_key(SphereKey.LEISURE).id
    work = get_by_key(SphereKey.WORK).id
    finance = get_by_key(SphereKey.FINANCE).id
    family = get_by_key(SphereKey.FAMILY).id
    friends = get_by_key(SphereKey.FRIENDS).id

    records = [
        # Goals
        Goal("g-run", user_id, "Run a half marathon", sphere_id=body),
        Goal("g-read", user_id, "Read 12 books", sphere_id=mind),
        Goal("g-promo", user_id, "Ship the Q3 roadmap", sphere_id=work),
        Goal("g-cushion", user_id, "Three-month savings cushion", sphere_id=finance,
             status=GoalStatus.COMPLETED),
        # Tasks
        TaskRecord("t-shoes", user_id, "Buy running shoes", goal_id="g-run", completed=True),
        TaskRecord("t-plan", user_id, "Pick a training plan", goal_id="g-run", completed=True),
        TaskRecord("t-long", user_id, "Long run Sunday", goal_id="g-run"),
        TaskRecord("t-book", user_id, "Finish current book", goal_id="g-read", completed=True),
        TaskRecord("t-doc", user_id, "Write design doc", goal_id="g-promo", completed=True),
        TaskRecord("t-review", user_id, "Review PRs", goal_id="g-promo", completed=True),
        TaskRecord("t-demo", user_id, "Prepare demo", goal_id="g-promo"),
        TaskRecord("t-call", user_id, "Call parents", sphere_id=family, completed=True),
        TaskRecord("t-trip", user_id, "Plan weekend trip", sphere_id=friends,
                   postponed_until=(today + timedelta(days=14)).isoformat()),
        # Habits
        Habit("h-stretch", user_id, "Morning stretch", sphere_id=body,
              completed_dates=_days_back(today, 9)),
        Habit("h-meditate", user_id, "Meditate 10 min", sphere_id=spirit,
              completed_dates=_days_back(today, 5)),
        Habit("h-journal", user_id, "Evening journal", sphere_id=spirit,
              completed_dates=_days_back(today, 2), target_days=[0, 2, 4]),
        Habit("h-guitar", user_id, "Guitar practice", sphere_id=leisure,
              completed_dates=_days_back(today, 3), target_days=[1, 3, 5]),
        # Time entries (seconds)
        TimeEntry("te-1", user_id, sphere_id=work, duration=4 * 3600, created_at=now.isoformat()),
        TimeEntry("te-2", user_id, sphere_id=mind, duration=45 * 60, created_at=now.isoformat()),
        TimeEntry("te-3", user_id, sphere_id=body, duration=60 * 60,
                  created_at=(now - timedelta(days=1)).isoformat()),
        TimeEntry("te-4", user_id, sphere_id=leisure, duration=90 * 60,
                  created_at=(now - timedelta(days=5)).isoformat()),
        # Transactions
        Transaction("tx-salary", user_id, sphere_id=work, amount=3200, type=TransactionType.INCOME,
                    created_at=now.isoformat()),
        Transaction("tx-rent", user_id, sphere_id=finance, amount=1200, type=TransactionType.EXPENSE),
        Transaction("tx-interest", user_id, sphere_id=finance, amount=40, type=TransactionType.INCOME),
        Transaction("tx-dinner", user_id, sphere_id=friends, amount=60, type=TransactionType.EXPENSE),
        # Contacts
        ContactLink("cl-1", user_id, contact_id="c-mom", sphere_id=family),
        ContactLink("cl-2", user_id, contact_id="c-dad", sphere_id=family),
        ContactLink("cl-3", user_id, contact_id="c-alex", sphere_id=friends),
        ContactLink("cl-4", user_id, contact_id="c-sam", sphere_id=friends),
        ContactLink("cl-5", user_id, contact_id="c-lead", sphere_id=work),
    ]
    for record in records:
        store_record(record, r)
    return len(records)


def seed_history(r: redis.Redis, user_id: str = DEMO_USER, today: date | None = None,
                 days: int = HISTORY_DAYS, seed: int = 7) -> int:
    """Back-fill synthetic daily snapshots with a gentle upward drift."""
    today = today or date.today()
    rng = random.Random(seed)
    keys = [s.key.value for s in list_spheres()]
    saved = 0
    for offset in range(days, 0, -1):
        day = today - timedelta(days=offset)
        drift = (days - offset) * 0.3
        indices = {k: max(0, min(100, int(30 + drift + rng.randint(-8, 8)))) for k in keys}
        personal = round_half_up(sum(indices[k] for k in keys[:4]) / 4)
        social = round_half_up(sum(indices[k] for k in keys[4:]) / 4)
        snapshot = LifeIndexSnapshot(
            user_id=user_id,
            recorded_at=day,
            life_index=round_half_up(sum(indices.values()) / len(indices)),
            personal_energy=personal,
            external_success=social,
            mindfulness_level=indices[SphereKey.SPIRIT.value],
            sphere_indices=indices,
        )
        if history_store.save(snapshot, r):
            saved += 1
    return saved


def seed():
    r = redis.Redis.from_url(REDIS_URL, decode_responses=True)
    clear_user_records(DEMO_USER, r)
    r.delete(history_store.history_key(DEMO_USER), history_store.balance_status_key(DEMO_USER))

    count = seed_records(r)
    log.info("Seeded %d records for %s", count, DEMO_USER)
    days = seed_history(r)
    log.info("Back-filled %d days of history", days)

    data = asyncio.run(fetch_life_index_data(DEMO_USER, r=r))
    log.info(
        "Today: life=%d personal=%d social=%d mindfulness=%d tilt=%s",
        data.life_index, data.personal_energy, data.external_success,
        data.mindfulness_level, data.balance.tilt.value,
    )
    for s in data.sphere_indices:
        log.info("  %-8s %3d", s.sphere_key, s.index)


if __name__ == "__main__":
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
    )
    seed()
