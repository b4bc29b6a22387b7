"""Redis-backed record store for the external activity domains.

The engine only reads through ``get_sphere_records`` / ``get_goal_tasks``.
The write helpers exist for seeding and tests; the production stores own
their data.
"""

from __future__ import annotations

from typing import Optional

import redis

from lifeindex.config.settings import REDIS_URL
from lifeindex.models.records import (
    Domain,
    RECORD_PREFIX,
    RECORD_TYPES,
    TaskRecord,
    goal_index_key,
    record_key,
    sphere_index_key,
)


def _get_redis() -> redis.Redis:
    return redis.Redis.from_url(REDIS_URL, decode_responses=True)


def store_record(record, r: redis.Redis | None = None) -> None:
    """Persist a record hash and update its sphere/goal index sets."""
    r = r or _get_redis()
    pipe = r.pipeline()
    pipe.hset(record.key(), mapping=record.to_dict())
    if record.sphere_id is not None:
        pipe.sadd(sphere_index_key(record.DOMAIN, record.user_id, record.sphere_id), record.record_id)
    if isinstance(record, TaskRecord) and record.goal_id:
        pipe.sadd(goal_index_key(record.user_id, record.goal_id), record.record_id)
    pipe.execute()


def get_record(domain: str, user_id: str, record_id: str, r: redis.Redis | None = None):
    """Load one record by ID, or None."""
    r = r or _get_redis()
    data = r.hgetall(record_key(domain, user_id, record_id))
    if not data:
        return None
    decoded = {k.decode() if isinstance(k, bytes) else k:
               v.decode() if isinstance(v, bytes) else v
               for k, v in data.items()}
    return RECORD_TYPES[domain].from_dict(decoded)


def remove_record(record, r: redis.Redis | None = None) -> None:
    r = r or _get_redis()
    r.delete(record.key())
    if record.sphere_id is not None:
        r.srem(sphere_index_key(record.DOMAIN, record.user_id, record.sphere_id), record.record_id)
    if isinstance(record, TaskRecord) and record.goal_id:
        r.srem(goal_index_key(record.user_id, record.goal_id), record.record_id)


def _load_many(domain: str, user_id: str, ids, r: redis.Redis) -> list:
    records = []
    for record_id in sorted(ids):
        record = get_record(domain, user_id, record_id, r)
        if record is not None:
            records.append(record)
    return records


def get_sphere_records(
    domain: str,
    user_id: str,
    sphere_id: int,
    r: redis.Redis | None = None,
) -> list:
    """All records of a domain linked to a sphere for one user."""
    if domain not in Domain.ALL:
        raise ValueError(f"Unknown domain: {domain}")
    r = r or _get_redis()
    ids = r.smembers(sphere_index_key(domain, user_id, sphere_id))
    return _load_many(domain, user_id, ids, r)


def get_goal_tasks(user_id: str, goal_id: str, r: redis.Redis | None = None) -> list[TaskRecord]:
    r = r or _get_redis()
    ids = r.smembers(goal_index_key(user_id, goal_id))
    return _load_many(Domain.TASKS, user_id, ids, r)


def clear_user_records(user_id: str, r: Optional[redis.Redis] = None) -> int:
    """Delete every record and index for a user. Returns keys removed."""
    r = r or _get_redis()
    removed = 0
    for domain in Domain.ALL:
        for key in r.scan_iter(f"{RECORD_PREFIX}{domain}:{user_id}:*"):
            removed += r.delete(key)
    return removed
