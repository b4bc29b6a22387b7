"""History Store — one Life Index snapshot per user per day, in Redis.

Layout:
  lifeindex:history:{user_id}         hash   ISO date -> snapshot JSON
  lifeindex:balance_status:{user_id}  list   newest-first spread-level changes

A single HSET per save gives an atomic upsert keyed by (user, day):
a same-day recomputation overwrites, never appends.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, timedelta
from typing import Optional

import redis

from lifeindex.config.settings import (
    BALANCE_STATUS_MAX_ENTRIES,
    BALANCE_STATUS_PREFIX,
    HISTORY_MONTH_DAYS,
    HISTORY_PREFIX,
    HISTORY_YEAR_MONTHS,
    REDIS_URL,
)
from lifeindex.engine.index_calculator import round_half_up
from lifeindex.models.snapshot import BalanceStatusEntry, HistoryPoint, LifeIndexSnapshot
from lifeindex.models.sphere import SphereKey

logger = logging.getLogger(__name__)

SCALAR_FIELDS = ("life_index", "personal_energy", "external_success", "mindfulness_level")
SPHERE_FIELDS = tuple(k.value for k in SphereKey)


def _get_redis() -> redis.Redis:
    return redis.Redis.from_url(REDIS_URL, decode_responses=True)


def history_key(user_id: str) -> str:
    return f"{HISTORY_PREFIX}{user_id}"


def balance_status_key(user_id: str) -> str:
    return f"{BALANCE_STATUS_PREFIX}{user_id}"


def save(snapshot: LifeIndexSnapshot, r: redis.Redis | None = None) -> bool:
    """Upsert the snapshot for (user_id, recorded_at). Returns False on failure."""
    r = r or _get_redis()
    try:
        r.hset(history_key(snapshot.user_id), snapshot.recorded_at.isoformat(), snapshot.to_json())
    except redis.RedisError as exc:
        logger.error(
            "Failed to save life index for %s on %s: %s",
            snapshot.user_id, snapshot.recorded_at, exc,
        )
        return False
    return True


def _decode(value):
    return value.decode() if isinstance(value, bytes) else value


def query(
    user_id: str,
    start: date | None = None,
    end: date | None = None,
    r: redis.Redis | None = None,
) -> list[LifeIndexSnapshot]:
    """Snapshots with start <= recorded_at <= end, ascending by date.

    Rows that fail to parse are skipped, not raised.
    """
    r = r or _get_redis()
    rows = r.hgetall(history_key(user_id))

    snapshots = []
    for field_name, raw in rows.items():
        field_name, raw = _decode(field_name), _decode(raw)
        try:
            snapshot = LifeIndexSnapshot.from_json(raw)
            if snapshot.recorded_at.isoformat() != field_name or snapshot.user_id != user_id:
                raise ValueError("row key mismatch")
        except (ValueError, TypeError, KeyError) as exc:
            logger.warning("Skipping malformed history row %s for %s: %s", field_name, user_id, exc)
            continue
        if start and snapshot.recorded_at < start:
            continue
        if end and snapshot.recorded_at > end:
            continue
        snapshots.append(snapshot)

    snapshots.sort(key=lambda s: s.recorded_at)
    return snapshots


def _field_value(snapshot: LifeIndexSnapshot, field_name: str) -> Optional[int]:
    if field_name in SCALAR_FIELDS:
        return snapshot.value_of(field_name)
    return snapshot.sphere_indices.get(field_name)


def _check_field(field_name: str) -> None:
    if field_name not in SCALAR_FIELDS and field_name not in SPHERE_FIELDS:
        raise ValueError(f"Unknown history field: {field_name}")


def _months_back(day: date, months: int) -> date:
    month_index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    # Clamp day-of-month (e.g. Mar 31 -> Feb 28)
    for d in (day.day, 30, 29, 28):
        try:
            return date(year, month, d)
        except ValueError:
            continue
    return date(year, month, 28)


def daily_points(
    user_id: str,
    days: int = HISTORY_MONTH_DAYS,
    field_name: str = "life_index",
    today: date | None = None,
    r: redis.Redis | None = None,
) -> list[HistoryPoint]:
    """One point per stored day over the last ``days`` days."""
    _check_field(field_name)
    today = today or date.today()
    points = []
    for snapshot in query(user_id, today - timedelta(days=days), today, r):
        value = _field_value(snapshot, field_name)
        if value is not None:
            points.append(HistoryPoint(snapshot.recorded_at.isoformat(), value))
    return points


def monthly_points(
    user_id: str,
    months: int = HISTORY_YEAR_MONTHS,
    field_name: str = "life_index",
    today: date | None = None,
    r: redis.Redis | None = None,
) -> list[HistoryPoint]:
    """Calendar-month averages over the last ``months`` months."""
    _check_field(field_name)
    today = today or date.today()
    buckets: dict[str, list[int]] = defaultdict(list)
    for snapshot in query(user_id, _months_back(today, months), today, r):
        value = _field_value(snapshot, field_name)
        if value is not None:
            buckets[snapshot.recorded_at.strftime("%Y-%m")].append(value)
    return [
        HistoryPoint(month, round_half_up(sum(values) / len(values)))
        for month, values in sorted(buckets.items())
    ]


# ── Balance status history ───────────────────────────────────────────────


def record_balance_status(
    entry: BalanceStatusEntry,
    r: redis.Redis | None = None,
    max_entries: int = BALANCE_STATUS_MAX_ENTRIES,
) -> bool:
    """Append a spread-level change. Returns False on failure."""
    r = r or _get_redis()
    key = balance_status_key(entry.user_id)
    try:
        pipe = r.pipeline()
        pipe.lpush(key, entry.to_json())
        pipe.ltrim(key, 0, max_entries - 1)
        pipe.execute()
    except redis.RedisError as exc:
        logger.error("Failed to save balance status for %s: %s", entry.user_id, exc)
        return False
    return True


def balance_status_history(
    user_id: str,
    limit: int = 50,
    r: redis.Redis | None = None,
) -> list[BalanceStatusEntry]:
    """Newest first."""
    r = r or _get_redis()
    entries = []
    for raw in r.lrange(balance_status_key(user_id), 0, max(limit, 1) - 1):
        try:
            entries.append(BalanceStatusEntry.from_json(_decode(raw)))
        except (ValueError, TypeError) as exc:
            logger.warning("Skipping malformed balance status for %s: %s", user_id, exc)
    return entries


def last_balance_level(user_id: str, r: redis.Redis | None = None) -> Optional[str]:
    latest = balance_status_history(user_id, limit=1, r=r)
    return latest[0].level if latest else None
