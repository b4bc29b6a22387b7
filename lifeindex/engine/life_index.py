"""Life Index pipeline — the caller-facing operations.

  collect (8 spheres in parallel, 6 domains each)
    -> calculate per sphere
    -> aggregate across spheres
    -> persist snapshot (last step, non-fatal)

History reads go through the History Store and the Trend Analyzer.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone

import redis

from lifeindex.config.settings import DOMAIN_QUERY_TIMEOUT, HISTORY_MONTH_DAYS, HISTORY_YEAR_MONTHS, REDIS_URL
from lifeindex.engine import history_store
from lifeindex.engine.balance import (
    DEFAULT_BALANCE_CONFIG,
    BalanceConfig,
    BalanceResult,
    aggregate,
)
from lifeindex.engine.index_calculator import (
    DEFAULT_INDEX_CONFIG,
    IndexConfig,
    calculate,
    score_breakdown,
)
from lifeindex.engine.stats_collector import collect
from lifeindex.engine.trend import Trend, trend
from lifeindex.models.snapshot import (
    BalanceStatusEntry,
    HistoryPoint,
    LifeIndexSnapshot,
    SphereIndex,
    SphereStats,
)
from lifeindex.models.sphere import list_spheres

logger = logging.getLogger(__name__)

PERIODS = ("month", "year")


def _get_redis() -> redis.Redis:
    return redis.Redis.from_url(REDIS_URL, decode_responses=True)


@dataclass
class LifeIndexData:
    user_id: str
    recorded_at: date
    balance: BalanceResult
    sphere_indices: list[SphereIndex]
    stats: dict[str, SphereStats] = field(default_factory=dict)
    persisted: bool = False

    @property
    def life_index(self) -> int:
        return self.balance.life_index

    @property
    def personal_energy(self) -> int:
        return self.balance.personal_energy

    @property
    def external_success(self) -> int:
        return self.balance.external_success

    @property
    def mindfulness_level(self) -> int:
        return self.balance.mindfulness_level

    def snapshot(self) -> LifeIndexSnapshot:
        return LifeIndexSnapshot(
            user_id=self.user_id,
            recorded_at=self.recorded_at,
            life_index=self.life_index,
            personal_energy=self.personal_energy,
            external_success=self.external_success,
            mindfulness_level=self.mindfulness_level,
            sphere_indices={s.sphere_key: s.index for s in self.sphere_indices},
        )

    def to_dict(self) -> dict:
        d = self.balance.to_dict()
        d.update({
            "user_id": self.user_id,
            "recorded_at": self.recorded_at.isoformat(),
            "sphere_indices": [s.to_dict() for s in self.sphere_indices],
            "degraded_domains": {
                key: stats.degraded_domains
                for key, stats in self.stats.items()
                if stats.degraded_domains
            },
            "persisted": self.persisted,
        })
        return d


async def fetch_sphere_stats(
    user_id: str,
    sphere_id: int,
    r: redis.Redis | None = None,
    now: datetime | None = None,
    timeout: float = DOMAIN_QUERY_TIMEOUT,
) -> SphereStats:
    r = r or _get_redis()
    return await collect(user_id, sphere_id, r=r, now=now, timeout=timeout)


def calculate_sphere_index(stats: SphereStats, config: IndexConfig = DEFAULT_INDEX_CONFIG) -> int:
    return calculate(stats, config)


def _track_balance_status(data: LifeIndexData, now: datetime, r: redis.Redis) -> None:
    """Record a spread-level change once every sphere clears the minimum."""
    spread = data.balance.spread
    if spread is None or not spread.all_spheres_above_minimum:
        return
    if history_store.last_balance_level(data.user_id, r) == spread.level.value:
        return
    history_store.record_balance_status(BalanceStatusEntry(
        user_id=data.user_id,
        level=spread.level.value,
        spread=spread.spread,
        min_value=spread.min_value,
        max_value=spread.max_value,
        min_sphere_id=spread.min_sphere_id,
        max_sphere_id=spread.max_sphere_id,
        all_spheres_above_minimum=True,
        recorded_at=now.isoformat(),
    ), r)
    logger.info(f"Balance level for {data.user_id} is now {spread.level.value} (spread {spread.spread})")


def _persist(data: LifeIndexData, now: datetime, r: redis.Redis) -> bool:
    saved = history_store.save(data.snapshot(), r)
    if not saved:
        return False
    try:
        _track_balance_status(data, now, r)
    except Exception as exc:
        logger.error("Balance status tracking failed for %s: %s", data.user_id, exc)
    return saved


async def fetch_life_index_data(
    user_id: str,
    r: redis.Redis | None = None,
    now: datetime | None = None,
    index_config: IndexConfig = DEFAULT_INDEX_CONFIG,
    balance_config: BalanceConfig = DEFAULT_BALANCE_CONFIG,
    timeout: float = DOMAIN_QUERY_TIMEOUT,
    persist: bool = True,
) -> LifeIndexData:
    """Compute every sphere index, the balance signals, and save today's snapshot.

    A failed save is logged and reported via ``persisted``; the computed
    result is returned either way.
    """
    r = r or _get_redis()
    now = now or datetime.now(timezone.utc)
    spheres = list_spheres()

    all_stats = await asyncio.gather(*(
        collect(user_id, sphere.id, r=r, now=now, timeout=timeout)
        for sphere in spheres
    ))

    sphere_indices = []
    stats_by_key = {}
    for sphere, stats in zip(spheres, all_stats):
        stats_by_key[sphere.key.value] = stats
        sphere_indices.append(SphereIndex(
            sphere_id=sphere.id,
            sphere_key=sphere.key.value,
            index=calculate(stats, index_config),
            sub_scores=score_breakdown(stats, index_config),
        ))

    balance = aggregate(
        {s.sphere_key: s.index for s in sphere_indices},
        stats_by_sphere=stats_by_key,
        config=balance_config,
    )
    data = LifeIndexData(
        user_id=user_id,
        recorded_at=now.date(),
        balance=balance,
        sphere_indices=sphere_indices,
        stats=stats_by_key,
    )

    if persist:
        data.persisted = await asyncio.to_thread(_persist, data, now, r)

    logger.info(
        f"Life index for {user_id}: {balance.life_index} "
        f"(personal={balance.personal_energy}, social={balance.external_success}, "
        f"tilt={balance.tilt.value}, persisted={data.persisted})"
    )
    return data


def query_history(
    user_id: str,
    period: str = "month",
    field_name: str = "life_index",
    r: redis.Redis | None = None,
    today: date | None = None,
) -> list[HistoryPoint]:
    """Daily points for "month", calendar-month averages for "year"."""
    if period not in PERIODS:
        raise ValueError(f"Unknown period: {period!r} (expected one of {PERIODS})")
    r = r or _get_redis()
    try:
        if period == "month":
            return history_store.daily_points(user_id, HISTORY_MONTH_DAYS, field_name, today, r)
        return history_store.monthly_points(user_id, HISTORY_YEAR_MONTHS, field_name, today, r)
    except redis.RedisError as exc:
        logger.error("Error fetching life index history for %s: %s", user_id, exc)
        return []


def history_trend(
    user_id: str,
    period: str = "month",
    field_name: str = "life_index",
    r: redis.Redis | None = None,
    today: date | None = None,
) -> Trend:
    points = query_history(user_id, period, field_name, r, today)
    return trend([p.value for p in points])
