"""Index Calculator — one sphere's raw stats to a 0-100 index.

Scoring factors (each normalized to 0-100):
- goals:    engagement with the sphere's goals (completed count double)
- tasks:    completion rate, scaled by completed volume
- habits:   weekly habit completion blended with current streak
- time:     minutes invested
- finance:  positive net flow (work/finance spheres only)
- contacts: linked people (family/friends spheres only)
- activity: recent time entries or transactions (binary)

Volume-based factors use square-root scaling against a saturation point,
so the first units of activity earn the most credit and large volumes
cap out instead of running away.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Mapping

from lifeindex.models.snapshot import SphereStats
from lifeindex.models.sphere import SphereKey, get_by_id

SUB_SCORES = ("goals", "tasks", "habits", "time", "finance", "contacts", "activity")

DEFAULT_WEIGHTS = {
    "goals": 0.15, "tasks": 0.30, "habits": 0.30, "time": 0.15, "activity": 0.10,
}
FINANCE_WEIGHTS = {
    "goals": 0.15, "tasks": 0.20, "habits": 0.15, "time": 0.15, "finance": 0.25, "activity": 0.10,
}
CONTACT_WEIGHTS = {
    "goals": 0.15, "tasks": 0.20, "habits": 0.20, "time": 0.15, "contacts": 0.20, "activity": 0.10,
}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def _validate_weights(name: str, weights: Mapping[str, float]) -> None:
    unknown = set(weights) - set(SUB_SCORES)
    if unknown:
        raise ValueError(f"{name}: unknown sub-scores {sorted(unknown)}")
    if any(w < 0 for w in weights.values()):
        raise ValueError(f"{name}: weights must be non-negative")
    total = sum(weights.values())
    if abs(total - 1.0) > 1e-6:
        raise ValueError(f"{name}: weights sum to {total:.4f}, expected 1.0")


@dataclass(frozen=True)
class IndexConfig:
    weights: Mapping[str, float] = field(default_factory=lambda: dict(DEFAULT_WEIGHTS))
    finance_weights: Mapping[str, float] = field(default_factory=lambda: dict(FINANCE_WEIGHTS))
    contact_weights: Mapping[str, float] = field(default_factory=lambda: dict(CONTACT_WEIGHTS))
    finance_spheres: frozenset = frozenset({SphereKey.WORK, SphereKey.FINANCE})
    contact_spheres: frozenset = frozenset({SphereKey.FAMILY, SphereKey.FRIENDS})
    goal_saturation: float = 6.0
    task_saturation: float = 5.0
    streak_saturation: float = 14.0
    streak_share: float = 0.2          # share of the habit score earned by streak
    time_target_minutes: float = 240.0
    income_target: float = 1000.0
    contact_saturation: float = 10.0

    def __post_init__(self):
        _validate_weights("weights", self.weights)
        _validate_weights("finance_weights", self.finance_weights)
        _validate_weights("contact_weights", self.contact_weights)
        if not 0.0 <= self.streak_share <= 1.0:
            raise ValueError("streak_share must be within [0, 1]")
        for name in ("goal_saturation", "task_saturation", "streak_saturation",
                     "time_target_minutes", "income_target", "contact_saturation"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")

    def weights_for(self, sphere_key: SphereKey) -> Mapping[str, float]:
        if sphere_key in self.finance_spheres:
            return self.finance_weights
        if sphere_key in self.contact_spheres:
            return self.contact_weights
        return self.weights


DEFAULT_INDEX_CONFIG = IndexConfig()


def _sqrt_saturation(amount: float, saturation: float) -> float:
    """0-100, concave in amount, 100 at saturation and above."""
    if amount <= 0:
        return 0.0
    return 100.0 * math.sqrt(min(amount, saturation) / saturation)


def goals_score(stats: SphereStats, config: IndexConfig) -> float:
    engagement = 2 * max(stats.completed_goals, 0) + max(stats.active_goals, 0)
    return _sqrt_saturation(engagement, config.goal_saturation)


def tasks_score(stats: SphereStats, config: IndexConfig) -> float:
    volume = _sqrt_saturation(stats.completed_tasks, config.task_saturation) / 100.0
    return stats.task_completion_rate * volume


def habits_score(stats: SphereStats, config: IndexConfig) -> float:
    streak = _sqrt_saturation(stats.habit_streak, config.streak_saturation)
    return (1 - config.streak_share) * stats.habit_completion_rate + config.streak_share * streak


def time_score(stats: SphereStats, config: IndexConfig) -> float:
    return _sqrt_saturation(stats.time_minutes, config.time_target_minutes)


def finance_score(stats: SphereStats, config: IndexConfig) -> float:
    return _sqrt_saturation(stats.net_flow, config.income_target)


def contacts_score(stats: SphereStats, config: IndexConfig) -> float:
    return _sqrt_saturation(stats.contacts, config.contact_saturation)


def activity_score(stats: SphereStats, config: IndexConfig) -> float:
    return 100.0 if stats.has_recent_activity else 0.0


SCORERS = {
    "goals": goals_score,
    "tasks": tasks_score,
    "habits": habits_score,
    "time": time_score,
    "finance": finance_score,
    "contacts": contacts_score,
    "activity": activity_score,
}


def score_breakdown(stats: SphereStats, config: IndexConfig = DEFAULT_INDEX_CONFIG) -> dict[str, float]:
    """Sub-scores that apply to the stats' sphere, each within [0, 100]."""
    sphere = get_by_id(stats.sphere_id)
    weights = config.weights_for(sphere.key)
    return {name: clamp(SCORERS[name](stats, config)) for name in weights}


def calculate(stats: SphereStats, config: IndexConfig = DEFAULT_INDEX_CONFIG) -> int:
    """Weighted, clamped 0-100 index. Pure; zero activity yields 0."""
    sphere = get_by_id(stats.sphere_id)
    weights = config.weights_for(sphere.key)
    breakdown = score_breakdown(stats, config)
    total = sum(breakdown[name] * weight for name, weight in weights.items())
    return int(clamp(round_half_up(total)))
