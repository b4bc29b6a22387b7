"""Balance Aggregator — eight sphere indices to the overall balance signals.

Pure reduction, no I/O:
  life_index        mean of all 8 spheres
  personal_energy   mean of the 4 personal spheres
  external_success  mean of the 4 social spheres
  skew              personal_energy - external_success, with a deadband
  mindfulness       pluggable scorer over the raw sphere stats
  spread            max - min across spheres, bucketed into levels
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Mapping, Optional

from lifeindex.config.settings import BALANCE_DEADBAND, MINIMUM_SPHERE_VALUE, STRONG_TILT_THRESHOLD
from lifeindex.engine.index_calculator import clamp, round_half_up
from lifeindex.models.snapshot import SphereStats
from lifeindex.models.sphere import (
    SphereKey,
    get_by_key,
    list_spheres,
    personal_spheres,
    social_spheres,
)


class Tilt(str, Enum):
    BALANCED = "balanced"
    PERSONAL = "personal"
    STRONG_PERSONAL = "strong_personal"
    SOCIAL = "social"
    STRONG_SOCIAL = "strong_social"


class SpreadLevel(str, Enum):
    TOP_FOCUS = "topFocus"
    STABILITY = "stability"
    BALANCE = "balance"
    TILT = "tilt"
    CHAOS = "chaos"


MindfulnessScorer = Callable[[Mapping[str, SphereStats]], float]


def spirit_habit_mindfulness(stats_by_sphere: Mapping[str, SphereStats]) -> float:
    """Weekly habit completion of the spirit sphere."""
    stats = stats_by_sphere.get(SphereKey.SPIRIT.value)
    return stats.habit_completion_rate if stats else 0.0


@dataclass(frozen=True)
class BalanceConfig:
    deadband: int = BALANCE_DEADBAND
    strong_tilt: int = STRONG_TILT_THRESHOLD
    minimum_sphere_value: int = MINIMUM_SPHERE_VALUE
    mindfulness_scorer: MindfulnessScorer = spirit_habit_mindfulness

    def __post_init__(self):
        if self.deadband < 0:
            raise ValueError("deadband must be non-negative")
        if self.strong_tilt <= self.deadband:
            raise ValueError("strong_tilt must exceed deadband")


DEFAULT_BALANCE_CONFIG = BalanceConfig()


@dataclass
class SpreadState:
    level: SpreadLevel
    spread: int
    min_value: int
    max_value: int
    min_sphere_id: Optional[int]
    max_sphere_id: Optional[int]
    all_spheres_above_minimum: bool

    def to_dict(self) -> dict:
        return {
            "level": self.level.value,
            "spread": self.spread,
            "min_value": self.min_value,
            "max_value": self.max_value,
            "min_sphere_id": self.min_sphere_id,
            "max_sphere_id": self.max_sphere_id,
            "all_spheres_above_minimum": self.all_spheres_above_minimum,
        }


@dataclass
class BalanceResult:
    life_index: int
    personal_energy: int
    external_success: int
    mindfulness_level: int
    skew: int
    tilt: Tilt
    spread: Optional[SpreadState] = field(repr=False, default=None)

    @property
    def is_balanced(self) -> bool:
        return self.tilt == Tilt.BALANCED

    def to_dict(self) -> dict:
        return {
            "life_index": self.life_index,
            "personal_energy": self.personal_energy,
            "external_success": self.external_success,
            "mindfulness_level": self.mindfulness_level,
            "skew": self.skew,
            "tilt": self.tilt.value,
            "spread": self.spread.to_dict() if self.spread else None,
        }


def _mean(values: list[float]) -> int:
    if not values:
        return 0
    return int(clamp(round_half_up(math.fsum(values) / len(values))))


def classify_tilt(skew: float, config: BalanceConfig = DEFAULT_BALANCE_CONFIG) -> Tilt:
    if abs(skew) <= config.deadband:
        return Tilt.BALANCED
    if skew >= config.strong_tilt:
        return Tilt.STRONG_PERSONAL
    if skew <= -config.strong_tilt:
        return Tilt.STRONG_SOCIAL
    return Tilt.PERSONAL if skew > 0 else Tilt.SOCIAL


def spread_level(spread: int) -> SpreadLevel:
    if spread <= 5:
        return SpreadLevel.TOP_FOCUS
    if spread <= 10:
        return SpreadLevel.STABILITY
    if spread < 50:
        return SpreadLevel.BALANCE
    if spread < 75:
        return SpreadLevel.TILT
    return SpreadLevel.CHAOS


def _normalize(indices: Mapping[str, float]) -> dict[str, float]:
    """Key by sphere slug; reject unknown keys and incomplete maps."""
    normalized = {}
    for key, value in indices.items():
        sphere = get_by_key(key)
        normalized[sphere.key.value] = clamp(float(value))
    missing = [s.key.value for s in list_spheres() if s.key.value not in normalized]
    if missing:
        raise ValueError(f"Missing sphere indices: {missing}")
    return normalized


def calculate_spread(
    indices: Mapping[str, float],
    config: BalanceConfig = DEFAULT_BALANCE_CONFIG,
) -> SpreadState:
    if not indices:
        return SpreadState(SpreadLevel.STABILITY, 0, 0, 0, None, None, False)
    # Registry order breaks ties deterministically
    ordered = sorted(
        ((get_by_key(k), round_half_up(v)) for k, v in indices.items()),
        key=lambda pair: pair[0].sort_order,
    )
    lowest = min(ordered, key=lambda pair: pair[1])
    highest = max(ordered, key=lambda pair: pair[1])
    spread = highest[1] - lowest[1]
    return SpreadState(
        level=spread_level(spread),
        spread=spread,
        min_value=lowest[1],
        max_value=highest[1],
        min_sphere_id=lowest[0].id,
        max_sphere_id=highest[0].id,
        all_spheres_above_minimum=all(v >= config.minimum_sphere_value for _, v in ordered),
    )


def aggregate(
    indices: Mapping[str, float],
    stats_by_sphere: Optional[Mapping[str, SphereStats]] = None,
    config: BalanceConfig = DEFAULT_BALANCE_CONFIG,
) -> BalanceResult:
    """Combine all 8 sphere indices (keyed by sphere key) into balance signals."""
    values = _normalize(indices)

    life_index = _mean(list(values.values()))
    personal_energy = _mean([values[s.key.value] for s in personal_spheres()])
    external_success = _mean([values[s.key.value] for s in social_spheres()])
    skew = personal_energy - external_success

    mindfulness = config.mindfulness_scorer(stats_by_sphere or {})
    mindfulness_level = int(clamp(round_half_up(mindfulness)))

    return BalanceResult(
        life_index=life_index,
        personal_energy=personal_energy,
        external_success=external_success,
        mindfulness_level=mindfulness_level,
        skew=skew,
        tilt=classify_tilt(skew, config),
        spread=calculate_spread(values, config),
    )
