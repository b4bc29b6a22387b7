"""Stats, index and snapshot value types flowing through the engine."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, asdict
from datetime import date
from typing import Optional


@dataclass
class SphereStats:
    """Raw per-user, per-sphere activity. Produced fresh, never persisted."""
    sphere_id: int
    active_goals: int = 0
    completed_goals: int = 0
    total_tasks: int = 0
    completed_tasks: int = 0
    total_habits: int = 0
    habit_expected: int = 0       # completions expected this week
    habit_completed: int = 0      # completions done this week (capped per habit)
    habit_streak: int = 0         # days
    time_minutes: int = 0
    total_income: float = 0.0
    total_expense: float = 0.0
    contacts: int = 0
    has_recent_activity: bool = False
    degraded_domains: list[str] = field(default_factory=list)

    @property
    def task_completion_rate(self) -> float:
        """0-100. Completed share of the sphere's tasks."""
        if self.total_tasks <= 0:
            return 0.0
        return min(100.0, 100.0 * self.completed_tasks / self.total_tasks)

    @property
    def habit_completion_rate(self) -> float:
        """0-100. Weekly habit completion."""
        if self.habit_expected <= 0:
            return 0.0
        return min(100.0, 100.0 * self.habit_completed / self.habit_expected)

    @property
    def net_flow(self) -> float:
        return self.total_income - self.total_expense

    @property
    def is_empty(self) -> bool:
        return not (
            self.active_goals or self.completed_goals or self.completed_tasks
            or self.habit_completed or self.habit_streak or self.time_minutes
            or self.total_income or self.contacts or self.has_recent_activity
        )

    def to_dict(self) -> dict:
        d = asdict(self)
        d["task_completion_rate"] = round(self.task_completion_rate, 1)
        d["habit_completion_rate"] = round(self.habit_completion_rate, 1)
        d["net_flow"] = self.net_flow
        return d


@dataclass
class SphereIndex:
    sphere_id: int
    sphere_key: str
    index: int
    sub_scores: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "sphere_id": self.sphere_id,
            "sphere_key": self.sphere_key,
            "index": self.index,
            "sub_scores": {k: round(v, 1) for k, v in self.sub_scores.items()},
        }


@dataclass
class LifeIndexSnapshot:
    """One persisted daily record of all computed indices for a user."""
    user_id: str
    recorded_at: date
    life_index: int
    personal_energy: int = 0
    external_success: int = 0
    mindfulness_level: int = 0
    sphere_indices: dict = field(default_factory=dict)  # sphere_key -> index

    def to_json(self) -> str:
        return json.dumps({
            "user_id": self.user_id,
            "recorded_at": self.recorded_at.isoformat(),
            "life_index": self.life_index,
            "personal_energy": self.personal_energy,
            "external_success": self.external_success,
            "mindfulness_level": self.mindfulness_level,
            "sphere_indices": self.sphere_indices,
        })

    @classmethod
    def from_json(cls, raw: str) -> LifeIndexSnapshot:
        """Parse a stored snapshot. Raises ValueError/TypeError/KeyError on bad rows."""
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("snapshot row must be a JSON object")
        sphere_indices = data.get("sphere_indices") or {}
        if not isinstance(sphere_indices, dict):
            raise ValueError("sphere_indices must be a mapping")
        return cls(
            user_id=str(data["user_id"]),
            recorded_at=date.fromisoformat(data["recorded_at"]),
            life_index=int(data["life_index"]),
            personal_energy=int(data.get("personal_energy") or 0),
            external_success=int(data.get("external_success") or 0),
            mindfulness_level=int(data.get("mindfulness_level") or 0),
            sphere_indices={str(k): int(v) for k, v in sphere_indices.items()},
        )

    def value_of(self, field_name: str) -> int:
        return getattr(self, field_name)


@dataclass
class BalanceStatusEntry:
    """A change in the cross-sphere spread level."""
    user_id: str
    level: str
    spread: int
    min_value: int
    max_value: int
    min_sphere_id: Optional[int] = None
    max_sphere_id: Optional[int] = None
    all_spheres_above_minimum: bool = False
    recorded_at: str = ""

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, raw: str) -> BalanceStatusEntry:
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("balance status entry must be a JSON object")
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class HistoryPoint:
    date: str     # YYYY-MM-DD for daily points, YYYY-MM for monthly buckets
    value: int

    def to_dict(self) -> dict:
        return {"date": self.date, "value": self.value}
