"""Record schemas read by the Stats Collector.

These mirror the rows kept by the external goal/task/habit/time/finance/
contact stores. Each record is persisted as a Redis hash; optional
associations are stored as empty strings and come back as ``None``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields, asdict
from datetime import datetime, timezone
from typing import ClassVar, Optional

SCHEMA_VERSION = 1
RECORD_PREFIX = "rec:"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class GoalStatus:
    ACTIVE = "active"
    COMPLETED = "completed"
    PAUSED = "paused"


class TransactionType:
    INCOME = "income"
    EXPENSE = "expense"


class Domain:
    GOALS = "goals"
    TASKS = "tasks"
    HABITS = "habits"
    TIME_ENTRIES = "time_entries"
    TRANSACTIONS = "transactions"
    CONTACTS = "contacts"

    ALL = (GOALS, TASKS, HABITS, TIME_ENTRIES, TRANSACTIONS, CONTACTS)


@dataclass
class _Record:
    """Shared hash (de)serialization for all record types."""

    DOMAIN: ClassVar[str] = ""
    ID_FIELD: ClassVar[str] = ""
    INT_FIELDS: ClassVar[tuple[str, ...]] = ()
    FLOAT_FIELDS: ClassVar[tuple[str, ...]] = ()
    BOOL_FIELDS: ClassVar[tuple[str, ...]] = ()
    LIST_FIELDS: ClassVar[tuple[str, ...]] = ()

    @property
    def record_id(self) -> str:
        return getattr(self, self.ID_FIELD)

    def key(self) -> str:
        return record_key(self.DOMAIN, self.user_id, self.record_id)

    def to_dict(self) -> dict:
        d = asdict(self)
        for name in self.LIST_FIELDS:
            d[name] = json.dumps(d[name])
        for name in self.BOOL_FIELDS:
            d[name] = "1" if d[name] else "0"
        # Redis hashes can't hold None
        return {k: ("" if v is None else v) for k, v in d.items()}

    @classmethod
    def from_dict(cls, data: dict):
        data = dict(data)  # copy
        known = {f.name for f in fields(cls)}
        optional = {f.name for f in fields(cls) if f.default is None}
        data = {k: v for k, v in data.items() if k in known}
        for name, value in list(data.items()):
            if value == "" and name in optional:
                data[name] = None
        for name in cls.LIST_FIELDS:
            if isinstance(data.get(name), str):
                data[name] = json.loads(data[name]) if data[name] else []
        for name in cls.INT_FIELDS:
            if isinstance(data.get(name), str):
                data[name] = int(float(data[name]))
        for name in cls.FLOAT_FIELDS:
            if isinstance(data.get(name), str):
                data[name] = float(data[name])
        for name in cls.BOOL_FIELDS:
            if isinstance(data.get(name), str):
                data[name] = data[name].lower() in ("1", "true", "yes")
        return cls(**data)


def record_key(domain: str, user_id: str, record_id: str) -> str:
    return f"{RECORD_PREFIX}{domain}:{user_id}:{record_id}"


def sphere_index_key(domain: str, user_id: str, sphere_id: int) -> str:
    return f"{RECORD_PREFIX}{domain}:{user_id}:sphere:{sphere_id}"


def goal_index_key(user_id: str, goal_id: str) -> str:
    return f"{RECORD_PREFIX}{Domain.TASKS}:{user_id}:goal:{goal_id}"


@dataclass
class Goal(_Record):
    DOMAIN: ClassVar[str] = Domain.GOALS
    ID_FIELD: ClassVar[str] = "goal_id"
    INT_FIELDS: ClassVar[tuple[str, ...]] = ("sphere_id", "schema_version")

    goal_id: str
    user_id: str
    title: str = ""
    sphere_id: Optional[int] = None
    status: str = GoalStatus.ACTIVE
    archived_at: Optional[str] = None       # ISO 8601
    created_at: str = field(default_factory=_now_iso)
    schema_version: int = SCHEMA_VERSION


@dataclass
class TaskRecord(_Record):
    DOMAIN: ClassVar[str] = Domain.TASKS
    ID_FIELD: ClassVar[str] = "task_id"
    INT_FIELDS: ClassVar[tuple[str, ...]] = ("sphere_id", "schema_version")
    BOOL_FIELDS: ClassVar[tuple[str, ...]] = ("completed",)

    task_id: str
    user_id: str
    title: str = ""
    sphere_id: Optional[int] = None
    goal_id: Optional[str] = None
    completed: bool = False
    due_date: Optional[str] = None          # YYYY-MM-DD
    postponed_until: Optional[str] = None   # YYYY-MM-DD
    archived_at: Optional[str] = None
    created_at: str = field(default_factory=_now_iso)
    schema_version: int = SCHEMA_VERSION


@dataclass
class Habit(_Record):
    DOMAIN: ClassVar[str] = Domain.HABITS
    ID_FIELD: ClassVar[str] = "habit_id"
    INT_FIELDS: ClassVar[tuple[str, ...]] = ("sphere_id", "schema_version")
    LIST_FIELDS: ClassVar[tuple[str, ...]] = ("completed_dates", "target_days")

    habit_id: str
    user_id: str
    name: str = ""
    sphere_id: Optional[int] = None
    completed_dates: list = field(default_factory=list)  # ["YYYY-MM-DD", ...]
    target_days: list = field(default_factory=list)      # weekdays 0-6, empty = every day
    archived_at: Optional[str] = None
    created_at: str = field(default_factory=_now_iso)
    schema_version: int = SCHEMA_VERSION


@dataclass
class TimeEntry(_Record):
    DOMAIN: ClassVar[str] = Domain.TIME_ENTRIES
    ID_FIELD: ClassVar[str] = "entry_id"
    INT_FIELDS: ClassVar[tuple[str, ...]] = ("sphere_id", "duration", "schema_version")

    entry_id: str
    user_id: str
    sphere_id: Optional[int] = None
    duration: int = 0                       # seconds
    description: str = ""
    created_at: str = field(default_factory=_now_iso)
    schema_version: int = SCHEMA_VERSION


@dataclass
class Transaction(_Record):
    DOMAIN: ClassVar[str] = Domain.TRANSACTIONS
    ID_FIELD: ClassVar[str] = "transaction_id"
    INT_FIELDS: ClassVar[tuple[str, ...]] = ("sphere_id", "schema_version")
    FLOAT_FIELDS: ClassVar[tuple[str, ...]] = ("amount",)

    transaction_id: str
    user_id: str
    sphere_id: Optional[int] = None
    amount: float = 0.0
    type: str = TransactionType.EXPENSE     # income | expense
    category: str = ""
    created_at: str = field(default_factory=_now_iso)
    schema_version: int = SCHEMA_VERSION


@dataclass
class ContactLink(_Record):
    DOMAIN: ClassVar[str] = Domain.CONTACTS
    ID_FIELD: ClassVar[str] = "link_id"
    INT_FIELDS: ClassVar[tuple[str, ...]] = ("sphere_id", "schema_version")

    link_id: str
    user_id: str
    contact_id: str = ""
    sphere_id: Optional[int] = None
    created_at: str = field(default_factory=_now_iso)
    schema_version: int = SCHEMA_VERSION


RECORD_TYPES = {
    cls.DOMAIN: cls
    for cls in (Goal, TaskRecord, Habit, TimeEntry, Transaction, ContactLink)
}
