"""Sphere Registry: the fixed catalog of life categories.

Eight spheres, split evenly into a personal group and a social group.
The catalog is static configuration: it is validated once at import time
and never mutated afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping

SPHERE_COUNT = 8
GROUP_SIZE = 4


class GroupType(str, Enum):
    PERSONAL = "personal"
    SOCIAL = "social"


class SphereKey(str, Enum):
    BODY = "body"
    MIND = "mind"
    SPIRIT = "spirit"
    LEISURE = "leisure"
    WORK = "work"
    FINANCE = "finance"
    FAMILY = "family"
    FRIENDS = "friends"


class Language(str, Enum):
    EN = "en"
    RU = "ru"


class SphereNotFound(LookupError):
    """Raised when a sphere key or id is not in the catalog."""

    def __init__(self, ref):
        super().__init__(f"Unknown sphere: {ref!r}")
        self.ref = ref


@dataclass(frozen=True)
class Sphere:
    id: int
    key: SphereKey
    display_names: Mapping[Language, str]
    color: str
    icon: str
    group_type: GroupType
    sort_order: int

    def name(self, language: Language = Language.EN) -> str:
        return self.display_names[language]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "key": self.key.value,
            "display_names": {lang.value: text for lang, text in self.display_names.items()},
            "color": self.color,
            "icon": self.icon,
            "group_type": self.group_type.value,
            "sort_order": self.sort_order,
        }


def _names(en: str, ru: str) -> Mapping[Language, str]:
    return MappingProxyType({Language.EN: en, Language.RU: ru})


SPHERES: tuple[Sphere, ...] = (
    Sphere(1, SphereKey.BODY, _names("Body", "Тело"), "#22C55E", "💪", GroupType.PERSONAL, 1),
    Sphere(2, SphereKey.MIND, _names("Mind", "Разум"), "#3B82F6", "🧠", GroupType.PERSONAL, 2),
    Sphere(3, SphereKey.SPIRIT, _names("Spirit", "Дух"), "#A855F7", "🧘", GroupType.PERSONAL, 3),
    Sphere(4, SphereKey.LEISURE, _names("Leisure", "Отдых"), "#F59E0B", "🎨", GroupType.PERSONAL, 4),
    Sphere(5, SphereKey.WORK, _names("Work", "Работа"), "#EF4444", "💼", GroupType.SOCIAL, 5),
    Sphere(6, SphereKey.FINANCE, _names("Finance", "Финансы"), "#10B981", "💰", GroupType.SOCIAL, 6),
    Sphere(7, SphereKey.FAMILY, _names("Family", "Семья"), "#EC4899", "🏡", GroupType.SOCIAL, 7),
    Sphere(8, SphereKey.FRIENDS, _names("Friends", "Друзья"), "#06B6D4", "🤝", GroupType.SOCIAL, 8),
)


def validate_catalog(spheres: tuple[Sphere, ...]) -> None:
    """Check the catalog invariants. Raises ValueError on violation."""
    if len(spheres) != SPHERE_COUNT:
        raise ValueError(f"Expected {SPHERE_COUNT} spheres, got {len(spheres)}")
    if len({s.id for s in spheres}) != len(spheres):
        raise ValueError("Duplicate sphere id")
    if len({s.key for s in spheres}) != len(spheres):
        raise ValueError("Duplicate sphere key")
    for group in GroupType:
        size = sum(1 for s in spheres if s.group_type == group)
        if size != GROUP_SIZE:
            raise ValueError(f"Group {group.value} has {size} spheres, expected {GROUP_SIZE}")
    for sphere in spheres:
        missing = [lang.value for lang in Language if not sphere.display_names.get(lang)]
        if missing:
            raise ValueError(f"Sphere {sphere.key.value} missing names for {missing}")


validate_catalog(SPHERES)

_ORDERED = tuple(sorted(SPHERES, key=lambda s: s.sort_order))
_BY_KEY = {s.key.value: s for s in _ORDERED}
_BY_ID = {s.id: s for s in _ORDERED}
_PERSONAL = tuple(s for s in _ORDERED if s.group_type == GroupType.PERSONAL)
_SOCIAL = tuple(s for s in _ORDERED if s.group_type == GroupType.SOCIAL)


def list_spheres() -> tuple[Sphere, ...]:
    return _ORDERED


def get_by_key(key: str | SphereKey) -> Sphere:
    value = key.value if isinstance(key, SphereKey) else key
    try:
        return _BY_KEY[value]
    except KeyError:
        raise SphereNotFound(key) from None


def get_by_id(sphere_id: int) -> Sphere:
    try:
        return _BY_ID[sphere_id]
    except KeyError:
        raise SphereNotFound(sphere_id) from None


def personal_spheres() -> tuple[Sphere, ...]:
    return _PERSONAL


def social_spheres() -> tuple[Sphere, ...]:
    return _SOCIAL


def display_name(sphere: Sphere, language: Language | str = Language.EN) -> str:
    return sphere.name(Language(language))
