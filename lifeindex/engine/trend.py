"""Recent vs. older mean over a history series."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from statistics import fmean
from typing import Sequence

from lifeindex.config.settings import TREND_THRESHOLD, TREND_WINDOW


class Direction(str, Enum):
    UP = "up"
    DOWN = "down"
    FLAT = "flat"


@dataclass(frozen=True)
class Trend:
    direction: Direction
    delta: float

    def to_dict(self) -> dict:
        return {"direction": self.direction.value, "delta": round(self.delta, 2)}


def trend(
    series: Sequence[float],
    window: int = TREND_WINDOW,
    threshold: float = TREND_THRESHOLD,
) -> Trend:
    """Compare the mean of the last ``n`` points with the first ``n`` points.

    n = min(window, len(series) // 2). Fewer than 2 points is flat.
    """
    n = min(window, len(series) // 2)
    if n < 1:
        return Trend(Direction.FLAT, 0.0)

    values = list(series)
    recent = values[-n:]
    older = values[:n]
    delta = fmean(recent) - fmean(older)

    if delta > threshold:
        return Trend(Direction.UP, delta)
    if delta < -threshold:
        return Trend(Direction.DOWN, delta)
    return Trend(Direction.FLAT, delta)
