"""Time-aware exponential moving average for irregularly spaced training sessions."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Sequence

DEFAULT_HALF_LIFE_DAYS = 21.0
_MIN_HALF_LIFE_DAYS = 1e-6
_SECONDS_PER_DAY = 86400.0


@dataclass(frozen=True)
class EmaPoint:
    timestamp: Optional[datetime]
    value: Optional[float]
    smoothed: Optional[float]  # None until the first usable value


def _usable(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def decay_alpha(dt_days: float, half_life_days: float = DEFAULT_HALF_LIFE_DAYS) -> float:
    """alpha = 1 - exp(-ln2 * dt / H), dt clamped at 0 and H at a tiny positive floor."""
    h = max(_MIN_HALF_LIFE_DAYS, half_life_days)
    dt = max(0.0, dt_days)
    return 1.0 - math.exp(-math.log(2) * dt / h)


def ema(
    points: Iterable[tuple[Optional[datetime], Optional[float]]],
    half_life_days: float = DEFAULT_HALF_LIFE_DAYS,
) -> list[EmaPoint]:
    """
    Smooth (timestamp, value) points given oldest first. The first usable value seeds the
    estimate. A missing or non-finite value carries the previous estimate forward and leaves
    the time cursor where it was. A missing timestamp counts as a one-day step and also
    leaves the cursor alone.
    """
    out: list[EmaPoint] = []
    estimate: Optional[float] = None
    cursor: Optional[datetime] = None
    for ts, value in points:
        if not _usable(value):
            out.append(EmaPoint(timestamp=ts, value=None, smoothed=estimate))
            continue
        value = float(value)
        if estimate is None:
            estimate = value
            cursor = ts
        else:
            if ts is None or cursor is None:
                dt_days = 1.0
            else:
                dt_days = (ts - cursor).total_seconds() / _SECONDS_PER_DAY
            if ts is not None:
                cursor = ts
            estimate += decay_alpha(dt_days, half_life_days) * (value - estimate)
        out.append(EmaPoint(timestamp=ts, value=value, smoothed=estimate))
    return out


def ema_values(
    values: Sequence[Optional[float]],
    timestamps: Sequence[Optional[datetime]] | None = None,
    half_life_days: float = DEFAULT_HALF_LIFE_DAYS,
) -> list[Optional[float]]:
    """Smoothed values only; without timestamps every step is one day."""
    stamps = list(timestamps) if timestamps is not None else [None] * len(values)
    if len(stamps) != len(values):
        raise ValueError("values and timestamps must have the same length")
    return [p.smoothed for p in ema(zip(stamps, values), half_life_days)]
