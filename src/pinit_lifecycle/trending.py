"""
Time-decay helpers shared by scoring and classification.

Every signal is discounted by how long ago it happened:
``weight * 0.5 ** (elapsed / half_life)``.
"""

from __future__ import annotations

import math
from datetime import datetime

import numpy as np

SECONDS_PER_HOUR = 3600.0
HOURS_PER_DAY = 24.0


def decay_array(hours_ago: np.ndarray, half_life_hours: float) -> np.ndarray:
    """Half-life decay factors in (0, 1]; events in the future count fully."""
    clipped = np.clip(np.asarray(hours_ago, dtype=float), 0.0, None)
    return np.power(0.5, clipped / half_life_hours)


def hours_between(earlier: datetime, later: datetime) -> float:
    """Signed hours from ``earlier`` to ``later``."""
    return (later - earlier).total_seconds() / SECONDS_PER_HOUR


def days_between(earlier: datetime, later: datetime) -> float:
    return hours_between(earlier, later) / HOURS_PER_DAY


def elapsed_hours(since: datetime, reference_time: datetime) -> float:
    return max(0.0, hours_between(since, reference_time))


def elapsed_days(since: datetime, reference_time: datetime) -> float:
    return elapsed_hours(since, reference_time) / HOURS_PER_DAY


def whole_days_left(remaining_days: float) -> int:
    # countdowns shown to users round up so "0.2 days" still reads as 1
    return max(0, math.ceil(remaining_days))
