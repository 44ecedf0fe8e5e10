"""
Trending score calculator.

Scores combine a fast-decaying burst component (recent endorsements) with a
slow-decaying baseline (lifetime endorsements), both discounted by the time
since the pin was last endorsed. Everything is a pure function of the pins,
the configuration and an explicit reference time.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from .config import LifecycleConfig, ensure_reference_time
from .models import Pin, ScoreInsights, Trend
from .trending import HOURS_PER_DAY, decay_array, elapsed_hours

TRENDING_PERCENTILE = 75.0
RANK_COLUMNS = ["id", "score", "last_endorsed_ts", "rank", "percentile"]


def _pin_arrays(pins: Sequence[Pin], reference_time: datetime):
    hours = np.array([elapsed_hours(p.last_endorsed_at, reference_time) for p in pins], dtype=float)
    recent = np.array([p.recent_endorsements for p in pins], dtype=float)
    total = np.array([p.total_endorsements for p in pins], dtype=float)
    downvotes = np.array([p.downvotes for p in pins], dtype=float)
    return hours, recent, total, downvotes


def score_pins(
    pins: Sequence[Pin],
    reference_time: datetime,
    config: Optional[LifecycleConfig] = None,
) -> np.ndarray:
    """
    Vectorised trending score for a batch of pins.

    Args:
        pins: Pins to score
        reference_time: Instant the scores are evaluated at (timezone-aware)
        config: Thresholds; defaults are used when omitted

    Returns:
        Array of non-negative scores aligned with ``pins``
    """
    config = config or LifecycleConfig()
    if len(pins) == 0:
        return np.zeros(0, dtype=float)
    hours, recent, total, downvotes = _pin_arrays(pins, reference_time)

    # recent endorsements only count while the last one is inside the window
    window_hours = config.trending_window_days * HOURS_PER_DAY
    effective_recent = np.where(hours <= window_hours, recent, 0.0)

    half_life = config.decay_half_life_hours
    burst = effective_recent * decay_array(hours, half_life)
    baseline = (
        config.baseline_weight
        * np.log1p(total)
        * decay_array(hours, half_life * config.baseline_half_life_multiplier)
    )
    penalty = 1.0 + config.downvote_penalty * downvotes
    return np.maximum((burst + baseline) / penalty, 0.0)


def compute_score(
    pin: Pin,
    reference_time: datetime,
    config: Optional[LifecycleConfig] = None,
) -> float:
    ensure_reference_time(reference_time)
    return float(score_pins([pin], reference_time, config)[0])


def effective_recent_endorsements(
    pin: Pin, reference_time: datetime, config: Optional[LifecycleConfig] = None
) -> int:
    config = config or LifecycleConfig()
    window_hours = config.trending_window_days * HOURS_PER_DAY
    if elapsed_hours(pin.last_endorsed_at, reference_time) <= window_hours:
        return pin.recent_endorsements
    return 0


def _lookback_pin(pin: Pin, lookback_time: datetime) -> Optional[Pin]:
    """Best estimate of the pin as it stood at ``lookback_time``."""
    if pin.created_at > lookback_time:
        return None
    if pin.last_endorsed_at <= lookback_time:
        return pin
    # the latest endorsement had not happened yet; its predecessor time is
    # unknown so creation time stands in for it
    return replace(
        pin,
        total_endorsements=max(pin.total_endorsements - 1, 0),
        recent_endorsements=max(pin.recent_endorsements - 1, 0),
        last_endorsed_at=pin.created_at,
    )


def compute_trend(
    pin: Pin,
    reference_time: datetime,
    config: Optional[LifecycleConfig] = None,
) -> Trend:
    config = config or LifecycleConfig()
    current = compute_score(pin, reference_time, config)
    lookback_time = reference_time - timedelta(hours=config.trend_lookback_hours)
    earlier = _lookback_pin(pin, lookback_time)
    previous = compute_score(earlier, lookback_time, config) if earlier is not None else 0.0

    if previous <= 0.0:
        return Trend.RISING if current > 0.0 else Trend.STABLE
    change = (current - previous) / previous
    if abs(change) <= config.trend_tolerance:
        return Trend.STABLE
    return Trend.RISING if change > 0 else Trend.FALLING


def rank_pins(
    pins: Iterable[Pin],
    reference_time: Optional[datetime] = None,
    config: Optional[LifecycleConfig] = None,
) -> pd.DataFrame:
    """
    Rank pins by score descending, then most recent endorsement, then id.

    When ``reference_time`` is given scores are recomputed at that instant,
    otherwise the cached ``score`` on each pin is used. Percentile 100 is the
    top pin and 0 the bottom one.
    """
    pins = list(pins)
    if not pins:
        return pd.DataFrame(columns=RANK_COLUMNS)
    if reference_time is not None:
        scores = score_pins(pins, reference_time, config)
    else:
        scores = np.array([p.score for p in pins], dtype=float)
    df = pd.DataFrame(
        {
            "id": [p.id for p in pins],
            "score": scores,
            "last_endorsed_ts": [p.last_endorsed_at.timestamp() for p in pins],
        }
    )
    df = df.sort_values(
        by=["score", "last_endorsed_ts", "id"],
        ascending=[False, False, True],
        kind="mergesort",
    ).reset_index(drop=True)
    total = len(df)
    df["rank"] = np.arange(1, total + 1)
    if total == 1:
        df["percentile"] = 100.0
    else:
        df["percentile"] = 100.0 * (total - df["rank"]) / (total - 1)
    return df[RANK_COLUMNS]


def compute_insights(
    pin: Pin,
    all_pins: Sequence[Pin],
    reference_time: datetime,
    config: Optional[LifecycleConfig] = None,
) -> ScoreInsights:
    """
    Where a pin stands relative to a pin set.

    The pin is ranked inside ``all_pins`` (added when it is not already part
    of it). An empty set yields the documented default: percentile 100,
    rank 1 of 0, stable trend.
    """
    ensure_reference_time(reference_time)
    config = config or LifecycleConfig()
    score = compute_score(pin, reference_time, config)
    if not all_pins:
        return ScoreInsights(percentile=100.0, rank=1, total_pins=0, trend=Trend.STABLE, score=score, is_trending=True)

    candidates: List[Pin] = [p for p in all_pins if p.id != pin.id]
    candidates.append(pin)
    ranked = rank_pins(candidates, reference_time, config)
    row = ranked.loc[ranked["id"] == pin.id].iloc[0]
    percentile = round(float(row["percentile"]), 1)
    return ScoreInsights(
        percentile=percentile,
        rank=int(row["rank"]),
        total_pins=len(ranked),
        trend=compute_trend(pin, reference_time, config),
        score=score,
        is_trending=percentile >= TRENDING_PERCENTILE,
    )


def predict_future_score(
    pin: Pin,
    reference_time: datetime,
    days_ahead: float,
    config: Optional[LifecycleConfig] = None,
) -> float:
    """Score the pin would have ``days_ahead`` from now without new activity."""
    return compute_score(pin, reference_time + timedelta(days=days_ahead), config)


def score_recommendations(
    pin: Pin,
    reference_time: datetime,
    config: Optional[LifecycleConfig] = None,
) -> List[str]:
    config = config or LifecycleConfig()
    score = compute_score(pin, reference_time, config)
    tips: List[str] = []
    if score < config.expiry_score_floor:
        tips.append("Pin needs more activity to build a trending score")
    elif score < config.trending_score_floor:
        tips.append("More endorsements would push this pin towards Trending")
    if pin.downvotes > 0:
        tips.append(f"{pin.downvotes} downvote(s) are reducing the trending score")
    needed = _burst_shortfall(pin, reference_time, config)
    if needed > 0:
        tips.append(f"Need {needed} more recent endorsement(s) to show a trending burst")
    return tips


def _burst_shortfall(pin: Pin, reference_time: datetime, config: LifecycleConfig) -> int:
    recent = effective_recent_endorsements(pin, reference_time, config)
    if pin.total_endorsements <= 0:
        return 0
    if recent / pin.total_endorsements >= config.trending_min_burst_ratio:
        return 0
    # each new endorsement raises both counters: solve (r + n) / (t + n) >= ratio
    ratio = config.trending_min_burst_ratio
    if ratio >= 1.0:
        return 0
    numerator = ratio * pin.total_endorsements - recent
    return max(0, int(np.ceil(numerator / (1.0 - ratio))))
