"""
Lifecycle classification: which tab a pin belongs to and why.

Pins are re-evaluated from scratch on every pass, in priority order:
downvote removal, Classics, Trending, Recent, then the fading tail where a
pin slides towards expiry and is finally hidden.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Union

import pandas as pd

from .config import LifecycleConfig, ensure_reference_time
from .models import LifecycleState, LifecycleStatus, LifecycleTab, MapTab, Pin
from .scoring import compute_score, effective_recent_endorsements
from .trending import elapsed_days, whole_days_left

TAB_COUNT_KEYS = ("recent", "trending", "classics", "all", "hidden")


def classify(
    pin: Pin,
    score: float,
    reference_time,
    config: Optional[LifecycleConfig] = None,
) -> LifecycleStatus:
    """
    Classify a pin into exactly one lifecycle tab.

    Args:
        pin: Pin to classify
        score: Trending score of the pin at ``reference_time``
        reference_time: Instant the classification is evaluated at
        config: Thresholds; defaults are used when omitted

    Returns:
        LifecycleStatus with the tab, the finer-grained state, a readable
        reason and forward-looking countdowns (None once crossed)
    """
    ensure_reference_time(reference_time)
    config = config or LifecycleConfig()
    age_days = elapsed_days(pin.created_at, reference_time)
    idle_days = elapsed_days(pin.last_endorsed_at, reference_time)

    days_until_classic = (
        None if age_days >= config.classic_age_days else whole_days_left(config.classic_age_days - age_days)
    )
    endorsements_until_classic = (
        None
        if pin.total_endorsements >= config.classic_endorsement_min
        else config.classic_endorsement_min - pin.total_endorsements
    )

    def status(tab, state, reason, days_until_expiry=None):
        is_classic = tab is LifecycleTab.CLASSICS
        return LifecycleStatus(
            tab=tab,
            state=state,
            reason=reason,
            score=score,
            days_until_expiry=days_until_expiry,
            days_until_classic=None if is_classic else days_until_classic,
            endorsements_until_classic=None if is_classic else endorsements_until_classic,
        )

    if pin.downvotes >= config.downvote_hide_threshold:
        return status(
            LifecycleTab.HIDDEN,
            LifecycleState.HIDDEN,
            f"Hidden: {pin.downvotes} downvotes (threshold {config.downvote_hide_threshold})",
        )

    # a pin with no recent endorsements is judged as if it had one
    recent_support = max(pin.recent_endorsements, 1)
    if pin.downvotes > recent_support * config.downvote_hide_ratio:
        return status(
            LifecycleTab.HIDDEN,
            LifecycleState.HIDDEN,
            f"Hidden: {pin.downvotes} downvotes outweigh {pin.recent_endorsements} recent endorsements",
        )

    if (
        pin.total_endorsements >= config.classic_endorsement_min
        and age_days >= config.classic_age_days
    ):
        return status(
            LifecycleTab.CLASSICS,
            LifecycleState.CLASSIC,
            f"Classic: {pin.total_endorsements} endorsements over {int(age_days)} days",
        )

    recent = effective_recent_endorsements(pin, reference_time, config)
    burst_ratio = recent / pin.total_endorsements if pin.total_endorsements > 0 else 0.0
    if (
        age_days > config.recent_window_days
        and score > config.trending_score_floor
        and recent > 0
        and burst_ratio >= config.trending_min_burst_ratio
    ):
        return status(
            LifecycleTab.TRENDING,
            LifecycleState.TRENDING,
            f"Burst activity: {recent} of {pin.total_endorsements} endorsements are recent",
            whole_days_left(config.trending_window_days - idle_days),
        )

    if age_days <= config.recent_window_days or idle_days <= config.recent_window_days:
        return status(
            LifecycleTab.RECENT,
            LifecycleState.RECENT,
            f"Recently active: last endorsed {int(idle_days)} days ago",
            whole_days_left(config.recent_window_days - min(age_days, idle_days)),
        )

    if score >= config.expiry_score_floor:
        return status(
            LifecycleTab.RECENT,
            LifecycleState.FADING,
            f"Fading: quiet for {int(idle_days)} days, score {score:.2f}",
        )

    if idle_days > config.expiry_grace_days:
        return status(
            LifecycleTab.HIDDEN,
            LifecycleState.HIDDEN,
            f"Expired: no endorsements for {int(idle_days)} days",
        )

    return status(
        LifecycleTab.RECENT,
        LifecycleState.EXPIRING,
        f"Expiring: score {score:.2f} below {config.expiry_score_floor}",
        whole_days_left(config.expiry_grace_days - idle_days),
    )


def classify_pin(pin: Pin, reference_time, config: Optional[LifecycleConfig] = None) -> LifecycleStatus:
    return classify(pin, compute_score(pin, reference_time, config), reference_time, config)


def coerce_tab(tab: Union[MapTab, LifecycleTab, str]) -> MapTab:
    if isinstance(tab, MapTab):
        return tab
    value = tab.value if isinstance(tab, LifecycleTab) else tab
    try:
        return MapTab(value)
    except ValueError:
        valid = ", ".join(t.value for t in MapTab)
        raise ValueError(f"Invalid tab {tab!r}. Must be one of: {valid}") from None


def _sort_for_tab(pins: List[Pin], tab: MapTab) -> List[Pin]:
    pins = sorted(pins, key=lambda p: p.id)
    if tab is MapTab.TRENDING:
        return sorted(pins, key=lambda p: p.score, reverse=True)
    if tab is MapTab.CLASSICS:
        return sorted(pins, key=lambda p: p.total_endorsements, reverse=True)
    return sorted(pins, key=lambda p: p.last_endorsed_at, reverse=True)


def pins_for_tab(
    pins: Iterable[Pin],
    tab: Union[MapTab, str],
    include_hidden: bool = False,
) -> List[Pin]:
    """Pins shown on a map tab, ordered the way that tab lists them."""
    tab = coerce_tab(tab)
    if tab is MapTab.ALL:
        selected = [p for p in pins if include_hidden or not p.is_hidden]
    else:
        selected = [p for p in pins if not p.is_hidden and p.lifecycle_tab.value == tab.value]
    return _sort_for_tab(selected, tab)


def tab_counts(pins: Iterable[Pin]) -> Dict[str, int]:
    pins = list(pins)
    counts = {key: 0 for key in TAB_COUNT_KEYS}
    for pin in pins:
        if pin.is_hidden:
            counts["hidden"] += 1
            continue
        counts["all"] += 1
        if pin.lifecycle_tab is not LifecycleTab.HIDDEN:
            counts[pin.lifecycle_tab.value] += 1
    return counts


def is_expiring_soon(status: LifecycleStatus, config: Optional[LifecycleConfig] = None) -> bool:
    config = config or LifecycleConfig()
    if status.is_expiring:
        return True
    return (
        status.tab is LifecycleTab.RECENT
        and status.days_until_expiry is not None
        and status.days_until_expiry <= config.expiring_soon_days
    )


def lifecycle_statistics(
    pins: Iterable[Pin],
    statuses: Optional[Mapping[str, LifecycleStatus]] = None,
    config: Optional[LifecycleConfig] = None,
) -> Dict[str, int]:
    """
    Distribution of pins over tabs plus expiry counters.

    ``statuses`` are the classifier outputs from the last sweep; without them
    only the stored tabs are counted.
    """
    pins = list(pins)
    stats = {key: 0 for key in TAB_COUNT_KEYS}
    stats.update({"expiring": 0, "expiring_soon": 0, "total": len(pins)})
    if not pins:
        return stats
    frame = pd.DataFrame(
        {
            "tab": [LifecycleTab.HIDDEN.value if p.is_hidden else p.lifecycle_tab.value for p in pins],
            "id": [p.id for p in pins],
        }
    )
    for tab, count in frame["tab"].value_counts().items():
        stats[tab] = int(count)
    stats["all"] = stats["total"] - stats["hidden"]
    if statuses:
        known = [statuses[pid] for pid in frame["id"] if pid in statuses]
        stats["expiring"] = sum(1 for s in known if s.is_expiring)
        stats["expiring_soon"] = sum(1 for s in known if is_expiring_soon(s, config))
    return stats


def lifecycle_recommendations(
    status: LifecycleStatus, pin: Pin, config: Optional[LifecycleConfig] = None
) -> List[str]:
    tips: List[str] = []
    if status.state is LifecycleState.TRENDING:
        tips.append("Pin is trending! Keep the momentum going")
    if status.state in (LifecycleState.RECENT, LifecycleState.FADING, LifecycleState.EXPIRING):
        if status.days_until_classic:
            tips.append(f"Wait {status.days_until_classic} more days to qualify for Classics")
        if status.endorsements_until_classic:
            tips.append(f"Need {status.endorsements_until_classic} more endorsements to qualify for Classics")
    if status.state is LifecycleState.EXPIRING and status.days_until_expiry is not None:
        tips.append(f"Pin will be hidden in {status.days_until_expiry} days unless it is renewed")
    elif status.state is LifecycleState.RECENT and is_expiring_soon(status, config):
        tips.append("Pin leaves the Recent tab soon - consider renewing")
    if pin.downvotes > 0:
        tips.append(f"Pin has {pin.downvotes} downvotes - consider community feedback")
    return tips
