"""
Maintenance sweep: recompute every pin's derived fields in one pass.

The sweep is idempotent. Its output depends only on the pins' source fields,
the thresholds and the reference time, never on how often it has run.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence

from .config import LifecycleConfig, MaintenanceConfig, ensure_reference_time
from .lifecycle import classify
from .models import LifecycleTab, MaintenanceReport, MaintenanceStats, Pin, SweepResult
from .records import RecordLike, coerce_pins
from .scoring import score_pins
from .trending import hours_between

LOGGER = logging.getLogger(__name__)

STATUS_OVERDUE = "overdue"
STATUS_DUE_SOON = "due-soon"
STATUS_UP_TO_DATE = "up-to-date"


def sweep(
    records: Iterable[RecordLike],
    reference_time: datetime,
    config: Optional[LifecycleConfig] = None,
    last_sweep_at: Optional[datetime] = None,
    maintenance: Optional[MaintenanceConfig] = None,
) -> SweepResult:
    """
    Recompute ``score``, ``lifecycle_tab`` and ``is_hidden`` for a pin set.

    Args:
        records: Pins or raw persisted records; invalid ones are skipped
        reference_time: Instant the sweep is evaluated at
        config: Lifecycle thresholds
        last_sweep_at: When the previous sweep ran, for the staleness fields
        maintenance: Sweep cadence used to decide whether this run was overdue

    Returns:
        SweepResult with the updated pins, the report, skipped records and
        the classifier output per pin id
    """
    ensure_reference_time(reference_time)
    config = config or LifecycleConfig()
    maintenance = maintenance or MaintenanceConfig()

    pins, skipped = coerce_pins(records)
    LOGGER.info("Sweeping %d pins (%d skipped)", len(pins), len(skipped))

    report = MaintenanceReport(timestamp=reference_time, pins_processed=len(pins), skipped=len(skipped))
    if last_sweep_at is not None:
        ensure_reference_time(last_sweep_at, "last_sweep_at")
        report.hours_since_last_sweep = hours_between(last_sweep_at, reference_time)
        report.was_overdue = report.hours_since_last_sweep >= maintenance.interval_hours

    scores = score_pins(pins, reference_time, config)
    updated: List[Pin] = []
    statuses = {}
    for pin, score in zip(pins, scores):
        status = classify(pin, float(score), reference_time, config)
        hidden = status.tab is LifecycleTab.HIDDEN
        statuses[pin.id] = status
        updated.append(replace(pin, score=float(score), lifecycle_tab=status.tab, is_hidden=hidden))

        if hidden and not pin.is_hidden:
            report.pins_hidden += 1
        elif pin.is_hidden and not hidden:
            report.pins_restored += 1
        if status.tab is LifecycleTab.CLASSICS and pin.lifecycle_tab is not LifecycleTab.CLASSICS:
            report.new_classics += 1
        if status.tab is LifecycleTab.TRENDING and pin.lifecycle_tab is not LifecycleTab.TRENDING:
            report.new_trending += 1
        elif pin.lifecycle_tab is LifecycleTab.TRENDING and status.tab is not LifecycleTab.TRENDING:
            report.demoted_from_trending += 1

    LOGGER.info(
        "Sweep done: %d hidden, %d restored, %d new classics, %d new trending, %d demoted",
        report.pins_hidden,
        report.pins_restored,
        report.new_classics,
        report.new_trending,
        report.demoted_from_trending,
    )
    return SweepResult(updated_pins=updated, report=report, skipped=skipped, statuses=statuses)


def is_maintenance_needed(
    last_sweep_at: Optional[datetime],
    reference_time: datetime,
    config: Optional[MaintenanceConfig] = None,
) -> bool:
    config = config or MaintenanceConfig()
    if last_sweep_at is None:
        return True
    return hours_between(last_sweep_at, reference_time) >= config.interval_hours


def maintenance_statistics(
    pins: Sequence[Pin],
    reference_time: datetime,
    last_sweep_at: Optional[datetime] = None,
    config: Optional[MaintenanceConfig] = None,
) -> MaintenanceStats:
    """Schedule view of maintenance: when it last ran, when it is due next."""
    ensure_reference_time(reference_time)
    config = config or MaintenanceConfig()
    if last_sweep_at is None:
        return MaintenanceStats(
            total_pins=len(pins),
            needs_maintenance=len(pins),
            last_maintenance=None,
            next_maintenance=reference_time,
            status=STATUS_OVERDUE,
            is_overdue=True,
        )

    hours_since = hours_between(last_sweep_at, reference_time)
    next_maintenance = last_sweep_at + timedelta(hours=config.interval_hours)
    hours_until_next = config.interval_hours - hours_since
    is_overdue = hours_since >= config.interval_hours
    if is_overdue:
        status = STATUS_OVERDUE
    elif hours_until_next <= config.due_soon_hours:
        status = STATUS_DUE_SOON
    else:
        status = STATUS_UP_TO_DATE
    return MaintenanceStats(
        total_pins=len(pins),
        needs_maintenance=len(pins) if is_overdue else 0,
        last_maintenance=last_sweep_at,
        next_maintenance=next_maintenance,
        status=status,
        is_overdue=is_overdue,
        hours_since_last=hours_since,
    )
