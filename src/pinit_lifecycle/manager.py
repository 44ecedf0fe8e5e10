"""
Pin management orchestrator consumed by the map UI.

Holds the current pin snapshot and the selected tab, runs maintenance sweeps
on demand or from a cooperative asyncio timer, and exposes the filtered views
and statistics the map and detail views render.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from .config import ConfigurationError, EngineConfig, ensure_reference_time
from .lifecycle import (
    classify_pin,
    coerce_tab,
    lifecycle_recommendations,
    lifecycle_statistics,
    pins_for_tab,
    tab_counts,
)
from .maintenance import is_maintenance_needed, maintenance_statistics, sweep
from .models import (
    LifecycleStatus,
    MaintenanceReport,
    MaintenanceStats,
    MapTab,
    Pin,
    ScoreInsights,
    SkippedRecord,
)
from .records import RecordLike, coerce_pins
from .scoring import compute_insights, score_recommendations

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PendingCheck:
    """A queued maintenance check; a later ``refresh`` invalidates it."""

    def __init__(self, manager: "PinManager", generation: int):
        self._manager = manager
        self._generation = generation

    @property
    def cancelled(self) -> bool:
        return self._generation != self._manager._generation

    def fire(self, reference_time: datetime) -> Optional[MaintenanceReport]:
        if self.cancelled:
            LOGGER.debug("Dropping maintenance check queued before the last refresh")
            return None
        return self._manager.tick(reference_time)


class PinManager:
    """
    Stateful coordinator over one in-memory pin snapshot.

    All calls are expected from a single event loop. The feature flag is read
    once from the config at construction; when it is off every derived view
    is empty and no sweep ever runs.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        clock: Optional[Clock] = None,
        snapshot: Optional[Iterable[RecordLike]] = None,
    ):
        config = config if config is not None else EngineConfig()
        if not isinstance(config, EngineConfig):
            raise ConfigurationError("config must be an EngineConfig")
        config.validate()
        if clock is not None and not callable(clock):
            raise ConfigurationError("clock must be callable")

        self._config = config
        self._clock: Clock = clock or utc_now
        self._enabled = bool(config.enabled)

        self._pins: List[Any] = []
        self._statuses: Dict[str, LifecycleStatus] = {}
        self._skipped: List[SkippedRecord] = []
        self._active_tab = MapTab.RECENT
        self._include_hidden = False
        self._last_sweep_at: Optional[datetime] = None
        self._last_report: Optional[MaintenanceReport] = None
        self._generation = 0
        self._timer_task: Optional[asyncio.Task] = None

        if snapshot is not None:
            self.refresh(snapshot)

    # ==================== STATE ====================

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def pins(self) -> List[Any]:
        return list(self._pins)

    @property
    def active_tab(self) -> MapTab:
        return self._active_tab

    @property
    def include_hidden(self) -> bool:
        return self._include_hidden

    @property
    def skipped(self) -> List[SkippedRecord]:
        return list(self._skipped)

    @property
    def last_sweep_at(self) -> Optional[datetime]:
        return self._last_sweep_at

    @property
    def last_report(self) -> Optional[MaintenanceReport]:
        return self._last_report

    @property
    def filtered_pins(self) -> List[Pin]:
        if not self._enabled:
            return []
        return pins_for_tab(self._pins, self._active_tab, self._include_hidden)

    @property
    def pin_counts(self) -> Dict[str, int]:
        return tab_counts(self._pins if self._enabled else [])

    @property
    def lifecycle_stats(self) -> Dict[str, int]:
        if not self._enabled:
            return lifecycle_statistics([])
        return lifecycle_statistics(self._pins, self._statuses, self._config.lifecycle)

    @property
    def maintenance_stats(self) -> Optional[MaintenanceStats]:
        return self.maintenance_stats_at(self._clock())

    def maintenance_stats_at(self, reference_time: datetime) -> Optional[MaintenanceStats]:
        if not self._enabled:
            return None
        return maintenance_statistics(
            self._pins, reference_time, self._last_sweep_at, self._config.maintenance
        )

    # ==================== OPERATIONS ====================

    def set_active_tab(self, tab: Union[MapTab, str], include_hidden: bool = False) -> None:
        self._active_tab = coerce_tab(tab)
        self._include_hidden = bool(include_hidden) and self._active_tab is MapTab.ALL

    def refresh(self, snapshot: Iterable[RecordLike]) -> None:
        """Replace the snapshot wholesale and invalidate queued checks."""
        self._generation += 1
        self._statuses = {}
        if not self._enabled:
            self._pins = list(snapshot)
            self._skipped = []
            return
        self._pins, self._skipped = coerce_pins(snapshot)
        LOGGER.debug("Snapshot refreshed: %d pins, %d skipped", len(self._pins), len(self._skipped))

    def trigger_maintenance(self, reference_time: datetime) -> Optional[MaintenanceReport]:
        if not self._enabled:
            LOGGER.debug("Map lifecycle disabled; maintenance not run")
            return None
        ensure_reference_time(reference_time)
        result = sweep(
            self._pins,
            reference_time,
            self._config.lifecycle,
            last_sweep_at=self._last_sweep_at,
            maintenance=self._config.maintenance,
        )
        self._pins = result.updated_pins
        self._statuses = result.statuses
        if result.skipped:
            self._skipped = self._skipped + result.skipped
        self._last_sweep_at = reference_time
        self._last_report = result.report
        return result.report

    def tick(self, reference_time: datetime) -> Optional[MaintenanceReport]:
        """Run maintenance if it is overdue at ``reference_time``."""
        if not self._enabled:
            return None
        ensure_reference_time(reference_time)
        if not is_maintenance_needed(self._last_sweep_at, reference_time, self._config.maintenance):
            return None
        LOGGER.info("Auto-triggering overdue maintenance")
        return self.trigger_maintenance(reference_time)

    def queue_maintenance_check(self) -> PendingCheck:
        return PendingCheck(self, self._generation)

    def get_pin(self, pin_id: str) -> Optional[Pin]:
        if not self._enabled:
            return None
        for pin in self._pins:
            if pin.id == pin_id:
                return pin
        return None

    def get_tab_pins(self, tab: Union[MapTab, str], include_hidden: bool = False) -> List[Pin]:
        tab = coerce_tab(tab)
        if not self._enabled:
            return []
        return pins_for_tab(self._pins, tab, include_hidden)

    def get_pin_insights(self, pin_id: str, reference_time: datetime) -> Optional[ScoreInsights]:
        pin = self.get_pin(pin_id)
        if pin is None:
            return None
        return compute_insights(pin, self._pins, reference_time, self._config.lifecycle)

    def get_recommendations(self, pin_id: str, reference_time: Optional[datetime] = None) -> List[str]:
        pin = self.get_pin(pin_id)
        if pin is None:
            return []
        if reference_time is None:
            reference_time = self._clock()
        ensure_reference_time(reference_time)
        lifecycle = self._config.lifecycle
        status = self._statuses.get(pin_id) or classify_pin(pin, reference_time, lifecycle)
        return lifecycle_recommendations(status, pin, lifecycle) + score_recommendations(
            pin, reference_time, lifecycle
        )

    # ==================== TIMER ====================

    @property
    def running(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    def start(self) -> None:
        """Start the auto-maintenance timer on the running event loop."""
        if not self._enabled or self.running:
            return
        self._timer_task = asyncio.create_task(self._run_timer())

    async def stop(self) -> None:
        task, self._timer_task = self._timer_task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _run_timer(self) -> None:
        interval = self._config.maintenance.tick_seconds
        LOGGER.debug("Auto-maintenance timer started (every %ss)", interval)
        while True:
            pending = self.queue_maintenance_check()
            await asyncio.sleep(interval)
            try:
                pending.fire(self._clock())
            except Exception:
                LOGGER.exception("Auto-maintenance tick failed; retrying next tick")

    async def __aenter__(self) -> "PinManager":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
