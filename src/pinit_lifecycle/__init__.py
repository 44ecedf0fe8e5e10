"""
Pin lifecycle and trending score engine for the Pinit map.

The package provides utilities for:
    * scoring pins by decayed endorsement activity and ranking them,
    * classifying pins into the Recent / Trending / Classics / Hidden tabs,
    * running idempotent maintenance sweeps over a pin snapshot,
    * orchestrating the snapshot, tab views and auto-maintenance for the UI.

Everything is a pure function of the pins, the thresholds and an explicit
reference time, so it runs without a database connection.
"""

from .config import ConfigurationError, EngineConfig, LifecycleConfig, MaintenanceConfig
from .events import PinEventError, create_pin, downvote, endorse, endorse_place, renew
from .lifecycle import classify, classify_pin, lifecycle_statistics, pins_for_tab, tab_counts
from .maintenance import is_maintenance_needed, maintenance_statistics, sweep
from .manager import PendingCheck, PinManager
from .models import (
    Coordinates,
    LifecycleState,
    LifecycleStatus,
    LifecycleTab,
    MaintenanceReport,
    MaintenanceStats,
    MapTab,
    Pin,
    ScoreInsights,
    SkippedRecord,
    SweepResult,
    Trend,
)
from .records import dump_snapshot, load_snapshot, migrate_legacy_record, pin_from_record, pin_to_record
from .scoring import compute_insights, compute_score, compute_trend, predict_future_score, rank_pins

__all__ = [
    "ConfigurationError",
    "Coordinates",
    "EngineConfig",
    "LifecycleConfig",
    "LifecycleState",
    "LifecycleStatus",
    "LifecycleTab",
    "MaintenanceConfig",
    "MaintenanceReport",
    "MaintenanceStats",
    "MapTab",
    "PendingCheck",
    "Pin",
    "PinEventError",
    "PinManager",
    "ScoreInsights",
    "SkippedRecord",
    "SweepResult",
    "Trend",
    "classify",
    "classify_pin",
    "compute_insights",
    "compute_score",
    "compute_trend",
    "create_pin",
    "downvote",
    "dump_snapshot",
    "endorse",
    "endorse_place",
    "is_maintenance_needed",
    "lifecycle_statistics",
    "load_snapshot",
    "maintenance_statistics",
    "migrate_legacy_record",
    "pin_from_record",
    "pin_to_record",
    "pins_for_tab",
    "predict_future_score",
    "rank_pins",
    "renew",
    "sweep",
    "tab_counts",
]
