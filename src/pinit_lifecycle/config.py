from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Dict, Optional

from dotenv import load_dotenv


ENV_PREFIX = "PINIT_MAP_"
FEATURE_FLAG_ENV = "PINIT_FEATURE_MAP_LIFECYCLE"


class ConfigurationError(ValueError):
    """Raised for threshold bundles or reference times a caller got wrong."""


@dataclass
class LifecycleConfig:
    """Thresholds shared by the score calculator, classifier and sweep."""

    recent_window_days: float = 7.0
    trending_score_floor: float = 2.0
    classic_endorsement_min: int = 10
    classic_age_days: float = 180.0
    expiry_grace_days: float = 30.0
    downvote_hide_threshold: int = 10
    decay_half_life_hours: float = 72.0

    trending_window_days: float = 14.0
    trending_min_burst_ratio: float = 0.5
    expiry_score_floor: float = 0.5
    baseline_weight: float = 0.25
    baseline_half_life_multiplier: float = 12.0
    downvote_penalty: float = 0.1
    downvote_hide_ratio: float = 0.5
    trend_lookback_hours: float = 24.0
    trend_tolerance: float = 0.05
    expiring_soon_days: float = 7.0

    def validate(self) -> "LifecycleConfig":
        positive = (
            "recent_window_days",
            "classic_age_days",
            "expiry_grace_days",
            "decay_half_life_hours",
            "trending_window_days",
            "baseline_half_life_multiplier",
            "trend_lookback_hours",
        )
        for name in positive:
            _require(getattr(self, name) > 0, f"{name} must be positive")
        non_negative = (
            "trending_score_floor",
            "expiry_score_floor",
            "baseline_weight",
            "downvote_penalty",
            "trend_tolerance",
            "expiring_soon_days",
            "downvote_hide_ratio",
        )
        for name in non_negative:
            _require(getattr(self, name) >= 0, f"{name} must not be negative")
        _require(
            0.0 <= self.trending_min_burst_ratio <= 1.0,
            "trending_min_burst_ratio must lie in [0, 1]",
        )
        _require(self.classic_endorsement_min >= 1, "classic_endorsement_min must be at least 1")
        _require(self.downvote_hide_threshold >= 1, "downvote_hide_threshold must be at least 1")
        return self


@dataclass
class MaintenanceConfig:
    """How often the sweep should run and how often the orchestrator checks."""

    interval_hours: float = 24.0
    due_soon_hours: float = 6.0
    tick_seconds: float = 30.0

    def validate(self) -> "MaintenanceConfig":
        _require(self.interval_hours > 0, "interval_hours must be positive")
        _require(self.tick_seconds > 0, "tick_seconds must be positive")
        _require(
            0 <= self.due_soon_hours <= self.interval_hours,
            "due_soon_hours must lie between 0 and interval_hours",
        )
        return self


@dataclass
class EngineConfig:
    lifecycle: LifecycleConfig = field(default_factory=LifecycleConfig)
    maintenance: MaintenanceConfig = field(default_factory=MaintenanceConfig)
    enabled: bool = False

    def validate(self) -> "EngineConfig":
        if not isinstance(self.lifecycle, LifecycleConfig):
            raise ConfigurationError("lifecycle must be a LifecycleConfig")
        if not isinstance(self.maintenance, MaintenanceConfig):
            raise ConfigurationError("maintenance must be a MaintenanceConfig")
        self.lifecycle.validate()
        self.maintenance.validate()
        return self

    @classmethod
    def from_env(cls, env: Optional[Dict[str, str]] = None) -> "EngineConfig":
        """Build a config from ``PINIT_MAP_*`` variables.

        When ``env`` is omitted a ``.env`` file is loaded first and the process
        environment is used. Every lifecycle and maintenance field can be
        overridden by its upper-cased name, e.g. ``PINIT_MAP_RECENT_WINDOW_DAYS``
        or ``PINIT_MAP_INTERVAL_HOURS``.
        """
        if env is None:
            load_dotenv()
            env = dict(os.environ)
        lifecycle = _overrides(LifecycleConfig, env)
        maintenance = _overrides(MaintenanceConfig, env)
        enabled = _parse_bool(env.get(FEATURE_FLAG_ENV, "false"), FEATURE_FLAG_ENV)
        return cls(
            lifecycle=LifecycleConfig(**lifecycle),
            maintenance=MaintenanceConfig(**maintenance),
            enabled=enabled,
        ).validate()


def ensure_reference_time(value: datetime, name: str = "reference_time") -> datetime:
    if not isinstance(value, datetime):
        raise ConfigurationError(f"{name} must be a datetime, got {type(value).__name__}")
    if value.tzinfo is None or value.utcoffset() is None:
        raise ConfigurationError(f"{name} must be timezone-aware")
    return value


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise ConfigurationError(message)


def _overrides(config_cls, env: Dict[str, str]) -> Dict[str, object]:
    values: Dict[str, object] = {}
    for f in fields(config_cls):
        key = f"{ENV_PREFIX}{f.name.upper()}"
        raw = env.get(key)
        if raw is None or raw.strip() == "":
            continue
        caster = int if isinstance(f.default, int) and not isinstance(f.default, bool) else float
        try:
            values[f.name] = caster(raw)
        except ValueError as exc:
            raise ConfigurationError(f"{key}={raw!r} is not a valid {caster.__name__}") from exc
    return values


def _parse_bool(raw: str, key: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off", ""}:
        return False
    raise ConfigurationError(f"{key}={raw!r} is not a boolean")
