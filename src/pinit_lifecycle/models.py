from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class LifecycleTab(str, Enum):
    """Stored classification bucket of a pin."""

    RECENT = "recent"
    TRENDING = "trending"
    CLASSICS = "classics"
    HIDDEN = "hidden"


class MapTab(str, Enum):
    """Views a caller can select; ``ALL`` is a view, never a stored tab."""

    RECENT = "recent"
    TRENDING = "trending"
    CLASSICS = "classics"
    ALL = "all"


class LifecycleState(str, Enum):
    RECENT = "recent"
    TRENDING = "trending"
    CLASSIC = "classic"
    FADING = "fading"
    EXPIRING = "expiring"
    HIDDEN = "hidden"


class Trend(str, Enum):
    RISING = "rising"
    FALLING = "falling"
    STABLE = "stable"


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class Pin:
    """A user-created geo pin.

    ``score``, ``lifecycle_tab`` and ``is_hidden`` are derived fields: only the
    maintenance sweep produces new values for them.
    """

    id: str
    coordinates: Coordinates
    created_at: datetime
    last_endorsed_at: datetime
    total_endorsements: int = 1
    recent_endorsements: int = 1
    downvotes: int = 0
    category: str = "general"
    external_place_id: Optional[str] = None
    score: float = 0.0
    lifecycle_tab: LifecycleTab = LifecycleTab.RECENT
    is_hidden: bool = False


@dataclass(frozen=True)
class ScoreInsights:
    percentile: float
    rank: int
    total_pins: int
    trend: Trend
    score: float = 0.0
    is_trending: bool = False


@dataclass(frozen=True)
class LifecycleStatus:
    tab: LifecycleTab
    state: LifecycleState
    reason: str
    score: float
    days_until_expiry: Optional[int] = None
    days_until_classic: Optional[int] = None
    endorsements_until_classic: Optional[int] = None

    @property
    def is_expiring(self) -> bool:
        return self.state is LifecycleState.EXPIRING


@dataclass(frozen=True)
class SkippedRecord:
    index: int
    pin_id: Optional[str]
    reason: str


@dataclass
class MaintenanceReport:
    timestamp: datetime
    pins_processed: int = 0
    pins_hidden: int = 0
    pins_restored: int = 0
    new_classics: int = 0
    new_trending: int = 0
    demoted_from_trending: int = 0
    skipped: int = 0
    hours_since_last_sweep: Optional[float] = None
    was_overdue: bool = True

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data


@dataclass(frozen=True)
class MaintenanceStats:
    total_pins: int
    needs_maintenance: int
    last_maintenance: Optional[datetime]
    next_maintenance: datetime
    status: str
    is_overdue: bool
    hours_since_last: Optional[float] = None


@dataclass
class SweepResult:
    updated_pins: List[Pin]
    report: MaintenanceReport
    skipped: List[SkippedRecord] = field(default_factory=list)
    statuses: Dict[str, LifecycleStatus] = field(default_factory=dict)

    def __iter__(self):
        # allows ``pins, report = sweep(...)``
        return iter((self.updated_pins, self.report))

