"""
Pin factories for tests and fixtures.

Pins are described relative to a reference time ("created 10 days ago, last
endorsed 2 days ago") so scenarios read the way the lifecycle rules do.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from .models import Coordinates, Pin
from .records import pin_to_record

REFERENCE_TIME = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
DEFAULT_COORDINATES = Coordinates(51.5074, -0.1278)


def make_pin(
    pin_id: str = "pin-1",
    age_days: float = 0.0,
    idle_days: Optional[float] = None,
    total: int = 1,
    recent: Optional[int] = None,
    downvotes: int = 0,
    reference_time: datetime = REFERENCE_TIME,
    **overrides: Any,
) -> Pin:
    """
    Build a pin ``age_days`` old at ``reference_time``.

    ``idle_days`` defaults to ``age_days`` (never endorsed after creation) and
    ``recent`` defaults to ``total``.
    """
    if idle_days is None:
        idle_days = age_days
    if recent is None:
        recent = total
    values: Dict[str, Any] = dict(
        id=pin_id,
        coordinates=DEFAULT_COORDINATES,
        created_at=reference_time - timedelta(days=age_days),
        last_endorsed_at=reference_time - timedelta(days=idle_days),
        total_endorsements=total,
        recent_endorsements=recent,
        downvotes=downvotes,
    )
    values.update(overrides)
    return Pin(**values)


def make_record(pin_id: str = "pin-1", **kwargs: Any) -> Dict[str, Any]:
    return pin_to_record(make_pin(pin_id, **kwargs))


def make_pins(count: int, prefix: str = "pin", **kwargs: Any) -> List[Pin]:
    return [make_pin(f"{prefix}-{i}", **kwargs) for i in range(count)]
