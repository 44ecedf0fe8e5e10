"""
User-driven pin mutations: creation, endorsement, renewal and downvotes.

Each function returns a new ``Pin``. None of them touches ``score``,
``lifecycle_tab`` or ``is_hidden``; those only change on the next sweep.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Callable, List, Optional, Sequence, Tuple

from .config import ensure_reference_time
from .models import Coordinates, Pin

LOGGER = logging.getLogger(__name__)

ACTION_CREATED = "created"
ACTION_UPDATED = "updated"


class PinEventError(ValueError):
    """Raised when an event cannot be applied to a pin."""


def new_pin_id() -> str:
    return f"place_{uuid.uuid4().hex[:12]}"


def _check_event_time(pin: Pin, at: datetime) -> datetime:
    ensure_reference_time(at, "at")
    if at < pin.created_at:
        raise PinEventError(f"Event at {at.isoformat()} predates pin {pin.id} creation")
    return at


def create_pin(
    pin_id: str,
    coordinates: Coordinates,
    created_at: datetime,
    category: str = "general",
    external_place_id: Optional[str] = None,
) -> Pin:
    ensure_reference_time(created_at, "created_at")
    if not pin_id:
        raise PinEventError("pin_id is required")
    return Pin(
        id=pin_id,
        coordinates=coordinates,
        created_at=created_at,
        last_endorsed_at=created_at,
        total_endorsements=1,
        recent_endorsements=1,
        downvotes=0,
        category=category or "general",
        external_place_id=external_place_id,
    )


def endorse(pin: Pin, at: datetime) -> Pin:
    at = _check_event_time(pin, at)
    return replace(
        pin,
        total_endorsements=pin.total_endorsements + 1,
        recent_endorsements=pin.recent_endorsements + 1,
        last_endorsed_at=max(pin.last_endorsed_at, at),
    )


def renew(pin: Pin, at: datetime) -> Pin:
    """Re-affirm a pin without adding a lifetime endorsement."""
    at = _check_event_time(pin, at)
    return replace(
        pin,
        recent_endorsements=min(pin.recent_endorsements + 1, pin.total_endorsements),
        last_endorsed_at=max(pin.last_endorsed_at, at),
    )


def downvote(pin: Pin, at: datetime) -> Pin:
    _check_event_time(pin, at)
    return replace(pin, downvotes=pin.downvotes + 1)


def endorse_place(
    pins: Sequence[Pin],
    external_place_id: str,
    coordinates: Coordinates,
    at: datetime,
    category: str = "general",
    id_factory: Callable[[], str] = new_pin_id,
) -> Tuple[List[Pin], Pin, str]:
    """
    Endorse the pin for an external place, creating it on first endorsement.

    Returns:
        (new pin list, the endorsed or created pin, "created" or "updated")
    """
    if not external_place_id:
        raise PinEventError("external_place_id is required")
    for index, pin in enumerate(pins):
        if pin.external_place_id == external_place_id:
            updated = endorse(pin, at)
            result = list(pins)
            result[index] = updated
            LOGGER.debug("Endorsed existing pin %s for place %s", pin.id, external_place_id)
            return result, updated, ACTION_UPDATED

    created = create_pin(id_factory(), coordinates, at, category, external_place_id)
    LOGGER.debug("Created pin %s for place %s", created.id, external_place_id)
    return [*pins, created], created, ACTION_CREATED


def apply_to(pins: Sequence[Pin], pin_id: str, event: Callable[[Pin, datetime], Pin], at: datetime) -> List[Pin]:
    """Apply ``event`` to the pin with ``pin_id`` inside a snapshot."""
    result = list(pins)
    for index, pin in enumerate(result):
        if pin.id == pin_id:
            result[index] = event(pin, at)
            return result
    raise PinEventError(f"Unknown pin {pin_id!r}")
