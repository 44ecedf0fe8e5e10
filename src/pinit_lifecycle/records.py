"""
Boundary between persisted pin records and in-memory ``Pin`` objects.

The key-value store hands back whatever it holds, including records that fail
the pin invariants. Records are validated here; bad ones are reported as
``SkippedRecord`` entries instead of raising.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .models import Coordinates, LifecycleTab, Pin, SkippedRecord
from .trending import days_between

LOGGER = logging.getLogger(__name__)

RecordLike = Union[Pin, Mapping[str, Any]]

GOOGLE_TYPE_CATEGORIES: Dict[str, str] = {
    "restaurant": "restaurant",
    "cafe": "coffee",
    "bar": "bar",
    "museum": "museum",
    "park": "park",
    "shopping_mall": "shopping",
    "art_gallery": "museum",
    "amusement_park": "park",
    "zoo": "park",
    "aquarium": "museum",
    "lodging": "hotel",
}

CATEGORY_TAGS = ("coffee", "restaurant", "museum", "park", "shopping", "hotel", "bar", "cafe")

TEXT_CATEGORY_HINTS: Sequence[Tuple[Tuple[str, ...], str]] = (
    (("coffee", "cafe"), "coffee"),
    (("restaurant", "food"), "restaurant"),
    (("museum", "gallery"), "museum"),
    (("park", "garden"), "park"),
    (("shopping", "mall"), "shopping"),
    (("hotel", "accommodation"), "hotel"),
    (("bar", "pub"), "bar"),
)


def _as_utc(value: datetime) -> datetime:
    # records written without an offset were produced in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _field(camel: str, snake: str, default: Any = ..., **kwargs: Any):
    return Field(
        default,
        validation_alias=AliasChoices(camel, snake),
        serialization_alias=camel,
        **kwargs,
    )


class PinRecord(BaseModel):
    """Persisted shape of a pin (camelCase keys, ISO-8601 timestamps)."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    external_place_id: Optional[str] = _field("externalPlaceId", "external_place_id", None)
    latitude: float = Field(ge=-90, le=90, validation_alias=AliasChoices("latitude", "lat"))
    longitude: float = Field(ge=-180, le=180, validation_alias=AliasChoices("longitude", "lng", "lon"))
    category: str = "general"
    created_at: datetime = _field("createdAt", "created_at")
    last_endorsed_at: datetime = _field("lastEndorsedAt", "last_endorsed_at")
    total_endorsements: int = _field("totalEndorsements", "total_endorsements", 1, ge=0)
    recent_endorsements: int = _field("recentEndorsements", "recent_endorsements", 1, ge=0)
    downvotes: int = Field(0, ge=0)
    score: float = 0.0
    lifecycle_tab: LifecycleTab = _field("lifecycleTab", "lifecycle_tab", LifecycleTab.RECENT)
    is_hidden: bool = _field("isHidden", "is_hidden", False)

    @field_validator("created_at", "last_endorsed_at")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)

    # derived fields: every sweep rewrites them, unreadable values fall back
    # to their defaults

    @field_validator("score", mode="before")
    @classmethod
    def lenient_score(cls, value: Any) -> float:
        try:
            score = float(value)
        except (TypeError, ValueError):
            return 0.0
        return score if math.isfinite(score) and score >= 0 else 0.0

    @field_validator("lifecycle_tab", mode="before")
    @classmethod
    def lenient_tab(cls, value: Any) -> LifecycleTab:
        try:
            return LifecycleTab(value)
        except (TypeError, ValueError):
            return LifecycleTab.RECENT

    @field_validator("is_hidden", mode="before")
    @classmethod
    def lenient_hidden(cls, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in {"1", "true", "yes"}

    @model_validator(mode="after")
    def check_invariants(self) -> "PinRecord":
        if self.last_endorsed_at < self.created_at:
            raise ValueError("lastEndorsedAt is earlier than createdAt")
        if self.recent_endorsements > self.total_endorsements:
            raise ValueError("recentEndorsements exceeds totalEndorsements")
        return self

    def to_pin(self) -> Pin:
        return Pin(
            id=self.id,
            coordinates=Coordinates(self.latitude, self.longitude),
            created_at=self.created_at,
            last_endorsed_at=self.last_endorsed_at,
            total_endorsements=self.total_endorsements,
            recent_endorsements=self.recent_endorsements,
            downvotes=self.downvotes,
            category=self.category,
            external_place_id=self.external_place_id,
            score=self.score,
            lifecycle_tab=self.lifecycle_tab,
            is_hidden=self.is_hidden,
        )

    @classmethod
    def from_pin(cls, pin: Pin) -> "PinRecord":
        return cls.model_validate(
            {
                "id": pin.id,
                "external_place_id": pin.external_place_id,
                "latitude": pin.coordinates.latitude,
                "longitude": pin.coordinates.longitude,
                "category": pin.category,
                "created_at": pin.created_at,
                "last_endorsed_at": pin.last_endorsed_at,
                "total_endorsements": pin.total_endorsements,
                "recent_endorsements": pin.recent_endorsements,
                "downvotes": pin.downvotes,
                "score": pin.score,
                "lifecycle_tab": pin.lifecycle_tab,
                "is_hidden": pin.is_hidden,
            }
        )


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(parts)


def pin_from_record(record: Mapping[str, Any]) -> Pin:
    """Raises ``pydantic.ValidationError`` for records that fail validation."""
    return PinRecord.model_validate(dict(record)).to_pin()


def pin_to_record(pin: Pin) -> Dict[str, Any]:
    return PinRecord.from_pin(pin).model_dump(mode="json", by_alias=True)


def pin_problems(pin: Pin) -> List[str]:
    """Invariant violations of an in-memory pin; empty when the pin is valid."""
    problems: List[str] = []
    if not pin.id:
        problems.append("id is required")
    for name in ("created_at", "last_endorsed_at"):
        value = getattr(pin, name)
        if not isinstance(value, datetime):
            problems.append(f"{name} is required")
        elif value.tzinfo is None:
            problems.append(f"{name} must be timezone-aware")
    for name in ("total_endorsements", "recent_endorsements", "downvotes"):
        value = getattr(pin, name)
        if not isinstance(value, int) or value < 0:
            problems.append(f"{name} must be a non-negative integer")
    if problems:
        return problems
    if pin.last_endorsed_at < pin.created_at:
        problems.append("last_endorsed_at is earlier than created_at")
    if pin.recent_endorsements > pin.total_endorsements:
        problems.append("recent_endorsements exceeds total_endorsements")
    coords = pin.coordinates
    if coords is None or not (-90 <= coords.latitude <= 90 and -180 <= coords.longitude <= 180):
        problems.append("coordinates are out of range")
    return problems


def _record_id(record: Any) -> Optional[str]:
    if isinstance(record, Pin):
        return record.id or None
    if isinstance(record, Mapping):
        value = record.get("id")
        return str(value) if value else None
    return None


def coerce_pins(records: Iterable[RecordLike]) -> Tuple[List[Pin], List[SkippedRecord]]:
    """
    Turn a mixed sequence of ``Pin`` objects and raw records into valid pins.

    Returns:
        (valid pins in input order, skipped records with their reasons)
    """
    pins: List[Pin] = []
    skipped: List[SkippedRecord] = []
    seen = set()
    for index, record in enumerate(records):
        pin_id = _record_id(record)
        reason = None
        pin = None
        if isinstance(record, Pin):
            problems = pin_problems(record)
            if problems:
                reason = "; ".join(problems)
            else:
                pin = record
        elif isinstance(record, Mapping):
            try:
                pin = pin_from_record(record)
            except ValidationError as exc:
                reason = _format_validation_error(exc)
        else:
            reason = f"unsupported record type {type(record).__name__}"

        if pin is not None and pin.id in seen:
            pin, reason = None, "duplicate id"
        if pin is None:
            LOGGER.warning("Skipping pin record #%d (%s): %s", index, pin_id, reason)
            skipped.append(SkippedRecord(index=index, pin_id=pin_id, reason=reason))
            continue
        seen.add(pin.id)
        pins.append(pin)
    return pins, skipped


def load_snapshot(records: Iterable[RecordLike]) -> Tuple[List[Pin], List[SkippedRecord]]:
    return coerce_pins(records)


def dump_snapshot(pins: Iterable[Pin]) -> List[Dict[str, Any]]:
    return [pin_to_record(p) for p in pins]


def validate_collection(records: Iterable[RecordLike]) -> Dict[str, Any]:
    records = list(records)
    pins, skipped = coerce_pins(records)
    return {
        "total": len(records),
        "valid": len(pins),
        "invalid": len(skipped),
        "errors": [{"index": s.index, "id": s.pin_id, "reason": s.reason} for s in skipped],
    }


def determine_category(record: Mapping[str, Any]) -> str:
    types = record.get("types") or []
    if types:
        return GOOGLE_TYPE_CATEGORIES.get(str(types[0]), "general")
    for tag in record.get("tags") or []:
        if str(tag).lower() in CATEGORY_TAGS:
            return str(tag).lower()
    text = f"{record.get('title', '')} {record.get('description') or ''}".lower()
    for hints, category in TEXT_CATEGORY_HINTS:
        if any(h in text for h in hints):
            return category
    return "general"


def migrate_legacy_record(
    record: Mapping[str, Any],
    reference_time: datetime,
    recent_window_days: float = 7.0,
) -> Dict[str, Any]:
    """
    Upgrade a record written before the lifecycle fields existed.

    Legacy records carry a ``timestamp`` instead of ``createdAt`` and no
    endorsement counters. The creator counts as the single endorsement.
    Records that already have ``createdAt`` are returned unchanged (copied).
    """
    migrated = dict(record)
    if "createdAt" in migrated or "created_at" in migrated:
        return migrated
    created_raw = migrated.get("timestamp")
    if created_raw is None:
        # nothing to derive from; validation reports it later
        return migrated
    if isinstance(created_raw, datetime):
        created = _as_utc(created_raw)
    else:
        try:
            created = _as_utc(datetime.fromisoformat(str(created_raw).replace("Z", "+00:00")))
        except ValueError:
            LOGGER.warning("Legacy record %s has an unreadable timestamp %r", migrated.get("id"), created_raw)
            return migrated
    recent = 1 if days_between(created, reference_time) <= recent_window_days else 0
    migrated.update(
        {
            "createdAt": created.isoformat(),
            "lastEndorsedAt": migrated.get("lastEndorsedAt") or created.isoformat(),
            "externalPlaceId": migrated.get("externalPlaceId") or migrated.get("googlePlaceId"),
            "category": migrated.get("category") or determine_category(migrated),
            "totalEndorsements": migrated.get("totalEndorsements", 1),
            "recentEndorsements": migrated.get("recentEndorsements", recent),
            "downvotes": migrated.get("downvotes", 0),
            "isHidden": migrated.get("isHidden", False),
        }
    )
    migrated.pop("timestamp", None)
    return migrated
