"""Base model and enums shared by glucosync models.

Every wire-facing model inherits from :class:`GlucoBaseModel` which
provides:

* ``alias_generator=to_camel`` so camelCase bridge keys map
  automatically to snake_case fields.
* ``populate_by_name`` so tests and callers can use field names.
* Frozen instances, so models are hashable and safe to share across
  notification cycles.

Timestamps go through :data:`UtcTimestamp`, which accepts ISO-8601
strings, epoch seconds or epoch milliseconds and always yields a
timezone-aware UTC datetime.
"""

from __future__ import annotations

import enum
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict
from pydantic.alias_generators import to_camel

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


def parse_timestamp(value: Any) -> datetime:
    """Convert an ISO string or epoch number (seconds **or** milliseconds) to a UTC datetime.

    Naive datetimes are assumed to already be in UTC.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        ts = float(value)
        if ts >= _MS_THRESHOLD:
            ts /= 1000.0
        try:
            dt = datetime.fromtimestamp(ts, tz=UTC)
        except (OverflowError, OSError) as exc:
            raise ValueError(f"timestamp out of range: {value!r}") from exc
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = f"{text[:-1]}+00:00"
        dt = datetime.fromisoformat(text)
    else:
        raise ValueError(f"unsupported timestamp value: {value!r}")

    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


UtcTimestamp = Annotated[datetime, BeforeValidator(parse_timestamp)]
"""Annotated type that coerces ISO strings and epoch numbers to UTC datetimes."""


def round_mg_dl(value: float) -> int:
    """Round a mg/dL reading to the nearest integer, halves away from zero."""
    return int(Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


class SampleKind(enum.StrEnum):
    """Sample kinds this library synchronizes."""

    BLOOD_GLUCOSE = "blood_glucose"


class SampleOrigin(enum.StrEnum):
    """Who entered a glucose sample."""

    USER_ENTERED = "user_entered"
    DEVICE_ENTERED = "device_entered"


class AuthorizationState(enum.StrEnum):
    """Authorization status of a sample kind.

    Values without a mapped member resolve to ``UNDETERMINED`` instead of
    raising ``ValueError``; only ``AUTHORIZED`` grants access.
    """

    AUTHORIZED = "authorized"
    DENIED = "denied"
    UNDETERMINED = "undetermined"

    @classmethod
    def _missing_(cls, value: object) -> AuthorizationState:
        return cls.UNDETERMINED

    @property
    def is_authorized(self) -> bool:
        return self is AuthorizationState.AUTHORIZED


class UpdateFrequency(enum.StrEnum):
    """Background delivery frequency requested from the external store."""

    IMMEDIATE = "immediate"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"


class GlucoBaseModel(BaseModel):
    """Base for glucosync models exchanged with an external store."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )
