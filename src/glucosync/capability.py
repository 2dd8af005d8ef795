"""Structural interfaces consumed by the sync engine.

The engine never talks to a health platform directly. It calls into these
protocols, so a companion bridge, a platform binding or a test double can be
passed in interchangeably.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Protocol

from glucosync.models import (
    AuthorizationState,
    DeletedSample,
    ExternalSample,
    ExternalSampleDraft,
    GlucoseSample,
    SampleKind,
    UpdateFrequency,
)

ChangeCallback = Callable[[Exception | None], None]
"""Called by a store on every change notification, with the observer error if any.

May be invoked from any thread.
"""


class Subscription(Protocol):
    """Handle returned by :meth:`SampleStore.subscribe`."""

    def cancel(self) -> None: ...


class CapabilityGate(Protocol):
    """Availability and authorization checks for the external store."""

    async def is_capable(self) -> bool: ...

    async def has_sample_kind(self, kind: SampleKind) -> bool: ...

    async def authorization_state(self, kind: SampleKind) -> AuthorizationState: ...

    async def request_authorization(self, kinds: Sequence[SampleKind]) -> bool: ...


class SampleStore(Protocol):
    """Writes, queries and change subscriptions against the external store."""

    async def write(self, kind: SampleKind, draft: ExternalSampleDraft) -> bool: ...

    def subscribe(self, kind: SampleKind, on_change: ChangeCallback) -> Subscription: ...

    async def query_added(self, kind: SampleKind, start: datetime) -> list[ExternalSample]:
        """Samples whose start date is ``>= start`` (no upper bound)."""
        ...

    async def query_removed(self, kind: SampleKind, start: datetime) -> list[DeletedSample]:
        """Samples deleted from the store since *start*; only identity is reported."""
        ...

    async def enable_background_delivery(self, kind: SampleKind, frequency: UpdateFrequency) -> bool: ...


class GlucoseRepository(Protocol):
    """The application's own durable glucose history."""

    async def store_glucose(self, samples: Sequence[GlucoseSample]) -> None: ...

    async def remove_glucose(self, identifiers: Sequence[str]) -> None: ...
