from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest

from glucosync._constants import METADATA_APP_PROVENANCE, METADATA_SYNC_IDENTIFIER
from glucosync.capability import ChangeCallback
from glucosync.config import SyncConfig
from glucosync.models import (
    AuthorizationState,
    DeletedSample,
    ExternalSample,
    ExternalSampleDraft,
    GlucoseSample,
    SampleKind,
    UpdateFrequency,
)

NOW = datetime(2026, 1, 2, 12, 0, tzinfo=UTC)


def external(
    uuid: str,
    *,
    minutes_ago: float = 30,
    value: float = 100.0,
    user_entered: bool = True,
    sync_id: str | None = None,
    from_app: bool = False,
) -> ExternalSample:
    metadata: dict[str, Any] = {}
    if sync_id is not None:
        metadata[METADATA_SYNC_IDENTIFIER] = sync_id
    if from_app:
        metadata[METADATA_APP_PROVENANCE] = True
    return ExternalSample(
        uuid=uuid,
        start_date=NOW - timedelta(minutes=minutes_ago),
        value=value,
        was_user_entered=user_entered,
        metadata=metadata,
    )


@dataclass(eq=False)
class FakeSubscription:
    callback: ChangeCallback
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class FakeHealthStore:
    capable: bool = True
    kinds: set[SampleKind] = field(default_factory=lambda: {SampleKind.BLOOD_GLUCOSE})
    state: AuthorizationState = AuthorizationState.AUTHORIZED
    grant: bool = True
    grant_error: Exception | None = None
    added: list[ExternalSample] = field(default_factory=list)
    removed: list[DeletedSample] = field(default_factory=list)
    added_error: Exception | None = None
    removed_error: Exception | None = None
    fail_writes: set[str] = field(default_factory=set)
    reject_writes: set[str] = field(default_factory=set)
    writes: list[ExternalSampleDraft] = field(default_factory=list)
    write_kinds: list[SampleKind] = field(default_factory=list)
    subscriptions: list[FakeSubscription] = field(default_factory=list)
    background_calls: list[tuple[SampleKind, UpdateFrequency]] = field(default_factory=list)
    background_ok: bool = True
    background_error: Exception | None = None
    query_starts: list[datetime] = field(default_factory=list)

    async def is_capable(self) -> bool:
        return self.capable

    async def has_sample_kind(self, kind: SampleKind) -> bool:
        return kind in self.kinds

    async def authorization_state(self, kind: SampleKind) -> AuthorizationState:
        return self.state

    async def request_authorization(self, kinds: Sequence[SampleKind]) -> bool:
        if self.grant_error is not None:
            raise self.grant_error
        if self.grant:
            self.state = AuthorizationState.AUTHORIZED
        return self.grant

    async def write(self, kind: SampleKind, draft: ExternalSampleDraft) -> bool:
        if draft.identifier in self.fail_writes:
            raise RuntimeError(f"store write failed for {draft.identifier}")
        if draft.identifier in self.reject_writes:
            return False
        self.writes.append(draft)
        self.write_kinds.append(kind)
        return True

    def subscribe(self, kind: SampleKind, on_change: ChangeCallback) -> FakeSubscription:
        subscription = FakeSubscription(callback=on_change)
        self.subscriptions.append(subscription)
        return subscription

    def fire(self, error: Exception | None = None) -> None:
        for subscription in self.subscriptions:
            if not subscription.cancelled:
                subscription.callback(error)

    async def query_added(self, kind: SampleKind, start: datetime) -> list[ExternalSample]:
        self.query_starts.append(start)
        if self.added_error is not None:
            raise self.added_error
        return [s for s in self.added if s.start_date >= start]

    async def query_removed(self, kind: SampleKind, start: datetime) -> list[DeletedSample]:
        if self.removed_error is not None:
            raise self.removed_error
        return list(self.removed)

    async def enable_background_delivery(self, kind: SampleKind, frequency: UpdateFrequency) -> bool:
        self.background_calls.append((kind, frequency))
        if self.background_error is not None:
            raise self.background_error
        return self.background_ok


@dataclass
class FakeRepository:
    store_calls: list[list[GlucoseSample]] = field(default_factory=list)
    remove_calls: list[list[str]] = field(default_factory=list)
    fail_after: int | None = None

    @property
    def stored(self) -> list[GlucoseSample]:
        return [sample for call in self.store_calls for sample in call]

    async def store_glucose(self, samples: Sequence[GlucoseSample]) -> None:
        if self.fail_after is not None and len(self.store_calls) >= self.fail_after:
            raise RuntimeError("repository unavailable")
        self.store_calls.append(list(samples))

    async def remove_glucose(self, identifiers: Sequence[str]) -> None:
        self.remove_calls.append(list(identifiers))


@pytest.fixture
def store() -> FakeHealthStore:
    return FakeHealthStore()


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def ledger_path(tmp_path: Path) -> Path:
    return tmp_path / "ledger" / "downloaded_glucose.json"


@pytest.fixture
def config(ledger_path: Path) -> SyncConfig:
    return SyncConfig(ledger_path=ledger_path)
