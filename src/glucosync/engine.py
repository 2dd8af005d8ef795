"""Bidirectional glucose synchronization engine."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Any, cast

from glucosync.capability import CapabilityGate, GlucoseRepository, SampleStore, Subscription
from glucosync.config import SyncConfig
from glucosync.exceptions import (
    AuthorizationDeniedError,
    AuthorizationRequestError,
    NotAvailableError,
    ObserverError,
    SampleTypeUnavailableError,
)
from glucosync.ledger import DownloadedSampleLedger
from glucosync.models import GlucoseSample, LedgerEntry, MergeReport, WriteResult
from glucosync.outbound import OutboundWriter
from glucosync.sync import deletion_identifiers, plan_addition, prune_ledger, window_start

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SyncEngine:
    """Keeps the application's glucose history and an external store in sync.

    Usage::

        async with SyncEngine(store, repository, config=SyncConfig()) as engine:
            if not await engine.is_authorized():
                await engine.request_permission()
            await engine.save(samples)

    Outbound, :meth:`save` writes local readings to the external store.
    Inbound, every change notification from the store runs one cycle: a
    deletion merge followed by an addition merge over the trailing window.
    Cycles are serialized by a lock owned by this engine, so use one engine
    per external store.
    """

    def __init__(
        self,
        store: SampleStore,
        repository: GlucoseRepository,
        *,
        gate: CapabilityGate | None = None,
        config: SyncConfig | None = None,
        ledger: DownloadedSampleLedger | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._repository = repository
        self._gate: CapabilityGate = gate if gate is not None else cast(CapabilityGate, store)
        self._config = config or SyncConfig()
        self._ledger = ledger or DownloadedSampleLedger(self._config.ledger_path)
        self._clock = clock
        self._writer = OutboundWriter(store, kind=self._config.sample_kind)
        self._lock = asyncio.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._subscription: Subscription | None = None
        self._tasks: set[asyncio.Task[MergeReport]] = set()
        self._started = False

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> SyncEngine:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    @property
    def config(self) -> SyncConfig:
        return self._config

    @property
    def is_observing(self) -> bool:
        """Whether a change subscription is registered."""
        return self._subscription is not None

    async def start(self) -> None:
        """Validate the store, register the observer and request background delivery.

        The observer is registered only when the sample kind is authorized.
        A platform without health data is not an error: the engine simply
        stays idle.

        Raises
        ------
        SampleTypeUnavailableError
            If the store does not define the configured sample kind.
        """
        if self._started:
            return
        self._loop = asyncio.get_running_loop()
        kind = self._config.sample_kind

        if not await self._gate.is_capable():
            _logger.info("Health data is not available on this device; sync stays idle")
            return
        if not await self._gate.has_sample_kind(kind):
            raise SampleTypeUnavailableError(f"External store has no sample kind {kind}", kind=kind)

        self._started = True
        if await self.is_authorized():
            self._activate()
        else:
            _logger.debug("Not authorized for %s; observer not registered", kind)
        await self._enable_background_delivery()

    async def stop(self) -> None:
        """Cancel the subscription and wait for in-flight cycles."""
        subscription = self._subscription
        self._subscription = None
        self._started = False
        if subscription is not None:
            subscription.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _activate(self) -> None:
        if self._subscription is not None:
            return
        kind = self._config.sample_kind
        _logger.debug("Registering external store observer for %s", kind)
        self._subscription = self._store.subscribe(kind, self._on_change)

    async def _enable_background_delivery(self) -> None:
        kind = self._config.sample_kind
        frequency = self._config.background_frequency
        try:
            ok = await self._store.enable_background_delivery(kind, frequency)
        except Exception as exc:
            _logger.warning("Cannot enable background delivery for %s: %s", kind, exc)
            return
        if not ok:
            _logger.warning("External store refused background delivery for %s", kind)
            return
        _logger.debug("Background delivery enabled for %s frequency=%s", kind, frequency)

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    async def is_authorized(self) -> bool:
        """Whether the sample kind is authorized (denied and undetermined are not)."""
        state = await self._gate.authorization_state(self._config.sample_kind)
        return state.is_authorized

    async def request_permission(self) -> bool:
        """Ask the external store for read/write access to the sample kind.

        When access is granted after :meth:`start` ran without it, the
        observer is registered now.

        Raises
        ------
        NotAvailableError
            If the platform has no health data support.
        SampleTypeUnavailableError
            If the sample kind is not defined by the store.
        AuthorizationRequestError
            If the store failed while requesting access.
        """
        kind = self._config.sample_kind
        if not await self._gate.is_capable():
            raise NotAvailableError("Health data is not available on this device")
        if not await self._gate.has_sample_kind(kind):
            raise SampleTypeUnavailableError(f"External store has no sample kind {kind}", kind=kind)

        try:
            granted = await self._gate.request_authorization([kind])
        except Exception as exc:
            raise AuthorizationRequestError(f"Requesting access to {kind} failed: {exc}") from exc

        if granted and self._started and await self.is_authorized():
            self._activate()
        return granted

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    async def save(
        self,
        samples: Sequence[GlucoseSample],
        *,
        on_result: Callable[[WriteResult], None] | None = None,
    ) -> list[WriteResult]:
        """Write local samples to the external store, one write per sample.

        Raises
        ------
        InvalidSampleError
            If any sample has no value. Nothing is written in that case.
        AuthorizationDeniedError
            If the sample kind is not authorized.
        """
        if not samples:
            return []
        state = await self._gate.authorization_state(self._config.sample_kind)
        if not state.is_authorized:
            raise AuthorizationDeniedError(
                f"Writing {self._config.sample_kind} is not authorized (state={state})",
                state=state,
            )
        return await self._writer.write(samples, on_result=on_result)

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def _on_change(self, error: Exception | None = None) -> None:
        """Store callback; may run on any thread."""
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._schedule_cycle, error)

    def _schedule_cycle(self, error: Exception | None) -> None:
        if error is not None:
            observer_error = error if isinstance(error, ObserverError) else ObserverError(str(error))
            _logger.debug("Skipping sync cycle after observer error: %s", observer_error)
            return
        if not self._started or self._loop is None:
            return
        task = self._loop.create_task(self._run_cycle())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def sync_now(self) -> MergeReport:
        """Run one deletion + addition cycle immediately."""
        return await self._run_cycle()

    async def _run_cycle(self) -> MergeReport:
        async with self._lock:
            now = self._clock()
            start = window_start(now, self._config.trailing_window)
            skipped = False

            removed: list[str] = []
            try:
                removed = await self._merge_deletions(start)
            except Exception:
                _logger.warning("Deletion merge failed", exc_info=True)
                skipped = True

            appended: list[GlucoseSample] = []
            ledger_size = 0
            try:
                appended, ledger_size = await self._merge_additions(start, now)
            except Exception:
                _logger.warning("Addition merge failed", exc_info=True)
                skipped = True

        _logger.debug(
            "Sync cycle done removed=%d appended=%d ledger=%d skipped=%s",
            len(removed),
            len(appended),
            ledger_size,
            skipped,
        )
        return MergeReport(removed=removed, appended=appended, ledger_size=ledger_size, skipped=skipped)

    async def _merge_deletions(self, start: datetime) -> list[str]:
        samples = await self._store.query_removed(self._config.sample_kind, start)
        batch = deletion_identifiers(samples)
        if batch:
            await self._repository.remove_glucose(batch)
        return batch

    async def _merge_additions(self, start: datetime, now: datetime) -> tuple[list[GlucoseSample], int]:
        samples = await self._store.query_added(self._config.sample_kind, start)
        loop = asyncio.get_running_loop()
        old = await loop.run_in_executor(None, self._ledger.load)

        plan = plan_addition(
            samples,
            old,
            now=now,
            retention=self._config.retention_window,
            policy=self._config.dedup_policy,
        )

        appended: list[LedgerEntry] = []
        try:
            for entry in plan.new_entries:
                await self._repository.store_glucose([entry.to_glucose()])
                appended.append(entry)
        except Exception:
            # Remember what did land so the next cycle does not append it twice.
            partial = prune_ledger([*appended, *old], now=now, retention=self._config.retention_window)
            await loop.run_in_executor(None, self._ledger.save, partial)
            raise

        await loop.run_in_executor(None, self._ledger.save, plan.ledger)
        return [entry.to_glucose() for entry in appended], len(plan.ledger)
