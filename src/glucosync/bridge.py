"""External store adapter backed by an on-device companion bridge.

The companion app owns the platform health store and exposes it over a
small JSON/HTTP API. Change notifications arrive over MQTT. One
:class:`BridgeSampleStore` implements both
:class:`~glucosync.capability.CapabilityGate` and
:class:`~glucosync.capability.SampleStore`.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, TypeVar

import aiohttp
from pydantic import TypeAdapter, ValidationError

from glucosync._mqtt import ChangeFeedBootstrap, ChangeFeedRuntime, ChangeNotification, change_topic
from glucosync._transport import BridgeTransport, Transport
from glucosync.capability import ChangeCallback
from glucosync.config import BridgeConfig
from glucosync.exceptions import BridgeTransportError, GlucoSyncError, ObserverError
from glucosync.models import (
    AuthorizationState,
    DeletedSample,
    ExternalSample,
    ExternalSampleDraft,
    SampleKind,
    UpdateFrequency,
)

_logger = logging.getLogger(__name__)

_SAMPLE = TypeAdapter(ExternalSample)
_DELETED = TypeAdapter(DeletedSample)

_S = TypeVar("_S", ExternalSample, DeletedSample)


@dataclass(eq=False)
class BridgeSubscription:
    """Change subscription handle; :meth:`cancel` detaches the callback."""

    kind: SampleKind
    callback: ChangeCallback
    _owner: BridgeSampleStore | None = field(default=None, repr=False)

    def cancel(self) -> None:
        owner = self._owner
        self._owner = None
        if owner is not None:
            owner._unsubscribe(self)


class BridgeSampleStore:
    """Capability gate and sample store talking to a companion bridge.

    Usage::

        async with BridgeSampleStore(BridgeConfig.from_env()) as store:
            async with SyncEngine(store, repository) as engine:
                ...
    """

    def __init__(
        self,
        config: BridgeConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._transport: Transport | None = transport
        self._runtime: ChangeFeedRuntime | None = None
        self._subscriptions: list[BridgeSubscription] = []

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> BridgeSampleStore:
        if self._transport is None:
            if self._http_session is None:
                timeout = aiohttp.ClientTimeout(total=self._config.request_timeout)
                self._http_session = aiohttp.ClientSession(timeout=timeout)
            self._transport = BridgeTransport(self._config, self._http_session)
        await self._ensure_change_feed()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self._stop_change_feed()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
            self._transport = None

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise GlucoSyncError("Bridge not initialized. Use 'async with BridgeSampleStore(...) as store:'")
        return self._transport

    # ------------------------------------------------------------------
    # Change feed
    # ------------------------------------------------------------------

    async def _ensure_change_feed(self) -> None:
        """Best-effort MQTT startup (failures must not break HTTP calls)."""
        if not self._config.mqtt_enabled:
            return
        if self._runtime is not None and self._runtime.is_running:
            return
        loop = asyncio.get_running_loop()
        bootstrap = ChangeFeedBootstrap(
            broker_host=self._config.broker_host,
            broker_port=self._config.mqtt_port,
            topic=change_topic(self._config.mqtt_topic_prefix),
            client_id=f"glucosync_{secrets.token_hex(6)}",
            username=self._config.mqtt_username,
            password=self._config.mqtt_password,
            tls=self._config.mqtt_tls,
        )
        runtime = ChangeFeedRuntime(
            loop=loop,
            on_notification=self._on_notification,
            keepalive=self._config.mqtt_keepalive,
            logger=_logger,
        )
        try:
            await loop.run_in_executor(None, runtime.start, bootstrap)
            self._runtime = runtime
        except Exception:
            _logger.warning("MQTT change feed start failed; use notify_change() to trigger syncs", exc_info=True)

    async def _stop_change_feed(self) -> None:
        runtime = self._runtime
        self._runtime = None
        if runtime is None:
            return
        try:
            await asyncio.get_running_loop().run_in_executor(None, runtime.stop)
        except Exception:
            _logger.debug("MQTT change feed stop failed", exc_info=True)

    def _on_notification(self, notification: ChangeNotification) -> None:
        try:
            kind = SampleKind(notification.kind)
        except ValueError:
            _logger.debug("Ignoring change notification for unknown kind %s", notification.kind)
            return
        error = ObserverError(notification.error) if notification.error else None
        self.notify_change(kind, error)

    def notify_change(self, kind: SampleKind, error: Exception | None = None) -> None:
        """Deliver a change notification to every subscriber of *kind*."""
        for subscription in list(self._subscriptions):
            if subscription.kind != kind:
                continue
            try:
                subscription.callback(error)
            except Exception:
                _logger.debug("Change callback failed", exc_info=True)

    def subscribe(self, kind: SampleKind, on_change: ChangeCallback) -> BridgeSubscription:
        subscription = BridgeSubscription(kind=kind, callback=on_change, _owner=self)
        self._subscriptions.append(subscription)
        return subscription

    def _unsubscribe(self, subscription: BridgeSubscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    # ------------------------------------------------------------------
    # Capability gate
    # ------------------------------------------------------------------

    async def _status(self) -> dict[str, Any]:
        return await self._require_transport().get_json("/v1/status")

    async def is_capable(self) -> bool:
        try:
            status = await self._status()
        except BridgeTransportError as exc:
            _logger.warning("Companion bridge unreachable: %s", exc)
            return False
        return bool(status.get("available"))

    async def has_sample_kind(self, kind: SampleKind) -> bool:
        status = await self._status()
        kinds = status.get("sampleKinds")
        return isinstance(kinds, list) and str(kind) in kinds

    async def authorization_state(self, kind: SampleKind) -> AuthorizationState:
        body = await self._require_transport().get_json(f"/v1/authorization/{kind}")
        return AuthorizationState(str(body.get("state", "")))

    async def request_authorization(self, kinds: Sequence[SampleKind]) -> bool:
        names = [str(kind) for kind in kinds]
        body = await self._require_transport().post_json("/v1/authorization", {"share": names, "read": names})
        return bool(body.get("granted"))

    # ------------------------------------------------------------------
    # Sample store
    # ------------------------------------------------------------------

    async def write(self, kind: SampleKind, draft: ExternalSampleDraft) -> bool:
        payload = draft.model_dump(mode="json", by_alias=True)
        body = await self._require_transport().post_json(f"/v1/samples/{kind}", payload)
        return bool(body.get("ok"))

    async def query_added(self, kind: SampleKind, start: datetime) -> list[ExternalSample]:
        return await self._query(f"/v1/samples/{kind}", start, _SAMPLE)

    async def query_removed(self, kind: SampleKind, start: datetime) -> list[DeletedSample]:
        return await self._query(f"/v1/samples/{kind}/deleted", start, _DELETED)

    async def _query(self, endpoint: str, start: datetime, adapter: TypeAdapter[_S]) -> list[_S]:
        """Fetch and validate sample records; invalid records are dropped one by one."""
        body = await self._require_transport().get_json(endpoint, {"start": start.isoformat()})
        records = body.get("samples", [])
        if not isinstance(records, list):
            raise BridgeTransportError(f"Invalid samples payload from {endpoint}: expected a list", endpoint=endpoint)

        samples: list[_S] = []
        for record in records:
            try:
                samples.append(adapter.validate_python(record))
            except ValidationError as exc:
                _logger.warning("Skipping invalid sample from %s (%d errors)", endpoint, exc.error_count())
        return samples

    async def enable_background_delivery(self, kind: SampleKind, frequency: UpdateFrequency) -> bool:
        body = await self._require_transport().post_json(
            "/v1/background-delivery",
            {"kind": str(kind), "frequency": str(frequency)},
        )
        return bool(body.get("ok"))
