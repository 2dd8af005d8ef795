"""Internal MQTT change-feed parsing and runtime helpers."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, cast

import paho.mqtt.client as mqtt

from glucosync.exceptions import GlucoSyncError


@dataclass(frozen=True)
class ChangeFeedBootstrap:
    """Broker details required to receive change notifications."""

    broker_host: str
    broker_port: int
    topic: str
    client_id: str
    username: str | None = None
    password: str | None = None
    tls: bool = False


@dataclass(frozen=True)
class ChangeNotification:
    """A decoded ``<prefix>/<kind>/changed`` message."""

    kind: str
    topic: str
    error: str | None = None


def change_topic(prefix: str, kind: str = "+") -> str:
    """Topic carrying change notifications for *kind* (``+`` for all kinds)."""
    return f"{prefix.strip('/')}/{kind}/changed"


def _kind_from_topic(topic: str) -> str:
    parts = topic.split("/")
    if len(parts) >= 3 and parts[-1] == "changed":
        return parts[-2]
    return ""


def decode_change_payload(topic: str, payload: bytes) -> ChangeNotification:
    """Parse a change notification.

    An empty payload is a plain "something changed" signal. JSON payloads may
    carry ``kind`` (defaults to the topic segment) and ``error``.
    """
    text = payload.decode("utf-8", errors="replace").strip()
    parsed: Any = json.loads(text) if text else {}
    if not isinstance(parsed, dict):
        raise GlucoSyncError("Change notification payload is not a JSON object")

    kind_value = parsed.get("kind")
    kind = kind_value if isinstance(kind_value, str) and kind_value else _kind_from_topic(topic)
    if not kind:
        raise GlucoSyncError(f"Cannot determine sample kind for topic {topic}")

    error_value = parsed.get("error")
    error = str(error_value) if error_value else None
    return ChangeNotification(kind=kind, topic=topic, error=error)


class ChangeFeedRuntime:
    """Threaded paho-mqtt runtime that emits change notifications onto an asyncio loop."""

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        on_notification: Callable[[ChangeNotification], None],
        keepalive: int = 60,
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._on_notification = on_notification
        self._keepalive = keepalive
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False
        self._topic: str | None = None

    @property
    def is_running(self) -> bool:
        """Whether the MQTT runtime is actively running."""
        return self._running

    def handle_message(self, topic: str, payload: bytes) -> None:
        """Decode one message and hand it to the loop (called on the network thread)."""
        try:
            notification = decode_change_payload(topic, payload)
        except Exception:
            self._logger.debug("Change notification parse failure topic=%s", topic, exc_info=True)
            return
        self._logger.debug("Change notification kind=%s error=%s", notification.kind, notification.error)
        self._loop.call_soon_threadsafe(self._on_notification, notification)

    def start(self, bootstrap: ChangeFeedBootstrap) -> None:
        """Connect and subscribe with provided broker details."""
        self.stop()
        self._logger.debug(
            "MQTT runtime start requested host=%s port=%s topic=%s client_id=%s",
            bootstrap.broker_host,
            bootstrap.broker_port,
            bootstrap.topic,
            bootstrap.client_id,
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=bootstrap.client_id,
            protocol=mqtt.MQTTv5,
        )
        client.enable_logger(self._logger)
        if bootstrap.username:
            client.username_pw_set(bootstrap.username, bootstrap.password)
        if bootstrap.tls:
            client.tls_set()

        self._topic = bootstrap.topic

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                return
            self._logger.debug("MQTT connected successfully reason=%s", reason_code)
            if self._topic:
                c.subscribe(self._topic, qos=1)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            self.handle_message(msg.topic, msg.payload)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._running:
                self._logger.debug("MQTT disconnected: %s", reason_code)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        client.connect(bootstrap.broker_host, bootstrap.broker_port, keepalive=self._keepalive)
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def stop(self) -> None:
        """Stop and disconnect current MQTT client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False
        self._topic = None

        if client is None:
            return
        try:
            if was_running:
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")
