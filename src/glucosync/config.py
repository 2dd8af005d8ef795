"""Configuration for glucosync."""

from __future__ import annotations

import dataclasses
import enum
import os
from collections.abc import Callable
from datetime import timedelta
from pathlib import Path
from typing import Any, TypeVar
from urllib.parse import urlsplit

from glucosync._constants import LEDGER_FILENAME, LEDGER_RETENTION, TRAILING_WINDOW
from glucosync.exceptions import GlucoSyncConfigError
from glucosync.models import SampleKind, UpdateFrequency
from glucosync.sync.policy import DedupPolicy

T = TypeVar("T")


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _parse_env(env_key: str, raw: str, parse: Callable[[str], T]) -> T:
    try:
        return parse(raw)
    except (ValueError, OverflowError) as exc:
        raise GlucoSyncConfigError(f"Invalid value for {env_key}: {raw!r}") from exc


def _hours(raw: str) -> timedelta:
    return timedelta(hours=float(raw))


def _default_ledger_path() -> Path:
    return Path.home() / ".glucosync" / LEDGER_FILENAME


@dataclasses.dataclass(frozen=True)
class SyncConfig:
    """Sync engine configuration.

    Parameters
    ----------
    ledger_path : Path
        Where the downloaded-sample ledger is persisted. The file is
        private to the application and replaced wholesale on every cycle.
    trailing_window : timedelta
        How far back each notification cycle queries the external store.
        Defaults to 24 hours.
    retention_window : timedelta
        Ledger entries older than this are pruned on every cycle.
        Defaults to 24 hours.
    dedup_policy : DedupPolicy
        ``exact`` (default) treats a reused identifier with different
        content as new; ``identifier`` ignores content drift.
    background_frequency : UpdateFrequency
        Background delivery frequency declared to the external store.
    sample_kind : SampleKind
        Sample kind to observe and write.
    """

    ledger_path: Path = dataclasses.field(default_factory=_default_ledger_path)
    trailing_window: timedelta = TRAILING_WINDOW
    retention_window: timedelta = LEDGER_RETENTION
    dedup_policy: DedupPolicy = DedupPolicy.EXACT
    background_frequency: UpdateFrequency = UpdateFrequency.HOURLY
    sample_kind: SampleKind = SampleKind.BLOOD_GLUCOSE

    def __post_init__(self) -> None:
        # Plain strings are accepted and stored as enum members.
        enum_fields: tuple[tuple[str, type[enum.StrEnum]], ...] = (
            ("dedup_policy", DedupPolicy),
            ("background_frequency", UpdateFrequency),
            ("sample_kind", SampleKind),
        )
        for name, enum_type in enum_fields:
            raw = getattr(self, name)
            try:
                object.__setattr__(self, name, enum_type(raw))
            except ValueError as exc:
                raise GlucoSyncConfigError(f"Invalid {name}: {raw!r}") from exc
        if self.trailing_window <= timedelta(0):
            raise GlucoSyncConfigError("trailing_window must be positive")
        if self.retention_window <= timedelta(0):
            raise GlucoSyncConfigError("retention_window must be positive")

    @classmethod
    def from_env(cls, **overrides: Any) -> SyncConfig:
        """Create configuration from ``GLUCOSYNC_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        ledger_env = env.get("GLUCOSYNC_LEDGER_PATH")
        if ledger_env:
            config_kwargs["ledger_path"] = Path(ledger_env).expanduser()

        _ENV_PARSERS: dict[str, tuple[str, Callable[[str], Any]]] = {
            "GLUCOSYNC_TRAILING_WINDOW_HOURS": ("trailing_window", _hours),
            "GLUCOSYNC_RETENTION_HOURS": ("retention_window", _hours),
            "GLUCOSYNC_DEDUP_POLICY": ("dedup_policy", DedupPolicy),
            "GLUCOSYNC_BACKGROUND_FREQUENCY": ("background_frequency", UpdateFrequency),
        }
        for env_key, (field_name, parse) in _ENV_PARSERS.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _parse_env(env_key, val.strip().lower(), parse)

        config_kwargs.update(overrides)
        return cls(**config_kwargs)


@dataclasses.dataclass(frozen=True)
class BridgeConfig:
    """Companion bridge connection settings.

    Parameters
    ----------
    base_url : str
        HTTP base URL of the companion bridge, e.g.
        ``"http://192.168.1.20:8765"``.
    token : str or None
        Bearer token sent with every request.
    request_timeout : float
        Total HTTP timeout per request in seconds.
    mqtt_enabled : bool
        Receive change notifications over MQTT. Without it,
        :meth:`~glucosync.bridge.BridgeSampleStore.subscribe` registers
        callbacks that only fire through ``notify_change``.
    mqtt_host : str or None
        Broker host. Defaults to the host of ``base_url``.
    mqtt_port : int
        Broker port.
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    mqtt_topic_prefix : str
        Notifications arrive on ``<prefix>/<kind>/changed``.
    mqtt_username, mqtt_password : str or None
        Broker credentials.
    mqtt_tls : bool
        Connect to the broker over TLS.
    """

    base_url: str
    token: str | None = None
    request_timeout: float = 30.0
    mqtt_enabled: bool = True
    mqtt_host: str | None = None
    mqtt_port: int = 1883
    mqtt_keepalive: int = 60
    mqtt_topic_prefix: str = "glucosync"
    mqtt_username: str | None = None
    mqtt_password: str | None = None
    mqtt_tls: bool = False

    def __post_init__(self) -> None:
        parts = urlsplit(self.base_url)
        if parts.scheme not in {"http", "https"} or not parts.hostname:
            raise GlucoSyncConfigError(f"base_url must be an http(s) URL, got {self.base_url!r}")
        if self.request_timeout <= 0:
            raise GlucoSyncConfigError("request_timeout must be positive")

    @property
    def broker_host(self) -> str:
        """MQTT broker host, falling back to the bridge host."""
        if self.mqtt_host:
            return self.mqtt_host
        return urlsplit(self.base_url).hostname or ""

    @classmethod
    def from_env(cls, **overrides: Any) -> BridgeConfig:
        """Create configuration from ``GLUCOSYNC_BRIDGE_*``/``GLUCOSYNC_MQTT_*`` variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "GLUCOSYNC_BRIDGE_URL": "base_url",
            "GLUCOSYNC_BRIDGE_TOKEN": "token",
            "GLUCOSYNC_MQTT_HOST": "mqtt_host",
            "GLUCOSYNC_MQTT_TOPIC_PREFIX": "mqtt_topic_prefix",
            "GLUCOSYNC_MQTT_USERNAME": "mqtt_username",
            "GLUCOSYNC_MQTT_PASSWORD": "mqtt_password",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        timeout_env = env.get("GLUCOSYNC_REQUEST_TIMEOUT")
        if timeout_env is not None and "request_timeout" not in overrides:
            config_kwargs["request_timeout"] = _parse_env("GLUCOSYNC_REQUEST_TIMEOUT", timeout_env, float)

        port_env = env.get("GLUCOSYNC_MQTT_PORT")
        if port_env is not None and "mqtt_port" not in overrides:
            config_kwargs["mqtt_port"] = _parse_env("GLUCOSYNC_MQTT_PORT", port_env, int)

        keepalive_env = env.get("GLUCOSYNC_MQTT_KEEPALIVE")
        if keepalive_env is not None and "mqtt_keepalive" not in overrides:
            config_kwargs["mqtt_keepalive"] = _parse_env("GLUCOSYNC_MQTT_KEEPALIVE", keepalive_env, int)

        if "mqtt_enabled" not in overrides:
            config_kwargs["mqtt_enabled"] = _env_bool(env.get("GLUCOSYNC_MQTT_ENABLED"), True)
        if "mqtt_tls" not in overrides:
            config_kwargs["mqtt_tls"] = _env_bool(env.get("GLUCOSYNC_MQTT_TLS"), False)

        config_kwargs.update(overrides)
        if "base_url" not in config_kwargs:
            raise GlucoSyncConfigError("GLUCOSYNC_BRIDGE_URL is not set")
        return cls(**config_kwargs)
