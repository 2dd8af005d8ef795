"""Masking of bridge traffic before it reaches DEBUG logs.

Two kinds of fields never appear in logs: credentials (bearer tokens,
broker passwords) and health data (glucose values and sample metadata).
Sample identifiers and dates are kept so a request can still be traced.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

_CREDENTIAL_KEYS = frozenset({"password", "mqttpassword", "token", "authorization", "cookie"})
_HEALTH_KEYS = frozenset({"value", "metadata"})

_MAX_DEPTH = 20


def _normalize_key(key: str) -> str:
    return key.replace("_", "").replace("-", "").lower()


def _mask_for(key: str) -> str | None:
    normalized = _normalize_key(key)
    if normalized in _CREDENTIAL_KEYS or normalized.endswith("token"):
        return "<redacted>"
    if normalized in _HEALTH_KEYS:
        return "<health-data>"
    return None


def redact_for_log(value: Any, *, max_string: int = 512, _depth: int = 0) -> Any:
    """Return a copy of *value* with credentials and health data masked.

    Long strings are truncated to *max_string* characters and raw bytes are
    summarized by length.
    """
    if _depth > _MAX_DEPTH:
        return "<max-depth>"
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        return value if len(value) <= max_string else f"{value[:max_string]}...<truncated>"
    if isinstance(value, (bytes, bytearray)):
        return f"<bytes:{len(value)}b>"
    if isinstance(value, Mapping):
        out: dict[str, Any] = {}
        for raw_key, item in value.items():
            key = str(raw_key)
            mask = _mask_for(key)
            out[key] = mask if mask is not None else redact_for_log(item, max_string=max_string, _depth=_depth + 1)
        return out
    if isinstance(value, (list, tuple)):
        return [redact_for_log(item, max_string=max_string, _depth=_depth + 1) for item in value]
    return repr(value)
