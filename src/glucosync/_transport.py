"""HTTP transport for the companion bridge."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from glucosync._constants import USER_AGENT
from glucosync._redact import redact_for_log
from glucosync.config import BridgeConfig
from glucosync.exceptions import BridgeTransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by the bridge store.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`BridgeTransport`) concrete.
    """

    async def get_json(self, endpoint: str, params: Mapping[str, str] | None = None) -> dict[str, Any]: ...

    async def post_json(self, endpoint: str, payload: Mapping[str, Any]) -> dict[str, Any]: ...


class BridgeTransport:
    """JSON-over-HTTP transport with bearer token authentication."""

    def __init__(self, config: BridgeConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {
            "accept": "application/json",
            "user-agent": USER_AGENT,
        }
        if self._config.token:
            headers["authorization"] = f"Bearer {self._config.token}"
        return headers

    async def get_json(self, endpoint: str, params: Mapping[str, str] | None = None) -> dict[str, Any]:
        return await self._request("GET", endpoint, params=params)

    async def post_json(self, endpoint: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        return await self._request("POST", endpoint, payload=payload)

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        params: Mapping[str, str] | None = None,
        payload: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self._config.base_url.rstrip('/')}{endpoint}"
        headers = self._headers()
        body: str | None = None
        if payload is not None:
            headers["content-type"] = "application/json; charset=UTF-8"
            body = json.dumps(payload, separators=(",", ":"))

        _logger.debug("%s %s params=%s payload=%s", method, url, params, redact_for_log(payload))

        try:
            async with self._http.request(method, url, params=params, data=body, headers=headers) as resp:
                text = await resp.text()
                status = resp.status
        except aiohttp.ClientError as exc:
            raise BridgeTransportError(f"Request to {endpoint} failed: {exc}", endpoint=endpoint) from exc
        except TimeoutError as exc:
            raise BridgeTransportError(f"Request to {endpoint} timed out", endpoint=endpoint) from exc

        try:
            body_json: Any = json.loads(text) if text.strip() else {}
        except json.JSONDecodeError as exc:
            raise BridgeTransportError(
                f"Invalid JSON from {endpoint}: {text[:200]}",
                status_code=status,
                endpoint=endpoint,
            ) from exc

        if not 200 <= status < 300:
            detail = body_json.get("error") if isinstance(body_json, dict) else None
            raise BridgeTransportError(
                f"HTTP {status} from {endpoint}: {detail or text[:200]}",
                status_code=status,
                endpoint=endpoint,
            )

        if not isinstance(body_json, dict):
            raise BridgeTransportError(
                f"Expected a JSON object from {endpoint}",
                status_code=status,
                endpoint=endpoint,
            )

        _logger.debug("%s %s -> %s %s", method, endpoint, status, redact_for_log(body_json, max_string=128))
        return body_json
