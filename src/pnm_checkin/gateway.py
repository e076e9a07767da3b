"""Single forwarding point to the remote record store."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Protocol

import aiohttp

from .logger import get_logger

LOGGER = get_logger("gateway")

CONNECTION_ERROR_MESSAGE = "Failed to connect to server. Please try again."


@dataclass(frozen=True)
class SubmissionResult:
    """Normalized outcome of one remote call."""

    ok: bool
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def name(self) -> Optional[str]:
        value = self.data.get("name")
        return str(value) if value else None

    @classmethod
    def failure(cls, error: str, data: Optional[Dict[str, Any]] = None) -> "SubmissionResult":
        return cls(ok=False, data=dict(data or {}), error=error)


class SubmissionGateway(Protocol):
    async def submit(self, action: str, payload: Mapping[str, Any]) -> SubmissionResult:
        """Forward ``action`` with ``payload`` and report the outcome."""


def normalize_response(status: int, body: Any) -> SubmissionResult:
    """Map an HTTP status and decoded JSON body onto a SubmissionResult."""
    if not isinstance(body, dict):
        return SubmissionResult.failure(f"Unexpected response from server (HTTP {status})")
    error = body.get("error")
    if status < 400 and body.get("ok") is True:
        return SubmissionResult(ok=True, data=body)
    message = str(error) if error else f"Request failed (HTTP {status})"
    return SubmissionResult.failure(message, body)


class HttpGateway:
    """POST ``{"action": ..., **payload}`` as JSON to the proxy URL."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.url = url
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session

    async def submit(self, action: str, payload: Mapping[str, Any]) -> SubmissionResult:
        body = {"action": action, **payload}
        LOGGER.debug("Submitting action %s", action)
        try:
            if self._session is not None:
                return await self._post(self._session, body)
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                return await self._post(session, body)
        except asyncio.TimeoutError:
            LOGGER.warning("Gateway request for %s timed out", action)
            return SubmissionResult.failure(CONNECTION_ERROR_MESSAGE)
        except aiohttp.ClientError as exc:
            LOGGER.warning("Gateway request for %s failed: %s", action, exc)
            return SubmissionResult.failure(CONNECTION_ERROR_MESSAGE)

    async def _post(self, session: aiohttp.ClientSession, body: Dict[str, Any]) -> SubmissionResult:
        async with session.post(self.url, json=body, timeout=self.timeout) as response:
            try:
                data = await response.json(content_type=None)
            except ValueError:
                text = await response.text()
                LOGGER.warning("Non-JSON response (HTTP %s): %s", response.status, text[:200])
                data = None
            return normalize_response(response.status, data)
