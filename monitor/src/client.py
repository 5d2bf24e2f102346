"""
Async HTTP client for fetching raw reading batches from the monitoring backend.

GETs each configured endpoint in priority order and returns the first
successful JSON list of readings. The backend answers either with a bare
array or with a ``{"success": ..., "data": [...], "count": ...}``
envelope; both are accepted. The endpoint that last succeeded is tried
first next time. When every endpoint fails, the internal backoff doubles
(1s -> 2s -> 4s -> ... -> max_backoff_s) and resets on the next success.

Operations:
- build_url(endpoint, params): Full URL with optional query string.
- fetch_readings(): Raw reading list, or None if every endpoint failed.
- current_backoff / preferred_endpoint: Read-only state.

CHANGELOG:
- 2026-10-19: Prefer the last endpoint that answered (STORY-008)
- 2026-10-19: Initial creation (STORY-008)

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any
from urllib.parse import urlencode

import httpx

logger = logging.getLogger(__name__)

_INITIAL_BACKOFF_S = 1.0
_DEFAULT_MAX_BACKOFF_S = 300.0
_DEFAULT_ENDPOINTS: tuple[str, ...] = ("/power", "/power/last7")


def unwrap(payload: Any) -> list[Any] | None:
    """Extract the reading list from a backend response body.

    Returns:
        The list itself, the ``data`` list of an envelope, or ``None`` for
        any other shape.
    """
    if isinstance(payload, list):
        return payload
    if isinstance(payload, Mapping) and isinstance(payload.get("data"), list):
        return payload["data"]
    return None


class TelemetryClient:
    """Fetches raw reading batches with endpoint fallback and backoff.

    Args:
        base_url: Backend base URL; must start with ``http://`` or
            ``https://``.
        endpoints: Endpoint paths tried in order.
        timeout_s: Per-request timeout in seconds.
        max_backoff_s: Cap for the failure backoff.
        transport: Optional httpx transport (used by tests).

    Raises:
        ValueError: If *base_url* has no http(s) scheme or *endpoints* is
            empty.

    Usage::

        client = TelemetryClient("http://localhost:3001")
        raw = await client.fetch_readings()
    """

    def __init__(
        self,
        base_url: str,
        *,
        endpoints: Sequence[str] = _DEFAULT_ENDPOINTS,
        timeout_s: float = 10.0,
        max_backoff_s: float = _DEFAULT_MAX_BACKOFF_S,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url.lower().startswith(("http://", "https://")):
            raise ValueError(f"Backend base URL must start with http:// or https:// (got: '{base_url}')")
        if not endpoints:
            raise ValueError("At least one endpoint is required")
        self._base_url = base_url.rstrip("/")
        self._endpoints = [self._clean(e) for e in endpoints]
        self._timeout_s = timeout_s
        self._max_backoff_s = max_backoff_s
        self._transport = transport
        self._current_backoff = _INITIAL_BACKOFF_S

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def current_backoff(self) -> float:
        """Current backoff delay in seconds (1s after any success)."""
        return self._current_backoff

    @property
    def preferred_endpoint(self) -> str:
        """Endpoint tried first on the next fetch."""
        return self._endpoints[0]

    def build_url(self, endpoint: str, params: Mapping[str, Any] | None = None) -> str:
        """Join the base URL and *endpoint*, appending non-None *params*."""
        url = f"{self._base_url}{self._clean(endpoint)}"
        if not params:
            return url
        query = urlencode({k: v for k, v in params.items() if v is not None})
        return f"{url}?{query}" if query else url

    async def fetch_readings(self) -> list[Any] | None:
        """Fetch the raw reading list from the first endpoint that answers.

        Returns:
            The list of raw reading records, or ``None`` if every endpoint
            failed (network error, non-2xx status, invalid JSON, or an
            unexpected body shape).
        """
        async with httpx.AsyncClient(timeout=self._timeout_s, transport=self._transport) as client:
            for endpoint in list(self._endpoints):
                readings = await self._fetch_one(client, endpoint)
                if readings is not None:
                    self._promote(endpoint)
                    self._reset_backoff()
                    logger.info("Fetched %d readings from %s", len(readings), endpoint)
                    return readings

        self._increase_backoff()
        logger.warning(
            "All %d endpoints failed, next backoff %.1fs",
            len(self._endpoints),
            self._current_backoff,
        )
        return None

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _clean(endpoint: str) -> str:
        return endpoint if endpoint.startswith("/") else f"/{endpoint}"

    async def _fetch_one(self, client: httpx.AsyncClient, endpoint: str) -> list[Any] | None:
        url = self.build_url(endpoint)
        try:
            response = await client.get(url)
        except httpx.HTTPError as exc:
            logger.warning("Fetch %s failed (network error): %s", url, exc)
            return None

        if not response.is_success:
            logger.warning("Fetch %s failed (HTTP %d)", url, response.status_code)
            return None

        try:
            payload = response.json()
        except ValueError:
            logger.warning("Fetch %s returned invalid JSON", url)
            return None

        readings = unwrap(payload)
        if readings is None:
            logger.warning("Fetch %s returned unexpected body type %s", url, type(payload).__name__)
        return readings

    def _promote(self, endpoint: str) -> None:
        """Move *endpoint* to the front of the try order."""
        self._endpoints.remove(endpoint)
        self._endpoints.insert(0, endpoint)

    def _increase_backoff(self) -> None:
        """Double the backoff delay, capped at max_backoff_s."""
        self._current_backoff = min(self._current_backoff * 2, self._max_backoff_s)

    def _reset_backoff(self) -> None:
        self._current_backoff = _INITIAL_BACKOFF_S
