"""
Async JSON GET with timeout, retry with exponential backoff and a small TTL cache.
Shared by the TfL, Google Directions and OpenWeather clients.
"""
import asyncio
import logging
import time
from typing import Any

import httpx

from catchtrain.errors import NetworkFailure
from catchtrain.monitoring.metrics import record_upstream_call

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 10.0
RETRY_ATTEMPTS = 3
RETRY_BASE_DELAY_SECONDS = 1.0
RETRY_MAX_DELAY_SECONDS = 8.0


class TTLCache:
    """Simple in-memory TTL cache. One TTL per key (from first set)."""

    def __init__(self, ttl_seconds: float = 60):
        self._ttl = ttl_seconds
        self._store: dict[str, tuple[Any, float]] = {}

    def get(self, key: str) -> Any | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if time.monotonic() >= expires_at:
            del self._store[key]
            return None
        return value

    def set(self, key: str, value: Any) -> None:
        self._store[key] = (value, time.monotonic() + self._ttl)

    def clear(self) -> None:
        self._store.clear()


class UpstreamClient:
    """
    Base for the upstream API clients. Subclasses call _get_json; failures after the last
    retry raise NetworkFailure. Pass transport (e.g. httpx.MockTransport) to stub the network.
    """

    service = "upstream"

    def __init__(
        self,
        base_url: str,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        retry_attempts: int = RETRY_ATTEMPTS,
        retry_base_delay: float = RETRY_BASE_DELAY_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base = base_url.rstrip("/")
        self._timeout = timeout
        self._retry_attempts = max(1, retry_attempts)
        self._retry_base_delay = retry_base_delay
        self._transport = transport

    def _url(self, path: str) -> str:
        return f"{self._base}/{path.lstrip('/')}"

    async def _get_json(self, path: str, params: dict[str, Any] | None = None, event: str = "get") -> Any:
        url = self._url(path)
        last_error: Exception | None = None
        for attempt in range(self._retry_attempts):
            try:
                async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                    resp = await client.get(url, params=params)
                    resp.raise_for_status()
                    data = resp.json()
                record_upstream_call(self.service, ok=True)
                return data
            except httpx.TimeoutException as e:
                last_error = e
                logger.warning(
                    "telemetry %s_timeout attempt=%s event=%s",
                    self.service,
                    attempt + 1,
                    event,
                    extra={"attempt": attempt + 1, "service": self.service, "event": event},
                )
            except (httpx.HTTPError, ValueError) as e:
                last_error = e
                logger.warning(
                    "telemetry %s_api_error attempt=%s event=%s error=%s",
                    self.service,
                    attempt + 1,
                    event,
                    str(e),
                    extra={"attempt": attempt + 1, "service": self.service, "event": event, "error": str(e)},
                )
            if attempt < self._retry_attempts - 1:
                delay = min(self._retry_base_delay * (2**attempt), RETRY_MAX_DELAY_SECONDS)
                await asyncio.sleep(delay)
        record_upstream_call(self.service, ok=False)
        msg = f"{self.service} unavailable (timeout or error after retries): {event}"
        if last_error:
            raise NetworkFailure(msg) from last_error
        raise NetworkFailure(msg)
