"""
Async HTTP client wrapper for cricket provider requests.
Includes retry logic, timeout management, metrics, and the provider error taxonomy.
"""
from __future__ import annotations

import asyncio
import time
from typing import Any, Optional

import httpx

from shared.config import get_settings
from shared.utils.logging import get_logger
from shared.utils.metrics import PROVIDER_LATENCY, PROVIDER_REQUESTS

logger = get_logger(__name__)

QUOTA_KEYWORDS = ("limit", "quota", "blocked", "exceed")


def is_quota_message(reason: Any) -> bool:
    """True when a provider's free-text failure reason signals quota exhaustion."""
    if not reason:
        return False
    lower = str(reason).lower()
    return any(kw in lower for kw in QUOTA_KEYWORDS)


class ProviderError(Exception):
    """Base class for failures talking to a provider."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.message = message


class ProviderUnavailableError(ProviderError):
    """Network error, timeout, or non-2xx response. Skip this cycle."""


class QuotaExhaustedError(ProviderError):
    """The credential in use has hit its quota. Block the tier and fall back."""


class ProviderHTTPClient:
    """
    Async HTTP client tailored for cricket data provider APIs.

    Handles timeouts and retries and records metrics per request. Every failure
    leaves this client as either QuotaExhaustedError or ProviderUnavailableError.
    """

    def __init__(
        self,
        provider_name: str,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout_s: float | None = None,
        max_retries: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self._provider = provider_name
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_s or settings.provider_request_timeout_s
        self._max_retries = max(1, max_retries or settings.provider_max_retries)
        self._default_headers = headers or {}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def provider(self) -> str:
        return self._provider

    async def start(self) -> None:
        """Initialize the underlying httpx client."""
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._default_headers,
            timeout=httpx.Timeout(self._timeout, connect=5.0),
            follow_redirects=True,
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
            transport=self._transport,
        )

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get_json(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        extra_headers: dict[str, str] | None = None,
    ) -> Any:
        """
        GET a path and decode its JSON body.

        Raises:
            QuotaExhaustedError: HTTP 429.
            ProviderUnavailableError: Timeouts, transport errors, non-2xx, or a non-JSON body.
        """
        if not self._client:
            raise RuntimeError("ProviderHTTPClient not started. Call start() first.")

        merged_headers = {**self._default_headers, **(extra_headers or {})}
        last_error = "no attempt made"

        for attempt in range(1, self._max_retries + 1):
            start_time = time.perf_counter()
            status = "unknown"
            try:
                resp = await self._client.get(path, params=params, headers=merged_headers)
                status = str(resp.status_code)

                if resp.status_code == 429:
                    logger.warning("provider_quota_response", provider=self._provider, path=path)
                    raise QuotaExhaustedError(self._provider, f"HTTP 429 on {path}")

                if resp.status_code >= 500:
                    last_error = f"HTTP {resp.status_code} on {path}"
                    logger.warning(
                        "provider_server_error",
                        provider=self._provider,
                        path=path,
                        status=resp.status_code,
                        attempt=attempt,
                    )
                    if attempt < self._max_retries:
                        await asyncio.sleep(1.0 * attempt)
                        continue
                    break

                if resp.status_code >= 400:
                    body = resp.text[:200]
                    logger.error(
                        "provider_http_error",
                        provider=self._provider,
                        path=path,
                        status=resp.status_code,
                    )
                    # Some providers answer an exhausted key with 401/403 and a quota message
                    if is_quota_message(body):
                        raise QuotaExhaustedError(self._provider, body)
                    raise ProviderUnavailableError(self._provider, f"HTTP {resp.status_code} on {path}")

                try:
                    payload = resp.json()
                except ValueError as exc:
                    raise ProviderUnavailableError(self._provider, f"invalid JSON from {path}") from exc

                logger.debug(
                    "provider_request_success",
                    provider=self._provider,
                    path=path,
                    status=resp.status_code,
                    latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
                )
                return payload

            except httpx.TimeoutException:
                status = "timeout"
                last_error = f"timeout on {path}"
                logger.warning("provider_timeout", provider=self._provider, path=path, attempt=attempt)
                if attempt < self._max_retries:
                    await asyncio.sleep(1.0 * attempt)
                    continue

            except httpx.TransportError as exc:
                status = "error"
                last_error = f"{type(exc).__name__} on {path}"
                logger.warning(
                    "provider_transport_error",
                    provider=self._provider,
                    path=path,
                    error=str(exc),
                    attempt=attempt,
                )
                if attempt < self._max_retries:
                    await asyncio.sleep(1.0 * attempt)
                    continue

            finally:
                PROVIDER_REQUESTS.labels(provider=self._provider, status=status).inc()
                PROVIDER_LATENCY.labels(provider=self._provider).observe(
                    time.perf_counter() - start_time
                )

        raise ProviderUnavailableError(self._provider, last_error)
