"""JSON-over-HTTP transport shared by the ledger and relayer adapters.

Each gateway gets one ``GatewayTransport``. Answers are sorted into three
outcomes before an adapter sees them:

- 2xx with a JSON body: returned decoded
- 4xx: ``GatewayRejectedError``; the gateway is up, so the breaker is untouched
- 5xx, network errors and unreadable bodies: the configured unavailable
  error, counted against the breaker

After ``failure_threshold`` consecutive unavailable outcomes the breaker
trips and calls fail fast until ``cooldown_seconds`` have passed. The next
call is then let through as a trial; its outcome closes or re-trips it.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from dataclasses import dataclass
from typing import Any

import httpx
from jose import jwt

from botcipher.core.errors import GatewayRejectedError, ServiceUnavailableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GatewayConfig:
    """Immutable configuration for one remote gateway."""

    base_url: str | None
    timeout_seconds: float
    instance_id: str
    shared_secret: str | None = None
    audience: str = "botcipher-gateway"
    token_ttl_seconds: int = 300
    failure_threshold: int = 5
    cooldown_seconds: float = 30.0


def gateway_headers(config: GatewayConfig) -> dict[str, str]:
    """Identify this instance and, when a secret is shared, sign a short-lived token."""
    headers = {"X-BotCipher-Instance-Id": config.instance_id}
    if not config.shared_secret:
        return headers

    issued = int(time.time())
    claims = {
        "iss": config.instance_id,
        "aud": config.audience,
        "iat": issued,
        "exp": issued + max(1, config.token_ttl_seconds),
        "jti": secrets.token_hex(8),
    }
    headers["Authorization"] = "Bearer " + jwt.encode(
        claims, config.shared_secret, algorithm="HS256"
    )
    return headers


class Breaker:
    """Consecutive-failure breaker with a single trial call after cooldown."""

    def __init__(self, failure_threshold: int, cooldown_seconds: float) -> None:
        self.failure_threshold = failure_threshold
        self.cooldown_seconds = cooldown_seconds
        self.failures = 0
        self.tripped_at: float | None = None

    @property
    def tripped(self) -> bool:
        return self.tripped_at is not None

    def allows(self) -> bool:
        if self.tripped_at is None:
            return True
        return time.monotonic() - self.tripped_at >= self.cooldown_seconds

    def succeeded(self) -> None:
        if self.tripped:
            logger.info("Breaker closed after a successful trial call")
        self.failures = 0
        self.tripped_at = None

    def failed(self) -> None:
        self.failures += 1
        if self.tripped or self.failures >= self.failure_threshold:
            self.tripped_at = time.monotonic()


@dataclass
class GatewayStats:
    """Outcome counters reported on the health endpoint."""

    ok: int = 0
    rejected: int = 0
    unavailable: int = 0
    last_error: str | None = None
    last_latency_ms: float | None = None


class GatewayTransport:
    """One gateway's HTTP client, breaker and outcome counters."""

    def __init__(
        self,
        config: GatewayConfig,
        *,
        name: str = "gateway",
        error_cls: type[ServiceUnavailableError] = ServiceUnavailableError,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self.name = name
        self.stats = GatewayStats()
        self.breaker = Breaker(config.failure_threshold, config.cooldown_seconds)
        self._error_cls = error_cls
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._lock = asyncio.Lock()

    @property
    def enabled(self) -> bool:
        return bool(self.config.base_url)

    def _unavailable(self, reason: str) -> ServiceUnavailableError:
        self.breaker.failed()
        self.stats.unavailable += 1
        self.stats.last_error = reason
        return self._error_cls(f"{self.name} {reason}")

    async def _http(self) -> httpx.AsyncClient:
        async with self._lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.config.base_url or "",
                    timeout=self.config.timeout_seconds,
                    transport=self._transport,
                )
            return self._client

    async def exchange(self, method: str, path: str, body: Any = None) -> httpx.Response:
        """Send one request and return the 2xx response.

        Raises:
            ServiceUnavailableError: (or the configured subclass) when the
                gateway is disabled, tripped, unreachable or answers 5xx
            GatewayRejectedError: when the gateway answers 4xx
        """
        if not self.enabled:
            raise self._error_cls(f"{self.name} is not configured")
        if not self.breaker.allows():
            raise self._error_cls(f"{self.name} circuit breaker is open")

        client = await self._http()
        started = time.perf_counter()
        try:
            response = await client.request(
                method, path, json=body, headers=gateway_headers(self.config)
            )
        except httpx.HTTPError as exc:
            raise self._unavailable(f"request failed: {exc}") from exc
        finally:
            self.stats.last_latency_ms = (time.perf_counter() - started) * 1000

        if response.is_server_error:
            raise self._unavailable(f"responded with {response.status_code}")
        if response.is_client_error:
            self.stats.rejected += 1
            self.stats.last_error = f"{method} {path} rejected with {response.status_code}"
            try:
                payload = response.json()
            except ValueError:
                payload = None
            raise GatewayRejectedError(
                f"{self.name} rejected {method} {path} ({response.status_code})",
                status_code=response.status_code,
                payload=payload,
            )

        self.breaker.succeeded()
        self.stats.ok += 1
        return response

    async def send(self, method: str, path: str, body: Any = None) -> Any:
        """Send one request and return its decoded JSON body."""
        response = await self.exchange(method, path, body)
        try:
            return response.json()
        except ValueError as exc:
            raise self._unavailable(f"returned a non-JSON body for {path}") from exc

    async def health(self, path: str = "/health") -> dict[str, Any]:
        """Probe the gateway and report its breaker and counters."""
        report: dict[str, Any] = {"enabled": self.enabled, "status": "disabled"}
        if self.enabled:
            try:
                await self.exchange("GET", path)
            except GatewayRejectedError as exc:
                report.update(status="unhealthy", error=str(exc))
            except ServiceUnavailableError as exc:
                report.update(status="error", error=str(exc))
            else:
                report["status"] = "healthy"

        report["breaker"] = {
            "tripped": self.breaker.tripped,
            "consecutive_failures": self.breaker.failures,
        }
        report["stats"] = {
            "ok": self.stats.ok,
            "rejected": self.stats.rejected,
            "unavailable": self.stats.unavailable,
            "last_error": self.stats.last_error,
            "last_latency_ms": self.stats.last_latency_ms,
        }
        return report

    async def close(self) -> None:
        async with self._lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None
