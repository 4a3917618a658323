"""
Abstract base class for all cricket data providers.
Defines the contract that every provider adapter must implement.

Adapters never raise to callers. Every public operation returns a
ProviderResult whose outcome separates "no data yet" from transient
unavailability and from quota exhaustion; quota exhaustion is reported to the
CredentialRouter and the call is retried on the next credential tier.
"""
from __future__ import annotations

import abc
import time
from datetime import date
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from shared.models.domain import FixtureRef, ProviderEvent, ProviderLineup, ProviderScorecard
from shared.models.enums import FetchOutcome, ProviderName
from shared.utils.http_client import (
    ProviderHTTPClient,
    ProviderUnavailableError,
    QuotaExhaustedError,
    is_quota_message,
)
from shared.utils.logging import get_logger
from shared.utils.metrics import PROVIDER_OUTCOMES

from ingest.providers.registry import CredentialRouter

logger = get_logger(__name__)

T = TypeVar("T")


class ProviderResult(Generic[T]):
    """Container for one adapter operation's payload and outcome."""

    def __init__(
        self,
        provider: ProviderName,
        operation: str,
        outcome: FetchOutcome,
        payload: Optional[T] = None,
        error: Optional[str] = None,
        latency_ms: float = 0.0,
    ) -> None:
        self.provider = provider
        self.operation = operation
        self.outcome = outcome
        self.payload = payload
        self.error = error
        self.latency_ms = latency_ms

    @property
    def ok(self) -> bool:
        return self.outcome == FetchOutcome.OK and self.payload is not None

    def __repr__(self) -> str:
        return f"ProviderResult({self.provider.value}.{self.operation}={self.outcome.value})"


class BaseProvider(abc.ABC):
    """
    Abstract base class for cricket data providers.

    Subclasses implement the underscored fetchers, each taking the credential
    key to use and returning a normalized payload, or None when the provider
    has nothing for this request yet.
    """

    def __init__(
        self,
        name: ProviderName,
        http_client: ProviderHTTPClient,
        router: CredentialRouter,
    ) -> None:
        self._name = name
        self._http = http_client
        self._router = router

    @property
    def name(self) -> ProviderName:
        return self._name

    async def start(self) -> None:
        """Initialize the provider HTTP client."""
        await self._http.start()

    async def close(self) -> None:
        """Shutdown the provider HTTP client."""
        await self._http.close()

    def check_failure(self, ok: bool, reason: Any) -> bool:
        """
        Inspect a body-level status discriminator.

        Returns True when the body reports success. A failure whose reason
        names a quota raises QuotaExhaustedError; any other failure is logged
        and treated as "no data".
        """
        if ok:
            return True
        if is_quota_message(reason):
            raise QuotaExhaustedError(self._name.value, str(reason))
        logger.info("provider_reported_failure", provider=self._name.value, reason=str(reason)[:200])
        return False

    async def _call(
        self,
        operation: str,
        fetch: Callable[[str], Awaitable[Optional[T]]],
        **context: Any,
    ) -> ProviderResult[T]:
        start = time.perf_counter()
        tried: set[int] = set()
        quota_hit = False
        outcome = FetchOutcome.NO_CREDENTIAL
        payload: Optional[T] = None
        error: Optional[str] = None

        while True:
            credential = await self._router.select_credential(self._name)
            if credential is None or credential.priority in tried:
                outcome = FetchOutcome.QUOTA_EXHAUSTED if quota_hit else FetchOutcome.NO_CREDENTIAL
                break
            tried.add(credential.priority)

            try:
                payload = await fetch(credential.key)
            except QuotaExhaustedError as exc:
                quota_hit = True
                error = exc.message
                await self._router.report_quota_exhausted(self._name, credential, exc.message)
                continue
            except ProviderUnavailableError as exc:
                outcome, error = FetchOutcome.UNAVAILABLE, exc.message
                logger.warning(
                    "provider_unavailable",
                    provider=self._name.value,
                    operation=operation,
                    error=exc.message,
                    **context,
                )
                break
            except Exception as exc:
                outcome, error = FetchOutcome.UNAVAILABLE, str(exc)
                logger.error(
                    "provider_parse_error",
                    provider=self._name.value,
                    operation=operation,
                    error=str(exc),
                    exc_info=True,
                    **context,
                )
                break

            await self._router.report_success(self._name, credential)
            empty = payload is None or (isinstance(payload, list) and not payload)
            outcome = FetchOutcome.NO_DATA if empty else FetchOutcome.OK
            break

        latency_ms = (time.perf_counter() - start) * 1000
        PROVIDER_OUTCOMES.labels(
            provider=self._name.value, operation=operation, outcome=outcome.value
        ).inc()
        logger.debug(
            "provider_operation",
            provider=self._name.value,
            operation=operation,
            outcome=outcome.value,
            latency_ms=round(latency_ms, 2),
            **context,
        )
        return ProviderResult(
            provider=self._name,
            operation=operation,
            outcome=outcome,
            payload=payload if outcome == FetchOutcome.OK else None,
            error=error,
            latency_ms=latency_ms,
        )

    # ── Public operations ───────────────────────────────────────────────
    async def list_matches(self, date_from: date, date_to: date) -> ProviderResult[list[ProviderEvent]]:
        return await self._call(
            "list_matches",
            lambda key: self._list_matches(key, date_from, date_to),
            date_from=date_from.isoformat(),
            date_to=date_to.isoformat(),
        )

    async def fetch_lineup(self, fixture: FixtureRef) -> ProviderResult[ProviderLineup]:
        return await self._call(
            "fetch_lineup",
            lambda key: self._fetch_lineup(key, fixture),
            fixture=f"{fixture.team1_short} vs {fixture.team2_short}",
        )

    async def fetch_scorecard(self, fixture: FixtureRef) -> ProviderResult[ProviderScorecard]:
        return await self._call(
            "fetch_scorecard",
            lambda key: self._fetch_scorecard(key, fixture),
            fixture=f"{fixture.team1_short} vs {fixture.team2_short}",
        )

    async def fetch_match_status(self, fixture: FixtureRef) -> ProviderResult[ProviderEvent]:
        return await self._call(
            "fetch_match_status",
            lambda key: self._fetch_match_status(key, fixture),
            fixture=f"{fixture.team1_short} vs {fixture.team2_short}",
        )

    # ── Abstract methods (each provider implements these) ───────────────
    @abc.abstractmethod
    async def _list_matches(self, key: str, date_from: date, date_to: date) -> Optional[list[ProviderEvent]]:
        """Fixtures whose scheduled start falls within [date_from, date_to]."""
        ...

    @abc.abstractmethod
    async def _fetch_lineup(self, key: str, fixture: FixtureRef) -> Optional[ProviderLineup]:
        ...

    @abc.abstractmethod
    async def _fetch_scorecard(self, key: str, fixture: FixtureRef) -> Optional[ProviderScorecard]:
        ...

    @abc.abstractmethod
    async def _fetch_match_status(self, key: str, fixture: FixtureRef) -> Optional[ProviderEvent]:
        ...
