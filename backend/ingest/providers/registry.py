"""
Credential routing and the provider registry.

Each provider may hold several API keys in priority order (tier 1 first).
When a tier reports quota exhaustion it is blocked for a cooldown and the
next tier serves requests; once the cooldown has passed, the next selection
unblocks it again. All bookkeeping lives in memory and is shared by every
concurrent scheduler task, so it is guarded by an asyncio.Lock.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Iterable, Optional, Sequence

from shared.models.enums import ProviderName
from shared.utils.logging import get_logger, key_hint
from shared.utils.metrics import CREDENTIAL_BLOCKS, CREDENTIAL_TIER_BLOCKED

if TYPE_CHECKING:
    from ingest.providers.base import BaseProvider

logger = get_logger(__name__)


@dataclass
class ProviderCredential:
    key: str
    priority: int
    blocked_until: Optional[float] = None
    last_success_at: Optional[float] = None

    @property
    def hint(self) -> str:
        return key_hint(self.key)


class CredentialRouter:
    """
    Picks the highest-priority usable credential per provider.

    Times come from an injectable monotonic clock so cooldown expiry can be
    driven from tests.
    """

    def __init__(
        self,
        cooldown_s: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._cooldown_s = cooldown_s
        self._clock = clock
        self._tiers: dict[ProviderName, list[ProviderCredential]] = {}
        self._lock = asyncio.Lock()

    def register(self, provider: ProviderName, keys: Sequence[str]) -> None:
        """Register keys for a provider; list order is priority order. Blank keys are ignored."""
        tiers = [
            ProviderCredential(key=key, priority=i)
            for i, key in enumerate((k for k in keys if k), start=1)
        ]
        self._tiers[provider] = tiers
        logger.info("credentials_registered", provider=provider.value, tiers=len(tiers))

    def has_credentials(self, provider: ProviderName) -> bool:
        return bool(self._tiers.get(provider))

    async def select_credential(self, provider: ProviderName) -> Optional[ProviderCredential]:
        """Highest-priority tier that is not blocked, or None when every tier is cooling down."""
        async with self._lock:
            now = self._clock()
            for cred in self._tiers.get(provider, []):
                if cred.blocked_until is not None:
                    if now < cred.blocked_until:
                        continue
                    cred.blocked_until = None
                    CREDENTIAL_TIER_BLOCKED.labels(
                        provider=provider.value, priority=str(cred.priority)
                    ).set(0)
                    logger.info(
                        "credential_tier_unblocked",
                        provider=provider.value,
                        priority=cred.priority,
                        key=cred.hint,
                    )
                return cred
            return None

    async def report_success(self, provider: ProviderName, credential: ProviderCredential) -> None:
        async with self._lock:
            credential.last_success_at = self._clock()

    async def report_quota_exhausted(
        self,
        provider: ProviderName,
        credential: ProviderCredential,
        reason: str = "",
    ) -> None:
        """Block the tier for the cooldown. A tier that is already blocked keeps its expiry."""
        async with self._lock:
            now = self._clock()
            if credential.blocked_until is not None and now < credential.blocked_until:
                return
            credential.blocked_until = now + self._cooldown_s
            CREDENTIAL_BLOCKS.labels(provider=provider.value, priority=str(credential.priority)).inc()
            CREDENTIAL_TIER_BLOCKED.labels(
                provider=provider.value, priority=str(credential.priority)
            ).set(1)
            logger.warning(
                "credential_tier_blocked",
                provider=provider.value,
                priority=credential.priority,
                key=credential.hint,
                cooldown_s=self._cooldown_s,
                reason=reason[:200],
            )

    def tier_states(self, provider: ProviderName) -> list[dict]:
        """Snapshot of one provider's tiers, for the health endpoint."""
        now = self._clock()
        return [
            {
                "priority": c.priority,
                "key": c.hint,
                "blocked": c.blocked_until is not None and now < c.blocked_until,
                "unblocks_in_s": round(max(0.0, c.blocked_until - now), 1) if c.blocked_until else 0.0,
            }
            for c in self._tiers.get(provider, [])
        ]


class ProviderRegistry:
    """Holds the configured adapters and hands them out in a requested order."""

    def __init__(self, providers: dict[ProviderName, "BaseProvider"], router: CredentialRouter) -> None:
        self._providers = providers
        self._router = router

    @property
    def providers(self) -> dict[ProviderName, "BaseProvider"]:
        return self._providers

    @property
    def router(self) -> CredentialRouter:
        return self._router

    def get(self, name: ProviderName) -> Optional["BaseProvider"]:
        return self._providers.get(name)

    def ordered(self, names: Iterable[str | ProviderName]) -> list["BaseProvider"]:
        """Adapters in the given order, skipping unknown names and providers without a key."""
        out: list["BaseProvider"] = []
        for raw in names:
            try:
                name = ProviderName(raw)
            except ValueError:
                logger.warning("unknown_provider_in_order", provider=str(raw))
                continue
            provider = self._providers.get(name)
            if provider is not None and self._router.has_credentials(name):
                out.append(provider)
        return out

    async def start(self) -> None:
        for provider in self._providers.values():
            await provider.start()

    async def close(self) -> None:
        for provider in self._providers.values():
            await provider.close()
