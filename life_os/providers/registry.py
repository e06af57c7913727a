"""
Provider Registry - declared providers plus their handles.

The registry is built once at startup and never mutated afterwards.
gather() asks every declared provider for its result in parallel, each
under its own fetch deadline, and always returns one ProviderResult per
declared provider: failures, timeouts and missing handles come back as
connected=false.
"""

import asyncio
import logging
from collections.abc import Sequence
from types import MappingProxyType

from ..clock import Clock, SystemClock
from .base import DataProvider, FetchContext, Provider, ProviderResult, field_present
from .resilience import CircuitBreaker

logger = logging.getLogger(__name__)


DEFAULT_PROVIDERS: tuple[Provider, ...] = (
    Provider("identity", "Professional Identity", "identity", 15, True,
             ("name", "headline", "positions", "skills")),
    Provider("portfolio", "Trading Portfolio", "financial", 15, False,
             ("equity", "positions", "buying_power")),
    Provider("health", "Health Ring", "health", 15, False,
             ("sleep", "readiness", "activity", "history")),
    Provider("bank_accounts", "Bank Accounts", "financial", 10, False,
             ("accounts", "balances", "net_worth")),
    Provider("calendar", "Calendar", "calendar", 10, False, ("events", "weekly_hours")),
    Provider("email", "Email", "communication", 10, False, ("inbox", "unread")),
    Provider("goals", "Goals", "goals", 15, True, ("active_goals",)),
    Provider("safety", "Safety Monitor", "safety", 5, False, ("active_alerts", "plan")),
    Provider("ai_model", "AI Model", "system", 5, True, ("model", "available")),
    # Auxiliary feeds: read by the analyzer, no weight in coverage
    Provider("life_scores", "Life Scores", "scores", 0, False, ("categories",)),
    Provider("predictions", "Prediction Markets", "financial", 0, False, ("markets",)),
)


class ProviderRegistry:
    """Immutable set of declared providers and the handles that serve them."""

    def __init__(
        self,
        declared: Sequence[Provider] = DEFAULT_PROVIDERS,
        handles: Sequence[DataProvider] = (),
        fetch_timeout: float = 10.0,
        health_timeout: float = 5.0,
        clock: Clock | None = None,
        failure_threshold: int = 5,
        cooldown_seconds: float = 300,
    ):
        ids = [p.id for p in declared]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Duplicate provider ids in {ids}")

        self.clock = clock or SystemClock()
        self.fetch_timeout = fetch_timeout
        self.health_timeout = health_timeout
        self._declared: tuple[Provider, ...] = tuple(declared)

        handle_map: dict[str, DataProvider] = {}
        for handle in handles:
            if handle.provider_id not in ids:
                raise ValueError(f"Handle for undeclared provider {handle.provider_id!r}")
            handle_map[handle.provider_id] = handle
        self._handles = MappingProxyType(handle_map)
        self._breakers = MappingProxyType(
            {
                pid: CircuitBreaker(failure_threshold, cooldown_seconds, self.clock, name=pid)
                for pid in handle_map
            }
        )

    @property
    def providers(self) -> tuple[Provider, ...]:
        return self._declared

    def get(self, provider_id: str) -> Provider | None:
        for p in self._declared:
            if p.id == provider_id:
                return p
        return None

    def handle(self, provider_id: str) -> DataProvider | None:
        return self._handles.get(provider_id)

    def breaker_states(self) -> dict[str, str]:
        return {pid: b.state for pid, b in self._breakers.items()}

    async def gather(self, cycle: int = 0) -> dict[str, ProviderResult]:
        """Fetch every declared provider in parallel. Never raises for provider errors."""
        ctx = FetchContext(cycle=cycle, now=self.clock.now(), deadline_seconds=self.fetch_timeout)
        results = await asyncio.gather(*(self._fetch_one(p, ctx) for p in self._declared))
        return {r.provider_id: r for r in results}

    async def _fetch_one(self, spec: Provider, ctx: FetchContext) -> ProviderResult:
        handle = self._handles.get(spec.id)
        if handle is None:
            return ProviderResult.disconnected(spec.id, "not registered", ctx.now)

        breaker = self._breakers[spec.id]
        if not breaker.can_execute():
            return ProviderResult.disconnected(spec.id, "circuit open", ctx.now)

        try:
            raw = await asyncio.wait_for(handle.fetch(ctx), timeout=self.fetch_timeout)
        except asyncio.TimeoutError:
            breaker.record_failure()
            logger.warning(f"Provider {spec.id} timed out after {self.fetch_timeout}s")
            return ProviderResult.disconnected(
                spec.id, f"timeout after {self.fetch_timeout}s", ctx.now
            )
        except Exception as e:
            breaker.record_failure()
            logger.warning(f"Provider {spec.id} failed: {e}")
            return ProviderResult.disconnected(spec.id, str(e)[:200] or type(e).__name__, ctx.now)

        result = self._to_result(spec, raw, ctx)
        if result.connected:
            breaker.record_success()
        return result

    @staticmethod
    def _to_result(spec: Provider, raw, ctx: FetchContext) -> ProviderResult:
        if raw is None:
            return ProviderResult.disconnected(spec.id, "not connected", ctx.now)
        if isinstance(raw, ProviderResult):
            if raw.connected and not raw.field_presence and spec.fields:
                raw.field_presence = {f: field_present(raw.payload, f) for f in spec.fields}
            return raw
        if not isinstance(raw, dict):
            return ProviderResult.disconnected(
                spec.id, f"malformed payload ({type(raw).__name__})", ctx.now
            )
        return ProviderResult(
            provider_id=spec.id,
            connected=True,
            field_presence={f: field_present(raw, f) for f in spec.fields},
            payload=raw,
            fetched_at=ctx.now,
        )

    async def health_check(self) -> dict[str, bool]:
        """Run every handle's health check under the health-check deadline."""

        async def check(pid: str, handle: DataProvider) -> tuple[str, bool]:
            try:
                ok = await asyncio.wait_for(handle.health_check(), timeout=self.health_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Health check for {pid} timed out")
                return pid, False
            except Exception as e:
                logger.warning(f"Health check for {pid} failed: {e}")
                return pid, False
            return pid, bool(ok)

        pairs = await asyncio.gather(*(check(pid, h) for pid, h in self._handles.items()))
        return dict(pairs)
