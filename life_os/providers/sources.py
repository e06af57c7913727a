"""
Generic provider handles.

Concrete integrations (brokerage, health ring, mail) run as separate
collectors. The engine reads what they publish: an in-memory payload,
a JSON snapshot on disk, or a JSON document over HTTP. The snapshot
shape is:

    {"connected": true, "fields": {"equity": true, ...}, "payload": {...}}

where "connected" and "fields" are optional.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any

import httpx

from ..state_store import read_json
from .base import DataProvider, FetchContext, Provider, ProviderResult, field_present

logger = logging.getLogger(__name__)


def result_from_snapshot(spec: Provider, snapshot: Any, ctx: FetchContext) -> ProviderResult | None:
    """Turn a collector snapshot document into a ProviderResult."""
    if not isinstance(snapshot, dict):
        return None
    payload = snapshot.get("payload", {})
    if not snapshot.get("connected", True):
        return ProviderResult.disconnected(
            spec.id, snapshot.get("error") or "collector reports disconnected", ctx.now
        )
    declared = snapshot.get("fields")
    if isinstance(declared, dict):
        presence = {name: bool(declared.get(name)) for name in spec.fields}
    else:
        presence = {name: field_present(payload, name) for name in spec.fields}
    return ProviderResult(
        provider_id=spec.id,
        connected=True,
        field_presence=presence,
        payload=payload,
        fetched_at=ctx.now,
    )


class StaticProvider(DataProvider):
    """Serves a fixed payload. Used for manual data and tests."""

    def __init__(self, spec: Provider, payload: dict | None = None, connected: bool = True):
        super().__init__(spec)
        self.payload = payload if payload is not None else {}
        self.connected = connected

    def update(self, payload: dict | None, connected: bool = True) -> None:
        self.payload = payload if payload is not None else {}
        self.connected = connected

    async def fetch(self, ctx: FetchContext) -> dict | None:
        if not self.connected:
            return None
        return self.payload


class FileSnapshotProvider(DataProvider):
    """Reads the latest snapshot an external collector wrote to disk."""

    def __init__(self, spec: Provider, path: str | Path):
        super().__init__(spec)
        self.path = Path(path)

    async def fetch(self, ctx: FetchContext) -> ProviderResult | None:
        snapshot = await asyncio.to_thread(read_json, self.path)
        if snapshot is None:
            return ProviderResult.disconnected(self.spec.id, f"no snapshot at {self.path}", ctx.now)
        return result_from_snapshot(self.spec, snapshot, ctx)

    async def health_check(self) -> bool:
        return self.path.exists()


class HttpProvider(DataProvider):
    """GETs a snapshot document from a collector's HTTP endpoint."""

    def __init__(
        self,
        spec: Provider,
        url: str,
        headers: dict | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        super().__init__(spec)
        self.url = url
        self.headers = headers or {}
        self._client = client

    async def _get(self, url: str, timeout: float) -> httpx.Response:
        if self._client is not None:
            return await self._client.get(url, headers=self.headers, timeout=timeout)
        async with httpx.AsyncClient() as client:
            return await client.get(url, headers=self.headers, timeout=timeout)

    async def fetch(self, ctx: FetchContext) -> ProviderResult | None:
        response = await self._get(self.url, timeout=ctx.deadline_seconds)
        response.raise_for_status()
        return result_from_snapshot(self.spec, response.json(), ctx)

    async def health_check(self) -> bool:
        try:
            response = await self._get(self.url, timeout=5.0)
        except httpx.RequestError as e:
            logger.debug(f"Health check for {self.spec.id} failed: {e}")
            return False
        return response.status_code < 500
