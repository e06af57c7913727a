"""
Providers - external data sources feeding the engine's context.
"""

from .base import DataProvider, FetchContext, Provider, ProviderResult
from .registry import DEFAULT_PROVIDERS, ProviderRegistry
from .resilience import CircuitBreaker, CircuitBreakerState
from .sources import FileSnapshotProvider, HttpProvider, StaticProvider

__all__ = [
    "Provider",
    "ProviderResult",
    "DataProvider",
    "FetchContext",
    "ProviderRegistry",
    "DEFAULT_PROVIDERS",
    "CircuitBreaker",
    "CircuitBreakerState",
    "StaticProvider",
    "FileSnapshotProvider",
    "HttpProvider",
]
