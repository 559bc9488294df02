# ABOUTME: Services layer for infrastructure concerns.
# ABOUTME: Provides HTTP pooling and caching; lookup services live in submodules.

from src.services.cache import CacheBackend, InMemoryCache, lookup_key
from src.services.http import HTTPClientManager

__all__ = [
    "CacheBackend",
    "InMemoryCache",
    "lookup_key",
    "HTTPClientManager",
]
