"""Message bundle cache package.

Provides the LRU bundle cache, in-flight load de-duplication, bundle loaders and cache metrics.
"""

from __future__ import annotations

from core.cache.inflight_manager import InFlightManager
from core.cache.loaders import (
    BundleLoader,
    BundleLoadError,
    HttpBundleLoader,
    JsonFileBundleLoader,
    MappingBundleLoader,
)
from core.cache.lru_cache import LRUCache
from core.cache.manager import TranslationCacheManager
from core.cache.metrics import MetricsCollector

__all__: list[str] = [
    "BundleLoadError",
    "BundleLoader",
    "HttpBundleLoader",
    "InFlightManager",
    "JsonFileBundleLoader",
    "LRUCache",
    "MappingBundleLoader",
    "MetricsCollector",
    "TranslationCacheManager",
]
