"""Caching utilities for the Feedback Radar API."""

import hashlib
import json
from functools import wraps
from typing import Callable

from cachetools import TTLCache

# Global caches - persist across Lambda invocations (warm starts)
CACHE_TTL_SECONDS = 300  # 5 minutes; analysis lands within seconds anyway
# One entry per dashboard period (24h, 7d, 30d, all)
_dashboard_cache: TTLCache = TTLCache(maxsize=8, ttl=CACHE_TTL_SECONDS)


def get_cache_key(*args, **kwargs) -> str:
    """Generate a cache key from function arguments."""
    key_data = json.dumps({"args": args, "kwargs": kwargs}, sort_keys=True, default=str)
    # MD5 is used here only for cache key generation, not for security purposes
    return hashlib.md5(key_data.encode(), usedforsecurity=False).hexdigest()


def cached_dashboard(func: Callable) -> Callable:
    """Cache decorator for dashboard aggregates (5-minute TTL)."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        cache_key = get_cache_key(*args, **kwargs)
        if cache_key in _dashboard_cache:
            return _dashboard_cache[cache_key]
        result = func(*args, **kwargs)
        _dashboard_cache[cache_key] = result
        return result

    return wrapper


def clear_all_caches() -> None:
    """Clear all caches. Useful for testing and after triage changes."""
    _dashboard_cache.clear()


# Cache-Control header values
CACHE_CONTROL_PUBLIC = "public, max-age=300"  # Dashboard aggregates
CACHE_CONTROL_PRIVATE = "private, no-cache"  # Inbox, changes on every triage
