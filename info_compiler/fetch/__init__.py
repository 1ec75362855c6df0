# info_compiler/fetch/__init__.py
"""
Polite fetcher package: robots.txt grants, per-host crawl-delay throttling, and an httpx client.

Crawler-facing API:
  - FetcherClient.fetch(url) -> FetchResult

Other public entry points:
  - robots helpers: resolve, is_allowed, get_crawl_delay, Grant
  - throttle: PolitenessController, MonotonicClock, reserve_slot
"""

from .client import (
    FetcherClient,
    FetchResult,
    fetch_url,
)
from .robots import (
    NO_DIRECTIVES,
    Grant,
    get_crawl_delay,
    is_allowed,
    resolve,
    robots_url_for,
)
from .robots import (
    clear_cache as clear_robots_cache,
)
from .throttle import (
    Clock,
    MonotonicClock,
    PolitenessController,
    default_controller,
    next_allowed_at,
    reserve_slot,
)
from .throttle import (
    clear as clear_throttle,
)

__all__ = [
    # client
    "fetch_url",
    "FetcherClient",
    "FetchResult",
    # robots
    "Grant",
    "NO_DIRECTIVES",
    "resolve",
    "is_allowed",
    "get_crawl_delay",
    "robots_url_for",
    "clear_robots_cache",
    # throttle
    "Clock",
    "MonotonicClock",
    "PolitenessController",
    "default_controller",
    "reserve_slot",
    "next_allowed_at",
    "clear_throttle",
]
