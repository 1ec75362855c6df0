"""
Candidate news discovery via a custom-search JSON API.

Public API:

    class CustomSearchClient:
        def search_urls(self, query: str) -> list[str]

Behavior:
  - If the API key or engine id is missing, no request is made and the
    result is [].
  - Otherwise performs one GET with key / cx / q and returns items[].link
    in response order.

Failures (network errors, non-2xx, bad JSON, odd shapes) never raise; they
are logged and represented as an empty list, which simply means there is
nothing to crawl for that candidate.
"""

# info_compiler/crawl/search.py
from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from .. import config

log = logging.getLogger(__name__)


class UrlSearch(Protocol):
    def search_urls(self, query: str) -> list[str]: ...


def _links(data: Any) -> list[str]:
    if not isinstance(data, dict):
        return []
    items = data.get("items") or []
    if not isinstance(items, list):
        return []
    out: list[str] = []
    for item in items:
        if isinstance(item, dict):
            link = item.get("link")
            if isinstance(link, str) and link.strip():
                out.append(link.strip())
    return out


class CustomSearchClient:
    def __init__(
        self,
        *,
        url: str | None = None,
        key: str | None = None,
        engine_id: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.url = url or config.CUSTOM_SEARCH_URL
        self.key = config.CUSTOM_SEARCH_KEY if key is None else key
        self.engine_id = config.CUSTOM_SEARCH_ENGINE_ID if engine_id is None else engine_id
        self.timeout = timeout or config.FETCH_TIMEOUT_SEC

    def search_urls(self, query: str) -> list[str]:
        q = (query or "").strip()
        if not q:
            return []
        if not self.key or not self.engine_id:
            log.info("Custom search not configured; no URLs for %r", q)
            return []

        params = {"key": self.key, "cx": self.engine_id, "q": q}
        try:
            with httpx.Client(
                timeout=self.timeout,
                headers={"User-Agent": config.FETCH_USER_AGENT, "Accept": "application/json"},
            ) as client:
                resp = client.get(self.url, params=params)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            log.warning("Custom search failed for %r: %s: %s", q, type(exc).__name__, exc)
            return []

        links = _links(data)
        log.debug("Custom search for %r returned %d links", q, len(links))
        return links


__all__ = ["UrlSearch", "CustomSearchClient"]
