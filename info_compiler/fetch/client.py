# info_compiler/fetch/client.py
from __future__ import annotations

import logging
import time
from dataclasses import dataclass

import httpx

from .. import config
from ..config import FetchConfig
from ..exceptions import PermissionDenied
from . import robots, throttle

log = logging.getLogger(__name__)

# --------------------------------------------------------------------------------------------------
# Module configuration
# --------------------------------------------------------------------------------------------------

FETCH_USER_AGENT = config.FETCH_USER_AGENT
CONNECT_TIMEOUT_S = config.FETCH_CONNECT_TIMEOUT_SEC
READ_TIMEOUT_S = config.FETCH_TIMEOUT_SEC
FETCH_MAX_RETRIES = config.FETCH_MAX_RETRIES
RETRY_BASE_S = config.FETCH_RETRY_BASE_SEC
FETCH_MAX_READ_BYTES = config.FETCH_MAX_BODY_BYTES
FETCH_ACCEPT = "text/html, */*"

# --------------------------------------------------------------------------------------------------
# Results
# --------------------------------------------------------------------------------------------------


@dataclass
class FetchResult:
    status: int
    url: str
    effective_url: str
    content_type: str | None
    body: bytes | None
    reason: str  # "network" | "blocked-by-robots" | "throttle-interrupted" | "error:<kind>"

    @property
    def ok(self) -> bool:
        return self.reason == "network" and 200 <= self.status < 300 and self.body is not None


# --------------------------------------------------------------------------------------------------
# Helpers
# --------------------------------------------------------------------------------------------------


def _read_capped(resp: httpx.Response, limit: int) -> bytes:
    """Read at most `limit` bytes of the body; the rest is never downloaded."""
    buf = bytearray()
    for chunk in resp.iter_bytes():
        buf.extend(chunk)
        if len(buf) >= limit:
            break
    return bytes(buf[:limit])


def _failed(url: str, status: int, reason: str, effective_url: str | None = None) -> FetchResult:
    return FetchResult(
        status=status,
        url=url,
        effective_url=effective_url or url,
        content_type=None,
        body=None,
        reason=reason,
    )


# --------------------------------------------------------------------------------------------------
# Client
# --------------------------------------------------------------------------------------------------


class FetcherClient:
    """
    Small wrapper around httpx that enforces robots + crawl-delay politeness.

    Flow:
      1) robots.resolve(url) → if disallowed: blocked result (or raise PermissionDenied)
      2) grant has a crawl-delay → controller.reserve_slot(robots URL, delay);
         an interrupted wait returns a "throttle-interrupted" result
      3) streamed http GET, body read up to max_body_bytes; retry transport errors
         and >=500 with exponential backoff
    """

    def __init__(
        self,
        *,
        user_agent: str | None = None,
        controller: throttle.PolitenessController | None = None,
        raise_on_disallow: bool = False,
        settings: FetchConfig | None = None,
    ) -> None:
        if settings is not None:
            self.user_agent = user_agent or settings.user_agent
            self.max_retries = settings.max_retries
            self.retry_base = settings.retry_base_sec
            self.max_body_bytes = settings.max_body_bytes
            timeout = httpx.Timeout(settings.timeout_sec, connect=settings.connect_timeout_sec)
        else:
            self.user_agent = user_agent or FETCH_USER_AGENT
            self.max_retries = FETCH_MAX_RETRIES
            self.retry_base = RETRY_BASE_S
            self.max_body_bytes = FETCH_MAX_READ_BYTES
            timeout = httpx.Timeout(READ_TIMEOUT_S, connect=CONNECT_TIMEOUT_S)
        self.controller = controller or throttle.default_controller()
        self.raise_on_disallow = raise_on_disallow

        self._client = httpx.Client(
            headers={"User-Agent": self.user_agent, "Accept": FETCH_ACCEPT},
            timeout=timeout,
            follow_redirects=True,
        )

    # ---- core fetch ------------------------------------------------------------------

    def fetch(self, url: str) -> FetchResult:
        grant = robots.resolve(url)
        if not grant.allowed:
            if self.raise_on_disallow:
                raise PermissionDenied(url)
            log.info("Skipping %s: disallowed by robots.txt", url)
            # 451 (Unavailable For Legal Reasons) as a "blocked" sentinel
            return _failed(url, 451, "blocked-by-robots")

        if grant.crawl_delay is not None and not self.controller.reserve_slot(
            robots.robots_url_for(url), grant.crawl_delay
        ):
            return _failed(url, 0, "throttle-interrupted")

        return self._do_request_with_retries(url)

    def get(self, url: str) -> FetchResult:
        return self.fetch(url)

    # ----------------------------------------------------------------------------------
    # Internals
    # ----------------------------------------------------------------------------------

    def _do_request_with_retries(self, url: str) -> FetchResult:
        attempt = 0
        while True:
            try:
                with self._client.stream("GET", url) as resp:
                    status = int(resp.status_code)
                    effective_url = str(resp.url)
                    content_type = resp.headers.get("Content-Type")
                    # error bodies are never read
                    ok = 200 <= status < 300
                    body = _read_capped(resp, self.max_body_bytes) if ok else None
            except httpx.HTTPError as exc:
                if attempt >= self.max_retries:
                    log.warning("Fetch failed for %s: %s", url, exc)
                    return _failed(url, 599, f"error:{type(exc).__name__}")
                self._sleep_retry(attempt)
                attempt += 1
                continue

            if body is not None:
                return FetchResult(
                    status=status,
                    url=url,
                    effective_url=effective_url,
                    content_type=content_type,
                    body=body,
                    reason="network",
                )

            if status >= 500 and attempt < self.max_retries:
                self._sleep_retry(attempt)
                attempt += 1
                continue

            log.warning("Fetch of %s returned HTTP %s", url, status)
            reason = "error:server" if status >= 500 else "error:status"
            return _failed(url, status, reason, effective_url)

    def _sleep_retry(self, attempt: int) -> None:
        # tests can monkeypatch time.sleep
        time.sleep(self.retry_base * (2**attempt))

    # ----------------------------------------------------------------------------------
    # Context manager
    # ----------------------------------------------------------------------------------

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> FetcherClient:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def fetch_url(url: str) -> FetchResult:
    """
    One-shot convenience wrapper.

    Usage:
        from info_compiler.fetch import fetch_url
        res = fetch_url("https://example.com/")
    """
    with FetcherClient() as client:
        return client.get(url)


__all__ = [
    "FetcherClient",
    "FetchResult",
    "fetch_url",
]
