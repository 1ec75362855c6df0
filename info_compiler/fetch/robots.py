# info_compiler/fetch/robots.py
from __future__ import annotations

import logging
import re
import threading
import time
from dataclasses import dataclass, field
from urllib.parse import urlsplit

import httpx

from .. import config

log = logging.getLogger(__name__)

# --------------------------------------------------------------------------------------
# Configuration (env-overridable via info_compiler.config)
# --------------------------------------------------------------------------------------

ROBOTS_PATH = "/robots.txt"
ROBOTS_TTL_SECONDS = config.ROBOTS_TTL_SECONDS
ROBOTS_TIMEOUT_SECONDS = config.ROBOTS_TIMEOUT_SECONDS
FETCH_USER_AGENT = config.FETCH_USER_AGENT

# Grants are evaluated for the wildcard group only
WILDCARD_AGENT = "*"

# --------------------------------------------------------------------------------------
# Data structures
# --------------------------------------------------------------------------------------


@dataclass(frozen=True)
class Grant:
    """Permission decision for one URL plus the host's crawl delay, if any."""

    allowed: bool
    crawl_delay: float | None = None


NO_DIRECTIVES = Grant(allowed=True, crawl_delay=None)


@dataclass
class _Rule:
    allow: bool
    path: str
    pattern: re.Pattern[str]


@dataclass
class _Group:
    uas: list[str] = field(default_factory=list)  # lowercased UA tokens
    rules: list[_Rule] = field(default_factory=list)
    crawl_delay: float | None = None


@dataclass
class ParsedRobots:
    groups: list[_Group] = field(default_factory=list)


@dataclass
class _Policy:
    """Resolved wildcard-group policy for one robots.txt URL."""

    kind: str  # "no_directives" | "rules"
    rules: list[_Rule] = field(default_factory=list)
    crawl_delay: float | None = None
    status_code: int | None = None
    reason: str = ""
    # monotonic-based expiry; tests can fake time.monotonic()
    expires_at: float = 0.0


# robots URL → _Policy
_MEMO: dict[str, _Policy] = {}
_LOCKS: dict[str, threading.Lock] = {}
_GLOBAL_LOCK = threading.Lock()


# --------------------------------------------------------------------------------------
# Helpers
# --------------------------------------------------------------------------------------


def _now() -> float:
    return time.monotonic()


def _key_lock(key: str) -> threading.Lock:
    with _GLOBAL_LOCK:
        lk = _LOCKS.get(key)
        if lk is None:
            lk = threading.Lock()
            _LOCKS[key] = lk
        return lk


def _strip_comment(line: str) -> str:
    idx = line.find("#")
    return line if idx < 0 else line[:idx]


def _split_kv(line: str) -> tuple[str, str] | None:
    if ":" not in line:
        return None
    k, v = line.split(":", 1)
    return k.strip().lower(), v.strip()


def _compile_rule_path(path: str) -> re.Pattern[str]:
    """
    Turn a robots path pattern into an anchored regex.
    '*' matches any run of characters; a trailing '$' anchors the end.
    """
    anchored = path.endswith("$")
    body = path[:-1] if anchored else path
    regex = ".*".join(re.escape(part) for part in body.split("*"))
    return re.compile(regex + ("$" if anchored else ""))


def robots_url_for(url: str) -> str:
    """'https://Example.com/a/b?q=1' -> 'https://example.com/robots.txt'."""
    parts = urlsplit(url)
    scheme = (parts.scheme or "https").lower()
    return f"{scheme}://{parts.netloc.lower()}{ROBOTS_PATH}"


def _path_of(url: str) -> str:
    parts = urlsplit(url)
    path = parts.path or "/"
    if parts.query:
        path = f"{path}?{parts.query}"
    return path


# --------------------------------------------------------------------------------------
# Parsing / evaluation
# --------------------------------------------------------------------------------------


def parse_robots(text: str) -> ParsedRobots:
    """
    Minimal robots.txt parser supporting:
      - User-agent
      - Allow
      - Disallow
      - Crawl-delay
    Groups are contiguous UA lines followed by directives (RFC 9309 style).
    """
    groups: list[_Group] = []
    current = _Group()
    seen_any_directive = False

    for raw in text.splitlines():
        line = _strip_comment(raw).strip()
        if not line:
            continue
        kv = _split_kv(line)
        if not kv:
            continue
        key, val = kv

        if key == "user-agent":
            val_lc = val.lower()
            if not seen_any_directive:
                # first or additional UA for the same (still directive-free) group
                current.uas.append(val_lc)
                continue
            if current.uas or current.rules or current.crawl_delay is not None:
                groups.append(current)
            current = _Group(uas=[val_lc])
            seen_any_directive = False
            continue

        seen_any_directive = True

        if key in ("allow", "disallow"):
            if val == "":
                # empty Allow/Disallow is a no-op
                continue
            current.rules.append(_Rule(key == "allow", val, _compile_rule_path(val)))
        elif key == "crawl-delay":
            try:
                cd = float(val)
            except ValueError:
                continue
            if cd >= 0:
                current.crawl_delay = cd
        # Sitemap and unknown directives are ignored

    if current.uas or current.rules or current.crawl_delay is not None:
        groups.append(current)

    return ParsedRobots(groups=groups)


def _wildcard_group(parsed: ParsedRobots) -> _Group | None:
    """Every group naming '*', merged in file order; first Crawl-delay wins."""
    matched = [g for g in parsed.groups if WILDCARD_AGENT in g.uas]
    if not matched:
        return None
    merged = _Group(uas=[WILDCARD_AGENT])
    for g in matched:
        merged.rules.extend(g.rules)
        if merged.crawl_delay is None:
            merged.crawl_delay = g.crawl_delay
    return merged


def evaluate_rules(path: str, rules: list[_Rule]) -> bool:
    """
    Longest matching pattern wins; on equal length Allow beats Disallow.
    No matching rule means allowed.
    """
    best: _Rule | None = None
    best_len = -1
    for r in rules:
        if not r.pattern.match(path):
            continue
        plen = len(r.path)
        tie_break = plen == best_len and r.allow and best is not None and not best.allow
        if plen > best_len or tie_break:
            best = r
            best_len = plen
    return True if best is None else best.allow


def _policy_from_text(text: str) -> _Policy:
    grp = _wildcard_group(parse_robots(text))
    if grp is None:
        return _Policy(kind="no_directives", reason="no-wildcard-group", status_code=200)
    return _Policy(
        kind="rules",
        rules=grp.rules[:],
        crawl_delay=grp.crawl_delay,
        reason="parsed",
        status_code=200,
    )


def _fetch_policy(robots_url: str) -> _Policy:
    """
    Fetch and resolve robots.txt. Unreachable or absent robots.txt is treated
    as "no directives": access allowed, no crawl delay.
    """
    try:
        with httpx.Client(
            timeout=ROBOTS_TIMEOUT_SECONDS,
            follow_redirects=True,
            headers={"User-Agent": FETCH_USER_AGENT},
        ) as client:
            resp = client.get(robots_url)
    except httpx.HTTPError as exc:
        log.info("robots.txt unreachable, proceeding without directives: %s (%s)", robots_url, exc)
        return _Policy(kind="no_directives", reason=f"unreachable:{type(exc).__name__}")

    status = resp.status_code
    if not 200 <= status < 300:
        log.debug("robots.txt status %s for %s; no directives", status, robots_url)
        return _Policy(kind="no_directives", reason=f"{status}-no-robots", status_code=status)

    try:
        text = resp.text or ""
    except (UnicodeDecodeError, LookupError):
        return _Policy(kind="no_directives", reason="undecodable", status_code=status)
    return _policy_from_text(text)


def _get_policy(robots_url: str, *, force_refresh: bool = False) -> _Policy:
    with _key_lock(robots_url):
        pol = _MEMO.get(robots_url)
        now = _now()
        if force_refresh or pol is None or pol.expires_at <= now:
            pol = _fetch_policy(robots_url)
            pol.expires_at = now + ROBOTS_TTL_SECONDS
            _MEMO[robots_url] = pol
        return pol


# --------------------------------------------------------------------------------------
# Public API
# --------------------------------------------------------------------------------------


def resolve(url: str, *, refresh: bool = False) -> Grant:
    """
    Return the wildcard-agent Grant for `url`.

    Fail-open: if the host's robots.txt cannot be fetched or does not exist the
    grant is NO_DIRECTIVES (allowed, no delay).
    """
    pol = _get_policy(robots_url_for(url), force_refresh=refresh)
    if pol.kind == "no_directives":
        return NO_DIRECTIVES
    return Grant(allowed=evaluate_rules(_path_of(url), pol.rules), crawl_delay=pol.crawl_delay)


def is_allowed(url: str, *, refresh: bool = False) -> bool:
    return resolve(url, refresh=refresh).allowed


def get_crawl_delay(url: str, *, refresh: bool = False) -> float | None:
    """Crawl-delay (seconds) for the URL's host, or None when unspecified."""
    return resolve(url, refresh=refresh).crawl_delay


# --------------------------------------------------------------------------------------
# Test/ops helpers
# --------------------------------------------------------------------------------------


def _debug_peek_policy(robots_url: str) -> _Policy | None:
    return _MEMO.get(robots_url)


def clear_cache(robots_url: str | None = None) -> None:
    """Clear robots memoization cache (all or one robots URL)."""
    with _GLOBAL_LOCK:
        if robots_url is None:
            _MEMO.clear()
            _LOCKS.clear()
        else:
            _MEMO.pop(robots_url, None)
            _LOCKS.pop(robots_url, None)
