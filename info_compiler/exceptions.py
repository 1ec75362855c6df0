# info_compiler/exceptions.py
"""
Shared exception classes used across the pipeline.

Every per-item failure below is caught at the smallest granularity by the
crawl orchestrator or the civic compiler. StoreUnavailable is the one that
is allowed to escape and end a run.
"""

from __future__ import annotations


class InfoCompilerError(Exception):
    """Base class for all pipeline errors."""


class TransientFetchError(InfoCompilerError):
    """
    Raised when a network call fails in a way that only affects the current item.

    Examples:
        - connection refused / DNS failure
        - read or connect timeout
        - non-2xx HTTP status after retries
    """


class ParseError(InfoCompilerError):
    """
    Raised when a response or document cannot be parsed.

    Examples:
        - malformed JSON from the civic API
        - an electionDay that is not YYYY-MM-DD
    """


class PermissionDenied(InfoCompilerError):
    """Raised when robots.txt disallows a URL for the wildcard user agent."""

    def __init__(self, url: str) -> None:
        super().__init__(f"Blocked by robots.txt: {url}")
        self.url = url


class InterruptedWait(InfoCompilerError):
    """Raised by a clock when a politeness wait is cancelled before it finishes."""


class StoreUnavailable(InfoCompilerError):
    """Raised when the entity store cannot be read or written. Fatal for a run."""


__all__ = [
    "InfoCompilerError",
    "TransientFetchError",
    "ParseError",
    "PermissionDenied",
    "InterruptedWait",
    "StoreUnavailable",
]
