# info_compiler/fetch/throttle.py
"""
Per-host crawl politeness.

Each host key is in one of two states: never seen (no entry) or reserved
until a monotonic timestamp. The first reservation for a host never waits;
later ones block until the recorded timestamp and then push it forward by
the host's crawl delay.

The per-host lock is held across the wait, so concurrent callers for the
same host queue up and each sees the deadline left by the one before it.
Callers for different hosts never block each other.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Protocol

from ..exceptions import InterruptedWait

log = logging.getLogger(__name__)


# --------------------------------------------------------------------------------------
# Clocks
# --------------------------------------------------------------------------------------


class Clock(Protocol):
    def now(self) -> float: ...

    def sleep(self, seconds: float) -> None:
        """Block for `seconds`; raise InterruptedWait if cancelled first."""
        ...


class MonotonicClock:
    """
    Real clock. Waits are plain sleeps and are never interrupted; callers that
    need cancellable waits inject their own Clock.
    """

    def now(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            time.sleep(seconds)


# --------------------------------------------------------------------------------------
# Controller
# --------------------------------------------------------------------------------------


class PolitenessController:
    def __init__(self, clock: Clock | None = None) -> None:
        self.clock: Clock = clock or MonotonicClock()
        self._next_allowed: dict[str, float] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._global_lock = threading.Lock()

    def _host_lock(self, key: str) -> threading.Lock:
        with self._global_lock:
            lk = self._locks.get(key)
            if lk is None:
                lk = threading.Lock()
                self._locks[key] = lk
            return lk

    def reserve_slot(self, host_key: str, delay_seconds: float | None) -> bool:
        """
        Wait (if needed) for this host's turn and reserve the next one.

        Returns True when the caller may fetch now, False when the wait was
        interrupted; state is left untouched in that case and the caller should
        skip just this item. A None delay means the host has no crawl delay and
        nothing is recorded.
        """
        if delay_seconds is None:
            return True
        key = host_key.strip().lower()
        delay = max(0.0, float(delay_seconds))

        with self._host_lock(key):
            until = self._next_allowed.get(key)
            if until is None:
                # First access to a host is never delayed
                self._next_allowed[key] = self.clock.now() + delay
                return True

            wait = until - self.clock.now()
            if wait > 0:
                try:
                    self.clock.sleep(wait)
                except InterruptedWait:
                    log.info("Politeness wait for %s interrupted; skipping", key)
                    return False
            self._next_allowed[key] = self.clock.now() + delay
            return True

    def next_allowed_at(self, host_key: str) -> float | None:
        """Recorded timestamp for a host, or None if it was never reserved."""
        key = host_key.strip().lower()
        with self._host_lock(key):
            return self._next_allowed.get(key)

    def clear(self, host_key: str | None = None) -> None:
        """Clear throttling state (all hosts or a single host)."""
        with self._global_lock:
            if host_key is None:
                self._next_allowed.clear()
                self._locks.clear()
                return
            key = host_key.strip().lower()
            self._next_allowed.pop(key, None)
            self._locks.pop(key, None)


# --------------------------------------------------------------------------------------
# Process-wide default controller
# --------------------------------------------------------------------------------------

_DEFAULT = PolitenessController()


def default_controller() -> PolitenessController:
    return _DEFAULT


def reserve_slot(host_key: str, delay_seconds: float | None) -> bool:
    return _DEFAULT.reserve_slot(host_key, delay_seconds)


def next_allowed_at(host_key: str) -> float | None:
    return _DEFAULT.next_allowed_at(host_key)


def clear(host_key: str | None = None) -> None:
    _DEFAULT.clear(host_key)
