# ruff: noqa: E402
# tests/conftest.py
from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure project root importable
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from info_compiler.exceptions import InterruptedWait
from info_compiler.fetch import clear_robots_cache, clear_throttle
from info_compiler.store import SQLiteEntityStore


class FakeClock:
    """
    Deterministic Clock for the politeness controller.

    sleep(dt) advances time instead of blocking. Set `interrupt` to make the
    next sleep raise InterruptedWait without advancing.
    """

    def __init__(self, start: float = 1_000.0) -> None:
        self.t = float(start)
        self.sleeps: list[float] = []
        self.interrupt = False

    def now(self) -> float:
        return self.t

    def sleep(self, seconds: float) -> None:
        if self.interrupt:
            self.interrupt = False
            raise InterruptedWait("cancelled by test")
        self.sleeps.append(float(seconds))
        self.t += max(0.0, float(seconds))

    def advance(self, dt: float) -> None:
        self.t += float(dt)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def _reset_module_caches():
    # robots memo and the default throttle controller are process-wide
    clear_robots_cache()
    clear_throttle()
    yield
    clear_robots_cache()
    clear_throttle()


@pytest.fixture
def store(tmp_path: Path):
    s = SQLiteEntityStore(str(tmp_path / "entities.db"))
    yield s
    s.close()
