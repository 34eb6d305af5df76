"""Fixed-window request counters keyed by client address.

State lives in the process; separate instances keep independent counts.
Implement `AbuseGuard` against a shared store to cooperate across instances.
"""
from __future__ import annotations
import math
import time
from dataclasses import dataclass
from typing import Callable, Protocol

RATE_LIMITED = "Too many requests, please try again later."

@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_after: int  # seconds until the current window closes

class AbuseGuard(Protocol):
    def hit(self, key: str) -> RateDecision:
        ...

@dataclass
class RateWindow:
    count: int
    window_start: float

class FixedWindowGuard:
    PRUNE_THRESHOLD = 10_000

    def __init__(
        self,
        max_requests: int = 20,
        window_seconds: float = 15 * 60,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, RateWindow] = {}

    def hit(self, key: str) -> RateDecision:
        """Count one request for `key` and decide whether it may proceed."""
        now = self._clock()
        window = self._windows.get(key)
        if window is None or now - window.window_start >= self.window_seconds:
            if len(self._windows) >= self.PRUNE_THRESHOLD:
                self._prune(now)
            window = RateWindow(count=0, window_start=now)
            self._windows[key] = window

        reset_after = max(0, math.ceil(window.window_start + self.window_seconds - now))
        if window.count >= self.max_requests:
            return RateDecision(False, self.max_requests, 0, reset_after)

        window.count += 1
        return RateDecision(True, self.max_requests, self.max_requests - window.count, reset_after)

    def _prune(self, now: float) -> None:
        expired = [k for k, w in self._windows.items() if now - w.window_start >= self.window_seconds]
        for k in expired:
            del self._windows[k]

    def reset(self) -> None:
        self._windows.clear()
