"""
Per-client sliding window rate limiter for the HTTP API.

Design:
- Keeps the timestamps of admitted requests per client key
- A request is admitted when fewer than max_requests hits fall inside the
  trailing window
- Rejected requests are not recorded, so a client that keeps hammering is let
  back in as soon as its oldest hit slides out
- Runs on the event loop thread only; no locking
"""

import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict

logger = logging.getLogger(__name__)

# Empty client entries are swept every this many hits.
SWEEP_EVERY = 1024


@dataclass
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_after_s: float  # until the oldest hit in the window expires


class SlidingWindowRateLimiter:
    """Caps requests per client over a trailing time window."""

    def __init__(
        self,
        window_ms: int,
        max_requests: int,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            window_ms: Window length in milliseconds
            max_requests: Requests admitted per client inside one window
            clock: Monotonic time source in seconds (injectable for tests)
        """
        self._window_s = window_ms / 1000.0
        self._max = max_requests
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._calls = 0

    @property
    def limit(self) -> int:
        return self._max

    def hit(self, client: str) -> RateLimitDecision:
        """
        Record a request from a client if the window allows it.

        Args:
            client: Client key, usually the remote address

        Returns:
            RateLimitDecision; allowed=False means the request must be rejected
        """
        now = self._clock()
        self._calls += 1
        if self._calls % SWEEP_EVERY == 0:
            self._sweep(now)

        hits = self._hits.setdefault(client, deque())
        self._expire(hits, now)

        if len(hits) >= self._max:
            reset_after = hits[0] + self._window_s - now if hits else self._window_s
            logger.info(f"[RATELIMIT] Rejected {client}: {len(hits)}/{self._max} in window")
            return RateLimitDecision(False, self._max, 0, max(0.0, reset_after))

        hits.append(now)
        return RateLimitDecision(
            allowed=True,
            limit=self._max,
            remaining=self._max - len(hits),
            reset_after_s=max(0.0, hits[0] + self._window_s - now),
        )

    def _expire(self, hits: Deque[float], now: float) -> None:
        cutoff = now - self._window_s
        while hits and hits[0] <= cutoff:
            hits.popleft()

    def _sweep(self, now: float) -> None:
        for client in list(self._hits):
            hits = self._hits[client]
            self._expire(hits, now)
            if not hits:
                del self._hits[client]
