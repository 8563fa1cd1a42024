"""Sliding-window request limiters keyed by client address."""
from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List

from app.core.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Quota:
    """Outcome of one hit against a limiter, in the shape of the RateLimit-* headers."""

    allowed: bool
    limit: int
    remaining: int
    reset_seconds: int

    def headers(self) -> Dict[str, str]:
        values = {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(self.reset_seconds),
        }
        if not self.allowed:
            values["Retry-After"] = str(self.reset_seconds)
        return values


@dataclass
class SlidingWindowLimiter:
    """Thread-safe sliding-window limiter with stale-key eviction."""

    limit: int
    window_seconds: float
    message: str
    clock: Callable[[], float] = time.monotonic
    max_keys: int = 50_000
    _bucket: Dict[str, List[float]] = field(default_factory=dict, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def allow(self, key: str) -> bool:
        return self.consume(key).allowed

    def consume(self, key: str) -> Quota:
        """Record a hit for ``key`` unless the window is full, and report what is left."""

        now = self.clock()
        window_start = now - self.window_seconds
        with self._lock:
            hits = [stamp for stamp in self._bucket.get(key, []) if stamp > window_start]
            allowed = len(hits) < self.limit
            if allowed:
                hits.append(now)
            self._bucket[key] = hits
            if allowed and len(self._bucket) > self.max_keys:
                self._evict_stale_locked(window_start)
        reset = hits[0] + self.window_seconds - now if hits else self.window_seconds
        return Quota(
            allowed=allowed,
            limit=self.limit,
            remaining=max(0, self.limit - len(hits)),
            reset_seconds=max(0, math.ceil(reset)),
        )

    def forgive(self, key: str) -> None:
        """Drop the most recent hit for ``key`` so a successful request is not counted."""

        with self._lock:
            hits = self._bucket.get(key)
            if hits:
                hits.pop()

    def reset(self) -> None:
        with self._lock:
            self._bucket.clear()

    def _evict_stale_locked(self, window_start: float) -> None:
        stale = [key for key, hits in self._bucket.items() if not hits or hits[-1] <= window_start]
        for key in stale:
            del self._bucket[key]
        if stale:
            logger.debug("Rate limiter evicted %d stale keys (bucket size now: %d)", len(stale), len(self._bucket))


@dataclass
class RateLimiters:
    login: SlidingWindowLimiter
    upload: SlidingWindowLimiter
    general: SlidingWindowLimiter


def _minutes(seconds: float) -> int:
    return max(1, round(seconds / 60))


def build_rate_limiters(settings: Settings) -> RateLimiters:
    return RateLimiters(
        login=SlidingWindowLimiter(
            limit=settings.login_rate_limit,
            window_seconds=settings.login_rate_window_seconds,
            message=f"Demasiados intentos de login. Intenta en {_minutes(settings.login_rate_window_seconds)} minutos.",
        ),
        upload=SlidingWindowLimiter(
            limit=settings.upload_rate_limit,
            window_seconds=settings.upload_rate_window_seconds,
            message=f"Demasiados uploads. Espera {_minutes(settings.upload_rate_window_seconds)} minutos.",
        ),
        general=SlidingWindowLimiter(
            limit=settings.general_rate_limit,
            window_seconds=settings.general_rate_window_seconds,
            message="Demasiadas solicitudes. Intenta más tarde.",
        ),
    )
