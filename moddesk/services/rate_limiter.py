"""Fixed-window rate limiter with one budget per route class.

Each route class (login, registration, upload, search, general API) has its
own window length and ceiling, and windows are tracked per client. State is
owned by a ``RateLimiter`` instance that the app keeps on ``app.state``;
check-and-increment happens under a lock so two requests arriving at the
ceiling cannot both be admitted. Expired windows are swept out as
traffic arrives, so clients that never return do not accumulate.
"""

import logging
import math
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from fastapi import Request

from moddesk.config import Settings
from moddesk.errors import RateLimitExceeded

logger = logging.getLogger(__name__)


class RouteClass(str, Enum):
    """Traffic classes with independent budgets."""

    LOGIN = "login"
    REGISTRATION = "registration"
    UPLOAD = "upload"
    SEARCH = "search"
    API = "api"


@dataclass(frozen=True)
class RateLimitPolicy:
    """Window length, ceiling and rejection message for one route class."""

    window_seconds: float
    max_requests: int
    message: str


DEFAULT_POLICIES: dict[RouteClass, RateLimitPolicy] = {
    RouteClass.LOGIN: RateLimitPolicy(
        15 * 60, 5, "Too many login attempts. Please try again later."
    ),
    RouteClass.REGISTRATION: RateLimitPolicy(
        60 * 60, 3, "Too many registration attempts. Please try again later."
    ),
    RouteClass.UPLOAD: RateLimitPolicy(
        60 * 60, 10, "Upload limit reached. Please try again later."
    ),
    RouteClass.SEARCH: RateLimitPolicy(
        60, 10, "Search limit reached. Please try again later."
    ),
    RouteClass.API: RateLimitPolicy(
        15 * 60, 100, "Too many requests, please try again later."
    ),
}


def policies_from_settings(settings: Settings) -> dict[RouteClass, RateLimitPolicy]:
    """Build policies from MODDESK_RATE_<CLASS>_* settings."""
    policies = {}
    for route_class, default in DEFAULT_POLICIES.items():
        prefix = f"MODDESK_RATE_{route_class.name}"
        policies[route_class] = RateLimitPolicy(
            window_seconds=getattr(settings, f"{prefix}_WINDOW_SECONDS"),
            max_requests=getattr(settings, f"{prefix}_MAX"),
            message=default.message,
        )
    return policies


@dataclass
class RateWindow:
    """Counting state for one (route class, client) pair."""

    started_at: float
    count: int = 0


@dataclass(frozen=True)
class Admission:
    """Outcome of an admission check."""

    admitted: bool
    remaining: int
    retry_after: float = 0.0


class RateLimiter:
    """Tracks per-client fixed windows for every route class.

    Args:
        policies: Budget per route class. Defaults to DEFAULT_POLICIES.
        clock: Monotonic seconds source, injectable for tests.
    """

    def __init__(
        self,
        policies: Optional[dict[RouteClass, RateLimitPolicy]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._policies = dict(policies or DEFAULT_POLICIES)
        self._clock = clock
        self._windows: dict[tuple[RouteClass, str], RateWindow] = {}
        self._lock = threading.Lock()
        # Expired windows are dropped at most once per shortest window length.
        self._sweep_interval = min(p.window_seconds for p in self._policies.values())
        self._next_sweep: Optional[float] = None

    def policy(self, route_class: RouteClass) -> RateLimitPolicy:
        return self._policies[route_class]

    def admit(self, scope_key: str, route_class: RouteClass) -> Admission:
        """Count one request for scope_key against route_class's budget.

        A new window starts at the first request after the previous one
        expired. Rejected requests leave the window untouched.
        """
        policy = self._policies[route_class]
        key = (route_class, scope_key)
        with self._lock:
            now = self._clock()
            if self._next_sweep is None or now >= self._next_sweep:
                self._sweep(now)
                self._next_sweep = now + self._sweep_interval

            window = self._windows.get(key)
            if window is None or now >= window.started_at + policy.window_seconds:
                window = RateWindow(started_at=now)
                self._windows[key] = window

            if window.count >= policy.max_requests:
                retry_after = window.started_at + policy.window_seconds - now
                return Admission(admitted=False, remaining=0, retry_after=retry_after)

            window.count += 1
            return Admission(admitted=True, remaining=policy.max_requests - window.count)

    def reset(self) -> None:
        """Forget every window."""
        with self._lock:
            self._windows.clear()

    def window_count(self) -> int:
        """Number of windows currently tracked."""
        with self._lock:
            return len(self._windows)

    def _sweep(self, now: float) -> None:
        """Drop every expired window. Caller holds the lock."""
        expired = [
            key
            for key, window in self._windows.items()
            if now >= window.started_at + self._policies[key[0]].window_seconds
        ]
        for key in expired:
            del self._windows[key]
        if expired:
            logger.debug(f"Dropped {len(expired)} expired rate limit window(s)")


def rate_limit(route_class: RouteClass) -> Callable[[Request], None]:
    """FastAPI dependency factory guarding a route with a route class budget.

    The client host is the scope key. Over-budget requests raise
    RateLimitExceeded, which the app renders as a 429.
    """

    def dependency(request: Request) -> None:
        limiter: RateLimiter = request.app.state.rate_limiter
        scope_key = request.client.host if request.client else "unknown"
        admission = limiter.admit(scope_key, route_class)
        if not admission.admitted:
            retry_after = max(1, math.ceil(admission.retry_after))
            logger.warning(
                f"Rate limit hit: class={route_class.value} client={scope_key} "
                f"retry_after={retry_after}s"
            )
            raise RateLimitExceeded(
                limiter.policy(route_class).message,
                route_class=route_class.value,
                retry_after=retry_after,
            )

    return dependency
