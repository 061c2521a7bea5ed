from __future__ import annotations

import threading
import time
from typing import Callable, Dict, FrozenSet, Optional, Tuple

from fastapi import Header, HTTPException, Request, Response

from tariffnav.config import load_settings
from tariffnav.observability import log_event, redact_secret


def allowed_api_keys() -> FrozenSet[str]:
    """Return the configured API keys (``TARIFFNAV_API_KEYS`` or the dev key)."""

    return load_settings().api_keys


def route_label(request: Request) -> str:
    """Path template of the matched route, e.g. ``/api/hts/{code}``.

    Lookups of different codes share one bucket.
    """

    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


class RateLimiter:
    """Fixed-window, in-process rate limiter keyed by (api_key, route template)."""

    def __init__(
        self,
        rate_per_minute: int = 60,
        window_seconds: int = 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.rate_per_minute = max(1, rate_per_minute)
        self.window_seconds = max(1, window_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._counters: Dict[Tuple[str, str], Tuple[int, int]] = {}

    def _current_window(self) -> int:
        return int(self._clock() // self.window_seconds)

    def retry_after(self) -> int:
        """Whole seconds until the current window closes."""

        window_end = (self._current_window() + 1) * self.window_seconds
        return max(1, int(window_end - self._clock() + 0.999))

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()

    def check(self, api_key: str, route: str) -> int:
        """Count one request and return how many remain in this window."""

        window = self._current_window()
        key = (api_key, route)
        with self._lock:
            count, active_window = self._counters.get(key, (0, window))
            if active_window != window:
                count = 0
                active_window = window

            if count >= self.rate_per_minute:
                retry_after = self.retry_after()
                log_event(
                    "request.rate_limited",
                    api_key=redact_secret(api_key),
                    route=route,
                    retry_after=retry_after,
                )
                raise HTTPException(
                    status_code=429,
                    detail={
                        "message": "Rate limit exceeded",
                        "limit_per_minute": self.rate_per_minute,
                        "route": route,
                        "retry_after_seconds": retry_after,
                    },
                    headers={"Retry-After": str(retry_after)},
                )

            self._counters[key] = (count + 1, active_window)
            return self.rate_per_minute - count - 1


rate_limiter = RateLimiter(rate_per_minute=load_settings().rate_limit_per_minute)


def require_api_key(
    request: Request, response: Response, x_api_key: Optional[str] = Header(None)
) -> str:
    """Validate the provided API key and enforce per-route rate limits."""

    if not x_api_key:
        raise HTTPException(status_code=401, detail={"message": "Missing API key"})
    if x_api_key not in allowed_api_keys():
        log_event("request.rejected", api_key=redact_secret(x_api_key), route=route_label(request))
        raise HTTPException(status_code=401, detail={"message": "Invalid API key"})

    remaining = rate_limiter.check(x_api_key, route_label(request))
    response.headers["X-RateLimit-Limit"] = str(rate_limiter.rate_per_minute)
    response.headers["X-RateLimit-Remaining"] = str(remaining)
    return x_api_key


def set_rate_limit(limit: int) -> None:
    """Utility hook for tests to reconfigure the limiter."""

    global rate_limiter
    rate_limiter = RateLimiter(rate_per_minute=max(1, int(limit)))
