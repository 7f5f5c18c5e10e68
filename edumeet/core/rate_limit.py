"""In-process fixed window rate limiting for the login endpoints."""

import logging
import time
from threading import Lock

from fastapi import Request

from edumeet.core import config
from edumeet.core.errors import RateLimitError

logger = logging.getLogger(__name__)

# key -> {'count': int, 'reset_time': float}
_windows: dict[str, dict] = {}
_lock = Lock()


def check_rate_limit(key: str, limit: int, window_seconds: int, now: float | None = None) -> tuple[bool, int, int]:
    """Count one hit against ``key``.

    Returns ``(is_allowed, current_count, seconds_until_reset)``.
    """
    current_time = time.monotonic() if now is None else now

    with _lock:
        for stale_key in [k for k, entry in _windows.items() if entry['reset_time'] <= current_time]:
            del _windows[stale_key]

        entry = _windows.get(key)
        if entry is None:
            entry = {'count': 0, 'reset_time': current_time + window_seconds}
            _windows[key] = entry

        entry['count'] += 1
        ttl = max(1, int(entry['reset_time'] - current_time))
        return entry['count'] <= limit, entry['count'], ttl


def reset() -> None:
    with _lock:
        _windows.clear()


def client_ip(request: Request) -> str:
    forwarded = request.headers.get('X-Forwarded-For')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.client.host if request.client else 'unknown'


def login_rate_limiter(key_prefix: str):
    """Build a dependency limiting login attempts per client IP."""

    def rate_limiter(request: Request) -> None:
        key = f'{key_prefix}:{client_ip(request)}'
        is_allowed, current_count, ttl = check_rate_limit(
            key,
            config.LOGIN_RATE_LIMIT,
            config.LOGIN_RATE_WINDOW_SECONDS,
        )
        if not is_allowed:
            logger.warning('Rate limit exceeded for %s (%s attempts)', key, current_count)
            raise RateLimitError(retry_after=ttl)

    return rate_limiter
