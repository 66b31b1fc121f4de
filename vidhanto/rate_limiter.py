from collections import defaultdict
from threading import Lock
from time import time

from fastapi import Depends, HTTPException, status

from vidhanto.auth.dependencies import get_current_user
from vidhanto.models import User

# Per-process storage; each worker keeps its own window.
_rate_limit_storage: defaultdict[str, list[float]] = defaultdict(list)
_key_windows: dict[str, int] = {}
_lock = Lock()

CLEANUP_INTERVAL = 60  # seconds between sweeps of idle keys
_last_cleanup = 0.0


def clean_old_attempts(attempts: list[float], window: int) -> list[float]:
    cutoff = time() - window
    return [t for t in attempts if t > cutoff]


def _sweep_idle_keys() -> int:
    """Drop keys with no attempts left in their window. Caller holds the lock."""
    idle = [
        key for key, attempts in _rate_limit_storage.items()
        if not clean_old_attempts(attempts, _key_windows.get(key, 0))
    ]
    for key in idle:
        del _rate_limit_storage[key]
        _key_windows.pop(key, None)
    return len(idle)


def hit(key: str, max_requests: int, window: int) -> bool:
    """Record a request for ``key``; False once the window is full."""
    global _last_cleanup
    with _lock:
        now = time()
        if now - _last_cleanup >= CLEANUP_INTERVAL:
            _sweep_idle_keys()
            _last_cleanup = now

        _key_windows[key] = window
        attempts = clean_old_attempts(_rate_limit_storage[key], window)
        if len(attempts) >= max_requests:
            _rate_limit_storage[key] = attempts
            return False
        attempts.append(now)
        _rate_limit_storage[key] = attempts
        return True


def reset() -> None:
    global _last_cleanup
    with _lock:
        _rate_limit_storage.clear()
        _key_windows.clear()
        _last_cleanup = 0.0


def rate_limit_by_user(max_requests: int, window_seconds: int, scope: str = "default"):
    def limiter(current_user: User = Depends(get_current_user)):
        if not hit(f"{scope}:{current_user.id}", max_requests, window_seconds):
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests. Please try again later.",
            )
        return current_user
    return limiter
