"""
Simple Memory-based Rate Limiter for payment creation.
Fixed window per client IP; state is per process.
"""
import threading
import time
from fastapi import Request, HTTPException
from typing import Dict, Tuple

# In-memory storage: {(scope, ip): (window_start, count)}
_rate_limit_store: Dict[Tuple[str, str], Tuple[float, int]] = {}
_lock = threading.Lock()


def reset_rate_limits() -> None:
    with _lock:
        _rate_limit_store.clear()


def rate_limit(requests: int, window: int, scope: str = "default"):
    """
    Dependency for rate limiting.
    Example: Depends(rate_limit(requests=5, window=60, scope="create"))
    """
    def limiter(request: Request):
        ip = request.client.host if request.client else "unknown"
        key = (scope, ip)
        now = time.time()

        with _lock:
            if key not in _rate_limit_store:
                _rate_limit_store[key] = (now, 1)
                return True

            window_start, count = _rate_limit_store[key]

            # Reset window if expired
            if now - window_start > window:
                _rate_limit_store[key] = (now, 1)
                return True

            if count >= requests:
                raise HTTPException(
                    status_code=429,
                    detail=f"Rate limit exceeded. Try again in {int(window - (now - window_start))} seconds."
                )

            _rate_limit_store[key] = (window_start, count + 1)
            return True

    return limiter
