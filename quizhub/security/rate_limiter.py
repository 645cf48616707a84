"""
Rate limiting for access-key entry.

Access keys are short, so guessing them must be throttled. Requests are
tracked in memory per client IP with a sliding window.
"""

from functools import wraps
from flask import request, jsonify, current_app, make_response
from collections import defaultdict
import threading
import time

from .security_logger import SecurityLogger


class RateLimiter:
    """
    Sliding-window rate limiter keyed by an identifier (usually the client IP).
    """

    def __init__(self, cleanup_interval: int = 3600):
        self._storage = defaultdict(list)
        self._lock = threading.Lock()
        self._cleanup_interval = cleanup_interval
        self._last_cleanup = time.time()

    def _cleanup_old_entries(self, current_time: float):
        """Drop identifiers with no requests in the last cleanup interval."""
        if current_time - self._last_cleanup < self._cleanup_interval:
            return

        cutoff = current_time - self._cleanup_interval
        with self._lock:
            keys_to_delete = []
            for key, timestamps in self._storage.items():
                self._storage[key] = [ts for ts in timestamps if ts > cutoff]
                if not self._storage[key]:
                    keys_to_delete.append(key)

            for key in keys_to_delete:
                del self._storage[key]

            self._last_cleanup = current_time

    def tracked_identifiers(self) -> int:
        with self._lock:
            return len(self._storage)

    def is_allowed(self, identifier: str, max_requests: int, window_seconds: int,
                   now: float = None) -> tuple[bool, int]:
        """
        Check if a request is allowed and record it.

        Returns:
            Tuple of (is_allowed, remaining_requests)
        """
        current_time = time.time() if now is None else now
        self._cleanup_old_entries(current_time)
        cutoff = current_time - window_seconds

        with self._lock:
            timestamps = self._storage[identifier]
            timestamps[:] = [ts for ts in timestamps if ts > cutoff]

            if len(timestamps) >= max_requests:
                return False, 0

            timestamps.append(current_time)
            return True, max_requests - len(timestamps)

    def reset(self, identifier: str = None):
        """Reset one identifier, or everything when no identifier is given."""
        with self._lock:
            if identifier is None:
                self._storage.clear()
            else:
                self._storage.pop(identifier, None)


# Global rate limiter instance
_rate_limiter = RateLimiter()


def get_rate_limiter() -> RateLimiter:
    return _rate_limiter


def rate_limit(max_requests_key: str = 'ACCESS_RATE_LIMIT',
               window_key: str = 'ACCESS_RATE_WINDOW_SECONDS',
               error_message: str = "Too many attempts. Please try again later."):
    """
    Decorator to rate limit a route per client IP.

    Limits are read from the Flask config at request time, so tests and
    deployments can tune them without re-decorating.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            max_requests = current_app.config[max_requests_key]
            window_seconds = current_app.config[window_key]
            ip = request.remote_addr or request.environ.get('REMOTE_ADDR', 'unknown')
            identifier = f"ip:{ip}:{request.endpoint}"

            is_allowed, remaining = _rate_limiter.is_allowed(identifier, max_requests, window_seconds)
            if not is_allowed:
                SecurityLogger.log_rate_limit_exceeded(identifier, request.path)
                response = make_response(jsonify({
                    'success': False,
                    'error': error_message,
                    'retry_after': window_seconds
                }), 429)
                response.headers['X-RateLimit-Limit'] = str(max_requests)
                response.headers['X-RateLimit-Remaining'] = '0'
                return response

            response = make_response(f(*args, **kwargs))
            response.headers['X-RateLimit-Limit'] = str(max_requests)
            response.headers['X-RateLimit-Remaining'] = str(remaining)
            return response

        return decorated_function
    return decorator
