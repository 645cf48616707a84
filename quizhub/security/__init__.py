"""
Security helpers for the quiz API.

- Rate limiting of access-key entry
- Security event logging
"""

from .rate_limiter import RateLimiter, rate_limit
from .security_logger import SecurityLogger

__all__ = [
    'RateLimiter',
    'rate_limit',
    'SecurityLogger',
]
