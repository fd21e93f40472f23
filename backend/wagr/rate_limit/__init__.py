from .limiter import RateLimiter, RateLimitResult, get_client_ip
from .stores import (
    MemoryRateLimitStore,
    RateLimitStore,
    SQLRateLimitStore,
    create_store_engine,
)

__all__ = [
    "RateLimiter",
    "RateLimitResult",
    "get_client_ip",
    "RateLimitStore",
    "MemoryRateLimitStore",
    "SQLRateLimitStore",
    "create_store_engine",
]
