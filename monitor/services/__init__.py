"""
Service layer infrastructure - resilience patterns for external API calls.

Provides:
- CacheManager: TTL cache with stale fallback
- CircuitBreaker: Prevents cascading failures
- RequestDeduplicator: Coalesces duplicate concurrent requests
- RateLimiter: Sliding window call budget per vendor
- ServiceClient: Per-service client combining all patterns
- ServiceRegistry: Composition root wiring one client per service
"""

from monitor.services.errors import (
    ServiceError,
    CircuitOpenError,
    RequestTimeoutError,
)
from monitor.services.cache import CacheManager, CacheEntry, CacheStats
from monitor.services.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    CircuitState,
)
from monitor.services.deduplicator import RequestDeduplicator
from monitor.services.rate_limiter import RateLimiter, RateLimiterRegistry
from monitor.services.client import (
    RequestOptions,
    ServiceClient,
    ServiceClientConfig,
)
from monitor.services.registry import ServiceRegistry

__all__ = [
    # Errors
    "ServiceError",
    "CircuitOpenError",
    "RequestTimeoutError",
    # Cache
    "CacheManager",
    "CacheEntry",
    "CacheStats",
    # Circuit Breaker
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerRegistry",
    "CircuitState",
    # Deduplicator
    "RequestDeduplicator",
    # Rate Limiter
    "RateLimiter",
    "RateLimiterRegistry",
    # Client
    "RequestOptions",
    "ServiceClient",
    "ServiceClientConfig",
    "ServiceRegistry",
]
