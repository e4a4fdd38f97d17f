"""
ServiceRegistry - Composition root for the resilient data layer.

Builds one ServiceClient per logical service, all sharing a single
CircuitBreakerRegistry, RateLimiterRegistry and HTTP connection pool.
Construct it once at startup and pass it to whatever needs a client.
"""

from datetime import datetime
from typing import Any, Callable

import httpx
from loguru import logger

from monitor.config import CACHE_TTLS, SERVICES, TIMEOUTS
from monitor.services.circuit_breaker import CircuitBreakerRegistry
from monitor.services.client import ServiceClient, ServiceClientConfig
from monitor.services.rate_limiter import RateLimiterRegistry
from monitor.settings import Settings


class ServiceRegistry:
    """
    Owns every per-service client, breaker and rate limiter.

    Usage:
        registry = ServiceRegistry.from_settings(global_settings)
        prices = await registry.client("crypto").get("/simple/price", ...)
        await registry.close()
    """

    def __init__(
        self,
        breakers: CircuitBreakerRegistry | None = None,
        rate_limiters: RateLimiterRegistry | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.breakers = breakers or CircuitBreakerRegistry.with_defaults()
        self.rate_limiters = rate_limiters or RateLimiterRegistry.with_defaults()
        self._http_client = http_client or httpx.AsyncClient(follow_redirects=True)
        self._clients: dict[str, ServiceClient] = {}

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> "ServiceRegistry":
        """Build the registry with every service defined in config.SERVICES."""
        registry = cls(
            breakers=CircuitBreakerRegistry.with_defaults(clock=clock),
            rate_limiters=RateLimiterRegistry.with_defaults(clock=clock),
            http_client=http_client,
        )
        for name, (ttl_key, timeout_key, limiter_name) in SERVICES.items():
            registry.register(
                ServiceClientConfig(
                    name=name,
                    cache_ttl=CACHE_TTLS[ttl_key],
                    timeout=TIMEOUTS[timeout_key],
                    retries=settings.request_retries,
                    retry_delay=settings.retry_delay,
                ),
                rate_limiter=limiter_name,
                debug=settings.debug,
            )
        return registry

    def register(
        self,
        config: ServiceClientConfig,
        rate_limiter: str | None = None,
        debug: bool = False,
    ) -> ServiceClient:
        """Register a service client, reusing the shared breaker for its name."""
        client = ServiceClient(
            config,
            breaker=self.breakers.get(config.name, config.circuit_breaker),
            rate_limiter=self.rate_limiters.get(rate_limiter) if rate_limiter else None,
            http_client=self._http_client,
            debug=debug,
        )
        self._clients[config.name] = client
        logger.debug(f"Registered service: {config.name}")
        return client

    def client(self, name: str) -> ServiceClient:
        """Get the client for a service."""
        return self._clients[name]

    def __contains__(self, name: str) -> bool:
        return name in self._clients

    def get_status(self) -> dict[str, Any]:
        """Get health status of all services."""
        return {
            "services": {
                name: client.get_status() for name, client in self._clients.items()
            },
            "open_circuits": self.breakers.get_open_circuits(),
            "rate_limits": self.rate_limiters.get_all_stats(),
        }

    def prune_caches(self) -> int:
        """Prune every service cache. Returns total entries removed."""
        pruned = sum(client.prune_cache() for client in self._clients.values())
        if pruned:
            logger.info(f"Pruned {pruned} expired cache entries")
        return pruned

    async def close(self) -> None:
        """Close all clients and the shared HTTP pool."""
        for client in self._clients.values():
            await client.close()
        await self._http_client.aclose()
        logger.debug("ServiceRegistry closed")
