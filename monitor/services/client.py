"""
ServiceClient - Async HTTP client with resilience patterns for one service.

Combines:
- CacheManager for response caching and stale fallback
- CircuitBreaker for failure protection
- RequestDeduplicator for concurrent request coalescing
- Retry with linear backoff and a per-attempt timeout
- Optional RateLimiter shared with other clients of the same vendor

Request pipeline:
    cache (fresh) → dedup → circuit breaker → retrying fetch → cache set
    on failure: cache (stale) → otherwise raise
"""

import asyncio
import hashlib
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

import httpx
from loguru import logger

from monitor.services.cache import CacheManager
from monitor.services.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from monitor.services.deduplicator import RequestDeduplicator
from monitor.services.errors import CircuitOpenError, RequestTimeoutError, ServiceError
from monitor.services.rate_limiter import RateLimiter


@dataclass
class ServiceClientConfig:
    """Configuration for a service client."""

    name: str
    base_url: str | None = None
    cache_ttl: timedelta = timedelta(minutes=5)
    timeout: float = 10.0
    retries: int = 2
    retry_delay: float = 1.0
    circuit_breaker: CircuitBreakerConfig = field(default_factory=CircuitBreakerConfig)
    headers: dict[str, str] | None = None


@dataclass
class RequestOptions:
    """Per-request overrides."""

    cache_ttl: timedelta | None = None
    skip_cache: bool = False
    skip_dedup: bool = False
    timeout: float | None = None
    params: dict[str, Any] | None = None


def generate_key(method: str, url: str, params: dict[str, Any] | None = None) -> str:
    """Generate a cache key from method, URL and params."""
    if params:
        sorted_params = "&".join(f"{k}={v}" for k, v in sorted(params.items()))
        full_key = f"{url}?{sorted_params}"
    else:
        full_key = url

    # Hash long keys
    if len(full_key) > 200:
        full_key = hashlib.md5(full_key.encode()).hexdigest()

    return f"{method}:{full_key}"


class ServiceClient:
    """
    Resilient HTTP client for a single logical service.

    Usage:
        client = ServiceClient(ServiceClientConfig(
            name="crypto",
            base_url="https://api.coingecko.com/api/v3",
            cache_ttl=timedelta(minutes=1),
        ))

        prices = await client.get(
            "/simple/price",
            RequestOptions(params={"ids": "bitcoin", "vs_currencies": "usd"}),
        )
    """

    def __init__(
        self,
        config: ServiceClientConfig,
        breaker: CircuitBreaker | None = None,
        rate_limiter: RateLimiter | None = None,
        http_client: httpx.AsyncClient | None = None,
        cache: CacheManager | None = None,
        deduplicator: RequestDeduplicator | None = None,
        debug: bool = False,
    ):
        self.config = config
        self._cache = cache or CacheManager(default_ttl=config.cache_ttl, debug=debug)
        self._circuit = breaker or CircuitBreaker(config.name, config.circuit_breaker)
        self._deduplicator = deduplicator or RequestDeduplicator(debug=debug)
        self._rate_limiter = rate_limiter

        # HTTP client is owned only when created lazily here
        self._http_client = http_client
        self._owns_http_client = http_client is None

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def cache(self) -> CacheManager:
        return self._cache

    @property
    def circuit(self) -> CircuitBreaker:
        return self._circuit

    def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(follow_redirects=True)
        return self._http_client

    def _full_url(self, url: str) -> str:
        return f"{self.config.base_url}{url}" if self.config.base_url else url

    async def get(self, url: str, options: RequestOptions | None = None) -> Any:
        """
        Make a GET request and decode the JSON body.

        Raises:
            CircuitOpenError: If the circuit is open and nothing is cached
            RequestTimeoutError: If the request timed out and nothing is cached
            ServiceError: For other failures when nothing is cached
        """
        return await self._resilient_fetch("GET", url, options or RequestOptions())

    async def get_text(self, url: str, options: RequestOptions | None = None) -> str:
        """Make a GET request for a text payload (RSS/XML)."""
        return await self._resilient_fetch("TEXT", url, options or RequestOptions())

    async def _resilient_fetch(
        self,
        method: str,
        url: str,
        options: RequestOptions,
    ) -> Any:
        full_url = self._full_url(url)
        cache_key = generate_key(method, full_url, options.params)

        if not options.skip_cache:
            cached = self._cache.get(cache_key)
            # A cached JSON null is still a hit
            if cached is not None or self._cache.is_fresh(cache_key):
                return cached

        async def fetch_fn() -> Any:
            return await self._circuit.execute(
                lambda: self._fetch_with_retry(method, full_url, options)
            )

        try:
            if options.skip_dedup:
                result = await fetch_fn()
            else:
                result = await self._deduplicator.dedupe(cache_key, fetch_fn)
        except Exception as e:
            if not options.skip_cache and cache_key in self._cache:
                logger.warning(f"[{self.name}] Returning stale data for {url}: {e}")
                return self._cache.get_stale(cache_key)
            raise

        ttl = options.cache_ttl if options.cache_ttl is not None else self.config.cache_ttl
        self._cache.set(cache_key, result, ttl)
        return result

    async def _fetch_with_retry(
        self,
        method: str,
        url: str,
        options: RequestOptions,
    ) -> Any:
        """Fetch with retry and linear backoff."""
        timeout = options.timeout if options.timeout is not None else self.config.timeout
        last_error: Exception | None = None

        for attempt in range(self.config.retries + 1):
            try:
                return await self._execute_request(method, url, options.params, timeout)
            except (RequestTimeoutError, CircuitOpenError):
                raise
            except Exception as e:
                last_error = e
                logger.debug(
                    f"[{self.name}] Attempt {attempt + 1}/{self.config.retries + 1} "
                    f"failed for {url}: {e}"
                )

            if attempt < self.config.retries:
                await asyncio.sleep(self.config.retry_delay * (attempt + 1))

        raise last_error or ServiceError("Request failed", service_id=self.name)

    async def _execute_request(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None,
        timeout: float,
    ) -> Any:
        """Execute a single HTTP attempt."""
        if self._rate_limiter is not None:
            await self._rate_limiter.throttle()

        client = self._get_http_client()
        headers = dict(self.config.headers or {})
        if method == "GET":
            headers.setdefault("Accept", "application/json")

        try:
            # httpx timeouts are per phase; wait_for bounds the whole attempt
            response = await asyncio.wait_for(
                client.get(url, params=params, headers=headers, timeout=timeout),
                timeout,
            )
            response.raise_for_status()
            return response.text if method == "TEXT" else response.json()

        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            raise RequestTimeoutError(self.name, timeout) from e

        except httpx.HTTPStatusError as e:
            raise ServiceError(
                f"HTTP {e.response.status_code}: {e.response.reason_phrase}",
                service_id=self.name,
                status_code=e.response.status_code,
            ) from e

        except httpx.RequestError as e:
            raise ServiceError(str(e), service_id=self.name) from e

    async def close(self) -> None:
        """Close the HTTP client and cancel in-flight requests."""
        self._deduplicator.clear()
        if self._http_client is not None and self._owns_http_client:
            await self._http_client.aclose()
            self._http_client = None
        logger.debug(f"ServiceClient '{self.name}' closed")

    async def __aenter__(self) -> "ServiceClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    # Health and status methods

    def get_status(self) -> dict[str, Any]:
        """Get status of this service."""
        return {
            "name": self.name,
            "circuit": self._circuit.get_status(),
            "cache": self._cache.stats().to_dict(),
            "pending_requests": self._deduplicator.size,
            "rate_limit": (
                self._rate_limiter.get_stats() if self._rate_limiter else None
            ),
        }

    def clear_cache(self) -> None:
        self._cache.clear()

    def prune_cache(self) -> int:
        return self._cache.prune()

    def reset_circuit(self) -> None:
        self._circuit.reset()
