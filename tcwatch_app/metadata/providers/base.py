"""
================================================================================
TCWatch v1.0 - Base Content Providers
================================================================================
Provider contracts and the shared HTTP plumbing behind every adapter.

Roles:
  - ContentProvider        fetch(params)          TMDb, Watchmode
  - DependentProvider      fetch_dependent(key)   TheTVDB, TVMaze (series only)
  - SearchableProvider     search(query, limit)   TMDb, Watchmode
  - KnowledgeBaseProvider  search_cases/persons   Wikidata

Contract shared by all roles:
  - "Not found" is returned as None, never raised
  - Network, rate-limit, open-circuit and malformed-payload failures raise
    ProviderError
  - Each adapter owns its timeout, retries, rate limit, circuit breaker and
    response cache; the orchestrator never retries or times out a call
================================================================================
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, TypeVar
import time
import asyncio
import logging

import httpx

from ...cache import ResponseCache
from ..errors import ProviderError
from ..models import (
    ContentContribution, ContentMatchingParams, ProviderName, SearchCandidate, SeriesKey,
)
from .circuit_breaker import CircuitBreaker


logger = logging.getLogger(__name__)

T = TypeVar("T")


class RateLimiter:
    """
    Minimum-interval rate limiter for API requests.

    Provider limits (requests per minute):
      - TMDb: ~40 per 10s, we use 180/min
      - Watchmode: 120/min
      - TheTVDB: 100/min (conservative)
      - TVMaze: 20 per 10s, we use 100/min
      - Wikidata SPARQL: 60/min (conservative)
    """

    def __init__(self, requests_per_minute: int):
        self.requests_per_minute = requests_per_minute
        self.min_interval = 60.0 / requests_per_minute  # Seconds between requests
        self.last_request = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self):
        """Wait until a request slot is available."""
        async with self._lock:
            now = time.monotonic()
            time_since_last = now - self.last_request

            if self.last_request and time_since_last < self.min_interval:
                wait_time = self.min_interval - time_since_last
                logger.debug(f"Rate limit: waiting {wait_time:.2f}s")
                await asyncio.sleep(wait_time)

            self.last_request = time.monotonic()


class ProviderRecord(ABC):
    """Provider-local result type. Converted to canonical form only here."""

    @abstractmethod
    def to_contribution(self) -> ContentContribution:
        pass


# =============================================================================
# PROVIDER ROLES
# =============================================================================

class Provider(ABC):
    """Lifecycle shared by every provider role."""

    name: ProviderName

    @property
    def id(self) -> str:
        return self.name.value

    async def close(self):
        pass

    async def health_check(self) -> bool:
        return True

    def get_status(self) -> Dict[str, Any]:
        return {"provider": self.id}

    async def clear_cache(self):
        pass

    def __repr__(self):
        return f"<{self.__class__.__name__}(id='{self.id}')>"


class ContentProvider(Provider):
    """Independent provider, queried directly from matching params."""

    @abstractmethod
    async def fetch(self, params: ContentMatchingParams) -> Optional[ProviderRecord]:
        """
        Look up a single title.

        Args:
            params: Loose content identifier

        Returns:
            Provider record, or None if the provider has no match

        Raises:
            ProviderError: On any failure other than "not found"
        """
        pass


class DependentProvider(Provider):
    """Series-only provider keyed by identifiers from the primary result."""

    @abstractmethod
    async def fetch_dependent(self, series: SeriesKey) -> Optional[ProviderRecord]:
        pass


class SearchableProvider(ABC):
    """Mixin for providers that support free-text search."""

    @abstractmethod
    async def search(self, query: str, limit: int = 20) -> List[SearchCandidate]:
        pass


class KnowledgeBaseProvider(Provider):
    """Structured knowledge base of real-world cases and people."""

    @abstractmethod
    async def search_cases(self, query: str, limit: int = 10) -> List[Any]:
        pass

    @abstractmethod
    async def search_persons(self, query: str, limit: int = 10) -> List[Any]:
        pass


# =============================================================================
# HTTP PLUMBING
# =============================================================================

class HttpProvider(Provider):
    """
    Rate-limited, cached, circuit-broken JSON client.

    Subclasses set the class attributes and call _request().
    """

    base_url: str = ""

    # Rate limiting (requests per minute)
    rate_limit: int = 60

    # Request timeout (seconds)
    timeout: float = 10.0

    # Retry configuration
    max_retries: int = 3
    retry_delay: float = 1.0

    # Response cache TTL (seconds)
    cache_ttl: int = 3600

    # Path used by health_check()
    health_path: str = ""

    user_agent: str = "TCWatch/1.0 (content aggregation engine)"

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        cache: Optional[ResponseCache] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        timeout: Optional[float] = None,
    ):
        if timeout is not None:
            self.timeout = timeout
        self.rate_limiter = RateLimiter(self.rate_limit)
        self.cache = cache if cache is not None else ResponseCache(f"tcwatch:{self.id}", self.cache_ttl)
        self.circuit_breaker = circuit_breaker or CircuitBreaker(self.id)
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers={
                    'User-Agent': self.user_agent,
                    'Accept': 'application/json'
                }
            )
            self._owns_client = True
        return self._client

    async def close(self):
        """Close HTTP client if we created it."""
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    # Hooks for provider authentication
    def _auth_params(self) -> Dict[str, Any]:
        return {}

    async def _auth_headers(self) -> Dict[str, str]:
        return {}

    async def _on_unauthorized(self) -> bool:
        """Return True if credentials were refreshed and the call may be retried."""
        return False

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
        cache_ttl: Optional[int] = None,
        allow_not_found: bool = False,
        use_cache: bool = True,
        headers: Optional[Dict[str, str]] = None,
    ) -> Optional[Any]:
        """
        Make a cached, rate-limited HTTP request with retries.

        Args:
            method: HTTP method (GET, POST)
            path: Path relative to base_url
            params: Query parameters (auth params are added automatically)
            json_body: JSON request body
            cache_ttl: Override for the adapter's cache TTL
            allow_not_found: Return None on HTTP 404 instead of raising
            use_cache: Read/write the response cache (GET only)
            headers: Extra request headers

        Returns:
            Decoded JSON, or None for an allowed 404

        Raises:
            ProviderError: On request failure after retries
        """
        query = {**self._auth_params(), **(params or {})}
        cache_key = None
        if use_cache and method.upper() == "GET":
            cache_key = ResponseCache.make_key(method, path, query)
            cached = await self.cache.get_json(cache_key)
            if cached is not None:
                logger.debug(f"{self.id}: cache hit for {path}")
                return cached

        if not self.circuit_breaker.can_execute():
            raise ProviderError(
                self.id,
                f"circuit open, retry after {self.circuit_breaker.retry_after:.0f}s"
            )

        try:
            data = await self._send(method, path, query, json_body, allow_not_found, headers)
        except ProviderError:
            self.circuit_breaker.record_failure()
            raise
        self.circuit_breaker.record_success()

        if cache_key and data is not None:
            await self.cache.set_json(cache_key, data, cache_ttl)
        return data

    async def _send(
        self,
        method: str,
        path: str,
        params: Dict[str, Any],
        json_body: Optional[Dict[str, Any]],
        allow_not_found: bool,
        extra_headers: Optional[Dict[str, str]],
    ) -> Optional[Any]:
        client = await self._get_client()
        url = f"{self.base_url}{path}"
        refreshed = False

        for attempt in range(self.max_retries):
            await self.rate_limiter.acquire()
            headers = {**(await self._auth_headers()), **(extra_headers or {})}

            try:
                response = await client.request(
                    method, url, params=params or None, json=json_body, headers=headers
                )
            except httpx.RequestError as e:
                if attempt < self.max_retries - 1:
                    logger.warning(
                        f"{self.id}: Request error ({e}), "
                        f"retry {attempt + 1}/{self.max_retries}"
                    )
                    await asyncio.sleep(self.retry_delay * (2 ** attempt))
                    continue
                raise ProviderError(self.id, f"request failed: {e}") from e

            status = response.status_code

            if status == 404 and allow_not_found:
                return None

            if status == 429 or status >= 500:
                if attempt < self.max_retries - 1:
                    wait_time = self.retry_delay * (2 ** attempt)  # Exponential backoff
                    logger.warning(
                        f"{self.id}: HTTP {status}, waiting {wait_time}s "
                        f"(retry {attempt + 1}/{self.max_retries})"
                    )
                    await asyncio.sleep(wait_time)
                    continue
                reason = "rate limited" if status == 429 else f"server error HTTP {status}"
                raise ProviderError(self.id, reason, status)

            if status == 401 and not refreshed and await self._on_unauthorized():
                refreshed = True
                continue

            if status >= 400:
                raise ProviderError(self.id, f"HTTP {status}", status)

            try:
                return response.json()
            except ValueError as e:
                raise ProviderError(self.id, "malformed JSON response", status) from e

        raise ProviderError(self.id, "max retries exceeded")

    def _parse(self, parse: Callable[..., T], *args: Any) -> T:
        """Run a payload parser; a payload of the wrong shape raises ProviderError."""
        try:
            return parse(*args)
        except (KeyError, IndexError, TypeError, ValueError, AttributeError) as e:
            raise ProviderError(self.id, f"malformed response ({type(e).__name__}: {e})") from e

    # =========================================================================
    # OPERATIONAL HELPERS
    # =========================================================================

    async def health_check(self) -> bool:
        """Hit a cheap endpoint without touching the cache."""
        try:
            await self._request("GET", self.health_path, use_cache=False)
            return True
        except ProviderError as e:
            logger.warning(f"{self.id}: health check failed: {e}")
            return False

    def get_status(self) -> Dict[str, Any]:
        return {
            "provider": self.id,
            "circuit": self.circuit_breaker.get_status(),
            "cache": self.cache.stats(),
        }

    async def clear_cache(self):
        await self.cache.clear()

    def __repr__(self):
        return f"<{self.__class__.__name__}(id='{self.id}', rate_limit={self.rate_limit}/min)>"
