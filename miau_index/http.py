"""Async HTTP client shared by catalog providers and the torrent indexer."""

import asyncio
import logging
from typing import Any

import httpx

from . import __version__
from .errors import NotFoundError, ProviderError, RateLimitError
from .ratelimit import RateLimiter

logger = logging.getLogger(__name__)

USER_AGENT = f"miau-index/{__version__}"


class HttpClient:
    """httpx.AsyncClient wrapper with timeout, retries and error mapping.

    Responses are mapped as follows: 404 raises NotFoundError and 429 raises
    RateLimitError (carrying Retry-After), other 4xx codes raise ProviderError
    at once. Server errors and transport failures are retried with
    exponential backoff and finally raised as ProviderError.

    Usage:
        async with HttpClient("KITSU", base_url="https://kitsu.io/api/edge") as http:
            data = await http.get_json("/anime/1")
    """

    def __init__(
        self,
        name: str,
        base_url: str = "",
        timeout: float = 15.0,
        headers: dict[str, str] | None = None,
        max_retries: int = 3,
        backoff: float = 1.0,
        rate_limiter: RateLimiter | None = None,
        follow_redirects: bool = True,
    ) -> None:
        self.name = name
        self.base_url = base_url
        self.timeout = timeout
        self.headers = {"User-Agent": USER_AGENT, "Accept": "application/json", **(headers or {})}
        self.max_retries = max(max_retries, 1)
        self.backoff = backoff
        self.rate_limiter = rate_limiter
        self._follow_redirects = follow_redirects
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=self.headers,
                follow_redirects=self._follow_redirects,
            )
        return self._client

    def _check_response(self, response: httpx.Response, url: str) -> None:
        if response.status_code == 404:
            raise NotFoundError("Resource", url)

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(int(retry_after) if retry_after and retry_after.isdigit() else None)

        response.raise_for_status()

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """
        Send a request, retrying transient failures.

        Raises:
            NotFoundError: On 404
            RateLimitError: On 429
            ProviderError: On any other 4xx, or when every attempt failed
        """
        last_error: Exception | None = None

        for attempt in range(self.max_retries):
            if self.rate_limiter is not None:
                await self.rate_limiter.acquire(self.name)

            try:
                response = await self._get_client().request(method, url, **kwargs)
                self._check_response(response, url)
                return response
            except (NotFoundError, RateLimitError):
                raise
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if status < 500:
                    raise ProviderError(self.name, f"HTTP {status} from {url}") from e
                last_error = e
            except httpx.HTTPError as e:
                last_error = e

            if attempt < self.max_retries - 1:
                wait = self.backoff * 2**attempt
                logger.warning(
                    f"{self.name} request to {url} failed (attempt {attempt + 1}/"
                    f"{self.max_retries}), retrying in {wait}s: {last_error}"
                )
                await asyncio.sleep(wait)

        raise ProviderError(
            self.name, f"Request failed after {self.max_retries} attempts: {last_error}"
        ) from last_error

    async def get_json(self, url: str, params: dict[str, Any] | None = None) -> Any:
        response = await self.request("GET", url, params=params)
        return response.json()

    async def get_text(self, url: str, params: dict[str, Any] | None = None) -> str:
        response = await self.request("GET", url, params=params)
        return response.text

    async def post_json(self, url: str, payload: dict[str, Any]) -> Any:
        response = await self.request("POST", url, json=payload)
        return response.json()

    async def graphql(
        self, url: str, query: str, variables: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Run a GraphQL query and return its data member."""
        body = await self.post_json(url, {"query": query, "variables": variables or {}})
        errors = body.get("errors")
        if errors:
            if any(error.get("status") == 404 for error in errors):
                raise NotFoundError("Resource", str(variables))
            messages = "; ".join(error.get("message", "unknown error") for error in errors)
            raise ProviderError(self.name, f"GraphQL errors: {messages}")
        return body.get("data") or {}

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
