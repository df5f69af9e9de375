"""
Async Graph API client used by the reconciliation engine.

Every call passes the SafetyGuardian before it reaches the wire. Listings
follow @odata.nextLink page by page. Reads are retried with backoff on
throttling, gateway errors and dropped connections; writes only on 429.
Anything else surfaces as GraphAPIError carrying the decoded error body.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from typing import Any, AsyncGenerator, Optional

import httpx

from ..config import (
    GRAPH_BASE_URL,
    GRAPH_API_VERSION,
    GRAPH_BETA_VERSION,
    MAX_RETRIES,
    INITIAL_BACKOFF_SECONDS,
    MAX_BACKOFF_SECONDS,
    BACKOFF_MULTIPLIER,
    DEFAULT_PAGE_SIZE,
    MAX_PAGES_PER_ENDPOINT,
    MAX_CONCURRENT_REQUESTS,
)
from ..safety.guardian import SafetyGuardian

logger = logging.getLogger("hydration_kit.graph")

SAFE_METHODS = frozenset({"GET"})
RETRYABLE_STATUS = frozenset({429, 503, 504})
WRITE_RETRYABLE_STATUS = frozenset({429})


class GraphAPIError(Exception):
    """A Graph request that failed for good; body holds the decoded error payload."""
    def __init__(self, status_code: int, message: str, url: str, body: Optional[dict] = None):
        self.status_code = status_code
        self.url = url
        self.message = message
        self.body = body or {}
        super().__init__(f"Graph API Error {status_code} for {url}: {message}")


class PaginationLimitError(GraphAPIError):
    """A listing still had a nextLink after the page cap; the items seen are not the whole collection."""
    def __init__(self, endpoint: str, pages: int, url: str):
        super().__init__(0, f"{endpoint} still paging after {pages} pages", url)


def extract_error_message(exc: BaseException) -> str:
    """
    Human-readable text for a failure surfaced by the request boundary.
    Prefers the structured Graph error body over the exception text.
    """
    body = getattr(exc, "body", None)
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            code = error.get("code")
            message = str(error["message"])
            return f"{code}: {message}" if code else message
    message = getattr(exc, "message", None)
    if message:
        return str(message)
    return str(exc) or type(exc).__name__


def _json_or_empty(response: httpx.Response) -> dict:
    if not response.content.strip():
        return {}
    try:
        payload = response.json()
    except ValueError:
        logger.debug(f"Non-JSON {response.status_code} body from {response.request.url}")
        return {}
    return payload if isinstance(payload, dict) else {}


def _retry_delay(response: Optional[httpx.Response], backoff: float) -> float:
    """Honour Retry-After when Graph sends one, never waiting less than the current backoff."""
    if response is None:
        return backoff
    header = response.headers.get("Retry-After")
    try:
        return max(float(header), backoff) if header is not None else backoff
    except ValueError:
        return backoff


class GraphClient:
    """
    Microsoft Graph client for v1.0 and beta endpoints.

    Use as an async context manager; the underlying httpx.AsyncClient is
    opened on enter and closed on exit.
    """

    def __init__(self, access_token: str, guardian: SafetyGuardian):
        self.access_token = access_token
        self.guardian = guardian
        self._semaphore = asyncio.Semaphore(MAX_CONCURRENT_REQUESTS)
        self._calls: Counter[str] = Counter()
        self._throttled = 0
        self._retries = 0
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "GraphClient":
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(60.0, connect=30.0),
            headers={
                "Authorization": f"Bearer {self.access_token}",
                "Accept": "application/json",
            },
        )
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def url_for(self, endpoint: str, beta: bool = False) -> str:
        if endpoint.startswith(("https://", "http://")):
            return endpoint
        version = GRAPH_BETA_VERSION if beta else GRAPH_API_VERSION
        return "/".join((GRAPH_BASE_URL, version, endpoint.lstrip("/")))

    # --- public surface ---

    async def get(self, endpoint: str, params: Optional[dict] = None, beta: bool = False) -> dict:
        return await self.request("GET", self.url_for(endpoint, beta), params=params)

    async def post(self, endpoint: str, body: dict, beta: bool = False) -> dict:
        """Create an object and return Graph's representation of it."""
        return await self.request("POST", self.url_for(endpoint, beta), body=body)

    async def delete(self, endpoint: str, beta: bool = False) -> dict:
        return await self.request("DELETE", self.url_for(endpoint, beta))

    async def get_all_pages(
        self,
        endpoint: str,
        params: Optional[dict] = None,
        beta: bool = False,
        skip_top: bool = False,
    ) -> list[dict]:
        return [item async for item in self.get_all_pages_stream(endpoint, params, beta, skip_top=skip_top)]

    async def get_all_pages_stream(
        self,
        endpoint: str,
        params: Optional[dict] = None,
        beta: bool = False,
        skip_top: bool = False,
    ) -> AsyncGenerator[dict, None]:
        """
        Yield every item of a collection, one page at a time.

        $top is only sent with the first request (nextLink already carries
        the query) and not at all when skip_top is set, for the endpoints
        that reject it. A failure on any page, or hitting the page cap,
        raises, so callers never mistake a truncated listing for a complete one.
        """
        query: Optional[dict] = dict(params or {})
        if not skip_top:
            query.setdefault("$top", str(DEFAULT_PAGE_SIZE))

        next_url: Optional[str] = self.url_for(endpoint, beta)
        for _ in range(MAX_PAGES_PER_ENDPOINT):
            page = await self.request("GET", next_url, params=query)
            for item in page.get("value", []):
                yield item
            next_url = page.get("@odata.nextLink")
            if not next_url:
                return
            query = None

        logger.error(f"Stopped paging {endpoint} after {MAX_PAGES_PER_ENDPOINT} pages; listing is incomplete")
        raise PaginationLimitError(endpoint, MAX_PAGES_PER_ENDPOINT, next_url)

    def get_stats(self) -> dict[str, Any]:
        return {
            "total_requests": sum(self._calls.values()),
            "throttle_events": self._throttled,
            "retries": self._retries,
            "requests_by_method": dict(self._calls),
        }

    # --- request pipeline ---

    async def request(
        self,
        method: str,
        url: str,
        params: Optional[dict] = None,
        body: Optional[dict] = None,
    ) -> dict:
        """
        Validate, send and decode one request, retrying transient failures.

        GETs are retried on throttling, gateway errors and dropped
        connections. Writes are retried only on 429, which Graph returns
        before doing any work; after a 503/504 or a lost connection the
        write may already have happened, so it fails instead of being sent
        a second time.
        """
        self.guardian.validate_request(method, url, body)
        if self._client is None:
            raise RuntimeError("GraphClient is not open; use it as 'async with GraphClient(...)'")

        retry_on = RETRYABLE_STATUS if method in SAFE_METHODS else WRITE_RETRYABLE_STATUS
        backoff = INITIAL_BACKOFF_SECONDS
        attempt = 0
        while True:
            response: Optional[httpx.Response] = None
            try:
                async with self._semaphore:
                    response = await self._client.request(method, url, params=params, json=body)
                self._calls[method] += 1
            except httpx.TransportError as e:
                if method not in SAFE_METHODS:
                    logger.error(f"{method} {url} failed ({type(e).__name__}); outcome unknown, not retried")
                    raise GraphAPIError(
                        0, f"{type(e).__name__} during {method}; the request may have been applied", url
                    ) from e
                if attempt >= MAX_RETRIES:
                    raise
                logger.warning(f"{method} {url} failed ({type(e).__name__}); retry {attempt + 1}/{MAX_RETRIES}")
            else:
                if response.is_success:
                    return _json_or_empty(response)
                if response.status_code not in retry_on or attempt >= MAX_RETRIES:
                    raise self._failure(response, url)
                self._throttled += 1
                logger.warning(
                    f"{method} {url} returned {response.status_code}; retry {attempt + 1}/{MAX_RETRIES}"
                )

            await asyncio.sleep(_retry_delay(response, backoff))
            backoff = min(backoff * BACKOFF_MULTIPLIER, MAX_BACKOFF_SECONDS)
            attempt += 1
            self._retries += 1

    @staticmethod
    def _failure(response: httpx.Response, url: str) -> GraphAPIError:
        payload = _json_or_empty(response)
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            message = str(error["message"])
        else:
            message = response.text[:200] or response.reason_phrase
        if response.status_code == 403:
            logger.warning(f"403 Forbidden: {url} ({message})")
        return GraphAPIError(response.status_code, message, url, payload)
