"""
HTTP Client Wrapper Module

Provides the shared asynchronous HTTP client used for discovery polls,
health probes and proxy dispatch.
"""

from typing import Any, Optional

import httpx


def timeout_from_ms(timeout_ms: int) -> httpx.Timeout:
    """Build an httpx timeout from a millisecond budget"""
    return httpx.Timeout(timeout_ms / 1000)


class HttpClient:
    """
    Asynchronous HTTP Client Wrapper

    Wraps one lazily created httpx.AsyncClient so every backend call shares a
    connection pool. Every call passes its own timeout; there is no default
    that could block indefinitely.
    """

    def __init__(
        self,
        headers: Optional[dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize HTTP Client

        Args:
            headers: Default request headers
            transport: Custom transport (tests plug in httpx.MockTransport here)
        """
        self.default_headers = headers or {}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def get_client(self) -> httpx.AsyncClient:
        """
        Get or create HTTP client instance

        Returns:
            httpx.AsyncClient: HTTP client instance
        """
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                headers=self.default_headers,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP Client"""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def get(self, url: str, timeout_ms: int, **kwargs: Any) -> httpx.Response:
        """
        Send GET Request

        Args:
            url: Absolute URL
            timeout_ms: Request timeout (ms)
            **kwargs: Other httpx parameters

        Returns:
            httpx.Response: HTTP response
        """
        client = self.get_client()
        return await client.get(url, timeout=timeout_from_ms(timeout_ms), **kwargs)

    async def post(
        self,
        url: str,
        timeout_ms: int,
        json: Optional[dict[str, Any]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Send POST Request

        Args:
            url: Absolute URL
            timeout_ms: Request timeout (ms)
            json: JSON request body
            **kwargs: Other httpx parameters

        Returns:
            httpx.Response: HTTP response
        """
        client = self.get_client()
        return await client.post(
            url, json=json, timeout=timeout_from_ms(timeout_ms), **kwargs
        )

    async def open_stream(
        self,
        method: str,
        url: str,
        timeout_ms: int,
        json: Optional[dict[str, Any]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Send a request and return once the response headers arrive

        The body is left unread; the caller iterates it and must call
        `aclose()` on the returned response.

        Returns:
            httpx.Response: Streaming HTTP response
        """
        client = self.get_client()
        request = client.build_request(
            method,
            url,
            json=json,
            timeout=timeout_from_ms(timeout_ms),
            **kwargs,
        )
        return await client.send(request, stream=True)
