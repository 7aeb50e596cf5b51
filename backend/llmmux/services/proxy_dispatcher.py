"""
Proxy Dispatcher

Forwards chat/completion requests to the backend serving the requested model.
Buffered requests return the parsed JSON body (repaired for needs-repair
models); streaming requests return a handle whose byte iterator relays the
backend stream unchanged.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, Union

import anyio
import httpx

from llmmux.common.errors import UpstreamError
from llmmux.common.http_client import HttpClient
from llmmux.domain.backend import BackendEndpoint
from llmmux.services.backend_resolver import BackendResolver
from llmmux.services.response_normalizer import ResponseNormalizer

logger = logging.getLogger(__name__)

StreamFinishCallback = Callable[[bool, Optional[str]], Awaitable[None]]

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


class RequestKind(str, Enum):
    CHAT = "chat"
    COMPLETION = "completion"

    @property
    def path(self) -> str:
        return "/chat/completions" if self is RequestKind.CHAT else "/completions"


@dataclass
class StreamHandle:
    """
    An open upstream stream

    Headers have been received and the status was 2xx. Iterate `relay()`
    at most once; the upstream response is closed when iteration ends, fails
    or is cancelled, or by `close()` if iteration never starts.
    """

    backend: BackendEndpoint
    response: httpx.Response
    media_type: str = "text/event-stream"
    headers: dict[str, str] = field(default_factory=lambda: dict(STREAM_HEADERS))
    on_finish: Optional[StreamFinishCallback] = None
    success: bool = False
    error: Optional[str] = None
    closed: bool = False

    async def relay(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self.response.aiter_bytes():
                yield chunk
            self.success = True
            logger.info("Stream completed successfully")
        except httpx.HTTPError as e:
            # Headers are already committed; the stream just ends
            self.error = str(e) or e.__class__.__name__
            logger.error("Stream error from %s: %s", self.backend.base_url, self.error)
        finally:
            await self.close()

    async def close(self) -> None:
        """
        Close the upstream response and report the outcome once

        Idempotent; safe to call whether or not `relay()` ran.
        """
        if self.closed:
            return
        self.closed = True
        with anyio.CancelScope(shield=True):
            await self.response.aclose()
            if self.success is False and self.error is None:
                self.error = "client_disconnected"
            if self.on_finish is not None:
                try:
                    await self.on_finish(self.success, self.error)
                except Exception:
                    logger.exception("Stream finish callback failed")


DispatchResult = Union[dict[str, Any], StreamHandle]


class ProxyDispatcher:
    """
    Proxy Dispatcher

    Failures are never retried.
    """

    def __init__(
        self,
        resolver: BackendResolver,
        http_client: HttpClient,
        normalizer: ResponseNormalizer,
        timeout_ms: int = 120000,
    ):
        self.resolver = resolver
        self.http_client = http_client
        self.normalizer = normalizer
        self.timeout_ms = timeout_ms

    async def dispatch_chat(self, payload: dict[str, Any]) -> DispatchResult:
        return await self.dispatch(RequestKind.CHAT, payload)

    async def dispatch_completion(self, payload: dict[str, Any]) -> DispatchResult:
        return await self.dispatch(RequestKind.COMPLETION, payload)

    async def dispatch(self, kind: RequestKind, payload: dict[str, Any]) -> DispatchResult:
        """
        Resolve the backend and forward the request

        Raises:
            ResolutionError: No backend serves the model
            UpstreamError: The outbound call failed
        """
        model = payload.get("model")
        backend = self.resolver.require(model)
        target_url = f"{backend.base_url}{kind.path}"
        logger.info("Proxying %s request to %s for model %s", kind.value, target_url, model)

        if payload.get("stream"):
            return await self._open_stream(backend, target_url, payload)
        return await self._forward(target_url, payload)

    async def _forward(self, target_url: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self.http_client.post(
                target_url,
                self.timeout_ms,
                json=payload,
                headers={"Content-Type": "application/json"},
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            logger.error("Error proxying request to %s: %s", target_url, e)
            raise UpstreamError(
                message=(
                    "Failed to proxy request: "
                    f"Request failed with status code {e.response.status_code}"
                ),
                details={"status_code": e.response.status_code},
            ) from e
        except httpx.HTTPError as e:
            cause = str(e) or e.__class__.__name__
            logger.error("Error proxying request to %s: %s", target_url, cause)
            raise UpstreamError(message=f"Failed to proxy request: {cause}") from e
        except ValueError as e:
            logger.error("Invalid JSON from %s: %s", target_url, e)
            raise UpstreamError(
                message="Failed to proxy request: invalid JSON in backend response"
            ) from e

        if self.normalizer.needs_repair(payload.get("model")):
            body = self.normalizer.normalize(body)
        return body

    async def _open_stream(
        self, backend: BackendEndpoint, target_url: str, payload: dict[str, Any]
    ) -> StreamHandle:
        try:
            response = await self.http_client.open_stream(
                "POST",
                target_url,
                self.timeout_ms,
                json=payload,
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as e:
            cause = str(e) or e.__class__.__name__
            logger.error("Streaming request failed: %s", cause)
            raise UpstreamError(
                message="Streaming request failed",
                code="stream_error",
                details={"cause": cause},
                status_code=500,
            ) from e

        if response.status_code >= 400:
            await response.aclose()
            logger.error(
                "Streaming request failed: %s returned %d", target_url, response.status_code
            )
            raise UpstreamError(
                message="Streaming request failed",
                code="stream_error",
                details={"status_code": response.status_code},
                status_code=500,
            )

        return StreamHandle(backend=backend, response=response)
