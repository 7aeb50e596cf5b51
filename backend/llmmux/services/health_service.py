"""
Health Service

Probes every known backend's `/models` endpoint concurrently.
"""

import asyncio
import logging
from typing import Any

import httpx

from llmmux.common.http_client import HttpClient
from llmmux.common.time import utc_now
from llmmux.common.timer import Timer
from llmmux.domain.backend import BackendEndpoint
from llmmux.services.backend_resolver import BackendResolver

logger = logging.getLogger(__name__)


class HealthService:
    """
    Health Service

    Overall status is "healthy" when every backend answers, "degraded"
    otherwise. With no backends at all the gateway reports healthy.
    """

    def __init__(self, resolver: BackendResolver, http_client: HttpClient, timeout_ms: int = 5000):
        self.resolver = resolver
        self.http_client = http_client
        self.timeout_ms = timeout_ms

    async def _check(self, backend: BackendEndpoint) -> dict[str, Any]:
        timer = Timer().start()
        try:
            response = await self.http_client.get(f"{backend.base_url}/models", self.timeout_ms)
            response.raise_for_status()
        except httpx.HTTPError as e:
            error = str(e) or e.__class__.__name__
            logger.warning("Health check failed for %s: %s", backend.model_name, error)
            return {
                "model": backend.model_name,
                "status": "unhealthy",
                "url": backend.base_url,
                "error": error,
            }
        return {
            "model": backend.model_name,
            "status": "healthy",
            "url": backend.base_url,
            "response_time_ms": timer.stop().elapsed_ms,
        }

    async def check(self) -> dict[str, Any]:
        backends = self.resolver.list_all()
        checks = list(await asyncio.gather(*(self._check(b) for b in backends)))
        healthy = sum(1 for c in checks if c["status"] == "healthy")
        stats = self.resolver.stats()
        return {
            "status": "healthy" if healthy == len(checks) else "degraded",
            "timestamp": utc_now().isoformat(),
            "backends": checks,
            "discovery": {
                "enabled": stats.discovery_enabled,
                "static_backends": stats.static_backends,
                "discovered_backends": stats.discovered_backends,
                "total_models": stats.total_models,
            },
            "summary": {
                "healthy": healthy,
                "total": len(checks),
            },
        }
