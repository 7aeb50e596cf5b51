"""
Model Discovery Engine

Periodically polls every configured inference server's `/models` endpoint and
keeps a live model name -> backend map.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional

import httpx

from llmmux.common.http_client import HttpClient
from llmmux.common.time import utc_now
from llmmux.domain.backend import BackendEndpoint, DiscoveryServer, DiscoveryStats
from llmmux.scheduler import GatewayScheduler

logger = logging.getLogger(__name__)

DISCOVERY_JOB_ID = "model_discovery"


class DiscoveryEngine:
    """
    Discovery Engine

    Each sweep overwrites map entries key by key with freshly built endpoints.
    Models no longer reported stay mapped until another server reports them.
    When two servers report the same model id, the one whose response is
    processed last wins.
    """

    def __init__(
        self,
        servers: list[DiscoveryServer],
        http_client: HttpClient,
        interval_ms: int = 30000,
        timeout_ms: int = 5000,
    ):
        """
        Initialize Discovery Engine

        Args:
            servers: Server roots to poll
            http_client: Shared HTTP client
            interval_ms: Poll interval (ms)
            timeout_ms: Per-server request timeout (ms)
        """
        self.servers = list(servers)
        self.http_client = http_client
        self.interval_ms = interval_ms
        self.timeout_ms = timeout_ms
        self._backends: dict[str, BackendEndpoint] = {}
        self._last_discovery: Optional[datetime] = None
        self._scheduler: Optional[GatewayScheduler] = None

    @property
    def enabled(self) -> bool:
        return bool(self.servers)

    @property
    def is_running(self) -> bool:
        """Whether the periodic job is scheduled"""
        return self._scheduler is not None

    async def start(self, scheduler: GatewayScheduler) -> None:
        """
        Run a first sweep and schedule periodic sweeps

        No-op when no servers are configured or when already started.
        """
        if not self.servers:
            logger.info("No vLLM servers configured for auto-discovery")
            return
        if self._scheduler is not None:
            return

        logger.info("Starting model discovery for %d vLLM servers", len(self.servers))
        await self.sweep()
        scheduler.add_interval_job(
            self.sweep,
            job_id=DISCOVERY_JOB_ID,
            name="Model discovery",
            seconds=self.interval_ms / 1000,
        )
        self._scheduler = scheduler
        logger.info("Started periodic model discovery (interval: %dms)", self.interval_ms)

    def stop(self) -> None:
        """Cancel periodic sweeps. Safe to call repeatedly."""
        if self._scheduler is None:
            return
        self._scheduler.remove_job(DISCOVERY_JOB_ID)
        self._scheduler = None
        logger.info("Stopped periodic model discovery")

    async def sweep(self) -> int:
        """
        Poll every server once

        Failures are isolated per server and never raised.

        Returns:
            int: Number of models reported in this sweep
        """
        counts = await asyncio.gather(
            *(self._discover_from_server(server) for server in self.servers)
        )
        self._last_discovery = utc_now()
        total = sum(counts)
        logger.info(
            "Discovery completed. Found %d models across %d servers",
            len(self._backends),
            len(self.servers),
        )
        return total

    async def force_discovery(self) -> DiscoveryStats:
        """Sweep immediately, outside the timer cadence"""
        logger.info("Forcing immediate model discovery")
        await self.sweep()
        return self.stats()

    async def _discover_from_server(self, server: DiscoveryServer) -> int:
        url = f"{server.base_url}/models"
        logger.debug("Discovering models from %s", server.base_url)
        try:
            response = await self.http_client.get(
                url, self.timeout_ms, headers={"Accept": "application/json"}
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.ConnectError, httpx.TimeoutException):
            logger.warning("vLLM server not reachable: %s", server.base_url)
            return 0
        except httpx.HTTPError as e:
            logger.warning("Error discovering models from %s: %s", server.base_url, e)
            return 0
        except ValueError:
            logger.warning("Invalid response format from %s", url)
            return 0
        except Exception:
            logger.exception("Unexpected error discovering models from %s", server.base_url)
            return 0

        models = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(models, list):
            logger.warning("Invalid response format from %s", url)
            return 0

        count = 0
        for model in models:
            model_id = model.get("id") if isinstance(model, dict) else None
            if not isinstance(model_id, str) or not model_id:
                continue
            self._backends[model_id] = server.endpoint_for(model_id)
            logger.debug("Discovered model: %s from %s", model_id, server.base_url)
            count += 1

        logger.info("Discovered %d models from %s", count, server.base_url)
        return count

    def get(self, model_name: str) -> Optional[BackendEndpoint]:
        return self._backends.get(model_name)

    def all(self) -> dict[str, BackendEndpoint]:
        """Snapshot of the discovered map"""
        return dict(self._backends)

    def model_names(self) -> set[str]:
        return set(self._backends)

    def stats(self) -> DiscoveryStats:
        return DiscoveryStats(
            servers_configured=len(self.servers),
            models_discovered=len(self._backends),
            last_discovery=self._last_discovery.isoformat() if self._last_discovery else None,
        )
