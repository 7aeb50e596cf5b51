"""
Application Container

Owns every long-lived component of the gateway. Built synchronously by
create_app(); startup() and shutdown() perform the I/O.
"""

import logging
from typing import Optional

import httpx

from llmmux.common.http_client import HttpClient
from llmmux.common.rate_limit import ApiKeyRateLimiter
from llmmux.config import Settings
from llmmux.db.session import Database
from llmmux.repositories.sqlalchemy import SQLAlchemyUserRepository
from llmmux.scheduler import GatewayScheduler
from llmmux.services.backend_registry import BackendRegistry, parse_discovery_servers
from llmmux.services.backend_resolver import BackendResolver
from llmmux.services.credential_validator import (
    CredentialValidator,
    SessionValidator,
    create_credential_validator,
)
from llmmux.services.discovery import DiscoveryEngine
from llmmux.services.health_service import HealthService
from llmmux.services.metrics_service import MetricsRecorder
from llmmux.services.proxy_dispatcher import ProxyDispatcher
from llmmux.services.response_normalizer import ResponseNormalizer
from llmmux.services.user_service import UserService

logger = logging.getLogger(__name__)

LOG_CLEANUP_JOB_ID = "cleanup_old_logs"
RATE_LIMIT_CLEANUP_JOB_ID = "cleanup_rate_limits"


class GatewayContainer:
    """Explicitly owned gateway state, stored on app.state.container"""

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            settings: Gateway settings
            transport: Outbound transport override (tests use httpx.MockTransport)
        """
        self.settings = settings
        self.database = Database(settings)
        self.http_client = HttpClient(transport=transport)
        self.scheduler = GatewayScheduler()

        self.registry = BackendRegistry.from_config(settings.BACKENDS)
        self.discovery = DiscoveryEngine(
            parse_discovery_servers(settings.VLLM_SERVERS, settings.BACKENDS),
            self.http_client,
            interval_ms=settings.DISCOVERY_INTERVAL_MS,
            timeout_ms=settings.DISCOVERY_TIMEOUT_MS,
        )
        self.resolver = BackendResolver(self.registry, self.discovery)
        self.normalizer = ResponseNormalizer(settings.REPAIR_MODEL_PATTERN)
        self.dispatcher = ProxyDispatcher(
            self.resolver,
            self.http_client,
            self.normalizer,
            timeout_ms=settings.PROXY_TIMEOUT_MS,
        )

        self.credential_validator: CredentialValidator = create_credential_validator(
            settings, self.database.session_factory
        )
        self.session_validator = SessionValidator(self.database.session_factory, settings)
        self.rate_limiter = ApiKeyRateLimiter()
        self.metrics = MetricsRecorder(self.database.session_factory)
        self.health = HealthService(
            self.resolver, self.http_client, timeout_ms=settings.HEALTH_TIMEOUT_MS
        )

    async def startup(self) -> None:
        await self.database.init_models()
        async with self.database.session_factory() as session:
            await UserService(SQLAlchemyUserRepository(session), self.settings).seed_default_roles()

        self.scheduler.add_interval_job(
            self._cleanup_logs,
            job_id=LOG_CLEANUP_JOB_ID,
            name="Clean up old request logs",
            hours=self.settings.LOG_CLEANUP_INTERVAL_HOURS,
        )
        self.scheduler.add_interval_job(
            self._cleanup_rate_limits,
            job_id=RATE_LIMIT_CLEANUP_JOB_ID,
            name="Clean up rate limit windows",
            hours=1,
        )
        self.scheduler.start()
        await self.discovery.start(self.scheduler)
        logger.info(
            "Gateway started: %d static backends, %d discovery servers",
            len(self.registry),
            len(self.discovery.servers),
        )

    async def shutdown(self) -> None:
        self.discovery.stop()
        self.scheduler.shutdown()
        await self.http_client.close()
        await self.database.dispose()
        logger.info("Gateway shutdown completed")

    async def _cleanup_logs(self) -> None:
        await self.metrics.cleanup_task(self.settings.LOG_RETENTION_DAYS)

    async def _cleanup_rate_limits(self) -> None:
        self.rate_limiter.cleanup()
