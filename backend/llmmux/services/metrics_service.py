"""
Metrics Recorder Module

Records per-request usage after responses are sent and serves the usage
read side (per key, all keys, summary) and request log retention.
"""

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from llmmux.common.errors import NotFoundError
from llmmux.common.time import utc_now
from llmmux.common.utils import mask_key
from llmmux.domain.api_key import ApiKeyModel
from llmmux.domain.metrics import (
    ApiKeyUsageMetrics,
    CleanupResult,
    ModelMetrics,
    RequestRecord,
    SummaryStats,
)
from llmmux.repositories.sqlalchemy import (
    SQLAlchemyApiKeyRepository,
    SQLAlchemyMetricsRepository,
)

logger = logging.getLogger(__name__)


def aggregate_usage(api_key: ApiKeyModel, models: dict[str, ModelMetrics]) -> ApiKeyUsageMetrics:
    """Fold per-model counters into per-key totals"""
    total_requests = sum(m.total_requests for m in models.values())
    total_time = sum(m.average_response_time_ms * m.total_requests for m in models.values())
    return ApiKeyUsageMetrics(
        api_key_id=api_key.id,
        api_key=mask_key(api_key.key_value),
        total_requests=total_requests,
        successful_requests=sum(m.successful_requests for m in models.values()),
        failed_requests=sum(m.failed_requests for m in models.values()),
        total_tokens=sum(m.total_tokens for m in models.values()),
        average_response_time_ms=total_time / total_requests if total_requests else 0.0,
        last_request_at=api_key.last_used_at,
        model_metrics=models,
    )


class MetricsRecorder:
    """
    Metrics Recorder

    Every call opens its own database session, so recording can run after the
    request's session is gone.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def record_request(self, record: RequestRecord) -> None:
        """
        Append a request log and bump the (key, model) counters

        Never raises; failures are logged.
        """
        now = utc_now()
        try:
            async with self.session_factory() as session:
                repo = SQLAlchemyMetricsRepository(session)
                await repo.add_request_log(record, now)
                await repo.increment_metric(record, now)
        except SQLAlchemyError as e:
            logger.error("Failed to record request metrics: %s", e)
            return
        logger.debug(
            "Recorded request: key=%s -> %s (%s)",
            record.api_key_id,
            record.model_name,
            "success" if record.success else "failed",
        )

    async def get_api_key_metrics(self, api_key_id: int) -> ApiKeyUsageMetrics:
        """
        Usage of one API key

        Raises:
            NotFoundError: API key does not exist
        """
        async with self.session_factory() as session:
            api_key = await SQLAlchemyApiKeyRepository(session).get_by_id(api_key_id)
            if api_key is None:
                raise NotFoundError(
                    message=f"API Key with id '{api_key_id}' not found",
                    code="api_key_not_found",
                )
            models = await SQLAlchemyMetricsRepository(session).get_model_metrics(api_key_id)
        return aggregate_usage(api_key, models)

    async def get_all_metrics(self) -> list[ApiKeyUsageMetrics]:
        async with self.session_factory() as session:
            keys, _ = await SQLAlchemyApiKeyRepository(session).get_all(page=1, page_size=10_000)
            grouped = await SQLAlchemyMetricsRepository(session).get_all_model_metrics()
        return [aggregate_usage(key, grouped.get(key.id, {})) for key in keys]

    async def get_summary(self) -> SummaryStats:
        async with self.session_factory() as session:
            return await SQLAlchemyMetricsRepository(session).get_summary()

    async def cleanup_old_logs(self, retention_days: int = 90) -> CleanupResult:
        """Delete request logs older than retention_days"""
        cutoff = utc_now() - timedelta(days=retention_days)
        async with self.session_factory() as session:
            deleted = await SQLAlchemyMetricsRepository(session).delete_logs_before(cutoff)
        logger.info(
            "Cleaned up %d request logs older than %d days", deleted, retention_days
        )
        return CleanupResult(deleted=deleted, retention_days=retention_days)

    async def cleanup_task(self, retention_days: int) -> None:
        """Scheduled variant of cleanup_old_logs that never raises"""
        logger.info("Starting scheduled log cleanup task (retention: %d days)", retention_days)
        try:
            await self.cleanup_old_logs(retention_days)
        except SQLAlchemyError as e:
            logger.error("Log cleanup task failed: %s", e, exc_info=True)


def build_record(
    api_key_id: Optional[int],
    model_name: Optional[str],
    success: bool,
    response_time_ms: int,
    tokens: int = 0,
    request_path: Optional[str] = None,
    status_code: Optional[int] = None,
    error_message: Optional[str] = None,
) -> Optional[RequestRecord]:
    """A RequestRecord, or None when the request is not attributable to a stored key"""
    if api_key_id is None or not model_name:
        return None
    return RequestRecord(
        api_key_id=api_key_id,
        model_name=model_name,
        success=success,
        tokens=tokens,
        response_time_ms=response_time_ms,
        request_path=request_path,
        status_code=status_code,
        error_message=error_message,
    )
