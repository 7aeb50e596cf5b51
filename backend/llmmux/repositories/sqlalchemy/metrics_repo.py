"""
Metrics Repository SQLAlchemy Implementation

Provides concrete database operation implementation for request logs and
per (API key, model) usage counters.
"""

from collections import defaultdict
from datetime import datetime

from sqlalchemy import delete, distinct, func, select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from llmmux.common.time import ensure_utc, to_utc_naive
from llmmux.db.models import ApiKey as ApiKeyORM
from llmmux.db.models import ApiKeyMetric as ApiKeyMetricORM
from llmmux.db.models import RequestLog as RequestLogORM
from llmmux.domain.metrics import ModelMetrics, RequestRecord, SummaryStats
from llmmux.repositories.metrics_repo import MetricsRepository


class SQLAlchemyMetricsRepository(MetricsRepository):
    """Metrics Repository SQLAlchemy Implementation"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_domain(self, entity: ApiKeyMetricORM) -> ModelMetrics:
        """Convert ORM entity to domain model"""
        total = entity.total_requests or 0
        return ModelMetrics(
            total_requests=total,
            successful_requests=entity.successful_requests or 0,
            failed_requests=entity.failed_requests or 0,
            total_tokens=int(entity.total_tokens or 0),
            average_response_time_ms=(
                int(entity.total_response_time_ms or 0) / total if total > 0 else 0.0
            ),
            last_request_at=ensure_utc(entity.last_request_at),
        )

    async def add_request_log(self, record: RequestRecord, timestamp: datetime) -> None:
        self.session.add(
            RequestLogORM(
                api_key_id=record.api_key_id,
                model_name=record.model_name,
                success=record.success,
                tokens=record.tokens,
                response_time_ms=record.response_time_ms,
                request_path=record.request_path,
                status_code=record.status_code,
                error_message=record.error_message,
                request_timestamp=to_utc_naive(timestamp),
            )
        )
        await self.session.commit()

    def _insert(self):
        """Dialect insert construct; both supported backends provide ON CONFLICT"""
        if self.session.get_bind().dialect.name == "postgresql":
            return postgresql_insert
        return sqlite_insert

    async def increment_metric(self, record: RequestRecord, timestamp: datetime) -> None:
        success = 1 if record.success else 0
        stmt = self._insert()(ApiKeyMetricORM).values(
            api_key_id=record.api_key_id,
            model_name=record.model_name,
            total_requests=1,
            successful_requests=success,
            failed_requests=1 - success,
            total_tokens=record.tokens,
            total_response_time_ms=record.response_time_ms,
            last_request_at=to_utc_naive(timestamp),
        )
        # Single statement so concurrent first requests for a (key, model) both count
        stmt = stmt.on_conflict_do_update(
            index_elements=[ApiKeyMetricORM.api_key_id, ApiKeyMetricORM.model_name],
            set_={
                "total_requests": ApiKeyMetricORM.total_requests + 1,
                "successful_requests": ApiKeyMetricORM.successful_requests + success,
                "failed_requests": ApiKeyMetricORM.failed_requests + (1 - success),
                "total_tokens": ApiKeyMetricORM.total_tokens + record.tokens,
                "total_response_time_ms": (
                    ApiKeyMetricORM.total_response_time_ms + record.response_time_ms
                ),
                "last_request_at": stmt.excluded.last_request_at,
            },
        )
        await self.session.execute(stmt)
        await self.session.commit()

    async def get_model_metrics(self, api_key_id: int) -> dict[str, ModelMetrics]:
        result = await self.session.execute(
            select(ApiKeyMetricORM)
            .where(ApiKeyMetricORM.api_key_id == api_key_id)
            .order_by(ApiKeyMetricORM.model_name)
        )
        return {e.model_name: self._to_domain(e) for e in result.scalars().all()}

    async def get_all_model_metrics(self) -> dict[int, dict[str, ModelMetrics]]:
        result = await self.session.execute(
            select(ApiKeyMetricORM).order_by(
                ApiKeyMetricORM.api_key_id, ApiKeyMetricORM.model_name
            )
        )
        grouped: dict[int, dict[str, ModelMetrics]] = defaultdict(dict)
        for entity in result.scalars().all():
            grouped[entity.api_key_id][entity.model_name] = self._to_domain(entity)
        return dict(grouped)

    async def get_summary(self) -> SummaryStats:
        key_count = await self.session.execute(
            select(func.count()).select_from(ApiKeyORM)
        )
        sums = await self.session.execute(
            select(
                func.coalesce(func.sum(ApiKeyMetricORM.total_requests), 0),
                func.coalesce(func.sum(ApiKeyMetricORM.successful_requests), 0),
                func.coalesce(func.sum(ApiKeyMetricORM.failed_requests), 0),
                func.coalesce(func.sum(ApiKeyMetricORM.total_tokens), 0),
                func.count(distinct(ApiKeyMetricORM.model_name)),
            )
        )
        total, successful, failed, tokens, models = sums.one()
        return SummaryStats(
            total_api_keys=key_count.scalar() or 0,
            total_requests=int(total),
            total_successful_requests=int(successful),
            total_failed_requests=int(failed),
            total_tokens=int(tokens),
            unique_models=int(models),
        )

    async def delete_logs_before(self, cutoff: datetime) -> int:
        result = await self.session.execute(
            delete(RequestLogORM)
            .where(RequestLogORM.request_timestamp < to_utc_naive(cutoff))
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return result.rowcount or 0
