"""
Metric counter upsert tests
"""

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from llmmux.common.time import to_utc_naive, utc_now
from llmmux.db.models import ApiKey, ApiKeyMetric
from llmmux.domain.metrics import RequestRecord
from llmmux.repositories.sqlalchemy.metrics_repo import SQLAlchemyMetricsRepository


async def add_key(session) -> int:
    key = ApiKey(key_value="sk-llmmux-test", name="k")
    session.add(key)
    await session.commit()
    return key.id


def record(key_id: int, model: str = "llama", success: bool = True, tokens: int = 5) -> RequestRecord:
    return RequestRecord(
        api_key_id=key_id,
        model_name=model,
        success=success,
        tokens=tokens,
        response_time_ms=100,
    )


@pytest.mark.asyncio
async def test_first_increment_creates_row(db_session):
    key_id = await add_key(db_session)
    repo = SQLAlchemyMetricsRepository(db_session)

    await repo.increment_metric(record(key_id, success=False), utc_now())

    metrics = await repo.get_model_metrics(key_id)
    assert metrics["llama"].total_requests == 1
    assert metrics["llama"].failed_requests == 1
    assert metrics["llama"].successful_requests == 0
    assert metrics["llama"].total_tokens == 5


@pytest.mark.asyncio
async def test_row_written_by_another_session_is_accumulated(session_factory):
    async with session_factory() as session:
        key_id = await add_key(session)

    # Another writer creates the (key, model) row first
    async with session_factory() as other:
        other.add(
            ApiKeyMetric(
                api_key_id=key_id,
                model_name="llama",
                total_requests=3,
                successful_requests=3,
                failed_requests=0,
                total_tokens=30,
                total_response_time_ms=300,
                last_request_at=to_utc_naive(utc_now() - timedelta(hours=1)),
            )
        )
        await other.commit()

    now = utc_now()
    async with session_factory() as session:
        await SQLAlchemyMetricsRepository(session).increment_metric(record(key_id), now)

    async with session_factory() as session:
        rows = await session.execute(
            select(func.count()).select_from(ApiKeyMetric).where(ApiKeyMetric.api_key_id == key_id)
        )
        assert rows.scalar() == 1
        metrics = await SQLAlchemyMetricsRepository(session).get_model_metrics(key_id)

    usage = metrics["llama"]
    assert usage.total_requests == 4
    assert usage.successful_requests == 4
    assert usage.total_tokens == 35
    assert usage.average_response_time_ms == 100.0
    assert usage.last_request_at == now


@pytest.mark.asyncio
async def test_models_are_counted_separately(db_session):
    key_id = await add_key(db_session)
    repo = SQLAlchemyMetricsRepository(db_session)

    await repo.increment_metric(record(key_id, "llama"), utc_now())
    await repo.increment_metric(record(key_id, "qwen", tokens=7), utc_now())
    await repo.increment_metric(record(key_id, "llama"), utc_now())

    metrics = await repo.get_model_metrics(key_id)
    assert metrics["llama"].total_requests == 2
    assert metrics["qwen"].total_requests == 1
    assert metrics["qwen"].total_tokens == 7
