"""
Usage Metrics API
"""

from fastapi import APIRouter, Depends

from llmmux.api.deps import ContainerDep, require_route
from llmmux.domain.metrics import ApiKeyUsageMetrics, SummaryStats

router = APIRouter(prefix="/metrics", tags=["Admin - Metrics"])


@router.get(
    "/summary",
    response_model=SummaryStats,
    dependencies=[Depends(require_route("metrics.summary"))],
)
async def summary(container: ContainerDep):
    return await container.metrics.get_summary()


@router.get(
    "/api-keys",
    response_model=list[ApiKeyUsageMetrics],
    dependencies=[Depends(require_route("metrics.api_key"))],
)
async def all_api_key_metrics(container: ContainerDep):
    return await container.metrics.get_all_metrics()


@router.get(
    "/api-keys/{key_id}",
    response_model=ApiKeyUsageMetrics,
    dependencies=[Depends(require_route("metrics.api_key"))],
)
async def api_key_metrics(key_id: int, container: ContainerDep):
    return await container.metrics.get_api_key_metrics(key_id)
