"""
API Key Management API

Provides CRUD interfaces for API Keys, permission updates and request log
cleanup. Every route requires an administrator session.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from llmmux.api.deps import ApiKeyServiceDep, ContainerDep, require_route
from llmmux.domain.api_key import (
    ApiKeyCreate,
    ApiKeyCreateResponse,
    ApiKeyResponse,
    ApiKeyUpdate,
    ModelPermissionsUpdate,
)
from llmmux.domain.metrics import CleanupResult

router = APIRouter(prefix="/admin", tags=["Admin - API Keys"])


class PaginatedApiKeyResponse(BaseModel):
    """API Key paginated response"""
    items: list[ApiKeyResponse]
    total: int
    page: int
    page_size: int


@router.get(
    "/keys",
    response_model=PaginatedApiKeyResponse,
    dependencies=[Depends(require_route("admin.keys.list"))],
)
async def list_api_keys(
    service: ApiKeyServiceDep,
    is_active: Optional[bool] = Query(None, description="Filter by active state"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Page size"),
):
    """
    Get API Key list

    key_value is masked.
    """
    items, total = await service.get_all(is_active, page, page_size)
    return PaginatedApiKeyResponse(items=items, total=total, page=page, page_size=page_size)


@router.get(
    "/keys/{key_id}",
    response_model=ApiKeyResponse,
    dependencies=[Depends(require_route("admin.keys.get"))],
)
async def get_api_key(key_id: int, service: ApiKeyServiceDep):
    return await service.get_by_id(key_id)


@router.post(
    "/keys",
    response_model=ApiKeyCreateResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_route("admin.keys.create"))],
)
async def create_api_key(data: ApiKeyCreate, service: ApiKeyServiceDep):
    """
    Create API Key

    key_value is generated by the gateway and only returned in full here.
    """
    return await service.create(data)


@router.put(
    "/keys/{key_id}",
    response_model=ApiKeyResponse,
    dependencies=[Depends(require_route("admin.keys.update"))],
)
async def update_api_key(key_id: int, data: ApiKeyUpdate, service: ApiKeyServiceDep):
    return await service.update(key_id, data)


@router.delete(
    "/keys/{key_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_route("admin.keys.delete"))],
)
async def delete_api_key(key_id: int, service: ApiKeyServiceDep):
    await service.delete(key_id)


@router.post(
    "/keys/{key_id}/permissions",
    response_model=ApiKeyResponse,
    dependencies=[Depends(require_route("admin.keys.permissions"))],
)
async def update_api_key_permissions(
    key_id: int, data: ModelPermissionsUpdate, service: ApiKeyServiceDep
):
    """Update model permissions; omitted fields keep their value"""
    return await service.update_permissions(key_id, data)


@router.post(
    "/cleanup-logs",
    response_model=CleanupResult,
    dependencies=[Depends(require_route("admin.cleanup_logs"))],
)
async def cleanup_logs(
    container: ContainerDep,
    retention_days: Optional[int] = Query(None, ge=1, description="Defaults to LOG_RETENTION_DAYS"),
):
    return await container.metrics.cleanup_old_logs(
        retention_days or container.settings.LOG_RETENTION_DAYS
    )
