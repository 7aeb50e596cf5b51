"""
API Key Service Module

Provides business logic processing for API Keys.
"""

import logging
from datetime import datetime
from typing import Optional

from llmmux.common.errors import NotFoundError
from llmmux.common.time import is_expired, utc_now
from llmmux.common.utils import generate_api_key, mask_key
from llmmux.config import Settings
from llmmux.domain.api_key import (
    ApiKeyCreate,
    ApiKeyCreateResponse,
    ApiKeyModel,
    ApiKeyResponse,
    ApiKeyUpdate,
    ModelPermissions,
    ModelPermissionsUpdate,
)
from llmmux.repositories.api_key_repo import ApiKeyRepository

logger = logging.getLogger(__name__)


class ApiKeyService:
    """
    API Key Service

    Handles business logic related to API Keys, including creation,
    validation and permission management.
    """

    def __init__(self, repo: ApiKeyRepository, settings: Settings):
        """
        Initialize Service

        Args:
            repo: API Key Repository
            settings: Gateway settings (key prefix and length)
        """
        self.repo = repo
        self.settings = settings

    def _to_response(self, model: ApiKeyModel) -> ApiKeyResponse:
        data = model.model_dump(exclude={"updated_at"})
        data["key_value"] = mask_key(model.key_value)
        return ApiKeyResponse(**data)

    async def _get_or_raise(self, id: int) -> ApiKeyModel:
        model = await self.repo.get_by_id(id)
        if not model:
            raise NotFoundError(
                message=f"API Key with id '{id}' not found",
                code="api_key_not_found",
            )
        return model

    async def create(self, data: ApiKeyCreate) -> ApiKeyCreateResponse:
        """
        Create API Key

        The full key value is only returned here.
        """
        key_value = generate_api_key(
            self.settings.API_KEY_PREFIX, self.settings.API_KEY_RANDOM_BYTES
        )
        while await self.repo.get_by_key_value(key_value):
            key_value = generate_api_key(
                self.settings.API_KEY_PREFIX, self.settings.API_KEY_RANDOM_BYTES
            )

        permissions = ModelPermissions()
        if data.permissions is not None:
            permissions = data.permissions.apply(permissions)

        model = await self.repo.create(data, key_value, permissions)
        logger.info("Created API key %s (%s)", model.id, mask_key(key_value))
        return ApiKeyCreateResponse(**model.model_dump(exclude={"updated_at"}))

    async def get_by_id(self, id: int) -> ApiKeyResponse:
        """
        Get API Key Details

        Raises:
            NotFoundError: API Key does not exist
        """
        return self._to_response(await self._get_or_raise(id))

    async def get_all(
        self,
        is_active: Optional[bool] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[ApiKeyResponse], int]:
        """Get API Key List (key values masked)"""
        models, total = await self.repo.get_all(
            is_active=is_active, page=page, page_size=page_size
        )
        return [self._to_response(m) for m in models], total

    async def update(self, id: int, data: ApiKeyUpdate) -> ApiKeyResponse:
        """
        Update API Key

        Partial permission updates are merged onto the current permissions.
        """
        current = await self._get_or_raise(id)
        permissions = None
        if data.permissions is not None:
            permissions = data.permissions.apply(current.permissions)
        model = await self.repo.update(id, data, permissions)
        if not model:
            raise NotFoundError(
                message=f"API Key with id '{id}' not found",
                code="api_key_not_found",
            )
        logger.info("Updated API key %s", id)
        return self._to_response(model)

    async def update_permissions(
        self, id: int, update: ModelPermissionsUpdate
    ) -> ApiKeyResponse:
        """Update only the model permissions of an API Key"""
        return await self.update(id, ApiKeyUpdate(permissions=update))

    async def delete(self, id: int) -> None:
        """
        Delete API Key

        Raises:
            NotFoundError: API Key does not exist
        """
        if not await self.repo.delete(id):
            raise NotFoundError(
                message=f"API Key with id '{id}' not found",
                code="api_key_not_found",
            )
        logger.info("Deleted API key %s", id)

    async def validate(
        self, key_value: str, now: Optional[datetime] = None
    ) -> Optional[ApiKeyModel]:
        """
        Validate an API key value

        Returns:
            Optional[ApiKeyModel]: None when unknown, inactive or expired
        """
        model = await self.repo.get_by_key_value(key_value)
        if model is None:
            return None
        if not model.is_active:
            logger.debug("API key %s is inactive", model.id)
            return None
        if is_expired(model.expires_at, now):
            logger.debug("API key %s has expired", model.id)
            return None
        return model

    async def record_usage(self, id: int, when: Optional[datetime] = None) -> None:
        """Update the last used time of an API Key"""
        await self.repo.update_last_used(id, when or utc_now())
