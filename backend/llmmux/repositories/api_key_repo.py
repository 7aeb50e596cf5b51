"""
API Key Repository Interface

Defines the data access interface for API Keys.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from llmmux.domain.api_key import (
    ApiKeyCreate,
    ApiKeyModel,
    ApiKeyUpdate,
    ModelPermissions,
)


class ApiKeyRepository(ABC):
    """API Key Repository Interface"""

    @abstractmethod
    async def create(
        self, data: ApiKeyCreate, key_value: str, permissions: ModelPermissions
    ) -> ApiKeyModel:
        """
        Create API Key

        Args:
            data: Creation data
            key_value: Generated key value (token)
            permissions: Resolved model permissions

        Returns:
            ApiKeyModel: Created API Key model
        """
        pass

    @abstractmethod
    async def get_by_id(self, id: int) -> Optional[ApiKeyModel]:
        """Get API Key by ID"""
        pass

    @abstractmethod
    async def get_by_key_value(self, key_value: str) -> Optional[ApiKeyModel]:
        """Get API Key by Key Value (for authentication)"""
        pass

    @abstractmethod
    async def get_all(
        self,
        is_active: Optional[bool] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[ApiKeyModel], int]:
        """
        Get API Key List (Pagination)

        Returns:
            tuple[list[ApiKeyModel], int]: (API Key list, total count)
        """
        pass

    @abstractmethod
    async def update(
        self,
        id: int,
        data: ApiKeyUpdate,
        permissions: Optional[ModelPermissions] = None,
    ) -> Optional[ApiKeyModel]:
        """Update API Key fields and, when given, its permissions"""
        pass

    @abstractmethod
    async def update_last_used(self, id: int, last_used_at: datetime) -> None:
        """Update API Key's last used time"""
        pass

    @abstractmethod
    async def delete(self, id: int) -> bool:
        """Delete API Key"""
        pass

    @abstractmethod
    async def count(self) -> int:
        """Count all API Keys"""
        pass
