"""
User Repository Interface

Defines the data access interface for users, roles and role assignments.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from llmmux.domain.user import RoleModel, UserModel


class UserRepository(ABC):
    """User Repository Interface"""

    @abstractmethod
    async def get_by_id(self, id: int) -> Optional[UserModel]:
        """Get user (with role assignments) by ID"""
        pass

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[UserModel]:
        """Get user (with role assignments) by email"""
        pass

    @abstractmethod
    async def create(
        self,
        email: str,
        password_hash: str,
        name: Optional[str],
        role_ids: list[int],
    ) -> UserModel:
        """Create a user and assign the given roles"""
        pass

    @abstractmethod
    async def get_all(self) -> list[UserModel]:
        """List all users"""
        pass

    @abstractmethod
    async def update_last_login(self, id: int, last_login_at: datetime) -> None:
        """Update user's last login time"""
        pass

    @abstractmethod
    async def get_role_by_name(self, name: str) -> Optional[RoleModel]:
        """Get role by name"""
        pass

    @abstractmethod
    async def get_roles_by_ids(self, ids: list[int]) -> list[RoleModel]:
        """Get roles by IDs (unknown ids are skipped)"""
        pass

    @abstractmethod
    async def upsert_role(
        self, name: str, description: Optional[str], permissions: list[str]
    ) -> RoleModel:
        """Create a role or overwrite its description and permissions"""
        pass
