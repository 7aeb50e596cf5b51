"""
API Key Repository SQLAlchemy Implementation

Provides concrete database operation implementation for API Keys.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from llmmux.common.time import ensure_utc, to_utc_naive
from llmmux.db.models import ApiKey as ApiKeyORM
from llmmux.domain.api_key import (
    ApiKeyCreate,
    ApiKeyModel,
    ApiKeyUpdate,
    ModelPermissions,
)
from llmmux.repositories.api_key_repo import ApiKeyRepository


class SQLAlchemyApiKeyRepository(ApiKeyRepository):
    """
    API Key Repository SQLAlchemy Implementation

    Uses SQLAlchemy ORM to implement database operations for API Keys.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize Repository

        Args:
            session: Async database session
        """
        self.session = session

    def _to_domain(self, entity: ApiKeyORM) -> ApiKeyModel:
        """Convert ORM entity to domain model"""
        return ApiKeyModel(
            id=entity.id,
            key_value=entity.key_value,
            name=entity.name,
            description=entity.description,
            owner=entity.owner,
            tags=list(entity.tags or []),
            rate_limit_rpm=entity.rate_limit_rpm,
            rate_limit_rpd=entity.rate_limit_rpd,
            is_active=entity.is_active,
            created_at=ensure_utc(entity.created_at),
            updated_at=ensure_utc(entity.updated_at),
            expires_at=ensure_utc(entity.expires_at),
            last_used_at=ensure_utc(entity.last_used_at),
            permissions=ModelPermissions(
                allow_all=entity.allow_all,
                allowed_models=list(entity.allowed_models or []),
                denied_models=list(entity.denied_models or []),
            ),
        )

    @staticmethod
    def _apply_permissions(entity: ApiKeyORM, permissions: ModelPermissions) -> None:
        entity.allow_all = permissions.allow_all
        entity.allowed_models = list(permissions.allowed_models)
        entity.denied_models = list(permissions.denied_models)

    async def _get_entity(self, id: int) -> Optional[ApiKeyORM]:
        result = await self.session.execute(
            select(ApiKeyORM)
            .where(ApiKeyORM.id == id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def create(
        self, data: ApiKeyCreate, key_value: str, permissions: ModelPermissions
    ) -> ApiKeyModel:
        """Create API Key"""
        entity = ApiKeyORM(
            key_value=key_value,
            name=data.name,
            description=data.description,
            owner=data.owner,
            tags=list(data.tags),
            rate_limit_rpm=data.rate_limit_rpm,
            rate_limit_rpd=data.rate_limit_rpd,
            expires_at=to_utc_naive(data.expires_at),
            is_active=True,
        )
        self._apply_permissions(entity, permissions)
        self.session.add(entity)
        await self.session.commit()
        await self.session.refresh(entity)
        return self._to_domain(entity)

    async def get_by_id(self, id: int) -> Optional[ApiKeyModel]:
        """Get API Key by ID"""
        entity = await self._get_entity(id)
        return self._to_domain(entity) if entity else None

    async def get_by_key_value(self, key_value: str) -> Optional[ApiKeyModel]:
        """Get API Key by key value (for authentication)"""
        result = await self.session.execute(
            select(ApiKeyORM)
            .where(ApiKeyORM.key_value == key_value)
            .execution_options(populate_existing=True)
        )
        entity = result.scalar_one_or_none()
        return self._to_domain(entity) if entity else None

    async def get_all(
        self,
        is_active: Optional[bool] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[ApiKeyModel], int]:
        """Get API Key list"""
        query = select(ApiKeyORM)
        count_query = select(func.count()).select_from(ApiKeyORM)

        if is_active is not None:
            query = query.where(ApiKeyORM.is_active == is_active)
            count_query = count_query.where(ApiKeyORM.is_active == is_active)

        # Get total count
        total_result = await self.session.execute(count_query)
        total = total_result.scalar() or 0

        # Pagination
        query = query.order_by(ApiKeyORM.id.desc())
        query = query.offset((page - 1) * page_size).limit(page_size)

        result = await self.session.execute(query)
        entities = result.scalars().all()

        return [self._to_domain(e) for e in entities], total

    async def update(
        self,
        id: int,
        data: ApiKeyUpdate,
        permissions: Optional[ModelPermissions] = None,
    ) -> Optional[ApiKeyModel]:
        """Update API Key"""
        entity = await self._get_entity(id)
        if not entity:
            return None

        update_data = data.model_dump(exclude_unset=True, exclude={"permissions"})
        for key, value in update_data.items():
            if key == "expires_at":
                value = to_utc_naive(value)
            setattr(entity, key, value)
        if permissions is not None:
            self._apply_permissions(entity, permissions)

        await self.session.commit()
        await self.session.refresh(entity)
        return self._to_domain(entity)

    async def update_last_used(self, id: int, last_used_at: datetime) -> None:
        """Update API Key's last used time"""
        await self.session.execute(
            update(ApiKeyORM)
            .where(ApiKeyORM.id == id)
            .values(last_used_at=to_utc_naive(last_used_at))
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()

    async def delete(self, id: int) -> bool:
        """Delete API Key"""
        entity = await self._get_entity(id)
        if not entity:
            return False

        await self.session.delete(entity)
        await self.session.commit()
        return True

    async def count(self) -> int:
        result = await self.session.execute(select(func.count()).select_from(ApiKeyORM))
        return result.scalar() or 0
