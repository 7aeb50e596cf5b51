"""
User Repository SQLAlchemy Implementation

Provides concrete database operation implementation for users and roles.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from llmmux.common.time import ensure_utc, to_utc_naive
from llmmux.db.models import Role as RoleORM
from llmmux.db.models import User as UserORM
from llmmux.db.models import UserRoleAssignment as UserRoleORM
from llmmux.domain.user import RoleAssignment, RoleModel, UserModel
from llmmux.repositories.user_repo import UserRepository


class SQLAlchemyUserRepository(UserRepository):
    """
    User Repository SQLAlchemy Implementation

    Users are always loaded together with their role assignments and roles.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    def _role_to_domain(self, entity: RoleORM) -> RoleModel:
        return RoleModel(
            id=entity.id,
            name=entity.name,
            description=entity.description,
            permissions=list(entity.permissions or []),
            is_active=entity.is_active,
        )

    def _to_domain(self, entity: UserORM) -> UserModel:
        """Convert ORM entity to domain model"""
        return UserModel(
            id=entity.id,
            email=entity.email,
            name=entity.name,
            password_hash=entity.password_hash,
            is_active=entity.is_active,
            created_at=ensure_utc(entity.created_at),
            last_login_at=ensure_utc(entity.last_login_at),
            roles=[
                RoleAssignment(
                    role=self._role_to_domain(assignment.role),
                    is_active=assignment.is_active,
                    expires_at=ensure_utc(assignment.expires_at),
                )
                for assignment in entity.role_assignments
            ],
        )

    def _user_query(self):
        return (
            select(UserORM)
            .options(
                selectinload(UserORM.role_assignments).selectinload(UserRoleORM.role)
            )
            .execution_options(populate_existing=True)
        )

    async def get_by_id(self, id: int) -> Optional[UserModel]:
        result = await self.session.execute(self._user_query().where(UserORM.id == id))
        entity = result.scalar_one_or_none()
        return self._to_domain(entity) if entity else None

    async def get_by_email(self, email: str) -> Optional[UserModel]:
        result = await self.session.execute(
            self._user_query().where(UserORM.email == email)
        )
        entity = result.scalar_one_or_none()
        return self._to_domain(entity) if entity else None

    async def create(
        self,
        email: str,
        password_hash: str,
        name: Optional[str],
        role_ids: list[int],
    ) -> UserModel:
        entity = UserORM(email=email, password_hash=password_hash, name=name)
        self.session.add(entity)
        await self.session.flush()
        for role_id in role_ids:
            self.session.add(UserRoleORM(user_id=entity.id, role_id=role_id))
        await self.session.commit()

        user = await self.get_by_id(entity.id)
        assert user is not None
        return user

    async def get_all(self) -> list[UserModel]:
        result = await self.session.execute(self._user_query().order_by(UserORM.id))
        return [self._to_domain(e) for e in result.scalars().all()]

    async def update_last_login(self, id: int, last_login_at: datetime) -> None:
        await self.session.execute(
            update(UserORM)
            .where(UserORM.id == id)
            .values(last_login_at=to_utc_naive(last_login_at))
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()

    async def get_role_by_name(self, name: str) -> Optional[RoleModel]:
        result = await self.session.execute(select(RoleORM).where(RoleORM.name == name))
        entity = result.scalar_one_or_none()
        return self._role_to_domain(entity) if entity else None

    async def get_roles_by_ids(self, ids: list[int]) -> list[RoleModel]:
        if not ids:
            return []
        result = await self.session.execute(
            select(RoleORM).where(RoleORM.id.in_(ids)).order_by(RoleORM.id)
        )
        return [self._role_to_domain(e) for e in result.scalars().all()]

    async def upsert_role(
        self, name: str, description: Optional[str], permissions: list[str]
    ) -> RoleModel:
        result = await self.session.execute(select(RoleORM).where(RoleORM.name == name))
        entity = result.scalar_one_or_none()
        if entity is None:
            entity = RoleORM(name=name)
            self.session.add(entity)
        entity.description = description
        entity.permissions = list(permissions)
        await self.session.commit()
        await self.session.refresh(entity)
        return self._role_to_domain(entity)
