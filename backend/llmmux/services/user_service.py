"""
User Service Module

Users, built-in roles and session tokens.
"""

import logging
from datetime import datetime
from typing import Optional

from llmmux.common.errors import AuthenticationError, ConflictError, NotFoundError
from llmmux.common.security import create_session_token, hash_password, verify_password
from llmmux.common.time import is_expired, utc_now
from llmmux.config import Settings
from llmmux.domain.user import (
    DEFAULT_ROLE_DESCRIPTIONS,
    DEFAULT_ROLE_PERMISSIONS,
    LoginRequest,
    LoginResponse,
    RoleModel,
    UserCreate,
    UserModel,
    UserProfile,
    UserRole,
)
from llmmux.repositories.user_repo import UserRepository

logger = logging.getLogger(__name__)


def active_roles(user: UserModel, now: Optional[datetime] = None) -> list[RoleModel]:
    """Roles whose assignment and role are active and not expired"""
    return [
        assignment.role
        for assignment in user.roles
        if assignment.is_active
        and assignment.role.is_active
        and not is_expired(assignment.expires_at, now)
    ]


def effective_permissions(roles: list[RoleModel]) -> list[str]:
    """Union of role permissions, first-seen order"""
    seen: dict[str, None] = {}
    for role in roles:
        for permission in role.permissions:
            seen.setdefault(permission, None)
    return list(seen)


def to_profile(user: UserModel, now: Optional[datetime] = None) -> UserProfile:
    roles = active_roles(user, now)
    return UserProfile(
        id=user.id,
        email=user.email,
        name=user.name,
        is_active=user.is_active,
        created_at=user.created_at,
        last_login_at=user.last_login_at,
        roles=[role.name for role in roles],
        permissions=effective_permissions(roles),
    )


class UserService:
    """
    User Service

    Handles registration, login and profile lookups.
    """

    def __init__(self, repo: UserRepository, settings: Settings):
        self.repo = repo
        self.settings = settings

    async def seed_default_roles(self) -> list[RoleModel]:
        """Create or refresh the built-in roles. Safe to run on every startup."""
        roles = []
        for role in UserRole:
            roles.append(
                await self.repo.upsert_role(
                    role.value,
                    DEFAULT_ROLE_DESCRIPTIONS[role.value],
                    DEFAULT_ROLE_PERMISSIONS[role.value],
                )
            )
        logger.info("Seeded default roles: %s", ", ".join(r.name for r in roles))
        return roles

    async def register(self, data: UserCreate) -> UserProfile:
        """
        Register a user

        Raises:
            ConflictError: Email already registered
            NotFoundError: One of the role ids does not exist
        """
        if await self.repo.get_by_email(data.email):
            raise ConflictError(message="Email already exists", code="email_exists")

        if data.role_ids:
            role_ids = list(dict.fromkeys(data.role_ids))
            roles = await self.repo.get_roles_by_ids(role_ids)
            if len(roles) != len(role_ids):
                raise NotFoundError(message="One or more roles not found", code="role_not_found")
        else:
            default_role = await self.repo.get_role_by_name(UserRole.USER.value)
            if default_role is None:
                raise NotFoundError(message="Default role not found", code="role_not_found")
            role_ids = [default_role.id]

        user = await self.repo.create(
            email=data.email,
            password_hash=hash_password(data.password),
            name=data.name,
            role_ids=role_ids,
        )
        logger.info("Registered user %s (%s)", user.id, user.email)
        return to_profile(user)

    def issue_token(self, user: UserModel) -> str:
        roles = active_roles(user)
        return create_session_token(
            user_id=user.id,
            claims={
                "email": user.email,
                "roles": [role.name for role in roles],
                "permissions": effective_permissions(roles),
            },
            secret=self.settings.JWT_SECRET,
            algorithm=self.settings.JWT_ALGORITHM,
            ttl_seconds=self.settings.JWT_EXPIRES_SECONDS,
        )

    async def login(self, data: LoginRequest) -> LoginResponse:
        """
        Exchange email and password for a session token

        Raises:
            AuthenticationError: Unknown email, inactive user or wrong password
        """
        user = await self.repo.get_by_email(data.email)
        if user is None or not user.is_active:
            logger.warning("Login failed for %s: unknown or inactive user", data.email)
            raise AuthenticationError("Invalid credentials", code="invalid_credentials")
        if not verify_password(data.password, user.password_hash):
            logger.warning("Login failed for %s: invalid password", data.email)
            raise AuthenticationError("Invalid credentials", code="invalid_credentials")

        now = utc_now()
        await self.repo.update_last_login(user.id, now)
        user = user.model_copy(update={"last_login_at": now})
        logger.info("User %s logged in", user.id)
        return LoginResponse(
            access_token=self.issue_token(user),
            expires_in=self.settings.JWT_EXPIRES_SECONDS,
            user=to_profile(user),
        )

    async def get_profile(self, user_id: int) -> UserProfile:
        user = await self.repo.get_by_id(user_id)
        if user is None:
            raise NotFoundError(message="User not found", code="user_not_found")
        return to_profile(user)

    async def list_users(self) -> list[UserProfile]:
        return [to_profile(user) for user in await self.repo.get_all()]
