"""
Credential validator tests (static keys, stored keys, sessions)
"""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import jwt
import pytest
from sqlalchemy.exc import OperationalError

from llmmux.common.security import create_session_token
from llmmux.common.time import utc_now
from llmmux.domain.api_key import ApiKeyCreate, ApiKeyUpdate, ModelPermissionsUpdate
from llmmux.domain.user import UserCreate
from llmmux.repositories.sqlalchemy import (
    SQLAlchemyApiKeyRepository,
    SQLAlchemyUserRepository,
)
from llmmux.services.api_key_service import ApiKeyService
from llmmux.services.credential_validator import (
    DatabaseKeyValidator,
    SessionValidator,
    StaticKeyValidator,
    create_credential_validator,
)
from llmmux.services.user_service import UserService


class TestStaticKeyValidator:
    @pytest.mark.asyncio
    async def test_known_key(self):
        validator = StaticKeyValidator({"sk-a", "sk-b"})

        credential = await validator.validate_api_key("sk-a")

        assert credential is not None
        assert credential.key == "sk-a"
        assert credential.id is None
        assert credential.permissions.allow_all is True

    @pytest.mark.asyncio
    async def test_unknown_key(self):
        validator = StaticKeyValidator({"sk-a"})
        assert await validator.validate_api_key("sk-c") is None

    @pytest.mark.asyncio
    async def test_empty_set_accepts_everything(self):
        validator = StaticKeyValidator(set())
        credential = await validator.validate_api_key("anything")
        assert credential is not None
        assert credential.key == "anything"


@pytest.mark.asyncio
async def test_factory_selects_source(settings_factory, session_factory):
    static = create_credential_validator(
        settings_factory(API_KEY_SOURCE="static", API_KEYS="sk-a, sk-b"), session_factory
    )
    database = create_credential_validator(
        settings_factory(API_KEY_SOURCE="database"), session_factory
    )

    assert isinstance(static, StaticKeyValidator)
    assert static.keys == frozenset({"sk-a", "sk-b"})
    assert isinstance(database, DatabaseKeyValidator)


class TestDatabaseKeyValidator:
    @pytest.mark.asyncio
    async def test_valid_key_carries_permissions_and_limits(self, session_factory, settings):
        async with session_factory() as session:
            created = await ApiKeyService(SQLAlchemyApiKeyRepository(session), settings).create(
                ApiKeyCreate(
                    name="k",
                    rate_limit_rpm=5,
                    permissions=ModelPermissionsUpdate(allow_all=False, allowed_models=["llama"]),
                )
            )
        validator = DatabaseKeyValidator(session_factory, settings)

        credential = await validator.validate_api_key(created.key_value)

        assert credential is not None
        assert credential.id == created.id
        assert credential.name == "k"
        assert credential.rate_limit_rpm == 5
        assert credential.permissions.allowed_models == ["llama"]

        async with session_factory() as session:
            stored = await SQLAlchemyApiKeyRepository(session).get_by_id(created.id)
        assert stored.last_used_at is not None

    @pytest.mark.asyncio
    async def test_unknown_inactive_and_expired(self, session_factory, settings):
        async with session_factory() as session:
            service = ApiKeyService(SQLAlchemyApiKeyRepository(session), settings)
            inactive = await service.create(ApiKeyCreate(name="inactive"))
            await service.update(inactive.id, ApiKeyUpdate(is_active=False))
            expired = await service.create(
                ApiKeyCreate(name="expired", expires_at=utc_now() - timedelta(seconds=1))
            )
        validator = DatabaseKeyValidator(session_factory, settings)

        assert await validator.validate_api_key("sk-nope") is None
        assert await validator.validate_api_key(inactive.key_value) is None
        assert await validator.validate_api_key(expired.key_value) is None

    @pytest.mark.asyncio
    async def test_usage_update_failure_does_not_fail_validation(self, session_factory, settings):
        async with session_factory() as session:
            created = await ApiKeyService(SQLAlchemyApiKeyRepository(session), settings).create(
                ApiKeyCreate(name="k")
            )
        validator = DatabaseKeyValidator(session_factory, settings)

        with patch.object(
            ApiKeyService,
            "record_usage",
            AsyncMock(side_effect=OperationalError("UPDATE", {}, Exception("locked"))),
        ):
            credential = await validator.validate_api_key(created.key_value)

        assert credential is not None
        assert credential.id == created.id


class TestSessionValidator:
    async def register(self, session_factory, settings, email="u@example.com"):
        async with session_factory() as session:
            service = UserService(SQLAlchemyUserRepository(session), settings)
            await service.seed_default_roles()
            await service.register(UserCreate(email=email, password="password123"))
            user = await SQLAlchemyUserRepository(session).get_by_email(email)
            return service.issue_token(user), user

    @pytest.mark.asyncio
    async def test_valid_session(self, session_factory, settings):
        token, user = await self.register(session_factory, settings)
        validator = SessionValidator(session_factory, settings)

        credential = await validator.validate_session(token)

        assert credential is not None
        assert credential.user_id == user.id
        assert credential.email == "u@example.com"
        assert credential.roles == ("USER",)
        assert "profile:read" in credential.permissions

    @pytest.mark.asyncio
    async def test_garbage_token(self, session_factory, settings):
        validator = SessionValidator(session_factory, settings)
        assert await validator.validate_session("not-a-jwt") is None

    @pytest.mark.asyncio
    async def test_expired_token(self, session_factory, settings):
        _, user = await self.register(session_factory, settings)
        token = create_session_token(
            user_id=user.id,
            claims={},
            secret=settings.JWT_SECRET,
            algorithm=settings.JWT_ALGORITHM,
            ttl_seconds=10,
            now=int(utc_now().timestamp()) - 3600,
        )

        assert await SessionValidator(session_factory, settings).validate_session(token) is None

    @pytest.mark.asyncio
    async def test_token_for_missing_user(self, session_factory, settings):
        token = create_session_token(
            user_id=12345,
            claims={},
            secret=settings.JWT_SECRET,
            algorithm=settings.JWT_ALGORITHM,
            ttl_seconds=60,
        )

        assert await SessionValidator(session_factory, settings).validate_session(token) is None

    @pytest.mark.asyncio
    async def test_non_numeric_subject(self, session_factory, settings):
        token = jwt.encode(
            {"sub": "abc", "exp": int(utc_now().timestamp()) + 60},
            settings.JWT_SECRET,
            algorithm=settings.JWT_ALGORITHM,
        )

        assert await SessionValidator(session_factory, settings).validate_session(token) is None
