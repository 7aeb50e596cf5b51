"""
Credential Validator

Turns bearer tokens into validated credentials. API keys are checked against
either the static API_KEYS list or the database, selected by API_KEY_SOURCE;
session tokens are checked by SessionValidator.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import jwt
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from llmmux.common.security import decode_session_token
from llmmux.config import Settings
from llmmux.domain.credential import ApiKeyCredential, SessionCredential
from llmmux.repositories.sqlalchemy import (
    SQLAlchemyApiKeyRepository,
    SQLAlchemyUserRepository,
)
from llmmux.services.api_key_service import ApiKeyService
from llmmux.services.user_service import active_roles, effective_permissions

logger = logging.getLogger(__name__)


class CredentialValidator(ABC):
    """API key validation interface"""

    @abstractmethod
    async def validate_api_key(self, token: str) -> Optional[ApiKeyCredential]:
        """
        Validate an API key

        Returns:
            Optional[ApiKeyCredential]: None when the key is not valid
        """
        pass


class StaticKeyValidator(CredentialValidator):
    """
    Validates against a fixed key set

    An empty set accepts every token (authentication disabled).
    """

    def __init__(self, keys: set[str]):
        self.keys = frozenset(keys)
        if not self.keys:
            logger.warning("No API_KEYS configuration found - authentication disabled")
        else:
            logger.info("Configured %d static API keys", len(self.keys))

    async def validate_api_key(self, token: str) -> Optional[ApiKeyCredential]:
        if self.keys and token not in self.keys:
            return None
        return ApiKeyCredential(key=token)


class DatabaseKeyValidator(CredentialValidator):
    """
    Validates against stored API keys

    A successful validation updates last_used_at; a failed update is logged
    and does not fail validation.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], settings: Settings):
        self.session_factory = session_factory
        self.settings = settings

    async def validate_api_key(self, token: str) -> Optional[ApiKeyCredential]:
        async with self.session_factory() as session:
            service = ApiKeyService(SQLAlchemyApiKeyRepository(session), self.settings)
            model = await service.validate(token)
            if model is None:
                return None

            try:
                await service.record_usage(model.id)
            except SQLAlchemyError as e:
                await session.rollback()
                logger.warning("Failed to record usage of API key %s: %s", model.id, e)

        return ApiKeyCredential(
            key=token,
            id=model.id,
            name=model.name,
            permissions=model.permissions,
            rate_limit_rpm=model.rate_limit_rpm,
            rate_limit_rpd=model.rate_limit_rpd,
        )


def create_credential_validator(
    settings: Settings, session_factory: async_sessionmaker[AsyncSession]
) -> CredentialValidator:
    """Select the API key backing store configured by API_KEY_SOURCE"""
    if settings.API_KEY_SOURCE == "static":
        return StaticKeyValidator(settings.static_api_keys)
    return DatabaseKeyValidator(session_factory, settings)


class SessionValidator:
    """
    Validates signed session tokens

    Roles and permissions come from the user's current assignments, not from
    the token claims. Every failure collapses to None; the cause is only logged.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], settings: Settings):
        self.session_factory = session_factory
        self.settings = settings

    async def validate_session(self, token: str) -> Optional[SessionCredential]:
        try:
            payload = decode_session_token(
                token=token,
                secret=self.settings.JWT_SECRET,
                algorithm=self.settings.JWT_ALGORITHM,
            )
            user_id = int(payload["sub"])
        except jwt.InvalidTokenError as e:
            logger.warning("JWT validation failed: %s", e)
            return None
        except (TypeError, ValueError):
            logger.warning("JWT validation failed: malformed subject")
            return None

        async with self.session_factory() as session:
            user = await SQLAlchemyUserRepository(session).get_by_id(user_id)

        if user is None or not user.is_active:
            logger.warning("JWT validation failed: user %s not found or inactive", user_id)
            return None

        roles = active_roles(user)
        return SessionCredential(
            user_id=user.id,
            email=user.email,
            roles=tuple(role.name for role in roles),
            permissions=frozenset(effective_permissions(roles)),
        )
