"""
API Dependency Injection Module

Provides dependencies required by FastAPI routes.
"""

import logging
from typing import Annotated, Any, AsyncGenerator, Optional

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from llmmux.common.errors import AuthenticationError, AuthorizationError, RateLimitError
from llmmux.common.timer import Timer
from llmmux.container import GatewayContainer
from llmmux.domain.credential import ApiKeyCredential, SessionCredential
from llmmux.repositories.sqlalchemy import (
    SQLAlchemyApiKeyRepository,
    SQLAlchemyUserRepository,
)
from llmmux.services import ApiKeyService, UserService
from llmmux.services.metrics_service import build_record
from llmmux.services.permission_gate import (
    authorize_route,
    ensure_model_access,
    extract_model,
    parse_bearer,
)

logger = logging.getLogger(__name__)


def get_container(request: Request) -> GatewayContainer:
    """Gateway container created by create_app()"""
    return request.app.state.container


ContainerDep = Annotated[GatewayContainer, Depends(get_container)]


async def get_db(container: ContainerDep) -> AsyncGenerator[AsyncSession, None]:
    """
    Get database session dependency

    Yields:
        AsyncSession: Async database session
    """
    async for session in container.database.get_session():
        yield session


# Database session dependency type
DbSession = Annotated[AsyncSession, Depends(get_db)]


# ============ Service Dependencies ============

def get_api_key_service(db: DbSession, container: ContainerDep) -> ApiKeyService:
    """Get API Key Service"""
    return ApiKeyService(SQLAlchemyApiKeyRepository(db), container.settings)


def get_user_service(db: DbSession, container: ContainerDep) -> UserService:
    """Get User Service"""
    return UserService(SQLAlchemyUserRepository(db), container.settings)


ApiKeyServiceDep = Annotated[ApiKeyService, Depends(get_api_key_service)]
UserServiceDep = Annotated[UserService, Depends(get_user_service)]


# ============ Authentication Dependencies ============

async def _read_json_body(request: Request) -> Optional[Any]:
    if request.method not in ("POST", "PUT", "PATCH"):
        return None
    try:
        return await request.json()
    except ValueError:
        return None


async def get_api_key_credential(
    request: Request,
    container: ContainerDep,
    authorization: Optional[str] = Header(None),
) -> ApiKeyCredential:
    """
    Authenticate an API key and check model access

    Order: header format, key validity, model permission, per-key rate limit.

    Raises:
        AuthenticationError: Missing/malformed header or invalid key
        AuthorizationError: Key may not use the requested model
        RateLimitError: Key exceeded its RPM/RPD budget
    """
    timer = Timer().start()
    token = parse_bearer(authorization)
    credential = await container.credential_validator.validate_api_key(token)
    if credential is None:
        logger.warning("Invalid API key attempted: %s...", token[:8])
        raise AuthenticationError("Invalid API key")

    model = extract_model(await _read_json_body(request), request.url.path)
    try:
        if model:
            ensure_model_access(credential, model)

        if (
            container.settings.RATE_LIMIT_ENABLED
            and credential.id is not None
            and (credential.rate_limit_rpm or credential.rate_limit_rpd)
        ):
            allowed, limit, retry_after = container.rate_limiter.acquire(
                credential.id, credential.rate_limit_rpm, credential.rate_limit_rpd
            )
            if not allowed:
                raise RateLimitError(limit=limit or "", retry_after=retry_after)
    except (AuthorizationError, RateLimitError) as e:
        # Rejected requests count as failures against the key
        metric = build_record(
            credential.id,
            model,
            success=False,
            response_time_ms=timer.elapsed_ms,
            request_path=request.url.path,
            status_code=e.status_code,
            error_message=e.message,
        )
        if metric:
            await container.metrics.record_request(metric)
        raise

    request.state.credential = credential
    return credential


ApiKeyCredentialDep = Annotated[ApiKeyCredential, Depends(get_api_key_credential)]


async def get_session_credential(
    container: ContainerDep,
    authorization: Optional[str] = Header(None),
) -> SessionCredential:
    """
    Authenticate a session token

    Raises:
        AuthenticationError: Missing/malformed header or invalid token
    """
    token = parse_bearer(authorization)
    credential = await container.session_validator.validate_session(token)
    if credential is None:
        raise AuthenticationError("Invalid token", code="invalid_token")
    return credential


SessionCredentialDep = Annotated[SessionCredential, Depends(get_session_credential)]


def require_route(route_id: str):
    """
    Dependency factory checking a session against the route table

    Example:
        @router.get("/users", dependencies=[Depends(require_route("auth.users"))])
    """

    async def dependency(credential: SessionCredentialDep) -> SessionCredential:
        authorize_route(route_id, credential)
        return credential

    return dependency
