"""
Permission Gate

Allow/deny decisions for inbound requests: bearer header parsing, model access
checks for API keys, and role/permission checks for user sessions on
administrative routes.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from llmmux.common.errors import AuthenticationError, AuthorizationError
from llmmux.domain.api_key import ModelPermissions
from llmmux.domain.credential import ApiKeyCredential, SessionCredential
from llmmux.domain.user import ROLE_RANKS, UserRole

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "

# Only a path ending in a model name is model-scoped; /v1/models/discovery/... is not
_MODEL_PATH_RE = re.compile(r"^/v1/models/([^/?]+)/?$")
_NON_MODEL_SEGMENTS = {"discovery"}


def parse_bearer(authorization: Optional[str]) -> str:
    """
    Extract the token from an Authorization header

    Everything after "Bearer " is returned verbatim; whitespace is not trimmed.

    Raises:
        AuthenticationError: Header missing or not using the Bearer scheme
    """
    if not authorization:
        logger.warning("Missing Authorization header")
        raise AuthenticationError("Missing Authorization header", code="missing_authorization")
    if not authorization.startswith(BEARER_PREFIX):
        logger.warning("Invalid Authorization header format")
        raise AuthenticationError(
            "Invalid Authorization header format", code="invalid_authorization_format"
        )
    return authorization[len(BEARER_PREFIX):]


def extract_model(body: Optional[Any], path: str) -> Optional[str]:
    """
    Target model of a request

    Prefers the body's `model` field, then a `/v1/models/{name}` path.
    None means the request is not model-scoped.
    """
    if isinstance(body, dict):
        model = body.get("model")
        if isinstance(model, str) and model:
            return model
    match = _MODEL_PATH_RE.match(path)
    if match and match.group(1) not in _NON_MODEL_SEGMENTS:
        return match.group(1)
    return None


def has_model_access(permissions: ModelPermissions, model_name: str) -> bool:
    """
    Evaluate model permissions

    allow_all: allowed unless denied (allowed_models ignored).
    Otherwise: allowed only if listed in allowed_models (denied_models ignored).
    """
    if permissions.allow_all:
        return model_name not in permissions.denied_models
    return model_name in permissions.allowed_models


def ensure_model_access(credential: ApiKeyCredential, model_name: str) -> None:
    """
    Raises:
        AuthorizationError: Credential may not use the model
    """
    if not has_model_access(credential.permissions, model_name):
        logger.warning(
            "API key %s... denied access to model: %s", credential.key[:8], model_name
        )
        raise AuthorizationError(
            f"Access denied to model: {model_name}",
            code="model_access_denied",
            details={"model": model_name},
        )


def role_rank(role: str) -> int:
    """Rank of a role name; unknown roles rank 0"""
    return ROLE_RANKS.get(str(getattr(role, "value", role)), 0)


def has_required_role(user_roles: Iterable[str], required_roles: Iterable[str]) -> bool:
    """
    Role hierarchy check

    True when any of the user's roles ranks at least as high as the lowest
    required role. No required roles means no restriction.
    """
    required = [role_rank(r) for r in required_roles]
    if not required:
        return True
    user_rank = max((role_rank(r) for r in user_roles), default=0)
    return user_rank > 0 and user_rank >= min(required)


def has_permission(permissions: Iterable[str], required: str) -> bool:
    """
    Permission check with wildcards

    Matches the exact "resource:action", then "resource:*", then "*".
    """
    granted = set(permissions)
    if required in granted:
        return True
    resource = required.split(":", 1)[0]
    if f"{resource}:*" in granted:
        return True
    return "*" in granted


@dataclass(frozen=True)
class RouteRequirement:
    """Minimum role (and optionally a permission) a session needs for a route"""

    roles: tuple[UserRole, ...] = ()
    permission: Optional[str] = None


_ADMIN = (UserRole.ADMIN, UserRole.SUPER_ADMIN)

ROUTE_REQUIREMENTS: dict[str, RouteRequirement] = {
    "admin.keys.list": RouteRequirement(_ADMIN, "api_key:read"),
    "admin.keys.get": RouteRequirement(_ADMIN, "api_key:read"),
    "admin.keys.create": RouteRequirement(_ADMIN, "api_key:create"),
    "admin.keys.update": RouteRequirement(_ADMIN, "api_key:update"),
    "admin.keys.delete": RouteRequirement(_ADMIN, "api_key:delete"),
    "admin.keys.permissions": RouteRequirement(_ADMIN, "api_key:update"),
    "admin.cleanup_logs": RouteRequirement(_ADMIN),
    "metrics.summary": RouteRequirement(_ADMIN, "metrics:read"),
    "metrics.api_key": RouteRequirement(_ADMIN, "metrics:read"),
    "auth.register": RouteRequirement(_ADMIN),
    "auth.users": RouteRequirement(_ADMIN, "users:read"),
    "auth.profile": RouteRequirement(),
}


def authorize_route(route_id: str, credential: SessionCredential) -> None:
    """
    Check a session against the route table

    Raises:
        AuthorizationError: Role or permission requirement not met
        KeyError: Unknown route id
    """
    requirement = ROUTE_REQUIREMENTS[route_id]
    if not has_required_role(credential.roles, [r.value for r in requirement.roles]):
        logger.warning(
            "User %s with roles %s attempted to access %s requiring roles: %s",
            credential.email,
            ",".join(credential.roles) or "-",
            route_id,
            ",".join(r.value for r in requirement.roles),
        )
        raise AuthorizationError("Insufficient permissions")
    if requirement.permission and not has_permission(
        credential.permissions, requirement.permission
    ):
        logger.warning(
            "User %s lacks permission %s for %s",
            credential.email,
            requirement.permission,
            route_id,
        )
        raise AuthorizationError("Insufficient permissions")
