"""
Credential Domain Model

A validated principal: either an API key or a user session.
"""

from dataclasses import dataclass, field
from typing import Optional, Union

from llmmux.domain.api_key import ModelPermissions


@dataclass(frozen=True)
class ApiKeyCredential:
    """
    Validated API key

    `id` is None for keys from the static API_KEYS list; such keys carry
    allow-all permissions and no rate limits.
    """

    key: str
    id: Optional[int] = None
    name: Optional[str] = None
    permissions: ModelPermissions = field(default_factory=ModelPermissions)
    rate_limit_rpm: Optional[int] = None
    rate_limit_rpd: Optional[int] = None


@dataclass(frozen=True)
class SessionCredential:
    """Validated user session with its effective roles and permissions"""

    user_id: int
    email: str
    roles: tuple[str, ...] = ()
    permissions: frozenset[str] = frozenset()


Credential = Union[ApiKeyCredential, SessionCredential]
