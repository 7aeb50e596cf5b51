"""
User Domain Model

Defines users, roles and session-related DTOs.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class UserRole(str, Enum):
    """Built-in role names, ordered by privilege"""

    USER = "USER"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


# Integer rank per role; a higher rank satisfies any lower requirement
ROLE_RANKS: dict[str, int] = {
    UserRole.USER.value: 1,
    UserRole.ADMIN.value: 2,
    UserRole.SUPER_ADMIN.value: 3,
}

# Permissions seeded for the built-in roles
DEFAULT_ROLE_PERMISSIONS: dict[str, list[str]] = {
    UserRole.USER.value: [
        "api_key:use",
        "profile:read",
        "profile:update",
    ],
    UserRole.ADMIN.value: [
        "api_key:use",
        "api_key:create",
        "api_key:read",
        "api_key:update",
        "api_key:delete",
        "metrics:read",
        "users:read",
        "profile:read",
        "profile:update",
    ],
    UserRole.SUPER_ADMIN.value: [
        "api_key:*",
        "users:*",
        "roles:*",
        "metrics:*",
        "system:*",
        "audit:*",
    ],
}

DEFAULT_ROLE_DESCRIPTIONS: dict[str, str] = {
    UserRole.USER.value: "Standard user with API key usage",
    UserRole.ADMIN.value: "Administrator managing API keys and metrics",
    UserRole.SUPER_ADMIN.value: "Full system access",
}


class RoleModel(BaseModel):
    """Role Model"""

    id: int
    name: str
    description: Optional[str] = None
    permissions: list[str] = Field(default_factory=list)
    is_active: bool = True

    model_config = ConfigDict(from_attributes=True)


class RoleAssignment(BaseModel):
    """A role granted to a user, optionally time-bounded"""

    role: RoleModel
    is_active: bool = True
    expires_at: Optional[datetime] = None


class UserModel(BaseModel):
    """User Complete Model"""

    id: int
    email: str
    name: Optional[str] = None
    password_hash: str
    is_active: bool = True
    created_at: datetime
    last_login_at: Optional[datetime] = None
    roles: list[RoleAssignment] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class UserCreate(BaseModel):
    """Register User Request Model"""

    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(..., min_length=8, max_length=128)
    name: Optional[str] = Field(None, max_length=100)
    # Role ids to grant; USER when omitted
    role_ids: Optional[list[int]] = None


class LoginRequest(BaseModel):
    """Login Request Model"""

    email: str
    password: str


class UserProfile(BaseModel):
    """User profile with effective roles and flattened permissions"""

    id: int
    email: str
    name: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None
    roles: list[str] = Field(default_factory=list)
    permissions: list[str] = Field(default_factory=list)


class LoginResponse(BaseModel):
    """Login Response Model"""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    user: UserProfile
