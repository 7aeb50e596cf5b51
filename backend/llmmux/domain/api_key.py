"""
API Key Domain Model

Defines API Key related Data Transfer Objects (DTOs).
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ModelPermissions(BaseModel):
    """
    Model Access Permissions

    With allow_all, every model is allowed unless it is in denied_models.
    Without it, only models in allowed_models are allowed.
    """

    # Allow all models unless denied
    allow_all: bool = Field(True, description="Allow all models unless denied")
    # Models allowed when allow_all is false
    allowed_models: list[str] = Field(default_factory=list, description="Allowed Models")
    # Models denied even when allow_all is true
    denied_models: list[str] = Field(default_factory=list, description="Denied Models")


class ModelPermissionsUpdate(BaseModel):
    """Partial permission update; unset fields keep their current value"""

    allow_all: Optional[bool] = None
    allowed_models: Optional[list[str]] = None
    denied_models: Optional[list[str]] = None

    def apply(self, current: ModelPermissions) -> ModelPermissions:
        """Merge this update onto existing permissions"""
        return current.model_copy(update=self.model_dump(exclude_none=True))


class ApiKeyBase(BaseModel):
    """API Key Base Model"""

    # Key Name
    name: str = Field(..., min_length=1, max_length=100, description="Key Name")
    # Description
    description: Optional[str] = Field(None, max_length=500, description="Description")
    # Owner
    owner: Optional[str] = Field(None, max_length=100, description="Owner")
    # Tags
    tags: list[str] = Field(default_factory=list, description="Tags")
    # Requests per minute limit
    rate_limit_rpm: Optional[int] = Field(None, ge=1, description="Requests per minute")
    # Requests per day limit
    rate_limit_rpd: Optional[int] = Field(None, ge=1, description="Requests per day")


class ApiKeyCreate(ApiKeyBase):
    """Create API Key Request Model"""

    # Expiration Time
    expires_at: Optional[datetime] = Field(None, description="Expiration Time")
    # Permissions (partial; defaults to allow-all)
    permissions: Optional[ModelPermissionsUpdate] = None


class ApiKeyUpdate(BaseModel):
    """Update API Key Request Model"""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    owner: Optional[str] = Field(None, max_length=100)
    tags: Optional[list[str]] = None
    rate_limit_rpm: Optional[int] = Field(None, ge=1)
    rate_limit_rpd: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None
    expires_at: Optional[datetime] = None
    permissions: Optional[ModelPermissionsUpdate] = None

    @field_validator("name", "tags", "is_active")
    @classmethod
    def _not_null(cls, v):
        # Omit the field to keep the stored value; these columns are NOT NULL
        if v is None:
            raise ValueError("must not be null")
        return v


class ApiKeyModel(ApiKeyBase):
    """API Key Complete Model"""

    id: int
    key_value: str
    is_active: bool = True
    created_at: datetime
    updated_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None
    permissions: ModelPermissions = Field(default_factory=ModelPermissions)

    model_config = ConfigDict(from_attributes=True)


class ApiKeyResponse(ApiKeyBase):
    """API Key Response Model (Key value masked)"""

    id: int
    # Masked key value, e.g. "sk-llmmux-0123456789..."
    key_value: str
    is_active: bool
    created_at: datetime
    expires_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None
    permissions: ModelPermissions


class ApiKeyCreateResponse(ApiKeyResponse):
    """Create API Key Response Model (full key value, shown once)"""

    pass
