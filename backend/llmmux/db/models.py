"""
SQLAlchemy ORM Model Definitions

Defines all database table structures for the gateway, including:
- api_keys: API Keys Table (with model permissions)
- users: Users Table
- roles: Roles Table
- user_roles: User-Role Assignments Table
- api_key_metrics: Per (API key, model) Usage Counters Table
- request_logs: Request Logs Table
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from llmmux.common.time import to_utc_naive, utc_now


def _utcnow() -> datetime:
    return to_utc_naive(utc_now())


class Base(DeclarativeBase):
    """SQLAlchemy ORM Base Class"""
    pass


class ApiKey(Base):
    """
    API Keys Table

    Stores client access keys together with their model permissions and rate limits.
    """
    __tablename__ = "api_keys"

    # Primary Key ID
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # Key Value, unique
    key_value: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    # Key Name
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    # Description
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Owner
    owner: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    # Tags (JSON list)
    tags: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    # Requests per minute / per day limits
    rate_limit_rpm: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    rate_limit_rpd: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    # Model permissions
    allow_all: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    allowed_models: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    denied_models: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    # Is Active
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    # Creation Time
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)
    # Update Time
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow, nullable=False
    )
    # Expiration Time
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    # Last Used Time
    last_used_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    metrics: Mapped[list["ApiKeyMetric"]] = relationship(
        "ApiKeyMetric",
        back_populates="api_key",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class User(Base):
    """Users Table"""
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    # bcrypt hash
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow, nullable=False
    )
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    role_assignments: Mapped[list["UserRoleAssignment"]] = relationship(
        "UserRoleAssignment",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class Role(Base):
    """Roles Table"""
    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # USER / ADMIN / SUPER_ADMIN
    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Permission strings, "resource:action" / "resource:*" / "*"
    permissions: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)


class UserRoleAssignment(Base):
    """User-Role Assignments Table"""
    __tablename__ = "user_roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    role_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    assigned_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    user: Mapped["User"] = relationship("User", back_populates="role_assignments")
    role: Mapped["Role"] = relationship("Role", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("user_id", "role_id", name="uq_user_role"),
    )


class ApiKeyMetric(Base):
    """
    API Key Metrics Table

    One row of running counters per (API key, model).
    """
    __tablename__ = "api_key_metrics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    api_key_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("api_keys.id", ondelete="CASCADE"), nullable=False
    )
    model_name: Mapped[str] = mapped_column(String(200), nullable=False)
    total_requests: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    successful_requests: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    failed_requests: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_tokens: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    total_response_time_ms: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    last_request_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    api_key: Mapped["ApiKey"] = relationship("ApiKey", back_populates="metrics")

    __table_args__ = (
        UniqueConstraint("api_key_id", "model_name", name="uq_api_key_model"),
    )


class RequestLog(Base):
    """
    Request Logs Table

    One row per proxied request; pruned by the retention cleanup job.
    """
    __tablename__ = "request_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    api_key_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("api_keys.id", ondelete="CASCADE"), nullable=False
    )
    model_name: Mapped[str] = mapped_column(String(200), nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    tokens: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    response_time_ms: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    request_path: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    status_code: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    request_timestamp: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, nullable=False
    )

    __table_args__ = (
        Index("idx_request_logs_timestamp", "request_timestamp"),
        Index("idx_request_logs_api_key", "api_key_id"),
    )
