"""
SQLAlchemy Repository Implementation Module Initialization
"""

from llmmux.repositories.sqlalchemy.api_key_repo import SQLAlchemyApiKeyRepository
from llmmux.repositories.sqlalchemy.metrics_repo import SQLAlchemyMetricsRepository
from llmmux.repositories.sqlalchemy.user_repo import SQLAlchemyUserRepository

__all__ = [
    "SQLAlchemyApiKeyRepository",
    "SQLAlchemyMetricsRepository",
    "SQLAlchemyUserRepository",
]
