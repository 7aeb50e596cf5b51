"""
Repository Module Initialization

Exports all repository interfaces.
"""

from llmmux.repositories.api_key_repo import ApiKeyRepository
from llmmux.repositories.metrics_repo import MetricsRepository
from llmmux.repositories.user_repo import UserRepository

__all__ = [
    "ApiKeyRepository",
    "MetricsRepository",
    "UserRepository",
]
