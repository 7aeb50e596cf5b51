"""
Service Layer Module Initialization
"""

from llmmux.services.api_key_service import ApiKeyService
from llmmux.services.backend_registry import BackendRegistry
from llmmux.services.backend_resolver import BackendResolver
from llmmux.services.credential_validator import (
    CredentialValidator,
    DatabaseKeyValidator,
    SessionValidator,
    StaticKeyValidator,
)
from llmmux.services.discovery import DiscoveryEngine
from llmmux.services.health_service import HealthService
from llmmux.services.metrics_service import MetricsRecorder
from llmmux.services.proxy_dispatcher import ProxyDispatcher
from llmmux.services.response_normalizer import ResponseNormalizer
from llmmux.services.user_service import UserService

__all__ = [
    "ApiKeyService",
    "BackendRegistry",
    "BackendResolver",
    "CredentialValidator",
    "DatabaseKeyValidator",
    "DiscoveryEngine",
    "HealthService",
    "MetricsRecorder",
    "ProxyDispatcher",
    "ResponseNormalizer",
    "SessionValidator",
    "StaticKeyValidator",
    "UserService",
]
