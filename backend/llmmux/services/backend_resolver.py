"""
Backend Resolver

Answers which backend serves a model by combining static configuration with
discovery. Static entries always win over discovered ones of the same name.
"""

from typing import Optional

from llmmux.common.errors import ResolutionError
from llmmux.domain.backend import BackendEndpoint, ResolverStats
from llmmux.services.backend_registry import BackendRegistry
from llmmux.services.discovery import DiscoveryEngine


class BackendResolver:
    def __init__(self, registry: BackendRegistry, discovery: DiscoveryEngine):
        self.registry = registry
        self.discovery = discovery

    def resolve(self, model_name: str) -> Optional[BackendEndpoint]:
        """Static lookup first, then discovery. None when no backend serves the model."""
        backend = self.registry.get(model_name)
        if backend is not None:
            return backend
        return self.discovery.get(model_name)

    def require(self, model_name: str) -> BackendEndpoint:
        """
        Resolve or raise

        Raises:
            ResolutionError: No backend serves the model
        """
        backend = self.resolve(model_name)
        if backend is None:
            raise ResolutionError(model_name)
        return backend

    def list_all(self) -> list[BackendEndpoint]:
        merged = self.discovery.all()
        # Static entries overwrite discovered ones regardless of insertion order
        merged.update(self.registry.all())
        return list(merged.values())

    def list_all_model_names(self) -> set[str]:
        return self.registry.model_names() | self.discovery.model_names()

    def stats(self) -> ResolverStats:
        discovery_stats = self.discovery.stats()
        return ResolverStats(
            static_backends=len(self.registry),
            discovered_backends=discovery_stats.models_discovered,
            total_models=len(self.list_all_model_names()),
            discovery_enabled=discovery_stats.servers_configured > 0,
        )
