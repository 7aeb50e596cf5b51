"""
Backend Domain Model

Defines the backend endpoint value object shared by static configuration,
discovery and proxy dispatch.
"""

from pydantic import BaseModel, ConfigDict, Field, computed_field


class BackendEndpoint(BaseModel):
    """
    Backend Endpoint

    Immutable; replaced wholesale when configuration is re-parsed or a
    discovery sweep reports the model again.
    """

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    # Model name served by this backend
    model_name: str = Field(..., min_length=1)
    # Backend host
    host: str = Field(..., min_length=1)
    # Backend port
    port: int = Field(..., ge=1, le=65535)

    @computed_field  # type: ignore[misc]
    @property
    def base_url(self) -> str:
        """OpenAI-compatible API root of the backend"""
        return f"http://{self.host}:{self.port}/v1"


class DiscoveryServer(BaseModel):
    """A server root polled by discovery"""

    model_config = ConfigDict(frozen=True)

    host: str
    port: int

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}/v1"

    def endpoint_for(self, model_name: str) -> BackendEndpoint:
        """Build the endpoint for a model reported by this server"""
        return BackendEndpoint(model_name=model_name, host=self.host, port=self.port)


class DiscoveryStats(BaseModel):
    """Discovery engine statistics"""

    servers_configured: int
    models_discovered: int
    last_discovery: str | None = None


class ResolverStats(BaseModel):
    """Backend resolver statistics"""

    static_backends: int
    discovered_backends: int
    total_models: int
    discovery_enabled: bool
