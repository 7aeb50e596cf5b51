"""
Static Backend Registry

Parses the BACKENDS configuration string into named backend endpoints.
"""

import logging
from typing import Optional

from llmmux.domain.backend import BackendEndpoint, DiscoveryServer

logger = logging.getLogger(__name__)


def _parse_port(value: str) -> Optional[int]:
    value = value.strip()
    if not value.isdigit():
        return None
    port = int(value)
    return port if 0 < port <= 65535 else None


def parse_backend_entry(entry: str) -> Optional[BackendEndpoint]:
    """
    Parse one `name:host:port` entry

    The model name may itself contain ':'; host and port are always the last
    two fields.

    Returns:
        Optional[BackendEndpoint]: None when the entry is malformed
    """
    parts = entry.strip().rsplit(":", 2)
    if len(parts) != 3:
        return None
    model_name, host, port_value = (part.strip() for part in parts)
    port = _parse_port(port_value)
    if not model_name or not host or port is None:
        return None
    return BackendEndpoint(model_name=model_name, host=host, port=port)


def parse_server_entry(entry: str) -> Optional[DiscoveryServer]:
    """Parse one `host:port` entry"""
    parts = entry.strip().rsplit(":", 1)
    if len(parts) != 2:
        return None
    host, port_value = (part.strip() for part in parts)
    port = _parse_port(port_value)
    if not host or port is None:
        return None
    return DiscoveryServer(host=host, port=port)


def parse_discovery_servers(servers_config: str, backends_config: str) -> list[DiscoveryServer]:
    """
    Build the list of servers to poll

    Uses the `host:port` list when given; otherwise extracts the host and port
    of every `name:host:port` backend entry. Servers are deduplicated by host
    and port, keeping first-seen order.
    """
    servers: list[DiscoveryServer] = []

    def add(server: DiscoveryServer, source: str) -> None:
        if server in servers:
            return
        servers.append(server)
        logger.info("Added discovery server from %s: %s", source, server.base_url)

    if servers_config.strip():
        for entry in servers_config.split(","):
            if not entry.strip():
                continue
            server = parse_server_entry(entry)
            if server is None:
                logger.warning("Invalid vLLM server configuration: %s", entry)
                continue
            add(server, "VLLM_SERVERS")
        return servers

    for entry in backends_config.split(","):
        parts = entry.strip().split(":")
        if len(parts) < 2:
            continue
        server = parse_server_entry(":".join(parts[-2:]))
        if server is None:
            logger.warning("Cannot extract discovery server from backend entry: %s", entry)
            continue
        add(server, "BACKENDS")
    return servers


class BackendRegistry:
    """
    Statically configured backends, keyed by model name

    Built once from configuration. A later entry for the same model name
    replaces an earlier one.
    """

    def __init__(self, backends: Optional[list[BackendEndpoint]] = None):
        self._backends: dict[str, BackendEndpoint] = {}
        for backend in backends or []:
            self._backends[backend.model_name] = backend

    @classmethod
    def from_config(cls, backends_config: str) -> "BackendRegistry":
        """
        Parse a `name:host:port,name:host:port` string

        Malformed entries are logged and skipped.
        """
        if not backends_config.strip():
            logger.warning("No BACKENDS configuration found")
            return cls()

        backends: list[BackendEndpoint] = []
        for entry in backends_config.split(","):
            if not entry.strip():
                continue
            backend = parse_backend_entry(entry)
            if backend is None:
                logger.warning("Invalid backend configuration: %s", entry)
                continue
            logger.info("Configured backend: %s -> %s", backend.model_name, backend.base_url)
            backends.append(backend)
        return cls(backends)

    def get(self, model_name: str) -> Optional[BackendEndpoint]:
        return self._backends.get(model_name)

    def all(self) -> dict[str, BackendEndpoint]:
        """Copy of the model name -> endpoint map"""
        return dict(self._backends)

    def model_names(self) -> set[str]:
        return set(self._backends)

    def __len__(self) -> int:
        return len(self._backends)
