"""
Configuration Management Module

Configures gateway parameters via environment variables or .env file.
Supports SQLite (default) and PostgreSQL databases.
"""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Gateway Configuration Class

    All configuration items can be overridden by environment variables, with names matching fields (uppercase).
    """

    # Application Config
    APP_NAME: str = "LLM Mux"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8080

    # Database Config
    # Supports "sqlite" or "postgresql"
    DATABASE_TYPE: Literal["sqlite", "postgresql"] = "sqlite"
    DATABASE_URL: str = "sqlite+aiosqlite:///./llmmux.db"

    # Backend Config
    # Static backends: "model:host:port,model:host:port"
    BACKENDS: str = ""
    # Discovery servers: "host:port,host:port" (falls back to BACKENDS when empty)
    VLLM_SERVERS: str = ""
    # Discovery poll interval (ms)
    DISCOVERY_INTERVAL_MS: int = 30000
    # Per-server discovery request timeout (ms)
    DISCOVERY_TIMEOUT_MS: int = 5000

    # Proxy Config
    # Outbound request timeout for chat/completion dispatch (ms)
    PROXY_TIMEOUT_MS: int = 120000
    # Per-backend health probe timeout (ms)
    HEALTH_TIMEOUT_MS: int = 5000
    # Models whose name contains this pattern get their tool calls repaired
    REPAIR_MODEL_PATTERN: str = "gpt-oss"

    # API Key Config
    # "database" validates against stored keys, "static" against API_KEYS
    API_KEY_SOURCE: Literal["database", "static"] = "database"
    # Comma-separated static keys (only used when API_KEY_SOURCE is "static")
    API_KEYS: str = ""
    # Generated API Key prefix
    API_KEY_PREFIX: str = "sk-llmmux-"
    # Random bytes in generated keys (hex encoded, so the suffix is twice as long)
    API_KEY_RANDOM_BYTES: int = 24

    # Session Token Config
    JWT_SECRET: str = "change-me-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRES_SECONDS: int = 86400

    # Log Cleanup Config
    LOG_RETENTION_DAYS: int = 90
    LOG_CLEANUP_INTERVAL_HOURS: int = 24

    # CORS Config
    ENABLE_CORS: bool = False
    # "*" or comma-separated list of allowed origins
    CORS_ORIGIN: str = "*"

    # Rate Limit Config
    # Enforce per-key rate_limit_rpm / rate_limit_rpd
    RATE_LIMIT_ENABLED: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def static_api_keys(self) -> set[str]:
        """Parsed API_KEYS entries"""
        return {key.strip() for key in self.API_KEYS.split(",") if key.strip()}

    @property
    def cors_origins(self) -> list[str]:
        origin = self.CORS_ORIGIN.strip()
        if not origin or origin == "*":
            return ["*"]
        return [item.strip() for item in origin.split(",") if item.strip()]


@lru_cache
def get_settings() -> Settings:
    """
    Get configuration singleton

    Uses lru_cache to ensure configuration is loaded only once.

    Returns:
        Settings: Configuration object
    """
    return Settings()
