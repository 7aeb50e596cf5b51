"""
Metrics Domain Model

Defines usage metric DTOs.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RequestRecord(BaseModel):
    """One completed proxied request, as handed to the metrics recorder"""

    model_config = ConfigDict(protected_namespaces=())

    api_key_id: int
    model_name: str
    success: bool
    tokens: int = 0
    response_time_ms: int = 0
    request_path: Optional[str] = None
    status_code: Optional[int] = None
    error_message: Optional[str] = None


class ModelMetrics(BaseModel):
    """Usage counters for one (API key, model) pair"""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    total_tokens: int = 0
    average_response_time_ms: float = 0.0
    last_request_at: Optional[datetime] = None


class ApiKeyUsageMetrics(BaseModel):
    """Aggregated usage for one API key"""

    model_config = ConfigDict(protected_namespaces=())

    api_key_id: int
    # Masked key value
    api_key: str
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    total_tokens: int = 0
    average_response_time_ms: float = 0.0
    last_request_at: Optional[datetime] = None
    model_metrics: dict[str, ModelMetrics] = Field(default_factory=dict)


class SummaryStats(BaseModel):
    """Gateway-wide usage totals"""

    total_api_keys: int = 0
    total_requests: int = 0
    total_successful_requests: int = 0
    total_failed_requests: int = 0
    total_tokens: int = 0
    unique_models: int = 0


class CleanupResult(BaseModel):
    """Result of a request log retention cleanup"""

    deleted: int
    retention_days: int
