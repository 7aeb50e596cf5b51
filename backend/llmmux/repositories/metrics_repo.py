"""
Metrics Repository Interface

Defines the data access interface for request logs and usage counters.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from llmmux.domain.metrics import ModelMetrics, RequestRecord, SummaryStats


class MetricsRepository(ABC):
    """Metrics Repository Interface"""

    @abstractmethod
    async def add_request_log(self, record: RequestRecord, timestamp: datetime) -> None:
        """Append one request log row"""
        pass

    @abstractmethod
    async def increment_metric(self, record: RequestRecord, timestamp: datetime) -> None:
        """
        Upsert the (api_key_id, model_name) counter row

        Counters are incremented in place; a missing row is created with the
        values of this single request.
        """
        pass

    @abstractmethod
    async def get_model_metrics(self, api_key_id: int) -> dict[str, ModelMetrics]:
        """Per-model counters of one API key"""
        pass

    @abstractmethod
    async def get_all_model_metrics(self) -> dict[int, dict[str, ModelMetrics]]:
        """Per-model counters of every API key that has any"""
        pass

    @abstractmethod
    async def get_summary(self) -> SummaryStats:
        """Gateway-wide totals"""
        pass

    @abstractmethod
    async def delete_logs_before(self, cutoff: datetime) -> int:
        """
        Delete request logs older than cutoff

        Returns:
            int: Number of deleted rows
        """
        pass
