"""
Scheduled Task Module

Uses APScheduler to manage scheduled tasks, such as model discovery and
request log cleanup.
"""

import logging
from typing import Any, Awaitable, Callable, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)


class GatewayScheduler:
    """
    Scheduled Task Scheduler

    Owned by the application container; jobs may be added before or after start().
    """

    def __init__(self) -> None:
        self._scheduler: Optional[AsyncIOScheduler] = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def _get(self) -> AsyncIOScheduler:
        if self._scheduler is None:
            self._scheduler = AsyncIOScheduler()
        return self._scheduler

    def start(self) -> None:
        """Start the scheduler. Must be called from within the running event loop."""
        scheduler = self._get()
        if scheduler.running:
            logger.warning("Scheduler already started")
            return
        scheduler.start()
        logger.info("Scheduler started with %d jobs", len(scheduler.get_jobs()))

    def add_interval_job(
        self,
        func: Callable[..., Awaitable[Any]],
        job_id: str,
        name: str,
        seconds: float = 0,
        hours: float = 0,
    ) -> None:
        """Add (or replace) an interval job"""
        self._get().add_job(
            func,
            trigger=IntervalTrigger(seconds=seconds, hours=hours),
            id=job_id,
            name=name,
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        logger.debug("Scheduled job %s (%s)", job_id, name)

    def remove_job(self, job_id: str) -> None:
        """Remove a job; unknown ids are ignored"""
        if self._scheduler is None:
            return
        try:
            self._scheduler.remove_job(job_id)
        except JobLookupError:
            pass

    def has_job(self, job_id: str) -> bool:
        return self._scheduler is not None and self._scheduler.get_job(job_id) is not None

    def shutdown(self) -> None:
        """
        Shutdown Scheduled Task Scheduler

        Gracefully stops all scheduled tasks.
        """
        if self._scheduler is None:
            return
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Scheduler shutdown completed")
