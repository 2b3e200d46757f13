"""Interval timers on APScheduler's asyncio scheduler.

``SharedScheduler`` lazily starts one ``AsyncIOScheduler`` on the running
event loop so a session's price, news and limit-order timers share it.
``PeriodicTask`` owns one interval job on that scheduler. ``start`` adds
the job with ``replace_existing=True``, so calling it twice re-arms the
timer instead of scheduling a second job.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable

from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)


class SharedScheduler:
    """One ``AsyncIOScheduler``, created on first use inside a running loop."""

    def __init__(self) -> None:
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def get(self) -> AsyncIOScheduler:
        if self._scheduler is None:
            self._scheduler = AsyncIOScheduler(event_loop=asyncio.get_running_loop())
            self._scheduler.start()
            logger.debug("AsyncIOScheduler started.")
        return self._scheduler

    def shutdown(self) -> None:
        if self._scheduler is None:
            return
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.debug("AsyncIOScheduler shut down.")


class PeriodicTask:
    """Runs *callback* every *interval* seconds until stopped.

    Exceptions raised by the callback are logged and the job stays scheduled.
    Without a *scheduler* the task starts a private one and shuts it down
    again on ``stop``.
    """

    def __init__(
        self,
        callback: Callable[[], Any],
        name: str = "periodic",
        scheduler: SharedScheduler | None = None,
    ) -> None:
        self._callback = callback
        self._name = name
        self._owns_scheduler = scheduler is None
        self._scheduler = scheduler or SharedScheduler()
        self._job: Job | None = None
        self.interval: float | None = None
        self.fire_count = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def running(self) -> bool:
        return self._job is not None

    @property
    def job(self) -> Job | None:
        return self._job

    def start(self, interval: float) -> None:
        """(Re)arm the timer. Must be called from inside a running event loop."""
        if interval <= 0:
            raise ValueError(f"Interval must be positive, got {interval}.")
        self.interval = interval
        self._job = self._scheduler.get().add_job(
            self._on_schedule,
            IntervalTrigger(seconds=interval),
            id=self._name,
            name=self._name,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.debug("Timer '%s' armed (every %.3fs).", self._name, interval)

    def stop(self) -> None:
        if self._job is not None:
            try:
                self._job.remove()
            except JobLookupError:
                logger.debug("Timer '%s' job already gone.", self._name)
            self._job = None
            logger.debug("Timer '%s' stopped.", self._name)
        if self._owns_scheduler:
            self._scheduler.shutdown()

    async def _on_schedule(self) -> None:
        # A run already queued on the loop when stop() was called is dropped.
        if self._job is not None:
            await self.fire()

    async def fire(self) -> None:
        """Invoke the callback once, logging instead of raising on failure."""
        self.fire_count += 1
        try:
            result = self._callback()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Timer '%s' callback failed.", self._name)
