"""Recurring (refresh-ahead) population.

``schedule()`` hands back a getter that only reads the store, while the
producer runs in the background on one or both refresh policies:

- timeout: a self-rescheduling task that sleeps ``success_delay`` after a
  good run and ``error_delay`` (or ``success_delay``) after a failed one
- timing: one immediate run, a cron job re-running on every tick, and a
  retry chain spaced by ``error_delay`` after each failed run

Background failures are logged and never reach a caller.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from cache_populator.populator.policies import TimeoutPolicy, TimingPolicy

if TYPE_CHECKING:
    from cache_populator.service import CacheService

logger = logging.getLogger(__name__)

Producer = Callable[[], Awaitable[Any]]
Getter = Callable[[], Awaitable[Any]]


@dataclass
class RecurringEntry:
    """Book-keeping for one ``schedule()`` call."""

    key: str
    timeout: TimeoutPolicy | None = None
    timing: TimingPolicy | None = None
    job_id: str | None = None
    lock: asyncio.Lock | None = None
    tasks: set[asyncio.Task] = field(default_factory=set)
    run_count: int = 0
    failure_count: int = 0
    last_run: datetime | None = None
    last_error: str | None = None


class RecurringPopulator:
    """Keeps keys fresh by running their producers on a schedule.

    Must be used from inside a running asyncio event loop. Loops live until
    ``cancel()`` or ``shutdown()`` is called or the loop itself stops.

    Args:
        service: Availability-gated store access
        timezone: Timezone used to evaluate cron expressions
        scheduler: Scheduler for cron jobs (defaults to a new AsyncIOScheduler)
    """

    def __init__(
        self,
        service: CacheService,
        timezone: str = "UTC",
        scheduler: AsyncIOScheduler | None = None,
    ):
        self._service = service
        self._timezone = timezone
        self.scheduler = scheduler or AsyncIOScheduler(timezone=timezone)
        self._entries: dict[str, list[RecurringEntry]] = {}
        self._job_ids = itertools.count(1)

    def schedule(
        self,
        key: str,
        producer: Producer,
        timeout: TimeoutPolicy | None = None,
        timing: TimingPolicy | None = None,
        ttl: int | None = None,
    ) -> Getter:
        """Start refreshing ``key`` and return a getter that reads it.

        Cron ticks run with APScheduler's default ``max_instances=1``: a tick
        that comes due while the previous tick for the same entry is still
        running is skipped, not queued. The immediate run and error retries
        are not counted against that limit.

        Raises:
            RuntimeError: If called outside a running event loop
            ValueError: If the timing policy's cron expression is invalid
        """
        asyncio.get_running_loop()

        trigger = None
        if timing:
            trigger = CronTrigger.from_crontab(timing.schedule, timezone=self._timezone)

        entry = RecurringEntry(key=key, timeout=timeout, timing=timing)
        self._entries.setdefault(key, []).append(entry)

        if timeout:
            self._spawn(entry, self._timeout_loop(entry, producer, ttl))
            logger.info(
                "Refreshing %s every %ss",
                key,
                timeout.success_delay,
                extra={"cache_key": key, "policy": "timeout"},
            )

        if timing:
            if timing.exclusive:
                entry.lock = asyncio.Lock()
            self._spawn(entry, self._timing_run(entry, producer, ttl))
            self._register_job(entry, producer, ttl, trigger)

        if not timeout and not timing:
            logger.debug("No refresh policy given for %s; returning a plain getter", key)

        async def getter() -> Any:
            return await self._service.get(key)

        return getter

    def _register_job(
        self, entry: RecurringEntry, producer: Producer, ttl: int | None, trigger: CronTrigger
    ) -> None:
        """Register the cron tick for a timing policy."""
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Refresh scheduler started")

        entry.job_id = f"refresh_{entry.key}_{next(self._job_ids)}"
        self.scheduler.add_job(
            self._cron_tick,
            trigger=trigger,
            id=entry.job_id,
            args=[entry, producer, ttl],
            name=f"refresh {entry.key}",
            replace_existing=True,
        )
        logger.info(
            "Registered cron refresh for %s (%s)",
            entry.key,
            entry.timing.schedule,
            extra={"cache_key": entry.key, "policy": "timing", "job_id": entry.job_id},
        )

    def _spawn(self, entry: RecurringEntry, coro: Awaitable[Any]) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        entry.tasks.add(task)
        task.add_done_callback(entry.tasks.discard)
        return task

    async def _run(
        self, entry: RecurringEntry, producer: Producer, ttl: int | None
    ) -> Exception | None:
        """Produce and store one value. Returns the failure, if any."""
        entry.last_run = datetime.now(UTC)
        try:
            value = await producer()
            await self._service.set(entry.key, value, ttl)
        except Exception as e:
            entry.failure_count += 1
            entry.last_error = str(e)
            return e

        entry.run_count += 1
        entry.last_error = None
        logger.debug("Refreshed %s", entry.key, extra={"cache_key": entry.key})
        return None

    async def _timeout_loop(
        self, entry: RecurringEntry, producer: Producer, ttl: int | None
    ) -> None:
        policy = entry.timeout
        while True:
            error = await self._run(entry, producer, ttl)
            delay = policy.delay_for(error is None)
            if error is not None:
                logger.warning(
                    "Timeout refresh for %s failed, retrying in %ss: %s",
                    entry.key,
                    delay,
                    error,
                    extra={"cache_key": entry.key, "policy": "timeout", "delay": delay},
                )
            await asyncio.sleep(delay)

    async def _timing_run(
        self, entry: RecurringEntry, producer: Producer, ttl: int | None
    ) -> None:
        if entry.lock is not None:
            async with entry.lock:
                error = await self._run(entry, producer, ttl)
        else:
            error = await self._run(entry, producer, ttl)

        if error is not None:
            delay = entry.timing.error_delay
            logger.warning(
                "Timing refresh for %s failed, retrying in %ss: %s",
                entry.key,
                delay,
                error,
                extra={"cache_key": entry.key, "policy": "timing", "delay": delay},
            )
            self._spawn(entry, self._retry_after(delay, entry, producer, ttl))

    async def _retry_after(
        self, delay: float, entry: RecurringEntry, producer: Producer, ttl: int | None
    ) -> None:
        await asyncio.sleep(delay)
        await self._timing_run(entry, producer, ttl)

    async def _cron_tick(
        self, entry: RecurringEntry, producer: Producer, ttl: int | None
    ) -> None:
        """Scheduler entry point; tracked so cancel() can reach in-flight ticks."""
        task = asyncio.current_task()
        if task is not None:
            entry.tasks.add(task)
        try:
            await self._timing_run(entry, producer, ttl)
        except asyncio.CancelledError:
            logger.debug(
                "Cron refresh for %s cancelled",
                entry.key,
                extra={"cache_key": entry.key, "job_id": entry.job_id},
            )
        finally:
            if task is not None:
                entry.tasks.discard(task)

    async def cancel(self, key: str) -> bool:
        """Stop every refresh loop, retry and cron job registered for ``key``."""
        entries = self._entries.pop(key, None)
        if not entries:
            return False

        for entry in entries:
            await self._stop_entry(entry)
        logger.info("Cancelled refresh for %s", key, extra={"cache_key": key})
        return True

    async def shutdown(self) -> None:
        """Cancel all refresh work and stop the scheduler."""
        for key in list(self._entries):
            await self.cancel(key)
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            # AsyncIOScheduler defers the stop to the next loop iteration
            while self.scheduler.running:
                await asyncio.sleep(0)
            logger.info("Refresh scheduler shutdown")

    async def _stop_entry(self, entry: RecurringEntry) -> None:
        if entry.job_id and self.scheduler.get_job(entry.job_id):
            self.scheduler.remove_job(entry.job_id)

        current = asyncio.current_task()
        pending = [t for t in entry.tasks if t is not current]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def jobs(self) -> list[dict]:
        """List all registered refresh entries."""
        jobs = []
        for entries in self._entries.values():
            for entry in entries:
                next_run = None
                if entry.job_id:
                    job = self.scheduler.get_job(entry.job_id)
                    if job and job.next_run_time:
                        next_run = job.next_run_time

                jobs.append(
                    {
                        "key": entry.key,
                        "timeout": entry.timeout.model_dump() if entry.timeout else None,
                        "timing": entry.timing.model_dump() if entry.timing else None,
                        "job_id": entry.job_id,
                        "run_count": entry.run_count,
                        "failure_count": entry.failure_count,
                        "last_run": entry.last_run.isoformat() if entry.last_run else None,
                        "next_run": next_run.isoformat() if next_run else None,
                        "last_error": entry.last_error,
                        "pending_tasks": len(entry.tasks),
                    }
                )
        return jobs
