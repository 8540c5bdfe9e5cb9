"""Deferred trade resolution on APScheduler.

Each open trade gets one in-memory ``date`` job that fires at the trade's
persisted ``resolve_at`` and resolves it in a fresh session. The job is not
tied to the HTTP request that opened the trade and users cannot cancel it.

Jobs are lost on restart. ``sweep_overdue`` (run at startup and then as an
interval job) re-drives every PENDING trade whose ``resolve_at`` has passed,
which also retries resolutions that crashed. Resolution itself is
idempotent, so a sweep racing a timer is harmless; the in-flight set only
avoids the wasted work.
"""

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime

from apscheduler.jobstores.base import ConflictingIdError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)

Resolver = Callable[[AsyncSession, int], Awaitable[object]]
OverdueFinder = Callable[[AsyncSession], Awaitable[list[int]]]

TRADE_JOB_PREFIX = "resolve-trade-"
SWEEP_JOB_ID = "sweep-overdue-trades"


def _build_scheduler() -> AsyncIOScheduler:
    return AsyncIOScheduler(
        job_defaults={
            "coalesce": True,
            "max_instances": 1,
            # A late trade must still resolve, however late the loop got to it
            "misfire_grace_time": None,
        },
        timezone="UTC",
    )


class TradeResolutionScheduler:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        resolve: Resolver,
        find_overdue: OverdueFinder,
        scheduler: AsyncIOScheduler | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._resolve = resolve
        self._find_overdue = find_overdue
        self._scheduler = scheduler or _build_scheduler()
        self._in_flight: set[int] = set()

    @property
    def scheduled_ids(self) -> set[int]:
        if not self._scheduler.running:
            return set()
        return {
            int(job.id.removeprefix(TRADE_JOB_PREFIX))
            for job in self._scheduler.get_jobs()
            if job.id.startswith(TRADE_JOB_PREFIX)
        }

    def _ensure_started(self) -> None:
        # Jobs added before start() skip the duplicate-id check
        if not self._scheduler.running:
            self._scheduler.start()

    def schedule(self, trade_id: int, resolve_at: datetime) -> None:
        """Arm exactly one job for ``trade_id``; re-scheduling is a no-op."""
        self._ensure_started()
        try:
            self._scheduler.add_job(
                self.run_now,
                trigger=DateTrigger(run_date=resolve_at),
                args=[trade_id],
                id=f"{TRADE_JOB_PREFIX}{trade_id}",
                name=f"Resolve trade {trade_id}",
            )
        except ConflictingIdError:
            logger.debug("Trade %s already has a resolution job", trade_id)

    async def run_now(self, trade_id: int) -> None:
        """Resolve one trade in its own session; failures are logged, not raised."""
        if trade_id in self._in_flight:
            logger.debug("Trade %s resolution already in flight", trade_id)
            return
        self._in_flight.add(trade_id)
        try:
            async with self._session_factory() as db:
                await self._resolve(db, trade_id)
        except Exception:
            logger.exception(
                "Resolution of trade %s failed; it stays PENDING until the next sweep",
                trade_id,
            )
        finally:
            self._in_flight.discard(trade_id)

    async def sweep_overdue(self) -> int:
        """Resolve every overdue PENDING trade. Returns how many were attempted."""
        async with self._session_factory() as db:
            trade_ids = await self._find_overdue(db)
        for trade_id in trade_ids:
            await self.run_now(trade_id)
        if trade_ids:
            logger.info("Overdue sweep attempted %d trade(s)", len(trade_ids))
        return len(trade_ids)

    async def run_sweep(self) -> None:
        """Interval job body: a failed sweep is logged and retried next tick."""
        try:
            await self.sweep_overdue()
        except Exception:
            logger.exception("Overdue trade sweep failed")

    def start_sweeper(self, interval_seconds: float) -> None:
        self._ensure_started()
        self._scheduler.add_job(
            self.run_sweep,
            trigger=IntervalTrigger(seconds=interval_seconds),
            id=SWEEP_JOB_ID,
            name="Sweep overdue trades",
            replace_existing=True,
        )
        logger.info("Overdue trade sweep every %ss", interval_seconds)

    def shutdown(self) -> None:
        """Drop pending jobs and stop; the sweep recovers them on next start."""
        if not self._scheduler.running:
            return
        pending = len(self.scheduled_ids)
        self._scheduler.remove_all_jobs()
        self._scheduler.shutdown(wait=False)
        logger.info("Trade scheduler stopped (%d pending job(s) dropped)", pending)
