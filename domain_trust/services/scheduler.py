"""Recurring background task loop shared by the monitors."""

import asyncio
import logging
from datetime import datetime, timezone

from domain_trust.schemas.monitoring import CycleReport, MonitorStatus

logger = logging.getLogger(__name__)


class PeriodicMonitor:
    """
    Run ``_run_cycle`` immediately on start and then every interval.

    Only one cycle runs at a time: a cycle requested while another is in
    progress is skipped and reported as such. ``stop()`` wakes the loop
    and waits for an in-flight cycle to finish instead of cancelling it.
    """

    name = "monitor"

    def __init__(self, interval_minutes: float):
        self.interval_minutes = interval_minutes
        self.last_report: CycleReport | None = None
        self._task: asyncio.Task | None = None
        self._stop: asyncio.Event | None = None
        self._busy = False

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def cycle_in_progress(self) -> bool:
        return self._busy

    def start(self) -> bool:
        """
        Start the loop in the running event loop.

        Returns:
            False if the monitor was already running
        """
        if self.is_running:
            logger.info(f"{self.name} is already running")
            return False

        self._stop = asyncio.Event()
        self._task = asyncio.create_task(self._loop(self._stop), name=f"{self.name}-loop")
        logger.info(f"Started {self.name} with {self.interval_minutes} minute intervals")
        return True

    async def stop(self) -> bool:
        """
        Stop the loop, letting a running cycle complete.

        Returns:
            False if the monitor was not running
        """
        if self._task is None:
            return False

        self._stop.set()
        task, self._task = self._task, None
        await asyncio.gather(task, return_exceptions=True)
        logger.info(f"{self.name} stopped")
        return True

    async def _loop(self, stop: asyncio.Event) -> None:
        while not stop.is_set():
            try:
                await self.run_cycle()
            except Exception:
                logger.exception(f"Unhandled error in {self.name} cycle")

            try:
                await asyncio.wait_for(
                    stop.wait(), timeout=self.interval_minutes * 60
                )
            except asyncio.TimeoutError:
                pass

    async def run_cycle(self) -> CycleReport:
        """Run one cycle now unless one is already in progress."""
        started_at = datetime.now(timezone.utc)

        if self._busy:
            logger.warning(f"{self.name} cycle already in progress, skipping")
            return CycleReport(started_at=started_at, finished_at=started_at, skipped=True)

        self._busy = True
        try:
            report = await self._run_cycle(CycleReport(started_at=started_at))
        finally:
            self._busy = False

        report.finished_at = datetime.now(timezone.utc)
        self.last_report = report
        logger.info(
            f"{self.name} cycle completed: {len(report.checked)} checked, "
            f"{len(report.failures)} failed"
        )
        return report

    async def _run_cycle(self, report: CycleReport) -> CycleReport:
        raise NotImplementedError

    def status(self) -> MonitorStatus:
        return MonitorStatus(
            name=self.name,
            is_running=self.is_running,
            cycle_in_progress=self.cycle_in_progress,
            interval_minutes=self.interval_minutes,
            last_cycle=self.last_report,
        )
