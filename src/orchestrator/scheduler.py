"""Interval scheduler that re-triggers full execution passes."""

import asyncio
from typing import Optional

import structlog

from core.errors import SchedulerError
from .engine import AutomationEngine


logger = structlog.get_logger()


class AutomationScheduler:
    """
    Fires ``engine.execute_all()`` every ``interval_seconds``.

    The first pass runs after one full interval, not at start. If a pass is
    still running when the next one comes due, that firing is skipped rather
    than overlapped. ``stop()`` prevents further firings but lets an
    in-flight pass finish; use ``wait_idle()`` to await it.
    """

    def __init__(
        self,
        engine: AutomationEngine,
        interval_seconds: int,
        time_scale: float = 1.0,
    ):
        """
        Args:
            engine: Engine whose rules are executed on every firing
            interval_seconds: Whole seconds between firings (minimum 1)
            time_scale: Multiplier applied to the real sleep (tests use < 1)
        """
        if (
            isinstance(interval_seconds, bool)
            or not isinstance(interval_seconds, int)
            or interval_seconds < 1
        ):
            raise SchedulerError(
                f"Interval must be a whole number of seconds >= 1, got {interval_seconds!r}",
                interval_seconds=interval_seconds,
            )
        if time_scale <= 0:
            raise SchedulerError(f"time_scale must be positive, got {time_scale!r}")

        self.engine = engine
        self.interval_seconds = interval_seconds
        self.time_scale = time_scale

        self.fire_count = 0
        self.skipped_count = 0

        self._running = False
        self._loop_task: Optional[asyncio.Task] = None
        self._batch_task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def batch_in_flight(self) -> bool:
        return self._batch_task is not None and not self._batch_task.done()

    async def start(self) -> None:
        """Start firing. A second call on a running scheduler does nothing."""
        if self._running:
            logger.warning("scheduler_already_running", interval=self.interval_seconds)
            return

        self._running = True
        self._loop_task = asyncio.create_task(self._run_loop())
        logger.info("scheduler_started", interval=self.interval_seconds)

    async def stop(self) -> None:
        """Stop future firings without cancelling an in-flight pass."""
        if not self._running:
            return

        self._running = False
        if self._loop_task:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None

        logger.info(
            "scheduler_stopped",
            fired=self.fire_count,
            skipped=self.skipped_count,
            batch_in_flight=self.batch_in_flight,
        )

    async def wait_idle(self) -> None:
        """Wait for the in-flight pass, if any, to finish."""
        if self.batch_in_flight:
            await asyncio.shield(self._batch_task)

    async def _run_loop(self) -> None:
        """Sleep an interval, then fire unless the previous pass is still running."""
        while self._running:
            try:
                await asyncio.sleep(self.interval_seconds * self.time_scale)
            except asyncio.CancelledError:
                break

            if not self._running:
                break

            if self.batch_in_flight:
                self.skipped_count += 1
                logger.warning(
                    "scheduler_firing_skipped",
                    reason="previous pass still running",
                    skipped=self.skipped_count,
                )
                continue

            self.fire_count += 1
            self._batch_task = asyncio.create_task(self._fire(self.fire_count))

    async def _fire(self, firing: int) -> None:
        logger.info("scheduler_firing", firing=firing)
        try:
            success = await self.engine.execute_all()
        except Exception:
            logger.exception("scheduler_pass_error", firing=firing)
            return

        if success:
            logger.info("scheduler_pass_completed", firing=firing, success=True)
        else:
            logger.warning("scheduler_pass_completed", firing=firing, success=False)
