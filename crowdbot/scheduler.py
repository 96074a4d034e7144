"""
Scheduler module for automated cycle execution.

This module initializes the decision engine with exponential backoff on rate
limiting, runs a first cycle immediately and then uses APScheduler to run a
cycle at a fixed interval. It handles overlap prevention and shutdown.
"""

import logging
import threading
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.events import EVENT_JOB_EXECUTED, EVENT_JOB_ERROR, EVENT_JOB_MAX_INSTANCES
import pytz

from crowdbot.config import Config
from crowdbot.cycle import CycleResult, CycleRunner
from crowdbot.errors import FatalInitError, is_rate_limit
from crowdbot.utils import backoff_delay

# Configure module logger
logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    STARTING = "starting"
    RUNNING = "running"
    BACKOFF = "backoff"
    FAILED = "failed"


class BackoffScheduler:
    """
    Scheduler for automated cycle execution.

    Initialization is retried with exponential backoff while the engine is
    rate limited; after max_retries consecutive rate-limit failures it cools
    down and starts counting again. Any other initialization failure is fatal.
    Once running, cycles never stop the scheduler.

    Attributes:
        engine: Decision engine with initialize() and step()
        runner: CycleRunner used for every cycle
        state: Current SchedulerState
        retry_count: Consecutive rate-limited initialization attempts
        last_result: Result of the most recent cycle
    """

    def __init__(
        self,
        engine,
        runner: Optional[CycleRunner] = None,
        interval_seconds: Optional[float] = None,
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
        max_delay: Optional[float] = None,
        cooldown_seconds: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
        verbose: bool = False
    ):
        self.engine = engine
        self.runner = runner or CycleRunner()
        self.interval_seconds = Config.CHECK_INTERVAL_HOURS * 3600 if interval_seconds is None else interval_seconds
        self.max_retries = Config.INIT_MAX_RETRIES if max_retries is None else max_retries
        self.base_delay = Config.INIT_BASE_DELAY if base_delay is None else base_delay
        self.max_delay = Config.INIT_MAX_DELAY if max_delay is None else max_delay
        self.cooldown_seconds = Config.INIT_COOLDOWN_SECONDS if cooldown_seconds is None else cooldown_seconds

        if self.interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {self.interval_seconds}")

        self.sleep = sleep
        self.verbose = verbose

        self.state = SchedulerState.STARTING
        self.retry_count = 0
        self.last_result: Optional[CycleResult] = None
        self.scheduler: Optional[BackgroundScheduler] = None
        self._execution_lock = threading.Lock()
        self._job_id = "crowd_cycle"

    @property
    def is_running(self) -> bool:
        return self.scheduler is not None and self.scheduler.running

    def backoff_delay(self, retry_count: int) -> float:
        """Seconds to wait before retry number retry_count."""
        return backoff_delay(retry_count, initial_delay=self.base_delay, max_delay=self.max_delay)

    def initialize_engine(self) -> None:
        """
        Initialize the engine, retrying while it is rate limited.

        Raises:
            FatalInitError: Initialization failed for a reason other than rate limiting
        """
        while True:
            self.state = SchedulerState.STARTING
            try:
                self.engine.initialize()
            except Exception as e:
                if not is_rate_limit(e):
                    self.state = SchedulerState.FAILED
                    logger.critical(f"Engine initialization failed: {e}", exc_info=True)
                    if isinstance(e, FatalInitError):
                        raise
                    raise FatalInitError(f"Engine initialization failed: {e}") from e

                self._wait_after_rate_limit(e)
                continue

            self.retry_count = 0
            self.state = SchedulerState.RUNNING
            logger.info("Engine initialized")
            return

    def _wait_after_rate_limit(self, error: Exception) -> None:
        self.state = SchedulerState.BACKOFF
        self.retry_count += 1

        if self.retry_count >= self.max_retries:
            logger.warning(
                f"Initialization rate limited {self.retry_count} times in a row: {error}. "
                f"Cooling down for {self.cooldown_seconds:.0f}s before starting over"
            )
            self.sleep(self.cooldown_seconds)
            self.retry_count = 0
            return

        delay = self.backoff_delay(self.retry_count)
        logger.warning(
            f"Initialization rate limited (attempt {self.retry_count}/{self.max_retries}): {error}. "
            f"Retrying in {delay:.0f}s..."
        )
        self.sleep(delay)

    def start(self) -> bool:
        """
        Initialize the engine, run one cycle now and schedule the rest.

        Returns:
            True if the scheduler started, False if it was already running

        Raises:
            FatalInitError: Engine initialization failed fatally
        """
        if self.is_running:
            logger.warning("Scheduler is already running")
            return False

        self.initialize_engine()

        logger.info("Running initial cycle...")
        self.execute_cycle()

        self.scheduler = BackgroundScheduler(timezone=pytz.timezone(Config.SCHEDULER_TIMEZONE))
        self.scheduler.add_listener(
            self._on_job_event,
            EVENT_JOB_EXECUTED | EVENT_JOB_ERROR | EVENT_JOB_MAX_INSTANCES
        )
        self.scheduler.add_job(
            func=self.execute_cycle,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=self._job_id,
            name="Crowd Cycle",
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )
        self.scheduler.start()

        logger.info(f"Scheduler started with {self.interval_seconds / 3600:.2f} hour interval")
        next_run = self.get_next_run_time()
        if next_run:
            logger.info(f"Next cycle: {next_run.isoformat()}")

        return True

    def stop(self, wait: bool = False) -> bool:
        """
        Stop the scheduler. Running cycles are not drained unless wait is True.

        Returns:
            True if the scheduler was stopped, False if it was not running
        """
        if not self.is_running:
            logger.warning("Scheduler is not running")
            return False

        logger.info("Stopping scheduler...")
        self.scheduler.shutdown(wait=wait)
        self.scheduler = None
        logger.info("Scheduler stopped")
        return True

    def execute_cycle(self) -> Optional[CycleResult]:
        """
        Run one cycle with overlap prevention.

        Returns:
            CycleResult, or None if the tick was skipped because a cycle is in flight
        """
        if not self._execution_lock.acquire(blocking=False):
            logger.warning("Cycle skipped: previous run still in progress")
            return None

        try:
            logger.info("=" * 80)
            logger.info(f"Cycle started at {datetime.now(timezone.utc).isoformat()}")

            result = self.runner.run_cycle(self.engine, verbose=self.verbose)
            self.last_result = result

            if result.ok:
                self.retry_count = 0
            elif result.skipped:
                logger.info("Cycle did not run")
            else:
                logger.info("Cycle did not complete; waiting for the next tick")

            logger.info("=" * 80)
            return result

        finally:
            self._execution_lock.release()

    def _on_job_event(self, event) -> None:
        """
        Event listener for job execution events.

        Args:
            event: APScheduler event object
        """
        if event.code == EVENT_JOB_MAX_INSTANCES:
            logger.warning(f"Job {event.job_id} skipped: previous run still in progress")
        elif getattr(event, "exception", None):
            logger.error(f"Job {event.job_id} raised an exception: {event.exception}")
        else:
            logger.debug(f"Job {event.job_id} executed")

    def get_next_run_time(self) -> Optional[datetime]:
        if not self.is_running:
            return None

        job = self.scheduler.get_job(self._job_id)
        return job.next_run_time if job else None

    def is_job_running(self) -> bool:
        return self._execution_lock.locked()

    def get_status(self) -> dict:
        """
        Get current scheduler status.

        Returns:
            Dictionary with scheduler status information
        """
        next_run = self.get_next_run_time()
        return {
            "state": self.state.value,
            "is_running": self.is_running,
            "retry_count": self.retry_count,
            "job_running": self.is_job_running(),
            "interval_hours": self.interval_seconds / 3600,
            "next_run_time": next_run.isoformat() if next_run else None,
            "last_cycle_ok": self.last_result.ok if self.last_result else None,
        }
