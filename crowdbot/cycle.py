"""
Cycle runner for executing one decision-and-post step.

The runner invokes the engine once, waits at most the configured deadline and
reports the outcome as a CycleResult. It never raises: rate limiting is logged
as expected, anything else as an error, and the next scheduled tick simply
tries again.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Optional

from crowdbot.config import Config
from crowdbot.errors import CycleTimeoutError, is_rate_limit

# Configure module logger
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CycleResult:
    """
    Outcome of one cycle.

    Attributes:
        ok: The step completed without error
        duration: Seconds spent waiting for the step
        error: Exception raised by the step, or CycleTimeoutError
        rate_limited: The error was a rate-limit condition
        skipped: The cycle did not start because a previous step is still running
    """
    ok: bool
    duration: float = 0.0
    error: Optional[BaseException] = None
    rate_limited: bool = False
    skipped: bool = False


class CycleRunner:
    """
    Runs engine steps with a deadline.

    The step runs on a daemon worker thread so a stalled call cannot block the
    caller past timeout_seconds or keep the process alive at shutdown.
    """

    def __init__(self, timeout_seconds: Optional[float] = None):
        """
        Args:
            timeout_seconds: Per-cycle deadline. None uses Config.CYCLE_TIMEOUT_SECONDS;
                0 or less waits indefinitely.
        """
        if timeout_seconds is None:
            timeout_seconds = Config.CYCLE_TIMEOUT_SECONDS
        self.timeout_seconds = timeout_seconds if timeout_seconds > 0 else None
        self._worker: Optional[threading.Thread] = None

    @property
    def is_busy(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def run_cycle(self, engine, verbose: bool = False) -> CycleResult:
        """
        Execute one engine step.

        Args:
            engine: Object with a step(verbose=...) method
            verbose: Passed through to the engine

        Returns:
            CycleResult describing the outcome
        """
        if self.is_busy:
            logger.warning("Cycle skipped: previous step is still running past its deadline")
            return CycleResult(ok=False, skipped=True)

        outcome: dict[str, BaseException] = {}
        finished = threading.Event()

        def _target() -> None:
            try:
                engine.step(verbose=verbose)
            except BaseException as e:
                outcome["error"] = e
            finally:
                finished.set()

        start = time.monotonic()
        self._worker = threading.Thread(target=_target, name="crowd-cycle", daemon=True)
        self._worker.start()

        completed = finished.wait(self.timeout_seconds)
        duration = time.monotonic() - start

        if not completed:
            error = CycleTimeoutError(f"Cycle exceeded {self.timeout_seconds:.0f}s deadline")
            logger.error(f"Cycle timed out after {duration:.2f} seconds; step left running in background")
            return CycleResult(ok=False, duration=duration, error=error)

        error = outcome.get("error")
        if error is None:
            logger.info(f"Cycle completed in {duration:.2f} seconds")
            return CycleResult(ok=True, duration=duration)

        if is_rate_limit(error):
            logger.warning(f"Cycle rate limited after {duration:.2f} seconds (expected, waiting for next tick): {error}")
            return CycleResult(ok=False, duration=duration, error=error, rate_limited=True)

        logger.error(f"Cycle failed after {duration:.2f} seconds: {error}", exc_info=error)
        return CycleResult(ok=False, duration=duration, error=error)
