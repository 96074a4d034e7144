"""
Main entry point for the Polymarket crowd-wisdom bot.

Each cycle:
1. Fetch open markets from Polymarket
2. Classify them into trending, high-confidence, split and category views
3. Let the agent pick what is worth posting
4. Publish the rendered posts

Run once with --once, or continuously (every CHECK_INTERVAL_HOURS) by default.
"""

import argparse
import logging
import os
import signal
import sys
import threading
import time
from typing import Callable, Optional

from crowdbot.agent import AGENT_NAME, CrowdAgent
from crowdbot.config import Config
from crowdbot.cycle import CycleRunner
from crowdbot.errors import FatalConfigError, FatalInitError, is_rate_limit
from crowdbot.scheduler import BackoffScheduler


# Configure logging
def setup_logging() -> None:
    """Configure logging for the application."""
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    log_level = getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if Config.LOG_FILE:
        Config.ensure_directories()
        handlers.append(logging.FileHandler(Config.LOG_FILE))

    logging.basicConfig(
        level=log_level,
        format=log_format,
        handlers=handlers
    )

    # APScheduler logs every job run at INFO
    logging.getLogger("apscheduler").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


def log_banner(interval_hours: float) -> None:
    logger.info("=" * 60)
    logger.info(f"{AGENT_NAME.upper()}")
    logger.info("Mission: share what the crowd thinks on Polymarket")
    logger.info(f"Updates: every {interval_hours:g} hours")
    logger.info("Focus: trending, high-confidence, split and category markets")
    logger.info("=" * 60)


def check_config() -> None:
    """
    Validate configuration before starting.

    Raises:
        FatalConfigError: A required value is missing or invalid
    """
    is_valid, errors = Config.validate()
    if is_valid:
        return

    logger.error("Configuration validation failed:")
    for error in errors:
        logger.error(f"  - {error}")
    if not Config.ANTHROPIC_API_KEY:
        logger.error("Create a .env file with your API key (copy .env.example to .env)")
    raise FatalConfigError("; ".join(errors))


def handle_uncaught_exception(
    exc_type,
    exc_value,
    exc_tb,
    sleep: Callable[[float], None] = time.sleep,
    exit_process: Callable[[int], None] = os._exit
) -> None:
    """
    Last-resort handler for exceptions nothing else caught.

    A rate-limit failure waits RATE_LIMIT_RESTART_DELAY before exiting so the
    supervisor's restart does not hit the limit again; anything else exits
    after CRASH_EXIT_DELAY. Both exit with status 1.
    """
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_tb)
        return

    logger.critical("Uncaught exception", exc_info=(exc_type, exc_value, exc_tb))

    if is_rate_limit(exc_value):
        delay = Config.RATE_LIMIT_RESTART_DELAY
        logger.critical(f"Rate limit detected: exiting in {delay:.0f}s for a supervised restart")
    else:
        delay = Config.CRASH_EXIT_DELAY
        logger.critical(f"Exiting in {delay:.0f}s for a supervised restart")

    for handler in logging.getLogger().handlers:
        handler.flush()
    sleep(delay)
    exit_process(1)


def _thread_excepthook(args) -> None:
    if args.exc_type is SystemExit:
        return
    handle_uncaught_exception(args.exc_type, args.exc_value, args.exc_traceback)


def install_crash_handlers() -> None:
    sys.excepthook = handle_uncaught_exception
    threading.excepthook = _thread_excepthook


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the crowd-wisdom bot.

    Supports two modes:
    - Scheduled (default): run a cycle now and every interval after that
    - Single run: initialize, run one cycle and exit

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    parser = argparse.ArgumentParser(
        description="Polymarket Wisdom of Crowds bot",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run continuously (every 2 hours by default)
  python -m crowdbot.main

  # Run one cycle and exit, logging posts instead of sending them
  python -m crowdbot.main --once --dry-run

  # Run continuously with a custom interval
  python -m crowdbot.main --interval 3
        """
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single cycle and exit"
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Hours between cycles (overrides CHECK_INTERVAL_HOURS config)"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log the agent's prompt size and each rendered post"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log posts instead of publishing them"
    )

    args = parser.parse_args(argv)

    setup_logging()

    if args.dry_run:
        Config.DRY_RUN = True

    interval_hours = args.interval if args.interval is not None else Config.CHECK_INTERVAL_HOURS
    if interval_hours <= 0:
        logger.error(f"Invalid interval: {interval_hours}. Must be > 0")
        return 1

    log_banner(interval_hours)

    try:
        check_config()
    except FatalConfigError:
        return 1

    install_crash_handlers()

    agent = CrowdAgent()
    scheduler = BackoffScheduler(
        agent,
        runner=CycleRunner(),
        interval_seconds=interval_hours * 3600,
        verbose=args.verbose
    )

    if args.once:
        return _run_single_mode(scheduler)

    return _run_scheduled_mode(scheduler)


def _run_single_mode(scheduler: BackoffScheduler) -> int:
    """
    Initialize, run one cycle and exit.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    try:
        scheduler.initialize_engine()
        result = scheduler.execute_cycle()
        return 0 if result is not None and result.ok else 1

    except KeyboardInterrupt:
        logger.info("Cycle interrupted by user")
        return 130

    except FatalInitError as e:
        logger.error(f"Fatal initialization error: {e}")
        return 1


def _run_scheduled_mode(scheduler: BackoffScheduler) -> int:
    """
    Run in scheduled mode with continuous execution.

    Returns:
        Exit code (1 for a fatal initialization error; shutdown signals exit 0)
    """
    logger.info("Starting in scheduled mode")

    # Shutdown does not wait for an in-flight cycle
    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        if scheduler.is_running:
            scheduler.stop(wait=False)
        logger.info(f"{AGENT_NAME} stopped")
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        scheduler.start()
    except FatalInitError as e:
        logger.error(f"Fatal initialization error: {e}")
        logger.error("Common fixes:")
        logger.error("  1. Check your ANTHROPIC_API_KEY is correct")
        logger.error("  2. Check TELEGRAM_BOT_TOKEN / TELEGRAM_CHAT_ID")
        logger.error("  3. Ensure the Polymarket and Anthropic APIs are reachable")
        return 1

    logger.info("Scheduler is running. Press Ctrl+C to stop.")

    # Keep process alive - signal handlers will interrupt this
    while True:
        time.sleep(1)


if __name__ == "__main__":
    sys.exit(main())
