import pytest

from crowdbot.cycle import CycleResult
from crowdbot.errors import FatalInitError, LLMError, RateLimitedError
from crowdbot.scheduler import BackoffScheduler, SchedulerState


class FlakyEngine:
    """Raises the queued errors from initialize() before succeeding."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.init_calls = 0
        self.steps = 0
        self.retry_counts = []
        self.scheduler = None

    def initialize(self):
        self.init_calls += 1
        if self.scheduler is not None:
            self.retry_counts.append(self.scheduler.retry_count)
        if self.errors:
            raise self.errors.pop(0)

    def step(self, verbose=False):
        self.steps += 1


class StubRunner:
    def __init__(self, result=None):
        self.result = result or CycleResult(ok=True)
        self.calls = 0

    def run_cycle(self, engine, verbose=False):
        self.calls += 1
        engine.step(verbose=verbose)
        return self.result


def _scheduler(engine, runner=None, **kwargs):
    sleeps = []
    scheduler = BackoffScheduler(
        engine,
        runner=runner or StubRunner(),
        interval_seconds=kwargs.pop("interval_seconds", 3600),
        max_retries=kwargs.pop("max_retries", 5),
        base_delay=1.0,
        max_delay=60.0,
        cooldown_seconds=300,
        sleep=sleeps.append,
    )
    engine.scheduler = scheduler
    return scheduler, sleeps


def test_backoff_delays_double_and_cap():
    scheduler, _ = _scheduler(FlakyEngine())

    delays_ms = [scheduler.backoff_delay(n) * 1000 for n in range(8)]

    assert delays_ms == [1000, 2000, 4000, 8000, 16000, 32000, 60000, 60000]


def test_rate_limited_init_backs_off_then_recovers():
    engine = FlakyEngine(*[RateLimitedError("429")] * 3)
    scheduler, sleeps = _scheduler(engine)

    scheduler.initialize_engine()

    assert sleeps == [2, 4, 8]
    assert engine.init_calls == 4
    assert scheduler.retry_count == 0
    assert scheduler.state == SchedulerState.RUNNING


def test_five_rate_limits_trigger_cooldown_and_reset():
    engine = FlakyEngine(*[RateLimitedError("429")] * 5)
    scheduler, sleeps = _scheduler(engine)

    scheduler.initialize_engine()

    assert sleeps == [2, 4, 8, 16, 300]
    assert engine.retry_counts == [0, 1, 2, 3, 4, 0]
    assert scheduler.state == SchedulerState.RUNNING


def test_backoff_restarts_after_cooldown():
    engine = FlakyEngine(*[RateLimitedError("429")] * 7)
    scheduler, sleeps = _scheduler(engine)

    scheduler.initialize_engine()

    assert sleeps == [2, 4, 8, 16, 300, 2, 4]


def test_rate_limit_recognized_from_message():
    engine = FlakyEngine(Exception("HTTP 429 Too Many Requests"))
    scheduler, sleeps = _scheduler(engine)

    scheduler.initialize_engine()

    assert sleeps == [2]
    assert engine.init_calls == 2


def test_non_rate_limit_failure_is_fatal_without_retry():
    engine = FlakyEngine(LLMError("invalid x-api-key", status_code=401))
    scheduler, sleeps = _scheduler(engine)

    with pytest.raises(FatalInitError):
        scheduler.initialize_engine()

    assert engine.init_calls == 1
    assert sleeps == []
    assert scheduler.state == SchedulerState.FAILED


def test_fatal_init_error_is_reraised_as_is():
    error = FatalInitError("bad config")
    scheduler, _ = _scheduler(FlakyEngine(error))

    with pytest.raises(FatalInitError) as excinfo:
        scheduler.initialize_engine()

    assert excinfo.value is error


def test_execute_cycle_skips_when_previous_cycle_holds_lock():
    engine = FlakyEngine()
    runner = StubRunner()
    scheduler, _ = _scheduler(engine, runner)

    scheduler._execution_lock.acquire()
    try:
        assert scheduler.is_job_running()
        assert scheduler.execute_cycle() is None
    finally:
        scheduler._execution_lock.release()

    assert runner.calls == 0


def test_successful_cycle_resets_retry_count():
    scheduler, _ = _scheduler(FlakyEngine())
    scheduler.retry_count = 3

    result = scheduler.execute_cycle()

    assert result.ok
    assert scheduler.retry_count == 0
    assert scheduler.get_status()["last_cycle_ok"] is True


def test_failed_cycle_keeps_scheduler_alive():
    runner = StubRunner(CycleResult(ok=False, error=RuntimeError("boom")))
    scheduler, _ = _scheduler(FlakyEngine(), runner)

    assert scheduler.execute_cycle().ok is False
    assert scheduler.execute_cycle().ok is False
    assert runner.calls == 2


def test_start_runs_first_cycle_and_schedules_next():
    engine = FlakyEngine()
    scheduler, _ = _scheduler(engine)

    try:
        assert scheduler.start() is True
        assert scheduler.is_running
        assert engine.steps == 1
        assert scheduler.get_next_run_time() is not None
        assert scheduler.start() is False

        status = scheduler.get_status()
        assert status["state"] == "running"
        assert status["interval_hours"] == 1.0
        assert status["next_run_time"] is not None
    finally:
        scheduler.stop()

    assert not scheduler.is_running
    assert scheduler.stop() is False


def test_start_propagates_fatal_init():
    engine = FlakyEngine(LLMError("unauthorized", status_code=401))
    scheduler, _ = _scheduler(engine)

    with pytest.raises(FatalInitError):
        scheduler.start()

    assert not scheduler.is_running
    assert engine.steps == 0


def test_explicit_zero_retries_cools_down_on_first_rate_limit():
    engine = FlakyEngine(RateLimitedError("429"))
    scheduler, sleeps = _scheduler(engine, max_retries=0)

    scheduler.initialize_engine()

    assert scheduler.max_retries == 0
    assert sleeps == [300]


def test_non_positive_interval_is_rejected():
    with pytest.raises(ValueError):
        BackoffScheduler(FlakyEngine(), runner=StubRunner(), interval_seconds=0)
