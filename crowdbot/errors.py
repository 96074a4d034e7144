"""
Error taxonomy for the crowd-wisdom bot.

Cycle-level failures (rate limiting, transient I/O) are recoverable and stop at
the cycle runner. Configuration and initialization failures are fatal and end
the process.
"""

from typing import Optional

from telegram.error import RetryAfter

RATE_LIMIT_STATUS = 429
RATE_LIMIT_MARKERS = ("429", "Too Many Requests")


class CrowdBotError(Exception):
    """Base class for bot errors. May carry an HTTP-like status code."""

    def __init__(self, message: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitedError(CrowdBotError):
    """A remote service rejected the request for exceeding its call rate."""

    def __init__(self, message: str = "Too Many Requests", status_code: Optional[int] = RATE_LIMIT_STATUS):
        super().__init__(message, status_code)


class TransientIOFailure(CrowdBotError):
    """Network or API failure other than rate limiting."""


class MarketFetchError(TransientIOFailure):
    """The market data source could not be read."""


class LLMError(TransientIOFailure):
    """The language model API call failed."""


class CycleTimeoutError(CrowdBotError):
    """A cycle exceeded its time budget."""


class FatalConfigError(CrowdBotError):
    """Required configuration is missing or invalid."""


class FatalInitError(CrowdBotError):
    """Engine initialization failed for a reason other than rate limiting."""


def is_rate_limit(error: BaseException) -> bool:
    """
    Check whether an exception signals rate limiting.

    Recognizes a ``status_code`` of 429 on the error itself or on an attached
    ``response`` (as requests' HTTPError carries), Telegram flood control, and
    messages mentioning "429" or "Too Many Requests".

    Args:
        error: Exception to inspect

    Returns:
        True if the error is a rate-limit condition
    """
    if isinstance(error, (RateLimitedError, RetryAfter)):
        return True

    if getattr(error, "status_code", None) == RATE_LIMIT_STATUS:
        return True

    response = getattr(error, "response", None)
    if response is not None and getattr(response, "status_code", None) == RATE_LIMIT_STATUS:
        return True

    message = str(error)
    return any(marker in message for marker in RATE_LIMIT_MARKERS)
