"""
Utility functions for the crowd-wisdom bot.

This module provides shared helper utilities used across the codebase.
All functions are pure helpers with no domain logic.
"""

import json
import logging
from typing import Any, Optional

# Configure module logger
logger = logging.getLogger(__name__)


def safe_json_loads(text: str, default: Optional[Any] = None) -> Optional[Any]:
    """
    Safely parse JSON from text, handling malformed AI responses.

    Attempts to extract JSON from text that may contain markdown code blocks,
    explanatory text, or other formatting. Returns the default on failure.

    Args:
        text: Text string that may contain JSON
        default: Default value to return if parsing fails (default: None)

    Returns:
        Parsed JSON object/dict/list, or default value if parsing fails
    """
    if not text or not isinstance(text, str):
        return default

    text = text.strip()

    # Remove markdown code blocks if present
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]

    if text.endswith("```"):
        text = text[:-3]

    text = text.strip()

    # Try to find JSON object boundaries
    first_brace = text.find("{")
    first_bracket = text.find("[")

    if first_brace != -1 and (first_bracket == -1 or first_brace < first_bracket):
        last_brace = text.rfind("}")
        if last_brace != -1 and last_brace > first_brace:
            text = text[first_brace:last_brace + 1]
    elif first_bracket != -1:
        last_bracket = text.rfind("]")
        if last_bracket != -1 and last_bracket > first_bracket:
            text = text[first_bracket:last_bracket + 1]

    if not text:
        return default

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        logger.debug(f"JSON decode error: {e}")
        logger.debug(f"Failed to parse text: {text[:200]}")
        return default


def clamp(value: float, min_value: float, max_value: float) -> float:
    """
    Clamp a value between minimum and maximum bounds.

    Args:
        value: Value to clamp
        min_value: Minimum allowed value
        max_value: Maximum allowed value

    Returns:
        Clamped value between min_value and max_value

    Raises:
        ValueError: If min_value > max_value
    """
    if min_value > max_value:
        raise ValueError(f"min_value ({min_value}) must be <= max_value ({max_value})")

    return max(min_value, min(value, max_value))


def safe_float(value: Any, default: float = 0.0) -> float:
    """
    Safely convert a value to float with a default fallback.

    Handles None, strings, integers, and floats. Returns default on failure,
    including for NaN and booleans.

    Args:
        value: Value to convert (string, int, float, or None)
        default: Default value if conversion fails (default: 0.0)

    Returns:
        Float value or default if conversion fails
    """
    if value is None or isinstance(value, bool):
        return default

    if isinstance(value, (int, float)):
        result = float(value)
    elif isinstance(value, str):
        try:
            result = float(value.strip())
        except ValueError:
            return default
    else:
        return default

    # NaN never compares equal to itself
    if result != result:
        return default
    return result


def backoff_delay(
    retry_count: int,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0
) -> float:
    """
    Compute an exponential backoff delay.

    delay = min(initial_delay * exponential_base ** retry_count, max_delay)

    Args:
        retry_count: Number of retries so far (0 for the first)
        initial_delay: Delay in seconds for retry_count 0 (default: 1.0)
        max_delay: Upper bound in seconds (default: 60.0)
        exponential_base: Growth factor (default: 2.0)

    Returns:
        Delay in seconds

    Example:
        >>> [backoff_delay(n) for n in range(7)]
        [1.0, 2.0, 4.0, 8.0, 16.0, 32.0, 60.0]
    """
    if retry_count < 0:
        raise ValueError(f"retry_count must be >= 0, got {retry_count}")

    return min(initial_delay * (exponential_base ** retry_count), max_delay)
