"""
Formatting helpers for post text.

All functions are pure and only shape numbers and dates for display.
"""

from datetime import datetime, timezone
from typing import Optional


def format_percentage(probability: float) -> str:
    """Format a probability (0.0 to 1.0) as a whole percentage, e.g. "65%"."""
    return f"{round(probability * 100)}%"


def format_volume(volume: float) -> str:
    """
    Format a USD volume in compact form.

    Args:
        volume: Volume in USD

    Returns:
        "$1.2M", "$45K" or "$950"
    """
    if volume >= 1_000_000:
        return f"${volume / 1_000_000:.1f}M"
    elif volume >= 1_000:
        return f"${volume / 1_000:.0f}K"
    else:
        return f"${round(volume)}"


def confidence_emoji(probability: float) -> str:
    """Emoji for the crowd's confidence, using the same bands as confidence_level."""
    percentage = round(max(probability, 1.0 - probability) * 100.0, 9)

    if percentage >= 85:
        return "🔥"
    elif percentage >= 70:
        return "💪"
    elif percentage >= 60:
        return "🤔"
    else:
        return "🤷"


def trend_emoji(price_change_pct: Optional[float]) -> str:
    """
    Emoji for a price move, in percent.

    Args:
        price_change_pct: Change in percent, None when unknown

    Returns:
        🚀 above +10, 📈 above +5, 📉 below -10, ⬇️ below -5, ➡️ otherwise
    """
    if price_change_pct is None:
        return "➡️"
    if price_change_pct > 10:
        return "🚀"
    elif price_change_pct > 5:
        return "📈"
    elif price_change_pct < -10:
        return "📉"
    elif price_change_pct < -5:
        return "⬇️"
    else:
        return "➡️"


def calculate_price_change(current_price: float, previous_price: Optional[float]) -> float:
    """
    Percentage change from previous_price to current_price.

    Returns 0.0 when there is no usable previous price.
    """
    if not previous_price:
        return 0.0
    return ((current_price - previous_price) / previous_price) * 100.0


def format_relative_date(value: datetime, now: Optional[datetime] = None) -> str:
    """
    Describe a date relative to now.

    Args:
        value: Date to describe
        now: Reference time (default: current UTC time)

    Returns:
        "today", "tomorrow", "yesterday", "in N days" or "N days ago" within a
        week, else "Mon DD, YYYY"
    """
    if now is None:
        now = datetime.now(timezone.utc)

    # Naive datetimes are treated as UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    days = (value.astimezone(timezone.utc).date() - now.astimezone(timezone.utc).date()).days

    if days == 0:
        return "today"
    elif days == 1:
        return "tomorrow"
    elif days == -1:
        return "yesterday"
    elif 1 < days < 7:
        return f"in {days} days"
    elif -7 < days < -1:
        return f"{-days} days ago"
    else:
        return value.strftime("%b %d, %Y")
