"""
Post composer for turning classified markets into short social posts.

Five formats are supported, mirroring the bot's voice: a plain crowd
prediction, a confidence call, a trending spotlight, a category roundup and a
split-decision post. Every post is clipped to the platform length limit.
"""

import logging
from datetime import datetime
from typing import Callable, Optional, Sequence

from crowdbot.classifier import shorten_question
from crowdbot.formatters import (
    calculate_price_change,
    confidence_emoji,
    format_percentage,
    format_relative_date,
    format_volume,
    trend_emoji,
)
from crowdbot.models import ClassifiedMarket, OutcomeSide

# Configure module logger
logger = logging.getLogger(__name__)

DEFAULT_MAX_LENGTH = 280
ROUNDUP_SIZE = 3
ROUNDUP_QUESTION_LENGTH = 60

# Format used for each market view when the caller does not pick one
DEFAULT_FORMAT_BY_VIEW = {
    "trending": "trending",
    "high_confidence": "confidence_call",
    "uncertain": "split",
    "category": "category_roundup",
}


def _side_percentage(market: ClassifiedMarket) -> int:
    """Percentage for the side the crowd leans to."""
    pct = market.probability_pct
    return pct if market.outcome_side == OutcomeSide.YES else 100 - pct


def crowd_says(markets: Sequence[ClassifiedMarket], now: Optional[datetime] = None) -> str:
    market = markets[0]
    return (
        f"📊 The crowd says: {format_percentage(market.market.yes_probability)} chance of YES\n"
        f"\"{market.short_question}\""
    )


def confidence_call(markets: Sequence[ClassifiedMarket], now: Optional[datetime] = None) -> str:
    market = markets[0]
    emoji = confidence_emoji(market.market.yes_probability)
    return (
        f"{emoji} {market.confidence.value} CONFIDENCE: "
        f"'{market.short_question}' - {_side_percentage(market)}% {market.outcome_side.value}"
    )


def trending(markets: Sequence[ClassifiedMarket], now: Optional[datetime] = None) -> str:
    market = markets[0]
    lines = [
        f"🔥 TRENDING: {market.short_question}",
        f"Crowd prediction: {market.probability_pct}% YES",
        f"24hr volume: {format_volume(market.market.volume_24h)}",
    ]

    change = market.market.one_day_price_change
    if change:
        # Gamma reports a price delta: show points, pick the emoji from the relative move
        current = market.market.yes_probability
        points = change * 100
        relative = calculate_price_change(current, current - change) if current - change > 0 else points
        lines.append(f"{trend_emoji(relative)} {points:+.0f} pts today")

    if market.market.end_date:
        lines.append(f"Resolves {format_relative_date(market.market.end_date, now)}")

    return "\n".join(lines)


def category_roundup(
    markets: Sequence[ClassifiedMarket],
    category: Optional[str] = None,
    now: Optional[datetime] = None
) -> str:
    title = (category or markets[0].market.category or "Market").strip().title()
    lines = [f"📊 {title} predictions:"]
    for market in markets[:ROUNDUP_SIZE]:
        question = shorten_question(market.short_question, ROUNDUP_QUESTION_LENGTH)
        lines.append(f"• {question}: {format_percentage(market.market.yes_probability)}")
    return "\n".join(lines)


def split(markets: Sequence[ClassifiedMarket], now: Optional[datetime] = None) -> str:
    market = markets[0]
    pct = market.probability_pct
    return (
        f"🤷 The crowd is split on: {market.short_question}\n"
        f"{pct}% YES vs {100 - pct}% NO\n"
        f"Nearly 50/50 - true uncertainty"
    )


FORMATS: dict[str, Callable[..., str]] = {
    "crowd_says": crowd_says,
    "confidence_call": confidence_call,
    "trending": trending,
    "category_roundup": category_roundup,
    "split": split,
}


def compose_post(
    format_name: str,
    markets: Sequence[ClassifiedMarket],
    category: Optional[str] = None,
    max_length: int = DEFAULT_MAX_LENGTH,
    now: Optional[datetime] = None
) -> str:
    """
    Render a post in the named format.

    Args:
        format_name: One of FORMATS
        markets: Markets to feature; single-market formats use the first
        category: Category title for the roundup format
        max_length: Platform length limit
        now: Reference time for relative dates

    Returns:
        Post text no longer than max_length

    Raises:
        ValueError: Unknown format or no markets given
    """
    if format_name not in FORMATS:
        raise ValueError(f"Unknown post format: {format_name}")

    if not markets:
        raise ValueError(f"No markets to compose a {format_name} post")

    if format_name == "category_roundup":
        text = category_roundup(markets, category=category, now=now)
    else:
        text = FORMATS[format_name](markets, now=now)

    if len(text) > max_length:
        logger.debug(f"Clipping {format_name} post from {len(text)} to {max_length} characters")
        text = shorten_question(text, max_length)

    return text
