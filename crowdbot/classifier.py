"""
Market classifier for labelling markets by crowd confidence and volume.

This module filters market snapshots into the views the bot posts about:
trending, high-confidence, uncertain/split and per-category. It performs no
external API calls and keeps no state; the same input always gives the same
output.
"""

import logging
import unicodedata
from typing import Iterable, Optional, Sequence

from crowdbot.models import ClassifiedMarket, ConfidenceLabel, MarketSnapshot, OutcomeSide

# Configure module logger
logger = logging.getLogger(__name__)

ELLIPSIS = "..."

# Confidence thresholds on max(p, 1 - p), in percent
VERY_HIGH_THRESHOLD = 85.0
HIGH_THRESHOLD = 70.0
MODERATE_THRESHOLD = 60.0

HIGH_CONFIDENCE_UPPER = 0.80
HIGH_CONFIDENCE_LOWER = 0.20
UNCERTAIN_LOWER = 0.45
UNCERTAIN_UPPER = 0.55

ZERO_WIDTH_JOINER = "\u200d"


def confidence_level(probability: float) -> ConfidenceLabel:
    """
    Label how confident the crowd is in a market.

    Uses the distance of the yes probability from 50%, so a market at 10% is
    as confident as one at 90%.

    Args:
        probability: Yes probability (0.0 to 1.0)

    Returns:
        ConfidenceLabel
    """
    # Rounding absorbs float noise so p and 1 - p land on the same side of a threshold
    percentage = round(max(probability, 1.0 - probability) * 100.0, 9)

    if percentage >= VERY_HIGH_THRESHOLD:
        return ConfidenceLabel.VERY_HIGH
    elif percentage >= HIGH_THRESHOLD:
        return ConfidenceLabel.HIGH
    elif percentage >= MODERATE_THRESHOLD:
        return ConfidenceLabel.MODERATE
    else:
        return ConfidenceLabel.LOW


def outcome_side(probability: float) -> OutcomeSide:
    return OutcomeSide.YES if probability * 100 > 50 else OutcomeSide.NO


def shorten_question(question: str, max_length: int = 80) -> str:
    """
    Shorten a market question if too long.

    Long questions are cut and end with a three-character ellipsis so the
    result is max_length characters. The cut is moved left rather than split
    a grapheme cluster (base character plus combining marks, variation
    selectors, skin-tone modifiers or zero-width-joiner sequences).

    Args:
        question: Question text
        max_length: Maximum length of the result (default 80)

    Returns:
        The question unchanged, or a shortened copy ending in "..."
    """
    if len(question) <= max_length:
        return question

    if max_length <= len(ELLIPSIS):
        return ELLIPSIS[:max_length]

    cut = max_length - len(ELLIPSIS)
    while cut > 0 and _splits_cluster(question, cut):
        cut -= 1

    return question[:cut] + ELLIPSIS


def _is_extender(char: str) -> bool:
    code = ord(char)
    return (
        unicodedata.category(char) in ("Mn", "Me", "Mc")
        or char == ZERO_WIDTH_JOINER
        or 0xFE00 <= code <= 0xFE0F
        or 0xE0100 <= code <= 0xE01EF
        or 0x1F3FB <= code <= 0x1F3FF
        or 0xE0020 <= code <= 0xE007F
    )


def _is_regional_indicator(char: str) -> bool:
    return 0x1F1E6 <= ord(char) <= 0x1F1FF


def _hangul_type(char: str) -> Optional[str]:
    """Hangul syllable type ("L", "V", "T", "LV", "LVT") or None."""
    code = ord(char)
    if 0x1100 <= code <= 0x115F or 0xA960 <= code <= 0xA97C:
        return "L"
    if 0x1160 <= code <= 0x11A7 or 0xD7B0 <= code <= 0xD7C6:
        return "V"
    if 0x11A8 <= code <= 0x11FF or 0xD7CB <= code <= 0xD7FB:
        return "T"
    if 0xAC00 <= code <= 0xD7A3:
        return "LV" if (code - 0xAC00) % 28 == 0 else "LVT"
    return None


def _joins_hangul(previous: str, char: str) -> bool:
    before, after = _hangul_type(previous), _hangul_type(char)
    if before == "L":
        return after in ("L", "V", "LV", "LVT")
    if before in ("LV", "V"):
        return after in ("V", "T")
    if before in ("LVT", "T"):
        return after == "T"
    return False


def _splits_cluster(text: str, index: int) -> bool:
    """True if cutting text at index would separate text[index] from its cluster."""
    if index >= len(text):
        return False

    char = text[index]
    previous = text[index - 1]

    if previous == "\r" and char == "\n":
        return True

    if _is_extender(char) or previous == ZERO_WIDTH_JOINER:
        return True

    if _joins_hangul(previous, char):
        return True

    if _is_regional_indicator(char) and _is_regional_indicator(previous):
        # Flags are pairs of regional indicators; an odd run means we are mid-pair
        run = 0
        position = index - 1
        while position >= 0 and _is_regional_indicator(text[position]):
            run += 1
            position -= 1
        return run % 2 == 1

    return False


def classify(
    market: MarketSnapshot,
    confidence: Optional[ConfidenceLabel] = None,
    max_length: int = 80
) -> ClassifiedMarket:
    """
    Label a market snapshot.

    Args:
        market: Snapshot to label
        confidence: Fixed label to apply; derived from the probability when None
        max_length: Maximum length of the shortened question

    Returns:
        ClassifiedMarket
    """
    probability = market.yes_probability
    return ClassifiedMarket(
        market=market,
        confidence=confidence if confidence is not None else confidence_level(probability),
        outcome_side=outcome_side(probability),
        short_question=shorten_question(market.question, max_length),
    )


def filter_trending(
    markets: Sequence[MarketSnapshot],
    min_volume: float = 5000,
    limit: int = 10
) -> list[ClassifiedMarket]:
    """
    Select trending markets by 24-hour volume.

    Keeps the source order; the data source is expected to sort by volume.

    Args:
        markets: Market snapshots
        min_volume: Volume a market must exceed (default $5k)
        limit: Maximum number of markets returned

    Returns:
        List of ClassifiedMarket objects
    """
    trending = [m for m in markets if m.volume_24h > min_volume][:limit]
    logger.debug(f"Trending: {len(trending)} of {len(markets)} markets above ${min_volume:,.0f}")
    return [classify(m) for m in trending]


def filter_by_category(
    markets: Sequence[MarketSnapshot],
    category_query: str,
    limit: int = 10
) -> list[ClassifiedMarket]:
    """
    Select markets whose category contains the query, case-insensitively.

    Args:
        markets: Market snapshots
        category_query: Text to look for in the category (e.g. "politics")
        limit: Maximum number of markets returned

    Returns:
        List of ClassifiedMarket objects in source order
    """
    query = (category_query or "").lower()
    matches = [m for m in markets if query in (m.category or "").lower()][:limit]
    logger.debug(f"Category '{category_query}': {len(matches)} markets")
    return [classify(m) for m in matches]


def filter_high_confidence(
    markets: Sequence[MarketSnapshot],
    limit: int = 8
) -> list[ClassifiedMarket]:
    """
    Select markets where the crowd is very sure (>80% or <20%).

    Sorted by 24-hour volume, highest first. Ties keep input order.

    Args:
        markets: Market snapshots
        limit: Maximum number of markets returned

    Returns:
        List of ClassifiedMarket objects labelled VERY HIGH
    """
    confident = [
        m for m in markets
        if m.yes_probability > HIGH_CONFIDENCE_UPPER or m.yes_probability < HIGH_CONFIDENCE_LOWER
    ]
    confident = _by_volume(confident)[:limit]
    return [classify(m, confidence=ConfidenceLabel.VERY_HIGH) for m in confident]


def filter_uncertain(
    markets: Sequence[MarketSnapshot],
    min_volume: float = 3000,
    limit: int = 8
) -> list[ClassifiedMarket]:
    """
    Select markets where the crowd is split (45% to 55%) with real volume.

    Args:
        markets: Market snapshots
        min_volume: Volume a market must exceed (default $3k)
        limit: Maximum number of markets returned

    Returns:
        List of ClassifiedMarket objects labelled LOW, highest volume first
    """
    split = [
        m for m in markets
        if UNCERTAIN_LOWER <= m.yes_probability <= UNCERTAIN_UPPER and m.volume_24h > min_volume
    ]
    split = _by_volume(split)[:limit]
    return [classify(m, confidence=ConfidenceLabel.LOW) for m in split]


def _by_volume(markets: Iterable[MarketSnapshot]) -> list[MarketSnapshot]:
    # sorted() is stable, so equal volumes keep their input order
    return sorted(markets, key=lambda m: m.volume_24h, reverse=True)


def market_views(
    markets: Sequence[MarketSnapshot],
    trending_markets: Sequence[MarketSnapshot],
    category_query: str,
    trending_min_volume: float = 5000,
    uncertain_min_volume: float = 3000
) -> dict[str, list[ClassifiedMarket]]:
    """
    Build the four market views used in one cycle.

    Args:
        markets: General market list
        trending_markets: Market list pre-sorted by volume
        category_query: Category to spotlight
        trending_min_volume: Volume floor for trending markets
        uncertain_min_volume: Volume floor for split markets

    Returns:
        Dict keyed by "trending", "high_confidence", "uncertain", "category"
    """
    return {
        "trending": filter_trending(trending_markets, min_volume=trending_min_volume),
        "high_confidence": filter_high_confidence(markets),
        "uncertain": filter_uncertain(markets, min_volume=uncertain_min_volume),
        "category": filter_by_category(markets, category_query),
    }
