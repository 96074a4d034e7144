"""
Data models for the crowd-wisdom bot.

This module defines the immutable values passed between the market fetcher,
the classifier and the post composer.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class ConfidenceLabel(str, Enum):
    """How sure the crowd is, by distance of the yes price from 50%."""
    VERY_HIGH = "VERY HIGH"
    HIGH = "HIGH"
    MODERATE = "MODERATE"
    LOW = "LOW"


class OutcomeSide(str, Enum):
    YES = "YES"
    NO = "NO"


@dataclass(frozen=True)
class MarketSnapshot:
    """
    Represents one open market as fetched from Polymarket.

    Attributes:
        question: Market question
        yes_probability: Implied "yes" probability, clamped to [0.0, 1.0]
        volume_24h: 24-hour trading volume in USD
        category: Market category/topic, "" when absent
        end_date: Market resolution date
        market_id: Polymarket market identifier
        slug: URL-friendly identifier
        one_day_price_change: Change of the yes price over the last day, if reported
    """
    question: str
    yes_probability: float
    volume_24h: float = 0.0
    category: str = ""
    end_date: Optional[datetime] = None
    market_id: str = ""
    slug: str = ""
    one_day_price_change: Optional[float] = None


@dataclass(frozen=True)
class ClassifiedMarket:
    """
    A market snapshot with its crowd-confidence labels.

    Attributes:
        market: Source snapshot
        confidence: Confidence label
        outcome_side: Side the crowd leans to
        short_question: Question shortened for posting
    """
    market: MarketSnapshot
    confidence: ConfidenceLabel
    outcome_side: OutcomeSide
    short_question: str

    @property
    def probability_pct(self) -> int:
        return int(round(self.market.yes_probability * 100))

    def to_dict(self) -> dict[str, Any]:
        """Summary used in prompts and logs."""
        return {
            "question": self.short_question,
            "probability": self.probability_pct,
            "outcome": self.outcome_side.value,
            "volume24hr": int(round(self.market.volume_24h)),
            "confidence": self.confidence.value,
            "category": self.market.category or "Other",
            "endDate": self.market.end_date.isoformat() if self.market.end_date else None,
        }
