"""
Market scanner for fetching open markets from Polymarket.

This module handles the retrieval and normalization of market data from the
Polymarket Gamma API. It performs no business logic - only data fetching and
transformation into MarketSnapshot objects. Failures are raised to the caller
so a cycle can report them.
"""

import json
import logging
from typing import Any, Optional
from datetime import datetime
import requests
from requests.exceptions import RequestException, Timeout, ConnectionError

from crowdbot.config import Config
from crowdbot.errors import MarketFetchError, RateLimitedError, RATE_LIMIT_STATUS
from crowdbot.models import MarketSnapshot
from crowdbot.utils import clamp, safe_float

# Configure module logger
logger = logging.getLogger(__name__)

NEUTRAL_PROBABILITY = 0.5


def fetch_markets(
    limit: Optional[int] = None,
    order: Optional[str] = None,
    ascending: bool = False
) -> list[MarketSnapshot]:
    """
    Fetch open markets from the Polymarket Gamma API.

    Args:
        limit: Maximum number of markets to fetch. If None, uses Config.MAX_MARKETS_TO_SCAN.
        order: Optional field the API should sort by (e.g. "volume24hr")
        ascending: Sort direction when order is given

    Returns:
        List of MarketSnapshot objects in the order the API returned them.

    Raises:
        RateLimitedError: The API answered 429
        MarketFetchError: Any other transport, HTTP or decoding failure
    """
    if limit is None:
        limit = Config.MAX_MARKETS_TO_SCAN

    url = f"{Config.GAMMA_API_URL.rstrip('/')}/markets"

    params: dict[str, Any] = {
        "active": "true",
        "closed": "false",
        "limit": limit,
    }
    if order:
        params["order"] = order
        params["ascending"] = "true" if ascending else "false"

    logger.info(f"Fetching up to {limit} open markets from Polymarket")
    logger.debug(f"Requesting markets from {url} with params: {params}")

    try:
        response = requests.get(
            url,
            params=params,
            timeout=Config.API_TIMEOUT,
            headers={
                "Accept": "application/json",
                "User-Agent": "PolymarketCrowdBot/1.0"
            }
        )

        if response.status_code == RATE_LIMIT_STATUS:
            logger.warning("Polymarket API rate limited the market request")
            raise RateLimitedError("Polymarket API returned 429 Too Many Requests")

        response.raise_for_status()
        data = response.json()

    except Timeout as e:
        logger.error(f"Request to Polymarket API timed out after {Config.API_TIMEOUT}s")
        raise MarketFetchError(f"Polymarket API timed out after {Config.API_TIMEOUT}s") from e

    except ConnectionError as e:
        logger.error(f"Connection error while fetching markets: {e}")
        raise MarketFetchError(f"Connection error: {e}") from e

    except RequestException as e:
        status = e.response.status_code if e.response is not None else None
        logger.error(f"API request failed: {e}")
        if e.response is not None:
            logger.error(f"Response status: {e.response.status_code}")
            logger.error(f"Response body: {e.response.text[:500]}")
        raise MarketFetchError(f"Polymarket API request failed: {e}", status_code=status) from e

    except ValueError as e:
        logger.error(f"Failed to parse JSON response: {e}")
        raise MarketFetchError(f"Invalid JSON from Polymarket API: {e}") from e

    if not isinstance(data, list):
        raise MarketFetchError(f"Expected list of markets, got {type(data).__name__}")

    logger.info(f"Received response with {len(data)} markets")

    markets = normalize_markets(data)
    logger.info(f"Successfully normalized {len(markets)} markets")
    return markets


def fetch_trending_markets(limit: Optional[int] = None) -> list[MarketSnapshot]:
    """
    Fetch open markets sorted by 24-hour volume, highest first.

    Args:
        limit: Maximum number of markets. If None, uses Config.TRENDING_MARKETS_TO_SCAN.

    Returns:
        List of MarketSnapshot objects, pre-sorted by the API.
    """
    if limit is None:
        limit = Config.TRENDING_MARKETS_TO_SCAN
    return fetch_markets(limit=limit, order="volume24hr", ascending=False)


def normalize_markets(api_data: list[Any]) -> list[MarketSnapshot]:
    """
    Normalize raw API records into MarketSnapshot objects.

    Records that are not objects are skipped with a warning. Missing optional
    fields never cause a record to be dropped.

    Args:
        api_data: List of market dictionaries from the Gamma API.

    Returns:
        List of MarketSnapshot objects in input order.
    """
    markets: list[MarketSnapshot] = []

    for idx, record in enumerate(api_data):
        if not isinstance(record, dict):
            logger.warning(f"Skipping market at index {idx}: expected object, got {type(record).__name__}")
            continue
        markets.append(snapshot_from_record(record))

    return markets


def snapshot_from_record(data: dict) -> MarketSnapshot:
    """
    Build a MarketSnapshot from one Gamma API market record.

    Args:
        data: Dictionary containing market data from the API.

    Returns:
        MarketSnapshot with neutral defaults for anything missing.
    """
    question = data.get("question") or data.get("title") or "Unknown Market"

    change = data.get("oneDayPriceChange")

    return MarketSnapshot(
        question=str(question),
        yes_probability=extract_yes_probability(data),
        volume_24h=max(0.0, safe_float(data.get("volume24hr"), 0.0)),
        category=str(data.get("category") or ""),
        end_date=_parse_end_date(data.get("endDate") or data.get("end_date")),
        market_id=str(data.get("id") or ""),
        slug=str(data.get("slug") or ""),
        one_day_price_change=safe_float(change) if change is not None else None,
    )


def extract_yes_probability(data: dict) -> float:
    """
    Extract the "yes" probability from a market record.

    outcomePrices may be a list or a JSON-encoded string of a list; index 0 is
    the yes price. The result is clamped to [0.0, 1.0]. Missing or
    unparseable prices give 0.5.

    Args:
        data: Market data dictionary.

    Returns:
        Probability as float between 0.0 and 1.0.
    """
    prices = data.get("outcomePrices")

    if isinstance(prices, str):
        try:
            prices = json.loads(prices)
        except ValueError:
            logger.debug(f"Could not decode outcomePrices: {prices[:100]}")
            return NEUTRAL_PROBABILITY

    if not isinstance(prices, (list, tuple)) or not prices:
        return NEUTRAL_PROBABILITY

    raw = safe_float(prices[0], NEUTRAL_PROBABILITY)
    return clamp(raw, 0.0, 1.0)


def _parse_end_date(date_str: Optional[str]) -> Optional[datetime]:
    """
    Parse end date string into datetime object.

    Args:
        date_str: Date string from API (ISO 8601 format expected).

    Returns:
        Datetime object if parsing succeeds, None otherwise.
    """
    if not date_str or not isinstance(date_str, str):
        return None

    try:
        return datetime.fromisoformat(date_str.replace('Z', '+00:00'))
    except ValueError:
        pass

    formats = [
        "%Y-%m-%dT%H:%M:%S",
        "%Y-%m-%dT%H:%M:%S.%f",
        "%Y-%m-%d %H:%M:%S",
        "%Y-%m-%d",
    ]

    for fmt in formats:
        try:
            return datetime.strptime(date_str, fmt)
        except ValueError:
            continue

    logger.debug(f"Could not parse end_date: {date_str}")
    return None
