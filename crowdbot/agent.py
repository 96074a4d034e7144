"""
Crowd agent: the decision engine behind each posting cycle.

One step fetches current markets, builds the trending, high-confidence,
uncertain and category views, asks Claude which of them are worth posting
about, renders the chosen posts and hands them to the publisher.
"""

import json
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Sequence

from crowdbot import scanner
from crowdbot.classifier import market_views
from crowdbot.composer import DEFAULT_FORMAT_BY_VIEW, FORMATS, compose_post
from crowdbot.config import Config
from crowdbot.errors import FatalInitError, RateLimitedError, is_rate_limit
from crowdbot.llm_client import ClaudeClient
from crowdbot.models import ClassifiedMarket, MarketSnapshot
from crowdbot.publisher import TelegramPublisher
from crowdbot.utils import safe_json_loads

# Configure module logger
logger = logging.getLogger(__name__)

AGENT_NAME = "Polymarket Wisdom Tracker"

AGENT_GOAL = """You run a social account that shares what "the crowd thinks" on Polymarket.
Every check you look at current prediction markets and post 1-2 of the most interesting
crowd predictions for a general audience. Mix content across checks: trending markets,
high confidence calls, split markets and category spotlights."""

AGENT_DESCRIPTION = """You are an informative, neutral reporter of collective intelligence.
- Be neutral and fact-based; never editorialize, predict outcomes yourself, mock or praise a prediction.
- Prefer high-volume markets (over $50k in 24h), very confident calls (over 85% or under 15%)
  and near-perfect splits (48-52%), then timely or thought-provoking questions.
- Skip low-volume markets (under $3k) and offensive or inappropriate questions.
- Skip posting entirely if nothing is interesting.
You are the voice of the collective, not an oracle."""


class DecisionEngine(Protocol):
    """What the scheduler and cycle runner need from an engine."""

    def initialize(self) -> None:
        ...

    def step(self, verbose: bool = False) -> None:
        ...


@dataclass(frozen=True)
class PostChoice:
    """
    One post the model chose to publish.

    Attributes:
        view: Market view name ("trending", "high_confidence", "uncertain", "category")
        format: Composer format name
        indices: Positions of the featured markets within the view
    """
    view: str
    format: str
    indices: tuple[int, ...]


class CrowdAgent:
    """
    Decision engine that turns market views into posts.

    Attributes:
        llm: Claude client used to choose posts
        publisher: Destination for finished posts
        categories: Categories rotated through for the spotlight view
        max_posts: Maximum posts per step
        max_retries: Attempts at getting a well-formed choice from the model
        last_posts: Posts rendered in the most recent step
    """

    def __init__(
        self,
        llm: Optional[ClaudeClient] = None,
        publisher: Optional[TelegramPublisher] = None,
        fetch_markets: Callable[[], list[MarketSnapshot]] = scanner.fetch_markets,
        fetch_trending: Callable[[], list[MarketSnapshot]] = scanner.fetch_trending_markets,
        categories: Optional[Sequence[str]] = None,
        max_posts: Optional[int] = None,
        max_retries: Optional[int] = None
    ):
        self.llm = llm or ClaudeClient()
        self.publisher = publisher or TelegramPublisher()
        self.fetch_markets = fetch_markets
        self.fetch_trending = fetch_trending
        self.categories = list(categories or Config.SPOTLIGHT_CATEGORIES) or ["politics"]
        self.max_posts = max_posts or Config.MAX_POSTS_PER_CYCLE
        self.max_retries = max_retries or Config.LLM_MAX_RETRIES
        self.last_posts: list[str] = []
        self._initialized = False
        self._step_count = 0

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        """
        Verify the model API and the publisher before the first step.

        Raises:
            RateLimitedError: Either service is rate limiting us
            FatalInitError: Any other failure
        """
        if self._initialized:
            logger.debug("Agent already initialized")
            return

        logger.info(f"Initializing {AGENT_NAME}...")

        try:
            self.llm.ping()
            self.publisher.verify()
        except RateLimitedError:
            raise
        except Exception as e:
            if is_rate_limit(e):
                raise RateLimitedError(str(e)) from e
            raise FatalInitError(f"Agent initialization failed: {e}") from e

        self._initialized = True
        logger.info(f"{AGENT_NAME} initialized")

    def next_category(self) -> str:
        return self.categories[self._step_count % len(self.categories)]

    def step(self, verbose: bool = False) -> None:
        """
        Run one unit of work: look at the markets and post what is interesting.

        Args:
            verbose: Log the views offered to the model and each rendered post

        Raises:
            RuntimeError: initialize() has not succeeded
            RateLimitedError, MarketFetchError, LLMError: propagated from I/O
        """
        if not self._initialized:
            raise RuntimeError("Agent must be initialized before step()")

        category = self.next_category()
        self._step_count += 1
        self.last_posts = []

        markets = self.fetch_markets()
        trending_markets = self.fetch_trending()

        views = market_views(
            markets,
            trending_markets,
            category,
            trending_min_volume=Config.TRENDING_MIN_VOLUME,
            uncertain_min_volume=Config.UNCERTAIN_MIN_VOLUME,
        )

        counts = {name: len(items) for name, items in views.items()}
        logger.info(f"Market views ({category} spotlight): {counts}")

        if not any(views.values()):
            logger.info("No interesting markets this cycle, skipping")
            return

        choices = self.decide(views, category, verbose=verbose)
        if not choices:
            logger.info("Agent chose not to post this cycle")
            return

        for choice in choices:
            text = self.render(choice, views, category)
            if not text:
                continue
            if verbose:
                logger.info(f"Post ({choice.format} from {choice.view}):\n{text}")
            self.last_posts.append(text)
            if not self.publisher.publish(text):
                logger.warning(f"Post from {choice.view} was not delivered")

        logger.info(f"Step complete: {len(self.last_posts)} post(s) rendered")

    def decide(
        self,
        views: dict[str, list[ClassifiedMarket]],
        category: str,
        verbose: bool = False
    ) -> list[PostChoice]:
        """
        Ask the model which markets to post about.

        Malformed replies are retried; after max_retries the cycle posts nothing.

        Args:
            views: Market views keyed by name
            category: Spotlight category
            verbose: Log the prompt size

        Returns:
            List of PostChoice, at most max_posts long
        """
        prompt = build_decision_prompt(views, category, self.max_posts)
        if verbose:
            logger.info(f"Decision prompt: {len(prompt)} characters")

        for attempt in range(1, self.max_retries + 1):
            logger.debug(f"Decision attempt {attempt}/{self.max_retries}")
            reply = self.llm.complete(prompt, system=f"{AGENT_GOAL}\n\n{AGENT_DESCRIPTION}")

            choices = parse_decision(reply, views, self.max_posts)
            if choices is not None:
                reason = (safe_json_loads(reply, default={}) or {}).get("reason", "")
                if reason:
                    logger.info(f"Agent reasoning: {str(reason)[:200]}")
                return choices

            logger.warning(f"Malformed decision from model (attempt {attempt})")

        logger.error(f"No valid decision after {self.max_retries} attempts")
        return []

    def render(
        self,
        choice: PostChoice,
        views: dict[str, list[ClassifiedMarket]],
        category: str
    ) -> Optional[str]:
        markets = [views[choice.view][i] for i in choice.indices]
        try:
            return compose_post(
                choice.format,
                markets,
                category=category if choice.view == "category" else None,
                max_length=Config.MAX_POST_LENGTH,
            )
        except ValueError as e:
            logger.warning(f"Could not render post: {e}")
            return None


def build_decision_prompt(
    views: dict[str, list[ClassifiedMarket]],
    category: str,
    max_posts: int
) -> str:
    """
    Build a deterministic prompt describing the market views.

    Args:
        views: Market views keyed by name
        category: Spotlight category
        max_posts: Maximum posts the model may choose

    Returns:
        Prompt string
    """
    sections = []
    for name, markets in views.items():
        title = f"{name} ({category})" if name == "category" else name
        listing = [dict(index=i, **m.to_dict()) for i, m in enumerate(markets)]
        sections.append(f"VIEW {title}:\n{json.dumps(listing, indent=2)}")

    formats = ", ".join(FORMATS)
    defaults = ", ".join(f"{view} -> {fmt}" for view, fmt in DEFAULT_FORMAT_BY_VIEW.items())

    return f"""Here are the current Polymarket views. Each market has an index within its view.

{chr(10).join(sections)}

Choose up to {max_posts} posts. Each post features markets from ONE view.
Available formats: {formats}.
Usual pairing: {defaults}. "crowd_says" works with any single market.
"category_roundup" features up to 3 markets; every other format features exactly 1.

Return ONLY valid JSON (no markdown, no code blocks, no explanatory text). Use this exact structure:

{{
  "posts": [
    {{"view": "trending", "format": "trending", "indices": [0]}}
  ],
  "reason": "One sentence on why these markets are interesting"
}}

Return {{"posts": [], "reason": "..."}} if nothing is worth posting."""


def parse_decision(
    reply: str,
    views: dict[str, list[ClassifiedMarket]],
    max_posts: int
) -> Optional[list[PostChoice]]:
    """
    Parse and validate the model's post selection.

    Invalid individual posts (unknown view or format, bad indices) are dropped.
    A reply that is not a JSON object with a "posts" list is rejected.

    Args:
        reply: Raw model reply
        views: Market views the indices refer to
        max_posts: Maximum posts kept

    Returns:
        List of PostChoice, or None if the reply is malformed
    """
    data = safe_json_loads(reply)
    if not isinstance(data, dict) or not isinstance(data.get("posts"), list):
        return None

    choices: list[PostChoice] = []
    for item in data["posts"]:
        if not isinstance(item, dict):
            continue

        view = item.get("view")
        if not isinstance(view, str) or view not in views or not views[view]:
            logger.debug(f"Dropping post with unknown or empty view: {view}")
            continue

        fmt = item.get("format") or DEFAULT_FORMAT_BY_VIEW.get(view)
        if not isinstance(fmt, str) or fmt not in FORMATS:
            logger.debug(f"Dropping post with unknown format: {fmt}")
            continue

        raw_indices = item.get("indices")
        if not isinstance(raw_indices, list) or not raw_indices:
            raw_indices = [0]

        size = len(views[view])
        indices = tuple(
            i for i in raw_indices
            if isinstance(i, int) and not isinstance(i, bool) and 0 <= i < size
        )
        if not indices:
            logger.debug(f"Dropping post with out-of-range indices: {raw_indices}")
            continue

        choices.append(PostChoice(view=view, format=fmt, indices=indices))
        if len(choices) >= max_posts:
            break

    return choices
