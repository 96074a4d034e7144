"""
Configuration management for the Polymarket crowd-wisdom bot.

This module handles all configuration loading from environment variables
and provides type-safe access to configuration values throughout the application.
"""

import os
from typing import Optional
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file if it exists
load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: str) -> list[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


class Config:
    """
    Centralized configuration class for the crowd-wisdom bot.

    All configuration values are loaded from environment variables with
    sensible defaults where appropriate. API keys must be provided via
    environment variables for security.
    """

    # API Keys (required)
    ANTHROPIC_API_KEY: Optional[str] = os.getenv("ANTHROPIC_API_KEY")

    # Polymarket Configuration
    GAMMA_API_URL: str = os.getenv(
        "GAMMA_API_URL",
        "https://gamma-api.polymarket.com"
    )
    MAX_MARKETS_TO_SCAN: int = int(os.getenv("MAX_MARKETS_TO_SCAN", "100"))
    TRENDING_MARKETS_TO_SCAN: int = int(os.getenv("TRENDING_MARKETS_TO_SCAN", "50"))

    # Classification thresholds
    TRENDING_MIN_VOLUME: float = float(os.getenv("TRENDING_MIN_VOLUME", "5000"))
    UNCERTAIN_MIN_VOLUME: float = float(os.getenv("UNCERTAIN_MIN_VOLUME", "3000"))
    SPOTLIGHT_CATEGORIES: list[str] = _env_list(
        "SPOTLIGHT_CATEGORIES",
        "politics,crypto,sports,economics,tech"
    )

    # AI Model Configuration
    ANTHROPIC_API_URL: str = os.getenv("ANTHROPIC_API_URL", "https://api.anthropic.com")
    CLAUDE_MODEL: str = os.getenv("CLAUDE_MODEL", "claude-3-5-sonnet-20241022")
    CLAUDE_TEMPERATURE: float = float(os.getenv("CLAUDE_TEMPERATURE", "0.7"))
    CLAUDE_MAX_TOKENS: int = int(os.getenv("CLAUDE_MAX_TOKENS", "1024"))
    LLM_MAX_RETRIES: int = int(os.getenv("LLM_MAX_RETRIES", "2"))

    # Posting
    MAX_POSTS_PER_CYCLE: int = int(os.getenv("MAX_POSTS_PER_CYCLE", "2"))
    MAX_POST_LENGTH: int = int(os.getenv("MAX_POST_LENGTH", "280"))
    DRY_RUN: bool = _env_bool("DRY_RUN")

    # Request Timeouts (seconds)
    API_TIMEOUT: int = int(os.getenv("API_TIMEOUT", "10"))

    # Scheduler Configuration
    CHECK_INTERVAL_HOURS: float = float(os.getenv("CHECK_INTERVAL_HOURS", "2"))
    SCHEDULER_TIMEZONE: str = os.getenv("SCHEDULER_TIMEZONE", "UTC")
    CYCLE_TIMEOUT_SECONDS: float = float(os.getenv("CYCLE_TIMEOUT_SECONDS", "600"))

    # Initialization backoff
    INIT_MAX_RETRIES: int = int(os.getenv("INIT_MAX_RETRIES", "5"))
    INIT_BASE_DELAY: float = float(os.getenv("INIT_BASE_DELAY", "1.0"))
    INIT_MAX_DELAY: float = float(os.getenv("INIT_MAX_DELAY", "60.0"))
    INIT_COOLDOWN_SECONDS: float = float(os.getenv("INIT_COOLDOWN_SECONDS", "300"))

    # Crash handling
    RATE_LIMIT_RESTART_DELAY: float = float(os.getenv("RATE_LIMIT_RESTART_DELAY", "60"))
    CRASH_EXIT_DELAY: float = float(os.getenv("CRASH_EXIT_DELAY", "1"))

    # Telegram Configuration (optional)
    TELEGRAM_BOT_TOKEN: Optional[str] = os.getenv("TELEGRAM_BOT_TOKEN")
    TELEGRAM_CHAT_ID: Optional[str] = os.getenv("TELEGRAM_CHAT_ID")

    # Logging Configuration
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE: Optional[Path] = Path(os.getenv("LOG_FILE", "logs/bot.log")) if os.getenv("LOG_FILE") else None

    @classmethod
    def validate(cls) -> tuple[bool, list[str]]:
        """
        Validate that all required configuration values are present.

        Returns:
            tuple: (is_valid, list_of_errors)
        """
        errors: list[str] = []

        if not cls.ANTHROPIC_API_KEY:
            errors.append("ANTHROPIC_API_KEY is required but not set")

        # Validate numeric ranges
        if cls.MAX_MARKETS_TO_SCAN < 1:
            errors.append("MAX_MARKETS_TO_SCAN must be at least 1")

        if cls.TRENDING_MIN_VOLUME < 0:
            errors.append("TRENDING_MIN_VOLUME cannot be negative")

        if cls.UNCERTAIN_MIN_VOLUME < 0:
            errors.append("UNCERTAIN_MIN_VOLUME cannot be negative")

        if cls.MAX_POSTS_PER_CYCLE < 1:
            errors.append("MAX_POSTS_PER_CYCLE must be at least 1")

        if cls.CHECK_INTERVAL_HOURS <= 0:
            errors.append("CHECK_INTERVAL_HOURS must be positive")

        if cls.INIT_MAX_RETRIES < 1:
            errors.append("INIT_MAX_RETRIES must be at least 1")

        if not (0.0 <= cls.CLAUDE_TEMPERATURE <= 1.0):
            errors.append("CLAUDE_TEMPERATURE must be between 0.0 and 1.0")

        return (len(errors) == 0, errors)

    @classmethod
    def ensure_directories(cls) -> None:
        """Create the log directory if file logging is enabled."""
        if cls.LOG_FILE:
            cls.LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
