"""
Claude API client used by the crowd agent to decide what to post.

Calls the Anthropic Messages API directly over HTTP. Rate limiting is raised as
RateLimitedError so callers can tell it apart from other failures.
"""

import json
import logging
from typing import Optional

import requests
from requests.exceptions import RequestException, Timeout, ConnectionError

from crowdbot.config import Config
from crowdbot.errors import LLMError, RateLimitedError, RATE_LIMIT_STATUS

# Configure module logger
logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class ClaudeClient:
    """
    Minimal client for the Claude Messages API.

    Attributes:
        api_key: Anthropic API key
        model: Model name
        base_url: API base URL
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None
    ):
        self.api_key = api_key or Config.ANTHROPIC_API_KEY
        self.model = model or Config.CLAUDE_MODEL
        self.base_url = (base_url or Config.ANTHROPIC_API_URL).rstrip("/")
        self.timeout = timeout or Config.API_TIMEOUT
        self.session = session or requests.Session()

    def _headers(self) -> dict[str, str]:
        return {
            "x-api-key": self.api_key or "",
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }

    def _request(self, method: str, path: str, payload: Optional[dict] = None) -> dict:
        url = f"{self.base_url}{path}"

        try:
            response = self.session.request(
                method,
                url,
                json=payload,
                headers=self._headers(),
                timeout=self.timeout,
            )

            if response.status_code == RATE_LIMIT_STATUS:
                retry_after = response.headers.get("retry-after")
                logger.warning(f"Claude API rate limited the request (retry-after: {retry_after})")
                raise RateLimitedError("Claude API returned 429 Too Many Requests")

            response.raise_for_status()
            return response.json()

        except Timeout as e:
            logger.error(f"Claude API request timed out after {self.timeout}s")
            raise LLMError(f"Claude API timed out after {self.timeout}s") from e

        except ConnectionError as e:
            logger.error(f"Connection error calling Claude API: {e}")
            raise LLMError(f"Connection error calling Claude API: {e}") from e

        except RequestException as e:
            status = e.response.status_code if e.response is not None else None
            logger.error(f"Claude API request failed: {e}")
            if e.response is not None:
                logger.error(f"Response status: {e.response.status_code}")
                try:
                    error_body = e.response.json()
                    logger.error(f"Error details: {json.dumps(error_body, indent=2)}")
                except ValueError:
                    logger.error(f"Response text: {e.response.text[:500]}")
            raise LLMError(f"Claude API request failed: {e}", status_code=status) from e

        except ValueError as e:
            logger.error(f"Failed to parse Claude API response: {e}")
            raise LLMError(f"Invalid JSON from Claude API: {e}") from e

    def ping(self) -> None:
        """
        Check that the API key is accepted.

        Raises:
            RateLimitedError: The API answered 429
            LLMError: Any other failure (bad key, network)
        """
        logger.debug("Checking Claude API credentials")
        self._request("GET", "/v1/models?limit=1")

    def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None
    ) -> str:
        """
        Send a single-turn prompt and return the text reply.

        Args:
            prompt: User message
            system: Optional system prompt
            max_tokens: Reply token budget (default: Config.CLAUDE_MAX_TOKENS)
            temperature: Sampling temperature (default: Config.CLAUDE_TEMPERATURE)

        Returns:
            Text of the first content block

        Raises:
            RateLimitedError: The API answered 429
            LLMError: Any other failure, including an unexpected response shape
        """
        payload: dict = {
            "model": self.model,
            "max_tokens": max_tokens or Config.CLAUDE_MAX_TOKENS,
            "temperature": Config.CLAUDE_TEMPERATURE if temperature is None else temperature,
            "messages": [
                {
                    "role": "user",
                    "content": prompt
                }
            ],
        }
        if system:
            payload["system"] = system

        logger.debug(f"Calling Claude API with model {self.model}")
        data = self._request("POST", "/v1/messages", payload)

        for block in data.get("content") or []:
            if isinstance(block, dict) and "text" in block:
                content = block["text"]
                logger.debug(f"Received response of length {len(content)}")
                return content

        logger.warning("Unexpected Claude API response structure")
        logger.debug(f"Response data: {json.dumps(data, indent=2)[:500]}")
        raise LLMError("Claude API response had no text content")
