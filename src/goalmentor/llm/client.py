"""
HTTP wrapper for OpenAI-compatible /v1/chat/completions endpoints.

Failures are raised as distinct exception types so the host can tell a
missing key from a rate limit or a region restriction and show the right
message. The engine itself never retries; the client only retries transport
failures, and only when LLM_MAX_RETRIES asks it to.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from ..core.config import env_int, load_dotenv

logger = logging.getLogger(__name__)

REGION_MARKERS = ("unsupported_country_region_territory", "region", "country")


class LLMAPIError(Exception):
    """Raised when the LLM API returns an error."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        super().__init__(f"LLM API error {status_code}: {message}")


class LLMAuthError(LLMAPIError):
    """Missing, invalid or unauthorised API key."""


class LLMRateLimitError(LLMAPIError):
    """Provider returned 429."""

    def __init__(self, status_code: int, message: str, retry_after: Optional[str] = None):
        self.retry_after = retry_after
        super().__init__(status_code, message)


class LLMRegionError(LLMAPIError):
    """Provider refuses to serve the caller's country or region."""


class LLMUnavailableError(LLMAPIError):
    """Timeouts, connection failures and 5xx responses."""


def error_for_response(resp: requests.Response) -> LLMAPIError:
    """Map a non-200 response to the matching exception."""
    status = resp.status_code
    text = resp.text or ""
    if status == 401:
        return LLMAuthError(status, text)
    if status == 403:
        lowered = text.lower()
        if any(marker in lowered for marker in REGION_MARKERS):
            return LLMRegionError(status, text)
        return LLMAuthError(status, text)
    if status == 429:
        retry_after = resp.headers.get("Retry-After")
        return LLMRateLimitError(
            status, f"Rate limited (Retry-After: {retry_after or '?'}s)", retry_after
        )
    if status == 408 or status >= 500:
        return LLMUnavailableError(status, text)
    return LLMAPIError(status, text)


@dataclass
class ChatClient:
    """
    HTTP wrapper for OpenAI-compatible /v1/chat/completions endpoints.

    Configure via environment variables:
        LLM_API_KEY / OPENAI_API_KEY — API key
        LLM_BASE_URL — API base URL (default: OpenAI)
        LLM_MODEL — Default model name (default: gpt-4o-mini)
        LLM_TIMEOUT — Request timeout in seconds (default: 30)
        LLM_MAX_RETRIES — Retries on timeouts/connection errors (default: 0)
    """

    api_key: str = ""
    model: str = ""
    base_url: str = ""
    timeout: float = 0.0
    max_retries: int = -1

    def __post_init__(self):
        load_dotenv()
        if not self.base_url:
            self.base_url = os.environ.get(
                "LLM_BASE_URL", "https://api.openai.com/v1"
            ).strip().rstrip("/")
        if not self.model:
            self.model = os.environ.get("LLM_MODEL", "gpt-4o-mini").strip()
        if not self.api_key:
            self.api_key = self._load_api_key()
        if self.timeout <= 0:
            self.timeout = float(env_int("LLM_TIMEOUT", 30))
        if self.max_retries < 0:
            self.max_retries = env_int("LLM_MAX_RETRIES", 0)

    def _load_api_key(self) -> str:
        """Load API key from environment variable ("" when none is set)."""
        for env_var in ("LLM_API_KEY", "OPENAI_API_KEY"):
            key = os.environ.get(env_var, "").strip()
            if key:
                return key
        return ""

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _do_request(self, url: str, body: Dict[str, Any]) -> str:
        """Make a single chat completion request. Returns content or raises."""
        try:
            resp = requests.post(url, headers=self._headers(), json=body, timeout=self.timeout)
        except requests.exceptions.Timeout:
            raise LLMUnavailableError(408, "Request timed out")
        except requests.exceptions.ConnectionError as e:
            raise LLMUnavailableError(0, f"Connection error: {e}")

        if resp.status_code == 200:
            data = resp.json()
            message = data["choices"][0]["message"]
            return message.get("content") or ""

        raise error_for_response(resp)

    def chat_completion(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.7,
        max_tokens: int = 500,
        response_format: Optional[Dict[str, str]] = None,
    ) -> str:
        """
        Call /v1/chat/completions.

        Returns the assistant's response content as a string.
        Raises an LLMAPIError subclass on failure.
        """
        if not self.api_key:
            raise LLMAuthError(401, "No LLM_API_KEY or OPENAI_API_KEY found in env or .env file")

        body: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if response_format is not None:
            body["response_format"] = response_format

        url = f"{self.base_url}/chat/completions"

        for attempt in range(self.max_retries + 1):
            try:
                return self._do_request(url, body)
            except LLMUnavailableError as e:
                if attempt >= self.max_retries:
                    raise
                logger.warning(
                    f"[LLMClient] {e} (attempt {attempt + 1}/{self.max_retries + 1})"
                )
                time.sleep(2 ** attempt)
        raise LLMUnavailableError(0, "No attempt made")

    @property
    def is_available(self) -> bool:
        """Check if the client has an API key configured."""
        return bool(self.api_key)
