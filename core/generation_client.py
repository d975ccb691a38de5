# core/generation_client.py
"""
Handles all direct interactions with the external generative text service.
Defines the narrow GenerationClient capability the request controller depends
on and an asynchronous httpx implementation for the Gemini REST API.

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

    http://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.

Copyright 2025 Dennis Lewis
"""

# Standard library imports
from abc import ABC, abstractmethod

# Type hints
from typing import Any

# Third-party imports
import httpx
import structlog

# Local imports
from config import settings
from core.exceptions import ServiceError

logger = structlog.get_logger(__name__)


class GenerationClient(ABC):
    """
    Abstract generation boundary.
    Controller code must depend ONLY on this interface.
    """

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """Return the service's text for ``prompt`` or raise ServiceError."""
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release any transport resources held by the client."""


class GeminiGenerationClient(GenerationClient):
    """GenerationClient backed by the Gemini ``generateContent`` endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str = settings.GENERATION_MODEL,
        api_base: str = settings.GEMINI_API_BASE,
        timeout: float = settings.HTTPX_TIMEOUT,
    ):
        self._api_key = api_key
        self.model = model
        self.api_base = api_base.rstrip("/")
        # One async client per generation client so connections are reused
        self._client = httpx.AsyncClient(timeout=timeout)
        self.request_count = 0
        logger.info(f"GeminiGenerationClient initialized for model '{self.model}'.")

    @property
    def endpoint(self) -> str:
        return f"{self.api_base}/models/{self.model}:generateContent"

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    def _log_usage(self, usage_data: dict[str, Any] | None) -> None:
        """Helper to log token usage if the service reported it."""
        if usage_data and isinstance(usage_data, dict):
            logger.info(
                f"Gemini ('{self.model}') Usage - Prompt: {usage_data.get('promptTokenCount', 'N/A')} tk, "
                f"Comp: {usage_data.get('candidatesTokenCount', 'N/A')} tk, Total: {usage_data.get('totalTokenCount', 'N/A')} tk"
            )
        else:
            logger.debug(
                f"Gemini ('{self.model}') response missing 'usageMetadata' information."
            )

    @staticmethod
    def _extract_text(data: Any) -> str:
        """Concatenate the text parts of the first candidate."""
        if not isinstance(data, dict):
            raise ServiceError("Malformed response: expected a JSON object.")
        candidates = data.get("candidates") or []
        if not isinstance(candidates, list):
            raise ServiceError("Malformed response: 'candidates' is not a list.")
        if not candidates:
            feedback = data.get("promptFeedback", {})
            reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
            if reason:
                raise ServiceError(f"Request was blocked by the service: {reason}")
            raise ServiceError("Malformed response: no candidates returned.")
        first = candidates[0] if isinstance(candidates[0], dict) else {}
        content = first.get("content") or {}
        parts = content.get("parts") if isinstance(content, dict) else None
        parts = parts or []
        text = "".join(
            part["text"]
            for part in parts
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        )
        if not text:
            raise ServiceError("Malformed response: candidate contained no text.")
        return text

    @staticmethod
    def _describe_status_error(exc: httpx.HTTPStatusError) -> str:
        status_code = exc.response.status_code
        try:
            body = exc.response.json()
            message = body.get("error", {}).get("message")
        except (ValueError, AttributeError):
            message = None
        if not message:
            message = exc.response.text[:200] or exc.response.reason_phrase
        return f"HTTP {status_code}: {message}"

    async def generate(self, prompt: str) -> str:
        """Send ``prompt`` once and return the generated text. No retries."""
        if not prompt or not isinstance(prompt, str) or not prompt.strip():
            raise ServiceError("Prompt must be a non-empty string.")
        if not self._api_key:
            raise ServiceError(
                "API key is not configured. Set GEMINI_API_KEY to enable key exchange."
            )

        payload = {"contents": [{"parts": [{"text": prompt}]}]}
        headers = {
            "x-goog-api-key": self._api_key,
            "Content-Type": "application/json",
        }

        logger.debug(
            f"Async Calling Gemini '{self.model}'. Prompt chars: {len(prompt)}."
        )
        self.request_count += 1
        try:
            response = await self._client.post(
                self.endpoint, json=payload, headers=headers
            )
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e_timeout:
            logger.warning(f"Gemini ('{self.model}'): Request timed out: {e_timeout}")
            raise ServiceError(f"Request timed out: {e_timeout}") from e_timeout
        except httpx.HTTPStatusError as e_status:
            description = self._describe_status_error(e_status)
            logger.warning(f"Gemini ('{self.model}'): {description}")
            raise ServiceError(description) from e_status
        except httpx.RequestError as e_req:
            logger.warning(f"Gemini ('{self.model}'): Request error: {e_req}")
            raise ServiceError(f"Network error: {e_req}") from e_req
        except ValueError as e_json:
            logger.warning(
                f"Gemini ('{self.model}'): Failed to decode JSON response: {e_json}. "
                f"Response text: {response.text[:200]}"
            )
            raise ServiceError(f"Could not decode response: {e_json}") from e_json

        text = self._extract_text(data)
        self._log_usage(data.get("usageMetadata"))
        return text
