"""LLM provider clients used for story analysis.

``create_llm_client`` picks the provider from settings. Every client
exposes the same ``generate_content`` coroutine returning the model's text.
"""

import asyncio
from enum import Enum
from typing import Any, Dict, Optional, Protocol

import httpx
from google import genai
from google.genai import types
from httpx import HTTPStatusError, TimeoutException

from istory.core.config import LLMSettings
from istory.core.exceptions import APIClientError, APITimeoutError, ConfigurationError
from istory.utils.logging import get_logger

LOGGER = get_logger(__name__)


class LLMProvider(str, Enum):
    """Supported LLM providers."""
    GEMINI = "gemini"
    OPENROUTER = "openrouter"


class LLMClient(Protocol):
    model: str

    async def generate_content(
        self,
        contents: str,
        system_instruction: Optional[str] = None,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> str:
        ...


class BaseLLMClient:
    """HTTP transport for JSON LLM APIs.

    Handles retries with exponential backoff, timeouts and error logging.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: int = 60,
        max_retries: int = 1,
        retry_delay: int = 2
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.logger = LOGGER

    async def call_api(
        self,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        """POST a JSON payload and return the decoded response.

        Raises:
            APIClientError: If the API call fails after retries
            APITimeoutError: If the API call times out after retries
        """
        request_headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if headers:
            request_headers.update(headers)

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for attempt in range(self.max_retries):
                try:
                    response = await client.post(self.base_url, headers=request_headers, json=payload)
                    response.raise_for_status()
                    return response.json()

                except HTTPStatusError as e:
                    await self._handle_http_error(e, attempt)

                except TimeoutException as e:
                    await self._handle_timeout_error(e, attempt)

                except httpx.HTTPError as e:
                    await self._handle_generic_error(e, attempt)

        raise APIClientError(f"Failed to call API {self.base_url} after {self.max_retries} attempts")

    async def _handle_http_error(self, error: HTTPStatusError, attempt: int):
        status_code = error.response.status_code
        error_body = error.response.text

        self.logger.warning(
            f"API HTTP error (Attempt {attempt + 1}/{self.max_retries})",
            extra={"url": self.base_url, "status_code": status_code, "error_body": error_body[:500]}
        )

        # Client errors other than rate limiting are not retried
        if 400 <= status_code < 500 and status_code != 429:
            raise APIClientError(f"API Client Error {status_code}: {error_body}") from error

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise APIClientError(f"API HTTP Error {status_code} after retries") from error

    async def _handle_timeout_error(self, error: TimeoutException, attempt: int):
        self.logger.warning(
            f"API Timeout (Attempt {attempt + 1}/{self.max_retries})",
            extra={"url": self.base_url}
        )

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise APITimeoutError(f"API Timeout after {self.max_retries} attempts") from error

    async def _handle_generic_error(self, error: Exception, attempt: int):
        self.logger.warning(
            f"API Error (Attempt {attempt + 1}/{self.max_retries})",
            extra={"url": self.base_url, "error": str(error)}
        )

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise APIClientError(f"API Error: {str(error)}") from error

    async def _wait_before_retry(self, attempt: int):
        await asyncio.sleep(self.retry_delay * (2 ** attempt))


class GeminiClient:
    """Wrapper for the Google Gemini API client."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        timeout: int = 60,
        max_retries: int = 1,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.client = genai.Client(
            api_key=self.api_key,
            http_options=types.HttpOptions(timeout=timeout * 1000),
        )
        LOGGER.info(f"Initialized Gemini client with model {self.model}")

    async def generate_content(
        self,
        contents: str,
        system_instruction: Optional[str] = None,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Generate content using the Gemini model.

        Returns:
            Generated text, empty when the model returned nothing

        Raises:
            APIClientError: If generation fails
        """
        config = types.GenerateContentConfig()
        if generation_config:
            if "temperature" in generation_config:
                config.temperature = generation_config["temperature"]
            if "max_output_tokens" in generation_config:
                config.max_output_tokens = generation_config["max_output_tokens"]
            if "response_mime_type" in generation_config:
                config.response_mime_type = generation_config["response_mime_type"]
        if system_instruction:
            config.system_instruction = system_instruction

        for attempt in range(self.max_retries):
            try:
                response = await self.client.aio.models.generate_content(
                    model=self.model,
                    contents=contents,
                    config=config,
                )
                if not response.text:
                    LOGGER.warning("Empty response from Gemini")
                    return ""
                return response.text

            except Exception as e:
                LOGGER.warning(f"Gemini API error (Attempt {attempt + 1}/{self.max_retries}): {e}")
                if attempt < self.max_retries - 1:
                    await asyncio.sleep(2 ** attempt)
                else:
                    raise APIClientError(f"Gemini generation failed: {e}", original_error=e) from e

        raise APIClientError("Gemini generation failed")


class OpenRouterClient:
    """OpenRouter chat-completions client with the GeminiClient interface."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://openrouter.ai/api/v1/chat/completions",
        timeout: int = 60,
        max_retries: int = 1,
    ):
        self.model = model
        self.client = BaseLLMClient(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
        )
        LOGGER.info(f"Initialized OpenRouter client with model {self.model}")

    async def generate_content(
        self,
        contents: str,
        system_instruction: Optional[str] = None,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> str:
        messages = []
        if system_instruction:
            messages.append({"role": "system", "content": system_instruction})
        messages.append({"role": "user", "content": contents})

        payload: Dict[str, Any] = {"model": self.model, "messages": messages}
        if generation_config:
            if "temperature" in generation_config:
                payload["temperature"] = generation_config["temperature"]
            if "max_output_tokens" in generation_config:
                payload["max_tokens"] = generation_config["max_output_tokens"]
            if generation_config.get("response_mime_type") == "application/json":
                payload["response_format"] = {"type": "json_object"}

        response = await self.client.call_api(payload=payload)

        choices = response.get("choices") or []
        if not choices:
            raise APIClientError("Invalid response from OpenRouter: no choices")

        content = choices[0].get("message", {}).get("content") or ""
        if not content:
            LOGGER.warning("Empty response from OpenRouter")
        return content


def create_llm_client(llm_settings: LLMSettings) -> LLMClient:
    """Build the client for the configured provider.

    Raises:
        ConfigurationError: If the provider is unknown or its API key is missing
    """
    try:
        provider = LLMProvider(llm_settings.provider)
    except ValueError as e:
        raise ConfigurationError(f"Unsupported LLM provider: {llm_settings.provider}") from e

    if not llm_settings.api_key:
        LOGGER.error(f"{provider.value} API key is not configured")
        raise ConfigurationError("Server configuration error: API Key missing")

    if provider == LLMProvider.OPENROUTER:
        return OpenRouterClient(
            api_key=llm_settings.openrouter_api_key,
            model=llm_settings.openrouter_model,
            base_url=llm_settings.openrouter_api_url,
            timeout=llm_settings.timeout_seconds,
            max_retries=llm_settings.max_retries,
        )

    return GeminiClient(
        api_key=llm_settings.gemini_api_key,
        model=llm_settings.gemini_model,
        timeout=llm_settings.timeout_seconds,
        max_retries=llm_settings.max_retries,
    )
