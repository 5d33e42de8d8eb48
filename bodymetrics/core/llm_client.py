"""OpenAI-compatible chat completion client.

Serves both capabilities the pipeline consumes from a model provider: plain
text generation (analysis) and image-to-text extraction (report photos).
OpenAI and OpenRouter expose the same chat-completions wire format, so one
client covers both providers.
"""

import base64
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from bodymetrics.core.base_llm_client import BaseLLMClient
from bodymetrics.core.exceptions import APIClientError
from bodymetrics.schemas.llm import LLMResponse, LLMUsage
from bodymetrics.utils.logging import get_logger

LOGGER = get_logger(__name__)


class LLMProvider(str, Enum):
    """Supported LLM providers."""
    OPENAI = "openai"
    OPENROUTER = "openrouter"


DEFAULT_API_URLS = {
    LLMProvider.OPENAI: "https://api.openai.com/v1/chat/completions",
    LLMProvider.OPENROUTER: "https://openrouter.ai/api/v1/chat/completions",
}


class ChatCompletionClient:
    """Wrapper around a chat-completions endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str,
        timeout: int = 60,
        max_retries: int = 2,
        retry_delay: int = 2,
    ):
        """Initialize chat completion client.

        Args:
            api_key: Provider API key
            model: Default model name for requests
            base_url: Full chat-completions URL
            timeout: Request timeout in seconds
            max_retries: Maximum transport attempts
            retry_delay: Base delay for exponential backoff
        """
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.client = BaseLLMClient(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
            retry_delay=retry_delay,
        )

        LOGGER.info(f"Initialized chat completion client with model {self.model}")

    async def generate_text(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.0,
        json_mode: bool = False,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> LLMResponse:
        """Generate a completion for a system + user prompt pair.

        Args:
            system_prompt: Instruction message
            user_prompt: The only variable input
            temperature: Sampling temperature
            json_mode: Request a JSON-object response format
            model: Optional model override
            max_tokens: Optional completion token cap

        Returns:
            LLMResponse with text, token usage and the model that answered

        Raises:
            APIClientError: If generation fails
        """
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        return await self._complete(messages, temperature, json_mode, model, max_tokens)

    async def extract_from_image(
        self,
        prompt: str,
        image_bytes: bytes,
        content_type: str = "image/png",
        temperature: float = 0.1,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> LLMResponse:
        """Send an image with an instruction and return the model's text.

        The image is inlined as a base64 data URL so the provider never has
        to fetch it.
        """
        encoded = base64.b64encode(image_bytes).decode("ascii")
        data_url = f"data:{content_type};base64,{encoded}"
        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {"type": "image_url", "image_url": {"url": data_url}},
                ],
            }
        ]
        return await self._complete(messages, temperature, False, model, max_tokens)

    async def _complete(
        self,
        messages: List[Dict[str, Any]],
        temperature: float,
        json_mode: bool,
        model: Optional[str],
        max_tokens: Optional[int],
    ) -> LLMResponse:
        payload: Dict[str, Any] = {
            "model": model or self.model,
            "messages": messages,
            "temperature": temperature,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}
        if max_tokens:
            payload["max_tokens"] = max_tokens

        response = await self.client.call_api(payload=payload)
        return self._parse_response(response, payload["model"])

    @staticmethod
    def _parse_response(response: Dict[str, Any], requested_model: str) -> LLMResponse:
        choices = response.get("choices") if isinstance(response, dict) else None
        if not choices:
            LOGGER.error(f"Unexpected chat completion response format: {str(response)[:300]}")
            raise APIClientError("Invalid response format from provider")

        first = choices[0] if isinstance(choices, list) else None
        message = first.get("message") if isinstance(first, dict) else None
        if not isinstance(message, dict):
            LOGGER.error(f"Unexpected chat completion choice format: {str(choices)[:300]}")
            raise APIClientError("Invalid response format from provider")

        content: Union[str, List[Any], None] = message.get("content")
        if isinstance(content, list):
            # Some providers return content parts instead of a plain string
            content = "".join(
                part.get("text", "") for part in content if isinstance(part, dict)
            )
        if not content:
            LOGGER.warning("Empty response content from provider")

        usage = response.get("usage") or {}
        return LLMResponse(
            text=content or "",
            usage=LLMUsage(
                prompt_tokens=usage.get("prompt_tokens") or 0,
                completion_tokens=usage.get("completion_tokens") or 0,
            ),
            model_id=response.get("model") or requested_model,
        )


def create_llm_client_from_settings(
    provider: str,
    api_key: str,
    model: str,
    api_url: str = "",
    timeout: int = 60,
    max_retries: int = 2,
    retry_delay: int = 2,
) -> ChatCompletionClient:
    """Create a chat completion client from configuration settings.

    Args:
        provider: "openai" or "openrouter"
        api_key: Provider API key
        model: Default model name
        api_url: Optional URL override; defaults to the provider's endpoint
        timeout: Request timeout in seconds
        max_retries: Maximum transport attempts
        retry_delay: Base backoff delay in seconds

    Returns:
        ChatCompletionClient instance

    Raises:
        ValueError: If the provider is unknown or the API key is missing
    """
    provider_enum = LLMProvider(provider.lower())
    if not api_key or not api_key.strip():
        raise ValueError(
            f"api_key required when provider='{provider_enum.value}'. "
            "Please set LLM_API_KEY environment variable."
        )

    return ChatCompletionClient(
        api_key=api_key.strip(),
        model=model,
        base_url=api_url or DEFAULT_API_URLS[provider_enum],
        timeout=timeout,
        max_retries=max_retries,
        retry_delay=retry_delay,
    )
