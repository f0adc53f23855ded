"""LLM Service - Anthropic Claude API wrapper."""

import logging
from dataclasses import dataclass

import anthropic
from anthropic import AsyncAnthropic

from src.shared.config import get_settings
from src.shared.exceptions import ConfigurationError, LLMServiceError

settings = get_settings()
logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    """Response from LLM completion."""

    content: str
    model: str
    usage: dict[str, int]
    stop_reason: str | None = None


class LLMService:
    """Service for interacting with Anthropic Claude API."""

    def __init__(self, client: AsyncAnthropic | None = None) -> None:
        if client is None:
            if not settings.anthropic_api_key:
                raise ConfigurationError("ANTHROPIC_API_KEY is required for LLM turn generation")
            client = AsyncAnthropic(api_key=settings.anthropic_api_key)
        self.client = client
        self.default_model = settings.default_model
        self.max_tokens = settings.max_tokens

    async def complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> LLMResponse:
        """Generate a completion from the LLM.

        Args:
            prompt: The user prompt
            system_prompt: Optional system prompt
            model: Model to use (defaults to settings.default_model)
            max_tokens: Maximum tokens in response
            temperature: Sampling temperature

        Returns:
            LLMResponse with content and metadata

        Raises:
            LLMServiceError: If the API call fails or returns no text
        """
        messages = [{"role": "user", "content": prompt}]

        try:
            response = await self.client.messages.create(
                model=model or self.default_model,
                max_tokens=max_tokens or self.max_tokens,
                temperature=settings.temperature if temperature is None else temperature,
                system=system_prompt or "",
                messages=messages,
            )
        except anthropic.APIError as e:
            logger.warning(f"LLM request failed: {e}")
            raise LLMServiceError(str(e)) from e

        if not response.content:
            raise LLMServiceError("Invalid API response format")

        return LLMResponse(
            content=response.content[0].text,
            model=response.model,
            usage={
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
            },
            stop_reason=response.stop_reason,
        )


# Singleton instance
_llm_service: LLMService | None = None


def get_llm_service() -> LLMService:
    """Get LLM service singleton."""
    global _llm_service
    if _llm_service is None:
        _llm_service = LLMService()
    return _llm_service
