"""Adapters for providers exposing the OpenAI chat-completions API."""

from __future__ import annotations

import logging
import time
from typing import Any, ClassVar, Dict, Optional

import openai
from openai import AsyncOpenAI

from app.core.errors import (
    InvalidCredentialsError,
    ProviderError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    QuotaExceededError,
    RateLimitedError,
)
from app.schemas import AskRequest, ProviderId
from app.services.prompts import PromptBundle
from app.services.providers.base import (
    DEFAULT_RETRY_AFTER_SECONDS,
    ProviderAdapter,
    ProviderReply,
    decode_payload,
    estimate_tokens,
    parse_retry_after,
)

logger = logging.getLogger(__name__)


class OpenAICompatibleAdapter(ProviderAdapter):
    """Shared implementation for OpenRouter and Z.AI."""

    default_headers: ClassVar[Dict[str, str]] = {}

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str,
        timeout: float = 30.0,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        default_retry_after: float = DEFAULT_RETRY_AFTER_SECONDS,
        client: Optional[Any] = None,
    ) -> None:
        super().__init__(model)
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.default_retry_after = default_retry_after
        # Retries belong to the gateway's controller, not the SDK.
        self._client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
            default_headers=self.default_headers or None,
        )

    async def invoke(self, request: AskRequest, prompt: PromptBundle) -> ProviderReply:
        start_time = time.perf_counter()
        try:
            completion = await self._client.chat.completions.create(
                model=self.model,
                messages=prompt.as_chat(),
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                response_format={"type": "json_object"},
            )
        except openai.OpenAIError as exc:
            raise self._translate_error(exc) from exc
        latency_ms = int((time.perf_counter() - start_time) * 1000)

        choices = getattr(completion, "choices", None) or []
        content = choices[0].message.content if choices else None
        model = getattr(completion, "model", None) or self.model

        usage = getattr(completion, "usage", None)
        tokens = int(getattr(usage, "total_tokens", 0) or 0)
        if not tokens and content:
            tokens = estimate_tokens(content)

        return ProviderReply(
            provider=self.provider_id,
            payload=decode_payload(content),
            model=model,
            tokens=tokens,
            cost=self.estimate_cost(tokens, model),
            latency_ms=latency_ms,
        )

    async def health_check(self) -> bool:
        try:
            await self._client.models.list()
        except openai.OpenAIError as exc:
            logger.warning("Health check failed for %s: %s", self.name, exc)
            return False
        return True

    async def aclose(self) -> None:
        close = getattr(self._client, "close", None)
        if close is not None:
            await close()

    def _translate_error(self, exc: openai.OpenAIError) -> ProviderError:
        name = self.display_name
        if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
            return InvalidCredentialsError(f"Invalid {name} API key", self.name)
        if isinstance(exc, openai.RateLimitError):
            retry_after = parse_retry_after(
                exc.response.headers.get("retry-after"), self.default_retry_after
            )
            return RateLimitedError(
                f"{name} rate limit exceeded", self.name, retry_after_seconds=retry_after
            )
        if isinstance(exc, openai.APITimeoutError):
            return ProviderTimeoutError(f"{name} request timed out", self.name)
        if isinstance(exc, openai.APIConnectionError):
            return ProviderUnavailableError(f"{name} is unreachable", self.name)
        if isinstance(exc, openai.APIStatusError):
            if exc.status_code == 402:
                return QuotaExceededError(f"{name} credit quota exceeded", self.name)
            return ProviderUnavailableError(
                f"{name} API error {exc.status_code}: {exc.message}", self.name
            )
        return ProviderUnavailableError(f"{name} client error: {exc}", self.name)


class OpenRouterAdapter(OpenAICompatibleAdapter):
    provider_id = ProviderId.OPENROUTER
    display_name = "OpenRouter"
    features = ["chat", "system-messages", "json-mode"]
    default_headers = {"X-Title": "AI Learning Platform"}
    pricing = {
        "anthropic/claude-3-sonnet": 15.0,
        "anthropic/claude-3-haiku": 0.25,
        "anthropic/claude-3-opus": 75.0,
        "openai/gpt-4": 30.0,
        "openai/gpt-4-turbo": 10.0,
        "openai/gpt-3.5-turbo": 0.5,
        "google/gemini-pro": 0.5,
        "meta-llama/llama-3-8b-instruct": 0.05,
        "meta-llama/llama-3-70b-instruct": 0.5,
    }


class ZAIAdapter(OpenAICompatibleAdapter):
    provider_id = ProviderId.ZAI
    display_name = "Z.AI"
    features = ["completions", "chat", "content-analysis", "json-mode"]
    default_headers = {"User-Agent": "AI-Learning-Platform/1.0"}
    pricing = {
        "zai-gpt-4": 30.0,
        "zai-gpt-4-turbo": 10.0,
        "zai-gpt-3.5-turbo": 0.5,
        "zai-gpt-3.5-turbo-16k": 3.0,
    }
