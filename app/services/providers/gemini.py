"""Google Gemini adapter over the generateContent REST API."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from app.core.errors import (
    InvalidCredentialsError,
    ProviderError,
    ProviderTimeoutError,
    ProviderUnavailableError,
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

RETRY_INFO_TYPE = "type.googleapis.com/google.rpc.RetryInfo"


def candidate_text(data: Dict[str, Any]) -> Optional[str]:
    """Concatenate the text parts of the first candidate.

    Anything that does not have the documented shape yields ``None`` so the
    validator rejects the reply as malformed.
    """

    candidates = data.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return None
    content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return None
    texts = [
        part["text"]
        for part in parts
        if isinstance(part, dict) and isinstance(part.get("text"), str)
    ]
    return "".join(texts) if texts else None


class GeminiAdapter(ProviderAdapter):
    provider_id = ProviderId.GEMINI
    display_name = "Gemini"
    features = ["chat", "multimodal", "system-instructions", "json-mode"]
    pricing = {
        "gemini-1.5-pro": 7.0,
        "gemini-1.5-flash": 0.35,
        "gemini-pro": 0.5,
        "gemini-pro-vision": 2.5,
    }

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://generativelanguage.googleapis.com",
        timeout: float = 30.0,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        default_retry_after: float = DEFAULT_RETRY_AFTER_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(model)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.default_retry_after = default_retry_after
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def _headers(self) -> Dict[str, str]:
        return {"x-goog-api-key": self.api_key, "Content-Type": "application/json"}

    def build_payload(self, prompt: PromptBundle) -> Dict[str, Any]:
        """Translate chat messages into Gemini ``contents``."""

        contents: List[Dict[str, Any]] = [
            {
                "role": "model" if message["role"] == "assistant" else "user",
                "parts": [{"text": message["content"]}],
            }
            for message in prompt.messages
        ]
        return {
            "contents": contents,
            "systemInstruction": {"parts": [{"text": prompt.system}]},
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_tokens,
                "responseMimeType": "application/json",
            },
        }

    async def invoke(self, request: AskRequest, prompt: PromptBundle) -> ProviderReply:
        url = f"{self.base_url}/v1beta/models/{self.model}:generateContent"
        start_time = time.perf_counter()
        try:
            response = await self._client.post(
                url, headers=self._headers, json=self.build_payload(prompt)
            )
        except httpx.TimeoutException as exc:
            raise ProviderTimeoutError("Gemini request timed out", self.name) from exc
        except httpx.HTTPError as exc:
            raise ProviderUnavailableError(f"Gemini is unreachable: {exc}", self.name) from exc
        latency_ms = int((time.perf_counter() - start_time) * 1000)

        if response.status_code >= 400:
            raise self._error_for(response)

        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            data = {}

        text = candidate_text(data)
        usage = data.get("usageMetadata")
        total = usage.get("totalTokenCount") if isinstance(usage, dict) else None
        tokens = 0
        if isinstance(total, int) and not isinstance(total, bool) and total > 0:
            tokens = total
        if not tokens and text:
            tokens = estimate_tokens(text)

        model = data.get("modelVersion")
        if not isinstance(model, str) or not model:
            model = self.model
        return ProviderReply(
            provider=self.provider_id,
            payload=decode_payload(text),
            model=model,
            tokens=tokens,
            cost=self.estimate_cost(tokens),
            latency_ms=latency_ms,
        )

    async def health_check(self) -> bool:
        try:
            response = await self._client.get(
                f"{self.base_url}/v1beta/models", headers=self._headers
            )
        except httpx.HTTPError as exc:
            logger.warning("Health check failed for gemini: %s", exc)
            return False
        return response.status_code == 200

    async def aclose(self) -> None:
        await self._client.aclose()

    def _error_for(self, response: httpx.Response) -> ProviderError:
        status_code = response.status_code
        message = response.reason_phrase or "error"
        error_info: Dict[str, Any] = {}
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            error_info = body["error"]
            if isinstance(error_info.get("message"), str):
                message = error_info["message"] or message

        if status_code in (401, 403) or "API_KEY_INVALID" in response.text:
            return InvalidCredentialsError("Invalid Gemini API key", self.name)
        if status_code == 429:
            hint = response.headers.get("Retry-After")
            details = error_info.get("details")
            for detail in details if isinstance(details, list) else []:
                if isinstance(detail, dict) and detail.get("@type") == RETRY_INFO_TYPE:
                    delay = detail.get("retryDelay")
                    hint = hint or (delay if isinstance(delay, str) else None)
                    break
            return RateLimitedError(
                "Gemini rate limit exceeded",
                self.name,
                retry_after_seconds=parse_retry_after(hint, self.default_retry_after),
            )
        return ProviderUnavailableError(f"Gemini error {status_code}: {message}", self.name)
