"""Provider abstraction for the gateway."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import Any, ClassVar, Dict, List, Optional

from app.schemas import AskRequest, ProviderId
from app.services.prompts import PromptBundle

DEFAULT_RETRY_AFTER_SECONDS = 60.0
DEFAULT_PRICE_PER_MILLION = 1.0


@dataclass
class ProviderReply:
    """Raw result of one upstream call, before validation."""

    provider: ProviderId
    payload: Any
    model: str
    tokens: int = 0
    cost: float = 0.0
    latency_ms: int = 0


class ProviderAdapter:
    """One remote call per ``invoke``, normalized in and out.

    Adapters neither retry nor validate; they raise a ``ProviderError``
    subclass for every upstream failure.
    """

    provider_id: ClassVar[ProviderId]
    display_name: ClassVar[str]
    # USD per million tokens.
    pricing: ClassVar[Dict[str, float]] = {}
    features: ClassVar[List[str]] = []

    def __init__(self, model: str) -> None:
        self.model = model

    @property
    def name(self) -> str:
        return self.provider_id.value

    async def invoke(self, request: AskRequest, prompt: PromptBundle) -> ProviderReply:  # pragma: no cover - interface
        raise NotImplementedError

    async def health_check(self) -> bool:  # pragma: no cover - interface
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release network resources held by the adapter."""

    async def stats(self) -> Dict[str, Any]:
        """Describe the adapter: configured model, known models, features and health."""

        return {
            "provider": self.name,
            "displayName": self.display_name,
            "model": self.model,
            "isHealthy": await self.health_check(),
            "features": list(self.features),
            "supportedModels": sorted(self.pricing),
            "availableModels": len(self.pricing),
        }

    def estimate_cost(self, tokens: int, model: Optional[str] = None) -> float:
        price = self.pricing.get(model or self.model, DEFAULT_PRICE_PER_MILLION)
        return (tokens / 1_000_000) * price


def decode_payload(raw: Optional[str]) -> Any:
    """Decode the model's JSON answer, returning the raw text when it is not JSON."""

    if raw is None:
        return None
    text = raw.strip()
    if not text:
        return None
    if text.startswith("```"):
        text = text.strip("`")
        if text.startswith("json"):
            text = text[4:]
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return raw


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / 4)


def parse_retry_after(
    value: Optional[str], default: float = DEFAULT_RETRY_AFTER_SECONDS
) -> float:
    """Interpret a Retry-After header given as seconds or as an HTTP date."""

    if not value:
        return default
    value = value.strip()
    try:
        seconds = float(value.rstrip("s"))
    except ValueError:
        try:
            when = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return default
        if when.tzinfo is None:
            when = when.replace(tzinfo=UTC)
        seconds = (when - datetime.now(UTC)).total_seconds()
    return max(seconds, 0.0)
