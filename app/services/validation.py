"""Shape, safety and relevance checks for provider answers."""

from __future__ import annotations

import math
import numbers
from collections.abc import Mapping
from typing import Any, List, Optional

from app.core.errors import (
    InappropriateContentError,
    IrrelevantResponseError,
    MalformedResponseError,
)
from app.schemas import AnswerEnvelope, AnswerMetadata
from app.services.providers.base import ProviderReply

DEFAULT_RELEVANCE_THRESHOLD = 0.5


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def _unit_interval(payload: Mapping, key: str, provider: str) -> Optional[float]:
    value = payload.get(key)
    if value is None:
        return None
    if not _is_number(value) or not 0.0 <= float(value) <= 1.0:
        raise MalformedResponseError(f"{key} must be a number between 0 and 1", provider)
    return float(value)


def _string_list(payload: Mapping, key: str, provider: str) -> List[str]:
    value = payload.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise MalformedResponseError(f"{key} must be a list of strings", provider)
    return list(value)


def _metadata(reply: ProviderReply, payload: Mapping) -> AnswerMetadata:
    """Accounting always comes from the provider; the model may only name itself."""

    provider = reply.provider.value
    model = reply.model
    supplied = payload.get("metadata")
    if supplied is not None:
        if not isinstance(supplied, Mapping):
            raise MalformedResponseError("metadata must be an object", provider)
        for key in ("tokens", "cost"):
            value = supplied.get(key)
            if value is not None and not (
                _is_number(value) and math.isfinite(value) and value >= 0
            ):
                raise MalformedResponseError(
                    f"metadata.{key} must be a finite non-negative number", provider
                )
        if isinstance(supplied.get("model"), str) and supplied["model"].strip():
            model = supplied["model"]
    return AnswerMetadata(model=model, tokens=max(reply.tokens, 0), cost=max(reply.cost, 0.0))


def validate(
    reply: ProviderReply, relevance_threshold: float = DEFAULT_RELEVANCE_THRESHOLD
) -> AnswerEnvelope:
    """Turn a raw provider reply into an ``AnswerEnvelope`` or raise.

    Checks run in order and stop at the first failure: shape
    (``MalformedResponseError``), safety (``InappropriateContentError``),
    relevance (``IrrelevantResponseError``).
    """

    provider = reply.provider.value
    payload = reply.payload
    if not isinstance(payload, Mapping):
        raise MalformedResponseError(
            f"{provider} returned a {type(payload).__name__} instead of an answer object",
            provider,
        )

    answer = payload.get("answer")
    if not isinstance(answer, str) or not answer.strip():
        raise MalformedResponseError(f"{provider} returned an empty answer", provider)

    confidence = payload.get("confidence")
    if not _is_number(confidence):
        raise MalformedResponseError(f"{provider} returned a non-numeric confidence", provider)
    if not 0.0 <= float(confidence) <= 1.0:
        raise MalformedResponseError(f"{provider} confidence {confidence} is out of range", provider)

    follow_ups = _string_list(payload, "followUpQuestions", provider)
    flags = _string_list(payload, "contentFlags", provider)
    relevance = _unit_interval(payload, "relevanceScore", provider)
    inappropriate = payload.get("containsInappropriateContent")
    if inappropriate is not None and not isinstance(inappropriate, bool):
        raise MalformedResponseError("containsInappropriateContent must be a boolean", provider)
    metadata = _metadata(reply, payload)

    if inappropriate is True:
        raise InappropriateContentError(
            "Response filtered: inappropriate content is not allowed", flags
        )

    if relevance is not None and relevance < relevance_threshold:
        raise IrrelevantResponseError(
            f"Response rejected as irrelevant: not related to the requested subject "
            f"(relevance {relevance:.2f})",
            relevance,
        )

    return AnswerEnvelope(
        answer=answer,
        confidence=float(confidence),
        provider=reply.provider,
        response_time=max(reply.latency_ms, 0),
        follow_up_questions=follow_ups,
        metadata=metadata,
        relevance_score=relevance,
        contains_inappropriate_content=inappropriate,
        content_flags=flags,
    )
