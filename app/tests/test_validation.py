"""Tests for answer validation."""

from __future__ import annotations

import pytest

from app.core.errors import (
    InappropriateContentError,
    IrrelevantResponseError,
    MalformedResponseError,
)
from app.schemas import ProviderId
from app.services.providers import ProviderReply
from app.services.validation import validate


def _reply(payload, tokens: int = 120, cost: float = 0.0018) -> ProviderReply:
    return ProviderReply(
        provider=ProviderId.GEMINI,
        payload=payload,
        model="gemini-1.5-pro",
        tokens=tokens,
        cost=cost,
        latency_ms=42,
    )


def test_valid_payload_becomes_envelope() -> None:
    envelope = validate(
        _reply(
            {
                "answer": "Photosynthesis turns light into chemical energy.",
                "confidence": 0.87,
                "followUpQuestions": ["What is chlorophyll?"],
                "relevanceScore": 0.9,
                "containsInappropriateContent": False,
            }
        )
    )

    assert envelope.provider is ProviderId.GEMINI
    assert envelope.confidence == pytest.approx(0.87)
    assert envelope.follow_up_questions == ["What is chlorophyll?"]
    assert envelope.metadata.model == "gemini-1.5-pro"
    assert envelope.metadata.tokens == 120
    assert envelope.response_time == 42


@pytest.mark.parametrize("confidence", [0, 0.0, 1, 1.0])
def test_confidence_bounds_are_inclusive(confidence) -> None:
    envelope = validate(_reply({"answer": "Yes.", "confidence": confidence}))
    assert envelope.confidence == float(confidence)


@pytest.mark.parametrize(
    "payload",
    [
        None,
        "String response",
        ["answer", 0.9],
        {},
        {"answer": "", "confidence": 0.9},
        {"answer": "   ", "confidence": 0.9},
        {"answer": 42, "confidence": 0.9},
        {"answer": "Valid but missing other fields"},
        {"answer": "x", "confidence": "invalid"},
        {"answer": "x", "confidence": True},
        {"answer": "x", "confidence": -0.1},
        {"answer": "x", "confidence": 1.5},
        {"answer": "x", "confidence": 0.5, "followUpQuestions": "not a list"},
        {"answer": "x", "confidence": 0.5, "relevanceScore": 2},
        {"answer": "x", "confidence": 0.5, "containsInappropriateContent": "yes"},
    ],
)
def test_malformed_payloads_are_rejected(payload) -> None:
    with pytest.raises(MalformedResponseError) as excinfo:
        validate(_reply(payload))
    assert excinfo.value.provider == "gemini"


def test_inappropriate_content_is_rejected_with_flags() -> None:
    payload = {
        "answer": "Something unsafe",
        "confidence": 0.8,
        "containsInappropriateContent": True,
        "contentFlags": ["violence"],
    }

    with pytest.raises(InappropriateContentError) as excinfo:
        validate(_reply(payload))

    assert excinfo.value.status_code == 400
    assert "inappropriate" in excinfo.value.message
    assert excinfo.value.to_payload()["contentFlags"] == ["violence"]


def test_low_relevance_is_rejected() -> None:
    payload = {"answer": "Off topic", "confidence": 0.8, "relevanceScore": 0.3}

    with pytest.raises(IrrelevantResponseError) as excinfo:
        validate(_reply(payload))

    assert "irrelevant" in excinfo.value.message
    assert excinfo.value.relevance_score == pytest.approx(0.3)


def test_relevance_at_threshold_is_accepted() -> None:
    envelope = validate(_reply({"answer": "On topic", "confidence": 0.8, "relevanceScore": 0.5}))
    assert envelope.relevance_score == 0.5


def test_custom_threshold_applies() -> None:
    payload = {"answer": "On topic", "confidence": 0.8, "relevanceScore": 0.6}
    with pytest.raises(IrrelevantResponseError):
        validate(_reply(payload), relevance_threshold=0.7)


def test_safety_is_checked_before_relevance() -> None:
    payload = {
        "answer": "Unsafe and off topic",
        "confidence": 0.8,
        "containsInappropriateContent": True,
        "relevanceScore": 0.1,
    }
    with pytest.raises(InappropriateContentError):
        validate(_reply(payload))


def test_shape_is_checked_before_safety() -> None:
    with pytest.raises(MalformedResponseError):
        validate(_reply({"containsInappropriateContent": True}))


def test_self_reported_metadata_does_not_change_accounting() -> None:
    payload = {
        "answer": "Four.",
        "confidence": 0.99,
        "metadata": {"model": "claude-3-sonnet", "tokens": 0, "cost": 0},
    }

    envelope = validate(_reply(payload, tokens=120, cost=0.0018))

    assert envelope.metadata.model == "claude-3-sonnet"
    assert envelope.metadata.tokens == 120
    assert envelope.metadata.cost == pytest.approx(0.0018)


@pytest.mark.parametrize(
    "metadata",
    [
        {"tokens": float("inf")},
        {"tokens": float("nan")},
        {"cost": float("inf")},
        {"cost": -1},
        {"tokens": "150"},
        "not an object",
    ],
)
def test_unusable_metadata_is_malformed(metadata) -> None:
    with pytest.raises(MalformedResponseError):
        validate(_reply({"answer": "4", "confidence": 0.9, "metadata": metadata}))


def test_malformed_metadata_is_reported_before_safety() -> None:
    payload = {
        "answer": "unsafe",
        "confidence": 0.9,
        "containsInappropriateContent": True,
        "metadata": {"tokens": float("inf")},
    }
    with pytest.raises(MalformedResponseError):
        validate(_reply(payload))
