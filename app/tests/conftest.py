"""Shared fakes for gateway tests."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, List, Optional

import pytest

from app.schemas import AskRequest, ProviderId
from app.services import (
    FailoverDispatcher,
    InMemoryUsageLedger,
    ProviderAdapter,
    ProviderRegistry,
    ProviderReply,
    UsageTracker,
)
from app.services.prompts import PromptBundle


def answer_payload(text: str = "4", confidence: float = 0.9, **extra: Any) -> dict:
    payload = {"answer": text, "confidence": confidence}
    payload.update(extra)
    return payload


class FakeAdapter(ProviderAdapter):
    """Adapter replaying scripted outcomes; the last outcome repeats."""

    display_name = "Fake"

    def __init__(
        self,
        provider_id: ProviderId,
        outcomes: List[Any],
        tokens: int = 100,
        cost: float = 0.002,
        delay: float = 0.0,
        healthy: bool = True,
    ) -> None:
        self.provider_id = provider_id
        super().__init__(model=f"{provider_id.value}-test")
        self.outcomes = list(outcomes)
        self.tokens = tokens
        self.cost = cost
        self.delay = delay
        self.healthy = healthy
        self.calls: List[AskRequest] = []
        self.prompts: List[PromptBundle] = []
        self.closed = False

    async def invoke(self, request: AskRequest, prompt: PromptBundle) -> ProviderReply:
        self.calls.append(request)
        self.prompts.append(prompt)
        outcome = self.outcomes[min(len(self.calls), len(self.outcomes)) - 1]
        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(outcome, BaseException):
            raise outcome
        return ProviderReply(
            provider=self.provider_id,
            payload=outcome,
            model=self.model,
            tokens=self.tokens,
            cost=self.cost,
            latency_ms=5,
        )

    async def health_check(self) -> bool:
        return self.healthy

    async def aclose(self) -> None:
        self.closed = True


class VirtualClock:
    """Records backoff sleeps and advances a fake timer instead of waiting."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: List[float] = []

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def timer(self) -> float:
        return self.now


@pytest.fixture
def virtual_clock() -> VirtualClock:
    return VirtualClock()


@pytest.fixture
def make_adapter() -> Callable[..., FakeAdapter]:
    return FakeAdapter


@pytest.fixture
def make_dispatcher(virtual_clock: VirtualClock) -> Callable[..., FailoverDispatcher]:
    def factory(
        *adapters: ProviderAdapter,
        tracker: Optional[UsageTracker] = None,
        **kwargs: Any,
    ) -> FailoverDispatcher:
        return FailoverDispatcher(
            ProviderRegistry(adapters),
            tracker or UsageTracker(InMemoryUsageLedger()),
            sleep=virtual_clock.sleep,
            timer=virtual_clock.timer,
            **kwargs,
        )

    return factory


@pytest.fixture
def ask_request() -> AskRequest:
    return AskRequest(question="What is 2+2?", subject="mathematics", level="beginner")
