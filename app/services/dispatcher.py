"""Failover dispatch of questions across providers in priority order."""

from __future__ import annotations

import asyncio
import logging
import time
from functools import partial
from typing import Callable, List, Optional

from starlette.concurrency import run_in_threadpool

from app.core.config import Settings
from app.core.errors import (
    AllProvidersUnavailableError,
    ContentPolicyError,
    GatewayError,
    InvalidCredentialsError,
    ProviderError,
    QuotaExceededError,
    RateLimitedError,
)
from app.schemas import COMPLEXITY_BY_LEVEL, AnswerEnvelope, AskRequest
from app.services.prompts import build_prompt
from app.services.providers import ProviderAdapter, ProviderRegistry, ProviderReply
from app.services.retry import Sleep, with_retry
from app.services.usage import UsageTracker
from app.services.validation import DEFAULT_RELEVANCE_THRESHOLD, validate

logger = logging.getLogger(__name__)

ANONYMOUS_USER = "anonymous"


class FailoverDispatcher:
    """Try providers one at a time until one yields an acceptable answer.

    The attempt order is the registry order starting at the preferred
    provider (when configured), without wrapping around. Transient
    provider failures move on to the next provider; invalid credentials
    and content-policy rejections end the request immediately.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        tracker: UsageTracker,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        relevance_threshold: float = DEFAULT_RELEVANCE_THRESHOLD,
        max_history_messages: int = 20,
        sleep: Sleep = asyncio.sleep,
        timer: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.registry = registry
        self.tracker = tracker
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.relevance_threshold = relevance_threshold
        self.max_history_messages = max_history_messages
        self.sleep = sleep
        self.timer = timer

    @classmethod
    def from_settings(
        cls, settings: Settings, registry: ProviderRegistry, tracker: UsageTracker
    ) -> "FailoverDispatcher":
        return cls(
            registry,
            tracker,
            max_retries=settings.max_retries,
            base_delay=settings.backoff_base_seconds,
            max_delay=settings.backoff_max_seconds,
            relevance_threshold=settings.relevance_threshold,
            max_history_messages=settings.max_history_messages,
        )

    def provider_order(self, preferred: Optional[str] = None) -> List[ProviderAdapter]:
        adapters = self.registry.ordered()
        start = self.registry.index_of(preferred)
        return adapters[start or 0 :]

    async def dispatch(self, request: AskRequest, user_id: str = ANONYMOUS_USER) -> AnswerEnvelope:
        started = self.timer()
        await run_in_threadpool(self.tracker.check_quota, user_id)

        prompt = build_prompt(request, self.max_history_messages)
        failures: List[ProviderError] = []

        for adapter in self.provider_order(request.preferred_provider):
            reply: Optional[ProviderReply] = None
            try:
                reply = await with_retry(
                    partial(adapter.invoke, request, prompt),
                    max_retries=self.max_retries,
                    base_delay=self.base_delay,
                    max_delay=self.max_delay,
                    sleep=self.sleep,
                )
                envelope = validate(reply, self.relevance_threshold)
            except InvalidCredentialsError:
                logger.error("Provider %s rejected its credentials", adapter.name)
                raise
            except ContentPolicyError as exc:
                logger.warning("Answer from %s rejected: %s", adapter.name, exc.code)
                await self._record_reply(user_id, reply)
                raise
            except ProviderError as exc:
                logger.warning("Provider %s failed (%s); trying next provider", adapter.name, exc.code)
                await self._record_reply(user_id, reply)
                failures.append(exc)
                continue

            envelope = envelope.model_copy(
                update={
                    "response_time": max(int((self.timer() - started) * 1000), 1),
                    "complexity": COMPLEXITY_BY_LEVEL[request.level],
                    "context_truncated": prompt.context_truncated,
                    "session_id": request.session_id,
                }
            )
            await run_in_threadpool(self.tracker.record, user_id, adapter.name, envelope)
            logger.info(
                "Answered via %s in %dms (%d tokens)",
                adapter.name,
                envelope.response_time,
                envelope.metadata.tokens,
            )
            return envelope

        raise self._exhausted(failures)

    async def _record_reply(self, user_id: str, reply: Optional[ProviderReply]) -> None:
        if reply is None:
            return
        await run_in_threadpool(
            self.tracker.record_call, user_id, reply.provider.value, reply.tokens, reply.cost
        )

    @staticmethod
    def _exhausted(failures: List[ProviderError]) -> GatewayError:
        if not failures:
            return AllProvidersUnavailableError("All providers unavailable: none are configured")
        if all(isinstance(err, (RateLimitedError, QuotaExceededError)) for err in failures):
            quota_errors = [err for err in failures if isinstance(err, QuotaExceededError)]
            if quota_errors:
                return quota_errors[0]
            return min(failures, key=lambda err: err.retry_after_seconds)
        tried = ", ".join(err.provider or "unknown" for err in failures)
        logger.error("All providers unavailable after trying %s", tried)
        return AllProvidersUnavailableError(
            "All providers unavailable: service temporarily unavailable", failures
        )
