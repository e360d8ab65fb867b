"""Usage and cost accounting with per-user daily quotas."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from typing import Callable, Dict, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import Settings
from app.core.errors import QuotaExceededError
from app.models import UsageRecord
from app.schemas import AnswerEnvelope, ProviderUsage, QuotaStatus, UsageSummary

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class UsageCounters:
    requests: int = 0
    tokens: int = 0
    cost: float = 0.0


class UsageLedger:
    """Storage for usage counters keyed by (user, provider, day)."""

    def increment(self, user_id: str, provider: str, day: date, tokens: int, cost: float) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def totals(self, user_id: str, day: date) -> Dict[str, UsageCounters]:  # pragma: no cover - interface
        raise NotImplementedError


class InMemoryUsageLedger(UsageLedger):
    """Process-wide ledger; a single lock makes each increment atomic.

    Only the latest day is kept: the first write for a new day drops the
    older buckets.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: Dict[Tuple[str, str, date], UsageCounters] = {}
        self._latest_day: Optional[date] = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._counters)

    def increment(self, user_id: str, provider: str, day: date, tokens: int, cost: float) -> None:
        with self._lock:
            if self._latest_day is None or day > self._latest_day:
                self._latest_day = day
                self._counters = {
                    key: value for key, value in self._counters.items() if key[2] >= day
                }
            counters = self._counters.setdefault((user_id, provider, day), UsageCounters())
            counters.requests += 1
            counters.tokens += tokens
            counters.cost += cost

    def totals(self, user_id: str, day: date) -> Dict[str, UsageCounters]:
        with self._lock:
            return {
                provider: UsageCounters(c.requests, c.tokens, c.cost)
                for (uid, provider, bucket), c in self._counters.items()
                if uid == user_id and bucket == day
            }


class SqlUsageLedger(UsageLedger):
    """Ledger persisted in ``usage_record`` using in-database increments."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self.session_factory = session_factory

    def increment(self, user_id: str, provider: str, day: date, tokens: int, cost: float) -> None:
        stmt = (
            update(UsageRecord)
            .where(
                UsageRecord.user_id == user_id,
                UsageRecord.provider == provider,
                UsageRecord.day == day,
            )
            .values(
                request_count=UsageRecord.request_count + 1,
                token_count=UsageRecord.token_count + tokens,
                cost=UsageRecord.cost + cost,
                updated_at=utcnow(),
            )
        )
        with self.session_factory() as session:
            if session.execute(stmt).rowcount:
                session.commit()
                return
            session.add(
                UsageRecord(
                    user_id=user_id,
                    provider=provider,
                    day=day,
                    request_count=1,
                    token_count=tokens,
                    cost=cost,
                )
            )
            try:
                session.commit()
            except IntegrityError:
                # Another writer created the row first.
                session.rollback()
                session.execute(stmt)
                session.commit()

    def totals(self, user_id: str, day: date) -> Dict[str, UsageCounters]:
        with self.session_factory() as session:
            rows = session.execute(
                select(UsageRecord).where(UsageRecord.user_id == user_id, UsageRecord.day == day)
            ).scalars()
            return {
                row.provider: UsageCounters(row.request_count, row.token_count, row.cost)
                for row in rows
            }

    def day_report(self, day: date) -> Dict[str, Dict[str, UsageCounters]]:
        """Counters for every user on ``day``, grouped by user then provider."""

        report: Dict[str, Dict[str, UsageCounters]] = {}
        with self.session_factory() as session:
            rows = session.execute(
                select(UsageRecord)
                .where(UsageRecord.day == day)
                .order_by(UsageRecord.user_id, UsageRecord.provider)
            ).scalars()
            for row in rows:
                report.setdefault(row.user_id, {})[row.provider] = UsageCounters(
                    row.request_count, row.token_count, row.cost
                )
        return report


class UsageTracker:
    """Records billed calls and enforces per-user daily quotas."""

    def __init__(
        self,
        ledger: UsageLedger,
        request_limit: Optional[int] = None,
        token_limit: Optional[int] = None,
        cost_limit: Optional[float] = None,
        clock: Clock = utcnow,
    ) -> None:
        self.ledger = ledger
        self.request_limit = request_limit
        self.token_limit = token_limit
        self.cost_limit = cost_limit
        self.clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, ledger: UsageLedger) -> "UsageTracker":
        return cls(
            ledger,
            request_limit=settings.daily_request_limit,
            token_limit=settings.daily_token_limit,
            cost_limit=settings.daily_cost_limit,
        )

    def today(self) -> date:
        return self.clock().astimezone(UTC).date()

    def reset_time(self) -> str:
        """Start of the next UTC day, when the current bucket stops counting."""

        tomorrow = self.today() + timedelta(days=1)
        return datetime.combine(tomorrow, time.min, tzinfo=UTC).isoformat()

    def record(self, user_id: str, provider: str, envelope: AnswerEnvelope) -> None:
        self.record_call(user_id, provider, envelope.metadata.tokens, envelope.metadata.cost)

    def record_call(self, user_id: str, provider: str, tokens: int, cost: float) -> None:
        """Account for a billed call whose answer was not returned to the user."""

        self.ledger.increment(user_id, provider, self.today(), max(tokens, 0), max(cost, 0.0))

    def check_quota(self, user_id: str) -> None:
        """Raise ``QuotaExceededError`` if the user has used up today's allowance."""

        if self.request_limit is None and self.token_limit is None and self.cost_limit is None:
            return
        total = self._sum(self.ledger.totals(user_id, self.today()))
        exceeded = None
        if self.request_limit is not None and total.requests >= self.request_limit:
            exceeded = f"{self.request_limit} requests"
        elif self.token_limit is not None and total.tokens >= self.token_limit:
            exceeded = f"{self.token_limit} tokens"
        elif self.cost_limit is not None and total.cost >= self.cost_limit:
            exceeded = f"${self.cost_limit:.2f}"
        if exceeded:
            logger.info("User %s exceeded daily quota of %s", user_id, exceeded)
            raise QuotaExceededError(
                f"Usage limit exceeded: daily quota of {exceeded} reached",
                reset_time=self.reset_time(),
            )

    def summary(self, user_id: str) -> UsageSummary:
        day = self.today()
        per_provider = self.ledger.totals(user_id, day)
        total = self._sum(per_provider)
        return UsageSummary(
            user_id=user_id,
            day=day,
            total_requests=total.requests,
            total_tokens=total.tokens,
            total_cost=round(total.cost, 6),
            provider_usage={
                provider: ProviderUsage(
                    requests=c.requests, tokens=c.tokens, cost=round(c.cost, 6)
                )
                for provider, c in sorted(per_provider.items())
            },
            quota=QuotaStatus(
                request_limit=self.request_limit,
                token_limit=self.token_limit,
                cost_limit=self.cost_limit,
                reset_time=self.reset_time(),
            ),
        )

    @staticmethod
    def _sum(per_provider: Dict[str, UsageCounters]) -> UsageCounters:
        total = UsageCounters()
        for counters in per_provider.values():
            total.requests += counters.requests
            total.tokens += counters.tokens
            total.cost += counters.cost
        return total
