"""Schemas for usage reporting."""

from __future__ import annotations

from datetime import date
from typing import Dict, Optional

from pydantic import Field

from app.schemas.qa import CamelModel


class ProviderUsage(CamelModel):
    requests: int = 0
    tokens: int = 0
    cost: float = 0.0


class QuotaStatus(CamelModel):
    request_limit: Optional[int] = None
    token_limit: Optional[int] = None
    cost_limit: Optional[float] = None
    reset_time: str = Field(..., description="ISO-8601 timestamp of the next UTC midnight.")


class UsageSummary(CamelModel):
    user_id: str
    day: date
    total_requests: int = 0
    total_tokens: int = 0
    total_cost: float = 0.0
    provider_usage: Dict[str, ProviderUsage] = Field(default_factory=dict)
    quota: QuotaStatus
