"""Schema exports."""

from app.schemas.qa import (
	COMPLEXITY_BY_LEVEL,
	AnswerEnvelope,
	AnswerMetadata,
	AskRequest,
	ChatMessage,
	ProviderId,
)
from app.schemas.usage import ProviderUsage, QuotaStatus, UsageSummary

__all__ = [
	"COMPLEXITY_BY_LEVEL",
	"AnswerEnvelope",
	"AnswerMetadata",
	"AskRequest",
	"ChatMessage",
	"ProviderId",
	"ProviderUsage",
	"QuotaStatus",
	"UsageSummary",
]
