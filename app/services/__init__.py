"""Service exports."""

from app.services.prompts import PromptBundle, build_prompt
from app.services.retry import with_retry
from app.services.providers import ProviderAdapter, ProviderRegistry, ProviderReply, build_registry
from app.services.validation import validate
from app.services.usage import InMemoryUsageLedger, SqlUsageLedger, UsageLedger, UsageTracker
from app.services.dispatcher import FailoverDispatcher

__all__ = [
	"FailoverDispatcher",
	"InMemoryUsageLedger",
	"PromptBundle",
	"ProviderAdapter",
	"ProviderRegistry",
	"ProviderReply",
	"SqlUsageLedger",
	"UsageLedger",
	"UsageTracker",
	"build_prompt",
	"build_registry",
	"validate",
	"with_retry",
]
