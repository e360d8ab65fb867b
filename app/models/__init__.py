"""ORM model exports."""

from app.models.usage import UsageRecord

__all__ = [
	"UsageRecord",
]
