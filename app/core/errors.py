"""Error taxonomy shared by providers, the dispatcher and the HTTP layer."""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class GatewayError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> Dict[str, Any]:
        """Return the JSON body sent to API clients."""

        return {"error": self.message, "code": self.code}


class ProviderError(GatewayError):
    """Raised by an adapter when a single upstream call fails."""

    status_code = 502
    code = "PROVIDER_ERROR"
    transient = True

    def __init__(self, message: str, provider: Optional[str] = None) -> None:
        super().__init__(message)
        self.provider = provider


class RateLimitedError(ProviderError):
    status_code = 429
    code = "RATE_LIMITED"

    def __init__(
        self, message: str, provider: Optional[str] = None, retry_after_seconds: float = 60.0
    ) -> None:
        super().__init__(message, provider)
        self.retry_after_seconds = retry_after_seconds

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["retryAfter"] = self.retry_after_seconds
        return payload


class InvalidCredentialsError(ProviderError):
    """Credentials are a configuration problem, so failover does not apply."""

    status_code = 500
    code = "INVALID_API_KEY"
    transient = False


class ProviderUnavailableError(ProviderError):
    status_code = 502
    code = "SERVICE_UNAVAILABLE"


class ProviderTimeoutError(ProviderError):
    status_code = 504
    code = "TIMEOUT"


class QuotaExceededError(ProviderError):
    """Raised for provider-side quotas and for the per-user daily quota."""

    status_code = 429
    code = "QUOTA_EXCEEDED"

    def __init__(
        self, message: str, provider: Optional[str] = None, reset_time: Optional[str] = None
    ) -> None:
        super().__init__(message, provider)
        self.reset_time = reset_time

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["resetTime"] = self.reset_time
        return payload


class MalformedResponseError(ProviderError):
    status_code = 502
    code = "MALFORMED_RESPONSE"


class ContentPolicyError(GatewayError):
    """Rejection of an answer on content grounds; never retried elsewhere."""

    status_code = 400
    code = "CONTENT_REJECTED"


class InappropriateContentError(ContentPolicyError):
    code = "INAPPROPRIATE_CONTENT"

    def __init__(self, message: str, flags: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.flags = list(flags or [])

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["contentFlags"] = self.flags
        return payload


class IrrelevantResponseError(ContentPolicyError):
    code = "IRRELEVANT_RESPONSE"

    def __init__(self, message: str, relevance_score: Optional[float] = None) -> None:
        super().__init__(message)
        self.relevance_score = relevance_score


class AllProvidersUnavailableError(GatewayError):
    status_code = 500
    code = "ALL_PROVIDERS_UNAVAILABLE"

    def __init__(self, message: str, errors: Optional[List[ProviderError]] = None) -> None:
        super().__init__(message)
        self.errors = list(errors or [])

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["attempts"] = [
            {"provider": err.provider, "code": err.code} for err in self.errors
        ]
        return payload


class RequestTimeoutError(GatewayError):
    status_code = 408
    code = "REQUEST_TIMEOUT"
