"""Shared API dependencies for FastAPI routes."""

import hashlib
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, Request, status

from app.core.config import Settings
from app.services import FailoverDispatcher, ProviderRegistry, UsageTracker
from app.services.dispatcher import ANONYMOUS_USER


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_registry(request: Request) -> ProviderRegistry:
    return request.app.state.registry


def get_usage_tracker(request: Request) -> UsageTracker:
    return request.app.state.usage_tracker


def get_dispatcher(request: Request) -> FailoverDispatcher:
    return request.app.state.dispatcher


AppSettings = Annotated[Settings, Depends(get_app_settings)]
Registry = Annotated[ProviderRegistry, Depends(get_registry)]
Tracker = Annotated[UsageTracker, Depends(get_usage_tracker)]
Dispatcher = Annotated[FailoverDispatcher, Depends(get_dispatcher)]


def get_current_user_id(
    settings: AppSettings,
    authorization: Annotated[Optional[str], Header()] = None,
) -> str:
    """Resolve the caller from an optional bearer token.

    Without ``api_tokens`` configured any token is accepted and mapped to a
    stable pseudonymous id, so raw tokens never reach the usage ledger.
    """

    if not authorization:
        return ANONYMOUS_USER

    scheme, _, token = authorization.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header must use the Bearer scheme.",
        )

    if settings.api_tokens:
        user_id = settings.api_tokens.get(token)
        if user_id is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid bearer token."
            )
        return user_id

    return "token-" + hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]


CurrentUser = Annotated[str, Depends(get_current_user_id)]
