"""FastAPI entrypoint for the AI provider gateway."""

from __future__ import annotations

import logging
import math
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.router import api_router
from app.core.config import Settings, get_settings
from app.core.errors import GatewayError, RateLimitedError
from app.services import (
    FailoverDispatcher,
    InMemoryUsageLedger,
    ProviderRegistry,
    SqlUsageLedger,
    UsageLedger,
    UsageTracker,
    build_registry,
)

logger = logging.getLogger(__name__)


def build_ledger(settings: Settings) -> UsageLedger:
    """Select the usage ledger backend named in settings."""

    if settings.usage_backend == "database":
        from app.db.base import Base
        from app.db.session import build_engine, build_session_factory

        engine = build_engine(settings.database_url)
        Base.metadata.create_all(engine)
        return SqlUsageLedger(build_session_factory(engine))
    return InMemoryUsageLedger()


def register_exception_handlers(app: FastAPI) -> None:
    """Render every error as ``{"error": ..., "code": ...}``."""

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
        headers = None
        if isinstance(exc, RateLimitedError):
            headers = {"Retry-After": str(math.ceil(exc.retry_after_seconds))}
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload(), headers=headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        details = [
            {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", "")}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request body", "code": "INVALID_REQUEST", "details": details},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail), "code": f"HTTP_{exc.status_code}"},
            headers=getattr(exc, "headers", None),
        )


def create_app(
    settings: Optional[Settings] = None,
    registry: Optional[ProviderRegistry] = None,
    usage_tracker: Optional[UsageTracker] = None,
) -> FastAPI:
    """Instantiate and configure the FastAPI application."""

    settings = settings or get_settings()
    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))

    registry = registry if registry is not None else build_registry(settings)
    if not len(registry):
        logger.warning("No AI providers configured; /ask will answer 500 until keys are set")
    usage_tracker = usage_tracker or UsageTracker.from_settings(settings, build_ledger(settings))

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await registry.aclose()

    app = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)
    app.state.settings = settings
    app.state.registry = registry
    app.state.usage_tracker = usage_tracker
    app.state.dispatcher = FailoverDispatcher.from_settings(settings, registry, usage_tracker)

    if settings.frontend_origin:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[str(settings.frontend_origin)],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    elif settings.allowed_hosts:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_hosts,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    register_exception_handlers(app)
    app.include_router(api_router, prefix=settings.api_v1_prefix)

    @app.get("/health", tags=["health"])
    async def healthcheck() -> dict[str, str]:
        """Simple health-check endpoint."""

        return {"status": "ok"}

    return app


app = create_app()
