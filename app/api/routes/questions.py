"""Question answering endpoints."""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter

from app import schemas
from app.api.dependencies import AppSettings, CurrentUser, Dispatcher
from app.core.errors import RequestTimeoutError

router = APIRouter(tags=["qa"])

logger = logging.getLogger(__name__)


def _log_abandoned(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.info("Abandoned dispatch finished with %s", type(exc).__name__)
    else:
        logger.info("Abandoned dispatch completed after the client was answered")


@router.post("/ask", response_model=schemas.AnswerEnvelope)
async def ask_question(
    payload: schemas.AskRequest,
    dispatcher: Dispatcher,
    user_id: CurrentUser,
    settings: AppSettings,
) -> schemas.AnswerEnvelope:
    """Answer a learner question through the first healthy provider."""

    task = asyncio.ensure_future(dispatcher.dispatch(payload, user_id))
    done, _ = await asyncio.wait({task}, timeout=settings.request_timeout_seconds)
    if not done:
        # Stop waiting; the dispatch keeps running and still records usage.
        task.add_done_callback(_log_abandoned)
        logger.warning(
            "Dispatch exceeded %.1fs for user %s", settings.request_timeout_seconds, user_id
        )
        raise RequestTimeoutError("Request timeout: the AI providers took too long to respond")
    return task.result()
