"""Per-user usage reporting."""

from fastapi import APIRouter

from app import schemas
from app.api.dependencies import CurrentUser, Tracker

router = APIRouter(prefix="/user", tags=["usage"])


@router.get("/usage", response_model=schemas.UsageSummary)
def get_usage(user_id: CurrentUser, tracker: Tracker) -> schemas.UsageSummary:
    """Return today's request, token and cost totals for the caller."""

    return tracker.summary(user_id)
