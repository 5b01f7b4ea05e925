from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from scenecast.api.models import LibraryStatsModel, UsageSummaryResponse
from scenecast.core.database import get_db
from scenecast.core.security import get_current_user_or_provision
from scenecast.schema.sql import User
from scenecast.services.library import library_stats

router = APIRouter()


@router.get("/me", response_model=UsageSummaryResponse)
async def get_me(current_user: User = Depends(get_current_user_or_provision), db: AsyncSession = Depends(get_db)) -> UsageSummaryResponse:  # noqa: B008
  """Profile, tier, usage for the current period and library stats."""
  allowance = current_user.subscription_tier.allowance
  stats = await library_stats(db, current_user.id)
  return UsageSummaryResponse(
    user_id=str(current_user.id),
    email=current_user.email,
    tier=current_user.subscription_tier.value,
    billing_status=current_user.billing_status.value,
    allowance=allowance,
    used=current_user.operations_used,
    remaining=max(allowance - current_user.operations_used, 0),
    period_start=current_user.period_start,
    credits_available=current_user.credits_available,
    library=LibraryStatsModel(total_videos=stats.total_videos, total_size_bytes=stats.total_size_bytes, batch_count=stats.batch_count, this_month=stats.this_month),
  )
