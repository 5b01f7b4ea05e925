"""Task endpoints called by the payment side and schedulers, guarded by the shared task secret."""

from __future__ import annotations

import datetime
import logging
import uuid

import msgspec
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from scenecast.api.deps import get_video_pipeline
from scenecast.api.msgspec_utils import decode_msgspec_request, encode_msgspec_response
from scenecast.core.database import get_db
from scenecast.core.security import verify_task_secret
from scenecast.jobs.pipeline import VideoPipeline
from scenecast.services.credits import find_package, grant_credits
from scenecast.services.users import apply_subscription, reset_usage_period

router = APIRouter(dependencies=[Depends(verify_task_secret)])
logger = logging.getLogger(__name__)


class SubscriptionSyncRequest(msgspec.Struct):
  """Plan change pushed by the payment side."""

  user_id: uuid.UUID
  plan: str | None = None
  billing_status: str | None = None


class SubscriptionSyncResponse(msgspec.Struct):
  user_id: str
  previous_tier: str
  tier: str
  allowance: int


class UsageResetRequest(msgspec.Struct):
  user_id: uuid.UUID
  period_start: datetime.datetime | None = None


class UsageResetResponse(msgspec.Struct):
  user_id: str
  period_start: str


class CreditGrantRequest(msgspec.Struct):
  """Either a package purchase or an explicit promotional amount."""

  user_id: uuid.UUID
  package_id: str | None = None
  amount: int | None = None
  reason: str = "purchase"
  reference: str | None = None


class CreditGrantResponse(msgspec.Struct):
  user_id: str
  granted: int
  credits_available: int


class ReconcileResponse(msgspec.Struct):
  ticked: int
  active: int


@router.post("/subscriptions/sync")
async def sync_subscription(request: Request, db: AsyncSession = Depends(get_db)):  # noqa: B008
  payload = await decode_msgspec_request(request, SubscriptionSyncRequest)
  try:
    change = await apply_subscription(db, user_id=payload.user_id, plan=payload.plan, billing_status=payload.billing_status)
  except LookupError as exc:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found") from exc
  return encode_msgspec_response(SubscriptionSyncResponse(user_id=str(change.user_id), previous_tier=change.previous_tier.value, tier=change.tier.value, allowance=change.allowance))


@router.post("/usage/reset")
async def reset_usage(request: Request, db: AsyncSession = Depends(get_db)):  # noqa: B008
  payload = await decode_msgspec_request(request, UsageResetRequest)
  try:
    start = await reset_usage_period(db, user_id=payload.user_id, period_start=payload.period_start)
  except LookupError as exc:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found") from exc
  return encode_msgspec_response(UsageResetResponse(user_id=str(payload.user_id), period_start=start.isoformat()))


@router.post("/credits/grant")
async def grant(request: Request, db: AsyncSession = Depends(get_db)):  # noqa: B008
  payload = await decode_msgspec_request(request, CreditGrantRequest)
  amount = payload.amount
  if payload.package_id is not None:
    package = find_package(payload.package_id)
    if package is None:
      raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown credit package: {payload.package_id}")
    amount = package.credits
  if amount is None or amount <= 0:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="A package_id or a positive amount is required")

  try:
    available = await grant_credits(db, payload.user_id, amount=amount, reason=payload.reason, reference=payload.reference)
  except LookupError as exc:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found") from exc
  return encode_msgspec_response(CreditGrantResponse(user_id=str(payload.user_id), granted=amount, credits_available=available))


@router.post("/reconcile")
async def reconcile_now(pipeline: VideoPipeline = Depends(get_video_pipeline)):  # noqa: B008
  """Run one reconcile round immediately, outside the scheduler's cadence."""
  ticked = await pipeline.scheduler.run_once()
  active = len(await pipeline.registry.active())
  return encode_msgspec_response(ReconcileResponse(ticked=ticked, active=active))
