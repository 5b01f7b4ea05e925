"""User helpers implemented with SQLAlchemy ORM.

Tier changes and usage-period resets go through this module so the subscription
decoding rule lives in exactly one place.
"""

from __future__ import annotations

import datetime
import logging
import uuid
from dataclasses import dataclass

from scenecast.schema.sql import CreditLedgerEntry, User
from scenecast.schema.tiers import SubscriptionTier, decode_billing_status, decode_tier
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubscriptionChange:
  user_id: uuid.UUID
  previous_tier: SubscriptionTier
  tier: SubscriptionTier
  allowance: int


async def get_user_by_firebase_uid(session: AsyncSession, firebase_uid: str) -> User | None:
  """Fetch a user by Firebase UID to support auth."""
  stmt = select(User).where(User.firebase_uid == firebase_uid)
  result = await session.execute(stmt)
  return result.scalar_one_or_none()


async def get_user_by_id(session: AsyncSession, user_id: uuid.UUID) -> User | None:
  stmt = select(User).where(User.id == user_id)
  result = await session.execute(stmt)
  return result.scalar_one_or_none()


async def create_user(session: AsyncSession, *, firebase_uid: str, email: str, full_name: str | None, signup_credits: int) -> User:
  """Create a user with signup credits and a matching credit-ledger entry."""
  user = User(id=uuid.uuid4(), firebase_uid=firebase_uid, email=email, full_name=full_name, subscription_tier=SubscriptionTier.NONE, operations_used=0, credits_available=signup_credits, credits_used=0, credits_purchased=0)
  session.add(user)
  try:
    await session.flush()
  except IntegrityError:
    # A concurrent first request already provisioned this account.
    await session.rollback()
    existing = await get_user_by_firebase_uid(session, firebase_uid)
    if existing is None:
      raise
    return existing
  if signup_credits:
    session.add(CreditLedgerEntry(user_id=user.id, delta=signup_credits, reason="signup", reference=None))
  await session.commit()
  await session.refresh(user)
  logger.info("Provisioned user %s with %d signup credits", user.id, signup_credits)
  return user


async def apply_subscription(session: AsyncSession, *, user_id: uuid.UUID, plan: str | None, billing_status: str | None) -> SubscriptionChange:
  """Decode a payment-side plan into a tier and persist it."""
  user = await get_user_by_id(session, user_id)
  if user is None:
    raise LookupError(f"user {user_id} not found")

  status = decode_billing_status(billing_status)
  tier = decode_tier(plan, status)
  previous = user.subscription_tier
  user.subscription_tier = tier
  user.billing_status = status
  user.plan_source = plan
  await session.commit()
  logger.info("Subscription applied user=%s plan=%r status=%s tier=%s->%s", user_id, plan, status.value, previous.value, tier.value)
  return SubscriptionChange(user_id=user_id, previous_tier=previous, tier=tier, allowance=tier.allowance)


async def reset_usage_period(session: AsyncSession, *, user_id: uuid.UUID, period_start: datetime.datetime | None = None) -> datetime.datetime:
  """Zero the period usage counter and stamp a new period start."""
  start = period_start or datetime.datetime.now(datetime.UTC)
  stmt = update(User).where(User.id == user_id).values(operations_used=0, period_start=start).returning(User.id)
  result = await session.execute(stmt)
  if result.scalar_one_or_none() is None:
    await session.rollback()
    raise LookupError(f"user {user_id} not found")
  await session.commit()
  logger.info("Usage period reset user=%s period_start=%s", user_id, start.isoformat())
  return start
