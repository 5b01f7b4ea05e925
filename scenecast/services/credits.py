"""Credit balance operations for the synchronous image feature."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from scenecast.jobs.errors import InsufficientCreditsError
from scenecast.schema.sql import CreditLedgerEntry, User
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CreditPackage:
  package_id: str
  name: str
  credits: int
  price: float
  currency: str = "eur"
  popular: bool = False

  @property
  def price_in_cents(self) -> int:
    return int(round(self.price * 100))


CREDIT_PACKAGES: tuple[CreditPackage, ...] = (
  CreditPackage(package_id="small", name="Small Package", credits=25, price=25.00),
  CreditPackage(package_id="medium", name="Medium Package", credits=50, price=50.00, popular=True),
  CreditPackage(package_id="large", name="Large Package", credits=150, price=150.00),
)


@dataclass(frozen=True)
class CreditBalance:
  available: int
  used: int
  purchased: int


def find_package(package_id: str) -> CreditPackage | None:
  return next((package for package in CREDIT_PACKAGES if package.package_id == package_id), None)


async def get_balance(session: AsyncSession, user_id: uuid.UUID) -> CreditBalance:
  stmt = select(User.credits_available, User.credits_used, User.credits_purchased).where(User.id == user_id)
  row = (await session.execute(stmt)).one_or_none()
  if row is None:
    raise LookupError(f"user {user_id} not found")
  return CreditBalance(available=int(row[0]), used=int(row[1]), purchased=int(row[2]))


async def consume_credit(session: AsyncSession, user_id: uuid.UUID, *, amount: int = 1, reference: str | None = None) -> int:
  """Atomically take ``amount`` credits or raise InsufficientCreditsError.

  The decrement is conditional on the balance so concurrent requests never overdraw.
  """
  stmt = (
    update(User)
    .where(User.id == user_id, User.credits_available >= amount)
    .values(credits_available=User.credits_available - amount, credits_used=User.credits_used + amount)
    .returning(User.credits_available)
  )
  remaining = (await session.execute(stmt)).scalar_one_or_none()
  if remaining is None:
    await session.rollback()
    balance = await get_balance(session, user_id)
    raise InsufficientCreditsError(available=balance.available)
  session.add(CreditLedgerEntry(user_id=user_id, delta=-amount, reason="image_generation", reference=reference))
  await session.commit()
  return int(remaining)


async def refund_credit(session: AsyncSession, user_id: uuid.UUID, *, amount: int = 1, reference: str | None = None) -> int:
  """Return credits taken for a request whose vendor call failed."""
  stmt = update(User).where(User.id == user_id).values(credits_available=User.credits_available + amount, credits_used=User.credits_used - amount).returning(User.credits_available)
  remaining = (await session.execute(stmt)).scalar_one()
  session.add(CreditLedgerEntry(user_id=user_id, delta=amount, reason="refund", reference=reference))
  await session.commit()
  logger.info("Refunded %d credits user=%s reference=%s", amount, user_id, reference)
  return int(remaining)


async def grant_credits(session: AsyncSession, user_id: uuid.UUID, *, amount: int, reason: str, reference: str | None = None) -> int:
  """Add purchased or promotional credits."""
  if amount <= 0:
    raise ValueError("amount must be positive")
  values: dict[str, object] = {"credits_available": User.credits_available + amount}
  if reason == "purchase":
    values["credits_purchased"] = User.credits_purchased + amount
  stmt = update(User).where(User.id == user_id).values(**values).returning(User.credits_available)
  remaining = (await session.execute(stmt)).scalar_one_or_none()
  if remaining is None:
    await session.rollback()
    raise LookupError(f"user {user_id} not found")
  session.add(CreditLedgerEntry(user_id=user_id, delta=amount, reason=reason, reference=reference))
  await session.commit()
  logger.info("Granted %d credits user=%s reason=%s", amount, user_id, reason)
  return int(remaining)
