from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from scenecast.api.models import CreditBalanceResponse, CreditPackageModel
from scenecast.core.database import get_db
from scenecast.core.security import get_current_user
from scenecast.schema.sql import User
from scenecast.services.credits import CREDIT_PACKAGES, get_balance

router = APIRouter()


@router.get("", response_model=CreditBalanceResponse)
async def get_credits(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> CreditBalanceResponse:  # noqa: B008
  balance = await get_balance(db, current_user.id)
  return CreditBalanceResponse(available=balance.available, used=balance.used, purchased=balance.purchased)


@router.get("/packages", response_model=list[CreditPackageModel])
async def list_packages() -> list[CreditPackageModel]:
  """Purchasable credit packages. Checkout itself happens on the payment side."""
  return [
    CreditPackageModel(package_id=package.package_id, name=package.name, credits=package.credits, price=package.price, price_in_cents=package.price_in_cents, currency=package.currency, popular=package.popular)
    for package in CREDIT_PACKAGES
  ]
