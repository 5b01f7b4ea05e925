"""Subscription tiers and the boundary decoder for plan strings."""

from __future__ import annotations

import logging
from enum import Enum

logger = logging.getLogger(__name__)


class SubscriptionTier(str, Enum):
  NONE = "none"
  BASIC = "basic"
  PRO = "pro"
  BUSINESS = "business"
  ENTERPRISE = "enterprise"

  @property
  def allowance(self) -> int:
    """Monthly video operations granted by this tier."""
    return TIER_ALLOWANCES[self]


class BillingStatus(str, Enum):
  ACTIVE = "active"
  INACTIVE = "inactive"
  CANCELLED = "cancelled"


TIER_ALLOWANCES: dict[SubscriptionTier, int] = {
  SubscriptionTier.NONE: 0,
  SubscriptionTier.BASIC: 1,
  SubscriptionTier.PRO: 5,
  SubscriptionTier.BUSINESS: 30,
  SubscriptionTier.ENTERPRISE: 100,
}

# Plan names seen from the payment side, normalized to lowercase.
_PLAN_ALIASES: dict[str, SubscriptionTier] = {
  "basic": SubscriptionTier.BASIC,
  "starter": SubscriptionTier.BASIC,
  "free": SubscriptionTier.BASIC,
  "pro": SubscriptionTier.PRO,
  "professional": SubscriptionTier.PRO,
  "business": SubscriptionTier.BUSINESS,
  "corporate": SubscriptionTier.BUSINESS,
  "enterprise": SubscriptionTier.ENTERPRISE,
  "unlimited": SubscriptionTier.ENTERPRISE,
}

# Active accounts with an unrecognized plan land here rather than on zero allowance.
FALLBACK_ACTIVE_TIER = SubscriptionTier.BUSINESS

_ACTIVE_STATUSES = {"active", "trialing", "paid"}


def decode_billing_status(raw: str | None) -> BillingStatus:
  """Normalize a payment-side status string."""
  normalized = (raw or "").strip().lower()
  if normalized in _ACTIVE_STATUSES:
    return BillingStatus.ACTIVE
  if normalized in {"cancelled", "canceled"}:
    return BillingStatus.CANCELLED
  return BillingStatus.INACTIVE


def decode_tier(plan: str | None, billing_status: BillingStatus | str | None) -> SubscriptionTier:
  """Decode a loosely-typed plan name into a tier.

  Inactive or cancelled billing always yields ``NONE``. An active account whose plan
  is missing or unrecognized falls back to ``FALLBACK_ACTIVE_TIER``.
  """
  status = billing_status if isinstance(billing_status, BillingStatus) else decode_billing_status(billing_status)
  if status is not BillingStatus.ACTIVE:
    return SubscriptionTier.NONE

  normalized = (plan or "").strip().lower()
  # Payment products often carry suffixes like "pro_monthly" or "Business Plan".
  for token in normalized.replace("-", "_").replace(" ", "_").split("_"):
    tier = _PLAN_ALIASES.get(token)
    if tier is not None:
      return tier

  logger.warning("Unrecognized plan %r on active account; defaulting to %s", plan, FALLBACK_ACTIVE_TIER.value)
  return FALLBACK_ACTIVE_TIER
