"""Schema package exports."""

from .tiers import FALLBACK_ACTIVE_TIER, TIER_ALLOWANCES, BillingStatus, SubscriptionTier, decode_billing_status, decode_tier

__all__ = ["FALLBACK_ACTIVE_TIER", "TIER_ALLOWANCES", "BillingStatus", "SubscriptionTier", "decode_billing_status", "decode_tier"]
