"""Tier decoding and allowance table."""

from __future__ import annotations

import pytest

from scenecast.schema.tiers import BillingStatus, SubscriptionTier, decode_billing_status, decode_tier


def test_allowances_match_tier_table() -> None:
  assert [tier.allowance for tier in SubscriptionTier] == [0, 1, 5, 30, 100]


@pytest.mark.parametrize(
  ("plan", "expected"),
  [
    ("pro", SubscriptionTier.PRO),
    ("Professional", SubscriptionTier.PRO),
    ("corporate", SubscriptionTier.BUSINESS),
    ("unlimited", SubscriptionTier.ENTERPRISE),
    ("starter", SubscriptionTier.BASIC),
    ("free", SubscriptionTier.BASIC),
    ("pro_monthly", SubscriptionTier.PRO),
    ("Business Plan", SubscriptionTier.BUSINESS),
    ("enterprise-annual", SubscriptionTier.ENTERPRISE),
  ],
)
def test_decode_tier_aliases_for_active_billing(plan: str, expected: SubscriptionTier) -> None:
  assert decode_tier(plan, "active") is expected


@pytest.mark.parametrize("status", ["inactive", "cancelled", "canceled", "past_due", None])
def test_non_active_billing_yields_no_allowance(status: str | None) -> None:
  assert decode_tier("enterprise", status) is SubscriptionTier.NONE


def test_unknown_plan_on_active_account_falls_back_to_business() -> None:
  assert decode_tier("mystery-tier", BillingStatus.ACTIVE) is SubscriptionTier.BUSINESS
  assert decode_tier(None, "trialing") is SubscriptionTier.BUSINESS


def test_decode_billing_status_normalizes_case_and_spelling() -> None:
  assert decode_billing_status(" Active ") is BillingStatus.ACTIVE
  assert decode_billing_status("paid") is BillingStatus.ACTIVE
  assert decode_billing_status("Canceled") is BillingStatus.CANCELLED
  assert decode_billing_status("") is BillingStatus.INACTIVE
